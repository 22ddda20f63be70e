"""Repository functions for pdf_attachments table.

Stored files live under the configured uploads directory; this module only
tracks their metadata and extracted text.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from engagement_hub.db.database import generate_id, get_db, now_iso
from engagement_hub.db.projects_repository import (
    UNKNOWN_USER_EMAIL,
    UNKNOWN_USER_NAME,
    get_projects_by_ids,
)
from engagement_hub.db.users_repository import get_users_by_ids

logger = structlog.get_logger(__name__)


@dataclass
class AttachmentRecord:
    """Attachment record from database."""

    attachment_id: str
    chat_id: str | None
    user_id: str
    file_name: str
    file_size: int
    storage_path: str
    extracted_text: str
    page_count: int
    detected_language: str | None
    created_at: str


@dataclass
class CourseAttachment:
    """An attachment listed for a course, with uploader and project attached."""

    attachment: AttachmentRecord
    project_id: str | None
    project_title: str
    uploader_name: str
    uploader_email: str


def create_attachment(
    user_id: str,
    file_name: str,
    storage_path: str,
    file_size: int = 0,
    extracted_text: str = "",
    page_count: int = 0,
    detected_language: str | None = None,
    chat_id: str | None = None,
    created_at: str | None = None,
) -> AttachmentRecord:
    attachment_id = generate_id()
    created = created_at or now_iso()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO pdf_attachments (
                attachment_id, chat_id, user_id, file_name, file_size,
                storage_path, extracted_text, page_count, detected_language,
                created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                attachment_id,
                chat_id,
                user_id,
                file_name,
                file_size,
                storage_path,
                extracted_text,
                page_count,
                detected_language,
                created,
            ),
        )

    logger.debug(
        "attachments.inserted",
        attachment_id=attachment_id,
        chat_id=chat_id,
        file_name=file_name,
    )
    return get_attachment(attachment_id)


def get_attachment(attachment_id: str) -> AttachmentRecord | None:
    """Get attachment by ID, or None if not found."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM pdf_attachments WHERE attachment_id = ?", (attachment_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_attachments_by_ids(attachment_ids: list[str]) -> list[AttachmentRecord]:
    """Fetch attachments in the order the IDs were given. Unknown IDs are skipped."""
    if not attachment_ids:
        return []

    placeholders = ",".join("?" * len(attachment_ids))
    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM pdf_attachments WHERE attachment_id IN ({placeholders})",
            attachment_ids,
        ).fetchall()

    by_id = {row["attachment_id"]: _row_to_record(row) for row in rows}
    return [by_id[a] for a in attachment_ids if a in by_id]


def get_chat_attachments(chat_id: str) -> list[AttachmentRecord]:
    """Attachments of a chat, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM pdf_attachments WHERE chat_id = ? ORDER BY created_at DESC",
            (chat_id,),
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def get_attachments_for_chats(chat_ids: list[str]) -> list[AttachmentRecord]:
    if not chat_ids:
        return []
    placeholders = ",".join("?" * len(chat_ids))
    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM pdf_attachments WHERE chat_id IN ({placeholders})", chat_ids
        ).fetchall()
    return [_row_to_record(row) for row in rows]


def link_attachments_to_chat(attachment_ids: list[str], chat_id: str, user_id: str) -> int:
    """Point the user's unsent uploads at the chat they were sent with.

    Attachments owned by someone else or already on a chat are left alone.
    Returns the number of attachments linked.
    """
    if not attachment_ids:
        return 0
    with get_db() as conn:
        cursor = conn.executemany(
            """
            UPDATE pdf_attachments SET chat_id = ?
            WHERE attachment_id = ? AND user_id = ? AND chat_id IS NULL
            """,
            [(chat_id, attachment_id, user_id) for attachment_id in attachment_ids],
        )
        return cursor.rowcount


def get_course_attachments(course_id: str) -> list[CourseAttachment]:
    """Attachments on chats of the course's projects, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT a.*, c.project_id AS chat_project_id
            FROM pdf_attachments a
            JOIN chats c ON c.chat_id = a.chat_id
            WHERE c.project_id IN (SELECT project_id FROM projects WHERE course_id = ?)
            ORDER BY a.created_at DESC
            """,
            (course_id,),
        ).fetchall()

    if not rows:
        return []

    attachments = [(_row_to_record(row), row["chat_project_id"]) for row in rows]
    users = get_users_by_ids({a.user_id for a, _ in attachments})
    projects = get_projects_by_ids({p for _, p in attachments if p})

    result = []
    for attachment, project_id in attachments:
        uploader = users.get(attachment.user_id)
        project = projects.get(project_id)
        result.append(
            CourseAttachment(
                attachment=attachment,
                project_id=project_id,
                project_title=project.title if project else "Unknown Project",
                uploader_name=uploader.name if uploader else UNKNOWN_USER_NAME,
                uploader_email=uploader.email if uploader else UNKNOWN_USER_EMAIL,
            )
        )
    return result


def delete_attachment(attachment_id: str) -> bool:
    """Delete only the metadata row. The caller removes the stored file."""
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM pdf_attachments WHERE attachment_id = ?", (attachment_id,)
        )
    return cursor.rowcount > 0


def _row_to_record(row) -> AttachmentRecord:
    """Convert database row to AttachmentRecord."""
    return AttachmentRecord(
        attachment_id=row["attachment_id"],
        chat_id=row["chat_id"],
        user_id=row["user_id"],
        file_name=row["file_name"],
        file_size=row["file_size"],
        storage_path=row["storage_path"],
        extracted_text=row["extracted_text"],
        page_count=row["page_count"],
        detected_language=row["detected_language"],
        created_at=row["created_at"],
    )
