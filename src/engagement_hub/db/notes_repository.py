"""Repository functions for instructor_notes table."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from engagement_hub.core.roles import require
from engagement_hub.db.database import generate_id, get_db, now_iso

logger = structlog.get_logger(__name__)


@dataclass
class NoteRecord:
    """Instructor note record from database."""

    note_id: str
    project_id: str
    chat_id: str | None
    instructor_id: str
    student_id: str | None
    title: str
    content: str
    is_visible_to_student: bool
    created_at: str
    updated_at: str


def create_note(
    project_id: str,
    instructor_id: str,
    content: str,
    title: str = "",
    chat_id: str | None = None,
    student_id: str | None = None,
    is_visible_to_student: bool = True,
) -> NoteRecord:
    """Insert an instructor note on a project (and optionally one chat)."""
    note_id = generate_id()
    now = now_iso()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO instructor_notes (
                note_id, project_id, chat_id, instructor_id, student_id,
                title, content, is_visible_to_student, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                note_id,
                project_id,
                chat_id,
                instructor_id,
                student_id,
                title,
                content,
                int(is_visible_to_student),
                now,
                now,
            ),
        )

    logger.debug("notes.inserted", note_id=note_id, project_id=project_id)
    return get_note_by_id(note_id)


def get_note_by_id(note_id: str) -> NoteRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM instructor_notes WHERE note_id = ?", (note_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_project_notes(project_id: str, visible_only: bool = False) -> list[NoteRecord]:
    """Notes on a project, newest first.

    Args:
        visible_only: Only notes the student is allowed to see
    """
    sql = "SELECT * FROM instructor_notes WHERE project_id = ?"
    if visible_only:
        sql += " AND is_visible_to_student = 1"
    sql += " ORDER BY created_at DESC"

    with get_db() as conn:
        rows = conn.execute(sql, (project_id,)).fetchall()

    return [_row_to_record(row) for row in rows]


def get_chat_notes(chat_id: str) -> list[NoteRecord]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM instructor_notes WHERE chat_id = ? ORDER BY created_at DESC",
            (chat_id,),
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def update_note(
    note_id: str,
    title: str | None = None,
    content: str | None = None,
    is_visible_to_student: bool | None = None,
) -> NoteRecord:
    """Update the given note fields.

    Raises:
        ValueError: If note_id doesn't exist
    """
    updates: dict[str, object] = {}
    if title is not None:
        updates["title"] = title
    if content is not None:
        updates["content"] = content
    if is_visible_to_student is not None:
        updates["is_visible_to_student"] = int(is_visible_to_student)
    updates["updated_at"] = now_iso()

    assignments = ", ".join(f"{column} = ?" for column in updates)
    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE instructor_notes SET {assignments} WHERE note_id = ?",
            (*updates.values(), note_id),
        )
        if cursor.rowcount == 0:
            raise ValueError(f"Note not found: {note_id}")

    logger.debug("notes.updated", note_id=note_id)
    return get_note_by_id(note_id)


def delete_note(note_id: str, user_id: str) -> bool:
    """Delete a note. Only its author may do so.

    Returns:
        True if deleted, False if the note doesn't exist

    Raises:
        PermissionDeniedError: If user_id is not the note's author
    """
    note = get_note_by_id(note_id)
    if note is None:
        return False

    require(
        note.instructor_id == user_id,
        "Permission denied: You can only delete your own notes",
    )

    with get_db() as conn:
        conn.execute("DELETE FROM instructor_notes WHERE note_id = ?", (note_id,))

    logger.info("notes.deleted", note_id=note_id, user_id=user_id)
    return True


def _row_to_record(row) -> NoteRecord:
    """Convert database row to NoteRecord."""
    return NoteRecord(
        note_id=row["note_id"],
        project_id=row["project_id"],
        chat_id=row["chat_id"],
        instructor_id=row["instructor_id"],
        student_id=row["student_id"],
        title=row["title"],
        content=row["content"],
        is_visible_to_student=bool(row["is_visible_to_student"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
