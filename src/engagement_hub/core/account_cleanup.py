"""Cascading deletes across tables.

The schema has no foreign keys, so removing a user or a project means
walking every dependent table explicitly. Steps run in separate
transactions; stored attachment files are removed after their rows.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from engagement_hub.core.roles import ADMIN, PermissionDeniedError
from engagement_hub.db.courses_repository import update_course_member_counts
from engagement_hub.db.database import get_db
from engagement_hub.db.tags_repository import delete_chat_links
from engagement_hub.db.users_repository import get_user_by_id

logger = structlog.get_logger(__name__)


class InvalidArgumentError(Exception):
    """Raised when a required argument is missing."""


class AccountCleanupError(Exception):
    """Raised when a cascade delete fails part-way."""

    def __init__(self, user_id: str, message: str):
        self.user_id = user_id
        super().__init__(f"Failed to delete user {user_id}: {message}")


@dataclass
class DeletionSummary:
    """Row counts removed by delete_user_completely."""

    user_id: str
    memberships: int = 0
    chats: int = 0
    chat_tags: int = 0
    attachments: int = 0
    files_removed: int = 0
    projects: int = 0
    instructor_notes: int = 0
    reflections: int = 0
    user_deleted: bool = False
    courses_updated: list[str] = field(default_factory=list)


@dataclass
class ProjectDeletionSummary:
    project_id: str
    chats: int = 0
    chat_tags: int = 0
    attachments: int = 0
    files_removed: int = 0
    reflections: int = 0
    instructor_notes: int = 0
    project_deleted: bool = False


@dataclass
class _ChatCascade:
    chats: int = 0
    chat_tags: int = 0
    attachments: int = 0
    reflections: int = 0
    storage_paths: list[str] = field(default_factory=list)


def delete_user_completely(user_id: str, caller_id: str | None) -> DeletionSummary:
    """Delete a user and everything that belongs to them.

    Order: course memberships, chats (with tag links, attachments and
    reflections on them), remaining uploads, projects, instructor notes
    written by or about the user, remaining reflections, the user row. Afterwards the member
    counts of every course the user belonged to are recomputed.

    Args:
        user_id: User to delete
        caller_id: User performing the deletion; must have global role admin

    Returns:
        DeletionSummary with per-table counts

    Raises:
        InvalidArgumentError: If user_id is empty
        PermissionDeniedError: If the caller is unknown or not an admin
        AccountCleanupError: If any step fails unexpectedly
    """
    logger.info("account_cleanup.started", user_id=user_id, caller_id=caller_id)

    if not user_id:
        raise InvalidArgumentError("userId is required")

    caller = get_user_by_id(caller_id) if caller_id else None
    if caller is None or caller.role != ADMIN:
        raise PermissionDeniedError(
            "Only admins can delete users",
            role=caller.role if caller else None,
        )

    summary = DeletionSummary(user_id=user_id)
    try:
        with get_db() as conn:
            rows = conn.execute(
                "SELECT DISTINCT course_id FROM course_memberships WHERE user_id = ?",
                (user_id,),
            ).fetchall()
            courses_to_update = [row["course_id"] for row in rows]
            summary.memberships = conn.execute(
                "DELETE FROM course_memberships WHERE user_id = ?", (user_id,)
            ).rowcount
        logger.info("account_cleanup.memberships_deleted", count=summary.memberships)

        with get_db() as conn:
            chat_ids = [
                row["chat_id"]
                for row in conn.execute(
                    "SELECT chat_id FROM chats WHERE user_id = ?", (user_id,)
                ).fetchall()
            ]
            cascade = _delete_chats(conn, chat_ids)
        summary.chats = cascade.chats
        summary.chat_tags = cascade.chat_tags
        summary.attachments = cascade.attachments
        summary.reflections = cascade.reflections
        summary.files_removed = _remove_files(cascade.storage_paths)
        logger.info(
            "account_cleanup.chats_deleted",
            count=summary.chats,
            attachments=summary.attachments,
        )

        # Uploads never sent with a chat
        with get_db() as conn:
            upload_paths = [
                row["storage_path"]
                for row in conn.execute(
                    "SELECT storage_path FROM pdf_attachments WHERE user_id = ?", (user_id,)
                ).fetchall()
            ]
            uploads = conn.execute(
                "DELETE FROM pdf_attachments WHERE user_id = ?", (user_id,)
            ).rowcount
        summary.attachments += uploads
        summary.files_removed += _remove_files(upload_paths)
        logger.info("account_cleanup.uploads_deleted", count=uploads)

        with get_db() as conn:
            summary.projects = conn.execute(
                "DELETE FROM projects WHERE created_by = ?", (user_id,)
            ).rowcount
        logger.info("account_cleanup.projects_deleted", count=summary.projects)

        with get_db() as conn:
            summary.instructor_notes = conn.execute(
                "DELETE FROM instructor_notes WHERE student_id = ? OR instructor_id = ?",
                (user_id, user_id),
            ).rowcount
        logger.info("account_cleanup.notes_deleted", count=summary.instructor_notes)

        with get_db() as conn:
            summary.reflections += conn.execute(
                "DELETE FROM reflections WHERE user_id = ?", (user_id,)
            ).rowcount
        logger.info("account_cleanup.reflections_deleted", count=summary.reflections)

        with get_db() as conn:
            summary.user_deleted = (
                conn.execute("DELETE FROM users WHERE user_id = ?", (user_id,)).rowcount > 0
            )
        if summary.user_deleted:
            logger.info("account_cleanup.user_deleted", user_id=user_id)
        else:
            logger.warning("account_cleanup.user_row_missing", user_id=user_id)

    except sqlite3.Error as e:
        logger.error("account_cleanup.failed", user_id=user_id, error=str(e))
        raise AccountCleanupError(user_id, str(e)) from e

    # Recount failures are logged inside update_course_member_counts
    for course_id in courses_to_update:
        update_course_member_counts(course_id)
        summary.courses_updated.append(course_id)

    logger.info(
        "account_cleanup.completed",
        user_id=user_id,
        memberships=summary.memberships,
        chats=summary.chats,
        projects=summary.projects,
        instructor_notes=summary.instructor_notes,
        reflections=summary.reflections,
        courses_updated=len(summary.courses_updated),
    )
    return summary


def delete_project_cascade(project_id: str) -> ProjectDeletionSummary:
    """Delete a project with its chats, their dependants and its notes."""
    summary = ProjectDeletionSummary(project_id=project_id)

    with get_db() as conn:
        chat_ids = [
            row["chat_id"]
            for row in conn.execute(
                "SELECT chat_id FROM chats WHERE project_id = ?", (project_id,)
            ).fetchall()
        ]
        cascade = _delete_chats(conn, chat_ids)
        summary.instructor_notes = conn.execute(
            "DELETE FROM instructor_notes WHERE project_id = ?", (project_id,)
        ).rowcount
        summary.project_deleted = (
            conn.execute("DELETE FROM projects WHERE project_id = ?", (project_id,)).rowcount > 0
        )

    summary.chats = cascade.chats
    summary.chat_tags = cascade.chat_tags
    summary.attachments = cascade.attachments
    summary.reflections = cascade.reflections
    summary.files_removed = _remove_files(cascade.storage_paths)

    logger.info(
        "account_cleanup.project_deleted",
        project_id=project_id,
        chats=summary.chats,
        found=summary.project_deleted,
    )
    return summary


def _delete_chats(conn: sqlite3.Connection, chat_ids: list[str]) -> _ChatCascade:
    """Delete chats and the rows hanging off them inside one transaction."""
    cascade = _ChatCascade()
    if not chat_ids:
        return cascade

    placeholders = ",".join("?" * len(chat_ids))
    cascade.chat_tags = delete_chat_links(conn, chat_ids)

    cascade.storage_paths = [
        row["storage_path"]
        for row in conn.execute(
            f"SELECT storage_path FROM pdf_attachments WHERE chat_id IN ({placeholders})",
            chat_ids,
        ).fetchall()
    ]
    cascade.attachments = conn.execute(
        f"DELETE FROM pdf_attachments WHERE chat_id IN ({placeholders})", chat_ids
    ).rowcount
    cascade.reflections = conn.execute(
        f"DELETE FROM reflections WHERE chat_id IN ({placeholders})", chat_ids
    ).rowcount
    cascade.chats = conn.execute(
        f"DELETE FROM chats WHERE chat_id IN ({placeholders})", chat_ids
    ).rowcount
    return cascade


def _remove_files(paths: list[str]) -> int:
    """Remove stored files. Missing or undeletable files are logged and skipped."""
    removed = 0
    for path in paths:
        try:
            Path(path).unlink()
            removed += 1
        except FileNotFoundError:
            logger.debug("account_cleanup.file_missing", path=path)
        except OSError as e:
            logger.warning("account_cleanup.file_remove_failed", path=path, error=str(e))
    return removed
