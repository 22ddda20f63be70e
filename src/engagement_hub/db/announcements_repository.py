"""Repository functions for announcements and announcement_comments tables.

announcements.comment_count is kept in step with the comment rows by
add_comment and delete_comment.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from engagement_hub.db.database import generate_id, get_db, now_iso

logger = structlog.get_logger(__name__)


class AnnouncementNotFoundError(Exception):
    """Raised when an announcement ID doesn't exist."""

    def __init__(self, announcement_id: str):
        self.announcement_id = announcement_id
        super().__init__(f"Announcement not found: {announcement_id}")


@dataclass
class AnnouncementRecord:
    """Announcement record from database."""

    announcement_id: str
    course_id: str
    author_id: str
    author_name: str
    author_role: str
    title: str
    content: str
    is_pinned: bool
    comment_count: int
    created_at: str
    updated_at: str


@dataclass
class CommentRecord:
    """Announcement comment record from database."""

    comment_id: str
    announcement_id: str
    author_id: str
    author_name: str
    content: str
    created_at: str
    updated_at: str


def create_announcement(
    course_id: str,
    author_id: str,
    title: str,
    content: str,
    author_name: str = "",
    author_role: str = "instructor",
    is_pinned: bool = False,
) -> AnnouncementRecord:
    announcement_id = generate_id()
    now = now_iso()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO announcements (
                announcement_id, course_id, author_id, author_name, author_role,
                title, content, is_pinned, comment_count, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
            """,
            (
                announcement_id,
                course_id,
                author_id,
                author_name,
                author_role,
                title,
                content,
                int(is_pinned),
                now,
                now,
            ),
        )

    logger.info("announcements.created", announcement_id=announcement_id, course_id=course_id)
    return get_announcement(announcement_id)


def get_announcement(announcement_id: str) -> AnnouncementRecord | None:
    """Get announcement by ID, or None if not found."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM announcements WHERE announcement_id = ?", (announcement_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_announcement(row)


def get_course_announcements(course_id: str) -> list[AnnouncementRecord]:
    """Announcements of a course: pinned first, then newest first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM announcements
            WHERE course_id = ?
            ORDER BY is_pinned DESC, created_at DESC
            """,
            (course_id,),
        ).fetchall()

    return [_row_to_announcement(row) for row in rows]


def update_announcement(
    announcement_id: str,
    title: str | None = None,
    content: str | None = None,
) -> AnnouncementRecord:
    """Update title and/or content.

    Raises:
        AnnouncementNotFoundError: If announcement_id doesn't exist
    """
    updates: dict[str, object] = {}
    if title is not None:
        updates["title"] = title
    if content is not None:
        updates["content"] = content
    _update_columns(announcement_id, updates)
    return get_announcement(announcement_id)


def toggle_pin(announcement_id: str) -> AnnouncementRecord:
    """Flip the pinned flag.

    Raises:
        AnnouncementNotFoundError: If announcement_id doesn't exist
    """
    announcement = get_announcement(announcement_id)
    if announcement is None:
        raise AnnouncementNotFoundError(announcement_id)

    _update_columns(announcement_id, {"is_pinned": int(not announcement.is_pinned)})
    logger.debug(
        "announcements.pin_toggled",
        announcement_id=announcement_id,
        is_pinned=not announcement.is_pinned,
    )
    return get_announcement(announcement_id)


def delete_announcement(announcement_id: str) -> bool:
    """Delete an announcement together with its comments."""
    with get_db() as conn:
        comments = conn.execute(
            "DELETE FROM announcement_comments WHERE announcement_id = ?", (announcement_id,)
        ).rowcount
        cursor = conn.execute(
            "DELETE FROM announcements WHERE announcement_id = ?", (announcement_id,)
        )

    deleted = cursor.rowcount > 0
    if deleted:
        logger.info(
            "announcements.deleted",
            announcement_id=announcement_id,
            comments_removed=comments,
        )
    return deleted


def _update_columns(announcement_id: str, updates: dict[str, object]) -> None:
    updates = {**updates, "updated_at": now_iso()}
    assignments = ", ".join(f"{column} = ?" for column in updates)
    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE announcements SET {assignments} WHERE announcement_id = ?",
            (*updates.values(), announcement_id),
        )
        if cursor.rowcount == 0:
            raise AnnouncementNotFoundError(announcement_id)


# Comments


def add_comment(
    announcement_id: str,
    author_id: str,
    content: str,
    author_name: str = "",
) -> CommentRecord:
    """Add a comment and bump the announcement's comment_count.

    Raises:
        AnnouncementNotFoundError: If announcement_id doesn't exist
    """
    comment_id = generate_id()
    now = now_iso()
    with get_db() as conn:
        cursor = conn.execute(
            """
            UPDATE announcements SET comment_count = comment_count + 1
            WHERE announcement_id = ?
            """,
            (announcement_id,),
        )
        if cursor.rowcount == 0:
            raise AnnouncementNotFoundError(announcement_id)

        conn.execute(
            """
            INSERT INTO announcement_comments (
                comment_id, announcement_id, author_id, author_name, content,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (comment_id, announcement_id, author_id, author_name, content, now, now),
        )

    logger.debug("announcements.comment_added", announcement_id=announcement_id)
    return CommentRecord(comment_id, announcement_id, author_id, author_name, content, now, now)


def get_comments(announcement_id: str) -> list[CommentRecord]:
    """Comments on an announcement, oldest first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM announcement_comments
            WHERE announcement_id = ?
            ORDER BY created_at ASC
            """,
            (announcement_id,),
        ).fetchall()

    return [_row_to_comment(row) for row in rows]


def get_comment(comment_id: str) -> CommentRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM announcement_comments WHERE comment_id = ?", (comment_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_comment(row)


def update_comment(comment_id: str, content: str) -> CommentRecord:
    """Replace a comment's content.

    Raises:
        ValueError: If comment_id doesn't exist
    """
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE announcement_comments SET content = ?, updated_at = ? WHERE comment_id = ?",
            (content, now_iso(), comment_id),
        )
        if cursor.rowcount == 0:
            raise ValueError(f"Comment not found: {comment_id}")

    return get_comment(comment_id)


def delete_comment(comment_id: str) -> bool:
    """Delete a comment and decrement its announcement's comment_count."""
    comment = get_comment(comment_id)
    if comment is None:
        return False

    with get_db() as conn:
        conn.execute("DELETE FROM announcement_comments WHERE comment_id = ?", (comment_id,))
        conn.execute(
            """
            UPDATE announcements SET comment_count = MAX(comment_count - 1, 0)
            WHERE announcement_id = ?
            """,
            (comment.announcement_id,),
        )

    logger.debug("announcements.comment_deleted", comment_id=comment_id)
    return True


def _row_to_announcement(row) -> AnnouncementRecord:
    """Convert database row to AnnouncementRecord."""
    return AnnouncementRecord(
        announcement_id=row["announcement_id"],
        course_id=row["course_id"],
        author_id=row["author_id"],
        author_name=row["author_name"],
        author_role=row["author_role"],
        title=row["title"],
        content=row["content"],
        is_pinned=bool(row["is_pinned"]),
        comment_count=row["comment_count"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_comment(row) -> CommentRecord:
    return CommentRecord(
        comment_id=row["comment_id"],
        announcement_id=row["announcement_id"],
        author_id=row["author_id"],
        author_name=row["author_name"],
        content=row["content"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
