"""Repository functions for tags and chat_tags tables.

Tags are either course tags (course_id set) or global tags (no course, or
is_global set). A chat/tag link uses the composite ID "{chat_id}_{tag_id}",
which makes tagging idempotent.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from engagement_hub.core.roles import is_instructor_level, require
from engagement_hub.db.database import generate_id, get_db, now_iso

logger = structlog.get_logger(__name__)

GLOBAL_EDUCATIONAL_TAGS = [
    ("Research Help", "#3B82F6", "AI assistance with research and fact-finding"),
    ("Writing Support", "#10B981", "Help with writing, editing, and structure"),
    ("Problem Solving", "#8B5CF6", "Working through complex problems step-by-step"),
    ("Concept Explanation", "#F59E0B", "Understanding difficult concepts and topics"),
    ("Study Planning", "#EF4444", "Organizing study schedules and learning strategies"),
    ("Critical Thinking", "#EC4899", "Developing analytical and critical thinking skills"),
    ("Creative Brainstorming", "#6366F1", "Generating creative ideas and solutions"),
    ("Homework Help", "#6B7280", "Assistance with specific homework assignments"),
]


@dataclass
class TagRecord:
    """Tag record from database."""

    tag_id: str
    name: str
    color: str
    description: str
    course_id: str | None
    is_global: bool
    created_by: str | None
    created_at: str
    updated_at: str
    usage_count: int | None = None


def chat_tag_id_for(chat_id: str, tag_id: str) -> str:
    return f"{chat_id}_{tag_id}"


def create_tag(
    name: str,
    user_role: str,
    course_id: str | None = None,
    color: str = "#6B7280",
    description: str = "",
    is_global: bool = False,
    created_by: str | None = None,
) -> TagRecord:
    """Create a course or global tag.

    Raises:
        PermissionDeniedError: If user_role is below instructor level
    """
    require(
        is_instructor_level(user_role),
        "Permission denied: Only instructors and admins can create tags",
        role=user_role,
    )
    return _insert_tag(name, course_id, color, description, is_global, created_by)


def _insert_tag(
    name: str,
    course_id: str | None,
    color: str,
    description: str,
    is_global: bool,
    created_by: str | None,
) -> TagRecord:
    tag_id = generate_id()
    now = now_iso()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO tags (
                tag_id, name, color, description, course_id, is_global,
                created_by, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (tag_id, name, color, description, course_id, int(is_global), created_by, now, now),
        )

    logger.debug("tags.inserted", tag_id=tag_id, course_id=course_id, is_global=is_global)
    return get_tag_by_id(tag_id)


def get_tag_by_id(tag_id: str) -> TagRecord | None:
    """Get tag by ID, or None if not found."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM tags WHERE tag_id = ?", (tag_id,)).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_all_tags(course_id: str | None = None) -> list[TagRecord]:
    """Get all tags ordered by name, optionally only those of one course."""
    sql = "SELECT * FROM tags"
    params: list = []
    if course_id:
        sql += " WHERE course_id = ?"
        params.append(course_id)
    sql += " ORDER BY name"

    with get_db() as conn:
        rows = conn.execute(sql, params).fetchall()

    return [_row_to_record(row) for row in rows]


def get_course_tags_with_usage(course_id: str) -> list[TagRecord]:
    """Get a course's tags ordered by name, each with its usage count."""
    return _tags_with_usage("t.course_id = ?", [course_id])


def get_global_tags_with_usage() -> list[TagRecord]:
    """Get global tags (no course, or flagged global) with usage counts."""
    return _tags_with_usage("(t.course_id IS NULL OR t.is_global = 1)", [])


def _tags_with_usage(where: str, params: list) -> list[TagRecord]:
    with get_db() as conn:
        rows = conn.execute(
            f"""
            SELECT t.*, COUNT(ct.chat_tag_id) AS usage_count
            FROM tags t
            LEFT JOIN chat_tags ct ON ct.tag_id = t.tag_id
            WHERE {where}
            GROUP BY t.tag_id
            ORDER BY t.name
            """,
            params,
        ).fetchall()

    tags = []
    for row in rows:
        tag = _row_to_record(row)
        tag.usage_count = row["usage_count"]
        tags.append(tag)
    return tags


def update_tag(
    tag_id: str,
    name: str | None = None,
    color: str | None = None,
    description: str | None = None,
) -> TagRecord:
    """Update the given tag fields.

    Raises:
        ValueError: If tag_id doesn't exist
    """
    updates: dict[str, str] = {}
    if name is not None:
        updates["name"] = name
    if color is not None:
        updates["color"] = color
    if description is not None:
        updates["description"] = description
    updates["updated_at"] = now_iso()

    assignments = ", ".join(f"{column} = ?" for column in updates)
    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE tags SET {assignments} WHERE tag_id = ?",
            (*updates.values(), tag_id),
        )
        if cursor.rowcount == 0:
            raise ValueError(f"Tag not found: {tag_id}")

    logger.debug("tags.updated", tag_id=tag_id)
    return get_tag_by_id(tag_id)


def delete_tag(tag_id: str) -> bool:
    """Delete a tag and every chat link to it.

    Returns:
        True if the tag existed, False otherwise
    """
    with get_db() as conn:
        links = conn.execute("DELETE FROM chat_tags WHERE tag_id = ?", (tag_id,)).rowcount
        cursor = conn.execute("DELETE FROM tags WHERE tag_id = ?", (tag_id,))

    deleted = cursor.rowcount > 0
    if deleted:
        logger.info("tags.deleted", tag_id=tag_id, links_removed=links)
    return deleted


def add_tags_to_chat(chat_id: str, tag_ids: list[str]) -> None:
    """Link tags to a chat. Re-adding an existing link is a no-op."""
    now = now_iso()
    with get_db() as conn:
        conn.executemany(
            """
            INSERT OR IGNORE INTO chat_tags (chat_tag_id, chat_id, tag_id, created_at)
            VALUES (?, ?, ?, ?)
            """,
            [(chat_tag_id_for(chat_id, tag_id), chat_id, tag_id, now) for tag_id in tag_ids],
        )

    logger.debug("tags.added_to_chat", chat_id=chat_id, tag_ids=tag_ids)


def remove_tags_from_chat(chat_id: str, tag_ids: list[str]) -> None:
    """Unlink tags from a chat. Missing links are ignored."""
    with get_db() as conn:
        conn.executemany(
            "DELETE FROM chat_tags WHERE chat_tag_id = ?",
            [(chat_tag_id_for(chat_id, tag_id),) for tag_id in tag_ids],
        )

    logger.debug("tags.removed_from_chat", chat_id=chat_id, tag_ids=tag_ids)


def get_chat_tags(chat_id: str) -> list[TagRecord]:
    """Get the tags linked to one chat, ordered by name."""
    return get_tags_for_chats([chat_id]).get(chat_id, [])


def get_tags_for_chats(chat_ids: list[str]) -> dict[str, list[TagRecord]]:
    """Get tags for many chats at once, keyed by chat ID.

    Links pointing at deleted tags are dropped.
    """
    if not chat_ids:
        return {}

    placeholders = ",".join("?" * len(chat_ids))
    with get_db() as conn:
        rows = conn.execute(
            f"""
            SELECT ct.chat_id AS link_chat_id, t.*
            FROM chat_tags ct
            JOIN tags t ON t.tag_id = ct.tag_id
            WHERE ct.chat_id IN ({placeholders})
            ORDER BY t.name
            """,
            chat_ids,
        ).fetchall()

    result: dict[str, list[TagRecord]] = {}
    for row in rows:
        result.setdefault(row["link_chat_id"], []).append(_row_to_record(row))
    return result


def delete_chat_links(conn, chat_ids: list[str]) -> int:
    """Delete tag links of the given chats inside an open transaction."""
    if not chat_ids:
        return 0
    placeholders = ",".join("?" * len(chat_ids))
    return conn.execute(
        f"DELETE FROM chat_tags WHERE chat_id IN ({placeholders})", chat_ids
    ).rowcount


def create_global_educational_tags() -> list[TagRecord]:
    """Seed the standard global tags, skipping names that already exist.

    Returns:
        The tags created by this call (empty when all already existed)
    """
    with get_db() as conn:
        existing = {
            row["name"]
            for row in conn.execute("SELECT name FROM tags WHERE is_global = 1").fetchall()
        }

    created = []
    for name, color, description in GLOBAL_EDUCATIONAL_TAGS:
        if name in existing:
            logger.debug("tags.global_exists", name=name)
            continue
        created.append(_insert_tag(name, None, color, description, True, None))

    logger.info("tags.global_seeded", created=len(created))
    return created


def _row_to_record(row) -> TagRecord:
    """Convert database row to TagRecord."""
    return TagRecord(
        tag_id=row["tag_id"],
        name=row["name"],
        color=row["color"],
        description=row["description"],
        course_id=row["course_id"],
        is_global=bool(row["is_global"]),
        created_by=row["created_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
