"""Repository functions for chats table.

A chat is one prompt/response pair exchanged with an AI model. Listing
functions that need related rows (user, project, tags, reflection) fetch
them in separate batched queries and join them in memory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone

import structlog

from engagement_hub.db.database import generate_id, get_db, now_iso
from engagement_hub.db.projects_repository import (
    UNKNOWN_USER_EMAIL,
    UNKNOWN_USER_NAME,
    get_project_by_id,
    get_projects_by_ids,
)
from engagement_hub.db.reflections_repository import (
    ReflectionRecord,
    get_reflections_for_chats,
)
from engagement_hub.db.tags_repository import TagRecord, get_tags_for_chats
from engagement_hub.db.users_repository import get_users_by_ids

logger = structlog.get_logger(__name__)

UNTITLED_PROJECT = "Untitled Project"
DEFAULT_FILTER_LIMIT = 1000
USER_CHATS_LIMIT = 100


@dataclass
class ChatRecord:
    """Chat record from database."""

    chat_id: str
    user_id: str
    project_id: str | None
    course_id: str | None
    prompt: str
    response: str
    tool_used: str | None
    input_tokens: int
    output_tokens: int
    searches: int
    created_at: str
    updated_at: str


@dataclass
class ChatFilters:
    """Filters for get_chats_with_filters. None means "don't filter"."""

    user_id: str | None = None
    project_id: str | None = None
    course_id: str | None = None
    tool_used: str | None = None
    tag_id: str | None = None
    start_date: str | date | datetime | None = None
    end_date: str | date | datetime | None = None
    has_reflection: bool | None = None
    limit: int = DEFAULT_FILTER_LIMIT


@dataclass
class EnrichedChat:
    """A chat with its related rows joined in."""

    chat: ChatRecord
    user_name: str
    user_email: str
    project_title: str
    tags: list[TagRecord] = field(default_factory=list)
    reflection: ReflectionRecord | None = None

    @property
    def has_reflection(self) -> bool:
        return self.reflection is not None


def create_chat(
    user_id: str,
    prompt: str,
    response: str,
    tool_used: str | None = None,
    project_id: str | None = None,
    course_id: str | None = None,
    input_tokens: int = 0,
    output_tokens: int = 0,
    searches: int = 0,
    created_at: str | None = None,
) -> ChatRecord:
    """Insert a chat.

    When course_id is not given, the project's course is used.

    Args:
        created_at: Explicit timestamp (ISO 8601), mainly for imports and tests
    """
    if course_id is None and project_id:
        project = get_project_by_id(project_id)
        if project is not None:
            course_id = project.course_id

    chat_id = generate_id()
    created = created_at or now_iso()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO chats (
                chat_id, user_id, project_id, course_id, prompt, response,
                tool_used, input_tokens, output_tokens, searches,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                chat_id,
                user_id,
                project_id,
                course_id,
                prompt,
                response,
                tool_used,
                input_tokens,
                output_tokens,
                searches,
                created,
                created,
            ),
        )

    logger.debug(
        "chats.inserted",
        chat_id=chat_id,
        project_id=project_id,
        course_id=course_id,
        tool_used=tool_used,
    )
    return get_chat_by_id(chat_id)


def get_chat_by_id(chat_id: str) -> ChatRecord | None:
    """Get chat by ID, or None if not found."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM chats WHERE chat_id = ?", (chat_id,)).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_project_chats(project_id: str) -> list[ChatRecord]:
    """Get a project's chats in conversation order (oldest first)."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM chats WHERE project_id = ? ORDER BY created_at ASC",
            (project_id,),
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def get_user_chats(
    user_id: str,
    course_id: str | None = None,
    limit: int = USER_CHATS_LIMIT,
) -> list[ChatRecord]:
    """Get a user's most recent chats, optionally within one course."""
    sql = "SELECT * FROM chats WHERE user_id = ?"
    params: list = [user_id]
    if course_id:
        sql += " AND course_id = ?"
        params.append(course_id)
    sql += " ORDER BY created_at DESC LIMIT ?"
    params.append(limit)

    with get_db() as conn:
        rows = conn.execute(sql, params).fetchall()

    return [_row_to_record(row) for row in rows]


def get_chat_ids_for_user(user_id: str) -> list[str]:
    with get_db() as conn:
        rows = conn.execute("SELECT chat_id FROM chats WHERE user_id = ?", (user_id,)).fetchall()
    return [row["chat_id"] for row in rows]


def get_chat_ids_for_projects(project_ids: list[str]) -> list[str]:
    if not project_ids:
        return []
    placeholders = ",".join("?" * len(project_ids))
    with get_db() as conn:
        rows = conn.execute(
            f"SELECT chat_id FROM chats WHERE project_id IN ({placeholders})", project_ids
        ).fetchall()
    return [row["chat_id"] for row in rows]


def update_chat(
    chat_id: str,
    response: str | None = None,
    tool_used: str | None = None,
    course_id: str | None = None,
) -> ChatRecord:
    """Update mutable chat fields.

    Raises:
        ValueError: If chat_id doesn't exist
    """
    updates: dict[str, str] = {}
    if response is not None:
        updates["response"] = response
    if tool_used is not None:
        updates["tool_used"] = tool_used
    if course_id is not None:
        updates["course_id"] = course_id
    updates["updated_at"] = now_iso()

    assignments = ", ".join(f"{column} = ?" for column in updates)
    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE chats SET {assignments} WHERE chat_id = ?",
            (*updates.values(), chat_id),
        )
        if cursor.rowcount == 0:
            raise ValueError(f"Chat not found: {chat_id}")

    logger.debug("chats.updated", chat_id=chat_id)
    return get_chat_by_id(chat_id)


def delete_chat_row(chat_id: str) -> bool:
    """Delete only the chat row. Use account_cleanup for the full cascade."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM chats WHERE chat_id = ?", (chat_id,))
    return cursor.rowcount > 0


def get_chats_with_filters(filters: ChatFilters | None = None) -> list[EnrichedChat]:
    """List chats matching the filters, newest first, with related rows joined.

    Missing users are reported as "Unknown User" / "No email", missing
    projects as "Untitled Project".
    """
    filters = filters or ChatFilters()

    clauses: list[str] = []
    params: list = []
    if filters.user_id:
        clauses.append("c.user_id = ?")
        params.append(filters.user_id)
    if filters.project_id:
        clauses.append("c.project_id = ?")
        params.append(filters.project_id)
    if filters.course_id:
        clauses.append("c.course_id = ?")
        params.append(filters.course_id)
    if filters.tool_used:
        clauses.append("c.tool_used = ?")
        params.append(filters.tool_used)
    if filters.tag_id:
        clauses.append(
            "EXISTS (SELECT 1 FROM chat_tags ct WHERE ct.chat_id = c.chat_id AND ct.tag_id = ?)"
        )
        params.append(filters.tag_id)
    if filters.start_date:
        clauses.append("c.created_at >= ?")
        params.append(_iso_bound(filters.start_date))
    if filters.end_date:
        clauses.append("c.created_at <= ?")
        params.append(_iso_bound(filters.end_date, end_of_day=True))
    if filters.has_reflection is True:
        clauses.append("EXISTS (SELECT 1 FROM reflections r WHERE r.chat_id = c.chat_id)")
    elif filters.has_reflection is False:
        clauses.append("NOT EXISTS (SELECT 1 FROM reflections r WHERE r.chat_id = c.chat_id)")

    sql = "SELECT c.* FROM chats c"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY c.created_at DESC LIMIT ?"
    params.append(filters.limit)

    with get_db() as conn:
        rows = conn.execute(sql, params).fetchall()

    chats = [_row_to_record(row) for row in rows]
    logger.debug("chats.filtered", count=len(chats))
    return enrich_chats(chats)


def get_tagged_chats(tag_id: str, course_id: str | None = None) -> list[EnrichedChat]:
    """Chats carrying a tag, optionally within one course, newest first."""
    return get_chats_with_filters(ChatFilters(tag_id=tag_id, course_id=course_id))


def enrich_chats(chats: list[ChatRecord]) -> list[EnrichedChat]:
    """Attach user, project, tags and reflection to each chat."""
    if not chats:
        return []

    chat_ids = [chat.chat_id for chat in chats]
    users = get_users_by_ids({chat.user_id for chat in chats})
    projects = get_projects_by_ids({chat.project_id for chat in chats if chat.project_id})
    tags = get_tags_for_chats(chat_ids)
    reflections = get_reflections_for_chats(chat_ids)

    enriched = []
    for chat in chats:
        user = users.get(chat.user_id)
        project = projects.get(chat.project_id) if chat.project_id else None
        enriched.append(
            EnrichedChat(
                chat=chat,
                user_name=(user.name or UNKNOWN_USER_NAME) if user else UNKNOWN_USER_NAME,
                user_email=user.email if user else UNKNOWN_USER_EMAIL,
                project_title=project.title if project else UNTITLED_PROJECT,
                tags=tags.get(chat.chat_id, []),
                reflection=reflections.get(chat.chat_id),
            )
        )
    return enriched


def list_chats_in_range(
    start: datetime,
    end: datetime,
    course_id: str | None = None,
) -> list[ChatRecord]:
    """All chats created between start and end (inclusive), newest first."""
    sql = "SELECT * FROM chats WHERE created_at >= ? AND created_at <= ?"
    params: list = [_iso_bound(start), _iso_bound(end, end_of_day=True)]
    if course_id:
        sql += " AND course_id = ?"
        params.append(course_id)
    sql += " ORDER BY created_at DESC"

    with get_db() as conn:
        rows = conn.execute(sql, params).fetchall()

    return [_row_to_record(row) for row in rows]


def _iso_bound(value: str | date | datetime, end_of_day: bool = False) -> str:
    """Normalize a date filter to a comparable ISO 8601 string.

    Bare dates expand to the start (or end) of that UTC day; naive
    datetimes are taken as UTC.
    """
    if isinstance(value, str):
        if len(value) == 10:
            value = date.fromisoformat(value)
        else:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))

    if not isinstance(value, datetime):
        value = datetime.combine(value, time.max if end_of_day else time.min)

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _row_to_record(row) -> ChatRecord:
    """Convert database row to ChatRecord."""
    return ChatRecord(
        chat_id=row["chat_id"],
        user_id=row["user_id"],
        project_id=row["project_id"],
        course_id=row["course_id"],
        prompt=row["prompt"],
        response=row["response"],
        tool_used=row["tool_used"],
        input_tokens=row["input_tokens"],
        output_tokens=row["output_tokens"],
        searches=row["searches"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
