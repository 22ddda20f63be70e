"""Repository functions for reflections table.

A reflection is the student's free-text commentary on one chat; each chat
has at most one.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

import structlog

from engagement_hub.db.database import generate_id, get_db, now_iso

logger = structlog.get_logger(__name__)


class DuplicateReflectionError(Exception):
    """Raised when the chat already has a reflection."""

    def __init__(self, chat_id: str):
        self.chat_id = chat_id
        super().__init__(f"Chat already has a reflection: {chat_id}")


@dataclass
class ReflectionRecord:
    """Reflection record from database."""

    reflection_id: str
    chat_id: str
    user_id: str
    content: str
    created_at: str
    updated_at: str


def create_reflection(chat_id: str, user_id: str, content: str) -> ReflectionRecord:
    """Attach a reflection to a chat.

    Raises:
        DuplicateReflectionError: If the chat already has one
    """
    reflection_id = generate_id()
    now = now_iso()
    try:
        with get_db() as conn:
            conn.execute(
                """
                INSERT INTO reflections (
                    reflection_id, chat_id, user_id, content, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (reflection_id, chat_id, user_id, content, now, now),
            )
    except sqlite3.IntegrityError as e:
        raise DuplicateReflectionError(chat_id) from e

    logger.debug("reflections.inserted", reflection_id=reflection_id, chat_id=chat_id)
    return ReflectionRecord(reflection_id, chat_id, user_id, content, now, now)


def get_reflection_by_chat(chat_id: str) -> ReflectionRecord | None:
    """Get the reflection of a chat, or None."""
    return get_reflections_for_chats([chat_id]).get(chat_id)


def get_reflection_by_id(reflection_id: str) -> ReflectionRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM reflections WHERE reflection_id = ?", (reflection_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_reflections_for_chats(chat_ids: list[str]) -> dict[str, ReflectionRecord]:
    """Get reflections for many chats at once, keyed by chat ID."""
    if not chat_ids:
        return {}

    placeholders = ",".join("?" * len(chat_ids))
    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM reflections WHERE chat_id IN ({placeholders})", chat_ids
        ).fetchall()

    return {row["chat_id"]: _row_to_record(row) for row in rows}


def update_reflection(reflection_id: str, content: str) -> ReflectionRecord:
    """Replace the content of a reflection.

    Raises:
        ValueError: If reflection_id doesn't exist
    """
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE reflections SET content = ?, updated_at = ? WHERE reflection_id = ?",
            (content, now_iso(), reflection_id),
        )
        if cursor.rowcount == 0:
            raise ValueError(f"Reflection not found: {reflection_id}")

    logger.debug("reflections.updated", reflection_id=reflection_id)
    return get_reflection_by_id(reflection_id)


def delete_reflection(reflection_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM reflections WHERE reflection_id = ?", (reflection_id,)
        )
    return cursor.rowcount > 0


def _row_to_record(row) -> ReflectionRecord:
    """Convert database row to ReflectionRecord."""
    return ReflectionRecord(
        reflection_id=row["reflection_id"],
        chat_id=row["chat_id"],
        user_id=row["user_id"],
        content=row["content"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
