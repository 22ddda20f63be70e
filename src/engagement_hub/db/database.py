"""SQLite database connection and schema management.

Provides connection management and schema initialization for the engagement hub.
"""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

import structlog

from engagement_hub.config.app_config import load_app_config

logger = structlog.get_logger(__name__)

# Current connection target (module-level for simplicity in CLI context)
_db_path: Path | None = None


def _default_db_path() -> Path:
    return Path(load_app_config().hub.db_path)


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to the configured hub.db_path
    """
    global _db_path
    _db_path = db_path or _default_db_path()

    # Ensure directory exists
    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


def get_db_path() -> Path:
    """Return the database file currently in use."""
    return _db_path or _default_db_path()


def reset_db_path() -> None:
    """Forget the initialized path so the configured default applies again."""
    global _db_path
    _db_path = None


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM courses").fetchall()
    """
    db_path = get_db_path()

    # Ensure directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def generate_id() -> str:
    """New opaque row identifier."""
    return uuid.uuid4().hex


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency. Tables carry no foreign keys:
    cross-table consistency is kept by the cascade operations in
    engagement_hub.core.account_cleanup and the repositories.
    """
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS users (
            user_id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            name TEXT NOT NULL DEFAULT '',
            role TEXT NOT NULL DEFAULT 'student',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS courses (
            course_id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            course_code TEXT,
            semester TEXT,
            year INTEGER,
            access_code TEXT,
            is_trial INTEGER NOT NULL DEFAULT 0,
            instructor_id TEXT,
            member_count INTEGER NOT NULL DEFAULT 0,
            instructor_count INTEGER NOT NULL DEFAULT 0,
            student_count INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        -- membership_id is "{user_id}_{course_id}"
        CREATE TABLE IF NOT EXISTS course_memberships (
            membership_id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            course_id TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'student',
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK(status IN ('pending', 'approved', 'rejected')),
            added_by TEXT,
            approved_by TEXT,
            rejected_by TEXT,
            joined_at TEXT,
            processed_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(user_id, course_id)
        );

        CREATE TABLE IF NOT EXISTS projects (
            project_id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            created_by TEXT NOT NULL,
            course_id TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS chats (
            chat_id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            project_id TEXT,
            course_id TEXT,
            prompt TEXT NOT NULL DEFAULT '',
            response TEXT NOT NULL DEFAULT '',
            tool_used TEXT,
            input_tokens INTEGER NOT NULL DEFAULT 0,
            output_tokens INTEGER NOT NULL DEFAULT 0,
            searches INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS tags (
            tag_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            color TEXT NOT NULL DEFAULT '#6B7280',
            description TEXT NOT NULL DEFAULT '',
            course_id TEXT,
            is_global INTEGER NOT NULL DEFAULT 0,
            created_by TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        -- chat_tag_id is "{chat_id}_{tag_id}"
        CREATE TABLE IF NOT EXISTS chat_tags (
            chat_tag_id TEXT PRIMARY KEY,
            chat_id TEXT NOT NULL,
            tag_id TEXT NOT NULL,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS reflections (
            reflection_id TEXT PRIMARY KEY,
            chat_id TEXT NOT NULL UNIQUE,
            user_id TEXT NOT NULL,
            content TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS instructor_notes (
            note_id TEXT PRIMARY KEY,
            project_id TEXT NOT NULL,
            chat_id TEXT,
            instructor_id TEXT NOT NULL,
            student_id TEXT,
            title TEXT NOT NULL DEFAULT '',
            content TEXT NOT NULL,
            is_visible_to_student INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS announcements (
            announcement_id TEXT PRIMARY KEY,
            course_id TEXT NOT NULL,
            author_id TEXT NOT NULL,
            author_name TEXT NOT NULL DEFAULT '',
            author_role TEXT NOT NULL DEFAULT 'instructor',
            title TEXT NOT NULL,
            content TEXT NOT NULL,
            is_pinned INTEGER NOT NULL DEFAULT 0,
            comment_count INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS announcement_comments (
            comment_id TEXT PRIMARY KEY,
            announcement_id TEXT NOT NULL,
            author_id TEXT NOT NULL,
            author_name TEXT NOT NULL DEFAULT '',
            content TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS pdf_attachments (
            attachment_id TEXT PRIMARY KEY,
            chat_id TEXT,
            user_id TEXT NOT NULL,
            file_name TEXT NOT NULL,
            file_size INTEGER NOT NULL DEFAULT 0,
            storage_path TEXT NOT NULL,
            extracted_text TEXT NOT NULL DEFAULT '',
            page_count INTEGER NOT NULL DEFAULT 0,
            detected_language TEXT,
            created_at TEXT NOT NULL
        );

        -- Pre-computed dashboard aggregates, one row per day/course/model
        CREATE TABLE IF NOT EXISTS daily_usage (
            day TEXT NOT NULL,
            course_id TEXT NOT NULL,
            model TEXT NOT NULL,
            provider TEXT NOT NULL,
            interactions INTEGER NOT NULL DEFAULT 0,
            input_tokens INTEGER NOT NULL DEFAULT 0,
            output_tokens INTEGER NOT NULL DEFAULT 0,
            searches INTEGER NOT NULL DEFAULT 0,
            cost REAL NOT NULL DEFAULT 0,
            computed_at TEXT NOT NULL,
            PRIMARY KEY (day, course_id, model)
        );

        -- Indexes
        CREATE INDEX IF NOT EXISTS idx_memberships_course ON course_memberships(course_id, status);
        CREATE INDEX IF NOT EXISTS idx_memberships_user ON course_memberships(user_id);
        CREATE INDEX IF NOT EXISTS idx_courses_access_code ON courses(access_code);
        CREATE INDEX IF NOT EXISTS idx_projects_creator ON projects(created_by);
        CREATE INDEX IF NOT EXISTS idx_chats_project ON chats(project_id, created_at);
        CREATE INDEX IF NOT EXISTS idx_chats_user ON chats(user_id, created_at);
        CREATE INDEX IF NOT EXISTS idx_chats_course ON chats(course_id, created_at);
        CREATE INDEX IF NOT EXISTS idx_chat_tags_tag ON chat_tags(tag_id);
        CREATE INDEX IF NOT EXISTS idx_chat_tags_chat ON chat_tags(chat_id);
        CREATE INDEX IF NOT EXISTS idx_attachments_chat ON pdf_attachments(chat_id);
        """
    )
