"""Repository functions for users table.

Provides CRUD operations for users plus the course-scoped listing and
search used by instructor screens.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from engagement_hub.db.database import generate_id, get_db, now_iso

logger = structlog.get_logger(__name__)


@dataclass
class UserRecord:
    """User record from database."""

    user_id: str
    email: str
    name: str
    role: str
    created_at: str
    updated_at: str

    @property
    def display_name(self) -> str:
        return self.name or self.email


@dataclass
class CourseUser:
    """A user as seen from one course: membership role and status attached."""

    user: UserRecord
    membership_id: str
    course_role: str
    status: str


def create_user(
    email: str,
    name: str = "",
    role: str = "student",
    user_id: str | None = None,
) -> UserRecord:
    """Insert a new user.

    Args:
        email: Unique e-mail address
        name: Display name
        role: Global role (student, instructor, admin, ...)
        user_id: Explicit ID (generated when omitted)

    Raises:
        sqlite3.IntegrityError: If the e-mail or ID already exists
    """
    user_id = user_id or generate_id()
    now = now_iso()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO users (user_id, email, name, role, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (user_id, email.strip().lower(), name, role, now, now),
        )

    logger.debug("users.inserted", user_id=user_id)
    return UserRecord(user_id, email.strip().lower(), name, role, now, now)


def get_user_by_id(user_id: str) -> UserRecord | None:
    """Get user by ID, or None if not found."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM users WHERE user_id = ?", (user_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_user_by_email(email: str) -> UserRecord | None:
    """Get user by e-mail (case-insensitive), or None if not found."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM users WHERE email = ?", (email.strip().lower(),)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_users_by_ids(user_ids: set[str]) -> dict[str, UserRecord]:
    """Fetch several users at once, keyed by ID. Missing IDs are absent."""
    if not user_ids:
        return {}

    ids = list(user_ids)
    placeholders = ",".join("?" * len(ids))
    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM users WHERE user_id IN ({placeholders})", ids
        ).fetchall()

    return {row["user_id"]: _row_to_record(row) for row in rows}


def get_all_users() -> list[UserRecord]:
    """Get all users, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM users ORDER BY created_at DESC"
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def get_course_users(course_id: str) -> list[CourseUser]:
    """Get the users of a course, pending and approved alike.

    Memberships whose user no longer exists are skipped rather than shown
    with placeholder data.
    """
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT m.membership_id, m.user_id AS m_user_id, m.role AS course_role,
                   m.status, u.*
            FROM course_memberships m
            LEFT JOIN users u ON u.user_id = m.user_id
            WHERE m.course_id = ?
            ORDER BY m.created_at
            """,
            (course_id,),
        ).fetchall()

    result = []
    for row in rows:
        if row["user_id"] is None:
            logger.warning(
                "users.orphaned_membership",
                course_id=course_id,
                user_id=row["m_user_id"],
            )
            continue
        result.append(
            CourseUser(
                user=_row_to_record(row),
                membership_id=row["membership_id"],
                course_role=row["course_role"],
                status=row["status"],
            )
        )
    return result


def search_users(
    search_term: str,
    exclude_course_id: str | None = None,
    limit: int = 20,
) -> list[UserRecord]:
    """Search users by name or e-mail substring (case-insensitive).

    Args:
        search_term: Text to look for in name or e-mail
        exclude_course_id: Skip users who already have a membership here
        limit: Maximum number of results

    Returns:
        Matching users ordered by name
    """
    pattern = f"%{search_term.strip().lower()}%"
    sql = """
        SELECT * FROM users
        WHERE (lower(name) LIKE ? OR lower(email) LIKE ?)
    """
    params: list = [pattern, pattern]

    if exclude_course_id:
        sql += """
            AND user_id NOT IN (
                SELECT user_id FROM course_memberships WHERE course_id = ?
            )
        """
        params.append(exclude_course_id)

    sql += " ORDER BY name LIMIT ?"
    params.append(limit)

    with get_db() as conn:
        rows = conn.execute(sql, params).fetchall()

    return [_row_to_record(row) for row in rows]


def update_user(
    user_id: str,
    name: str | None = None,
    email: str | None = None,
    role: str | None = None,
) -> UserRecord:
    """Update the given fields of a user.

    Raises:
        ValueError: If user_id doesn't exist
    """
    updates: dict[str, str] = {}
    if name is not None:
        updates["name"] = name
    if email is not None:
        updates["email"] = email.strip().lower()
    if role is not None:
        updates["role"] = role
    updates["updated_at"] = now_iso()

    assignments = ", ".join(f"{column} = ?" for column in updates)
    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE users SET {assignments} WHERE user_id = ?",
            (*updates.values(), user_id),
        )
        if cursor.rowcount == 0:
            raise ValueError(f"User not found: {user_id}")

    logger.debug("users.updated", user_id=user_id, fields=sorted(updates))
    return get_user_by_id(user_id)


def delete_user_row(user_id: str) -> bool:
    """Delete only the user row. Use account_cleanup for the full cascade.

    Returns:
        True if deleted, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM users WHERE user_id = ?", (user_id,))

    deleted = cursor.rowcount > 0
    if deleted:
        logger.debug("users.deleted", user_id=user_id)

    return deleted


def _row_to_record(row) -> UserRecord:
    """Convert database row to UserRecord."""
    return UserRecord(
        user_id=row["user_id"],
        email=row["email"],
        name=row["name"],
        role=row["role"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
