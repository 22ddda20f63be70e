"""Repository functions for projects table.

A project groups a student's chats, optionally inside a course.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from engagement_hub.db.database import generate_id, get_db, now_iso
from engagement_hub.db.users_repository import UserRecord, get_users_by_ids

logger = structlog.get_logger(__name__)

UNKNOWN_USER_NAME = "Unknown User"
UNKNOWN_USER_EMAIL = "No email"


@dataclass
class ProjectRecord:
    """Project record from database."""

    project_id: str
    title: str
    description: str
    created_by: str
    course_id: str | None
    created_at: str
    updated_at: str


@dataclass
class ProjectWithCreator:
    """A project with its creator's name and e-mail attached."""

    project: ProjectRecord
    creator_name: str
    creator_email: str


def create_project(
    title: str,
    created_by: str,
    course_id: str | None = None,
    description: str = "",
) -> ProjectRecord:
    """Insert a new project owned by created_by."""
    project_id = generate_id()
    now = now_iso()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO projects (
                project_id, title, description, created_by, course_id,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (project_id, title, description, created_by, course_id, now, now),
        )

    logger.debug("projects.inserted", project_id=project_id, course_id=course_id)
    return get_project_by_id(project_id)


def get_project_by_id(project_id: str) -> ProjectRecord | None:
    """Get project by ID, or None if not found."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM projects WHERE project_id = ?", (project_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_projects_by_ids(project_ids: set[str]) -> dict[str, ProjectRecord]:
    """Fetch several projects at once, keyed by ID."""
    if not project_ids:
        return {}

    ids = list(project_ids)
    placeholders = ",".join("?" * len(ids))
    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM projects WHERE project_id IN ({placeholders})", ids
        ).fetchall()

    return {row["project_id"]: _row_to_record(row) for row in rows}


def get_user_projects(user_id: str, course_id: str | None = None) -> list[ProjectRecord]:
    """Get the projects a user created, newest first, optionally in one course."""
    sql = "SELECT * FROM projects WHERE created_by = ?"
    params: list = [user_id]
    if course_id:
        sql += " AND course_id = ?"
        params.append(course_id)
    sql += " ORDER BY created_at DESC"

    with get_db() as conn:
        rows = conn.execute(sql, params).fetchall()

    return [_row_to_record(row) for row in rows]


def get_all_projects(course_id: str | None = None) -> list[ProjectWithCreator]:
    """Get all projects (optionally of one course), newest first, with creators."""
    sql = "SELECT * FROM projects"
    params: list = []
    if course_id:
        sql += " WHERE course_id = ?"
        params.append(course_id)
    sql += " ORDER BY created_at DESC"

    with get_db() as conn:
        rows = conn.execute(sql, params).fetchall()

    projects = [_row_to_record(row) for row in rows]
    creators: dict[str, UserRecord] = get_users_by_ids({p.created_by for p in projects})

    result = []
    for project in projects:
        creator = creators.get(project.created_by)
        if creator is None:
            logger.warning("projects.creator_not_found", project_id=project.project_id)
        result.append(
            ProjectWithCreator(
                project=project,
                creator_name=creator.name if creator else UNKNOWN_USER_NAME,
                creator_email=creator.email if creator else UNKNOWN_USER_EMAIL,
            )
        )
    return result


def get_project_ids_for_user(user_id: str) -> list[str]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT project_id FROM projects WHERE created_by = ?", (user_id,)
        ).fetchall()
    return [row["project_id"] for row in rows]


def update_project(
    project_id: str,
    title: str | None = None,
    description: str | None = None,
) -> ProjectRecord:
    """Update title and/or description.

    Raises:
        ValueError: If project_id doesn't exist
    """
    updates: dict[str, str] = {}
    if title is not None:
        updates["title"] = title
    if description is not None:
        updates["description"] = description
    updates["updated_at"] = now_iso()

    assignments = ", ".join(f"{column} = ?" for column in updates)
    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE projects SET {assignments} WHERE project_id = ?",
            (*updates.values(), project_id),
        )
        if cursor.rowcount == 0:
            raise ValueError(f"Project not found: {project_id}")

    logger.debug("projects.updated", project_id=project_id)
    return get_project_by_id(project_id)


def delete_project_row(project_id: str) -> bool:
    """Delete only the project row. Use account_cleanup for the full cascade."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM projects WHERE project_id = ?", (project_id,))

    deleted = cursor.rowcount > 0
    if deleted:
        logger.debug("projects.deleted", project_id=project_id)
    return deleted


def _row_to_record(row) -> ProjectRecord:
    """Convert database row to ProjectRecord."""
    return ProjectRecord(
        project_id=row["project_id"],
        title=row["title"],
        description=row["description"],
        created_by=row["created_by"],
        course_id=row["course_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
