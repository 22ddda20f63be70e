"""Repository functions for courses and course_memberships tables.

Memberships use the composite ID "{user_id}_{course_id}", so a user holds
at most one membership per course. Status is one of pending, approved,
rejected; only approved memberships count towards course member counts.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, field

import structlog

from engagement_hub.core.roles import SELF_SERVICE_ROLES
from engagement_hub.db.database import generate_id, get_db, now_iso
from engagement_hub.db.users_repository import UserRecord, get_users_by_ids

logger = structlog.get_logger(__name__)

MEMBERSHIP_STATUSES = ("pending", "approved", "rejected")


class CourseNotFoundError(Exception):
    """Raised when no course matches an ID or access code."""

    def __init__(self, course_ref: str, by_code: bool = False):
        self.course_ref = course_ref
        self.by_code = by_code
        if by_code:
            message = (
                f"Course not found with access code: {course_ref}. "
                "Please check the code and try again."
            )
        else:
            message = f"Course not found: {course_ref}"
        super().__init__(message)


class MembershipNotFoundError(Exception):
    """Raised when a membership ID doesn't exist."""

    def __init__(self, membership_id: str):
        self.membership_id = membership_id
        super().__init__(f"Membership not found: {membership_id}")


class DuplicateMembershipError(Exception):
    """Raised when a user already has a membership in the course."""

    def __init__(self, user_id: str, course_id: str):
        self.user_id = user_id
        self.course_id = course_id
        super().__init__("User is already enrolled in this course")


class NotTrialCourseError(Exception):
    """Raised when a trial join targets a course that is not a trial course."""

    def __init__(self, course_id: str):
        self.course_id = course_id
        super().__init__("This course does not accept trial sign-ups")


class InvalidAccessCodeError(Exception):
    """Raised when a join request carries the wrong access code."""

    def __init__(self, course_id: str):
        self.course_id = course_id
        super().__init__("Invalid access code")


@dataclass
class CourseRecord:
    """Course record from database."""

    course_id: str
    title: str
    description: str
    course_code: str | None
    semester: str | None
    year: int | None
    access_code: str | None
    is_trial: bool
    instructor_id: str | None
    member_count: int
    instructor_count: int
    student_count: int
    created_at: str
    updated_at: str


@dataclass
class MembershipRecord:
    """Course membership record from database."""

    membership_id: str
    user_id: str
    course_id: str
    role: str
    status: str
    added_by: str | None
    approved_by: str | None
    rejected_by: str | None
    joined_at: str | None
    processed_at: str | None
    created_at: str
    updated_at: str
    user: UserRecord | None = None
    course: CourseRecord | None = None


@dataclass
class CourseWithMembers:
    """A course with its memberships (and their users) attached."""

    course: CourseRecord
    memberships: list[MembershipRecord] = field(default_factory=list)


def membership_id_for(user_id: str, course_id: str) -> str:
    return f"{user_id}_{course_id}"


def clean_access_code(code: str) -> str:
    """Normalize an access code: trimmed and upper-cased."""
    return code.strip().upper()


def generate_course_code(course_name: str, semester: str, year: int | str) -> str:
    """Generate a course code like "BIOFA25042".

    Built from the first three letters of the course name, the first two
    characters of the semester, the last two digits of the year and a
    random three-digit suffix.
    """
    name_code = re.sub(r"[^a-zA-Z]", "", course_name)[:3].upper()
    semester_code = semester[:2].upper()
    year_code = str(year)[-2:]
    random_num = f"{random.randint(0, 999):03d}"
    return f"{name_code}{semester_code}{year_code}{random_num}"


# =============================================================================
# COURSES
# =============================================================================


def create_course(
    title: str,
    description: str = "",
    course_code: str | None = None,
    semester: str | None = None,
    year: int | None = None,
    access_code: str | None = None,
    is_trial: bool = False,
    instructor_id: str | None = None,
) -> CourseRecord:
    """Insert a new course with zeroed member counts."""
    course_id = generate_id()
    now = now_iso()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO courses (
                course_id, title, description, course_code, semester, year,
                access_code, is_trial, instructor_id, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                course_id,
                title,
                description,
                course_code,
                semester,
                year,
                clean_access_code(access_code) if access_code else None,
                int(is_trial),
                instructor_id,
                now,
                now,
            ),
        )

    logger.info("courses.created", course_id=course_id, title=title)
    return get_course_by_id(course_id)


def get_course_by_id(course_id: str) -> CourseRecord | None:
    """Get course by ID, or None if not found."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM courses WHERE course_id = ?", (course_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_course(row)


def get_courses_by_ids(course_ids: set[str]) -> dict[str, CourseRecord]:
    """Fetch several courses at once, keyed by ID."""
    if not course_ids:
        return {}

    ids = list(course_ids)
    placeholders = ",".join("?" * len(ids))
    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM courses WHERE course_id IN ({placeholders})", ids
        ).fetchall()

    return {row["course_id"]: _row_to_course(row) for row in rows}


def get_course_by_code(course_code: str) -> CourseRecord:
    """Look up a course by its access code.

    Raises:
        CourseNotFoundError: If no course uses the (cleaned) code
    """
    clean_code = clean_access_code(course_code)
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM courses WHERE access_code = ? ORDER BY created_at LIMIT 1",
            (clean_code,),
        ).fetchone()

    if row is None:
        raise CourseNotFoundError(clean_code, by_code=True)

    return _row_to_course(row)


def get_all_courses() -> list[CourseWithMembers]:
    """Get all courses, newest first, with memberships and users attached."""
    with get_db() as conn:
        course_rows = conn.execute(
            "SELECT * FROM courses ORDER BY created_at DESC"
        ).fetchall()
        membership_rows = conn.execute(
            "SELECT * FROM course_memberships ORDER BY created_at"
        ).fetchall()

    memberships = [_row_to_membership(row) for row in membership_rows]
    users = get_users_by_ids({m.user_id for m in memberships})

    by_course: dict[str, list[MembershipRecord]] = {}
    for membership in memberships:
        membership.user = users.get(membership.user_id)
        by_course.setdefault(membership.course_id, []).append(membership)

    return [
        CourseWithMembers(
            course=_row_to_course(row),
            memberships=by_course.get(row["course_id"], []),
        )
        for row in course_rows
    ]


def update_course(
    course_id: str,
    title: str | None = None,
    description: str | None = None,
    semester: str | None = None,
    year: int | None = None,
    is_trial: bool | None = None,
) -> CourseRecord:
    """Update the given course fields.

    Raises:
        CourseNotFoundError: If course_id doesn't exist
    """
    updates: dict[str, object] = {}
    if title is not None:
        updates["title"] = title
    if description is not None:
        updates["description"] = description
    if semester is not None:
        updates["semester"] = semester
    if year is not None:
        updates["year"] = year
    if is_trial is not None:
        updates["is_trial"] = int(is_trial)
    updates["updated_at"] = now_iso()

    _update_course_columns(course_id, updates)
    logger.debug("courses.updated", course_id=course_id, fields=sorted(updates))
    return get_course_by_id(course_id)


def update_course_access_code(course_id: str, access_code: str) -> CourseRecord:
    """Replace a course's access code (trimmed and upper-cased)."""
    _update_course_columns(
        course_id,
        {"access_code": clean_access_code(access_code), "updated_at": now_iso()},
    )
    logger.info("courses.access_code_updated", course_id=course_id)
    return get_course_by_id(course_id)


def delete_course(course_id: str) -> bool:
    """Delete a course and all its memberships.

    Returns:
        True if the course existed, False otherwise
    """
    with get_db() as conn:
        removed = conn.execute(
            "DELETE FROM course_memberships WHERE course_id = ?", (course_id,)
        ).rowcount
        cursor = conn.execute("DELETE FROM courses WHERE course_id = ?", (course_id,))

    deleted = cursor.rowcount > 0
    if deleted:
        logger.info("courses.deleted", course_id=course_id, memberships_removed=removed)
    return deleted


def _update_course_columns(course_id: str, updates: dict[str, object]) -> None:
    assignments = ", ".join(f"{column} = ?" for column in updates)
    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE courses SET {assignments} WHERE course_id = ?",
            (*updates.values(), course_id),
        )
        if cursor.rowcount == 0:
            raise CourseNotFoundError(course_id)


# =============================================================================
# MEMBERSHIPS
# =============================================================================


def get_membership(membership_id: str) -> MembershipRecord | None:
    """Get membership by ID, or None if not found."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM course_memberships WHERE membership_id = ?",
            (membership_id,),
        ).fetchone()

    if row is None:
        return None

    return _row_to_membership(row)


def get_user_membership(user_id: str, course_id: str) -> MembershipRecord | None:
    """Get a user's membership in a course, whatever its status."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM course_memberships WHERE user_id = ? AND course_id = ?",
            (user_id, course_id),
        ).fetchone()

    if row is None:
        return None

    return _row_to_membership(row)


def _insert_membership(
    user_id: str,
    course_id: str,
    role: str,
    status: str,
    added_by: str | None = None,
    approved_by: str | None = None,
) -> MembershipRecord:
    if get_user_membership(user_id, course_id) is not None:
        raise DuplicateMembershipError(user_id, course_id)

    membership_id = membership_id_for(user_id, course_id)
    now = now_iso()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO course_memberships (
                membership_id, user_id, course_id, role, status,
                added_by, approved_by, joined_at, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                membership_id,
                user_id,
                course_id,
                role,
                status,
                added_by,
                approved_by,
                now,
                now,
                now,
            ),
        )

    logger.debug(
        "memberships.inserted",
        membership_id=membership_id,
        role=role,
        status=status,
    )
    return get_membership(membership_id)


def add_user_to_course(
    user_id: str,
    course_id: str,
    role: str = "student",
    added_by: str | None = None,
) -> MembershipRecord:
    """Enroll a user directly (approved), as done by instructors and admins.

    Raises:
        CourseNotFoundError: If the course doesn't exist
        DuplicateMembershipError: If the user already has a membership
    """
    if get_course_by_id(course_id) is None:
        raise CourseNotFoundError(course_id)

    membership = _insert_membership(
        user_id, course_id, role, "approved", added_by=added_by, approved_by=added_by
    )
    update_course_member_counts(course_id)
    logger.info("memberships.user_added", user_id=user_id, course_id=course_id, role=role)
    return membership


def join_course(user_id: str, course_id: str, access_code: str) -> MembershipRecord:
    """Request to join a course as a student; the membership starts pending.

    Raises:
        CourseNotFoundError: If the course doesn't exist
        InvalidAccessCodeError: If access_code doesn't match the course
        DuplicateMembershipError: If the user already has a membership
    """
    course = get_course_by_id(course_id)
    if course is None:
        raise CourseNotFoundError(course_id)

    if course.access_code != clean_access_code(access_code):
        raise InvalidAccessCodeError(course_id)

    membership = _insert_membership(user_id, course_id, "student", "pending")
    logger.info("memberships.join_requested", user_id=user_id, course_id=course_id)
    return membership


def join_trial_course(course_code: str, user_id: str, role: str) -> MembershipRecord:
    """Join a trial course by access code, approved immediately by the system.

    Raises:
        ValueError: If role is not one a user may pick for themselves
        CourseNotFoundError: If no course uses the code
        NotTrialCourseError: If the course is not a trial course
        DuplicateMembershipError: If the user already has a membership
    """
    if role not in SELF_SERVICE_ROLES:
        raise ValueError(f"Role '{role}' cannot be chosen when joining a trial course")

    course = get_course_by_code(course_code)
    if not course.is_trial:
        raise NotTrialCourseError(course.course_id)
    membership = _insert_membership(
        user_id, course.course_id, role, "approved", approved_by="system"
    )
    update_course_member_counts(course.course_id)
    logger.info("memberships.trial_joined", user_id=user_id, course_id=course.course_id)
    return membership


def update_membership_status(
    membership_id: str,
    status: str,
    instructor_id: str,
) -> MembershipRecord:
    """Approve or reject (or reset to pending) a membership.

    Raises:
        ValueError: If status is not a known membership status
        MembershipNotFoundError: If membership_id doesn't exist
    """
    if status not in MEMBERSHIP_STATUSES:
        raise ValueError(f"Invalid membership status: {status}")

    membership = get_membership(membership_id)
    if membership is None:
        raise MembershipNotFoundError(membership_id)

    now = now_iso()
    with get_db() as conn:
        conn.execute(
            """
            UPDATE course_memberships SET
                status = ?,
                approved_by = ?,
                rejected_by = ?,
                processed_at = ?,
                updated_at = ?
            WHERE membership_id = ?
            """,
            (
                status,
                instructor_id if status == "approved" else None,
                instructor_id if status == "rejected" else None,
                now,
                now,
                membership_id,
            ),
        )

    # Approved or no longer approved: either way the counts may move
    update_course_member_counts(membership.course_id)

    logger.info(
        "memberships.status_updated",
        membership_id=membership_id,
        status=status,
        instructor_id=instructor_id,
    )
    return get_membership(membership_id)


def update_member_role(membership_id: str, new_role: str) -> MembershipRecord:
    """Change a member's course role.

    Raises:
        MembershipNotFoundError: If membership_id doesn't exist
    """
    membership = get_membership(membership_id)
    if membership is None:
        raise MembershipNotFoundError(membership_id)

    with get_db() as conn:
        conn.execute(
            "UPDATE course_memberships SET role = ?, updated_at = ? WHERE membership_id = ?",
            (new_role, now_iso(), membership_id),
        )

    update_course_member_counts(membership.course_id)
    logger.info("memberships.role_updated", membership_id=membership_id, role=new_role)
    return get_membership(membership_id)


def remove_member(membership_id: str) -> None:
    """Remove a membership and refresh the course's counts.

    Raises:
        MembershipNotFoundError: If membership_id doesn't exist
    """
    membership = get_membership(membership_id)
    if membership is None:
        raise MembershipNotFoundError(membership_id)

    with get_db() as conn:
        conn.execute(
            "DELETE FROM course_memberships WHERE membership_id = ?", (membership_id,)
        )

    update_course_member_counts(membership.course_id)
    logger.info("memberships.removed", membership_id=membership_id)


def update_course_member_counts(course_id: str) -> None:
    """Recompute member, instructor and student counts from approved memberships.

    Failures are logged and swallowed; stale counts are tolerated.
    """
    try:
        with get_db() as conn:
            rows = conn.execute(
                """
                SELECT role, COUNT(*) AS n FROM course_memberships
                WHERE course_id = ? AND status = 'approved'
                GROUP BY role
                """,
                (course_id,),
            ).fetchall()

            counts = {row["role"]: row["n"] for row in rows}
            member_count = sum(counts.values())
            instructor_count = counts.get("instructor", 0)
            student_count = counts.get("student", 0)

            conn.execute(
                """
                UPDATE courses SET
                    member_count = ?, instructor_count = ?, student_count = ?,
                    updated_at = ?
                WHERE course_id = ?
                """,
                (member_count, instructor_count, student_count, now_iso(), course_id),
            )
    except Exception as e:
        logger.warning("courses.member_counts_failed", course_id=course_id, error=str(e))
        return

    logger.debug(
        "courses.member_counts_updated",
        course_id=course_id,
        member_count=member_count,
        instructor_count=instructor_count,
        student_count=student_count,
    )


def get_user_courses(user_id: str) -> list[MembershipRecord]:
    """Get the approved memberships of a user, each with its course attached.

    Memberships pointing at deleted courses are skipped.
    """
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM course_memberships
            WHERE user_id = ? AND status = 'approved'
            ORDER BY created_at
            """,
            (user_id,),
        ).fetchall()

    memberships = [_row_to_membership(row) for row in rows]
    courses = get_courses_by_ids({m.course_id for m in memberships})

    result = []
    for membership in memberships:
        course = courses.get(membership.course_id)
        if course is None:
            logger.warning("courses.not_found_for_membership", course_id=membership.course_id)
            continue
        membership.course = course
        result.append(membership)
    return result


def get_pending_approvals(course_id: str) -> list[MembershipRecord]:
    """Get pending memberships of a course, newest first, with users attached."""
    return _course_memberships(course_id, status="pending", newest_first=True)


def get_course_members(course_id: str) -> list[MembershipRecord]:
    """Get every membership of a course with users attached.

    A membership whose user is missing keeps user=None.
    """
    return _course_memberships(course_id)


def _course_memberships(
    course_id: str,
    status: str | None = None,
    newest_first: bool = False,
) -> list[MembershipRecord]:
    sql = "SELECT * FROM course_memberships WHERE course_id = ?"
    params: list = [course_id]
    if status is not None:
        sql += " AND status = ?"
        params.append(status)
    sql += " ORDER BY created_at DESC" if newest_first else " ORDER BY created_at"

    with get_db() as conn:
        rows = conn.execute(sql, params).fetchall()

    memberships = [_row_to_membership(row) for row in rows]
    users = get_users_by_ids({m.user_id for m in memberships})
    for membership in memberships:
        membership.user = users.get(membership.user_id)
    return memberships


def cleanup_orphaned_memberships(course_id: str | None = None) -> dict[str, int]:
    """Delete memberships whose user no longer exists.

    Args:
        course_id: Restrict the sweep to one course (all courses if None)

    Returns:
        {"cleaned": removed memberships, "courses_updated": recounted courses}
    """
    sql = """
        SELECT m.membership_id, m.user_id, m.course_id
        FROM course_memberships m
        LEFT JOIN users u ON u.user_id = m.user_id
        WHERE u.user_id IS NULL
    """
    params: list = []
    if course_id:
        sql += " AND m.course_id = ?"
        params.append(course_id)

    with get_db() as conn:
        orphans = conn.execute(sql, params).fetchall()
        for row in orphans:
            logger.info(
                "memberships.orphan_removed",
                user_id=row["user_id"],
                course_id=row["course_id"],
            )
            conn.execute(
                "DELETE FROM course_memberships WHERE membership_id = ?",
                (row["membership_id"],),
            )

    courses_to_update = {row["course_id"] for row in orphans}
    for affected in courses_to_update:
        update_course_member_counts(affected)

    logger.info(
        "memberships.cleanup_done",
        cleaned=len(orphans),
        courses_updated=len(courses_to_update),
    )
    return {"cleaned": len(orphans), "courses_updated": len(courses_to_update)}


def _row_to_course(row) -> CourseRecord:
    """Convert database row to CourseRecord."""
    return CourseRecord(
        course_id=row["course_id"],
        title=row["title"],
        description=row["description"],
        course_code=row["course_code"],
        semester=row["semester"],
        year=row["year"],
        access_code=row["access_code"],
        is_trial=bool(row["is_trial"]),
        instructor_id=row["instructor_id"],
        member_count=row["member_count"],
        instructor_count=row["instructor_count"],
        student_count=row["student_count"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_membership(row) -> MembershipRecord:
    """Convert database row to MembershipRecord."""
    return MembershipRecord(
        membership_id=row["membership_id"],
        user_id=row["user_id"],
        course_id=row["course_id"],
        role=row["role"],
        status=row["status"],
        added_by=row["added_by"],
        approved_by=row["approved_by"],
        rejected_by=row["rejected_by"],
        joined_at=row["joined_at"],
        processed_at=row["processed_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
