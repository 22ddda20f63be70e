"""Request dependencies: caller identity and course permission checks."""

from fastapi import Header, HTTPException, status

from engagement_hub.core.roles import (
    ADMIN,
    SCHOOL_ADMINISTRATOR,
    PermissionDeniedError,
    is_instructor_level,
)
from engagement_hub.db.courses_repository import get_user_membership
from engagement_hub.db.users_repository import UserRecord, get_user_by_id


def get_current_user(x_user_id: str | None = Header(default=None)) -> UserRecord:
    """Resolve the caller from the X-User-Id header."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )

    user = get_user_by_id(x_user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown user '{x_user_id}'",
        )
    return user


def course_role(user: UserRecord, course_id: str | None) -> str | None:
    """The caller's effective role in a course.

    Global admins count as admin everywhere; otherwise only an approved
    membership grants a role.
    """
    if user.role == ADMIN:
        return ADMIN
    if not course_id:
        return None
    membership = get_user_membership(user.user_id, course_id)
    if membership is None or membership.status != "approved":
        return None
    return membership.role


def has_platform_oversight(user: UserRecord) -> bool:
    return user.role in (ADMIN, SCHOOL_ADMINISTRATOR)


def is_course_instructor(user: UserRecord, course_id: str | None) -> bool:
    return has_platform_oversight(user) or is_instructor_level(course_role(user, course_id))


def require_course_instructor(user: UserRecord, course_id: str | None) -> None:
    if not is_course_instructor(user, course_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Instructor access required for this course",
        )


def require_course_member(user: UserRecord, course_id: str) -> None:
    if course_role(user, course_id) is None and not has_platform_oversight(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not a member of this course",
        )


def require_admin(user: UserRecord) -> None:
    if user.role != ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )


def forbidden(e: PermissionDeniedError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
