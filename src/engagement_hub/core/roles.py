"""Role system for course members and global accounts.

Course roles, from least to most privileged:
- student
- student_assistant
- teaching_assistant
- instructor
- school_administrator

The global role "admin" sits outside the hierarchy and passes every check.
"""

from __future__ import annotations

ADMIN = "admin"
STUDENT = "student"
STUDENT_ASSISTANT = "student_assistant"
TEACHING_ASSISTANT = "teaching_assistant"
INSTRUCTOR = "instructor"
SCHOOL_ADMINISTRATOR = "school_administrator"

ROLES = (
    STUDENT,
    STUDENT_ASSISTANT,
    TEACHING_ASSISTANT,
    INSTRUCTOR,
    SCHOOL_ADMINISTRATOR,
)

# Roles a user may pick without an admin: at registration or on a trial course
SELF_SERVICE_ROLES = (STUDENT, INSTRUCTOR)

ROLE_LABELS = {
    STUDENT: "Student",
    STUDENT_ASSISTANT: "Student Assistant",
    TEACHING_ASSISTANT: "Teaching Assistant",
    INSTRUCTOR: "Instructor",
    SCHOOL_ADMINISTRATOR: "School Administrator",
}

ROLE_DESCRIPTIONS = {
    STUDENT: "Access course materials and AI tools",
    STUDENT_ASSISTANT: "Help manage course activities and assist other students",
    TEACHING_ASSISTANT: "Assist with grading and course management",
    INSTRUCTOR: "Full course management and administrative access",
    SCHOOL_ADMINISTRATOR: "Oversight and administrative access across courses",
}

# Higher numbers = more permissions
ROLE_HIERARCHY = {
    STUDENT: 1,
    STUDENT_ASSISTANT: 2,
    TEACHING_ASSISTANT: 3,
    INSTRUCTOR: 4,
    SCHOOL_ADMINISTRATOR: 5,
}


class PermissionDeniedError(Exception):
    """Raised when the caller's role does not allow an operation."""

    def __init__(self, message: str, role: str | None = None):
        self.role = role
        super().__init__(message)


def require(condition: bool, message: str, role: str | None = None) -> None:
    """Raise PermissionDeniedError unless condition holds."""
    if not condition:
        raise PermissionDeniedError(message, role=role)


def normalize_role(role: str | None) -> str:
    """Map any role value onto a known course role (default: student)."""
    if role in ROLE_HIERARCHY:
        return role
    return STUDENT


def get_role_display_name(role: str | None) -> str:
    if role == ADMIN:
        return "Global Administrator"
    return ROLE_LABELS[normalize_role(role)]


def is_instructor_level(role: str | None) -> bool:
    return role in (ADMIN, INSTRUCTOR, SCHOOL_ADMINISTRATOR)


def is_assistant_level(role: str | None) -> bool:
    return role in (STUDENT_ASSISTANT, TEACHING_ASSISTANT, INSTRUCTOR, SCHOOL_ADMINISTRATOR)


def has_teaching_permissions(role: str | None) -> bool:
    return role in (TEACHING_ASSISTANT, INSTRUCTOR, SCHOOL_ADMINISTRATOR)


def has_admin_permissions(role: str | None) -> bool:
    return role in (ADMIN, INSTRUCTOR, SCHOOL_ADMINISTRATOR)


def has_higher_permissions(role_a: str, role_b: str) -> bool:
    """True if role_a ranks strictly above role_b.

    Roles outside the hierarchy rank below everything.
    """
    return ROLE_HIERARCHY.get(role_a, 0) > ROLE_HIERARCHY.get(role_b, 0)


def can_manage_role(user_role: str | None, target_role: str | None) -> bool:
    """Check whether a user with user_role may manage members with target_role."""
    if user_role == ADMIN:
        return True

    actor = normalize_role(user_role)
    target = normalize_role(target_role)

    if actor == SCHOOL_ADMINISTRATOR:
        return True

    if actor == INSTRUCTOR:
        return target in (STUDENT, STUDENT_ASSISTANT, TEACHING_ASSISTANT, INSTRUCTOR)

    if actor == TEACHING_ASSISTANT:
        return target in (STUDENT, STUDENT_ASSISTANT)

    return False
