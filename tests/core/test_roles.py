"""Tests for the role system."""

import pytest

from engagement_hub.core.roles import (
    PermissionDeniedError,
    can_manage_role,
    get_role_display_name,
    has_admin_permissions,
    has_higher_permissions,
    has_teaching_permissions,
    is_assistant_level,
    is_instructor_level,
    normalize_role,
    require,
)


class TestRoleLevels:
    """Tests for the level predicates."""

    @pytest.mark.parametrize(
        "role,expected",
        [
            ("admin", True),
            ("school_administrator", True),
            ("instructor", True),
            ("teaching_assistant", False),
            ("student", False),
            (None, False),
        ],
    )
    def test_is_instructor_level(self, role, expected):
        assert is_instructor_level(role) is expected

    def test_assistant_level(self):
        assert is_assistant_level("student_assistant")
        assert is_assistant_level("instructor")
        assert not is_assistant_level("student")
        assert not is_assistant_level("admin")

    def test_teaching_permissions(self):
        assert has_teaching_permissions("teaching_assistant")
        assert not has_teaching_permissions("student_assistant")

    def test_admin_permissions(self):
        assert has_admin_permissions("admin")
        assert has_admin_permissions("instructor")
        assert not has_admin_permissions("teaching_assistant")

    def test_higher_permissions(self):
        assert has_higher_permissions("instructor", "teaching_assistant")
        assert not has_higher_permissions("student", "student")
        assert has_higher_permissions("student", "bogus")


class TestNormalizeRole:
    """Tests for normalize_role and display names."""

    def test_unknown_roles_become_student(self):
        assert normalize_role("wizard") == "student"
        assert normalize_role(None) == "student"
        assert normalize_role("teaching_assistant") == "teaching_assistant"

    def test_display_names(self):
        assert get_role_display_name("admin") == "Global Administrator"
        assert get_role_display_name("teaching_assistant") == "Teaching Assistant"
        assert get_role_display_name("wizard") == "Student"


class TestCanManageRole:
    """Tests for can_manage_role."""

    @pytest.mark.parametrize("target", ["student", "instructor", "school_administrator"])
    def test_admin_manages_everyone(self, target):
        assert can_manage_role("admin", target)
        assert can_manage_role("school_administrator", target)

    def test_instructor(self):
        assert can_manage_role("instructor", "instructor")
        assert can_manage_role("instructor", "student_assistant")
        assert not can_manage_role("instructor", "school_administrator")

    def test_teaching_assistant(self):
        assert can_manage_role("teaching_assistant", "student")
        assert can_manage_role("teaching_assistant", "student_assistant")
        assert not can_manage_role("teaching_assistant", "teaching_assistant")

    def test_students_manage_nobody(self):
        assert not can_manage_role("student", "student")
        assert not can_manage_role("student_assistant", "student")
        assert not can_manage_role(None, "student")


class TestRequire:
    """Tests for require."""

    def test_passes(self):
        require(True, "never raised")

    def test_raises_with_role(self):
        with pytest.raises(PermissionDeniedError, match="no way") as exc:
            require(False, "no way", role="student")
        assert exc.value.role == "student"
