"""Tests for users repository."""

import sqlite3

import pytest

from engagement_hub.db.courses_repository import add_user_to_course, join_course
from engagement_hub.db.users_repository import (
    create_user,
    delete_user_row,
    get_all_users,
    get_course_users,
    get_user_by_email,
    get_user_by_id,
    get_users_by_ids,
    search_users,
    update_user,
)


class TestCreateUser:
    """Tests for create_user."""

    def test_create_and_fetch(self, db):
        """Created user can be read back by ID."""
        user = create_user("Ana@Example.edu", name="Ana", user_id="u-ana")

        fetched = get_user_by_id("u-ana")
        assert fetched == user
        assert fetched.email == "ana@example.edu"
        assert fetched.role == "student"

    def test_generates_id(self, db):
        """An ID is generated when none is given."""
        user = create_user("bo@example.edu")
        assert user.user_id
        assert get_user_by_id(user.user_id) is not None

    def test_duplicate_email_rejected(self, db):
        """E-mail addresses are unique regardless of case."""
        create_user("dup@example.edu")
        with pytest.raises(sqlite3.IntegrityError):
            create_user("DUP@example.edu")

    def test_display_name_falls_back_to_email(self, db):
        """Users without a name are shown by e-mail."""
        user = create_user("noname@example.edu")
        assert user.display_name == "noname@example.edu"


class TestLookups:
    """Tests for single and batched lookups."""

    def test_missing_user_is_none(self, db):
        assert get_user_by_id("nope") is None
        assert get_user_by_email("nope@example.edu") is None

    def test_get_by_email_case_insensitive(self, student):
        assert get_user_by_email("  SAM@example.edu ").user_id == student.user_id

    def test_get_users_by_ids_skips_missing(self, student, instructor):
        users = get_users_by_ids({student.user_id, "ghost"})
        assert set(users) == {student.user_id}

    def test_get_users_by_ids_empty(self, db):
        assert get_users_by_ids(set()) == {}

    def test_get_all_users(self, student, instructor):
        assert {u.user_id for u in get_all_users()} == {student.user_id, instructor.user_id}


class TestCourseUsers:
    """Tests for get_course_users."""

    def test_lists_members_with_course_role(self, course, instructor, student):
        """Each user carries their membership role and status."""
        users = {cu.user.user_id: cu for cu in get_course_users(course.course_id)}

        assert users[instructor.user_id].course_role == "instructor"
        assert users[student.user_id].course_role == "student"
        assert users[student.user_id].status == "approved"

    def test_includes_pending(self, course, other_student):
        join_course(other_student.user_id, course.course_id, "BIOFA25001")

        users = {cu.user.user_id: cu for cu in get_course_users(course.course_id)}
        assert users[other_student.user_id].status == "pending"

    def test_skips_orphaned_memberships(self, course, other_student):
        """Memberships of deleted users are left out."""
        add_user_to_course(other_student.user_id, course.course_id)
        delete_user_row(other_student.user_id)

        ids = [cu.user.user_id for cu in get_course_users(course.course_id)]
        assert other_student.user_id not in ids
        assert len(ids) == 2


class TestSearchUsers:
    """Tests for search_users."""

    def test_matches_name_or_email(self, student, instructor, other_student):
        assert [u.user_id for u in search_users("pat")] == [instructor.user_id]
        assert {u.user_id for u in search_users("STUDENT")} == {
            student.user_id,
            other_student.user_id,
        }
        assert [u.user_id for u in search_users("kim@")] == [other_student.user_id]

    def test_excludes_course_members(self, course, student, other_student):
        """Users already in the course are skipped."""
        results = search_users("student", exclude_course_id=course.course_id)
        assert [u.user_id for u in results] == [other_student.user_id]

    def test_respects_limit(self, student, other_student):
        assert len(search_users("example.edu", limit=1)) == 1


class TestUpdateAndDelete:
    """Tests for update_user and delete_user_row."""

    def test_update_fields(self, student):
        updated = update_user(student.user_id, name="Samuel", role="teaching_assistant")
        assert updated.name == "Samuel"
        assert updated.role == "teaching_assistant"
        assert updated.email == student.email

    def test_update_missing_user(self, db):
        with pytest.raises(ValueError, match="User not found"):
            update_user("ghost", name="x")

    def test_delete_row(self, student):
        assert delete_user_row(student.user_id) is True
        assert get_user_by_id(student.user_id) is None
        assert delete_user_row(student.user_id) is False
