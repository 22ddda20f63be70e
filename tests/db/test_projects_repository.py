"""Tests for projects repository."""

import pytest

from engagement_hub.db.projects_repository import (
    UNKNOWN_USER_EMAIL,
    UNKNOWN_USER_NAME,
    create_project,
    delete_project_row,
    get_all_projects,
    get_project_by_id,
    get_project_ids_for_user,
    get_projects_by_ids,
    get_user_projects,
    update_project,
)
from engagement_hub.db.users_repository import delete_user_row


class TestProjects:
    """Tests for project CRUD."""

    def test_create_and_get(self, course, student):
        project = create_project("Cell essay", student.user_id, course.course_id, "Draft")

        fetched = get_project_by_id(project.project_id)
        assert fetched.title == "Cell essay"
        assert fetched.description == "Draft"
        assert fetched.course_id == course.course_id
        assert fetched.created_by == student.user_id

    def test_project_without_course(self, student):
        project = create_project("Personal", student.user_id)
        assert project.course_id is None

    def test_missing_project(self, db):
        assert get_project_by_id("ghost") is None

    def test_get_projects_by_ids(self, student):
        a = create_project("A", student.user_id)
        create_project("B", student.user_id)

        found = get_projects_by_ids({a.project_id, "ghost"})

        assert list(found) == [a.project_id]

    def test_update_project(self, student):
        project = create_project("Old", student.user_id)

        updated = update_project(project.project_id, title="New")

        assert updated.title == "New"
        assert updated.description == ""

    def test_update_missing_project(self, db):
        with pytest.raises(ValueError, match="Project not found"):
            update_project("ghost", title="x")

    def test_delete_row(self, student):
        project = create_project("Gone", student.user_id)
        assert delete_project_row(project.project_id) is True
        assert delete_project_row(project.project_id) is False


class TestProjectListings:
    """Tests for per-user and per-course listings."""

    def test_user_projects_filtered_by_course(self, course, student):
        in_course = create_project("In course", student.user_id, course.course_id)
        create_project("Elsewhere", student.user_id)

        assert len(get_user_projects(student.user_id)) == 2
        assert [p.project_id for p in get_user_projects(student.user_id, course.course_id)] == [
            in_course.project_id
        ]

    def test_project_ids_for_user(self, student, other_student):
        mine = create_project("Mine", student.user_id)
        create_project("Theirs", other_student.user_id)

        assert get_project_ids_for_user(student.user_id) == [mine.project_id]

    def test_all_projects_with_creators(self, course, student):
        create_project("Essay", student.user_id, course.course_id)

        items = get_all_projects(course.course_id)

        assert len(items) == 1
        assert items[0].creator_name == "Sam Student"
        assert items[0].creator_email == "sam@example.edu"

    def test_all_projects_unknown_creator(self, course, student):
        create_project("Essay", student.user_id, course.course_id)
        delete_user_row(student.user_id)

        item = get_all_projects()[0]

        assert item.creator_name == UNKNOWN_USER_NAME
        assert item.creator_email == UNKNOWN_USER_EMAIL
