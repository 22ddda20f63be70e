"""Tests for instructor note endpoints."""

import pytest

from engagement_hub.db.chats_repository import create_chat
from engagement_hub.db.notes_repository import create_note, get_note_by_id
from engagement_hub.db.projects_repository import create_project


def _as(user):
    return {"X-User-Id": user.user_id}


@pytest.fixture
def project(course, student):
    return create_project("Cell essay", student.user_id, course.course_id)


class TestCreateNote:
    """Tests for POST /api/notes."""

    def test_instructor_writes(self, client, project, instructor, student):
        response = client.post(
            "/api/notes",
            json={"project_id": project.project_id, "content": "Good sources"},
            headers=_as(instructor),
        )
        assert response.status_code == 201
        data = response.json()
        assert data["student_id"] == student.user_id
        assert data["instructor_id"] == instructor.user_id
        assert data["is_visible_to_student"] is True

    def test_student_cannot_write(self, client, project, student):
        response = client.post(
            "/api/notes",
            json={"project_id": project.project_id, "content": "Self praise"},
            headers=_as(student),
        )
        assert response.status_code == 403

    def test_chat_from_other_project(self, client, course, project, instructor, student):
        other = create_project("Other", student.user_id, course.course_id)
        chat = create_chat(student.user_id, "Q", "A", project_id=other.project_id)

        response = client.post(
            "/api/notes",
            json={"project_id": project.project_id, "chat_id": chat.chat_id, "content": "x"},
            headers=_as(instructor),
        )
        assert response.status_code == 400


class TestReadNotes:
    """Tests for listing notes."""

    def test_student_sees_visible_only(self, client, project, instructor, student):
        create_note(project.project_id, instructor.user_id, "Shared")
        create_note(
            project.project_id, instructor.user_id, "Private", is_visible_to_student=False
        )

        as_student = client.get(f"/api/notes/project/{project.project_id}", headers=_as(student))
        as_instructor = client.get(
            f"/api/notes/project/{project.project_id}", headers=_as(instructor)
        )

        assert [n["content"] for n in as_student.json()["notes"]] == ["Shared"]
        assert as_instructor.json()["count"] == 2

    def test_other_student_forbidden(self, client, project, other_student):
        response = client.get(
            f"/api/notes/project/{project.project_id}", headers=_as(other_student)
        )
        assert response.status_code == 403

    def test_chat_notes(self, client, project, instructor, student):
        chat = create_chat(student.user_id, "Q", "A", project_id=project.project_id)
        create_note(project.project_id, instructor.user_id, "On chat", chat_id=chat.chat_id)
        create_note(
            project.project_id,
            instructor.user_id,
            "Hidden",
            chat_id=chat.chat_id,
            is_visible_to_student=False,
        )

        response = client.get(f"/api/notes/chat/{chat.chat_id}", headers=_as(student))

        assert [n["content"] for n in response.json()["notes"]] == ["On chat"]


class TestChangeNotes:
    """Tests for editing and deleting notes."""

    def test_author_hides_note(self, client, project, instructor):
        note = create_note(project.project_id, instructor.user_id, "Draft")
        response = client.patch(
            f"/api/notes/{note.note_id}",
            json={"is_visible_to_student": False},
            headers=_as(instructor),
        )
        assert response.json()["is_visible_to_student"] is False
        assert response.json()["content"] == "Draft"

    def test_only_author_edits(self, client, project, admin, instructor):
        note = create_note(project.project_id, instructor.user_id, "Draft")
        response = client.patch(
            f"/api/notes/{note.note_id}", json={"content": "Mine"}, headers=_as(admin)
        )
        assert response.status_code == 403

    def test_delete(self, client, project, instructor, student):
        note = create_note(project.project_id, instructor.user_id, "Draft")

        assert client.delete(f"/api/notes/{note.note_id}", headers=_as(student)).status_code == 403
        assert client.delete(f"/api/notes/{note.note_id}", headers=_as(instructor)).status_code == 204
        assert get_note_by_id(note.note_id) is None

    def test_delete_missing(self, client, instructor):
        assert client.delete("/api/notes/ghost", headers=_as(instructor)).status_code == 404
