"""Tests for attachment endpoints."""

from pathlib import Path

from engagement_hub.config.app_config import clear_config_cache
from engagement_hub.db.attachments_repository import create_attachment, get_attachment
from engagement_hub.db.chats_repository import create_chat
from engagement_hub.db.projects_repository import create_project

NOTES = b"Photosynthesis converts light energy into chemical energy stored in glucose."


def _as(user):
    return {"X-User-Id": user.user_id}


def _upload(client, user, name="notes.txt", data=NOTES, content_type="text/plain"):
    return client.post(
        "/api/attachments",
        files={"file": (name, data, content_type)},
        headers=_as(user),
    )


class TestUpload:
    """Tests for POST /api/attachments."""

    def test_text_file(self, client, student, tmp_path):
        response = _upload(client, student)

        assert response.status_code == 201
        data = response.json()
        assert data["file_name"] == "notes.txt"
        assert data["file_size"] == len(NOTES)
        assert data["extracted_text"] == NOTES.decode()
        assert data["chat_id"] is None

        stored = Path(get_attachment(data["attachment_id"]).storage_path)
        assert stored.read_bytes() == NOTES
        assert stored.parent == Path("data/uploads") / student.user_id

    def test_unsafe_name(self, client, student):
        response = _upload(client, student, name="../../etc/pass wd.txt")

        stored = Path(get_attachment(response.json()["attachment_id"]).storage_path)
        assert stored.name.endswith("_pass_wd.txt")
        assert stored.parent == Path("data/uploads") / student.user_id

    def test_unsupported_type_still_stored(self, client, student):
        response = _upload(
            client,
            student,
            name="slides.pptx",
            data=b"\x00\x01",
            content_type="application/octet-stream",
        )
        assert response.status_code == 201
        assert "not supported" in response.json()["extracted_text"]

    def test_empty(self, client, student):
        response = _upload(client, student, data=b"")
        assert response.status_code == 400

    def test_too_large(self, client, student, tmp_path):
        config_dir = tmp_path / "data" / "config"
        config_dir.mkdir(parents=True)
        (config_dir / "app_config_v1.yaml").write_text("hub:\n  max_upload_bytes: 10\n")
        clear_config_cache()

        response = _upload(client, student)

        assert response.status_code == 413


class TestReadAttachments:
    """Tests for reading attachments."""

    def test_owner_reads(self, client, student):
        attachment = create_attachment(student.user_id, "a.txt", "x")
        response = client.get(f"/api/attachments/{attachment.attachment_id}", headers=_as(student))
        assert response.status_code == 200

    def test_other_student_forbidden(self, client, student, other_student):
        attachment = create_attachment(student.user_id, "a.txt", "x")
        response = client.get(
            f"/api/attachments/{attachment.attachment_id}", headers=_as(other_student)
        )
        assert response.status_code == 403

    def test_instructor_reads_sent_attachment(self, client, course, student, instructor):
        chat = create_chat(student.user_id, "Q", "A", course_id=course.course_id)
        attachment = create_attachment(student.user_id, "a.txt", "x", chat_id=chat.chat_id)

        response = client.get(
            f"/api/attachments/{attachment.attachment_id}", headers=_as(instructor)
        )
        assert response.status_code == 200

        listed = client.get(f"/api/attachments/chat/{chat.chat_id}", headers=_as(instructor))
        assert listed.json()["count"] == 1

    def test_course_attachments(self, client, course, student, instructor):
        project = create_project("Cell essay", student.user_id, course.course_id)
        chat = create_chat(student.user_id, "Q", "A", project_id=project.project_id)
        create_attachment(student.user_id, "paper.pdf", "x", chat_id=chat.chat_id)

        response = client.get(f"/api/attachments/course/{course.course_id}", headers=_as(instructor))

        item = response.json()["attachments"][0]
        assert item["attachment"]["file_name"] == "paper.pdf"
        assert item["project_title"] == "Cell essay"
        assert item["uploader_name"] == "Sam Student"

    def test_missing(self, client, student):
        assert client.get("/api/attachments/ghost", headers=_as(student)).status_code == 404


class TestDeleteAttachment:
    """Tests for DELETE /api/attachments/{attachment_id}."""

    def test_discard_unsent_upload(self, client, student):
        attachment_id = _upload(client, student).json()["attachment_id"]
        stored = Path(get_attachment(attachment_id).storage_path)

        response = client.delete(f"/api/attachments/{attachment_id}", headers=_as(student))

        assert response.status_code == 204
        assert get_attachment(attachment_id) is None
        assert not stored.exists()

    def test_sent_attachment_kept(self, client, student):
        chat = create_chat(student.user_id, "Q", "A")
        attachment = create_attachment(student.user_id, "a.txt", "x", chat_id=chat.chat_id)

        response = client.delete(
            f"/api/attachments/{attachment.attachment_id}", headers=_as(student)
        )
        assert response.status_code == 409

    def test_not_owner(self, client, student, other_student):
        attachment = create_attachment(student.user_id, "a.txt", "x")
        response = client.delete(
            f"/api/attachments/{attachment.attachment_id}", headers=_as(other_student)
        )
        assert response.status_code == 403
