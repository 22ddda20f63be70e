"""Tests for user endpoints."""

from engagement_hub.db.users_repository import get_user_by_id


def _as(user):
    return {"X-User-Id": user.user_id}


class TestAuthentication:
    """Tests for the X-User-Id header."""

    def test_missing_header(self, client):
        response = client.get("/api/users/me")
        assert response.status_code == 401

    def test_unknown_user(self, client):
        response = client.get("/api/users/me", headers={"X-User-Id": "nobody"})
        assert response.status_code == 401
        assert "nobody" in response.json()["detail"]

    def test_me(self, client, student):
        response = client.get("/api/users/me", headers=_as(student))
        assert response.status_code == 200
        assert response.json()["email"] == "sam@example.edu"


class TestRegister:
    """Tests for POST /api/users."""

    def test_register(self, client):
        response = client.post(
            "/api/users", json={"email": "New@Example.edu", "name": "Nia New"}
        )
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "new@example.edu"
        assert data["role"] == "student"

    def test_register_instructor(self, client):
        response = client.post(
            "/api/users", json={"email": "t@example.edu", "role": "instructor"}
        )
        assert response.status_code == 201
        assert response.json()["role"] == "instructor"

    def test_invalid_email(self, client):
        response = client.post("/api/users", json={"email": "not-an-email"})
        assert response.status_code == 400

    def test_privileged_role_rejected(self, client):
        response = client.post("/api/users", json={"email": "x@example.edu", "role": "admin"})
        assert response.status_code == 400

    def test_duplicate_email(self, client, student):
        response = client.post("/api/users", json={"email": "sam@example.edu"})
        assert response.status_code == 409


class TestListAndSearch:
    """Tests for GET /api/users and /api/users/search."""

    def test_list_requires_admin(self, client, student):
        assert client.get("/api/users", headers=_as(student)).status_code == 403

    def test_list_as_admin(self, client, admin, student):
        response = client.get("/api/users", headers=_as(admin))
        assert response.status_code == 200
        assert response.json()["count"] == 2

    def test_search(self, client, instructor, student, other_student):
        response = client.get("/api/users/search?q=kim", headers=_as(instructor))
        assert response.status_code == 200
        assert [u["user_id"] for u in response.json()["users"]] == ["u-kim"]

    def test_search_excludes_members(self, client, course, instructor, other_student):
        response = client.get(
            f"/api/users/search?q=student&exclude_course_id={course.course_id}",
            headers=_as(instructor),
        )
        assert [u["user_id"] for u in response.json()["users"]] == ["u-kim"]

    def test_search_requires_instructor(self, client, student):
        response = client.get("/api/users/search?q=a", headers=_as(student))
        assert response.status_code == 403


class TestProfile:
    """Tests for viewing and editing profiles."""

    def test_view_other_forbidden(self, client, student, other_student):
        response = client.get("/api/users/u-kim", headers=_as(student))
        assert response.status_code == 403

    def test_instructor_views_student(self, client, instructor, student):
        response = client.get("/api/users/u-sam", headers=_as(instructor))
        assert response.status_code == 200

    def test_missing_user(self, client, admin):
        assert client.get("/api/users/ghost", headers=_as(admin)).status_code == 404

    def test_edit_own_name(self, client, student):
        response = client.patch("/api/users/u-sam", json={"name": "Samuel"}, headers=_as(student))
        assert response.status_code == 200
        assert response.json()["name"] == "Samuel"

    def test_student_cannot_change_role(self, client, student):
        response = client.patch(
            "/api/users/u-sam", json={"role": "instructor"}, headers=_as(student)
        )
        assert response.status_code == 403

    def test_admin_changes_role(self, client, admin, student):
        response = client.patch(
            "/api/users/u-sam", json={"role": "teaching_assistant"}, headers=_as(admin)
        )
        assert response.status_code == 200
        assert get_user_by_id("u-sam").role == "teaching_assistant"

    def test_email_taken(self, client, student, other_student):
        response = client.patch(
            "/api/users/u-sam", json={"email": "kim@example.edu"}, headers=_as(student)
        )
        assert response.status_code == 409

    def test_own_courses(self, client, course, student):
        response = client.get("/api/users/u-sam/courses", headers=_as(student))
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["memberships"][0]["course"]["title"] == "Biology 101"


class TestDeleteUser:
    """Tests for DELETE /api/users/{user_id}."""

    def test_requires_admin(self, client, instructor, student):
        response = client.delete("/api/users/u-sam", headers=_as(instructor))
        assert response.status_code == 403
        assert get_user_by_id("u-sam") is not None

    def test_admin_deletes(self, client, admin, course, student):
        response = client.delete("/api/users/u-sam", headers=_as(admin))

        assert response.status_code == 200
        data = response.json()
        assert data["user_deleted"] is True
        assert data["memberships"] == 1
        assert data["courses_updated"] == [course.course_id]
        assert get_user_by_id("u-sam") is None
