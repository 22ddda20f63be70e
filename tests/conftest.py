"""Shared fixtures: an isolated database per test plus seeded accounts."""

import pytest

from engagement_hub.config.app_config import clear_config_cache
from engagement_hub.db.courses_repository import add_user_to_course, create_course
from engagement_hub.db.database import init_db, reset_db_path
from engagement_hub.db.users_repository import create_user


@pytest.fixture
def db(tmp_path, monkeypatch):
    """Fresh SQLite database in tmp_path, with tmp_path as working directory."""
    monkeypatch.chdir(tmp_path)
    clear_config_cache()
    db_path = tmp_path / "hub.db"
    init_db(db_path)
    yield db_path
    reset_db_path()
    clear_config_cache()


@pytest.fixture
def admin(db):
    return create_user("admin@example.edu", name="Ada Admin", role="admin", user_id="u-admin")


@pytest.fixture
def instructor(db):
    return create_user(
        "prof@example.edu", name="Pat Professor", role="instructor", user_id="u-prof"
    )


@pytest.fixture
def student(db):
    return create_user("sam@example.edu", name="Sam Student", role="student", user_id="u-sam")


@pytest.fixture
def other_student(db):
    return create_user("kim@example.edu", name="Kim Student", role="student", user_id="u-kim")


@pytest.fixture
def course(db, instructor, student):
    """BIO 101 with the instructor and one student already approved."""
    record = create_course(
        "Biology 101",
        description="Intro biology",
        course_code="BIOFA25001",
        semester="Fall",
        year=2025,
        access_code="BIOFA25001",
        instructor_id=instructor.user_id,
    )
    add_user_to_course(instructor.user_id, record.course_id, "instructor")
    add_user_to_course(student.user_id, record.course_id, "student", added_by=instructor.user_id)
    return record
