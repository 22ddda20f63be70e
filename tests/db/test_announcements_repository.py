"""Tests for announcements repository."""

import pytest

from engagement_hub.db.announcements_repository import (
    AnnouncementNotFoundError,
    add_comment,
    create_announcement,
    delete_announcement,
    delete_comment,
    get_announcement,
    get_comment,
    get_comments,
    get_course_announcements,
    toggle_pin,
    update_announcement,
    update_comment,
)


@pytest.fixture
def announcement(course, instructor):
    return create_announcement(
        course.course_id,
        instructor.user_id,
        "Welcome",
        "First lab on Monday.",
        author_name="Pat Professor",
    )


class TestAnnouncements:
    """Tests for announcement CRUD."""

    def test_create(self, announcement, course):
        assert announcement.course_id == course.course_id
        assert announcement.author_role == "instructor"
        assert announcement.is_pinned is False
        assert announcement.comment_count == 0

    def test_pinned_first(self, course, instructor, announcement):
        pinned = create_announcement(
            course.course_id, instructor.user_id, "Syllabus", "Read it", is_pinned=True
        )

        titles = [a.announcement_id for a in get_course_announcements(course.course_id)]
        assert titles[0] == pinned.announcement_id

    def test_update(self, announcement):
        updated = update_announcement(announcement.announcement_id, title="Hello")
        assert updated.title == "Hello"
        assert updated.content == announcement.content

    def test_update_missing(self, db):
        with pytest.raises(AnnouncementNotFoundError):
            update_announcement("ghost", title="x")

    def test_toggle_pin(self, announcement):
        assert toggle_pin(announcement.announcement_id).is_pinned is True
        assert toggle_pin(announcement.announcement_id).is_pinned is False

    def test_toggle_pin_missing(self, db):
        with pytest.raises(AnnouncementNotFoundError):
            toggle_pin("ghost")

    def test_delete_removes_comments(self, announcement, student):
        comment = add_comment(announcement.announcement_id, student.user_id, "Thanks")

        assert delete_announcement(announcement.announcement_id) is True

        assert get_announcement(announcement.announcement_id) is None
        assert get_comment(comment.comment_id) is None
        assert delete_announcement(announcement.announcement_id) is False


class TestComments:
    """Tests for announcement comments."""

    def test_add_bumps_count(self, announcement, student):
        add_comment(announcement.announcement_id, student.user_id, "Thanks", "Sam Student")
        add_comment(announcement.announcement_id, student.user_id, "See you")

        assert get_announcement(announcement.announcement_id).comment_count == 2
        comments = get_comments(announcement.announcement_id)
        assert {c.content for c in comments} == {"Thanks", "See you"}
        assert any(c.author_name == "Sam Student" for c in comments)

    def test_add_to_missing_announcement(self, student):
        with pytest.raises(AnnouncementNotFoundError):
            add_comment("ghost", student.user_id, "Hello?")

    def test_update(self, announcement, student):
        comment = add_comment(announcement.announcement_id, student.user_id, "Typo")
        assert update_comment(comment.comment_id, "Fixed").content == "Fixed"

    def test_update_missing(self, db):
        with pytest.raises(ValueError, match="Comment not found"):
            update_comment("ghost", "x")

    def test_delete_decrements_count(self, announcement, student):
        comment = add_comment(announcement.announcement_id, student.user_id, "Bye")

        assert delete_comment(comment.comment_id) is True

        assert get_announcement(announcement.announcement_id).comment_count == 0
        assert delete_comment(comment.comment_id) is False
