"""Tests for chats repository."""

from datetime import date, datetime, timezone

import pytest

from engagement_hub.db.chats_repository import (
    UNTITLED_PROJECT,
    ChatFilters,
    create_chat,
    delete_chat_row,
    get_chat_by_id,
    get_chat_ids_for_projects,
    get_chat_ids_for_user,
    get_chats_with_filters,
    get_project_chats,
    get_tagged_chats,
    get_user_chats,
    list_chats_in_range,
    update_chat,
)
from engagement_hub.db.projects_repository import create_project
from engagement_hub.db.reflections_repository import create_reflection
from engagement_hub.db.tags_repository import add_tags_to_chat, create_tag
from engagement_hub.db.users_repository import delete_user_row


@pytest.fixture
def project(course, student):
    return create_project("Cell essay", student.user_id, course.course_id)


def _chat(user, project=None, when="2025-03-01T10:00:00+00:00", **kwargs):
    defaults = {"prompt": "What is a cell?", "response": "The unit of life.", "tool_used": "GPT-5"}
    defaults.update(kwargs)
    return create_chat(
        user_id=user.user_id,
        project_id=project.project_id if project else None,
        created_at=when,
        **defaults,
    )


class TestCreateChat:
    """Tests for create_chat."""

    def test_inherits_project_course(self, project, student, course):
        chat = _chat(student, project)
        assert chat.course_id == course.course_id
        assert get_chat_by_id(chat.chat_id) == chat

    def test_explicit_course_wins(self, project, student):
        chat = _chat(student, project, course_id="other-course")
        assert chat.course_id == "other-course"

    def test_without_project(self, student):
        chat = _chat(student)
        assert chat.project_id is None
        assert chat.course_id is None

    def test_stores_usage(self, student):
        chat = _chat(student, input_tokens=12, output_tokens=34, searches=1)
        assert (chat.input_tokens, chat.output_tokens, chat.searches) == (12, 34, 1)


class TestChatListings:
    """Tests for project and user listings."""

    def test_project_chats_oldest_first(self, project, student):
        late = _chat(student, project, when="2025-03-02T10:00:00+00:00")
        early = _chat(student, project, when="2025-03-01T10:00:00+00:00")

        assert [c.chat_id for c in get_project_chats(project.project_id)] == [
            early.chat_id,
            late.chat_id,
        ]

    def test_user_chats_newest_first_and_limited(self, project, student):
        _chat(student, project, when="2025-03-01T10:00:00+00:00")
        newest = _chat(student, project, when="2025-03-03T10:00:00+00:00")
        _chat(student, when="2025-03-02T10:00:00+00:00")

        chats = get_user_chats(student.user_id, limit=1)
        assert [c.chat_id for c in chats] == [newest.chat_id]

    def test_user_chats_by_course(self, project, student, course):
        in_course = _chat(student, project)
        _chat(student)

        chats = get_user_chats(student.user_id, course_id=course.course_id)
        assert [c.chat_id for c in chats] == [in_course.chat_id]

    def test_chat_ids(self, project, student, other_student):
        mine = _chat(student, project)
        _chat(other_student)

        assert get_chat_ids_for_user(student.user_id) == [mine.chat_id]
        assert get_chat_ids_for_projects([project.project_id]) == [mine.chat_id]
        assert get_chat_ids_for_projects([]) == []


class TestUpdateAndDelete:
    """Tests for update_chat and delete_chat_row."""

    def test_update_response(self, student):
        chat = _chat(student)
        updated = update_chat(chat.chat_id, response="Edited")
        assert updated.response == "Edited"
        assert updated.prompt == chat.prompt

    def test_update_missing(self, db):
        with pytest.raises(ValueError, match="Chat not found"):
            update_chat("ghost", response="x")

    def test_delete_row(self, student):
        chat = _chat(student)
        assert delete_chat_row(chat.chat_id) is True
        assert get_chat_by_id(chat.chat_id) is None


class TestChatFilters:
    """Tests for get_chats_with_filters."""

    def test_no_filters_newest_first(self, project, student):
        first = _chat(student, project, when="2025-03-01T10:00:00+00:00")
        second = _chat(student, project, when="2025-03-02T10:00:00+00:00")

        chats = get_chats_with_filters()
        assert [c.chat.chat_id for c in chats] == [second.chat_id, first.chat_id]

    def test_enrichment(self, project, student):
        chat = _chat(student, project)
        tag = create_tag("Research", "instructor", course_id=project.course_id)
        add_tags_to_chat(chat.chat_id, [tag.tag_id])
        create_reflection(chat.chat_id, student.user_id, "It helped.")

        item = get_chats_with_filters()[0]

        assert item.user_name == "Sam Student"
        assert item.user_email == "sam@example.edu"
        assert item.project_title == "Cell essay"
        assert [t.name for t in item.tags] == ["Research"]
        assert item.has_reflection is True
        assert item.reflection.content == "It helped."

    def test_enrichment_placeholders(self, student):
        _chat(student)
        delete_user_row(student.user_id)

        item = get_chats_with_filters()[0]

        assert item.user_name == "Unknown User"
        assert item.user_email == "No email"
        assert item.project_title == UNTITLED_PROJECT
        assert item.has_reflection is False

    def test_filter_by_user_and_tool(self, project, student, other_student):
        _chat(student, project, tool_used="GPT-5")
        wanted = _chat(student, project, tool_used="Claude Sonnet 4")
        _chat(other_student, tool_used="Claude Sonnet 4")

        chats = get_chats_with_filters(
            ChatFilters(user_id=student.user_id, tool_used="Claude Sonnet 4")
        )
        assert [c.chat.chat_id for c in chats] == [wanted.chat_id]

    def test_filter_by_tag(self, project, student):
        tagged = _chat(student, project)
        _chat(student, project)
        tag = create_tag("Writing", "instructor", course_id=project.course_id)
        add_tags_to_chat(tagged.chat_id, [tag.tag_id])

        chats = get_chats_with_filters(ChatFilters(tag_id=tag.tag_id))
        assert [c.chat.chat_id for c in chats] == [tagged.chat_id]
        assert [c.chat.chat_id for c in get_tagged_chats(tag.tag_id, project.course_id)] == [
            tagged.chat_id
        ]

    def test_filter_by_reflection(self, project, student):
        reflected = _chat(student, project)
        plain = _chat(student, project)
        create_reflection(reflected.chat_id, student.user_id, "Thoughts")

        with_r = get_chats_with_filters(ChatFilters(has_reflection=True))
        without_r = get_chats_with_filters(ChatFilters(has_reflection=False))

        assert [c.chat.chat_id for c in with_r] == [reflected.chat_id]
        assert [c.chat.chat_id for c in without_r] == [plain.chat_id]

    def test_bare_end_date_covers_whole_day(self, student):
        late = _chat(student, when="2025-03-01T23:30:00+00:00")
        _chat(student, when="2025-03-02T00:30:00+00:00")

        chats = get_chats_with_filters(
            ChatFilters(start_date=date(2025, 3, 1), end_date="2025-03-01")
        )
        assert [c.chat.chat_id for c in chats] == [late.chat_id]

    def test_limit(self, student):
        for day in range(1, 4):
            _chat(student, when=f"2025-03-0{day}T10:00:00+00:00")

        assert len(get_chats_with_filters(ChatFilters(limit=2))) == 2


class TestListChatsInRange:
    """Tests for list_chats_in_range."""

    def test_inclusive_range(self, project, student, course):
        inside = _chat(student, project, when="2025-03-05T12:00:00+00:00")
        _chat(student, project, when="2025-03-10T12:00:00+00:00")

        chats = list_chats_in_range(
            datetime(2025, 3, 1, tzinfo=timezone.utc),
            datetime(2025, 3, 5, 12, 0, tzinfo=timezone.utc),
        )
        assert [c.chat_id for c in chats] == [inside.chat_id]

    def test_course_scope(self, project, student, course):
        _chat(student, when="2025-03-05T12:00:00+00:00")
        in_course = _chat(student, project, when="2025-03-05T13:00:00+00:00")

        chats = list_chats_in_range(
            datetime(2025, 3, 1, tzinfo=timezone.utc),
            datetime(2025, 3, 31, tzinfo=timezone.utc),
            course_id=course.course_id,
        )
        assert [c.chat_id for c in chats] == [in_course.chat_id]
