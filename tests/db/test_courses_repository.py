"""Tests for courses and memberships repository."""

import re

import pytest

from engagement_hub.db.courses_repository import (
    CourseNotFoundError,
    DuplicateMembershipError,
    InvalidAccessCodeError,
    MembershipNotFoundError,
    NotTrialCourseError,
    add_user_to_course,
    cleanup_orphaned_memberships,
    clean_access_code,
    create_course,
    delete_course,
    generate_course_code,
    get_all_courses,
    get_course_by_code,
    get_course_by_id,
    get_course_members,
    get_membership,
    get_pending_approvals,
    get_user_courses,
    get_user_membership,
    join_course,
    join_trial_course,
    membership_id_for,
    remove_member,
    update_course,
    update_course_access_code,
    update_member_role,
    update_membership_status,
)
from engagement_hub.db.users_repository import delete_user_row


class TestCourseCodes:
    """Tests for access code helpers."""

    def test_clean_access_code(self):
        assert clean_access_code("  bio101 ") == "BIO101"

    def test_generate_course_code_format(self):
        """Name, semester and year prefixes plus three random digits."""
        code = generate_course_code("Bio-logy 101", "fall", 2025)
        assert re.fullmatch(r"BIOFA25\d{3}", code)

    def test_generate_course_code_short_name(self):
        code = generate_course_code("AI", "Spring", "2026")
        assert re.fullmatch(r"AISP26\d{3}", code)


class TestCourses:
    """Tests for course CRUD."""

    def test_create_course_defaults(self, db):
        course = create_course("Chemistry", access_code=" chem1 ")

        assert course.title == "Chemistry"
        assert course.access_code == "CHEM1"
        assert course.is_trial is False
        assert course.member_count == 0
        assert get_course_by_id(course.course_id) == course

    def test_get_by_code_is_case_insensitive(self, course):
        assert get_course_by_code("biofa25001").course_id == course.course_id

    def test_get_by_code_missing(self, db):
        with pytest.raises(CourseNotFoundError, match="access code: NOPE"):
            get_course_by_code("nope")

    def test_update_course(self, course):
        updated = update_course(course.course_id, title="Biology 102", is_trial=True)
        assert updated.title == "Biology 102"
        assert updated.is_trial is True
        assert updated.semester == "Fall"

    def test_update_missing_course(self, db):
        with pytest.raises(CourseNotFoundError):
            update_course("ghost", title="x")

    def test_update_access_code(self, course):
        updated = update_course_access_code(course.course_id, "new-code")
        assert updated.access_code == "NEW-CODE"

    def test_delete_course_removes_memberships(self, course, student):
        assert delete_course(course.course_id) is True
        assert get_course_by_id(course.course_id) is None
        assert get_user_membership(student.user_id, course.course_id) is None
        assert delete_course(course.course_id) is False

    def test_get_all_courses_attaches_members(self, course, student):
        courses = get_all_courses()
        assert len(courses) == 1
        members = {m.user_id: m for m in courses[0].memberships}
        assert members[student.user_id].user.name == "Sam Student"


class TestEnrollment:
    """Tests for adding, joining and trial-joining."""

    def test_add_user_is_approved_and_counted(self, course):
        """The course fixture enrolled one instructor and one student."""
        refreshed = get_course_by_id(course.course_id)
        assert refreshed.member_count == 2
        assert refreshed.instructor_count == 1
        assert refreshed.student_count == 1

    def test_membership_id_is_composite(self, course, student):
        membership = get_user_membership(student.user_id, course.course_id)
        assert membership.membership_id == membership_id_for(student.user_id, course.course_id)
        assert membership.status == "approved"
        assert membership.added_by == "u-prof"

    def test_add_to_missing_course(self, student):
        with pytest.raises(CourseNotFoundError):
            add_user_to_course(student.user_id, "ghost")

    def test_add_duplicate(self, course, student):
        with pytest.raises(DuplicateMembershipError):
            add_user_to_course(student.user_id, course.course_id)

    def test_join_is_pending_and_not_counted(self, course, other_student):
        membership = join_course(other_student.user_id, course.course_id, " biofa25001 ")

        assert membership.status == "pending"
        assert membership.role == "student"
        assert get_course_by_id(course.course_id).member_count == 2

    def test_join_wrong_code(self, course, other_student):
        with pytest.raises(InvalidAccessCodeError):
            join_course(other_student.user_id, course.course_id, "WRONG")

    def test_join_missing_course(self, other_student):
        with pytest.raises(CourseNotFoundError):
            join_course(other_student.user_id, "ghost", "X")

    def test_join_trial_course(self, db, other_student):
        trial = create_course("Trial", access_code="TRY-AI", is_trial=True)

        membership = join_trial_course("try-ai", other_student.user_id, "instructor")

        assert membership.status == "approved"
        assert membership.approved_by == "system"
        assert get_course_by_id(trial.course_id).instructor_count == 1

    def test_join_trial_twice(self, db, other_student):
        create_course("Trial", access_code="TRY-AI", is_trial=True)
        join_trial_course("TRY-AI", other_student.user_id, "student")
        with pytest.raises(DuplicateMembershipError):
            join_trial_course("TRY-AI", other_student.user_id, "student")

    def test_join_trial_rejects_regular_course(self, course, other_student):
        with pytest.raises(NotTrialCourseError):
            join_trial_course("BIOFA25001", other_student.user_id, "student")
        assert get_user_membership(other_student.user_id, course.course_id) is None

    def test_join_trial_rejects_elevated_role(self, db, other_student):
        trial = create_course("Trial", access_code="TRY-AI", is_trial=True)
        with pytest.raises(ValueError):
            join_trial_course("TRY-AI", other_student.user_id, "school_administrator")
        assert get_user_membership(other_student.user_id, trial.course_id) is None


class TestMembershipChanges:
    """Tests for status, role and removal."""

    def test_approve_updates_counts(self, course, instructor, other_student):
        pending = join_course(other_student.user_id, course.course_id, "BIOFA25001")

        approved = update_membership_status(pending.membership_id, "approved", instructor.user_id)

        assert approved.status == "approved"
        assert approved.approved_by == instructor.user_id
        assert approved.processed_at is not None
        assert get_course_by_id(course.course_id).student_count == 2

    def test_reject_records_rejector(self, course, instructor, other_student):
        pending = join_course(other_student.user_id, course.course_id, "BIOFA25001")

        rejected = update_membership_status(pending.membership_id, "rejected", instructor.user_id)

        assert rejected.rejected_by == instructor.user_id
        assert rejected.approved_by is None

    def test_invalid_status(self, course, student):
        mid = membership_id_for(student.user_id, course.course_id)
        with pytest.raises(ValueError, match="Invalid membership status"):
            update_membership_status(mid, "banned", "u-prof")

    def test_status_missing_membership(self, db):
        with pytest.raises(MembershipNotFoundError):
            update_membership_status("ghost", "approved", "u-prof")

    def test_change_role_moves_counts(self, course, student):
        mid = membership_id_for(student.user_id, course.course_id)

        updated = update_member_role(mid, "teaching_assistant")

        assert updated.role == "teaching_assistant"
        refreshed = get_course_by_id(course.course_id)
        assert refreshed.student_count == 0
        assert refreshed.member_count == 2

    def test_remove_member(self, course, student):
        mid = membership_id_for(student.user_id, course.course_id)

        remove_member(mid)

        assert get_membership(mid) is None
        assert get_course_by_id(course.course_id).member_count == 1

    def test_remove_missing_member(self, db):
        with pytest.raises(MembershipNotFoundError):
            remove_member("ghost")


class TestMembershipListings:
    """Tests for listing memberships."""

    def test_user_courses_only_approved(self, course, other_student):
        join_course(other_student.user_id, course.course_id, "BIOFA25001")
        assert get_user_courses(other_student.user_id) == []

    def test_user_courses_attach_course(self, course, student):
        memberships = get_user_courses(student.user_id)
        assert [m.course.title for m in memberships] == ["Biology 101"]

    def test_pending_approvals(self, course, other_student):
        join_course(other_student.user_id, course.course_id, "BIOFA25001")

        pending = get_pending_approvals(course.course_id)

        assert [m.user_id for m in pending] == [other_student.user_id]
        assert pending[0].user.email == "kim@example.edu"

    def test_course_members_keep_missing_users(self, course, student):
        delete_user_row(student.user_id)

        members = {m.user_id: m for m in get_course_members(course.course_id)}
        assert members[student.user_id].user is None


class TestCleanupOrphanedMemberships:
    """Tests for cleanup_orphaned_memberships."""

    def test_removes_orphans_and_recounts(self, course, student):
        delete_user_row(student.user_id)

        result = cleanup_orphaned_memberships()

        assert result == {"cleaned": 1, "courses_updated": 1}
        assert get_course_by_id(course.course_id).student_count == 0

    def test_scoped_to_course(self, course, student):
        other = create_course("Other")
        add_user_to_course(student.user_id, other.course_id)
        delete_user_row(student.user_id)

        result = cleanup_orphaned_memberships(other.course_id)

        assert result["cleaned"] == 1
        assert get_user_membership(student.user_id, course.course_id) is not None

    def test_nothing_to_clean(self, course):
        assert cleanup_orphaned_memberships() == {"cleaned": 0, "courses_updated": 0}
