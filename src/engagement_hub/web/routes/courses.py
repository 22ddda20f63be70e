"""Course and membership endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from engagement_hub.core.roles import (
    INSTRUCTOR,
    ROLES,
    can_manage_role,
    is_instructor_level,
)
from engagement_hub.db.courses_repository import (
    CourseNotFoundError,
    DuplicateMembershipError,
    InvalidAccessCodeError,
    MembershipNotFoundError,
    MembershipRecord,
    NotTrialCourseError,
    add_user_to_course,
    cleanup_orphaned_memberships,
    create_course,
    delete_course,
    generate_course_code,
    get_all_courses,
    get_course_by_code,
    get_course_by_id,
    get_course_members,
    get_membership,
    get_pending_approvals,
    join_course,
    join_trial_course,
    remove_member,
    update_course,
    update_course_access_code,
    update_course_member_counts,
    update_member_role,
    update_membership_status,
)
from engagement_hub.db.users_repository import UserRecord, get_user_by_id
from engagement_hub.web.deps import (
    course_role,
    get_current_user,
    has_platform_oversight,
    require_admin,
    require_course_instructor,
    require_course_member,
)
from engagement_hub.web.schemas import (
    AccessCodeUpdate,
    AddMemberRequest,
    CleanupResponse,
    CourseCreate,
    CourseListResponse,
    CourseResponse,
    CourseUpdate,
    JoinCourseRequest,
    JoinTrialRequest,
    MembershipListResponse,
    MembershipResponse,
    MembershipStatusUpdate,
    MemberRoleUpdate,
)

router = APIRouter(prefix="/api/courses", tags=["courses"])


def _get_course_or_404(course_id: str):
    course = get_course_by_id(course_id)
    if course is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Course '{course_id}' not found",
        )
    return course


def _get_membership_or_404(membership_id: str) -> MembershipRecord:
    membership = get_membership(membership_id)
    if membership is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Membership '{membership_id}' not found",
        )
    return membership


def _require_manage(
    current: UserRecord,
    membership: MembershipRecord,
    new_role: str | None = None,
) -> None:
    """The caller's course role must be allowed to manage the member's role.

    Instructors manage roles up to instructor, teaching assistants manage
    students and student assistants. When a role change is requested the
    new role must be manageable too.
    """
    caller_role = course_role(current, membership.course_id)
    if caller_role is None and has_platform_oversight(current):
        caller_role = current.role

    for role in (membership.role, new_role):
        if role is not None and not can_manage_role(caller_role, role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"You cannot manage members with role '{role}'",
            )


def _validate_role(role: str) -> None:
    if role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid role '{role}'",
        )


# =============================================================================
# COURSES
# =============================================================================


@router.get("", response_model=CourseListResponse)
async def list_courses(current: UserRecord = Depends(get_current_user)) -> CourseListResponse:
    """List all courses, newest first (admin only)."""
    require_admin(current)
    courses = [CourseResponse.model_validate(c.course) for c in get_all_courses()]
    return CourseListResponse(courses=courses, count=len(courses))


@router.post("", response_model=CourseResponse, status_code=status.HTTP_201_CREATED)
async def create(
    course_data: CourseCreate,
    current: UserRecord = Depends(get_current_user),
) -> CourseResponse:
    """Create a course. The creator is enrolled as its instructor."""
    if not is_instructor_level(current.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only instructors can create courses",
        )

    course_code = course_data.course_code
    if not course_code and course_data.semester and course_data.year:
        course_code = generate_course_code(
            course_data.title, course_data.semester, course_data.year
        )

    course = create_course(
        title=course_data.title,
        description=course_data.description,
        course_code=course_code,
        semester=course_data.semester,
        year=course_data.year,
        access_code=course_data.access_code or course_code,
        is_trial=course_data.is_trial,
        instructor_id=current.user_id,
    )
    add_user_to_course(current.user_id, course.course_id, INSTRUCTOR, added_by=current.user_id)
    return CourseResponse.model_validate(get_course_by_id(course.course_id))


@router.get("/by-code/{access_code}", response_model=CourseResponse)
async def get_by_code(
    access_code: str,
    current: UserRecord = Depends(get_current_user),
) -> CourseResponse:
    """Look up a course by its access code."""
    try:
        course = get_course_by_code(access_code)
    except CourseNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return CourseResponse.model_validate(course)


@router.post("/join-trial", response_model=MembershipResponse, status_code=status.HTTP_201_CREATED)
async def join_trial(
    request: JoinTrialRequest,
    current: UserRecord = Depends(get_current_user),
) -> MembershipResponse:
    """Join a trial course by code; approved immediately."""
    try:
        membership = join_trial_course(request.course_code, current.user_id, request.role)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except CourseNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except NotTrialCourseError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except DuplicateMembershipError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return MembershipResponse.model_validate(membership)


@router.post("/cleanup-orphans", response_model=CleanupResponse)
async def cleanup_orphans(
    course_id: str | None = None,
    current: UserRecord = Depends(get_current_user),
) -> CleanupResponse:
    """Delete memberships of users that no longer exist."""
    if course_id:
        require_course_instructor(current, course_id)
    else:
        require_admin(current)
    return CleanupResponse(**cleanup_orphaned_memberships(course_id))


@router.get("/{course_id}", response_model=CourseResponse)
async def get_course(
    course_id: str,
    current: UserRecord = Depends(get_current_user),
) -> CourseResponse:
    """Get a specific course by ID."""
    course = _get_course_or_404(course_id)
    require_course_member(current, course_id)
    return CourseResponse.model_validate(course)


@router.patch("/{course_id}", response_model=CourseResponse)
async def patch_course(
    course_id: str,
    course_data: CourseUpdate,
    current: UserRecord = Depends(get_current_user),
) -> CourseResponse:
    _get_course_or_404(course_id)
    require_course_instructor(current, course_id)
    course = update_course(
        course_id,
        title=course_data.title,
        description=course_data.description,
        semester=course_data.semester,
        year=course_data.year,
        is_trial=course_data.is_trial,
    )
    return CourseResponse.model_validate(course)


@router.put("/{course_id}/access-code", response_model=CourseResponse)
async def set_access_code(
    course_id: str,
    request: AccessCodeUpdate,
    current: UserRecord = Depends(get_current_user),
) -> CourseResponse:
    """Replace the code students use to join."""
    _get_course_or_404(course_id)
    require_course_instructor(current, course_id)
    course = update_course_access_code(course_id, request.access_code)
    return CourseResponse.model_validate(course)


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_course(
    course_id: str,
    current: UserRecord = Depends(get_current_user),
) -> None:
    """Delete a course and its memberships."""
    _get_course_or_404(course_id)
    require_course_instructor(current, course_id)
    delete_course(course_id)


@router.post("/{course_id}/refresh-counts", response_model=CourseResponse)
async def refresh_counts(
    course_id: str,
    current: UserRecord = Depends(get_current_user),
) -> CourseResponse:
    """Recompute member, instructor and student counts."""
    _get_course_or_404(course_id)
    require_course_instructor(current, course_id)
    update_course_member_counts(course_id)
    return CourseResponse.model_validate(get_course_by_id(course_id))


# =============================================================================
# MEMBERSHIPS
# =============================================================================


@router.post(
    "/{course_id}/join",
    response_model=MembershipResponse,
    status_code=status.HTTP_201_CREATED,
)
async def join(
    course_id: str,
    request: JoinCourseRequest,
    current: UserRecord = Depends(get_current_user),
) -> MembershipResponse:
    """Ask to join a course; an instructor must approve the request."""
    try:
        membership = join_course(current.user_id, course_id, request.access_code)
    except CourseNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidAccessCodeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DuplicateMembershipError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return MembershipResponse.model_validate(membership)


@router.get("/{course_id}/members", response_model=MembershipListResponse)
async def list_members(
    course_id: str,
    current: UserRecord = Depends(get_current_user),
) -> MembershipListResponse:
    _get_course_or_404(course_id)
    require_course_member(current, course_id)
    memberships = [MembershipResponse.model_validate(m) for m in get_course_members(course_id)]
    return MembershipListResponse(memberships=memberships, count=len(memberships))


@router.post(
    "/{course_id}/members",
    response_model=MembershipResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    course_id: str,
    request: AddMemberRequest,
    current: UserRecord = Depends(get_current_user),
) -> MembershipResponse:
    """Enroll a user directly, already approved."""
    _get_course_or_404(course_id)
    require_course_instructor(current, course_id)
    _validate_role(request.role)

    if get_user_by_id(request.user_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User '{request.user_id}' not found",
        )

    try:
        membership = add_user_to_course(
            request.user_id, course_id, request.role, added_by=current.user_id
        )
    except DuplicateMembershipError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return MembershipResponse.model_validate(membership)


@router.get("/{course_id}/pending", response_model=MembershipListResponse)
async def list_pending(
    course_id: str,
    current: UserRecord = Depends(get_current_user),
) -> MembershipListResponse:
    """Join requests awaiting approval, newest first."""
    _get_course_or_404(course_id)
    require_course_instructor(current, course_id)
    memberships = [
        MembershipResponse.model_validate(m) for m in get_pending_approvals(course_id)
    ]
    return MembershipListResponse(memberships=memberships, count=len(memberships))


@router.put("/memberships/{membership_id}/status", response_model=MembershipResponse)
async def set_membership_status(
    membership_id: str,
    request: MembershipStatusUpdate,
    current: UserRecord = Depends(get_current_user),
) -> MembershipResponse:
    """Approve or reject a join request."""
    membership = _get_membership_or_404(membership_id)
    require_course_instructor(current, membership.course_id)
    try:
        updated = update_membership_status(membership_id, request.status, current.user_id)
    except MembershipNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return MembershipResponse.model_validate(updated)


@router.put("/memberships/{membership_id}/role", response_model=MembershipResponse)
async def set_member_role(
    membership_id: str,
    request: MemberRoleUpdate,
    current: UserRecord = Depends(get_current_user),
) -> MembershipResponse:
    membership = _get_membership_or_404(membership_id)
    _validate_role(request.role)
    _require_manage(current, membership, new_role=request.role)
    updated = update_member_role(membership_id, request.role)
    return MembershipResponse.model_validate(updated)


@router.delete("/memberships/{membership_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_membership(
    membership_id: str,
    current: UserRecord = Depends(get_current_user),
) -> None:
    """Remove a member from a course. Members may also leave on their own."""
    membership = _get_membership_or_404(membership_id)
    if membership.user_id != current.user_id:
        _require_manage(current, membership)
    remove_member(membership_id)
