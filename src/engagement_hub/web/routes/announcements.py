"""Course announcement and comment endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from engagement_hub.db.announcements_repository import (
    AnnouncementNotFoundError,
    AnnouncementRecord,
    CommentRecord,
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
from engagement_hub.db.users_repository import UserRecord
from engagement_hub.web.deps import (
    course_role,
    get_current_user,
    is_course_instructor,
    require_course_instructor,
    require_course_member,
)
from engagement_hub.web.schemas import (
    AnnouncementCreate,
    AnnouncementListResponse,
    AnnouncementResponse,
    AnnouncementUpdate,
    CommentCreate,
    CommentListResponse,
    CommentResponse,
)

router = APIRouter(prefix="/api/announcements", tags=["announcements"])


def _get_announcement_or_404(announcement_id: str) -> AnnouncementRecord:
    announcement = get_announcement(announcement_id)
    if announcement is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Announcement '{announcement_id}' not found",
        )
    return announcement


def _get_comment_or_404(comment_id: str) -> CommentRecord:
    comment = get_comment(comment_id)
    if comment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Comment '{comment_id}' not found",
        )
    return comment


@router.post("", response_model=AnnouncementResponse, status_code=status.HTTP_201_CREATED)
async def create(
    data: AnnouncementCreate,
    current: UserRecord = Depends(get_current_user),
) -> AnnouncementResponse:
    """Post an announcement to a course (instructors only)."""
    require_course_instructor(current, data.course_id)
    announcement = create_announcement(
        course_id=data.course_id,
        author_id=current.user_id,
        title=data.title,
        content=data.content,
        author_name=current.display_name,
        author_role=course_role(current, data.course_id) or current.role,
        is_pinned=data.is_pinned,
    )
    return AnnouncementResponse.model_validate(announcement)


@router.get("/course/{course_id}", response_model=AnnouncementListResponse)
async def list_course_announcements(
    course_id: str,
    current: UserRecord = Depends(get_current_user),
) -> AnnouncementListResponse:
    """Announcements of a course, pinned first, then newest first."""
    require_course_member(current, course_id)
    items = [AnnouncementResponse.model_validate(a) for a in get_course_announcements(course_id)]
    return AnnouncementListResponse(announcements=items, count=len(items))


@router.get("/{announcement_id}", response_model=AnnouncementResponse)
async def get_one(
    announcement_id: str,
    current: UserRecord = Depends(get_current_user),
) -> AnnouncementResponse:
    announcement = _get_announcement_or_404(announcement_id)
    require_course_member(current, announcement.course_id)
    return AnnouncementResponse.model_validate(announcement)


@router.patch("/{announcement_id}", response_model=AnnouncementResponse)
async def patch_announcement(
    announcement_id: str,
    data: AnnouncementUpdate,
    current: UserRecord = Depends(get_current_user),
) -> AnnouncementResponse:
    announcement = _get_announcement_or_404(announcement_id)
    require_course_instructor(current, announcement.course_id)
    try:
        updated = update_announcement(announcement_id, title=data.title, content=data.content)
    except AnnouncementNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return AnnouncementResponse.model_validate(updated)


@router.post("/{announcement_id}/pin", response_model=AnnouncementResponse)
async def pin(
    announcement_id: str,
    current: UserRecord = Depends(get_current_user),
) -> AnnouncementResponse:
    """Toggle whether the announcement is pinned to the top."""
    announcement = _get_announcement_or_404(announcement_id)
    require_course_instructor(current, announcement.course_id)
    try:
        updated = toggle_pin(announcement_id)
    except AnnouncementNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return AnnouncementResponse.model_validate(updated)


@router.delete("/{announcement_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_announcement(
    announcement_id: str,
    current: UserRecord = Depends(get_current_user),
) -> None:
    """Delete an announcement with its comments."""
    announcement = _get_announcement_or_404(announcement_id)
    require_course_instructor(current, announcement.course_id)
    delete_announcement(announcement_id)


# =============================================================================
# COMMENTS
# =============================================================================


@router.get("/{announcement_id}/comments", response_model=CommentListResponse)
async def list_comments(
    announcement_id: str,
    current: UserRecord = Depends(get_current_user),
) -> CommentListResponse:
    announcement = _get_announcement_or_404(announcement_id)
    require_course_member(current, announcement.course_id)
    items = [CommentResponse.model_validate(c) for c in get_comments(announcement_id)]
    return CommentListResponse(comments=items, count=len(items))


@router.post(
    "/{announcement_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def comment(
    announcement_id: str,
    data: CommentCreate,
    current: UserRecord = Depends(get_current_user),
) -> CommentResponse:
    announcement = _get_announcement_or_404(announcement_id)
    require_course_member(current, announcement.course_id)
    try:
        created = add_comment(
            announcement_id,
            current.user_id,
            data.content,
            author_name=current.display_name,
        )
    except AnnouncementNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return CommentResponse.model_validate(created)


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
async def patch_comment(
    comment_id: str,
    data: CommentCreate,
    current: UserRecord = Depends(get_current_user),
) -> CommentResponse:
    existing = _get_comment_or_404(comment_id)
    if existing.author_id != current.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only edit your own comments",
        )
    return CommentResponse.model_validate(update_comment(comment_id, data.content))


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_comment(
    comment_id: str,
    current: UserRecord = Depends(get_current_user),
) -> None:
    """Authors may delete their comments; course instructors may delete any."""
    existing = _get_comment_or_404(comment_id)
    if existing.author_id != current.user_id:
        announcement = get_announcement(existing.announcement_id)
        course_id = announcement.course_id if announcement else None
        if not is_course_instructor(current, course_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only delete your own comments",
            )
    delete_comment(comment_id)
