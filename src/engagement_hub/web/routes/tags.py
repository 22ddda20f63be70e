"""Tag endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from engagement_hub.core.roles import PermissionDeniedError
from engagement_hub.db.chats_repository import get_tagged_chats
from engagement_hub.db.tags_repository import (
    TagRecord,
    create_global_educational_tags,
    create_tag,
    delete_tag,
    get_all_tags,
    get_course_tags_with_usage,
    get_global_tags_with_usage,
    get_tag_by_id,
    update_tag,
)
from engagement_hub.db.users_repository import UserRecord
from engagement_hub.web.deps import (
    course_role,
    forbidden,
    get_current_user,
    has_platform_oversight,
    require_course_instructor,
    require_course_member,
)
from engagement_hub.web.schemas import (
    EnrichedChatListResponse,
    EnrichedChatResponse,
    TagCreate,
    TagListResponse,
    TagResponse,
    TagUpdate,
)

router = APIRouter(prefix="/api/tags", tags=["tags"])


def _get_tag_or_404(tag_id: str) -> TagRecord:
    tag = get_tag_by_id(tag_id)
    if tag is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tag '{tag_id}' not found",
        )
    return tag


def _require_tag_editor(user: UserRecord, tag: TagRecord) -> None:
    if tag.course_id:
        require_course_instructor(user, tag.course_id)
    elif not has_platform_oversight(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can edit global tags",
        )


def _tag_list(tags: list[TagRecord]) -> TagListResponse:
    items = [TagResponse.model_validate(t) for t in tags]
    return TagListResponse(tags=items, count=len(items))


@router.post("", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create(
    tag_data: TagCreate,
    current: UserRecord = Depends(get_current_user),
) -> TagResponse:
    """Create a course tag, or a global one (admins only)."""
    if tag_data.course_id:
        role = course_role(current, tag_data.course_id)
        if role is None:
            require_course_member(current, tag_data.course_id)
            role = current.role
    elif has_platform_oversight(current):
        role = current.role
    else:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can create global tags",
        )

    try:
        tag = create_tag(
            name=tag_data.name,
            user_role=role,
            course_id=tag_data.course_id,
            color=tag_data.color,
            description=tag_data.description,
            is_global=tag_data.is_global or tag_data.course_id is None,
            created_by=current.user_id,
        )
    except PermissionDeniedError as e:
        raise forbidden(e)
    return TagResponse.model_validate(tag)


@router.get("", response_model=TagListResponse)
async def list_tags(
    course_id: str | None = None,
    current: UserRecord = Depends(get_current_user),
) -> TagListResponse:
    """List tags by name, optionally only those of one course."""
    if course_id:
        require_course_member(current, course_id)
    return _tag_list(get_all_tags(course_id))


@router.get("/global/usage", response_model=TagListResponse)
async def list_global_usage(current: UserRecord = Depends(get_current_user)) -> TagListResponse:
    return _tag_list(get_global_tags_with_usage())


@router.get("/course/{course_id}/usage", response_model=TagListResponse)
async def list_course_usage(
    course_id: str,
    current: UserRecord = Depends(get_current_user),
) -> TagListResponse:
    """A course's tags with the number of chats carrying each."""
    require_course_instructor(current, course_id)
    return _tag_list(get_course_tags_with_usage(course_id))


@router.post("/seed-global", response_model=TagListResponse)
async def seed_global(current: UserRecord = Depends(get_current_user)) -> TagListResponse:
    """Create the standard educational tags that don't exist yet."""
    if not has_platform_oversight(current):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can seed global tags",
        )
    return _tag_list(create_global_educational_tags())


@router.get("/{tag_id}", response_model=TagResponse)
async def get_tag(
    tag_id: str,
    current: UserRecord = Depends(get_current_user),
) -> TagResponse:
    return TagResponse.model_validate(_get_tag_or_404(tag_id))


@router.get("/{tag_id}/chats", response_model=EnrichedChatListResponse)
async def list_tagged_chats(
    tag_id: str,
    course_id: str | None = None,
    current: UserRecord = Depends(get_current_user),
) -> EnrichedChatListResponse:
    """Chats carrying a tag, newest first."""
    _get_tag_or_404(tag_id)
    if course_id:
        require_course_instructor(current, course_id)
    elif not has_platform_oversight(current):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="course_id is required",
        )

    chats = [EnrichedChatResponse.model_validate(c) for c in get_tagged_chats(tag_id, course_id)]
    return EnrichedChatListResponse(chats=chats, count=len(chats))


@router.patch("/{tag_id}", response_model=TagResponse)
async def patch_tag(
    tag_id: str,
    tag_data: TagUpdate,
    current: UserRecord = Depends(get_current_user),
) -> TagResponse:
    tag = _get_tag_or_404(tag_id)
    _require_tag_editor(current, tag)
    updated = update_tag(
        tag_id,
        name=tag_data.name,
        color=tag_data.color,
        description=tag_data.description,
    )
    return TagResponse.model_validate(updated)


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_tag(
    tag_id: str,
    current: UserRecord = Depends(get_current_user),
) -> None:
    """Delete a tag and detach it from every chat."""
    tag = _get_tag_or_404(tag_id)
    _require_tag_editor(current, tag)
    delete_tag(tag_id)
