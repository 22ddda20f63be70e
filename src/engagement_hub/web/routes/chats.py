"""Chat endpoints: sending prompts, browsing, tagging, reflections and export."""

from datetime import date

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from engagement_hub.core.chat_service import (
    ProjectNotFoundError,
    UnknownToolError,
    send_chat,
)
from engagement_hub.core.exporter import export_chats_csv, export_filename
from engagement_hub.core.retry import RetryExhaustedError
from engagement_hub.core.roles import PermissionDeniedError
from engagement_hub.db.chats_repository import (
    ChatFilters,
    ChatRecord,
    enrich_chats,
    get_chat_by_id,
    get_chats_with_filters,
    get_project_chats,
)
from engagement_hub.db.reflections_repository import (
    DuplicateReflectionError,
    create_reflection,
    delete_reflection,
    get_reflection_by_chat,
    update_reflection,
)
from engagement_hub.db.tags_repository import (
    add_tags_to_chat,
    get_chat_tags,
    get_tag_by_id,
    remove_tags_from_chat,
)
from engagement_hub.db.users_repository import UserRecord
from engagement_hub.llm.client import LLMError
from engagement_hub.web.deps import (
    forbidden,
    get_current_user,
    has_platform_oversight,
    is_course_instructor,
    require_course_instructor,
)
from engagement_hub.web.routes.projects import can_view_project, get_project_or_404
from engagement_hub.web.schemas import (
    ChatListResponse,
    ChatResponse,
    ChatSendRequest,
    ChatTagsRequest,
    EnrichedChatListResponse,
    EnrichedChatResponse,
    ReflectionCreate,
    ReflectionResponse,
    TagListResponse,
    TagResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/chats", tags=["chats"])


def _get_chat_or_404(chat_id: str) -> ChatRecord:
    chat = get_chat_by_id(chat_id)
    if chat is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chat '{chat_id}' not found",
        )
    return chat


def _require_chat_access(user: UserRecord, chat: ChatRecord) -> None:
    if chat.user_id != user.user_id and not is_course_instructor(user, chat.course_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You cannot access this chat",
        )


def _require_chat_owner(user: UserRecord, chat: ChatRecord) -> None:
    if chat.user_id != user.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the chat's author can do this",
        )


def _scoped_filters(
    current: UserRecord,
    course_id: str | None,
    user_id: str | None,
    **kwargs,
) -> ChatFilters:
    """Build filters the caller is allowed to run.

    Course instructors may filter a whole course; everyone else only sees
    their own chats.
    """
    if course_id and is_course_instructor(current, course_id):
        return ChatFilters(course_id=course_id, user_id=user_id, **kwargs)
    if not course_id and has_platform_oversight(current):
        return ChatFilters(user_id=user_id, **kwargs)
    if user_id and user_id != current.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only list your own chats",
        )
    return ChatFilters(course_id=course_id, user_id=current.user_id, **kwargs)


@router.post("", response_model=ChatResponse, status_code=status.HTTP_201_CREATED)
def send(
    request: ChatSendRequest,
    current: UserRecord = Depends(get_current_user),
) -> ChatResponse:
    """Send a prompt (and attachments) to an AI tool and store the exchange."""
    try:
        chat = send_chat(
            user_id=current.user_id,
            project_id=request.project_id,
            prompt=request.prompt,
            tool=request.tool,
            attachment_ids=request.attachment_ids,
        )
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionDeniedError as e:
        raise forbidden(e)
    except UnknownToolError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except (LLMError, RetryExhaustedError) as e:
        logger.error("chats.send_failed", project_id=request.project_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"AI provider error: {e}",
        )
    return ChatResponse.model_validate(chat)


@router.get("", response_model=EnrichedChatListResponse)
async def list_chats(
    course_id: str | None = None,
    user_id: str | None = None,
    project_id: str | None = None,
    tool_used: str | None = None,
    tag_id: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    has_reflection: bool | None = None,
    limit: int = Query(default=1000, ge=1, le=5000),
    current: UserRecord = Depends(get_current_user),
) -> EnrichedChatListResponse:
    """List chats matching the filters, newest first."""
    filters = _scoped_filters(
        current,
        course_id,
        user_id,
        project_id=project_id,
        tool_used=tool_used,
        tag_id=tag_id,
        start_date=start_date,
        end_date=end_date,
        has_reflection=has_reflection,
        limit=limit,
    )
    chats = [EnrichedChatResponse.model_validate(c) for c in get_chats_with_filters(filters)]
    return EnrichedChatListResponse(chats=chats, count=len(chats))


@router.get("/export")
async def export_chats(
    course_id: str,
    user_id: str | None = None,
    tool_used: str | None = None,
    tag_id: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    has_reflection: bool | None = None,
    current: UserRecord = Depends(get_current_user),
) -> Response:
    """Download a course's chats as CSV (instructors only)."""
    require_course_instructor(current, course_id)
    chats = get_chats_with_filters(
        ChatFilters(
            course_id=course_id,
            user_id=user_id,
            tool_used=tool_used,
            tag_id=tag_id,
            start_date=start_date,
            end_date=end_date,
            has_reflection=has_reflection,
        )
    )
    filename = export_filename("ai_interactions")
    logger.info("chats.exported", course_id=course_id, count=len(chats))
    return Response(
        content=export_chats_csv(chats),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/project/{project_id}", response_model=ChatListResponse)
async def list_project_chats(
    project_id: str,
    current: UserRecord = Depends(get_current_user),
) -> ChatListResponse:
    """The conversation of a project, oldest first."""
    project = get_project_or_404(project_id)
    if not can_view_project(current, project):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You cannot view this project",
        )
    chats = [ChatResponse.model_validate(c) for c in get_project_chats(project_id)]
    return ChatListResponse(chats=chats, count=len(chats))


@router.get("/{chat_id}", response_model=EnrichedChatResponse)
async def get_chat(
    chat_id: str,
    current: UserRecord = Depends(get_current_user),
) -> EnrichedChatResponse:
    chat = _get_chat_or_404(chat_id)
    _require_chat_access(current, chat)
    return EnrichedChatResponse.model_validate(enrich_chats([chat])[0])


# =============================================================================
# TAGS ON A CHAT
# =============================================================================


@router.get("/{chat_id}/tags", response_model=TagListResponse)
async def list_chat_tags(
    chat_id: str,
    current: UserRecord = Depends(get_current_user),
) -> TagListResponse:
    chat = _get_chat_or_404(chat_id)
    _require_chat_access(current, chat)
    tags = [TagResponse.model_validate(t) for t in get_chat_tags(chat_id)]
    return TagListResponse(tags=tags, count=len(tags))


@router.post("/{chat_id}/tags", response_model=TagListResponse)
async def tag_chat(
    chat_id: str,
    request: ChatTagsRequest,
    current: UserRecord = Depends(get_current_user),
) -> TagListResponse:
    """Attach tags to a chat. Already attached tags are ignored.

    Each tag must exist and be either global or a tag of the chat's course.
    """
    chat = _get_chat_or_404(chat_id)
    _require_chat_access(current, chat)
    for tag_id in request.tag_ids:
        tag = get_tag_by_id(tag_id)
        if tag is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Tag '{tag_id}' not found",
            )
        if not tag.is_global and tag.course_id is not None and tag.course_id != chat.course_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Tag '{tag.name}' belongs to another course",
            )
    add_tags_to_chat(chat_id, request.tag_ids)
    tags = [TagResponse.model_validate(t) for t in get_chat_tags(chat_id)]
    return TagListResponse(tags=tags, count=len(tags))


@router.delete("/{chat_id}/tags", response_model=TagListResponse)
async def untag_chat(
    chat_id: str,
    tag_ids: list[str] = Query(...),
    current: UserRecord = Depends(get_current_user),
) -> TagListResponse:
    chat = _get_chat_or_404(chat_id)
    _require_chat_access(current, chat)
    remove_tags_from_chat(chat_id, tag_ids)
    tags = [TagResponse.model_validate(t) for t in get_chat_tags(chat_id)]
    return TagListResponse(tags=tags, count=len(tags))


# =============================================================================
# REFLECTION
# =============================================================================


@router.get("/{chat_id}/reflection", response_model=ReflectionResponse)
async def get_chat_reflection(
    chat_id: str,
    current: UserRecord = Depends(get_current_user),
) -> ReflectionResponse:
    chat = _get_chat_or_404(chat_id)
    _require_chat_access(current, chat)
    reflection = get_reflection_by_chat(chat_id)
    if reflection is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chat '{chat_id}' has no reflection",
        )
    return ReflectionResponse.model_validate(reflection)


@router.post(
    "/{chat_id}/reflection",
    response_model=ReflectionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_reflection(
    chat_id: str,
    request: ReflectionCreate,
    current: UserRecord = Depends(get_current_user),
) -> ReflectionResponse:
    """Write the student's reflection on a chat (one per chat)."""
    chat = _get_chat_or_404(chat_id)
    _require_chat_owner(current, chat)
    try:
        reflection = create_reflection(chat_id, current.user_id, request.content)
    except DuplicateReflectionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return ReflectionResponse.model_validate(reflection)


@router.put("/{chat_id}/reflection", response_model=ReflectionResponse)
async def edit_reflection(
    chat_id: str,
    request: ReflectionCreate,
    current: UserRecord = Depends(get_current_user),
) -> ReflectionResponse:
    chat = _get_chat_or_404(chat_id)
    _require_chat_owner(current, chat)
    reflection = get_reflection_by_chat(chat_id)
    if reflection is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chat '{chat_id}' has no reflection",
        )
    updated = update_reflection(reflection.reflection_id, request.content)
    return ReflectionResponse.model_validate(updated)


@router.delete("/{chat_id}/reflection", status_code=status.HTTP_204_NO_CONTENT)
async def remove_reflection(
    chat_id: str,
    current: UserRecord = Depends(get_current_user),
) -> None:
    chat = _get_chat_or_404(chat_id)
    _require_chat_owner(current, chat)
    reflection = get_reflection_by_chat(chat_id)
    if reflection is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chat '{chat_id}' has no reflection",
        )
    delete_reflection(reflection.reflection_id)
