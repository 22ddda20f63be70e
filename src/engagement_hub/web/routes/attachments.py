"""Attachment endpoints: upload documents to send along with a prompt."""

import re
from pathlib import Path

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from engagement_hub.config.app_config import load_app_config
from engagement_hub.core.document_extractor import extract_document_text
from engagement_hub.db.attachments_repository import (
    AttachmentRecord,
    create_attachment,
    delete_attachment,
    get_attachment,
    get_chat_attachments,
    get_course_attachments,
)
from engagement_hub.db.chats_repository import get_chat_by_id
from engagement_hub.db.database import generate_id
from engagement_hub.db.users_repository import UserRecord
from engagement_hub.web.deps import (
    get_current_user,
    is_course_instructor,
    require_course_instructor,
)
from engagement_hub.web.schemas import (
    AttachmentListResponse,
    AttachmentResponse,
    CourseAttachmentListResponse,
    CourseAttachmentResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/attachments", tags=["attachments"])

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_name(file_name: str) -> str:
    return _UNSAFE_CHARS.sub("_", Path(file_name).name) or "upload"


def _require_attachment_access(user: UserRecord, attachment: AttachmentRecord) -> None:
    if attachment.user_id == user.user_id:
        return
    chat = get_chat_by_id(attachment.chat_id) if attachment.chat_id else None
    if chat is None or not is_course_instructor(user, chat.course_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You cannot access this attachment",
        )


@router.post("", response_model=AttachmentResponse, status_code=status.HTTP_201_CREATED)
async def upload(
    file: UploadFile = File(...),
    current: UserRecord = Depends(get_current_user),
) -> AttachmentResponse:
    """Upload a document; its text is extracted for use in the next prompt."""
    hub = load_app_config().hub
    data = await file.read()
    file_name = file.filename or "upload"

    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is empty",
        )
    if len(data) > hub.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {hub.max_upload_bytes} byte limit",
        )

    user_dir = Path(hub.uploads_dir) / current.user_id
    user_dir.mkdir(parents=True, exist_ok=True)
    storage_path = user_dir / f"{generate_id()}_{_safe_name(file_name)}"
    storage_path.write_bytes(data)

    extracted = extract_document_text(file_name, data, content_type=file.content_type)
    attachment = create_attachment(
        user_id=current.user_id,
        file_name=file_name,
        storage_path=str(storage_path),
        file_size=len(data),
        extracted_text=extracted.text,
        page_count=extracted.page_count,
        detected_language=extracted.detected_language,
    )

    logger.info(
        "attachments.uploaded",
        attachment_id=attachment.attachment_id,
        size=len(data),
        extracted=extracted.success,
    )
    return AttachmentResponse.model_validate(attachment)


@router.get("/chat/{chat_id}", response_model=AttachmentListResponse)
async def list_chat_attachments(
    chat_id: str,
    current: UserRecord = Depends(get_current_user),
) -> AttachmentListResponse:
    chat = get_chat_by_id(chat_id)
    if chat is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chat '{chat_id}' not found",
        )
    if chat.user_id != current.user_id and not is_course_instructor(current, chat.course_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You cannot access this chat",
        )

    items = [AttachmentResponse.model_validate(a) for a in get_chat_attachments(chat_id)]
    return AttachmentListResponse(attachments=items, count=len(items))


@router.get("/course/{course_id}", response_model=CourseAttachmentListResponse)
async def list_course_attachments(
    course_id: str,
    current: UserRecord = Depends(get_current_user),
) -> CourseAttachmentListResponse:
    """Every document shared in a course's projects (instructors only)."""
    require_course_instructor(current, course_id)
    items = [
        CourseAttachmentResponse.model_validate(a) for a in get_course_attachments(course_id)
    ]
    return CourseAttachmentListResponse(attachments=items, count=len(items))


@router.get("/{attachment_id}", response_model=AttachmentResponse)
async def get_one(
    attachment_id: str,
    current: UserRecord = Depends(get_current_user),
) -> AttachmentResponse:
    attachment = get_attachment(attachment_id)
    if attachment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Attachment '{attachment_id}' not found",
        )
    _require_attachment_access(current, attachment)
    return AttachmentResponse.model_validate(attachment)


@router.delete("/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove(
    attachment_id: str,
    current: UserRecord = Depends(get_current_user),
) -> None:
    """Discard an upload that hasn't been sent with a chat yet."""
    attachment = get_attachment(attachment_id)
    if attachment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Attachment '{attachment_id}' not found",
        )
    if attachment.user_id != current.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only delete your own uploads",
        )
    if attachment.chat_id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Attachment is already part of a chat",
        )

    delete_attachment(attachment_id)
    Path(attachment.storage_path).unlink(missing_ok=True)
