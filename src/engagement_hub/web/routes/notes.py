"""Instructor note endpoints.

Instructors of a project's course see every note; the student who owns
the project only sees notes marked visible to them.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from engagement_hub.core.roles import PermissionDeniedError
from engagement_hub.db.chats_repository import get_chat_by_id
from engagement_hub.db.notes_repository import (
    NoteRecord,
    create_note,
    delete_note,
    get_chat_notes,
    get_note_by_id,
    get_project_notes,
    update_note,
)
from engagement_hub.db.projects_repository import ProjectRecord
from engagement_hub.db.users_repository import UserRecord
from engagement_hub.web.deps import forbidden, get_current_user, is_course_instructor
from engagement_hub.web.routes.projects import get_project_or_404
from engagement_hub.web.schemas import NoteCreate, NoteListResponse, NoteResponse, NoteUpdate

router = APIRouter(prefix="/api/notes", tags=["notes"])


def _visible_only(user: UserRecord, project: ProjectRecord) -> bool:
    """Whether the caller is limited to student-visible notes.

    Raises 403 when the caller may not read the project's notes at all.
    """
    if is_course_instructor(user, project.course_id):
        return False
    if project.created_by == user.user_id:
        return True
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You cannot view notes on this project",
    )


def _note_list(notes: list[NoteRecord]) -> NoteListResponse:
    items = [NoteResponse.model_validate(n) for n in notes]
    return NoteListResponse(notes=items, count=len(items))


@router.post("", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def create(
    note_data: NoteCreate,
    current: UserRecord = Depends(get_current_user),
) -> NoteResponse:
    """Leave a note on a student's project (instructors of its course only)."""
    project = get_project_or_404(note_data.project_id)
    if not is_course_instructor(current, project.course_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only instructors can write notes",
        )

    if note_data.chat_id:
        chat = get_chat_by_id(note_data.chat_id)
        if chat is None or chat.project_id != project.project_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Chat '{note_data.chat_id}' is not part of this project",
            )

    note = create_note(
        project_id=project.project_id,
        instructor_id=current.user_id,
        content=note_data.content,
        title=note_data.title,
        chat_id=note_data.chat_id,
        student_id=note_data.student_id or project.created_by,
        is_visible_to_student=note_data.is_visible_to_student,
    )
    return NoteResponse.model_validate(note)


@router.get("/project/{project_id}", response_model=NoteListResponse)
async def list_project_notes(
    project_id: str,
    current: UserRecord = Depends(get_current_user),
) -> NoteListResponse:
    project = get_project_or_404(project_id)
    visible_only = _visible_only(current, project)
    return _note_list(get_project_notes(project_id, visible_only=visible_only))


@router.get("/chat/{chat_id}", response_model=NoteListResponse)
async def list_chat_notes(
    chat_id: str,
    current: UserRecord = Depends(get_current_user),
) -> NoteListResponse:
    chat = get_chat_by_id(chat_id)
    if chat is None or chat.project_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chat '{chat_id}' not found",
        )

    project = get_project_or_404(chat.project_id)
    notes = get_chat_notes(chat_id)
    if _visible_only(current, project):
        notes = [n for n in notes if n.is_visible_to_student]
    return _note_list(notes)


@router.patch("/{note_id}", response_model=NoteResponse)
async def patch_note(
    note_id: str,
    note_data: NoteUpdate,
    current: UserRecord = Depends(get_current_user),
) -> NoteResponse:
    note = get_note_by_id(note_id)
    if note is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Note '{note_id}' not found",
        )
    if note.instructor_id != current.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only edit your own notes",
        )

    updated = update_note(
        note_id,
        title=note_data.title,
        content=note_data.content,
        is_visible_to_student=note_data.is_visible_to_student,
    )
    return NoteResponse.model_validate(updated)


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_note(
    note_id: str,
    current: UserRecord = Depends(get_current_user),
) -> None:
    try:
        deleted = delete_note(note_id, current.user_id)
    except PermissionDeniedError as e:
        raise forbidden(e)

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Note '{note_id}' not found",
        )
