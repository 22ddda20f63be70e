"""Project endpoints."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status

from engagement_hub.core.account_cleanup import delete_project_cascade
from engagement_hub.db.courses_repository import get_course_by_id
from engagement_hub.db.projects_repository import (
    ProjectRecord,
    create_project,
    get_all_projects,
    get_project_by_id,
    get_user_projects,
    update_project,
)
from engagement_hub.db.users_repository import UserRecord
from engagement_hub.web.deps import (
    get_current_user,
    is_course_instructor,
    require_course_instructor,
    require_course_member,
)
from engagement_hub.web.schemas import (
    ProjectCreate,
    ProjectListResponse,
    ProjectResponse,
    ProjectUpdate,
)

router = APIRouter(prefix="/api/projects", tags=["projects"])


def get_project_or_404(project_id: str) -> ProjectRecord:
    project = get_project_by_id(project_id)
    if project is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Project '{project_id}' not found",
        )
    return project


def can_view_project(user: UserRecord, project: ProjectRecord) -> bool:
    """Owners see their projects; instructors see projects of their courses."""
    return project.created_by == user.user_id or is_course_instructor(user, project.course_id)


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create(
    project_data: ProjectCreate,
    current: UserRecord = Depends(get_current_user),
) -> ProjectResponse:
    """Create a project, optionally inside a course the caller belongs to."""
    if project_data.course_id:
        if get_course_by_id(project_data.course_id) is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Course '{project_data.course_id}' not found",
            )
        require_course_member(current, project_data.course_id)

    project = create_project(
        title=project_data.title,
        created_by=current.user_id,
        course_id=project_data.course_id,
        description=project_data.description,
    )
    return ProjectResponse.model_validate(project)


@router.get("", response_model=ProjectListResponse)
async def list_my_projects(
    course_id: str | None = None,
    current: UserRecord = Depends(get_current_user),
) -> ProjectListResponse:
    """List the caller's projects, newest first."""
    projects = [
        ProjectResponse.model_validate(p)
        for p in get_user_projects(current.user_id, course_id=course_id)
    ]
    return ProjectListResponse(projects=projects, count=len(projects))


@router.get("/course/{course_id}", response_model=ProjectListResponse)
async def list_course_projects(
    course_id: str,
    current: UserRecord = Depends(get_current_user),
) -> ProjectListResponse:
    """All projects of a course with their creators (instructors only)."""
    require_course_instructor(current, course_id)
    projects = [
        ProjectResponse(
            **asdict(item.project),
            creator_name=item.creator_name,
            creator_email=item.creator_email,
        )
        for item in get_all_projects(course_id=course_id)
    ]
    return ProjectListResponse(projects=projects, count=len(projects))


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: str,
    current: UserRecord = Depends(get_current_user),
) -> ProjectResponse:
    project = get_project_or_404(project_id)
    if not can_view_project(current, project):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You cannot view this project",
        )
    return ProjectResponse.model_validate(project)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def patch_project(
    project_id: str,
    project_data: ProjectUpdate,
    current: UserRecord = Depends(get_current_user),
) -> ProjectResponse:
    project = get_project_or_404(project_id)
    if project.created_by != current.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the project owner can edit it",
        )
    updated = update_project(
        project_id,
        title=project_data.title,
        description=project_data.description,
    )
    return ProjectResponse.model_validate(updated)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(
    project_id: str,
    current: UserRecord = Depends(get_current_user),
) -> None:
    """Delete a project together with its chats and notes."""
    project = get_project_or_404(project_id)
    if not can_view_project(current, project):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You cannot delete this project",
        )
    delete_project_cascade(project_id)
