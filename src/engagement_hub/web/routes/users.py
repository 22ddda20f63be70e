"""User endpoints."""

import sqlite3

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from engagement_hub.core.account_cleanup import (
    AccountCleanupError,
    InvalidArgumentError,
    delete_user_completely,
)
from engagement_hub.core.roles import (
    ADMIN,
    SELF_SERVICE_ROLES,
    PermissionDeniedError,
    is_instructor_level,
)
from engagement_hub.db.courses_repository import get_user_courses
from engagement_hub.db.users_repository import (
    UserRecord,
    create_user,
    get_all_users,
    get_user_by_email,
    get_user_by_id,
    search_users,
    update_user,
)
from engagement_hub.web.deps import forbidden, get_current_user, require_admin
from engagement_hub.web.schemas import (
    DeletionSummaryResponse,
    MembershipListResponse,
    MembershipResponse,
    UserCreate,
    UserListResponse,
    UserResponse,
    UserUpdate,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_user(user_data: UserCreate) -> UserResponse:
    """Register a new user."""
    if "@" not in user_data.email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid email format",
        )

    if user_data.role not in SELF_SERVICE_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Role '{user_data.role}' cannot be chosen at registration",
        )

    if get_user_by_email(user_data.email) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User with email '{user_data.email}' already exists",
        )

    user = create_user(email=user_data.email, name=user_data.name, role=user_data.role)
    return UserResponse.model_validate(user)


@router.get("", response_model=UserListResponse)
async def list_users(current: UserRecord = Depends(get_current_user)) -> UserListResponse:
    """List all users (admin only)."""
    require_admin(current)
    users = [UserResponse.model_validate(u) for u in get_all_users()]
    return UserListResponse(users=users, count=len(users))


@router.get("/search", response_model=UserListResponse)
async def search(
    q: str,
    exclude_course_id: str | None = None,
    limit: int = 20,
    current: UserRecord = Depends(get_current_user),
) -> UserListResponse:
    """Search users by name or e-mail, e.g. to add them to a course."""
    if not is_instructor_level(current.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only instructors can search users",
        )

    users = [
        UserResponse.model_validate(u)
        for u in search_users(q, exclude_course_id=exclude_course_id, limit=limit)
    ]
    return UserListResponse(users=users, count=len(users))


@router.get("/me", response_model=UserResponse)
async def get_me(current: UserRecord = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(current)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    current: UserRecord = Depends(get_current_user),
) -> UserResponse:
    """Get a specific user by ID."""
    if current.user_id != user_id and not is_instructor_level(current.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own profile",
        )

    user = get_user_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User '{user_id}' not found",
        )
    return UserResponse.model_validate(user)


@router.patch("/{user_id}", response_model=UserResponse)
async def patch_user(
    user_id: str,
    user_data: UserUpdate,
    current: UserRecord = Depends(get_current_user),
) -> UserResponse:
    """Update a profile. Changing the role is reserved to admins."""
    is_admin = current.role == ADMIN
    if current.user_id != user_id and not is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only edit your own profile",
        )
    if user_data.role is not None and not is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can change roles",
        )

    try:
        user = update_user(
            user_id,
            name=user_data.name,
            email=user_data.email,
            role=user_data.role,
        )
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User '{user_id}' not found",
        )
    except sqlite3.IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User with email '{user_data.email}' already exists",
        )
    return UserResponse.model_validate(user)


@router.get("/{user_id}/courses", response_model=MembershipListResponse)
async def list_user_courses(
    user_id: str,
    current: UserRecord = Depends(get_current_user),
) -> MembershipListResponse:
    """Approved course memberships of a user, with the courses attached."""
    if current.user_id != user_id and current.role != ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only list your own courses",
        )

    memberships = [MembershipResponse.model_validate(m) for m in get_user_courses(user_id)]
    return MembershipListResponse(memberships=memberships, count=len(memberships))


@router.delete("/{user_id}", response_model=DeletionSummaryResponse)
def delete_user(
    user_id: str,
    current: UserRecord = Depends(get_current_user),
) -> DeletionSummaryResponse:
    """Delete a user and all of their data (admin only)."""
    try:
        summary = delete_user_completely(user_id, current.user_id)
    except InvalidArgumentError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PermissionDeniedError as e:
        raise forbidden(e)
    except AccountCleanupError as e:
        logger.error("users.delete_failed", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )

    # A missing user row still sweeps leftover data; user_deleted reports it
    return DeletionSummaryResponse.model_validate(summary)
