"""Pydantic schemas for the Web API.

Request bodies and response models for users, courses, projects, chats,
tags, reflections, notes, announcements, attachments and analytics.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


# =============================================================================
# USER SCHEMAS
# =============================================================================


class UserCreate(BaseModel):
    """Request body for registering a user."""

    email: str = Field(..., min_length=3, max_length=200)
    name: str = Field(default="", max_length=200)
    role: str = Field(default="student")


class UserUpdate(BaseModel):
    """Request body for updating a user. Omitted fields are left alone."""

    name: str | None = Field(default=None, max_length=200)
    email: str | None = Field(default=None, max_length=200)
    role: str | None = None


class UserResponse(BaseModel):
    """Response for a user."""

    user_id: str
    email: str
    name: str
    role: str
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    """Response for list of users."""

    users: list[UserResponse]
    count: int


class DeletionSummaryResponse(BaseModel):
    """What a complete account deletion removed."""

    user_id: str
    memberships: int
    chats: int
    chat_tags: int
    attachments: int
    files_removed: int
    projects: int
    instructor_notes: int
    reflections: int
    user_deleted: bool
    courses_updated: list[str]

    model_config = {"from_attributes": True}


# =============================================================================
# COURSE SCHEMAS
# =============================================================================


class CourseCreate(BaseModel):
    """Request body for creating a course."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    semester: str | None = None
    year: int | None = None
    course_code: str | None = None
    access_code: str | None = None
    is_trial: bool = False


class CourseUpdate(BaseModel):
    """Request body for updating a course."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    semester: str | None = None
    year: int | None = None
    is_trial: bool | None = None


class CourseResponse(BaseModel):
    """Response for a course."""

    course_id: str
    title: str
    description: str
    course_code: str | None
    semester: str | None
    year: int | None
    access_code: str | None
    is_trial: bool
    instructor_id: str | None
    member_count: int
    instructor_count: int
    student_count: int
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class CourseListResponse(BaseModel):
    """Response for list of courses."""

    courses: list[CourseResponse]
    count: int


class AccessCodeUpdate(BaseModel):
    access_code: str = Field(..., min_length=1, max_length=50)


class JoinCourseRequest(BaseModel):
    """Request body for asking to join a course."""

    access_code: str = Field(..., min_length=1, max_length=50)


class JoinTrialRequest(BaseModel):
    """Request body for joining a trial course by its code."""

    course_code: str = Field(..., min_length=1, max_length=50)
    role: str = Field(default="student")


class AddMemberRequest(BaseModel):
    """Request body for enrolling a user directly."""

    user_id: str
    role: str = Field(default="student")


class MembershipResponse(BaseModel):
    """Response for a course membership."""

    membership_id: str
    user_id: str
    course_id: str
    role: str
    status: str
    added_by: str | None
    approved_by: str | None
    rejected_by: str | None
    joined_at: str | None
    processed_at: str | None
    created_at: str
    updated_at: str
    user: UserResponse | None = None
    course: CourseResponse | None = None

    model_config = {"from_attributes": True}


class MembershipListResponse(BaseModel):
    """Response for list of memberships."""

    memberships: list[MembershipResponse]
    count: int


class MembershipStatusUpdate(BaseModel):
    status: str = Field(..., pattern="^(pending|approved|rejected)$")


class MemberRoleUpdate(BaseModel):
    role: str


class CleanupResponse(BaseModel):
    """Result of an orphaned-membership sweep."""

    cleaned: int
    courses_updated: int


# =============================================================================
# PROJECT SCHEMAS
# =============================================================================


class ProjectCreate(BaseModel):
    """Request body for creating a project."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    course_id: str | None = None


class ProjectUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)


class ProjectResponse(BaseModel):
    """Response for a project."""

    project_id: str
    title: str
    description: str
    created_by: str
    course_id: str | None
    created_at: str
    updated_at: str
    creator_name: str | None = None
    creator_email: str | None = None

    model_config = {"from_attributes": True}


class ProjectListResponse(BaseModel):
    """Response for list of projects."""

    projects: list[ProjectResponse]
    count: int


# =============================================================================
# TAG SCHEMAS
# =============================================================================


class TagCreate(BaseModel):
    """Request body for creating a tag."""

    name: str = Field(..., min_length=1, max_length=100)
    course_id: str | None = None
    color: str = Field(default="#6B7280", max_length=20)
    description: str = Field(default="", max_length=500)
    is_global: bool = False


class TagUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    color: str | None = Field(default=None, max_length=20)
    description: str | None = Field(default=None, max_length=500)


class TagResponse(BaseModel):
    """Response for a tag, with its usage count when computed."""

    tag_id: str
    name: str
    color: str
    description: str
    course_id: str | None
    is_global: bool
    created_by: str | None
    created_at: str
    updated_at: str
    usage_count: int | None = None

    model_config = {"from_attributes": True}


class TagListResponse(BaseModel):
    """Response for list of tags."""

    tags: list[TagResponse]
    count: int


class ChatTagsRequest(BaseModel):
    """Tag IDs to attach to or detach from a chat."""

    tag_ids: list[str] = Field(..., min_length=1)


# =============================================================================
# REFLECTION SCHEMAS
# =============================================================================


class ReflectionCreate(BaseModel):
    content: str = Field(..., min_length=1)


class ReflectionResponse(BaseModel):
    """Response for a reflection."""

    reflection_id: str
    chat_id: str
    user_id: str
    content: str
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


# =============================================================================
# CHAT SCHEMAS
# =============================================================================


class ChatSendRequest(BaseModel):
    """Request body for sending a prompt to an AI tool."""

    project_id: str
    prompt: str = Field(default="", max_length=100000)
    tool: str | None = None
    attachment_ids: list[str] = Field(default_factory=list)


class ChatResponse(BaseModel):
    """Response for a stored chat exchange."""

    chat_id: str
    user_id: str
    project_id: str | None
    course_id: str | None
    prompt: str
    response: str
    tool_used: str | None
    input_tokens: int
    output_tokens: int
    searches: int
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class EnrichedChatResponse(BaseModel):
    """A chat with its author, project, tags and reflection."""

    chat: ChatResponse
    user_name: str
    user_email: str
    project_title: str
    tags: list[TagResponse]
    reflection: ReflectionResponse | None = None
    has_reflection: bool

    model_config = {"from_attributes": True}


class ChatListResponse(BaseModel):
    """Response for list of chats."""

    chats: list[ChatResponse]
    count: int


class EnrichedChatListResponse(BaseModel):
    """Response for list of enriched chats."""

    chats: list[EnrichedChatResponse]
    count: int


# =============================================================================
# NOTE SCHEMAS
# =============================================================================


class NoteCreate(BaseModel):
    """Request body for an instructor note on a project or chat."""

    project_id: str
    content: str = Field(..., min_length=1)
    title: str = Field(default="", max_length=200)
    chat_id: str | None = None
    student_id: str | None = None
    is_visible_to_student: bool = True


class NoteUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    content: str | None = Field(default=None, min_length=1)
    is_visible_to_student: bool | None = None


class NoteResponse(BaseModel):
    """Response for an instructor note."""

    note_id: str
    project_id: str
    chat_id: str | None
    instructor_id: str
    student_id: str | None
    title: str
    content: str
    is_visible_to_student: bool
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class NoteListResponse(BaseModel):
    notes: list[NoteResponse]
    count: int


# =============================================================================
# ANNOUNCEMENT SCHEMAS
# =============================================================================


class AnnouncementCreate(BaseModel):
    """Request body for posting an announcement."""

    course_id: str
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    is_pinned: bool = False


class AnnouncementUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    content: str | None = Field(default=None, min_length=1)


class AnnouncementResponse(BaseModel):
    """Response for an announcement."""

    announcement_id: str
    course_id: str
    author_id: str
    author_name: str
    author_role: str
    title: str
    content: str
    is_pinned: bool
    comment_count: int
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class AnnouncementListResponse(BaseModel):
    announcements: list[AnnouncementResponse]
    count: int


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class CommentResponse(BaseModel):
    """Response for an announcement comment."""

    comment_id: str
    announcement_id: str
    author_id: str
    author_name: str
    content: str
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class CommentListResponse(BaseModel):
    comments: list[CommentResponse]
    count: int


# =============================================================================
# ATTACHMENT SCHEMAS
# =============================================================================


class AttachmentResponse(BaseModel):
    """Response for an uploaded attachment."""

    attachment_id: str
    chat_id: str | None
    user_id: str
    file_name: str
    file_size: int
    extracted_text: str
    page_count: int
    detected_language: str | None
    created_at: str

    model_config = {"from_attributes": True}


class AttachmentListResponse(BaseModel):
    attachments: list[AttachmentResponse]
    count: int


class CourseAttachmentResponse(BaseModel):
    """An attachment shared in a course, with project and uploader."""

    attachment: AttachmentResponse
    project_id: str | None
    project_title: str
    uploader_name: str
    uploader_email: str

    model_config = {"from_attributes": True}


class CourseAttachmentListResponse(BaseModel):
    attachments: list[CourseAttachmentResponse]
    count: int


# =============================================================================
# ANALYTICS SCHEMAS
# =============================================================================


class CostBucketResponse(BaseModel):
    cost: float
    interactions: int
    input_tokens: int
    output_tokens: int
    provider: str | None = None

    model_config = {"from_attributes": True}


class UsageSummaryResponse(BaseModel):
    """Totals and averages over the requested range."""

    total_cost: float
    total_input_tokens: int
    total_output_tokens: int
    total_searches: int
    total_interactions: int
    start_date: str
    end_date: str
    days_in_range: int
    estimated_monthly_cost: float
    average_cost_per_interaction: float
    average_tokens_per_interaction: float


class UserUsageResponse(BaseModel):
    user_id: str
    interactions: int
    total_cost: float
    input_tokens: int
    output_tokens: int
    model_count: int

    model_config = {"from_attributes": True}


class CourseUsageResponse(BaseModel):
    course_id: str
    interactions: int
    total_cost: float
    input_tokens: int
    output_tokens: int
    unique_user_count: int
    model_count: int

    model_config = {"from_attributes": True}


class UsageAnalyticsResponse(BaseModel):
    """Platform usage analytics with per-dimension breakdowns."""

    summary: UsageSummaryResponse
    by_provider: dict[str, CostBucketResponse]
    by_model: dict[str, CostBucketResponse]
    by_user: dict[str, UserUsageResponse]
    by_course: dict[str, CourseUsageResponse]
    daily_costs: dict[str, float]


class QuickStatsResponse(BaseModel):
    total_cost: float
    total_interactions: int
    total_tokens: int
    estimated_monthly_cost: float
    top_model: str
    days: int

    model_config = {"from_attributes": True}


class CourseOverviewResponse(BaseModel):
    """Engagement figures for one course."""

    course_id: str
    total_chats: int
    total_projects: int
    active_students: int
    chats_with_reflections: int
    tagged_chats: int
    reflection_completion_rate: float
    tool_usage: dict[str, int]

    model_config = {"from_attributes": True}


class DailyUsageResponse(BaseModel):
    day: str
    course_id: str
    model: str
    provider: str
    interactions: int
    input_tokens: int
    output_tokens: int
    searches: int
    cost: float
    computed_at: str

    model_config = {"from_attributes": True}


class DailyUsageListResponse(BaseModel):
    rows: list[DailyUsageResponse]
    count: int


# =============================================================================
# HEALTH / ADMIN SCHEMAS
# =============================================================================


class HealthResponse(BaseModel):
    """Response for health check."""

    status: str
    version: str
    timestamp: str


class ProviderStatusResponse(BaseModel):
    provider: str
    model: str
    configured: bool
    available: bool

    model_config = {"from_attributes": True}


class ProviderHealthResponse(BaseModel):
    """Availability of every configured AI provider."""

    providers: list[ProviderStatusResponse]
    healthy: bool
