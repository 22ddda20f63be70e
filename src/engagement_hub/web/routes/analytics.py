"""Usage analytics endpoints for instructors and platform admins."""

from datetime import date, datetime, time, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from engagement_hub.core.analytics import (
    get_course_overview,
    get_daily_usage,
    get_platform_usage_analytics,
    get_quick_platform_stats,
    refresh_daily_usage,
)
from engagement_hub.core.exporter import export_filename, export_usage_csv
from engagement_hub.db.courses_repository import get_course_by_id, get_courses_by_ids
from engagement_hub.db.users_repository import UserRecord
from engagement_hub.web.deps import (
    get_current_user,
    has_platform_oversight,
    require_course_instructor,
)
from engagement_hub.web.schemas import (
    CostBucketResponse,
    CourseOverviewResponse,
    CourseUsageResponse,
    DailyUsageListResponse,
    DailyUsageResponse,
    QuickStatsResponse,
    UsageAnalyticsResponse,
    UsageSummaryResponse,
    UserUsageResponse,
)

router = APIRouter(prefix="/api/analytics", tags=["analytics"])

DEFAULT_RANGE_DAYS = 30


def _require_scope(user: UserRecord, course_id: str | None) -> None:
    """Course figures need course instructor access; platform figures need an admin."""
    if course_id:
        require_course_instructor(user, course_id)
    elif not has_platform_oversight(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required for platform analytics",
        )


def _date_range(start_date: date | None, end_date: date | None) -> tuple[datetime, datetime]:
    """Whole UTC days from start_date to end_date; the last 30 days by default."""
    end_date = end_date or datetime.now(timezone.utc).date()
    start_date = start_date or end_date - timedelta(days=DEFAULT_RANGE_DAYS - 1)
    if start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start_date must not be after end_date",
        )
    return (
        datetime.combine(start_date, time.min, tzinfo=timezone.utc),
        datetime.combine(end_date, time.max, tzinfo=timezone.utc),
    )


@router.get("/usage", response_model=UsageAnalyticsResponse)
async def platform_usage(
    start_date: date | None = None,
    end_date: date | None = None,
    course_id: str | None = None,
    current: UserRecord = Depends(get_current_user),
) -> UsageAnalyticsResponse:
    """Cost and token usage with breakdowns by provider, model, user, course and day."""
    _require_scope(current, course_id)
    start, end = _date_range(start_date, end_date)
    analytics = get_platform_usage_analytics(start, end, course_id=course_id)

    summary = analytics.summary
    cost = summary.cost
    breakdown = analytics.breakdown
    return UsageAnalyticsResponse(
        summary=UsageSummaryResponse(
            total_cost=cost.total_cost,
            total_input_tokens=cost.total_input_tokens,
            total_output_tokens=cost.total_output_tokens,
            total_searches=cost.total_searches,
            total_interactions=cost.total_interactions,
            start_date=summary.start_date.isoformat(),
            end_date=summary.end_date.isoformat(),
            days_in_range=summary.days_in_range,
            estimated_monthly_cost=summary.estimated_monthly_cost,
            average_cost_per_interaction=summary.average_cost_per_interaction,
            average_tokens_per_interaction=summary.average_tokens_per_interaction,
        ),
        by_provider={
            k: CostBucketResponse.model_validate(v) for k, v in breakdown.by_provider.items()
        },
        by_model={k: CostBucketResponse.model_validate(v) for k, v in breakdown.by_model.items()},
        by_user={k: UserUsageResponse.model_validate(v) for k, v in breakdown.by_user.items()},
        by_course={
            k: CourseUsageResponse.model_validate(v) for k, v in breakdown.by_course.items()
        },
        daily_costs=breakdown.daily_costs,
    )


@router.get("/usage/export")
async def export_usage(
    start_date: date | None = None,
    end_date: date | None = None,
    course_id: str | None = None,
    current: UserRecord = Depends(get_current_user),
) -> Response:
    """Download raw usage records as CSV."""
    _require_scope(current, course_id)
    start, end = _date_range(start_date, end_date)
    records = get_platform_usage_analytics(start, end, course_id=course_id).records
    courses = get_courses_by_ids({r.course_id for r in records if r.course_id})

    filename = export_filename("usage_data")
    return Response(
        content=export_usage_csv(records, courses),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/quick-stats", response_model=QuickStatsResponse)
async def quick_stats(
    days: int = Query(default=DEFAULT_RANGE_DAYS, ge=1, le=365),
    current: UserRecord = Depends(get_current_user),
) -> QuickStatsResponse:
    _require_scope(current, None)
    return QuickStatsResponse.model_validate(get_quick_platform_stats(days))


@router.get("/courses/{course_id}/overview", response_model=CourseOverviewResponse)
async def course_overview(
    course_id: str,
    current: UserRecord = Depends(get_current_user),
) -> CourseOverviewResponse:
    """Chats, projects, active students, reflections and tool usage of a course."""
    if get_course_by_id(course_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Course '{course_id}' not found",
        )
    require_course_instructor(current, course_id)
    return CourseOverviewResponse.model_validate(get_course_overview(course_id))


@router.post("/daily/{day}/refresh", response_model=DailyUsageListResponse)
async def refresh_daily(
    day: date,
    current: UserRecord = Depends(get_current_user),
) -> DailyUsageListResponse:
    """Recompute the daily usage aggregates of one day."""
    _require_scope(current, None)
    rows = [DailyUsageResponse.model_validate(r) for r in refresh_daily_usage(day)]
    return DailyUsageListResponse(rows=rows, count=len(rows))


@router.get("/daily", response_model=DailyUsageListResponse)
async def daily(
    start_date: date,
    end_date: date,
    course_id: str | None = None,
    current: UserRecord = Depends(get_current_user),
) -> DailyUsageListResponse:
    _require_scope(current, course_id)
    rows = [
        DailyUsageResponse.model_validate(r)
        for r in get_daily_usage(start_date, end_date, course_id=course_id)
    ]
    return DailyUsageListResponse(rows=rows, count=len(rows))
