"""Platform usage analytics.

Turns stored chats into usage records, prices them with cost_calculator and
aggregates them for dashboards. Token counts missing from a chat are
estimated from text length (about 4 characters per token).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone

import structlog

from engagement_hub.core.cost_calculator import (
    CostBucket,
    CostSummary,
    calculate_model_cost,
    calculate_platform_costs,
    estimate_monthly_cost,
)
from engagement_hub.db.chats_repository import ChatRecord, list_chats_in_range
from engagement_hub.db.database import get_db, now_iso

logger = structlog.get_logger(__name__)

CHARS_PER_TOKEN = 4
NO_COURSE = "no-course"
UNKNOWN_MODEL = "unknown"
PROMPT_PREVIEW_CHARS = 100


@dataclass
class UsageRecord:
    """Usage extracted from one chat."""

    chat_id: str
    date: datetime
    model: str
    input_tokens: int
    output_tokens: int
    searches: int
    user_id: str | None
    course_id: str | None
    project_id: str | None
    prompt: str = ""
    response_length: int = 0

    @classmethod
    def from_chat(cls, chat: ChatRecord) -> "UsageRecord":
        model = chat.tool_used or UNKNOWN_MODEL
        return cls(
            chat_id=chat.chat_id,
            date=_parse_timestamp(chat.created_at),
            model=model,
            input_tokens=_token_count(chat.input_tokens, chat.prompt),
            output_tokens=_token_count(chat.output_tokens, chat.response),
            searches=_search_count(model, chat.searches),
            user_id=chat.user_id,
            course_id=chat.course_id,
            project_id=chat.project_id,
            prompt=(chat.prompt or "")[:PROMPT_PREVIEW_CHARS],
            response_length=len(chat.response or ""),
        )


@dataclass
class UserUsage:
    user_id: str
    interactions: int = 0
    total_cost: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    models: list[str] = field(default_factory=list)

    @property
    def model_count(self) -> int:
        return len(self.models)


@dataclass
class CourseUsage:
    course_id: str
    interactions: int = 0
    total_cost: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    user_ids: set[str] = field(default_factory=set)
    models: list[str] = field(default_factory=list)

    @property
    def unique_user_count(self) -> int:
        return len(self.user_ids)

    @property
    def model_count(self) -> int:
        return len(self.models)


@dataclass
class AnalyticsSummary:
    cost: CostSummary
    start_date: datetime
    end_date: datetime
    days_in_range: int
    estimated_monthly_cost: float
    average_cost_per_interaction: float
    average_tokens_per_interaction: float


@dataclass
class UsageBreakdown:
    by_provider: dict[str, CostBucket]
    by_model: dict[str, CostBucket]
    by_user: dict[str, UserUsage]
    by_course: dict[str, CourseUsage]
    daily_costs: dict[str, float]


@dataclass
class UsageAnalytics:
    """Full analytics result for a date range."""

    summary: AnalyticsSummary
    breakdown: UsageBreakdown
    records: list[UsageRecord]


@dataclass
class QuickStats:
    total_cost: float
    total_interactions: int
    total_tokens: int
    estimated_monthly_cost: float
    top_model: str
    days: int


@dataclass
class CourseOverview:
    course_id: str
    total_chats: int
    total_projects: int
    active_students: int
    chats_with_reflections: int
    tagged_chats: int
    reflection_completion_rate: float
    tool_usage: dict[str, int]


@dataclass
class DailyUsageRow:
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


def get_platform_usage_analytics(
    start: datetime,
    end: datetime,
    course_id: str | None = None,
) -> UsageAnalytics:
    """Cost and usage analytics for every chat created between start and end."""
    logger.info(
        "analytics.platform_usage_started",
        start=start.isoformat(),
        end=end.isoformat(),
        course_id=course_id,
    )

    chats = list_chats_in_range(start, end, course_id=course_id)
    records = [UsageRecord.from_chat(chat) for chat in chats]

    cost = calculate_platform_costs(records)
    days_in_range = math.ceil((end - start).total_seconds() / 86400)
    interactions = cost.total_interactions or 1

    summary = AnalyticsSummary(
        cost=cost,
        start_date=start,
        end_date=end,
        days_in_range=days_in_range,
        estimated_monthly_cost=estimate_monthly_cost(cost, days_in_range),
        average_cost_per_interaction=cost.total_cost / interactions,
        average_tokens_per_interaction=cost.total_tokens / interactions,
    )
    breakdown = UsageBreakdown(
        by_provider=cost.by_provider,
        by_model=cost.by_model,
        by_user=aggregate_by_user(records),
        by_course=aggregate_by_course(records),
        daily_costs=cost.daily_costs,
    )

    logger.info(
        "analytics.platform_usage_completed",
        records=len(records),
        total_cost=round(cost.total_cost, 6),
    )
    return UsageAnalytics(summary=summary, breakdown=breakdown, records=records)


def aggregate_by_user(records: list[UsageRecord]) -> dict[str, UserUsage]:
    """Per-user totals. Records without a user are skipped."""
    users: dict[str, UserUsage] = {}
    for record in records:
        if not record.user_id:
            continue

        usage = users.setdefault(record.user_id, UserUsage(user_id=record.user_id))
        usage.interactions += 1
        usage.input_tokens += record.input_tokens
        usage.output_tokens += record.output_tokens
        usage.total_cost += _record_cost(record)
        if record.model not in usage.models:
            usage.models.append(record.model)

    return users


def aggregate_by_course(records: list[UsageRecord]) -> dict[str, CourseUsage]:
    """Per-course totals. Chats outside any course go under "no-course"."""
    courses: dict[str, CourseUsage] = {}
    for record in records:
        key = record.course_id or NO_COURSE

        usage = courses.setdefault(key, CourseUsage(course_id=key))
        usage.interactions += 1
        usage.input_tokens += record.input_tokens
        usage.output_tokens += record.output_tokens
        usage.total_cost += _record_cost(record)
        if record.model not in usage.models:
            usage.models.append(record.model)
        if record.user_id:
            usage.user_ids.add(record.user_id)

    return courses


def get_quick_platform_stats(days: int = 30) -> QuickStats:
    """Dashboard summary for the last `days` days.

    Never raises: on failure the stats are all zero.
    """
    end = datetime.now(timezone.utc)
    start = end - timedelta(days=days)

    try:
        analytics = get_platform_usage_analytics(start, end)
    except Exception as e:
        logger.error("analytics.quick_stats_failed", error=str(e), days=days)
        return QuickStats(
            total_cost=0.0,
            total_interactions=0,
            total_tokens=0,
            estimated_monthly_cost=0.0,
            top_model="Unknown",
            days=days,
        )

    cost = analytics.summary.cost
    return QuickStats(
        total_cost=cost.total_cost,
        total_interactions=cost.total_interactions,
        total_tokens=cost.total_tokens,
        estimated_monthly_cost=analytics.summary.estimated_monthly_cost,
        top_model=get_top_model(analytics.breakdown.by_model),
        days=days,
    )


def get_top_model(by_model: dict[str, CostBucket] | None) -> str:
    """Name of the model with the most interactions, or "Unknown"."""
    if not by_model:
        return "Unknown"
    return max(by_model.items(), key=lambda item: item[1].interactions)[0]


def get_course_overview(course_id: str) -> CourseOverview:
    """Engagement counters for the instructor overview of one course."""
    with get_db() as conn:
        total_chats = conn.execute(
            "SELECT COUNT(*) FROM chats WHERE course_id = ?", (course_id,)
        ).fetchone()[0]
        total_projects = conn.execute(
            "SELECT COUNT(*) FROM projects WHERE course_id = ?", (course_id,)
        ).fetchone()[0]
        active_students = conn.execute(
            "SELECT COUNT(DISTINCT user_id) FROM chats WHERE course_id = ?", (course_id,)
        ).fetchone()[0]
        with_reflections = conn.execute(
            """
            SELECT COUNT(*) FROM chats c
            WHERE c.course_id = ?
              AND EXISTS (SELECT 1 FROM reflections r WHERE r.chat_id = c.chat_id)
            """,
            (course_id,),
        ).fetchone()[0]
        tagged = conn.execute(
            """
            SELECT COUNT(*) FROM chats c
            WHERE c.course_id = ?
              AND EXISTS (SELECT 1 FROM chat_tags ct WHERE ct.chat_id = c.chat_id)
            """,
            (course_id,),
        ).fetchone()[0]
        tool_rows = conn.execute(
            """
            SELECT COALESCE(tool_used, ?) AS tool, COUNT(*) AS n
            FROM chats WHERE course_id = ?
            GROUP BY tool
            ORDER BY n DESC
            """,
            (UNKNOWN_MODEL, course_id),
        ).fetchall()

    rate = (with_reflections / total_chats) * 100 if total_chats else 0.0
    return CourseOverview(
        course_id=course_id,
        total_chats=total_chats,
        total_projects=total_projects,
        active_students=active_students,
        chats_with_reflections=with_reflections,
        tagged_chats=tagged,
        reflection_completion_rate=rate,
        tool_usage={row["tool"]: row["n"] for row in tool_rows},
    )


def refresh_daily_usage(day: date) -> list[DailyUsageRow]:
    """Recompute the daily_usage rows of one UTC day.

    Existing rows for the day are replaced, so running it twice is harmless.
    """
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = datetime.combine(day, time.max, tzinfo=timezone.utc)
    records = [UsageRecord.from_chat(chat) for chat in list_chats_in_range(start, end)]

    groups: dict[tuple[str, str], list[UsageRecord]] = {}
    for record in records:
        groups.setdefault((record.course_id or NO_COURSE, record.model), []).append(record)

    computed_at = now_iso()
    rows = []
    for (course_id, model), group in sorted(groups.items()):
        cost = calculate_platform_costs(group)
        rows.append(
            DailyUsageRow(
                day=day.isoformat(),
                course_id=course_id,
                model=model,
                provider=next(iter(cost.by_provider)),
                interactions=cost.total_interactions,
                input_tokens=cost.total_input_tokens,
                output_tokens=cost.total_output_tokens,
                searches=cost.total_searches,
                cost=cost.total_cost,
                computed_at=computed_at,
            )
        )

    with get_db() as conn:
        conn.execute("DELETE FROM daily_usage WHERE day = ?", (day.isoformat(),))
        conn.executemany(
            """
            INSERT INTO daily_usage (
                day, course_id, model, provider, interactions, input_tokens,
                output_tokens, searches, cost, computed_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    r.day,
                    r.course_id,
                    r.model,
                    r.provider,
                    r.interactions,
                    r.input_tokens,
                    r.output_tokens,
                    r.searches,
                    r.cost,
                    r.computed_at,
                )
                for r in rows
            ],
        )

    logger.info("analytics.daily_usage_refreshed", day=day.isoformat(), rows=len(rows))
    return rows


def get_daily_usage(
    start_day: date,
    end_day: date,
    course_id: str | None = None,
) -> list[DailyUsageRow]:
    """Read pre-computed daily rows between two days (inclusive)."""
    sql = "SELECT * FROM daily_usage WHERE day >= ? AND day <= ?"
    params: list = [start_day.isoformat(), end_day.isoformat()]
    if course_id:
        sql += " AND course_id = ?"
        params.append(course_id)
    sql += " ORDER BY day, course_id, model"

    with get_db() as conn:
        rows = conn.execute(sql, params).fetchall()

    return [
        DailyUsageRow(
            day=row["day"],
            course_id=row["course_id"],
            model=row["model"],
            provider=row["provider"],
            interactions=row["interactions"],
            input_tokens=row["input_tokens"],
            output_tokens=row["output_tokens"],
            searches=row["searches"],
            cost=row["cost"],
            computed_at=row["computed_at"],
        )
        for row in rows
    ]


def _record_cost(record: UsageRecord) -> float:
    return calculate_model_cost(
        record.model, record.input_tokens, record.output_tokens, record.searches
    ).total_cost


def _token_count(stored: int | None, text: str | None) -> int:
    if stored and stored > 0:
        return stored
    if text:
        return math.ceil(len(text) / CHARS_PER_TOKEN)
    return 0


def _search_count(model: str, stored: int | None) -> int:
    lowered = model.lower()
    if "sonar" in lowered or "perplexity" in lowered:
        return 1
    return stored or 0


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
