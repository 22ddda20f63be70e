"""CSV exports for instructors and platform admins."""

from __future__ import annotations

import csv
import io
from datetime import date, datetime
from typing import Iterable

from engagement_hub.core.analytics import UsageRecord
from engagement_hub.db.chats_repository import EnrichedChat
from engagement_hub.db.courses_repository import CourseRecord

CHAT_HEADERS = [
    "ID",
    "User Name",
    "User Email",
    "Project",
    "AI Tool",
    "Prompt",
    "Response",
    "Tags",
    "Has Reflection",
    "Reflection",
    "Created At",
]

USAGE_HEADERS = [
    "Date",
    "Model",
    "Input Tokens",
    "Output Tokens",
    "Total Tokens",
    "Searches",
    "User ID",
    "Course ID",
    "Course Name",
    "Course Code",
]


def export_chats_csv(chats: Iterable[EnrichedChat]) -> str:
    """Render chats as CSV with every field quoted."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CHAT_HEADERS)

    for item in chats:
        chat = item.chat
        writer.writerow(
            [
                chat.chat_id,
                item.user_name,
                item.user_email,
                item.project_title,
                chat.tool_used or "",
                chat.prompt,
                chat.response,
                ", ".join(tag.name for tag in item.tags),
                "Yes" if item.has_reflection else "No",
                item.reflection.content if item.reflection else "",
                _format_timestamp(chat.created_at),
            ]
        )

    return buffer.getvalue()


def export_usage_csv(
    records: Iterable[UsageRecord],
    courses: dict[str, CourseRecord],
) -> str:
    """Render usage records as CSV, one row per interaction.

    Args:
        records: Usage records from analytics
        courses: Courses by ID, for name and code columns
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(USAGE_HEADERS)

    for record in records:
        course = courses.get(record.course_id) if record.course_id else None
        writer.writerow(
            [
                record.date.date().isoformat(),
                record.model,
                record.input_tokens,
                record.output_tokens,
                record.input_tokens + record.output_tokens,
                record.searches,
                record.user_id or "",
                record.course_id or "",
                course.title if course else "Unknown Course",
                (course.course_code or "N/A") if course else "N/A",
            ]
        )

    return buffer.getvalue()


def export_filename(prefix: str, day: date | None = None) -> str:
    """File name like "ai_interactions_2025-03-01.csv"."""
    day = day or date.today()
    return f"{prefix}_{day.isoformat()}.csv"


def _format_timestamp(value: str) -> str:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return value
