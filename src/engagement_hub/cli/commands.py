"""CLI commands for the engagement hub.

Commands:
- init-db: Create the database schema
- seed-tags: Create the standard global tags
- usage: Show platform usage and cost
- export-chats / export-usage: Write CSV exports
- delete-user: Delete a user and all of their data
- cleanup-memberships: Remove memberships of deleted users
- aggregate-usage: Recompute daily usage aggregates
- serve: Run the Web API
"""

from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from engagement_hub.core.account_cleanup import (
    AccountCleanupError,
    InvalidArgumentError,
    delete_user_completely,
)
from engagement_hub.core.analytics import get_platform_usage_analytics, refresh_daily_usage
from engagement_hub.core.cost_calculator import format_currency, format_number
from engagement_hub.core.exporter import export_chats_csv, export_filename, export_usage_csv
from engagement_hub.core.roles import PermissionDeniedError
from engagement_hub.db.chats_repository import ChatFilters, get_chats_with_filters
from engagement_hub.db.courses_repository import (
    cleanup_orphaned_memberships,
    get_courses_by_ids,
)
from engagement_hub.db.database import get_db_path, init_db
from engagement_hub.db.tags_repository import create_global_educational_tags

app = typer.Typer(
    name="hub",
    help="AI Engagement Hub: course AI chat, tagging, reflections and usage analytics.",
    no_args_is_help=True,
)

console = Console()


def _open_db(db: str | None) -> None:
    """Point the session at a database file, creating the schema if needed."""
    init_db(Path(db) if db else None)


def _parse_day(value: str | None, default: date | None) -> date | None:
    if value is None:
        return default
    try:
        return date.fromisoformat(value)
    except ValueError:
        console.print(f"[red]✗ Invalid date (expected YYYY-MM-DD): {value}[/red]")
        raise typer.Exit(code=1)


def _usage_range(days: int) -> tuple[datetime, datetime]:
    today = datetime.now(timezone.utc).date()
    start = today - timedelta(days=days - 1)
    return (
        datetime.combine(start, time.min, tzinfo=timezone.utc),
        datetime.combine(today, time.max, tzinfo=timezone.utc),
    )


DB_OPTION_HELP = "Database file (defaults to hub.db_path)"


@app.command(name="init-db")
def init_database(
    db: str | None = typer.Option(None, "--db", help=DB_OPTION_HELP),
) -> None:
    """Create the database and its tables."""
    _open_db(db)
    console.print(f"[green]✓ Database ready[/green]: {get_db_path()}")


@app.command(name="seed-tags")
def seed_tags(
    db: str | None = typer.Option(None, "--db", help=DB_OPTION_HELP),
) -> None:
    """Create the standard global educational tags."""
    _open_db(db)
    created = create_global_educational_tags()
    if not created:
        console.print("[yellow]⚠ All global tags already exist[/yellow]")
        return

    console.print(f"[green]✓ Created {len(created)} global tags[/green]")
    for tag in created:
        console.print(f"  [dim]-[/dim] {tag.name}")


@app.command()
def usage(
    days: int = typer.Option(30, "--days", "-d", help="Days to include, ending today"),
    course_id: str | None = typer.Option(None, "--course", "-c", help="Restrict to one course"),
    db: str | None = typer.Option(None, "--db", help=DB_OPTION_HELP),
) -> None:
    """Show usage and estimated cost per model."""
    _open_db(db)
    start, end = _usage_range(days)
    analytics = get_platform_usage_analytics(start, end, course_id=course_id)
    summary = analytics.summary
    cost = summary.cost

    header = (
        f"[bold]{format_currency(cost.total_cost)}[/bold] over {summary.days_in_range} days\n"
        f"Interactions: {format_number(cost.total_interactions)} | "
        f"Tokens: {format_number(cost.total_tokens)} | "
        f"Searches: {cost.total_searches}\n"
        f"Estimated monthly: {format_currency(summary.estimated_monthly_cost)}"
    )
    console.print(Panel(header, title="[bold]Platform usage[/bold]", expand=False))

    if not cost.by_model:
        console.print("[dim]No interactions in range[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Model", style="cyan")
    table.add_column("Provider")
    table.add_column("Interactions", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")

    ranked = sorted(cost.by_model.items(), key=lambda item: item[1].cost, reverse=True)
    for model, bucket in ranked:
        table.add_row(
            model,
            bucket.provider or "unknown",
            str(bucket.interactions),
            format_number(bucket.input_tokens + bucket.output_tokens),
            format_currency(bucket.cost),
        )

    console.print(table)


@app.command(name="export-chats")
def export_chats(
    course_id: str = typer.Argument(..., help="Course to export"),
    output: str | None = typer.Option(None, "--output", "-o", help="CSV file to write"),
    tag_id: str | None = typer.Option(None, "--tag", help="Only chats with this tag"),
    start: str | None = typer.Option(None, "--start", help="First day (YYYY-MM-DD)"),
    end: str | None = typer.Option(None, "--end", help="Last day (YYYY-MM-DD)"),
    db: str | None = typer.Option(None, "--db", help=DB_OPTION_HELP),
) -> None:
    """Export a course's chats, tags and reflections to CSV."""
    _open_db(db)
    filters = ChatFilters(
        course_id=course_id,
        tag_id=tag_id,
        start_date=_parse_day(start, None),
        end_date=_parse_day(end, None),
    )
    chats = get_chats_with_filters(filters)

    output_path = Path(output or export_filename("ai_interactions"))
    output_path.write_text(export_chats_csv(chats), encoding="utf-8")
    console.print(f"[green]✓ Exported {len(chats)} chats[/green]: {output_path}")


@app.command(name="export-usage")
def export_usage(
    days: int = typer.Option(30, "--days", "-d", help="Days to include, ending today"),
    course_id: str | None = typer.Option(None, "--course", "-c", help="Restrict to one course"),
    output: str | None = typer.Option(None, "--output", "-o", help="CSV file to write"),
    db: str | None = typer.Option(None, "--db", help=DB_OPTION_HELP),
) -> None:
    """Export raw usage records to CSV."""
    _open_db(db)
    start, end = _usage_range(days)
    records = get_platform_usage_analytics(start, end, course_id=course_id).records
    courses = get_courses_by_ids({r.course_id for r in records if r.course_id})

    output_path = Path(output or export_filename("usage_data"))
    output_path.write_text(export_usage_csv(records, courses), encoding="utf-8")
    console.print(f"[green]✓ Exported {len(records)} usage records[/green]: {output_path}")


@app.command(name="delete-user")
def delete_user(
    user_id: str = typer.Argument(..., help="User to delete"),
    admin_id: str = typer.Option(..., "--as", help="Admin performing the deletion"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    db: str | None = typer.Option(None, "--db", help=DB_OPTION_HELP),
) -> None:
    """Delete a user and everything that belongs to them."""
    _open_db(db)
    if not yes and not typer.confirm(f"Delete user {user_id} and all of their data?"):
        console.print("[yellow]⚠ Cancelled[/yellow]")
        raise typer.Exit(code=1)

    try:
        summary = delete_user_completely(user_id, admin_id)
    except (InvalidArgumentError, PermissionDeniedError, AccountCleanupError) as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    if summary.user_deleted:
        console.print(f"[green]✓ User {user_id} deleted[/green]")
    else:
        console.print(f"[yellow]⚠ No user row for {user_id}; leftover data removed[/yellow]")
    console.print(f"  [dim]memberships:[/dim] {summary.memberships}")
    console.print(f"  [dim]chats:[/dim]       {summary.chats}")
    console.print(f"  [dim]projects:[/dim]    {summary.projects}")
    console.print(f"  [dim]notes:[/dim]       {summary.instructor_notes}")
    console.print(f"  [dim]reflections:[/dim] {summary.reflections}")
    console.print(f"  [dim]files:[/dim]       {summary.files_removed}")


@app.command(name="cleanup-memberships")
def cleanup_memberships(
    course_id: str | None = typer.Option(None, "--course", "-c", help="Restrict to one course"),
    db: str | None = typer.Option(None, "--db", help=DB_OPTION_HELP),
) -> None:
    """Remove memberships whose user no longer exists."""
    _open_db(db)
    result = cleanup_orphaned_memberships(course_id)
    console.print(
        f"[green]✓ Removed {result['cleaned']} orphaned memberships[/green] "
        f"({result['courses_updated']} courses recounted)"
    )


@app.command(name="aggregate-usage")
def aggregate_usage(
    day: str | None = typer.Option(None, "--day", help="Day to aggregate (default: yesterday)"),
    db: str | None = typer.Option(None, "--db", help=DB_OPTION_HELP),
) -> None:
    """Recompute the daily usage aggregates of one UTC day."""
    _open_db(db)
    yesterday = datetime.now(timezone.utc).date() - timedelta(days=1)
    target = _parse_day(day, yesterday)
    rows = refresh_daily_usage(target)
    total = sum(r.cost for r in rows)
    console.print(
        f"[green]✓ {target.isoformat()}[/green]: {len(rows)} rows, {format_currency(total)}"
    )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the Web API with uvicorn."""
    import uvicorn

    uvicorn.run("engagement_hub.web.api:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
