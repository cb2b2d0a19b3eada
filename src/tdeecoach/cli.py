"""CLI interface using Typer."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import replace
from datetime import date, timedelta
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tdeecoach.config import get_settings
from tdeecoach.db import get_db
from tdeecoach.logger import configure_logging, get_logger
from tdeecoach.tracking.dates import parse_date_key
from tdeecoach.tracking.models import GoalType, Sex, UserGoals
from tdeecoach.tracking.queries import GoalsQueries, SQLiteStore
from tdeecoach.tracking.storage import StorageError

logger = get_logger(__name__)

app = typer.Typer(
    help="Adaptive TDEE tracking and weekly calorie coaching",
    no_args_is_help=True,
)
console = Console()

# Subcommand groups
user_app = typer.Typer(help="Manage user profile and goals")
weight_app = typer.Typer(help="Log scale weight")
meal_app = typer.Typer(help="Log meals")
day_app = typer.Typer(help="Mark how a day should be counted")
tdee_app = typer.Typer(help="Back-solved TDEE estimation")
coach_app = typer.Typer(help="Weekly check-ins and calorie targets")

app.add_typer(user_app, name="user")
app.add_typer(weight_app, name="weight")
app.add_typer(meal_app, name="meal")
app.add_typer(day_app, name="day")
app.add_typer(tdee_app, name="tdee")
app.add_typer(coach_app, name="coach")


# ============================================================================
# Helpers
# ============================================================================


def output_json(response: dict, file=None) -> None:
    """Output JSON response to stdout or file."""
    json_str = json.dumps(response, indent=2)
    if file:
        file.write(json_str)
    else:
        print(json_str)


def ensure_tables() -> None:
    """Ensure tracking tables exist (idempotent)."""
    db = get_db()
    db.initialize_schema()


def fail(command: str, message: str, json_output: bool, suggestion: Optional[str] = None) -> NoReturn:
    """Report an error and exit with status 1."""
    if json_output:
        response: dict = {"success": False, "command": command, "errors": [message]}
        if suggestion:
            response["suggestions"] = [suggestion]
        output_json(response)
    else:
        console.print(f"[red]{message}[/red]")
        if suggestion:
            console.print(suggestion)
    raise typer.Exit(1)


def parse_day(date_str: Optional[str], command: str, json_output: bool) -> date:
    """Parse a --date option, defaulting to today."""
    if not date_str:
        return date.today()
    try:
        return parse_date_key(date_str)
    except ValueError as e:
        fail(command, str(e), json_output)


def load_user(
    conn: sqlite3.Connection,
    user_id: Optional[int],
    command: str,
    json_output: bool,
) -> UserGoals:
    """Fetch the requested (or default) user, exiting if none exists."""
    if user_id:
        goals = GoalsQueries.get_user(conn, user_id)
    else:
        goals = GoalsQueries.get_default_user(conn)

    if goals is None:
        fail(
            command,
            "No user profile found",
            json_output,
            "Create one with: tdeecoach user create --height 180 --birth-date 1990-01-01 --sex male",
        )
    return goals


def open_store(
    conn: sqlite3.Connection,
    goals: UserGoals,
    command: str,
    json_output: bool,
) -> SQLiteStore:
    """Store scoped to a profile loaded from the database."""
    if goals.user_id is None:
        fail(command, "User profile has no id", json_output)
    return SQLiteStore(conn, goals.user_id)


def _fmt_kg(value: Optional[float]) -> str:
    return f"{value:.1f}" if value is not None else "-"


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging from settings before any command runs."""
    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.logging.level, settings.logging.file)


# Callbacks for sub-apps to auto-create tables on first use
@user_app.callback()
def user_callback() -> None:
    """Ensure tracking tables exist before any user command."""
    ensure_tables()


@weight_app.callback()
def weight_callback() -> None:
    """Ensure tracking tables exist before any weight command."""
    ensure_tables()


@meal_app.callback()
def meal_callback() -> None:
    """Ensure tracking tables exist before any meal command."""
    ensure_tables()


@day_app.callback()
def day_callback() -> None:
    """Ensure tracking tables exist before any day command."""
    ensure_tables()


@tdee_app.callback()
def tdee_callback() -> None:
    """Ensure tracking tables exist before any tdee command."""
    ensure_tables()


@coach_app.callback()
def coach_callback() -> None:
    """Ensure tracking tables exist before any coach command."""
    ensure_tables()


# ============================================================================
# User Commands
# ============================================================================


def _goals_dict(goals: UserGoals) -> dict:
    return {
        "user_id": goals.user_id,
        "height_cm": goals.height_cm,
        "birth_date": goals.birth_date.isoformat() if goals.birth_date else None,
        "sex": goals.sex.value if goals.sex else None,
        "athlete": goals.athlete_status,
        "goal_type": goals.goal_type.value,
        "goal_rate_kg_per_week": goals.goal_rate,
        "target_weight_kg": goals.target_weight_kg,
        "start_weight_kg": goals.start_weight_kg,
        "calorie_goal": goals.calorie_goal,
        "protein_goal": goals.protein_goal,
        "carbs_goal": goals.carbs_goal,
        "fat_goal": goals.fat_goal,
    }


@user_app.command("create")
def user_create(
    height: Optional[float] = typer.Option(None, "--height", help="Height in cm"),
    birth_date: Optional[str] = typer.Option(None, "--birth-date", help="Birth date (YYYY-MM-DD)"),
    sex: Optional[str] = typer.Option(None, "--sex", help="Sex (male/female)"),
    athlete: bool = typer.Option(False, "--athlete", help="Apply the +10% athlete correction"),
    goal: str = typer.Option("maintain", "--goal", help="Goal (lose/maintain/gain)"),
    rate: float = typer.Option(0.5, "--rate", help="Goal rate in kg/week"),
    target: Optional[float] = typer.Option(None, "--target", help="Target weight in kg"),
    start_weight: Optional[float] = typer.Option(None, "--start-weight", help="Starting weight in kg"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Create a user profile."""
    try:
        goals = UserGoals(
            height_cm=height,
            birth_date=parse_date_key(birth_date) if birth_date else None,
            sex=Sex(sex.lower()) if sex else None,
            athlete_status=athlete,
            goal_type=GoalType(goal.lower()),
            goal_rate=rate,
            target_weight_kg=target,
            start_weight_kg=start_weight,
            start_date=date.today(),
        )
    except ValueError as e:
        fail("user create", str(e), json_output)

    db = get_db()
    with db.get_connection() as conn:
        user_id = GoalsQueries.create_user(conn, goals)
    goals.user_id = user_id

    if json_output:
        output_json({
            "success": True,
            "command": "user create",
            "data": _goals_dict(goals),
            "human_summary": f"Created user profile (ID: {user_id})",
        })
    else:
        console.print(f"[green]Created user profile (ID: {user_id})[/green]")
        if not goals.has_body_metrics:
            console.print(
                "[dim]Height, birth date and sex are needed for a cold-start TDEE; "
                "a fixed default is used until then.[/dim]"
            )


@user_app.command("show")
def user_show(
    user_id: Optional[int] = typer.Option(None, "--id", help="User ID (default: first user)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show user profile."""
    db = get_db()
    with db.get_connection() as conn:
        goals = load_user(conn, user_id, "user show", json_output)

    if json_output:
        output_json({
            "success": True,
            "command": "user show",
            "data": _goals_dict(goals),
            "human_summary": f"User {goals.user_id}: {goals.goal_type.value} at {goals.goal_rate} kg/week",
        })
        return

    console.print(f"[bold]User Profile (ID: {goals.user_id})[/bold]")
    console.print(f"  Height: {goals.height_cm or '-'} cm")
    console.print(f"  Birth date: {goals.birth_date or '-'}")
    console.print(f"  Sex: {goals.sex.value if goals.sex else '-'}")
    console.print(f"  Athlete: {'yes' if goals.athlete_status else 'no'}")
    console.print(f"  Goal: {goals.goal_type.value} ({goals.goal_rate} kg/week)")
    if goals.target_weight_kg is not None:
        console.print(f"  Target weight: {goals.target_weight_kg} kg")


@user_app.command("update")
def user_update(
    user_id: Optional[int] = typer.Option(None, "--id", help="User ID (default: first user)"),
    goal: Optional[str] = typer.Option(None, "--goal", help="Goal (lose/maintain/gain)"),
    rate: Optional[float] = typer.Option(None, "--rate", help="Goal rate in kg/week"),
    target: Optional[float] = typer.Option(None, "--target", help="Target weight in kg"),
    athlete: Optional[bool] = typer.Option(None, "--athlete/--no-athlete", help="Athlete correction"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Update goals. History is not recomputed."""
    from tdeecoach.tracking.events import update_goals

    db = get_db()
    with db.get_connection() as conn:
        current = load_user(conn, user_id, "user update", json_output)
        try:
            updated = replace(
                current,
                goal_type=GoalType(goal.lower()) if goal else current.goal_type,
                goal_rate=rate if rate is not None else current.goal_rate,
                target_weight_kg=target if target is not None else current.target_weight_kg,
                athlete_status=athlete if athlete is not None else current.athlete_status,
            )
            change = update_goals(open_store(conn, current, "user update", json_output), updated)
        except (ValueError, StorageError) as e:
            fail("user update", str(e), json_output)

    if json_output:
        output_json({
            "success": True,
            "command": "user update",
            "data": {
                "user_id": current.user_id,
                "transitioned": change.has_transitioned,
                "details": change.details,
                "predicted_tdee": change.predicted_tdee,
            },
            "human_summary": change.details or "Profile updated",
        })
        return

    console.print("[green]Profile updated[/green]")
    if change.has_transitioned:
        console.print(f"  {change.details}")
    if change.predicted_tdee is not None:
        console.print(f"  Expect TDEE to move toward ~{change.predicted_tdee:.0f} kcal/day")


# ============================================================================
# Logging Commands
# ============================================================================


@weight_app.command("add")
def weight_add(
    weight: float = typer.Argument(..., help="Weight in kg"),
    date_str: Optional[str] = typer.Option(
        None, "--date", "-d", help="Date (YYYY-MM-DD, default: today)"
    ),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID (default: first user)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Log a scale weight and recompute the TDEE chain from that day."""
    from tdeecoach.tracking.events import record_weight

    day = parse_day(date_str, "weight add", json_output)
    settings = get_settings()

    db = get_db()
    with db.get_connection() as conn:
        goals = load_user(conn, user_id, "weight add", json_output)
        store = open_store(conn, goals, "weight add", json_output)
        try:
            result = record_weight(
                store, day, weight, default_tdee_kcal=settings.tracking.default_tdee_kcal
            )
        except (ValueError, StorageError) as e:
            fail("weight add", str(e), json_output)
        state = store.get_state(day)

    trend = round(state.trend_weight_kg, 2) if state else None
    if json_output:
        output_json({
            "success": True,
            "command": "weight add",
            "data": {
                "date": day.isoformat(),
                "weight_kg": weight,
                "trend_kg": trend,
                "days_recomputed": result.days_recomputed,
                "warning": result.warning,
            },
            "human_summary": f"Logged {weight:.1f} kg, trend: {_fmt_kg(trend)} kg",
        })
    else:
        console.print(f"[green]Logged:[/green] {weight:.1f} kg on {day}")
        console.print(f"[blue]Trend:[/blue] {_fmt_kg(trend)} kg")
        if result.warning:
            console.print(f"[yellow]{result.warning}[/yellow]")


@meal_app.command("add")
def meal_add(
    calories: float = typer.Argument(..., help="Calories (0 for a deliberate fast)"),
    protein: Optional[float] = typer.Option(None, "--protein", "-p", help="Protein (g)"),
    carbs: Optional[float] = typer.Option(None, "--carbs", "-c", help="Carbohydrates (g)"),
    fat: Optional[float] = typer.Option(None, "--fat", "-f", help="Fat (g)"),
    date_str: Optional[str] = typer.Option(
        None, "--date", "-d", help="Date (YYYY-MM-DD, default: today)"
    ),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID (default: first user)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Add a meal to the day's totals and recompute the TDEE chain."""
    from tdeecoach.tracking.events import record_meal

    day = parse_day(date_str, "meal add", json_output)
    settings = get_settings()

    db = get_db()
    with db.get_connection() as conn:
        goals = load_user(conn, user_id, "meal add", json_output)
        store = open_store(conn, goals, "meal add", json_output)
        try:
            result = record_meal(
                store,
                day,
                calories,
                protein,
                carbs,
                fat,
                default_tdee_kcal=settings.tracking.default_tdee_kcal,
            )
        except (ValueError, StorageError) as e:
            fail("meal add", str(e), json_output)
        log = store.get_daily_log(day)

    total = log.calories.to_optional() if log else None
    if json_output:
        output_json({
            "success": True,
            "command": "meal add",
            "data": {
                "date": day.isoformat(),
                "calories_total": total,
                "log_status": log.log_status.value if log else None,
                "days_recomputed": result.days_recomputed,
                "warning": result.warning,
            },
            "human_summary": f"Logged {calories:.0f} kcal, day total {total or 0:.0f} kcal",
        })
    else:
        console.print(f"[green]Logged:[/green] {calories:.0f} kcal on {day}")
        console.print(f"  Day total: {total or 0:.0f} kcal")
        if result.warning:
            console.print(f"[yellow]{result.warning}[/yellow]")


@day_app.command("status")
def day_status(
    status: str = typer.Argument(..., help="Status (complete/partial/skipped)"),
    date_str: Optional[str] = typer.Option(
        None, "--date", "-d", help="Date (YYYY-MM-DD, default: today)"
    ),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID (default: first user)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Mark a day complete, partial or skipped. Skipped days hold the previous TDEE."""
    from tdeecoach.tracking.events import update_day_status

    day = parse_day(date_str, "day status", json_output)
    settings = get_settings()

    db = get_db()
    with db.get_connection() as conn:
        goals = load_user(conn, user_id, "day status", json_output)
        try:
            result = update_day_status(
                open_store(conn, goals, "day status", json_output),
                day,
                status.lower(),
                default_tdee_kcal=settings.tracking.default_tdee_kcal,
            )
        except (ValueError, StorageError) as e:
            fail("day status", str(e), json_output)

    if json_output:
        output_json({
            "success": True,
            "command": "day status",
            "data": {
                "date": day.isoformat(),
                "log_status": status.lower(),
                "days_recomputed": result.days_recomputed,
            },
            "human_summary": f"{day} marked {status.lower()}",
        })
    else:
        console.print(f"[green]{day} marked {status.lower()}[/green]")


# ============================================================================
# TDEE Commands
# ============================================================================


@tdee_app.command("recompute")
def tdee_recompute(
    from_str: Optional[str] = typer.Option(
        None, "--from", help="Recompute from this date (default: resume pending work)"
    ),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Recompute the daily TDEE chain through today."""
    from tdeecoach.tracking.recompute import RecomputeAborted, RecomputeOrchestrator

    settings = get_settings()
    db = get_db()
    with db.get_connection() as conn:
        goals = load_user(conn, user_id, "tdee recompute", json_output)
        orchestrator = RecomputeOrchestrator(
            open_store(conn, goals, "tdee recompute", json_output),
            default_tdee_kcal=settings.tracking.default_tdee_kcal,
        )
        try:
            if from_str:
                days = orchestrator.recalculate_tdee_from_date(
                    parse_day(from_str, "tdee recompute", json_output)
                )
            else:
                days = orchestrator.resume()
        except RecomputeAborted as e:
            fail(
                "tdee recompute",
                f"{e} ({e.days_recomputed} days saved)",
                json_output,
                "Run 'tdeecoach tdee recompute' again to resume",
            )
        except (ValueError, StorageError) as e:
            fail("tdee recompute", str(e), json_output)

    if json_output:
        output_json({
            "success": True,
            "command": "tdee recompute",
            "data": {"days_recomputed": days},
            "human_summary": f"Recomputed {days} days",
        })
    else:
        console.print(f"[green]Recomputed {days} days[/green]")


@tdee_app.command("backfill")
def tdee_backfill(
    days: Optional[int] = typer.Option(None, "--days", help="Days to backfill (default from config)"),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Recompute every day in the backfill window."""
    from tdeecoach.tracking.events import backfill

    settings = get_settings()
    window = days if days is not None else settings.tracking.backfill_days

    db = get_db()
    with db.get_connection() as conn:
        goals = load_user(conn, user_id, "tdee backfill", json_output)
        try:
            result = backfill(
                open_store(conn, goals, "tdee backfill", json_output),
                window,
                default_tdee_kcal=settings.tracking.default_tdee_kcal,
            )
        except (ValueError, StorageError) as e:
            fail("tdee backfill", str(e), json_output)

    if json_output:
        output_json({
            "success": True,
            "command": "tdee backfill",
            "data": {
                "days_processed": result.days_processed,
                "computed_states_written": result.computed_states_written,
            },
            "human_summary": f"Backfilled {result.computed_states_written} days",
        })
    else:
        console.print(
            f"[green]Backfill complete:[/green] {result.computed_states_written} states written "
            f"over a {result.days_processed}-day window"
        )


@tdee_app.command("show")
def tdee_show(
    days: int = typer.Option(14, "--days", "-d", help="Number of days to show"),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show recent computed TDEE state."""
    from tdeecoach.tracking.coaching import check_weekly_update_eligibility
    from tdeecoach.tracking.edge_cases import (
        calculate_data_quality_score,
        calculate_tdee_statistics,
    )
    from tdeecoach.tracking.expenditure import determine_confidence_level

    end = date.today()
    start = end - timedelta(days=max(days, 1) - 1)

    db = get_db()
    with db.get_connection() as conn:
        goals = load_user(conn, user_id, "tdee show", json_output)
        store = open_store(conn, goals, "tdee show", json_output)
        states = store.get_states(start, end)
        logs = store.get_daily_logs(start, end)
        week_logs = store.get_daily_logs(end - timedelta(days=6), end)

    if not states:
        fail(
            "tdee show",
            "No computed TDEE yet",
            json_output,
            "Log a weight with: tdeecoach weight add <kg>",
        )

    latest = states[-1]
    eligibility = check_weekly_update_eligibility(week_logs)
    confidence = determine_confidence_level(latest.days_tracked, eligibility.missing_days)
    quality = calculate_data_quality_score(logs, latest.estimated_tdee_kcal)
    stats = calculate_tdee_statistics(states)
    weights = {log.date: log.scale_weight_kg for log in logs}

    if json_output:
        output_json({
            "success": True,
            "command": "tdee show",
            "data": {
                "estimated_tdee": latest.estimated_tdee_kcal,
                "flux_range": latest.flux_confidence_range,
                "trend_weight_kg": round(latest.trend_weight_kg, 2),
                "confidence": confidence.value,
                "data_quality": {"score": quality.score, "issues": quality.issues},
                "statistics": {
                    "average": round(stats.average, 1),
                    "std_dev": round(stats.std_dev, 1),
                    "min": stats.minimum,
                    "max": stats.maximum,
                },
                "states": [
                    {
                        "date": s.date.isoformat(),
                        "scale_weight_kg": weights.get(s.date),
                        "trend_weight_kg": round(s.trend_weight_kg, 2),
                        "raw_tdee": s.raw_tdee_kcal,
                        "estimated_tdee": s.estimated_tdee_kcal,
                        "flux_range": s.flux_confidence_range,
                    }
                    for s in states
                ],
            },
            "human_summary": (
                f"TDEE: {latest.estimated_tdee_kcal:.0f} ± {latest.flux_confidence_range:.0f} "
                f"kcal/day ({confidence.value})"
            ),
        })
        return

    table = Table(title=f"TDEE (last {days} days)")
    table.add_column("Date", style="cyan")
    table.add_column("Scale", justify="right")
    table.add_column("Trend", justify="right", style="blue")
    table.add_column("Raw", justify="right")
    table.add_column("TDEE", justify="right", style="green")
    table.add_column("±", justify="right")
    for s in states:
        table.add_row(
            s.date.isoformat(),
            _fmt_kg(weights.get(s.date)),
            f"{s.trend_weight_kg:.2f}",
            f"{s.raw_tdee_kcal:.0f}",
            f"{s.estimated_tdee_kcal:.0f}",
            f"{s.flux_confidence_range:.0f}",
        )
    console.print(table)
    console.print(
        Panel(
            f"[bold]{latest.estimated_tdee_kcal:.0f} ± {latest.flux_confidence_range:.0f} kcal/day[/bold]\n"
            f"Confidence: {confidence.value}\n"
            f"Data quality: {quality.score}/100",
            title="Current estimate",
        )
    )
    for issue in quality.issues:
        console.print(f"  [yellow]- {issue}[/yellow]")


# ============================================================================
# Coaching Commands
# ============================================================================


@coach_app.command("checkin")
def coach_checkin(
    date_str: Optional[str] = typer.Option(
        None, "--date", "-d", help="Any day in the week (default: today)"
    ),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Build and save the weekly check-in for a Monday-Sunday week."""
    from tdeecoach.tracking.recompute import RecomputeOrchestrator

    day = parse_day(date_str, "coach checkin", json_output)
    settings = get_settings()

    db = get_db()
    with db.get_connection() as conn:
        goals = load_user(conn, user_id, "coach checkin", json_output)
        orchestrator = RecomputeOrchestrator(
            open_store(conn, goals, "coach checkin", json_output),
            default_tdee_kcal=settings.tracking.default_tdee_kcal,
        )
        try:
            orchestrator.resume()
            check_in = orchestrator.finalize_week(day)
        except StorageError as e:
            fail("coach checkin", str(e), json_output)

    if check_in is None:
        fail("coach checkin", "No computed TDEE for that week", json_output)

    if json_output:
        output_json({
            "success": True,
            "command": "coach checkin",
            "data": {
                "week_start": check_in.week_start_date.isoformat(),
                "week_end": check_in.week_end_date.isoformat(),
                "average_tdee": check_in.average_tdee,
                "suggested_calories": check_in.suggested_calories,
                "adherence_score": check_in.adherence_score,
                "confidence": check_in.confidence_level.value,
                "trend_weight_start": check_in.trend_weight_start,
                "trend_weight_end": check_in.trend_weight_end,
                "weekly_weight_change": check_in.weekly_weight_change,
                "notes": check_in.notes,
            },
            "human_summary": (
                f"Week of {check_in.week_start_date}: eat {check_in.suggested_calories:.0f} kcal/day"
            ),
        })
        return

    console.print(
        Panel(
            f"Average TDEE: {check_in.average_tdee:.0f} kcal/day\n"
            f"[bold green]Suggested intake: {check_in.suggested_calories:.0f} kcal/day[/bold green]\n"
            f"Trend: {check_in.trend_weight_start:.2f} -> {check_in.trend_weight_end:.2f} kg "
            f"({check_in.weekly_weight_change:+.2f})\n"
            f"Adherence: {check_in.adherence_score:.0%}  Confidence: {check_in.confidence_level.value}",
            title=f"Check-in {check_in.week_start_date} .. {check_in.week_end_date}",
        )
    )
    if check_in.notes:
        console.print(f"[yellow]{check_in.notes}[/yellow]")


@coach_app.command("target")
def coach_target(
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Daily calorie target from the current TDEE estimate and goal."""
    from tdeecoach.tracking.coaching import (
        calculate_calorie_target,
        calculate_goal_adjustment,
        check_maintenance_drift,
    )

    db = get_db()
    with db.get_connection() as conn:
        goals = load_user(conn, user_id, "coach target", json_output)
        latest = open_store(conn, goals, "coach target", json_output).get_latest_state()

    if latest is None:
        fail("coach target", "No computed TDEE yet", json_output)

    drift = None
    if goals.goal_type is GoalType.MAINTAIN and goals.target_weight_kg is not None:
        drift = check_maintenance_drift(
            latest.trend_weight_kg, goals.target_weight_kg, latest.estimated_tdee_kcal
        )
        target = calculate_calorie_target(drift.adjusted_calories, GoalType.MAINTAIN)
    else:
        target = calculate_calorie_target(
            latest.estimated_tdee_kcal, goals.goal_type, goals.goal_rate
        )
    adjustment = calculate_goal_adjustment(goals.goal_type, goals.goal_rate)

    if json_output:
        output_json({
            "success": True,
            "command": "coach target",
            "data": {
                "tdee": latest.estimated_tdee_kcal,
                "flux_range": latest.flux_confidence_range,
                "goal_type": goals.goal_type.value,
                "goal_adjustment": adjustment,
                "drift_status": drift.drift_status.value if drift else None,
                "drift_kg": drift.drift if drift else None,
                "calorie_target": target,
            },
            "human_summary": f"Target: {target:.0f} kcal/day",
        })
        return

    console.print("[bold]Calorie Target[/bold]")
    console.print(
        f"  Estimated TDEE: {latest.estimated_tdee_kcal:.0f} ± {latest.flux_confidence_range:.0f} kcal/day"
    )
    console.print(f"  Goal: {goals.goal_type.value} ({adjustment:+.0f} kcal/day)")
    if drift is not None:
        console.print(f"  Drift from target: {drift.drift:+.2f} kg ({drift.drift_status.value})")
    console.print(f"  [green]Eat: {target:.0f} kcal/day[/green]")


@coach_app.command("progress")
def coach_progress(
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Progress toward the target weight."""
    from tdeecoach.tracking.coaching import calculate_goal_progress, estimate_weeks_to_goal
    from tdeecoach.tracking.models import WeightDataPoint
    from tdeecoach.tracking.trend import get_weekly_weight_change

    end = date.today()
    db = get_db()
    with db.get_connection() as conn:
        goals = load_user(conn, user_id, "coach progress", json_output)
        store = open_store(conn, goals, "coach progress", json_output)
        states = store.get_states(end - timedelta(days=13), end)
        first_weight = store.get_first_weight()

    if goals.target_weight_kg is None:
        fail(
            "coach progress",
            "No target weight set",
            json_output,
            "Set one with: tdeecoach user update --target <kg>",
        )
    if not states or first_weight is None:
        fail("coach progress", "Not enough weight data for a progress report", json_output)

    start_weight = goals.start_weight_kg if goals.start_weight_kg is not None else first_weight[1]
    current = round(states[-1].trend_weight_kg, 2)
    series = [WeightDataPoint(s.date, None, s.trend_weight_kg) for s in states]
    weekly_change = get_weekly_weight_change(series)
    progress = calculate_goal_progress(start_weight, current, goals.target_weight_kg)
    weeks = estimate_weeks_to_goal(current, goals.target_weight_kg, weekly_change)

    if json_output:
        output_json({
            "success": True,
            "command": "coach progress",
            "data": {
                "start_weight_kg": start_weight,
                "current_trend_kg": current,
                "target_weight_kg": goals.target_weight_kg,
                "progress_percent": progress,
                "weekly_change_kg": weekly_change,
                "weeks_to_goal": weeks,
            },
            "human_summary": f"{progress:.0f}% of the way to {goals.target_weight_kg} kg",
        })
        return

    console.print("[bold]Goal Progress[/bold]")
    console.print(f"  Start: {start_weight:.1f} kg  Now: {current:.2f} kg  Target: {goals.target_weight_kg:.1f} kg")
    console.print(f"  Progress: {progress:.0f}%")
    console.print(f"  Weekly change: {weekly_change:+.2f} kg")
    if weeks is None:
        console.print("  [yellow]Not currently moving toward the target[/yellow]")
    else:
        console.print(f"  Estimated weeks to goal: {weeks}")


# ============================================================================
# Import
# ============================================================================


@app.command("import")
def import_logs(
    csv_path: Path = typer.Argument(..., help="CSV with date, weight_kg, calories, ... columns", exists=True),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Import historic daily logs from CSV and recompute from the earliest row.

    Columns: date (required), weight_kg, calories, protein_g, carbs_g,
    fat_g, steps, status. Empty cells are untracked; 0 calories is a fast.
    """
    from tdeecoach.importer import read_daily_logs
    from tdeecoach.tracking.recompute import RecomputeOrchestrator

    ensure_tables()
    settings = get_settings()
    try:
        rows = read_daily_logs(csv_path, today=date.today())
    except ValueError as e:
        fail("import", str(e), json_output)

    if not rows.logs:
        fail("import", "No importable rows found", json_output)

    db = get_db()
    with db.get_connection() as conn:
        goals = load_user(conn, user_id, "import", json_output)
        store = open_store(conn, goals, "import", json_output)
        try:
            for log in rows.logs:
                store.save_daily_log(log)
            days = RecomputeOrchestrator(
                store, default_tdee_kcal=settings.tracking.default_tdee_kcal
            ).recalculate_tdee_from_date(min(log.date for log in rows.logs))
        except StorageError as e:
            fail("import", str(e), json_output)

    if json_output:
        output_json({
            "success": True,
            "command": "import",
            "data": {
                "imported": len(rows.logs),
                "skipped": rows.skipped,
                "days_recomputed": days,
            },
            "human_summary": f"Imported {len(rows.logs)} days, recomputed {days}",
        })
    else:
        console.print(f"[green]Imported {len(rows.logs)} days[/green], recomputed {days}")
        for message in rows.skipped:
            console.print(f"  [yellow]Skipped {message}[/yellow]")


if __name__ == "__main__":
    app()
