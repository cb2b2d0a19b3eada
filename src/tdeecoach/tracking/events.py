"""Event handlers for user input.

Every change to a raw daily log marks that day pending and walks the TDEE
chain forward to today. Handlers receive the store explicitly; nothing here
holds a connection of its own.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Optional

from tdeecoach.logger import get_logger
from tdeecoach.tracking.edge_cases import (
    detect_goal_transition,
    validate_calorie_entry,
    validate_weight_entry,
)
from tdeecoach.tracking.expenditure import predict_goal_transition_tdee
from tdeecoach.tracking.models import DailyLog, Intake, LogStatus, UserGoals
from tdeecoach.tracking.recompute import DEFAULT_TDEE_KCAL, RecomputeOrchestrator
from tdeecoach.tracking.storage import MetabolicStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class EventResult:
    """Outcome of a logging event."""

    days_recomputed: int
    warning: Optional[str] = None


@dataclass(frozen=True)
class GoalChange:
    """Outcome of a goal update.

    `predicted_tdee` is only set when the goal type changed and a current
    TDEE and trend weight exist.
    """

    has_transitioned: bool
    details: Optional[str] = None
    predicted_tdee: Optional[float] = None


@dataclass(frozen=True)
class BackfillResult:
    days_processed: int
    computed_states_written: int


def _orchestrator(
    store: MetabolicStore,
    today: Optional[date],
    default_tdee_kcal: float,
) -> RecomputeOrchestrator:
    return RecomputeOrchestrator(store, default_tdee_kcal=default_tdee_kcal, today=today)


def _reject_future(day: date, orchestrator: RecomputeOrchestrator) -> None:
    if day > orchestrator.today():
        raise ValueError(f"cannot log for {day}: it is after today ({orchestrator.today()})")


def _current_tdee(store: MetabolicStore, default_tdee_kcal: float) -> float:
    latest = store.get_latest_state()
    return latest.estimated_tdee_kcal if latest is not None else default_tdee_kcal


def _macro(grams: Optional[float]) -> Intake:
    return Intake.from_optional(round(grams, 1) if grams is not None else None)


def record_weight(
    store: MetabolicStore,
    day: date,
    weight_kg: float,
    today: Optional[date] = None,
    *,
    default_tdee_kcal: float = DEFAULT_TDEE_KCAL,
) -> EventResult:
    """
    Store a scale weight for a day and recompute from it.

    A second weigh-in on the same day replaces the first.

    Raises:
        ValueError: Weight outside 30-300 kg, or day after today
    """
    orchestrator = _orchestrator(store, today, default_tdee_kcal)
    _reject_future(day, orchestrator)

    previous = store.get_last_weight_before(day)
    validation = validate_weight_entry(weight_kg, previous[1] if previous else None)
    if not validation.is_valid:
        raise ValueError(validation.warning)
    if validation.warning:
        logger.warning("%s: %s", day, validation.warning)

    log = store.get_daily_log(day) or DailyLog(date=day)
    store.save_daily_log(replace(log, scale_weight_kg=weight_kg))

    days = orchestrator.recalculate_tdee_from_date(day)
    return EventResult(days, validation.warning)


def record_meal(
    store: MetabolicStore,
    day: date,
    calories: float,
    protein_g: Optional[float] = None,
    carbs_g: Optional[float] = None,
    fat_g: Optional[float] = None,
    today: Optional[date] = None,
    *,
    default_tdee_kcal: float = DEFAULT_TDEE_KCAL,
) -> EventResult:
    """
    Add a meal to the day's nutrition totals and recompute from that day.

    A logged meal makes the day complete unless the user has set the status
    explicitly. Zero calories records a deliberate fast; macros left as None
    stay untracked rather than counting as zero.

    Raises:
        ValueError: Negative or absurd amounts, or day after today
    """
    orchestrator = _orchestrator(store, today, default_tdee_kcal)
    _reject_future(day, orchestrator)

    validation = validate_calorie_entry(calories, _current_tdee(store, default_tdee_kcal))
    if not validation.is_valid:
        raise ValueError(validation.warning)
    if validation.warning:
        logger.warning("%s: %s", day, validation.warning)

    log = store.get_daily_log(day) or DailyLog(date=day)
    updated = replace(
        log,
        calories=log.calories + Intake.of(round(calories)),
        protein_g=log.protein_g + _macro(protein_g),
        carbs_g=log.carbs_g + _macro(carbs_g),
        fat_g=log.fat_g + _macro(fat_g),
        log_status=log.log_status if log.status_override else LogStatus.COMPLETE,
    )
    store.save_daily_log(updated)
    logger.info("Meal logged for %s: %s kcal total", day, updated.calories.to_optional())

    days = orchestrator.recalculate_tdee_from_date(day)
    return EventResult(days, validation.warning)


def update_day_status(
    store: MetabolicStore,
    day: date,
    status: LogStatus | str,
    today: Optional[date] = None,
    *,
    default_tdee_kcal: float = DEFAULT_TDEE_KCAL,
) -> EventResult:
    """Set a day's status explicitly, creating its log if needed, and recompute."""
    status = LogStatus(status)
    orchestrator = _orchestrator(store, today, default_tdee_kcal)
    _reject_future(day, orchestrator)

    log = store.get_daily_log(day) or DailyLog(date=day)
    store.save_daily_log(replace(log, log_status=status, status_override=True))
    logger.info("Status for %s set to %s", day, status.value)

    return EventResult(orchestrator.recalculate_tdee_from_date(day))


def update_goals(store: MetabolicStore, goals: UserGoals) -> GoalChange:
    """
    Persist new goals and report a goal-type change.

    The TDEE chain is not recomputed: the predicted transition TDEE is
    advisory and history keeps its back-solved values.
    """
    previous = store.get_goals()
    transition = detect_goal_transition(previous, goals)
    store.save_goals(goals)

    if not transition.has_transitioned:
        return GoalChange(False)

    predicted = None
    latest = store.get_latest_state()
    if previous is not None and latest is not None and previous.goal_type is not goals.goal_type:
        predicted = predict_goal_transition_tdee(
            latest.estimated_tdee_kcal,
            previous.goal_type,
            goals.goal_type,
            latest.trend_weight_kg,
        )
    logger.info("%s", transition.details)
    return GoalChange(True, transition.details, predicted)


def backfill(
    store: MetabolicStore,
    days: int = 90,
    today: Optional[date] = None,
    *,
    default_tdee_kcal: float = DEFAULT_TDEE_KCAL,
) -> BackfillResult:
    """
    Recompute the whole window of the last `days` days through today.

    Use to populate states for imported history or to repair the chain.
    The window is clipped to the first logged day. `days_processed` counts
    the days the chain actually walked, which can start earlier than the
    window when interpolated days before it depend on the data.
    """
    if days < 0:
        raise ValueError(f"days must be non-negative, got {days}")
    orchestrator = _orchestrator(store, today, default_tdee_kcal)
    start = orchestrator.today() - timedelta(days=days)
    first_log = store.get_first_log_date()
    if first_log is not None and start < first_log <= orchestrator.today():
        start = first_log

    logger.info("Backfilling from %s", start)
    written = orchestrator.recalculate_tdee_from_date(start)
    walked = orchestrator.last_walk
    processed = (walked[1] - walked[0]).days + 1 if walked is not None else 0
    return BackfillResult(days_processed=processed, computed_states_written=written)
