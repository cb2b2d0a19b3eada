"""Weekly coaching: calorie targets, adherence and check-ins.

Targets are adjusted once a week from the smoothed TDEE, never daily, so
day-to-day noise does not make the user chase a moving number.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from tdeecoach.logger import get_logger
from tdeecoach.tracking.dates import week_end_date, week_start_date
from tdeecoach.tracking.expenditure import (
    ENERGY_DENSITY_DEFICIT,
    ENERGY_DENSITY_SURPLUS,
    determine_confidence_level,
    round_kcal,
)
from tdeecoach.tracking.models import (
    ComputedState,
    DailyLog,
    DriftStatus,
    GoalType,
    IntakeKind,
    LogStatus,
    UserGoals,
    WeeklyCheckIn,
)

logger = get_logger(__name__)

MIN_CALORIE_TARGET = 1200.0
MAX_CALORIE_TARGET = 6000.0

DAYS_PER_WEEK = 7
MAX_MISSING_DAYS_FOR_UPDATE = 3
MAINTENANCE_TOLERANCE_KG = 1.5
MICRO_ADJUSTMENT_KCAL = 150.0
PARTIAL_LOGGING_THRESHOLD = 0.5
AT_GOAL_TOLERANCE_KG = 0.1
MAX_GOAL_PROGRESS = 150.0

__all__ = [
    "DriftResult",
    "EligibilityResult",
    "build_weekly_check_in",
    "calculate_adherence_score",
    "calculate_calorie_target",
    "calculate_goal_adjustment",
    "calculate_goal_progress",
    "check_maintenance_drift",
    "check_weekly_update_eligibility",
    "detect_partial_logging",
    "determine_log_status",
    "estimate_weeks_to_goal",
    "week_end_date",
    "week_start_date",
]


@dataclass(frozen=True)
class EligibilityResult:
    """Whether a week has enough data to update targets."""

    can_update: bool
    warning: Optional[str]
    missing_days: int


@dataclass(frozen=True)
class DriftResult:
    """Outcome of the maintenance dead-band check."""

    drift_status: DriftStatus
    adjusted_calories: float
    drift: float  # kg, positive = above target


def calculate_goal_adjustment(goal_type: GoalType | str, rate_kg_per_week: float = 0.5) -> float:
    """
    Daily kcal deficit (negative) or surplus (positive) for a goal.

    Loss uses 7700 kcal/kg and gain 5500 kcal/kg, spread over 7 days:
    0.5 kg/week loss is -550 kcal/day, 0.5 kg/week gain is +393 kcal/day.
    """
    goal_type = GoalType(goal_type)
    if rate_kg_per_week < 0:
        raise ValueError(f"rate must be non-negative, got {rate_kg_per_week}")

    if goal_type is GoalType.LOSE:
        return -round_kcal(rate_kg_per_week * ENERGY_DENSITY_DEFICIT / DAYS_PER_WEEK)
    if goal_type is GoalType.GAIN:
        return round_kcal(rate_kg_per_week * ENERGY_DENSITY_SURPLUS / DAYS_PER_WEEK)
    return 0.0


def _clamp_target(calories: float) -> float:
    return max(MIN_CALORIE_TARGET, min(MAX_CALORIE_TARGET, round_kcal(calories)))


def calculate_calorie_target(
    tdee: float,
    goal_type: GoalType | str,
    rate_kg_per_week: float = 0.5,
) -> float:
    """TDEE plus goal adjustment, clamped to 1200-6000 kcal."""
    return _clamp_target(tdee + calculate_goal_adjustment(goal_type, rate_kg_per_week))


def _is_complete(log: DailyLog) -> bool:
    return log.log_status is LogStatus.COMPLETE and log.calories.is_tracked


def calculate_adherence_score(logs: Sequence[DailyLog]) -> float:
    """
    Fraction of a 7-day week logged completely.

    The denominator is always 7, so a short window cannot score 1.0.

    Returns:
        Score in [0, 1] rounded to 2 decimals; 0 for no logs
    """
    if not logs:
        return 0.0
    complete_days = sum(1 for log in logs if _is_complete(log))
    return round(min(1.0, complete_days / DAYS_PER_WEEK), 2)


def check_weekly_update_eligibility(logs: Sequence[DailyLog]) -> EligibilityResult:
    """Decide whether the week supports a target update."""
    complete_days = sum(1 for log in logs if _is_complete(log))
    missing_days = max(0, DAYS_PER_WEEK - complete_days)

    if missing_days > MAX_MISSING_DAYS_FOR_UPDATE:
        return EligibilityResult(
            can_update=False,
            warning="Not enough data for weekly update. Keep previous targets.",
            missing_days=missing_days,
        )
    if missing_days > 1:
        return EligibilityResult(
            can_update=True,
            warning="Low confidence update due to missing data.",
            missing_days=missing_days,
        )
    return EligibilityResult(can_update=True, warning=None, missing_days=missing_days)


def check_maintenance_drift(
    current_weight: float,
    target_weight: float,
    current_calories: float,
) -> DriftResult:
    """
    Dead-band controller for maintenance.

    Within ±1.5 kg (inclusive) of target, calories are unchanged. Outside it,
    a fixed 150 kcal micro-cut or micro-bulk applies regardless of how far
    the weight has drifted.
    """
    drift = round(current_weight - target_weight, 3)

    if abs(drift) <= MAINTENANCE_TOLERANCE_KG:
        return DriftResult(DriftStatus.WITHIN, current_calories, drift)

    if drift > 0:
        logger.info("Drift +%.1fkg above target, applying micro-cut", drift)
        return DriftResult(DriftStatus.ABOVE, current_calories - MICRO_ADJUSTMENT_KCAL, drift)

    logger.info("Drift %.1fkg below target, applying micro-bulk", drift)
    return DriftResult(DriftStatus.BELOW, current_calories + MICRO_ADJUSTMENT_KCAL, drift)


def detect_partial_logging(daily_log: DailyLog, tdee: float) -> bool:
    """
    True when logged calories look like a forgotten meal.

    Untracked days and deliberate fasts are never partial.
    """
    if daily_log.calories.kind is not IntakeKind.LOGGED:
        return False
    threshold = tdee * PARTIAL_LOGGING_THRESHOLD
    if daily_log.calories.kcal < threshold:
        logger.debug(
            "Partial logging on %s: %s kcal < %.0f", daily_log.date, daily_log.calories.kcal, threshold
        )
        return True
    return False


def determine_log_status(daily_log: DailyLog, tdee: float) -> LogStatus:
    """Infer a status from the data alone."""
    if not daily_log.calories.is_tracked:
        return LogStatus.SKIPPED
    if detect_partial_logging(daily_log, tdee):
        return LogStatus.PARTIAL
    return LogStatus.COMPLETE


def build_weekly_check_in(
    week_start: date,
    week_end: date,
    daily_logs: Sequence[DailyLog],
    computed_states: Sequence[ComputedState],
    goals: UserGoals,
) -> Optional[WeeklyCheckIn]:
    """
    Aggregate a week of state and logs into a check-in.

    Args:
        week_start: First day of the window (inclusive)
        week_end: Last day of the window (inclusive)
        daily_logs: Raw logs; those outside the window are ignored
        computed_states: Computed states; those outside the window are ignored
        goals: Current goals

    Returns:
        WeeklyCheckIn, or None when no computed state falls in the window
    """
    if week_end < week_start:
        raise ValueError(f"week end {week_end} is before week start {week_start}")

    states = sorted(
        (s for s in computed_states if week_start <= s.date <= week_end),
        key=lambda s: s.date,
    )
    if not states:
        logger.info("No computed states for week %s..%s", week_start, week_end)
        return None
    logs = [log for log in daily_logs if week_start <= log.date <= week_end]

    average_tdee = round_kcal(sum(s.estimated_tdee_kcal for s in states) / len(states))
    trend_start = round(states[0].trend_weight_kg, 2)
    trend_end = round(states[-1].trend_weight_kg, 2)

    if goals.goal_type is GoalType.MAINTAIN and goals.target_weight_kg is not None:
        drift = check_maintenance_drift(trend_end, goals.target_weight_kg, average_tdee)
        suggested = _clamp_target(drift.adjusted_calories)
    else:
        suggested = calculate_calorie_target(average_tdee, goals.goal_type, goals.goal_rate)

    eligibility = check_weekly_update_eligibility(logs)
    confidence = determine_confidence_level(states[-1].days_tracked, eligibility.missing_days)

    return WeeklyCheckIn(
        week_start_date=week_start,
        week_end_date=week_end,
        average_tdee=average_tdee,
        suggested_calories=suggested,
        adherence_score=calculate_adherence_score(logs),
        confidence_level=confidence,
        trend_weight_start=trend_start,
        trend_weight_end=trend_end,
        weekly_weight_change=round(trend_end - trend_start, 2),
        notes=eligibility.warning,
    )


def calculate_goal_progress(start_weight: float, current_weight: float, target_weight: float) -> float:
    """
    Percent of the way from start to target.

    Returns 100 at goal and caps overshoot at 150. There is no lower clamp:
    moving away from the goal yields a negative value.

    Example:
        >>> calculate_goal_progress(90, 85, 80)
        50.0
    """
    total_change = target_weight - start_weight
    if abs(total_change) < AT_GOAL_TOLERANCE_KG or abs(current_weight - target_weight) < AT_GOAL_TOLERANCE_KG:
        return 100.0
    progress = (current_weight - start_weight) / total_change * 100
    return float(math.floor(min(MAX_GOAL_PROGRESS, progress) + 0.5))


def estimate_weeks_to_goal(
    current_weight: float,
    target_weight: float,
    rate_kg_per_week: float,
) -> Optional[int]:
    """
    Whole weeks left at the current weekly rate.

    Returns:
        0 at goal; None when the rate is zero or points away from the goal
    """
    remaining = target_weight - current_weight
    if abs(remaining) < AT_GOAL_TOLERANCE_KG:
        return 0
    if rate_kg_per_week == 0:
        return None
    if (remaining > 0) != (rate_kg_per_week > 0):
        return None
    return math.ceil(round(abs(remaining) / abs(rate_kg_per_week), 6))
