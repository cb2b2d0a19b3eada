"""Special cases in metabolic tracking.

Partial-logging detection, whoosh (water-shift) protection, goal transition
detection, data-quality scoring and entry validation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from tdeecoach.logger import get_logger
from tdeecoach.tracking.models import (
    ComputedState,
    DailyLog,
    GoalType,
    IntakeKind,
    LogStatus,
    UserGoals,
)

logger = get_logger(__name__)

PARTIAL_LOGGING_THRESHOLD = 0.5
MINIMUM_VALID_CALORIES = 500.0

WHOOSH_DIVERGENCE_KG = 0.3
MAX_CREDIBLE_DAILY_CHANGE_KG = 0.5
EXTREME_CHANGE_KG = 1.5
WHOOSH_DAMPING = {"mild": 0.7, "moderate": 0.5, "extreme": 0.3}

OUTLIER_Z_SCORE = 2.0

MIN_WEIGHT_KG = 30.0
MAX_WEIGHT_KG = 300.0
MAX_DAILY_WEIGHT_JUMP_KG = 3.0
MAX_DAILY_CALORIES = 10000.0


@dataclass(frozen=True)
class PartialCheck:
    is_partial: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    warning: Optional[str] = None


@dataclass(frozen=True)
class WhooshCheck:
    is_whoosh: bool
    severity: Optional[str] = None  # "mild", "moderate", "extreme"


@dataclass(frozen=True)
class GoalTransition:
    has_transitioned: bool
    details: Optional[str] = None


@dataclass
class DataQuality:
    score: int
    issues: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class TdeeStatistics:
    average: float
    std_dev: float
    minimum: float
    maximum: float


def is_partial_logging(calories: Optional[float], estimated_tdee: float) -> PartialCheck:
    """
    Partial-logging check with a reason for display.

    Stricter than the coaching check: anything under 500 kcal (but above
    zero) is partial regardless of TDEE.
    """
    if calories is None or calories == 0:
        return PartialCheck(False)
    if calories < MINIMUM_VALID_CALORIES:
        return PartialCheck(True, f"Only {calories:.0f} kcal logged - likely incomplete")
    if calories < estimated_tdee * PARTIAL_LOGGING_THRESHOLD:
        return PartialCheck(
            True,
            f"{calories:.0f} kcal is less than 50% of your {estimated_tdee:.0f} kcal TDEE",
        )
    return PartialCheck(False)


def validate_daily_log_for_tdee(daily_log: DailyLog, estimated_tdee: float) -> ValidationResult:
    """Whether a day is trustworthy input for the back-solve."""
    if not daily_log.calories.is_tracked:
        return ValidationResult(False, "No nutrition data logged")
    partial = is_partial_logging(daily_log.calories.to_optional(), estimated_tdee)
    if partial.is_partial:
        return ValidationResult(False, partial.reason)
    if daily_log.log_status is LogStatus.SKIPPED:
        return ValidationResult(False, "Day marked as skipped")
    return ValidationResult(True)


def is_whoosh_effect(scale_weight_change: float, trend_weight_change: float) -> WhooshCheck:
    """Detect a scale jump far larger than the trend supports."""
    abs_scale = abs(scale_weight_change)
    divergence = abs_scale - abs(trend_weight_change)

    if divergence < WHOOSH_DIVERGENCE_KG:
        return WhooshCheck(False)
    if abs_scale >= EXTREME_CHANGE_KG:
        return WhooshCheck(True, "extreme")
    if abs_scale >= MAX_CREDIBLE_DAILY_CHANGE_KG:
        return WhooshCheck(True, "moderate")
    return WhooshCheck(True, "mild")


def damp_whoosh_effect(raw_weight_delta: float, trend_weight_delta: float) -> float:
    """Weight delta to use for TDEE, damped when a whoosh is detected."""
    check = is_whoosh_effect(raw_weight_delta, trend_weight_delta)
    if not check.is_whoosh:
        return trend_weight_delta

    damped = raw_weight_delta * WHOOSH_DAMPING[check.severity]  # type: ignore[index]
    logger.info(
        "Whoosh detected (%s): dampening delta from %.3f to %.3f",
        check.severity,
        raw_weight_delta,
        damped,
    )
    return damped


def detect_goal_transition(previous: Optional[UserGoals], current: UserGoals) -> GoalTransition:
    """Report a change of goal type, or of rate on a non-maintenance goal."""
    if previous is None:
        return GoalTransition(False)

    if previous.goal_type is not current.goal_type:
        return GoalTransition(
            True,
            f"Goal changed from {previous.goal_type.value} to {current.goal_type.value}",
        )
    if previous.goal_rate != current.goal_rate and current.goal_type is not GoalType.MAINTAIN:
        return GoalTransition(
            True,
            f"Rate changed from {previous.goal_rate} to {current.goal_rate} kg/week",
        )
    return GoalTransition(False)


def calculate_data_quality_score(logs: Sequence[DailyLog], estimated_tdee: float) -> DataQuality:
    """
    Score (0-100) a window of logs for TDEE trustworthiness.

    Penalises incomplete days, partial logging, sparse weigh-ins and
    suspiciously uniform intake (a sign of copy-pasted estimates).
    """
    if not logs:
        return DataQuality(0, ["No daily logs provided"])

    issues: list[str] = []
    score = 100
    n = len(logs)

    complete_rate = sum(1 for log in logs if log.log_status is LogStatus.COMPLETE) / n
    if complete_rate < 0.5:
        score -= 40
        issues.append(f"Only {complete_rate:.0%} of days logged completely")
    elif complete_rate < 0.7:
        score -= 20
        issues.append(f"{complete_rate:.0%} of days logged completely")
    elif complete_rate < 0.85:
        score -= 10

    partial_days = sum(
        1
        for log in logs
        if is_partial_logging(log.calories.to_optional(), estimated_tdee).is_partial
    )
    partial_rate = partial_days / n
    if partial_rate > 0.3:
        score -= 30
        issues.append(f"{partial_days} days appear to have incomplete logging")
    elif partial_rate > 0.15:
        score -= 15
        issues.append(f"{partial_days} days may have incomplete logging")

    weight_rate = sum(1 for log in logs if log.scale_weight_kg is not None) / n
    if weight_rate < 0.3:
        score -= 30
        issues.append("Very few weight measurements available")
    elif weight_rate < 0.5:
        score -= 15
        issues.append("Weight measured less than half the days")

    intake = np.array(
        [log.calories.value for log in logs if log.calories.kind is IntakeKind.LOGGED]
    )
    if len(intake) >= 5:
        cv = float(np.std(intake) / np.mean(intake))
        if cv < 0.05:
            score -= 10
            issues.append(
                "Calorie intake appears unusually consistent - ensure accurate logging"
            )

    return DataQuality(max(0, score), issues)


def calculate_tdee_statistics(states: Sequence[ComputedState]) -> TdeeStatistics:
    """Mean, population std-dev, min and max of smoothed TDEE."""
    if not states:
        return TdeeStatistics(0.0, 0.0, 0.0, 0.0)
    values = np.array([s.estimated_tdee_kcal for s in states], dtype=float)
    return TdeeStatistics(
        average=float(values.mean()),
        std_dev=float(values.std()),
        minimum=float(values.min()),
        maximum=float(values.max()),
    )


def is_tdee_outlier(raw_tdee: float, recent_average: float, std_dev: float) -> bool:
    """True when raw_tdee lies more than 2 standard deviations from the average."""
    if std_dev <= 0:
        return False
    z_score = abs(raw_tdee - recent_average) / std_dev
    if z_score > OUTLIER_Z_SCORE:
        logger.info("TDEE outlier: %.0f vs avg %.0f (z=%.2f)", raw_tdee, recent_average, z_score)
        return True
    return False


def validate_weight_entry(weight_kg: float, previous_weight_kg: Optional[float]) -> ValidationResult:
    """Reject implausible weights; warn on large day-to-day jumps."""
    if not MIN_WEIGHT_KG <= weight_kg <= MAX_WEIGHT_KG:
        return ValidationResult(
            False, f"Weight outside reasonable range ({MIN_WEIGHT_KG:.0f}-{MAX_WEIGHT_KG:.0f} kg)"
        )
    if previous_weight_kg is not None:
        change = abs(weight_kg - previous_weight_kg)
        if change > MAX_DAILY_WEIGHT_JUMP_KG:
            return ValidationResult(
                True,
                f"Large weight change ({change:.1f} kg) - this may be water fluctuation",
            )
    return ValidationResult(True)


def validate_calorie_entry(calories: float, estimated_tdee: float) -> ValidationResult:
    """Reject negative or absurd intakes; warn above twice TDEE."""
    if calories < 0:
        return ValidationResult(False, "Calories cannot be negative")
    if calories > MAX_DAILY_CALORIES:
        return ValidationResult(False, "Calorie value seems unreasonably high")
    if calories > estimated_tdee * 2:
        return ValidationResult(
            True,
            f"{calories:.0f} kcal is more than double your estimated TDEE - verify accuracy",
        )
    return ValidationResult(True)
