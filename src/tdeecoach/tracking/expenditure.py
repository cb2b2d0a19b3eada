"""Back-solved TDEE estimation.

Instead of trusting a population formula, TDEE is solved from the energy
balance identity each day:

    TDEE = calories_in - weight_delta_kg × energy_density

where weight_delta_kg is the change in *trend* weight. The raw daily value is
very noisy, so the number users see is an EMA of it with a small alpha.
Until enough history exists, a Mifflin-St Jeor estimate seeds the chain.

Energy density is asymmetric: 7700 kcal/kg on deficit days (fat-dominated
loss) and 5500 kcal/kg otherwise (lean-tissue-weighted gain is cheaper to
store). Zero-delta days fall on the surplus side.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Optional

from tdeecoach.logger import get_logger
from tdeecoach.tracking.dates import calculate_age
from tdeecoach.tracking.models import (
    ComputedState,
    ConfidenceLevel,
    DailyLog,
    GoalType,
    LogStatus,
    Sex,
    UserGoals,
)

logger = get_logger(__name__)

TDEE_EMA_ALPHA = 0.05
TDEE_EMA_ALPHA_RESPONSIVE = 0.1  # used on days with a large step-count jump
STEP_RESPONSIVENESS_THRESHOLD = 0.2
STEP_BASELINE_ALPHA = 0.1

ENERGY_DENSITY_DEFICIT = 7700.0  # kcal/kg
ENERGY_DENSITY_SURPLUS = 5500.0  # kcal/kg

COLD_START_DAYS = 7
DEFAULT_ACTIVITY_MULTIPLIER = 1.55
ATHLETE_MULTIPLIER = 1.1

HOLD_FLUX_RANGE = 500.0
MIN_FLUX_RANGE = 100.0
BASE_FLUX_RANGE = 500.0
FLUX_NARROWING_PER_DAY = 20.0

# One-off TDEE step per goal step (lose -> maintain -> gain), per kg body weight
TRANSITION_KCAL_PER_KG = 1.25

_GOAL_DIRECTION = {GoalType.LOSE: -1, GoalType.MAINTAIN: 0, GoalType.GAIN: 1}


def round_kcal(value: float) -> float:
    """Round half up to a whole kcal."""
    return float(math.floor(value + 0.5))


@dataclass(frozen=True)
class RawTdee:
    """Unsmoothed TDEE for one day and the energy density used."""

    raw_tdee: float
    energy_density: float


def select_energy_density(weight_delta_kg: float) -> float:
    """7700 kcal/kg for a falling trend, 5500 kcal/kg for flat or rising."""
    if weight_delta_kg < 0:
        return ENERGY_DENSITY_DEFICIT
    return ENERGY_DENSITY_SURPLUS


def calculate_raw_tdee(calories: float, weight_delta_kg: float) -> RawTdee:
    """
    Back-solve one day's TDEE.

    Example:
        >>> calculate_raw_tdee(2000, -0.1)  # ate 2000, trend fell 0.1 kg
        RawTdee(raw_tdee=2770.0, energy_density=7700.0)
    """
    energy_density = select_energy_density(weight_delta_kg)
    raw = calories - weight_delta_kg * energy_density
    return RawTdee(raw_tdee=round_kcal(raw), energy_density=energy_density)


def smooth_tdee(
    raw_tdee: float,
    prev_smoothed: float,
    step_count_delta: Optional[float] = None,
) -> float:
    """
    EMA-smooth the raw TDEE.

    Args:
        raw_tdee: Today's back-solved TDEE
        prev_smoothed: Yesterday's smoothed TDEE
        step_count_delta: Relative step-count change vs. baseline (0.25 = +25%).
            At or above 20% the more responsive alpha is used for this day.

    Returns:
        Smoothed TDEE rounded to a whole kcal
    """
    alpha = TDEE_EMA_ALPHA
    if step_count_delta is not None and step_count_delta >= STEP_RESPONSIVENESS_THRESHOLD:
        alpha = TDEE_EMA_ALPHA_RESPONSIVE
        logger.debug(
            "Step increase of %.0f%%, using responsive alpha %s",
            step_count_delta * 100,
            alpha,
        )
    return round_kcal(raw_tdee * alpha + prev_smoothed * (1 - alpha))


def update_step_baseline(
    baseline: Optional[float],
    step_count: Optional[int],
    alpha: float = STEP_BASELINE_ALPHA,
) -> Optional[float]:
    """Rolling step-count baseline; unchanged on days without a count."""
    if step_count is None:
        return baseline
    if baseline is None:
        return float(step_count)
    return round(step_count * alpha + baseline * (1 - alpha), 1)


def calculate_step_delta(step_count: Optional[int], baseline: Optional[float]) -> Optional[float]:
    """Relative change of today's steps against the baseline, if both exist."""
    if step_count is None or baseline is None or baseline <= 0:
        return None
    return (step_count - baseline) / baseline


def update_tdee_variance(
    prev_variance: float,
    raw_tdee: float,
    prev_smoothed: float,
    alpha: float = TDEE_EMA_ALPHA,
) -> float:
    """Exponentially weighted variance of raw TDEE around the smoothed value."""
    residual = raw_tdee - prev_smoothed
    return round((1 - alpha) * (prev_variance + alpha * residual * residual), 2)


# ============================================================================
# Cold start (Mifflin-St Jeor)
# ============================================================================


def calculate_mifflin_st_jeor_bmr(
    weight_kg: float,
    height_cm: float,
    age_years: int,
    sex: Sex | str,
) -> float:
    """
    Basal metabolic rate via Mifflin-St Jeor, rounded to a whole kcal.

    Males:   10 × kg + 6.25 × cm - 5 × age + 5
    Females: 10 × kg + 6.25 × cm - 5 × age - 161
    """
    sex = Sex(sex)
    base = 10 * weight_kg + 6.25 * height_cm - 5 * age_years
    sex_factor = 5 if sex is Sex.MALE else -161
    return round_kcal(base + sex_factor)


def calculate_cold_start_tdee(
    goals: UserGoals,
    current_weight_kg: float,
    on_date: Optional[date] = None,
) -> Optional[float]:
    """
    TDEE estimate for the period before back-solving has enough history.

    BMR × 1.55, plus 10% for athletes.

    Args:
        goals: Profile with height, birth date and sex
        current_weight_kg: Weight to evaluate at
        on_date: Date the age is computed for (default: today)

    Returns:
        Estimated TDEE, or None when height, birth date or sex is missing.
        Callers fall back to a fixed default in that case.
    """
    if not goals.has_body_metrics:
        logger.info("Missing profile data for cold start TDEE")
        return None

    age = calculate_age(goals.birth_date, on_date or date.today())  # type: ignore[arg-type]
    bmr = calculate_mifflin_st_jeor_bmr(current_weight_kg, goals.height_cm, age, goals.sex)  # type: ignore[arg-type]

    tdee = bmr * DEFAULT_ACTIVITY_MULTIPLIER
    if goals.athlete_status:
        tdee *= ATHLETE_MULTIPLIER
        logger.debug("Applied athlete correction (+10%)")

    return round_kcal(tdee)


# ============================================================================
# Confidence
# ============================================================================


def determine_confidence_level(days_tracked: int, missing_days_in_window: int) -> ConfidenceLevel:
    """
    Confidence in the TDEE estimate.

    Args:
        days_tracked: Days with usable intake data so far
        missing_days_in_window: Incomplete days in the current 7-day window
    """
    if days_tracked < COLD_START_DAYS:
        return ConfidenceLevel.LEARNING
    if missing_days_in_window <= 1:
        return ConfidenceLevel.HIGH
    if missing_days_in_window <= 3:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def calculate_flux_range(days_tracked: int, variance_kcal2: float = 0.0) -> float:
    """
    ± kcal uncertainty band around the estimate.

    Starts at 500 and narrows 20 kcal per tracked day down to a 100 kcal
    floor; noisy recent raw values widen it again.
    """
    if variance_kcal2 < 0:
        raise ValueError(f"variance must be non-negative, got {variance_kcal2}")
    base = max(MIN_FLUX_RANGE, BASE_FLUX_RANGE - days_tracked * FLUX_NARROWING_PER_DAY)
    return round_kcal(base + math.sqrt(variance_kcal2) * 0.5)


# ============================================================================
# Daily state transition
# ============================================================================


def _should_hold(daily_log: Optional[DailyLog]) -> bool:
    if daily_log is None or not daily_log.calories.is_tracked:
        return True
    return daily_log.log_status is LogStatus.SKIPPED


def build_computed_state(
    day: date,
    trend_weight: float,
    prev_trend_weight: float,
    daily_log: Optional[DailyLog],
    prev_tdee: float,
    *,
    step_count_delta: Optional[float] = None,
    prev_days_tracked: int = 0,
    prev_variance: float = 0.0,
    step_baseline: Optional[float] = None,
) -> ComputedState:
    """
    Compute one day's state from the previous day's values and today's log.

    A day with no log, untracked calories, or an explicit ``skipped`` status
    holds the previous TDEE with a wide uncertainty band, even if calories
    happen to be present. Trend weight and its delta update regardless.

    Args:
        day: The calendar day
        trend_weight: Today's trend weight
        prev_trend_weight: Yesterday's trend weight
        daily_log: Today's raw log, if any
        prev_tdee: Yesterday's smoothed TDEE
        step_count_delta: Relative step change; derived from the log's step
            count and `step_baseline` when not given
        prev_days_tracked: Tracked-day count carried from yesterday
        prev_variance: Raw TDEE variance carried from yesterday
        step_baseline: Step baseline carried from yesterday

    Returns:
        ComputedState for `day`
    """
    weight_delta = round(trend_weight - prev_trend_weight, 3)
    step_count = daily_log.step_count if daily_log is not None else None
    new_baseline = update_step_baseline(step_baseline, step_count)

    if _should_hold(daily_log):
        if daily_log is not None and daily_log.log_status is LogStatus.SKIPPED:
            logger.debug("Day %s marked as skipped, holding previous TDEE", day)
        return ComputedState(
            date=day,
            trend_weight_kg=trend_weight,
            raw_tdee_kcal=prev_tdee,
            estimated_tdee_kcal=prev_tdee,
            flux_confidence_range=HOLD_FLUX_RANGE,
            energy_density_used=select_energy_density(weight_delta),
            weight_delta_kg=weight_delta,
            days_tracked=prev_days_tracked,
            tdee_variance=prev_variance,
            step_baseline=new_baseline,
        )

    if step_count_delta is None:
        step_count_delta = calculate_step_delta(step_count, step_baseline)

    raw = calculate_raw_tdee(daily_log.calories.kcal, weight_delta)  # type: ignore[union-attr]
    smoothed = smooth_tdee(raw.raw_tdee, prev_tdee, step_count_delta)
    days_tracked = prev_days_tracked + 1
    variance = update_tdee_variance(prev_variance, raw.raw_tdee, prev_tdee)

    logger.debug(
        "%s: intake=%s delta=%.3fkg raw=%s smoothed=%s density=%s",
        day,
        daily_log.calories.kcal,  # type: ignore[union-attr]
        weight_delta,
        raw.raw_tdee,
        smoothed,
        raw.energy_density,
    )

    return ComputedState(
        date=day,
        trend_weight_kg=trend_weight,
        raw_tdee_kcal=raw.raw_tdee,
        estimated_tdee_kcal=smoothed,
        flux_confidence_range=calculate_flux_range(days_tracked, variance),
        energy_density_used=raw.energy_density,
        weight_delta_kg=weight_delta,
        days_tracked=days_tracked,
        tdee_variance=variance,
        step_baseline=new_baseline,
    )


# ============================================================================
# Goal transitions
# ============================================================================


def predict_goal_transition_tdee(
    current_tdee: float,
    from_goal: GoalType | str,
    to_goal: GoalType | str,
    body_weight_kg: float,
) -> float:
    """
    One-off TDEE step when the user switches goal type.

    Moving toward a surplus raises expenditure (thermic effect of food, NEAT
    upregulation); moving toward a deficit lowers it (adaptive thermogenesis).
    The step is 1.25 kcal per kg of body weight per goal step, so
    lose -> gain at 80 kg is +200 kcal and gain -> maintain is -100 kcal.

    Returns:
        Predicted TDEE; `current_tdee` unchanged when the goal is unchanged
    """
    from_goal = GoalType(from_goal)
    to_goal = GoalType(to_goal)
    if from_goal is to_goal:
        return current_tdee
    if body_weight_kg <= 0:
        raise ValueError(f"body_weight_kg must be positive, got {body_weight_kg}")

    steps = _GOAL_DIRECTION[to_goal] - _GOAL_DIRECTION[from_goal]
    adjustment = steps * TRANSITION_KCAL_PER_KG * body_weight_kg
    logger.info(
        "Goal transition %s -> %s: TDEE %+.0f kcal", from_goal.value, to_goal.value, adjustment
    )
    return round_kcal(current_tdee + adjustment)
