"""Exponentially smoothed trend weight.

Raw scale weight is noisy (water, gut contents, scale error). The trend
weight is a latent estimate of tissue mass:

    T_n = W_n × α + T_{n-1} × (1 - α)

with α = 0.1 by default. Days without a measurement hold the previous trend.
Days strictly between two real measurements get a linearly interpolated raw
input so a weekly weigh-in does not produce a staircase trend; days before
the first or after the last measurement are never fabricated.
"""

from __future__ import annotations

import bisect
from datetime import date
from typing import Optional, Sequence

from tdeecoach.logger import get_logger
from tdeecoach.tracking.dates import iter_days
from tdeecoach.tracking.models import WeightDataPoint

logger = get_logger(__name__)

# Default smoothing factor for weight (10%)
WEIGHT_EMA_ALPHA = 0.1

WeightMeasurement = tuple[date, float]


def update_trend_weight(
    prev_trend: float,
    raw_weight: Optional[float],
    alpha: float = WEIGHT_EMA_ALPHA,
) -> float:
    """
    Calculate the next trend weight.

    Args:
        prev_trend: Previous day's trend weight
        raw_weight: Today's scale (or interpolated) weight, None if not weighed
        alpha: Smoothing factor in (0, 1]; higher = more responsive

    Returns:
        New trend weight; prev_trend unchanged when raw_weight is None

    Example:
        >>> update_trend_weight(80.0, 79.0)
        79.9
        >>> update_trend_weight(80.0, None)
        80.0
    """
    if not 0 < alpha <= 1:
        raise ValueError(f"alpha must be in (0, 1], got {alpha}")
    if raw_weight is None:
        return prev_trend
    return raw_weight * alpha + prev_trend * (1 - alpha)


def interpolate_weight(
    start_weight: float,
    end_weight: float,
    start_date: date,
    end_date: date,
    target_date: date,
) -> float:
    """
    Linearly interpolate a weight by elapsed-day fraction.

    Example:
        >>> interpolate_weight(80.0, 78.0, date(2025, 1, 1), date(2025, 1, 5), date(2025, 1, 2))
        79.5
    """
    total_days = (end_date - start_date).days
    if total_days == 0:
        return start_weight
    progress = (target_date - start_date).days / total_days
    return start_weight + (end_weight - start_weight) * progress


def sort_measurements(entries: Sequence[WeightMeasurement]) -> list[WeightMeasurement]:
    """Sort measurements by date, keeping the last value given for a date."""
    by_date: dict[date, float] = {}
    for measured_at, weight in entries:
        by_date[measured_at] = weight
    return sorted(by_date.items())


def resolve_raw_weight(
    measurements: Sequence[WeightMeasurement],
    target: date,
) -> Optional[float]:
    """
    Raw weight input for a day: real measurement, interpolation, or None.

    Args:
        measurements: Measurements sorted by date, one per date
            (see `sort_measurements`)
        target: Day to resolve

    Returns:
        The measurement on target if one exists, an interpolated value if
        target lies strictly between two measurements, otherwise None
    """
    dates = [measured_at for measured_at, _ in measurements]
    idx = bisect.bisect_left(dates, target)

    if idx < len(dates) and dates[idx] == target:
        return measurements[idx][1]
    if idx == 0 or idx == len(dates):
        return None

    prev_date, prev_weight = measurements[idx - 1]
    next_date, next_weight = measurements[idx]
    return interpolate_weight(prev_weight, next_weight, prev_date, next_date, target)


def interpolate_missing_weights(
    entries: Sequence[WeightMeasurement],
    start_date: date,
    end_date: date,
) -> dict[date, Optional[float]]:
    """Map each day in [start_date, end_date] to its raw weight input."""
    measurements = sort_measurements(entries)
    return {day: resolve_raw_weight(measurements, day) for day in iter_days(start_date, end_date)}


def calculate_trend_weights(
    entries: Sequence[WeightMeasurement],
    start_date: date,
    end_date: date,
    initial_trend: Optional[float] = None,
) -> list[WeightDataPoint]:
    """
    Dense daily weight series with trend values.

    Args:
        entries: (date, weight_kg) measurements in any order
        start_date: First day of the series
        end_date: Last day of the series (inclusive)
        initial_trend: Seed trend; defaults to the earliest measurement

    Returns:
        One WeightDataPoint per day. `scale_weight` is the real measurement
        (None on interpolated or unmeasured days); `trend_weight` is rounded
        to 2 decimals. Empty when there are no entries.
    """
    if end_date < start_date:
        raise ValueError(f"end date {end_date} is before start date {start_date}")
    if not entries:
        return []

    measurements = sort_measurements(entries)
    actual = dict(measurements)
    trend = initial_trend if initial_trend is not None else measurements[0][1]

    series: list[WeightDataPoint] = []
    for day in iter_days(start_date, end_date):
        raw = resolve_raw_weight(measurements, day)
        trend = update_trend_weight(trend, raw)
        series.append(
            WeightDataPoint(
                date=day,
                scale_weight=actual.get(day),
                trend_weight=round(trend, 2),
            )
        )

    logger.debug(
        "Trend series %s..%s from %d measurements", start_date, end_date, len(measurements)
    )
    return series


def calculate_weight_delta(current_trend: float, previous_trend: float) -> float:
    """Trend change in kg (negative = losing), 3 decimal precision."""
    return round(current_trend - previous_trend, 3)


def get_weekly_weight_change(series: Sequence[WeightDataPoint]) -> float:
    """
    Weekly change in trend weight.

    Compares the latest point with the point 7 entries back (or the first
    point when the series is shorter).

    Returns:
        Change in kg rounded to 2 decimals; 0 for fewer than 2 points
    """
    if len(series) < 2:
        return 0.0
    latest = series[-1]
    week_ago = series[max(0, len(series) - 7)]
    return round(latest.trend_weight - week_ago.trend_weight, 2)
