"""Recompute cascade for the daily TDEE chain.

Each day's ComputedState depends on the previous day's, so any change to a
past DailyLog invalidates every later day. The orchestrator keeps a pending
watermark in the store (every date at or after it is pending-recompute),
walks forward from the last good state to today, and persists each day
before moving on. A failure mid-walk leaves a valid prefix and the watermark
on the first unpersisted day, so the next run resumes there.

Callers must ensure at most one orchestrator runs per user at a time.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from tdeecoach.logger import get_logger
from tdeecoach.tracking.coaching import build_weekly_check_in
from tdeecoach.tracking.dates import iter_days, week_end_date, week_start_date
from tdeecoach.tracking.expenditure import build_computed_state, calculate_cold_start_tdee
from tdeecoach.tracking.models import ComputedState, UserGoals, WeeklyCheckIn
from tdeecoach.tracking.storage import MetabolicStore, StorageError
from tdeecoach.tracking.trend import resolve_raw_weight, sort_measurements, update_trend_weight

logger = get_logger(__name__)

DEFAULT_TDEE_KCAL = 2000.0


class RecomputeAborted(StorageError):
    """The walk stopped on a storage failure.

    Attributes:
        last_persisted_date: Last day written before the failure, if any
        days_recomputed: Days persisted by this run before the failure
    """

    def __init__(
        self,
        message: str,
        last_persisted_date: Optional[date],
        days_recomputed: int,
    ):
        super().__init__(message)
        self.last_persisted_date = last_persisted_date
        self.days_recomputed = days_recomputed


class RecomputeOrchestrator:
    """Walks the daily chain forward for one user's store."""

    def __init__(
        self,
        store: MetabolicStore,
        *,
        default_tdee_kcal: float = DEFAULT_TDEE_KCAL,
        today: Optional[date] = None,
    ):
        """
        Args:
            store: The user's storage port
            default_tdee_kcal: Seed TDEE when the profile cannot give a cold start
            today: Fixed end of the walk; defaults to the current local date
        """
        self.store = store
        self.default_tdee_kcal = default_tdee_kcal
        self._fixed_today = today
        self.last_walk: Optional[tuple[date, date]] = None  # (start, end) of the most recent walk

    def today(self) -> date:
        return self._fixed_today or date.today()

    def mark_pending(self, day: date) -> None:
        """Mark day and every later day up to today as pending-recompute."""
        today = self.today()
        if day > today:
            raise ValueError(f"cannot mark {day} pending: it is after today ({today})")
        current = self.store.get_pending_from()
        if current is None or day < current:
            self.store.set_pending_from(day)

    def recalculate_tdee_from_date(self, day: date) -> int:
        """
        Recompute the chain from day through today.

        Returns:
            Number of days recomputed
        """
        self.mark_pending(day)
        return self.resume()

    def resume(self) -> int:
        """Recompute from the earliest pending day; 0 when nothing is pending."""
        today = self.today()
        self.last_walk = None
        start = self._earliest_pending(today)
        if start is None:
            logger.debug("Nothing pending up to %s", today)
            return 0
        return self._walk(start, today)

    def _earliest_pending(self, today: date) -> Optional[date]:
        candidates: list[date] = []

        pending = self.store.get_pending_from()
        if pending is not None:
            candidates.append(pending)

        latest = self.store.get_latest_state()
        if latest is None:
            first_log = self.store.get_first_log_date()
            if first_log is not None:
                candidates.append(first_log)
        elif latest.date < today:
            candidates.append(latest.date + timedelta(days=1))

        candidates = [day for day in candidates if day <= today]
        return min(candidates) if candidates else None

    def _walk(self, start: date, today: date) -> int:
        store = self.store

        # Days since the previous weigh-in were interpolated toward the next
        # measurement, so they move whenever anything from start on changes.
        previous_weight = store.get_last_weight_before(start)
        if previous_weight is not None:
            start = min(start, previous_weight[0] + timedelta(days=1))

        anchor = store.get_latest_state_before(start)
        if anchor is not None:
            start = anchor.date + timedelta(days=1)
            prev = anchor
        else:
            prev = self._seed_state(start)
            if prev is None:
                logger.warning("No weight measurements yet, cannot start the TDEE chain")
                return 0

        self.last_walk = (start, today)
        logs = {log.date: log for log in store.get_daily_logs(start, today)}
        entries = [(d, log.scale_weight_kg) for d, log in logs.items() if log.scale_weight_kg is not None]
        previous_weight = store.get_last_weight_before(start)
        if previous_weight is not None:
            entries.append(previous_weight)
        measurements = sort_measurements(entries)

        logger.info(
            "Recomputing %s..%s from %s (trend %.2f kg, TDEE %.0f kcal)",
            start,
            today,
            "anchor" if anchor is not None else "cold start",
            prev.trend_weight_kg,
            prev.estimated_tdee_kcal,
        )

        days = 0
        last_persisted: Optional[date] = None
        for day in iter_days(start, today):
            raw_weight = resolve_raw_weight(measurements, day)
            # Carried unrounded into the next day; round only for display
            trend = update_trend_weight(prev.trend_weight_kg, raw_weight)
            state = build_computed_state(
                day,
                trend,
                prev.trend_weight_kg,
                logs.get(day),
                prev.estimated_tdee_kcal,
                prev_days_tracked=prev.days_tracked,
                prev_variance=prev.tdee_variance,
                step_baseline=prev.step_baseline,
            )
            try:
                store.save_state(state)
                store.set_pending_from(day + timedelta(days=1))
            except StorageError as exc:
                logger.error("Storage failure persisting %s: %s", day, exc, exc_info=True)
                raise RecomputeAborted(
                    f"recompute stopped at {day}: {exc}", last_persisted, days
                ) from exc
            last_persisted = day
            days += 1
            prev = state

        try:
            store.set_pending_from(None)
        except StorageError as exc:
            raise RecomputeAborted(
                f"could not clear pending marker: {exc}", last_persisted, days
            ) from exc

        logger.info("Recomputed %d days of TDEE", days)
        return days

    def _seed_state(self, start: date) -> Optional[ComputedState]:
        """Synthetic "day before start" state for a chain with no history."""
        first_weight = self.store.get_first_weight()
        if first_weight is None:
            return None
        measured_at, weight = first_weight

        goals = self.store.get_goals()
        tdee = None
        if goals is not None:
            tdee = calculate_cold_start_tdee(goals, weight, measured_at)
        if tdee is None:
            tdee = self.default_tdee_kcal
            logger.info("Incomplete profile, seeding TDEE with default %.0f kcal", tdee)
        else:
            logger.info("Seeding TDEE with cold start estimate %.0f kcal", tdee)

        return ComputedState(
            date=start - timedelta(days=1),
            trend_weight_kg=weight,
            raw_tdee_kcal=tdee,
            estimated_tdee_kcal=tdee,
            flux_confidence_range=0.0,
            energy_density_used=0.0,
            weight_delta_kg=0.0,
        )

    def finalize_week(self, day: date) -> Optional[WeeklyCheckIn]:
        """
        Build and persist the check-in for the Monday-Sunday week containing day.

        Returns:
            The check-in, or None when the week has no computed state
        """
        start = week_start_date(day)
        end = week_end_date(day)
        goals = self.store.get_goals() or UserGoals()
        check_in = build_weekly_check_in(
            start,
            end,
            self.store.get_daily_logs(start, end),
            self.store.get_states(start, end),
            goals,
        )
        if check_in is not None:
            self.store.save_check_in(check_in)
            logger.info(
                "Check-in %s..%s: avg TDEE %.0f, suggested %.0f kcal",
                start,
                end,
                check_in.average_tdee,
                check_in.suggested_calories,
            )
        return check_in
