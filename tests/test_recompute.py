"""Tests for the recompute cascade over the daily TDEE chain."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta

import pytest

from tdeecoach.tracking.models import DailyLog, Intake, LogStatus, UserGoals
from tdeecoach.tracking.queries import GoalsQueries, SQLiteStore
from tdeecoach.tracking.recompute import RecomputeAborted, RecomputeOrchestrator
from tdeecoach.tracking.storage import StorageError
from tdeecoach.tracking.trend import calculate_trend_weights

TODAY = date(2025, 1, 12)  # a Sunday
FIRST_DAY = TODAY - timedelta(days=9)

WEIGHTS = [80.0, 79.8, 79.9, 79.6, 79.5, 79.6, 79.3, 79.2, 79.3, 79.0]
CALORIES = [2200, 2100, 2300, 2000, 2250, 2150, 2200, 2050, 2300, 2100]


def day(offset: int) -> date:
    return FIRST_DAY + timedelta(days=offset)


def seed_logs(store: SQLiteStore, weights=WEIGHTS, calories=CALORIES) -> None:
    for i, (weight, kcal) in enumerate(zip(weights, calories)):
        store.save_daily_log(
            DailyLog(
                date=day(i),
                scale_weight_kg=weight,
                calories=Intake.from_optional(kcal),
                log_status=LogStatus.COMPLETE if kcal is not None else LogStatus.SKIPPED,
            )
        )


def snapshot(store: SQLiteStore):
    return store.get_states(FIRST_DAY, TODAY)


class FailingStore(SQLiteStore):
    """Store whose state writes start failing after a number of successes."""

    def __init__(self, conn, user_id, fail_after: int):
        super().__init__(conn, user_id)
        self.fail_after = fail_after
        self.saves = 0

    def save_state(self, state) -> None:
        if self.saves >= self.fail_after:
            raise StorageError("disk full")
        super().save_state(state)
        self.saves += 1


@pytest.fixture
def orchestrator(store) -> RecomputeOrchestrator:
    return RecomputeOrchestrator(store, today=TODAY)


class TestWalk:
    """Tests for a full walk of the chain."""

    def test_no_weights_computes_nothing(self, store, orchestrator) -> None:
        """Without any weigh-in the chain cannot start."""
        store.save_daily_log(DailyLog(date=day(0), calories=Intake.of(2000)))
        assert orchestrator.recalculate_tdee_from_date(day(0)) == 0
        assert store.get_latest_state() is None

    def test_walk_through_today(self, store, orchestrator) -> None:
        """Every day from the start through today gets a state."""
        seed_logs(store)

        assert orchestrator.recalculate_tdee_from_date(day(0)) == 10
        states = snapshot(store)
        assert [s.date for s in states] == [day(i) for i in range(10)]
        assert store.get_pending_from() is None

    def test_cold_start_seed(self, store, orchestrator) -> None:
        """The first day starts from the first weight and the Mifflin estimate."""
        seed_logs(store)
        orchestrator.recalculate_tdee_from_date(day(0))

        first = store.get_state(day(0))
        assert first.trend_weight_kg == 80.0
        assert first.weight_delta_kg == 0.0
        # Cold start 2720 smoothed toward 2200 raw
        assert first.estimated_tdee_kcal == 2694.0
        assert first.days_tracked == 1

    def test_default_seed_without_profile(self, conn) -> None:
        """An incomplete profile seeds the chain with the default TDEE."""
        store = SQLiteStore(conn, GoalsQueries.create_user(conn, UserGoals()))
        seed_logs(store)

        RecomputeOrchestrator(store, today=TODAY).recalculate_tdee_from_date(day(0))
        assert store.get_state(day(0)).estimated_tdee_kcal == 2010.0

    def test_trend_matches_weight_series(self, store) -> None:
        """Small daily drops accumulate in the chain as in the plain series."""
        start = date(2024, 11, 14)
        end = start + timedelta(days=59)
        entries = [(start, 80.0)] + [(start + timedelta(days=i), 79.96) for i in range(1, 60)]
        for measured_at, weight in entries:
            store.save_daily_log(DailyLog(date=measured_at, scale_weight_kg=weight))

        RecomputeOrchestrator(store, today=end).recalculate_tdee_from_date(start)

        series = calculate_trend_weights(entries, start, end)
        states = store.get_states(start, end)
        assert len(states) == len(series) == 60
        for state, point in zip(states, series):
            assert round(state.trend_weight_kg, 2) == point.trend_weight
        assert states[-1].trend_weight_kg == pytest.approx(79.96, abs=0.001)

    def test_days_without_logs_hold(self, store, orchestrator) -> None:
        """Days after the last log hold TDEE and the trend."""
        seed_logs(store, WEIGHTS[:5], CALORIES[:5])
        orchestrator.recalculate_tdee_from_date(day(0))

        last_logged = store.get_state(day(4))
        for i in range(5, 10):
            state = store.get_state(day(i))
            assert state.estimated_tdee_kcal == last_logged.estimated_tdee_kcal
            assert state.trend_weight_kg == last_logged.trend_weight_kg
            assert state.flux_confidence_range == 500.0

    def test_skipped_day_holds(self, store, orchestrator) -> None:
        """A day marked skipped keeps the previous TDEE despite its calories."""
        seed_logs(store)
        log = store.get_daily_log(day(5))
        store.save_daily_log(replace(log, calories=Intake.of(900), log_status=LogStatus.SKIPPED))

        orchestrator.recalculate_tdee_from_date(day(0))
        held = store.get_state(day(5))
        assert held.estimated_tdee_kcal == store.get_state(day(4)).estimated_tdee_kcal
        assert held.raw_tdee_kcal == held.estimated_tdee_kcal
        assert held.days_tracked == store.get_state(day(4)).days_tracked

    def test_idempotent(self, store, orchestrator) -> None:
        """A second run over unchanged inputs writes identical states."""
        seed_logs(store)
        orchestrator.recalculate_tdee_from_date(day(0))
        first = snapshot(store)

        orchestrator.recalculate_tdee_from_date(day(0))
        assert snapshot(store) == first


class TestCascade:
    """Tests for edits to past days."""

    def test_edit_changes_later_days_only(self, store, orchestrator) -> None:
        """Editing a past weight rewrites that day onward and nothing earlier."""
        seed_logs(store)
        orchestrator.recalculate_tdee_from_date(day(0))
        before = snapshot(store)

        log = store.get_daily_log(day(5))
        store.save_daily_log(replace(log, scale_weight_kg=78.0))
        orchestrator.recalculate_tdee_from_date(day(5))
        after = snapshot(store)

        assert after[:5] == before[:5]
        assert all(a.trend_weight_kg != b.trend_weight_kg for a, b in zip(after[5:], before[5:]))

    def test_incremental_matches_full_recompute(self, store, orchestrator) -> None:
        """Recomputing from the edit equals recomputing everything."""
        seed_logs(store)
        orchestrator.recalculate_tdee_from_date(day(0))

        log = store.get_daily_log(day(3))
        store.save_daily_log(replace(log, calories=Intake.of(2600)))
        orchestrator.recalculate_tdee_from_date(day(3))
        incremental = snapshot(store)

        orchestrator.recalculate_tdee_from_date(day(0))
        assert snapshot(store) == incremental

    def test_new_weigh_in_refreshes_interpolated_gap(self, store, orchestrator) -> None:
        """Days between the previous weigh-in and a new one are recomputed."""
        weights = [80.0, None, None, None, 80.0, None, None, None, None, None]
        seed_logs(store, weights, CALORIES)
        orchestrator.recalculate_tdee_from_date(day(0))
        before = snapshot(store)

        log = store.get_daily_log(day(8))
        store.save_daily_log(replace(log, scale_weight_kg=78.0))
        orchestrator.recalculate_tdee_from_date(day(8))
        after = snapshot(store)

        assert after[:5] == before[:5]
        # Days 5-7 are now interpolated toward 78 kg instead of holding
        for i in range(5, 8):
            assert after[i].trend_weight_kg < before[i].trend_weight_kg

        orchestrator.recalculate_tdee_from_date(day(0))
        assert snapshot(store) == after


class TestPending:
    """Tests for the pending-recompute watermark."""

    def test_future_day_rejected(self, orchestrator) -> None:
        """A day after today cannot be marked pending."""
        with pytest.raises(ValueError):
            orchestrator.mark_pending(TODAY + timedelta(days=1))

    def test_mark_pending_only_lowers(self, store, orchestrator) -> None:
        """The watermark moves to the earliest marked day."""
        orchestrator.mark_pending(day(5))
        orchestrator.mark_pending(day(7))
        assert store.get_pending_from() == day(5)
        orchestrator.mark_pending(day(3))
        assert store.get_pending_from() == day(3)

    def test_resume_with_nothing_pending(self, store, orchestrator) -> None:
        """A complete chain has no work."""
        seed_logs(store)
        orchestrator.recalculate_tdee_from_date(day(0))
        assert orchestrator.resume() == 0

    def test_resume_fills_new_days(self, store) -> None:
        """Resuming on a later day extends the chain through the new today."""
        seed_logs(store)
        RecomputeOrchestrator(store, today=day(8)).recalculate_tdee_from_date(day(0))
        assert store.get_latest_state().date == day(8)

        assert RecomputeOrchestrator(store, today=TODAY).resume() == 1
        assert store.get_latest_state().date == TODAY

    def test_resume_starts_from_first_log(self, store, orchestrator) -> None:
        """With no states yet, resume starts at the first logged day."""
        seed_logs(store)
        assert orchestrator.resume() == 10


class TestAbort:
    """Tests for storage failure mid-walk."""

    def test_abort_leaves_valid_prefix(self, conn, store) -> None:
        """A failed write keeps earlier days and points the watermark at the gap."""
        seed_logs(store)
        failing = FailingStore(conn, store.user_id, fail_after=4)

        with pytest.raises(RecomputeAborted) as exc_info:
            RecomputeOrchestrator(failing, today=TODAY).recalculate_tdee_from_date(day(0))

        assert exc_info.value.last_persisted_date == day(3)
        assert exc_info.value.days_recomputed == 4
        assert store.get_pending_from() == day(4)
        assert store.get_latest_state().date == day(3)

    def test_abort_is_a_storage_error(self, conn, store) -> None:
        """Callers catching StorageError also catch an aborted walk."""
        seed_logs(store)
        failing = FailingStore(conn, store.user_id, fail_after=0)
        with pytest.raises(StorageError):
            RecomputeOrchestrator(failing, today=TODAY).recalculate_tdee_from_date(day(0))

    def test_resume_after_abort_matches_clean_run(self, conn, store, orchestrator) -> None:
        """Resuming after a failure gives the same chain as an uninterrupted run."""
        seed_logs(store)
        orchestrator.recalculate_tdee_from_date(day(0))
        clean = snapshot(store)

        conn.execute("DELETE FROM computed_states WHERE user_id = ?", (store.user_id,))
        failing = FailingStore(conn, store.user_id, fail_after=6)
        with pytest.raises(RecomputeAborted):
            RecomputeOrchestrator(failing, today=TODAY).recalculate_tdee_from_date(day(0))

        assert orchestrator.resume() == 4
        assert snapshot(store) == clean
        assert store.get_pending_from() is None


class TestFinalizeWeek:
    """Tests for the weekly check-in."""

    def test_finalize_week_persists_check_in(self, store, orchestrator) -> None:
        """The check-in covers Monday-Sunday and is saved."""
        seed_logs(store)
        orchestrator.recalculate_tdee_from_date(day(0))

        check_in = orchestrator.finalize_week(TODAY)
        assert check_in is not None
        assert check_in.week_start_date == date(2025, 1, 6)
        assert check_in.week_end_date == TODAY
        assert check_in.adherence_score == 1.0
        assert store.get_check_in(date(2025, 1, 6)) == check_in

    def test_finalize_empty_week(self, store, orchestrator) -> None:
        """A week with no computed state has no check-in."""
        assert orchestrator.finalize_week(date(2024, 12, 1)) is None
