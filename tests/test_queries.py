"""Tests for the SQLite store and profile queries."""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import date

import pytest

from tdeecoach.tracking.models import (
    ComputedState,
    ConfidenceLevel,
    DailyLog,
    GoalType,
    Intake,
    LogStatus,
    UserGoals,
    WeeklyCheckIn,
)
from tdeecoach.tracking.queries import GoalsQueries, SQLiteStore
from tdeecoach.tracking.storage import StorageError


def make_state(day: date, tdee: float = 2500.0) -> ComputedState:
    return ComputedState(
        date=day,
        trend_weight_kg=80.12,
        raw_tdee_kcal=2610.0,
        estimated_tdee_kcal=tdee,
        flux_confidence_range=320.5,
        energy_density_used=7700.0,
        weight_delta_kg=-0.021,
        days_tracked=4,
        tdee_variance=1250.0,
        step_baseline=8200.0,
    )


class TestGoalsQueries:
    """Tests for profile storage."""

    def test_create_and_get(self, conn, profile: UserGoals) -> None:
        """A created profile reads back with its new id."""
        user_id = GoalsQueries.create_user(conn, profile)
        loaded = GoalsQueries.get_user(conn, user_id)

        assert loaded is not None
        assert loaded.user_id == user_id
        assert loaded == replace(profile, user_id=user_id)

    def test_default_user_is_first(self, conn, profile: UserGoals) -> None:
        """The default user is the lowest id."""
        first = GoalsQueries.create_user(conn, profile)
        GoalsQueries.create_user(conn, UserGoals(goal_type=GoalType.GAIN))
        default = GoalsQueries.get_default_user(conn)
        assert default is not None
        assert default.user_id == first

    def test_no_users(self, conn) -> None:
        """An empty database has no default user."""
        assert GoalsQueries.get_default_user(conn) is None
        assert GoalsQueries.get_user(conn, 42) is None

    def test_update_requires_id(self, conn) -> None:
        """Updating needs a user_id."""
        with pytest.raises(ValueError):
            GoalsQueries.update_user(conn, UserGoals())

    def test_update(self, conn, profile: UserGoals) -> None:
        """Updated fields are persisted."""
        user_id = GoalsQueries.create_user(conn, profile)
        goals = GoalsQueries.get_user(conn, user_id)
        goals.goal_type = GoalType.MAINTAIN
        goals.target_weight_kg = None
        GoalsQueries.update_user(conn, goals)

        loaded = GoalsQueries.get_user(conn, user_id)
        assert loaded.goal_type is GoalType.MAINTAIN
        assert loaded.target_weight_kg is None


class TestDailyLogs:
    """Tests for daily log storage."""

    def test_round_trip(self, store: SQLiteStore) -> None:
        """Every field survives a save and load."""
        log = DailyLog(
            date=date(2025, 1, 6),
            scale_weight_kg=80.4,
            calories=Intake.of(2150),
            protein_g=Intake.of(160),
            carbs_g=Intake.untracked(),
            fat_g=Intake.fasted(),
            step_count=8500,
            log_status=LogStatus.PARTIAL,
            status_override=True,
        )
        store.save_daily_log(log)
        assert store.get_daily_log(date(2025, 1, 6)) == log

    def test_untracked_and_fasted_stay_distinct(self, store: SQLiteStore) -> None:
        """NULL and 0 calories are different days."""
        store.save_daily_log(DailyLog(date=date(2025, 1, 6)))
        store.save_daily_log(DailyLog(date=date(2025, 1, 7), calories=Intake.fasted()))

        assert not store.get_daily_log(date(2025, 1, 6)).calories.is_tracked
        assert store.get_daily_log(date(2025, 1, 7)).calories == Intake.fasted()

    def test_save_replaces(self, store: SQLiteStore) -> None:
        """One log per day; saving again overwrites."""
        store.save_daily_log(DailyLog(date=date(2025, 1, 6), scale_weight_kg=80.0))
        store.save_daily_log(DailyLog(date=date(2025, 1, 6), scale_weight_kg=79.0))
        logs = store.get_daily_logs(date(2025, 1, 1), date(2025, 1, 31))
        assert [log.scale_weight_kg for log in logs] == [79.0]

    def test_range_is_inclusive_and_sorted(self, store: SQLiteStore) -> None:
        """Both ends are included, oldest first."""
        for d in (8, 6, 7, 9):
            store.save_daily_log(DailyLog(date=date(2025, 1, d)))
        logs = store.get_daily_logs(date(2025, 1, 6), date(2025, 1, 8))
        assert [log.date.day for log in logs] == [6, 7, 8]

    def test_weight_lookups(self, store: SQLiteStore) -> None:
        """First weight and last weight before a day skip unweighed logs."""
        store.save_daily_log(DailyLog(date=date(2025, 1, 5)))
        store.save_daily_log(DailyLog(date=date(2025, 1, 6), scale_weight_kg=80.0))
        store.save_daily_log(DailyLog(date=date(2025, 1, 8), scale_weight_kg=79.5))

        assert store.get_first_log_date() == date(2025, 1, 5)
        assert store.get_first_weight() == (date(2025, 1, 6), 80.0)
        assert store.get_last_weight_before(date(2025, 1, 8)) == (date(2025, 1, 6), 80.0)
        assert store.get_last_weight_before(date(2025, 1, 6)) is None

    def test_scoped_to_user(self, conn, store: SQLiteStore) -> None:
        """Another user's store sees nothing."""
        store.save_daily_log(DailyLog(date=date(2025, 1, 6), scale_weight_kg=80.0))
        other = SQLiteStore(conn, GoalsQueries.create_user(conn, UserGoals()))
        assert other.get_daily_log(date(2025, 1, 6)) is None
        assert other.get_first_weight() is None


class TestComputedStates:
    """Tests for computed state storage."""

    def test_round_trip(self, store: SQLiteStore) -> None:
        """Every field survives a save and load."""
        state = make_state(date(2025, 1, 6))
        store.save_state(state)
        assert store.get_state(date(2025, 1, 6)) == state

    def test_latest_and_anchor(self, store: SQLiteStore) -> None:
        """Latest state overall and latest strictly before a day."""
        for d in (6, 7, 9):
            store.save_state(make_state(date(2025, 1, d)))

        assert store.get_latest_state().date == date(2025, 1, 9)
        assert store.get_latest_state_before(date(2025, 1, 9)).date == date(2025, 1, 7)
        assert store.get_latest_state_before(date(2025, 1, 6)) is None

    def test_overwrite(self, store: SQLiteStore) -> None:
        """Recomputing a day replaces its state."""
        store.save_state(make_state(date(2025, 1, 6), tdee=2500.0))
        store.save_state(make_state(date(2025, 1, 6), tdee=2400.0))
        states = store.get_states(date(2025, 1, 6), date(2025, 1, 6))
        assert [s.estimated_tdee_kcal for s in states] == [2400.0]


class TestPendingMarker:
    """Tests for the recompute watermark."""

    def test_set_and_clear(self, store: SQLiteStore) -> None:
        """The watermark is stored per user and cleared with None."""
        assert store.get_pending_from() is None
        store.set_pending_from(date(2025, 1, 6))
        assert store.get_pending_from() == date(2025, 1, 6)
        store.set_pending_from(date(2025, 1, 9))
        assert store.get_pending_from() == date(2025, 1, 9)
        store.set_pending_from(None)
        assert store.get_pending_from() is None


class TestGoalsAndCheckIns:
    """Tests for goals and check-ins through the store."""

    def test_save_goals_uses_store_user(self, store: SQLiteStore) -> None:
        """Goals are saved against the store's user."""
        store.save_goals(UserGoals(goal_type=GoalType.GAIN, goal_rate=0.25))
        goals = store.get_goals()
        assert goals.user_id == store.user_id
        assert goals.goal_type is GoalType.GAIN
        assert goals.goal_rate == 0.25

    def test_check_in_round_trip(self, store: SQLiteStore) -> None:
        """A check-in reads back by week start."""
        check_in = WeeklyCheckIn(
            week_start_date=date(2025, 1, 6),
            week_end_date=date(2025, 1, 12),
            average_tdee=2480.0,
            suggested_calories=1930.0,
            adherence_score=0.86,
            confidence_level=ConfidenceLevel.MEDIUM,
            trend_weight_start=80.2,
            trend_weight_end=79.7,
            weekly_weight_change=-0.5,
        )
        store.save_check_in(check_in)
        assert store.get_check_in(date(2025, 1, 6)) == check_in
        assert store.get_check_in(date(2025, 1, 13)) is None


class TestStorageErrors:
    """Tests for sqlite failures surfacing as StorageError."""

    def test_closed_connection(self, temp_db) -> None:
        """Any sqlite error becomes a StorageError."""
        conn = sqlite3.connect(temp_db.db_path)
        conn.row_factory = sqlite3.Row
        store = SQLiteStore(conn, 1)
        conn.close()

        with pytest.raises(StorageError):
            store.get_latest_state()
        with pytest.raises(StorageError):
            store.save_daily_log(DailyLog(date=date(2025, 1, 6)))
