"""SQLite implementation of the metabolic store."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import date
from typing import Iterator, Optional

from tdeecoach.tracking.models import (
    ComputedState,
    ConfidenceLevel,
    DailyLog,
    GoalType,
    Intake,
    LogStatus,
    Sex,
    UserGoals,
    WeeklyCheckIn,
)
from tdeecoach.tracking.storage import StorageError

_GOALS_COLUMNS = """
    user_id, calorie_goal, protein_goal, carbs_goal, fat_goal, height_cm,
    birth_date, sex, athlete_status, goal_type, goal_rate, target_weight_kg,
    start_weight_kg, start_date
"""

_LOG_COLUMNS = """
    date, scale_weight_kg, nutrition_calories, nutrition_protein_g,
    nutrition_carbs_g, nutrition_fat_g, step_count, log_status, status_override
"""

_STATE_COLUMNS = """
    date, trend_weight_kg, raw_tdee_kcal, estimated_tdee_kcal,
    flux_confidence_range, energy_density_used, weight_delta_kg,
    days_tracked, tdee_variance, step_baseline
"""

_CHECK_IN_COLUMNS = """
    week_start_date, week_end_date, average_tdee, suggested_calories,
    adherence_score, confidence_level, trend_weight_start, trend_weight_end,
    weekly_weight_change, notes
"""


def _optional_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _goals_from_row(row: sqlite3.Row) -> UserGoals:
    return UserGoals(
        user_id=row["user_id"],
        calorie_goal=row["calorie_goal"],
        protein_goal=row["protein_goal"],
        carbs_goal=row["carbs_goal"],
        fat_goal=row["fat_goal"],
        height_cm=row["height_cm"],
        birth_date=_optional_date(row["birth_date"]),
        sex=Sex(row["sex"]) if row["sex"] else None,
        athlete_status=bool(row["athlete_status"]),
        goal_type=GoalType(row["goal_type"]),
        goal_rate=row["goal_rate"],
        target_weight_kg=row["target_weight_kg"],
        start_weight_kg=row["start_weight_kg"],
        start_date=_optional_date(row["start_date"]),
    )


def _goals_params(goals: UserGoals) -> tuple:
    return (
        goals.calorie_goal,
        goals.protein_goal,
        goals.carbs_goal,
        goals.fat_goal,
        goals.height_cm,
        goals.birth_date.isoformat() if goals.birth_date else None,
        goals.sex.value if goals.sex else None,
        goals.athlete_status,
        goals.goal_type.value,
        goals.goal_rate,
        goals.target_weight_kg,
        goals.start_weight_kg,
        goals.start_date.isoformat() if goals.start_date else None,
    )


def _log_from_row(row: sqlite3.Row) -> DailyLog:
    return DailyLog(
        date=date.fromisoformat(row["date"]),
        scale_weight_kg=row["scale_weight_kg"],
        calories=Intake.from_optional(row["nutrition_calories"]),
        protein_g=Intake.from_optional(row["nutrition_protein_g"]),
        carbs_g=Intake.from_optional(row["nutrition_carbs_g"]),
        fat_g=Intake.from_optional(row["nutrition_fat_g"]),
        step_count=row["step_count"],
        log_status=LogStatus(row["log_status"]),
        status_override=bool(row["status_override"]),
    )


def _state_from_row(row: sqlite3.Row) -> ComputedState:
    return ComputedState(
        date=date.fromisoformat(row["date"]),
        trend_weight_kg=row["trend_weight_kg"],
        raw_tdee_kcal=row["raw_tdee_kcal"],
        estimated_tdee_kcal=row["estimated_tdee_kcal"],
        flux_confidence_range=row["flux_confidence_range"],
        energy_density_used=row["energy_density_used"],
        weight_delta_kg=row["weight_delta_kg"],
        days_tracked=row["days_tracked"],
        tdee_variance=row["tdee_variance"],
        step_baseline=row["step_baseline"],
    )


def _check_in_from_row(row: sqlite3.Row) -> WeeklyCheckIn:
    return WeeklyCheckIn(
        week_start_date=date.fromisoformat(row["week_start_date"]),
        week_end_date=date.fromisoformat(row["week_end_date"]),
        average_tdee=row["average_tdee"],
        suggested_calories=row["suggested_calories"],
        adherence_score=row["adherence_score"],
        confidence_level=ConfidenceLevel(row["confidence_level"]),
        trend_weight_start=row["trend_weight_start"],
        trend_weight_end=row["trend_weight_end"],
        weekly_weight_change=row["weekly_weight_change"],
        notes=row["notes"],
    )


class GoalsQueries:
    """Database queries for user profiles."""

    @staticmethod
    def create_user(conn: sqlite3.Connection, goals: UserGoals) -> int:
        """Create a new user profile and return the user_id."""
        cursor = conn.execute(
            """
            INSERT INTO user_goals (calorie_goal, protein_goal, carbs_goal, fat_goal,
                                    height_cm, birth_date, sex, athlete_status, goal_type,
                                    goal_rate, target_weight_kg, start_weight_kg, start_date)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            _goals_params(goals),
        )
        conn.commit()
        return cursor.lastrowid or 0

    @staticmethod
    def get_user(conn: sqlite3.Connection, user_id: int) -> Optional[UserGoals]:
        """Get user profile by ID."""
        row = conn.execute(
            f"SELECT {_GOALS_COLUMNS} FROM user_goals WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        return _goals_from_row(row) if row else None

    @staticmethod
    def get_default_user(conn: sqlite3.Connection) -> Optional[UserGoals]:
        """Get the first (default) user profile."""
        row = conn.execute(
            f"SELECT {_GOALS_COLUMNS} FROM user_goals ORDER BY user_id LIMIT 1"
        ).fetchone()
        return _goals_from_row(row) if row else None

    @staticmethod
    def update_user(conn: sqlite3.Connection, goals: UserGoals) -> None:
        """Update an existing user profile."""
        if goals.user_id is None:
            raise ValueError("Cannot update profile without user_id")

        conn.execute(
            """
            UPDATE user_goals
            SET calorie_goal = ?, protein_goal = ?, carbs_goal = ?, fat_goal = ?,
                height_cm = ?, birth_date = ?, sex = ?, athlete_status = ?,
                goal_type = ?, goal_rate = ?, target_weight_kg = ?,
                start_weight_kg = ?, start_date = ?
            WHERE user_id = ?
            """,
            _goals_params(goals) + (goals.user_id,),
        )
        conn.commit()


class SQLiteStore:
    """`MetabolicStore` backed by one sqlite connection, scoped to one user.

    Every write commits immediately, so a recompute that fails part-way
    keeps the days it already wrote. sqlite errors surface as StorageError.
    """

    def __init__(self, conn: sqlite3.Connection, user_id: int):
        self.conn = conn
        self.user_id = user_id

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as exc:
            raise StorageError(f"{action} failed for user {self.user_id}: {exc}") from exc

    # ------------------------------------------------------------------ logs

    def get_daily_log(self, day: date) -> Optional[DailyLog]:
        with self._guard("read daily log"):
            row = self.conn.execute(
                f"SELECT {_LOG_COLUMNS} FROM daily_logs WHERE user_id = ? AND date = ?",
                (self.user_id, day.isoformat()),
            ).fetchone()
        return _log_from_row(row) if row else None

    def get_daily_logs(self, start: date, end: date) -> list[DailyLog]:
        with self._guard("read daily logs"):
            rows = self.conn.execute(
                f"""
                SELECT {_LOG_COLUMNS} FROM daily_logs
                WHERE user_id = ? AND date >= ? AND date <= ?
                ORDER BY date
                """,
                (self.user_id, start.isoformat(), end.isoformat()),
            ).fetchall()
        return [_log_from_row(row) for row in rows]

    def save_daily_log(self, log: DailyLog) -> None:
        with self._guard("write daily log"):
            self.conn.execute(
                """
                INSERT OR REPLACE INTO daily_logs
                (user_id, date, scale_weight_kg, nutrition_calories, nutrition_protein_g,
                 nutrition_carbs_g, nutrition_fat_g, step_count, log_status, status_override,
                 updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
                """,
                (
                    self.user_id,
                    log.date.isoformat(),
                    log.scale_weight_kg,
                    log.calories.to_optional(),
                    log.protein_g.to_optional(),
                    log.carbs_g.to_optional(),
                    log.fat_g.to_optional(),
                    log.step_count,
                    log.log_status.value,
                    log.status_override,
                ),
            )
            self.conn.commit()

    def get_first_log_date(self) -> Optional[date]:
        with self._guard("read first log date"):
            row = self.conn.execute(
                "SELECT MIN(date) FROM daily_logs WHERE user_id = ?",
                (self.user_id,),
            ).fetchone()
        return _optional_date(row[0])

    def get_first_weight(self) -> Optional[tuple[date, float]]:
        with self._guard("read first weight"):
            row = self.conn.execute(
                """
                SELECT date, scale_weight_kg FROM daily_logs
                WHERE user_id = ? AND scale_weight_kg IS NOT NULL
                ORDER BY date LIMIT 1
                """,
                (self.user_id,),
            ).fetchone()
        return (date.fromisoformat(row[0]), row[1]) if row else None

    def get_last_weight_before(self, day: date) -> Optional[tuple[date, float]]:
        with self._guard("read previous weight"):
            row = self.conn.execute(
                """
                SELECT date, scale_weight_kg FROM daily_logs
                WHERE user_id = ? AND scale_weight_kg IS NOT NULL AND date < ?
                ORDER BY date DESC LIMIT 1
                """,
                (self.user_id, day.isoformat()),
            ).fetchone()
        return (date.fromisoformat(row[0]), row[1]) if row else None

    # ---------------------------------------------------------------- states

    def get_state(self, day: date) -> Optional[ComputedState]:
        with self._guard("read computed state"):
            row = self.conn.execute(
                f"SELECT {_STATE_COLUMNS} FROM computed_states WHERE user_id = ? AND date = ?",
                (self.user_id, day.isoformat()),
            ).fetchone()
        return _state_from_row(row) if row else None

    def get_states(self, start: date, end: date) -> list[ComputedState]:
        with self._guard("read computed states"):
            rows = self.conn.execute(
                f"""
                SELECT {_STATE_COLUMNS} FROM computed_states
                WHERE user_id = ? AND date >= ? AND date <= ?
                ORDER BY date
                """,
                (self.user_id, start.isoformat(), end.isoformat()),
            ).fetchall()
        return [_state_from_row(row) for row in rows]

    def get_latest_state(self) -> Optional[ComputedState]:
        with self._guard("read latest state"):
            row = self.conn.execute(
                f"""
                SELECT {_STATE_COLUMNS} FROM computed_states
                WHERE user_id = ? ORDER BY date DESC LIMIT 1
                """,
                (self.user_id,),
            ).fetchone()
        return _state_from_row(row) if row else None

    def get_latest_state_before(self, day: date) -> Optional[ComputedState]:
        with self._guard("read anchor state"):
            row = self.conn.execute(
                f"""
                SELECT {_STATE_COLUMNS} FROM computed_states
                WHERE user_id = ? AND date < ? ORDER BY date DESC LIMIT 1
                """,
                (self.user_id, day.isoformat()),
            ).fetchone()
        return _state_from_row(row) if row else None

    def save_state(self, state: ComputedState) -> None:
        with self._guard("write computed state"):
            self.conn.execute(
                """
                INSERT OR REPLACE INTO computed_states
                (user_id, date, trend_weight_kg, raw_tdee_kcal, estimated_tdee_kcal,
                 flux_confidence_range, energy_density_used, weight_delta_kg,
                 days_tracked, tdee_variance, step_baseline)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    self.user_id,
                    state.date.isoformat(),
                    state.trend_weight_kg,
                    state.raw_tdee_kcal,
                    state.estimated_tdee_kcal,
                    state.flux_confidence_range,
                    state.energy_density_used,
                    state.weight_delta_kg,
                    state.days_tracked,
                    state.tdee_variance,
                    state.step_baseline,
                ),
            )
            self.conn.commit()

    # --------------------------------------------------------------- pending

    def get_pending_from(self) -> Optional[date]:
        with self._guard("read pending marker"):
            row = self.conn.execute(
                "SELECT pending_from FROM recompute_queue WHERE user_id = ?",
                (self.user_id,),
            ).fetchone()
        return _optional_date(row[0]) if row else None

    def set_pending_from(self, day: Optional[date]) -> None:
        with self._guard("write pending marker"):
            if day is None:
                self.conn.execute(
                    "DELETE FROM recompute_queue WHERE user_id = ?", (self.user_id,)
                )
            else:
                self.conn.execute(
                    "INSERT OR REPLACE INTO recompute_queue (user_id, pending_from) VALUES (?, ?)",
                    (self.user_id, day.isoformat()),
                )
            self.conn.commit()

    # ------------------------------------------------------ goals & check-ins

    def get_goals(self) -> Optional[UserGoals]:
        with self._guard("read goals"):
            return GoalsQueries.get_user(self.conn, self.user_id)

    def save_goals(self, goals: UserGoals) -> None:
        goals.user_id = self.user_id
        with self._guard("write goals"):
            GoalsQueries.update_user(self.conn, goals)

    def get_check_in(self, week_start: date) -> Optional[WeeklyCheckIn]:
        with self._guard("read check-in"):
            row = self.conn.execute(
                f"""
                SELECT {_CHECK_IN_COLUMNS} FROM weekly_check_ins
                WHERE user_id = ? AND week_start_date = ?
                """,
                (self.user_id, week_start.isoformat()),
            ).fetchone()
        return _check_in_from_row(row) if row else None

    def save_check_in(self, check_in: WeeklyCheckIn) -> None:
        with self._guard("write check-in"):
            self.conn.execute(
                """
                INSERT OR REPLACE INTO weekly_check_ins
                (user_id, week_start_date, week_end_date, average_tdee, suggested_calories,
                 adherence_score, confidence_level, trend_weight_start, trend_weight_end,
                 weekly_weight_change, notes)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    self.user_id,
                    check_in.week_start_date.isoformat(),
                    check_in.week_end_date.isoformat(),
                    check_in.average_tdee,
                    check_in.suggested_calories,
                    check_in.adherence_score,
                    check_in.confidence_level.value,
                    check_in.trend_weight_start,
                    check_in.trend_weight_end,
                    check_in.weekly_weight_change,
                    check_in.notes,
                ),
            )
            self.conn.commit()
