"""Storage port consumed by the recompute chain.

The engines never touch storage; the orchestrator talks to a store passed in
by the caller. One store instance is scoped to a single user.
"""

from __future__ import annotations

from datetime import date
from typing import Optional, Protocol

from tdeecoach.tracking.models import ComputedState, DailyLog, UserGoals, WeeklyCheckIn


class StorageError(Exception):
    """A read or write against the backing store failed."""


class MetabolicStore(Protocol):
    """Per-user keyed record store, addressed by ISO calendar date."""

    # Daily logs
    def get_daily_log(self, day: date) -> Optional[DailyLog]: ...

    def get_daily_logs(self, start: date, end: date) -> list[DailyLog]: ...

    def save_daily_log(self, log: DailyLog) -> None: ...

    def get_first_log_date(self) -> Optional[date]: ...

    def get_first_weight(self) -> Optional[tuple[date, float]]: ...

    def get_last_weight_before(self, day: date) -> Optional[tuple[date, float]]: ...

    # Computed state
    def get_state(self, day: date) -> Optional[ComputedState]: ...

    def get_states(self, start: date, end: date) -> list[ComputedState]: ...

    def get_latest_state(self) -> Optional[ComputedState]: ...

    def get_latest_state_before(self, day: date) -> Optional[ComputedState]: ...

    def save_state(self, state: ComputedState) -> None: ...

    # Pending-recompute watermark: every date >= it is pending
    def get_pending_from(self) -> Optional[date]: ...

    def set_pending_from(self, day: Optional[date]) -> None: ...

    # Profile and check-ins
    def get_goals(self) -> Optional[UserGoals]: ...

    def save_goals(self, goals: UserGoals) -> None: ...

    def get_check_in(self, week_start: date) -> Optional[WeeklyCheckIn]: ...

    def save_check_in(self, check_in: WeeklyCheckIn) -> None: ...
