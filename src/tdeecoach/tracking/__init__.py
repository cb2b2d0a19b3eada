"""Trend weight, back-solved TDEE and weekly coaching.

Key components:
- Trend engine: EMA of scale weight (10% smoothing) with gap interpolation
- Expenditure engine: daily TDEE back-solve from intake and trend change,
  EMA-smoothed, with a Mifflin-St Jeor cold start
- Coaching engine: weekly calorie targets, adherence and maintenance drift
- Recompute orchestrator: walks the daily chain forward after any edit
"""

from __future__ import annotations

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
from tdeecoach.tracking.recompute import RecomputeAborted, RecomputeOrchestrator
from tdeecoach.tracking.storage import MetabolicStore, StorageError
from tdeecoach.tracking.trend import update_trend_weight

__all__ = [
    "ComputedState",
    "ConfidenceLevel",
    "DailyLog",
    "GoalType",
    "Intake",
    "LogStatus",
    "MetabolicStore",
    "RecomputeAborted",
    "RecomputeOrchestrator",
    "Sex",
    "StorageError",
    "UserGoals",
    "WeeklyCheckIn",
    "update_trend_weight",
]
