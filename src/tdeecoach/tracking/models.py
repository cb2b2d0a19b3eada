"""Data models for daily logs, computed TDEE state and weekly check-ins."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional


class LogStatus(Enum):
    """How a day should be treated by the TDEE chain."""

    COMPLETE = "complete"
    PARTIAL = "partial"
    SKIPPED = "skipped"


class GoalType(Enum):
    """Body-weight goal direction."""

    LOSE = "lose"
    GAIN = "gain"
    MAINTAIN = "maintain"


class ConfidenceLevel(Enum):
    """Confidence in the current TDEE estimate."""

    LEARNING = "learning"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Sex(Enum):
    """Biological sex for BMR calculation."""

    MALE = "male"
    FEMALE = "female"


class DriftStatus(Enum):
    """Position of trend weight relative to the maintenance band."""

    WITHIN = "within"
    ABOVE = "above"
    BELOW = "below"


class IntakeKind(Enum):
    """Tri-state for a nutrition field."""

    UNTRACKED = "untracked"  # nothing logged that day
    FASTED = "fasted"  # deliberately zero
    LOGGED = "logged"


@dataclass(frozen=True)
class Intake:
    """A nutrition value that keeps "untracked" distinct from "ate nothing".

    Use the constructors rather than the raw fields:

        >>> Intake.untracked().is_tracked
        False
        >>> Intake.of(0).kind
        <IntakeKind.FASTED: 'fasted'>
        >>> Intake.of(2150).kcal
        2150.0
    """

    kind: IntakeKind
    value: float = 0.0

    def __post_init__(self) -> None:
        if self.kind is IntakeKind.LOGGED and self.value <= 0:
            raise ValueError(f"logged intake must be positive, got {self.value}")
        if self.kind is not IntakeKind.LOGGED and self.value != 0:
            raise ValueError(f"{self.kind.value} intake cannot carry a value")

    @classmethod
    def untracked(cls) -> Intake:
        return cls(IntakeKind.UNTRACKED)

    @classmethod
    def fasted(cls) -> Intake:
        return cls(IntakeKind.FASTED)

    @classmethod
    def of(cls, value: float) -> Intake:
        """Build from a logged amount; zero means a deliberate fast."""
        if value < 0:
            raise ValueError(f"intake cannot be negative, got {value}")
        if value == 0:
            return cls.fasted()
        return cls(IntakeKind.LOGGED, float(value))

    @classmethod
    def from_optional(cls, value: Optional[float]) -> Intake:
        """Build from a nullable storage column (NULL = untracked)."""
        if value is None:
            return cls.untracked()
        return cls.of(value)

    def to_optional(self) -> Optional[float]:
        """Inverse of `from_optional`."""
        if self.kind is IntakeKind.UNTRACKED:
            return None
        return self.value

    @property
    def is_tracked(self) -> bool:
        return self.kind is not IntakeKind.UNTRACKED

    @property
    def kcal(self) -> float:
        """Numeric amount; raises for untracked values."""
        if not self.is_tracked:
            raise ValueError("untracked intake has no amount")
        return self.value

    def __add__(self, other: Intake) -> Intake:
        if not self.is_tracked:
            return other
        if not other.is_tracked:
            return self
        return Intake.of(self.value + other.value)


@dataclass
class DailyLog:
    """Raw inputs for one calendar day."""

    date: date
    scale_weight_kg: Optional[float] = None
    calories: Intake = Intake.untracked()
    protein_g: Intake = Intake.untracked()
    carbs_g: Intake = Intake.untracked()
    fat_g: Intake = Intake.untracked()
    step_count: Optional[int] = None
    log_status: LogStatus = LogStatus.SKIPPED
    status_override: bool = False  # set when the user marked the status explicitly

    @property
    def has_nutrition(self) -> bool:
        return self.calories.is_tracked


@dataclass(frozen=True)
class ComputedState:
    """Derived TDEE state for one calendar day.

    Produced only by the recompute chain. `days_tracked`, `tdee_variance` and
    `step_baseline` carry the running quantities the next day needs, so each
    state depends only on the previous state and the day's log.
    """

    date: date
    trend_weight_kg: float
    raw_tdee_kcal: float
    estimated_tdee_kcal: float
    flux_confidence_range: float
    energy_density_used: float
    weight_delta_kg: float
    days_tracked: int = 0
    tdee_variance: float = 0.0
    step_baseline: Optional[float] = None


@dataclass
class UserGoals:
    """User profile and goals."""

    calorie_goal: float = 2000.0
    protein_goal: float = 150.0
    carbs_goal: float = 200.0
    fat_goal: float = 65.0
    height_cm: Optional[float] = None
    birth_date: Optional[date] = None
    sex: Optional[Sex] = None
    athlete_status: bool = False
    goal_type: GoalType = GoalType.MAINTAIN
    goal_rate: float = 0.5  # kg/week, always non-negative; direction comes from goal_type
    target_weight_kg: Optional[float] = None
    start_weight_kg: Optional[float] = None
    start_date: Optional[date] = None
    user_id: Optional[int] = None

    def __post_init__(self) -> None:
        if self.goal_rate < 0:
            raise ValueError(f"goal_rate must be non-negative, got {self.goal_rate}")
        if self.height_cm is not None and self.height_cm <= 0:
            raise ValueError(f"height_cm must be positive, got {self.height_cm}")

    @property
    def has_body_metrics(self) -> bool:
        return (
            self.height_cm is not None
            and self.birth_date is not None
            and self.sex is not None
        )


@dataclass(frozen=True)
class WeeklyCheckIn:
    """Weekly coaching snapshot for a Monday-Sunday week."""

    week_start_date: date
    week_end_date: date
    average_tdee: float
    suggested_calories: float
    adherence_score: float  # 0-1, complete days / 7
    confidence_level: ConfidenceLevel
    trend_weight_start: float
    trend_weight_end: float
    weekly_weight_change: float  # kg
    notes: Optional[str] = None


@dataclass(frozen=True)
class WeightDataPoint:
    """One day of the dense weight series."""

    date: date
    scale_weight: Optional[float]
    trend_weight: float
