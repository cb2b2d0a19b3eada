"""Tests for partial logging, whoosh, data quality and entry validation."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from tdeecoach.tracking.edge_cases import (
    calculate_data_quality_score,
    calculate_tdee_statistics,
    damp_whoosh_effect,
    detect_goal_transition,
    is_partial_logging,
    is_tdee_outlier,
    is_whoosh_effect,
    validate_calorie_entry,
    validate_daily_log_for_tdee,
    validate_weight_entry,
)
from tdeecoach.tracking.models import (
    ComputedState,
    DailyLog,
    GoalType,
    Intake,
    LogStatus,
    UserGoals,
)

START = date(2025, 1, 1)


def make_log(offset: int, calories=2200.0, weight=80.0, status=LogStatus.COMPLETE) -> DailyLog:
    return DailyLog(
        date=START + timedelta(days=offset),
        scale_weight_kg=weight,
        calories=Intake.from_optional(calories),
        log_status=status,
    )


class TestPartialLogging:
    """Tests for is_partial_logging and validate_daily_log_for_tdee."""

    def test_below_minimum(self) -> None:
        """Anything under 500 kcal is partial."""
        result = is_partial_logging(400, 1000)
        assert result.is_partial
        assert "400" in result.reason

    def test_below_half_tdee(self) -> None:
        """Under half of TDEE is partial."""
        assert is_partial_logging(1100, 2500).is_partial

    def test_normal_day(self) -> None:
        """A plausible intake is not partial."""
        assert not is_partial_logging(2200, 2500).is_partial

    def test_fast_and_untracked(self) -> None:
        """Zero and missing intake are not partial."""
        assert not is_partial_logging(0, 2500).is_partial
        assert not is_partial_logging(None, 2500).is_partial

    def test_validate_log(self) -> None:
        """Only complete, plausible days are valid TDEE input."""
        assert validate_daily_log_for_tdee(make_log(0), 2500).is_valid
        assert not validate_daily_log_for_tdee(make_log(0, calories=None), 2500).is_valid
        assert not validate_daily_log_for_tdee(make_log(0, calories=300.0), 2500).is_valid
        skipped = validate_daily_log_for_tdee(make_log(0, status=LogStatus.SKIPPED), 2500)
        assert not skipped.is_valid
        assert skipped.warning == "Day marked as skipped"


class TestWhoosh:
    """Tests for whoosh detection and damping."""

    def test_consistent_change(self) -> None:
        """Scale and trend agreeing is not a whoosh."""
        assert not is_whoosh_effect(-0.2, -0.1).is_whoosh

    @pytest.mark.parametrize(
        ("scale_change", "severity"),
        [(-0.45, "mild"), (-0.8, "moderate"), (-2.0, "extreme")],
    )
    def test_severity(self, scale_change: float, severity: str) -> None:
        """Larger scale jumps are more severe."""
        result = is_whoosh_effect(scale_change, -0.05)
        assert result.is_whoosh
        assert result.severity == severity

    def test_damping(self) -> None:
        """A whoosh damps the raw delta; otherwise the trend delta is used."""
        assert damp_whoosh_effect(-2.0, -0.05) == pytest.approx(-0.6)
        assert damp_whoosh_effect(-0.8, -0.05) == pytest.approx(-0.4)
        assert damp_whoosh_effect(-0.2, -0.1) == -0.1


class TestGoalTransitionDetection:
    """Tests for detect_goal_transition."""

    def test_first_goals(self) -> None:
        """No previous goals is not a transition."""
        assert not detect_goal_transition(None, UserGoals()).has_transitioned

    def test_type_change(self) -> None:
        """A new goal type is reported."""
        result = detect_goal_transition(
            UserGoals(goal_type=GoalType.LOSE), UserGoals(goal_type=GoalType.MAINTAIN)
        )
        assert result.has_transitioned
        assert result.details == "Goal changed from lose to maintain"

    def test_rate_change(self) -> None:
        """A new rate counts except for maintenance."""
        lose = UserGoals(goal_type=GoalType.LOSE, goal_rate=0.5)
        assert detect_goal_transition(
            lose, UserGoals(goal_type=GoalType.LOSE, goal_rate=0.75)
        ).has_transitioned
        maintain = UserGoals(goal_type=GoalType.MAINTAIN, goal_rate=0.5)
        assert not detect_goal_transition(
            maintain, UserGoals(goal_type=GoalType.MAINTAIN, goal_rate=0.25)
        ).has_transitioned


class TestDataQuality:
    """Tests for calculate_data_quality_score."""

    def test_empty(self) -> None:
        """No logs scores zero."""
        result = calculate_data_quality_score([], 2500)
        assert result.score == 0
        assert result.issues == ["No daily logs provided"]

    def test_clean_varied_data(self) -> None:
        """Complete, weighed, varied days score 100."""
        logs = [make_log(i, calories=2000.0 + 150 * (i % 4)) for i in range(14)]
        result = calculate_data_quality_score(logs, 2500)
        assert result.score == 100
        assert result.issues == []

    def test_uniform_intake_flagged(self) -> None:
        """Identical daily calories look copy-pasted."""
        logs = [make_log(i, calories=2200.0) for i in range(7)]
        result = calculate_data_quality_score(logs, 2500)
        assert result.score == 90
        assert any("consistent" in issue for issue in result.issues)

    def test_sparse_data(self) -> None:
        """Few complete days and few weigh-ins lower the score."""
        logs = [
            make_log(i, calories=None, weight=None, status=LogStatus.SKIPPED) for i in range(10)
        ]
        result = calculate_data_quality_score(logs, 2500)
        assert result.score == 30
        assert len(result.issues) == 2


class TestTdeeStatistics:
    """Tests for calculate_tdee_statistics and is_tdee_outlier."""

    def test_statistics(self) -> None:
        """Mean, population std-dev, min and max of smoothed TDEE."""
        states = [
            ComputedState(
                date=START + timedelta(days=i),
                trend_weight_kg=80.0,
                raw_tdee_kcal=tdee,
                estimated_tdee_kcal=tdee,
                flux_confidence_range=100.0,
                energy_density_used=5500.0,
                weight_delta_kg=0.0,
            )
            for i, tdee in enumerate([2400.0, 2500.0, 2600.0])
        ]
        stats = calculate_tdee_statistics(states)
        assert stats.average == pytest.approx(2500.0)
        assert stats.std_dev == pytest.approx(81.65, abs=0.01)
        assert stats.minimum == 2400.0
        assert stats.maximum == 2600.0

    def test_statistics_empty(self) -> None:
        """No states gives zeros."""
        assert calculate_tdee_statistics([]).average == 0.0

    def test_outlier(self) -> None:
        """More than two standard deviations out is an outlier."""
        assert is_tdee_outlier(3000, 2500, 200)
        assert not is_tdee_outlier(2800, 2500, 200)
        assert not is_tdee_outlier(9000, 2500, 0)


class TestEntryValidation:
    """Tests for weight and calorie validation."""

    def test_weight_range(self) -> None:
        """Weights outside 30-300 kg are rejected."""
        assert not validate_weight_entry(25.0, None).is_valid
        assert not validate_weight_entry(301.0, None).is_valid
        assert validate_weight_entry(80.0, None).is_valid

    def test_weight_jump_warns(self) -> None:
        """A jump over 3 kg is accepted with a warning."""
        result = validate_weight_entry(84.0, 80.0)
        assert result.is_valid
        assert "4.0 kg" in result.warning

    def test_calories(self) -> None:
        """Negative and absurd intakes are rejected; very high ones warn."""
        assert not validate_calorie_entry(-1, 2500).is_valid
        assert not validate_calorie_entry(10001, 2500).is_valid
        high = validate_calorie_entry(5500, 2500)
        assert high.is_valid
        assert high.warning is not None
        assert validate_calorie_entry(2500, 2500).warning is None
