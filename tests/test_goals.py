"""
tests/test_goals.py

Pytest unit tests for the goal engine (goals/ package).

All tests are pure Python: no database, fixed clocks.

Coverage
--------
- Period bounds for daily, weekly and monthly cadences
- Check-in periods and week labels
- Absolute and relative progress formulas
- Status thresholds
- Trend classification and projection
- Chart value extraction and suggested ranges
- Full progress calculation, including no-data and invalid-baseline cases
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from goals.extraction import (
    calculate_suggested_range,
    chart_from_config,
    extract_baseline_value,
    extract_current_value,
    get_primary_key,
    round_to_nice,
)
from goals.periods import (
    find_period_for_timestamp,
    get_period_bounds,
    get_period_for_date,
    get_periods,
    get_recent_periods,
)
from goals.progress import (
    calculate_absolute_progress,
    calculate_goal_progress,
    calculate_relative_progress,
    calculate_target_display_value,
    determine_status,
)
from goals.trend import analyze_trend
from goals.types import ChartDataForGoal, GoalInput, GoalStatus, Trend

# Wednesday
NOW = datetime(2026, 10, 21, 12, 0, tzinfo=timezone.utc)


def _chart(values: list[float | None], key: str = "value") -> ChartDataForGoal:
    return ChartDataForGoal(
        chart_data=[{"date": f"2026-10-{i + 1:02d}", key: v} for i, v in enumerate(values)],
        x_axis_key="date",
        data_keys=[key],
    )


# ---------------------------------------------------------------------------
# Period bounds
# ---------------------------------------------------------------------------


class TestPeriodBounds:
    def test_weekly_starts_on_monday(self) -> None:
        bounds = get_period_bounds("WEEKLY", now=NOW)
        assert bounds.period_start == datetime(2026, 10, 19, tzinfo=timezone.utc)
        assert bounds.days_total == 7
        assert bounds.days_elapsed == pytest.approx(2.5)

    def test_daily_fraction_elapsed(self) -> None:
        bounds = get_period_bounds("daily", now=datetime(2026, 10, 21, 6, 0, tzinfo=timezone.utc))
        assert bounds.days_total == 1
        assert bounds.days_elapsed == pytest.approx(0.25)
        assert bounds.hours_remaining == pytest.approx(18.0, abs=1e-3)

    def test_monthly_uses_calendar_length(self) -> None:
        bounds = get_period_bounds("MONTHLY", now=NOW)
        assert bounds.period_start == datetime(2026, 10, 1, tzinfo=timezone.utc)
        assert bounds.days_total == 31
        assert bounds.period_end.day == 31

    def test_february_in_leap_year(self) -> None:
        bounds = get_period_bounds("MONTHLY", now=datetime(2028, 2, 10, tzinfo=timezone.utc))
        assert bounds.days_total == 29

    def test_naive_datetime_treated_as_utc(self) -> None:
        bounds = get_period_bounds("WEEKLY", now=datetime(2026, 10, 21, 12, 0))
        assert bounds.period_start.tzinfo is not None

    def test_unknown_cadence_raises(self) -> None:
        with pytest.raises(ValueError):
            get_period_bounds("QUARTERLY", now=NOW)


class TestCheckInPeriods:
    def test_week_label_same_month(self) -> None:
        period = get_period_for_date("weekly", NOW)
        assert period.label == "Oct 19 - 25"
        assert period.timestamp == period.end

    def test_week_label_spanning_months(self) -> None:
        period = get_period_for_date("weekly", datetime(2026, 10, 29, tzinfo=timezone.utc))
        assert period.label == "Oct 26 - Nov 1"

    def test_recent_monthly_periods_cross_year(self) -> None:
        periods = get_recent_periods("monthly", 3, now=datetime(2026, 2, 15, tzinfo=timezone.utc))
        assert [p.start.month for p in periods] == [2, 1, 12]
        assert periods[2].start.year == 2025

    def test_recent_periods_most_recent_first(self) -> None:
        periods = get_recent_periods("daily", 3, now=NOW)
        assert [p.start.day for p in periods] == [21, 20, 19]

    def test_find_period_for_timestamp(self) -> None:
        periods = get_recent_periods("weekly", 4, now=NOW)
        found = find_period_for_timestamp(datetime(2026, 10, 14, 9, 0, tzinfo=timezone.utc), periods)
        assert found is not None
        assert found.start == datetime(2026, 10, 12, tzinfo=timezone.utc)

    def test_get_periods_covers_range(self) -> None:
        periods = get_periods(
            "monthly",
            datetime(2026, 8, 20, tzinfo=timezone.utc),
            datetime(2026, 10, 5, tzinfo=timezone.utc),
        )
        assert [p.start.month for p in periods] == [10, 9, 8]


# ---------------------------------------------------------------------------
# Progress formulas
# ---------------------------------------------------------------------------


class TestProgressFormulas:
    def test_absolute_progress(self) -> None:
        assert calculate_absolute_progress(50, 200).progress_percent == pytest.approx(25.0)

    def test_absolute_progress_never_negative(self) -> None:
        assert calculate_absolute_progress(-10, 100).progress_percent == 0.0

    def test_absolute_zero_target(self) -> None:
        assert calculate_absolute_progress(5, 0).progress_percent == 100.0
        assert calculate_absolute_progress(0, 0).progress_percent == 0.0

    def test_relative_progress(self) -> None:
        result = calculate_relative_progress(120, 100, 10)
        assert result.growth_percent == pytest.approx(20.0)
        assert result.progress_percent == pytest.approx(200.0)

    def test_relative_zero_baseline(self) -> None:
        result = calculate_relative_progress(50, 0, 10)
        assert result.progress_percent == 0.0
        assert result.growth_percent == 0.0

    def test_target_display_value(self) -> None:
        assert calculate_target_display_value("ABSOLUTE", 500, 100) == 500
        assert calculate_target_display_value("RELATIVE", 10, 200) == pytest.approx(220.0)


class TestDetermineStatus:
    @pytest.mark.parametrize(
        "progress, expected, threshold, status",
        [
            (100.0, 50.0, None, GoalStatus.EXCEEDED),
            (50.0, 50.0, None, GoalStatus.ON_TRACK),
            (40.0, 50.0, None, GoalStatus.ON_TRACK),
            (30.0, 50.0, None, GoalStatus.BEHIND),
            (20.0, 50.0, None, GoalStatus.AT_RISK),
            (30.0, 50.0, 0.5, GoalStatus.ON_TRACK),
        ],
    )
    def test_status_thresholds(self, progress: float, expected: float, threshold: float | None, status: str) -> None:
        assert determine_status(progress, expected, threshold) == status


# ---------------------------------------------------------------------------
# Trend
# ---------------------------------------------------------------------------


class TestTrend:
    def test_too_few_points(self) -> None:
        result = analyze_trend([1.0, 2.0], days_remaining=3)
        assert result.trend == Trend.UNKNOWN
        assert result.projected_end_value is None

    def test_flat_series_is_stable(self) -> None:
        assert analyze_trend([5.0, 5.0, 5.0, 5.0], days_remaining=3).trend == Trend.STABLE

    def test_linear_growth_is_stable_and_projected(self) -> None:
        result = analyze_trend([1.0, 2.0, 3.0, 4.0], days_remaining=3)
        assert result.trend == Trend.STABLE
        assert result.projected_end_value == pytest.approx(7.0)
        assert result.is_decline is False

    def test_accelerating(self) -> None:
        assert analyze_trend([1.0, 2.0, 4.0, 8.0], days_remaining=1).trend == Trend.ACCELERATING

    def test_decelerating(self) -> None:
        assert analyze_trend([1.0, 5.0, 6.0, 6.5], days_remaining=1).trend == Trend.DECELERATING

    def test_decline_flag(self) -> None:
        assert analyze_trend([10.0, 9.0, 8.0, 7.0], days_remaining=1).is_decline is True


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


class TestExtraction:
    def test_chart_from_config_handles_missing_keys(self) -> None:
        chart = chart_from_config(None)
        assert chart.chart_data == []
        assert chart.data_keys == []
        assert extract_current_value(chart) is None

    def test_selected_dimension_wins_when_present(self) -> None:
        chart = chart_from_config(
            {"chartData": [{"date": "d", "a": 1, "b": 2}], "dataKeys": ["a", "b"]},
            selected_dimension="b",
        )
        assert get_primary_key(chart) == "b"
        assert extract_current_value(chart) == 2.0

    def test_stored_baseline_wins(self) -> None:
        chart = _chart([10.0, 20.0])
        assert extract_baseline_value(chart, 5.0) == 5.0
        assert extract_baseline_value(chart, None) == 10.0

    def test_round_to_nice(self) -> None:
        assert round_to_nice(130, round_up=True) == 200
        assert round_to_nice(130, round_up=False) == 100
        assert round_to_nice(-130, round_up=False) == -200
        assert round_to_nice(0, round_up=True) == 0

    def test_suggested_range_absolute(self) -> None:
        suggested = calculate_suggested_range("ABSOLUTE", 50, [10, 30, 50])
        assert suggested.suggested_min == 0.0
        assert suggested.suggested_max == 200.0

    def test_suggested_range_relative_fixed(self) -> None:
        suggested = calculate_suggested_range("RELATIVE", 50, [10, 30, 50])
        assert (suggested.suggested_min, suggested.suggested_max) == (0.0, 100.0)


# ---------------------------------------------------------------------------
# Full progress
# ---------------------------------------------------------------------------


class TestCalculateGoalProgress:
    def test_absolute_on_track(self) -> None:
        progress = calculate_goal_progress(
            GoalInput(goal_type="ABSOLUTE", target_value=100),
            "WEEKLY",
            _chart([10.0, 20.0, 40.0]),
            now=NOW,
        )
        assert progress.current_value == 40.0
        assert progress.progress_percent == pytest.approx(40.0)
        assert progress.expected_progress_percent == pytest.approx(2.5 / 7 * 100)
        assert progress.status == GoalStatus.ON_TRACK

    def test_no_data(self) -> None:
        progress = calculate_goal_progress(
            GoalInput(goal_type="ABSOLUTE", target_value=100),
            "WEEKLY",
            _chart([]),
            now=NOW,
        )
        assert progress.status == GoalStatus.NO_DATA
        assert progress.trend == Trend.UNKNOWN

    def test_relative_without_baseline(self) -> None:
        progress = calculate_goal_progress(
            GoalInput(goal_type="RELATIVE", target_value=10),
            "MONTHLY",
            _chart([None, 5.0]),
            now=NOW,
        )
        assert progress.status == GoalStatus.INVALID_BASELINE

    def test_relative_exceeded(self) -> None:
        progress = calculate_goal_progress(
            GoalInput(goal_type="RELATIVE", target_value=10, baseline_value=100),
            "MONTHLY",
            _chart([100.0, 105.0, 115.0]),
            now=NOW,
        )
        assert progress.growth_percent == pytest.approx(15.0)
        assert progress.status == GoalStatus.EXCEEDED
        assert progress.target_display_value == pytest.approx(110.0)

    def test_to_dict_serializes_bounds(self) -> None:
        data = calculate_goal_progress(
            GoalInput(goal_type="ABSOLUTE", target_value=100),
            "DAILY",
            _chart([1.0]),
            now=NOW,
        ).to_dict()
        assert data["period_start"] == "2026-10-21T00:00:00+00:00"
        assert data["days_total"] == 1
        assert data["status"] in {GoalStatus.AT_RISK, GoalStatus.BEHIND}
