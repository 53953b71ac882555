"""
goals/progress.py

Goal progress formulas.

Absolute goals compare the current value with the target directly:

    progress = max(0, current / target * 100)

Relative goals compare growth from the baseline with the target growth:

    growth   = (current - baseline) / baseline * 100
    progress = max(0, growth / target_growth * 100)

Status compares progress with how much of the period has elapsed. No I/O.
"""

from __future__ import annotations

from datetime import datetime

from goals.extraction import extract_all_values, extract_baseline_value, extract_current_value
from goals.periods import get_period_bounds
from goals.trend import analyze_trend
from goals.types import (
    ChartDataForGoal,
    GoalInput,
    GoalProgress,
    GoalStatus,
    ProgressResult,
    Trend,
)

DEFAULT_THRESHOLD = 0.8
_BEHIND_FRACTION = 0.5

ABSOLUTE = "ABSOLUTE"
RELATIVE = "RELATIVE"


def calculate_absolute_progress(current_value: float, target_value: float) -> ProgressResult:
    if target_value == 0:
        return ProgressResult(
            progress_percent=100.0 if current_value > 0 else 0.0,
            expected_progress_percent=100.0,
        )
    return ProgressResult(
        progress_percent=max(0.0, current_value / target_value * 100),
        expected_progress_percent=100.0,
    )


def calculate_relative_progress(
    current_value: float,
    baseline_value: float,
    target_growth_percent: float,
) -> ProgressResult:
    if baseline_value == 0:
        return ProgressResult(progress_percent=0.0, expected_progress_percent=100.0, growth_percent=0.0)

    growth_percent = (current_value - baseline_value) / baseline_value * 100
    progress_percent = (
        max(0.0, growth_percent / target_growth_percent * 100) if target_growth_percent != 0 else 0.0
    )
    return ProgressResult(
        progress_percent=progress_percent,
        expected_progress_percent=100.0,
        growth_percent=growth_percent,
    )


def determine_status(
    progress_percent: float,
    expected_progress_percent: float,
    threshold: float | None = None,
) -> str:
    """
    exceeded >= 100%; on_track >= expected*threshold; behind >= expected*0.5;
    otherwise at_risk.
    """

    effective_threshold = DEFAULT_THRESHOLD if threshold is None else threshold

    if progress_percent >= 100:
        return GoalStatus.EXCEEDED
    if progress_percent >= expected_progress_percent * effective_threshold:
        return GoalStatus.ON_TRACK
    if progress_percent >= expected_progress_percent * _BEHIND_FRACTION:
        return GoalStatus.BEHIND
    return GoalStatus.AT_RISK


def calculate_target_display_value(
    goal_type: str,
    target_value: float,
    baseline_value: float | None,
) -> float:
    if goal_type == ABSOLUTE:
        return target_value
    return (baseline_value or 0.0) * (1 + target_value / 100)


def calculate_goal_progress(
    goal: GoalInput,
    cadence: str,
    chart: ChartDataForGoal,
    now: datetime | None = None,
) -> GoalProgress:
    """
    Compute the full progress picture for one goal over the current period.
    """

    bounds = get_period_bounds(cadence, now=now)
    current_value = extract_current_value(chart)
    baseline_value = extract_baseline_value(chart, goal.baseline_value)
    all_values = extract_all_values(chart)

    if current_value is None:
        return GoalProgress(
            cadence=cadence,
            bounds=bounds,
            baseline_value=baseline_value,
            current_value=None,
            target_value=goal.target_value,
            target_display_value=calculate_target_display_value(
                goal.goal_type, goal.target_value, baseline_value
            ),
            progress_percent=0.0,
            expected_progress_percent=0.0,
            status=GoalStatus.NO_DATA,
            trend=Trend.UNKNOWN,
            projected_end_value=None,
            is_decline=False,
        )

    if goal.goal_type == RELATIVE and baseline_value is None:
        return GoalProgress(
            cadence=cadence,
            bounds=bounds,
            baseline_value=None,
            current_value=current_value,
            target_value=goal.target_value,
            target_display_value=0.0,
            progress_percent=0.0,
            expected_progress_percent=0.0,
            status=GoalStatus.INVALID_BASELINE,
            trend=Trend.UNKNOWN,
            projected_end_value=None,
            is_decline=False,
        )

    if goal.goal_type == ABSOLUTE:
        progress = calculate_absolute_progress(current_value, goal.target_value)
    else:
        progress = calculate_relative_progress(current_value, baseline_value or 0.0, goal.target_value)

    expected_progress_percent = bounds.days_elapsed / bounds.days_total * 100
    status = determine_status(progress.progress_percent, expected_progress_percent, goal.on_track_threshold)
    trend = analyze_trend(all_values, bounds.days_remaining)

    return GoalProgress(
        cadence=cadence,
        bounds=bounds,
        baseline_value=baseline_value,
        current_value=current_value,
        target_value=goal.target_value,
        target_display_value=calculate_target_display_value(goal.goal_type, goal.target_value, baseline_value),
        progress_percent=progress.progress_percent,
        expected_progress_percent=expected_progress_percent,
        growth_percent=progress.growth_percent,
        status=status,
        trend=trend.trend,
        projected_end_value=trend.projected_end_value,
        is_decline=trend.is_decline,
    )
