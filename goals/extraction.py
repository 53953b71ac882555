"""
goals/extraction.py

Pull goal-relevant numbers out of a rendered chart config.
"""

from __future__ import annotations

import math
from typing import Any

from goals.types import ChartDataForGoal, ChartValues, SuggestedRange

_NICE_STEPS = (1, 2, 5, 10)


def chart_from_config(
    chart_config: dict[str, Any] | None,
    selected_dimension: str | None = None,
) -> ChartDataForGoal:
    """
    Build a ChartDataForGoal from a stored ``DashboardChart.chart_config``.
    Missing or malformed keys yield an empty chart.
    """

    config = chart_config or {}
    chart_data = config.get("chartData")
    data_keys = config.get("dataKeys")
    return ChartDataForGoal(
        chart_data=[row for row in chart_data if isinstance(row, dict)] if isinstance(chart_data, list) else [],
        x_axis_key=str(config.get("xAxisKey") or "date"),
        data_keys=[str(key) for key in data_keys] if isinstance(data_keys, list) else [],
        selected_dimension=selected_dimension,
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def get_primary_key(chart: ChartDataForGoal) -> str | None:
    if not chart.data_keys:
        return None
    if chart.selected_dimension and chart.selected_dimension in chart.data_keys:
        return chart.selected_dimension
    return chart.data_keys[0]


def _value_at(chart: ChartDataForGoal, index: int) -> float | None:
    if not chart.chart_data:
        return None
    key = get_primary_key(chart)
    if key is None:
        return None
    value = chart.chart_data[index].get(key)
    return float(value) if _is_number(value) else None


def extract_current_value(chart: ChartDataForGoal) -> float | None:
    return _value_at(chart, -1)


def extract_baseline_value(chart: ChartDataForGoal, stored_baseline: float | None) -> float | None:
    if stored_baseline is not None:
        return stored_baseline
    return _value_at(chart, 0)


def extract_all_values(chart: ChartDataForGoal) -> list[float]:
    key = get_primary_key(chart)
    if key is None:
        return []
    return [float(point[key]) for point in chart.chart_data if _is_number(point.get(key))]


def round_to_nice(value: float, round_up: bool) -> float:
    """
    Snap ``value`` to 1, 2, 5 or 10 times its power of ten.
    """

    if value == 0:
        return 0.0
    if value < 0:
        return -round_to_nice(-value, not round_up)

    magnitude = 10 ** math.floor(math.log10(abs(value)))
    normalized = value / magnitude

    if round_up:
        nice = next((step for step in _NICE_STEPS if step >= normalized), 10)
    else:
        nice = next((step for step in reversed(_NICE_STEPS) if step <= normalized), 1)
    return float(nice * magnitude)


def calculate_suggested_range(
    goal_type: str,
    current: float | None,
    values: list[float],
) -> SuggestedRange:
    """
    Slider bounds for the goal editor. Relative goals are always 0..100.
    """

    if goal_type == "RELATIVE" or not values:
        return SuggestedRange(suggested_min=0.0, suggested_max=100.0)

    if current is None:
        current = values[-1]
    lowest = min(values)
    highest = max(values)

    suggested_min = 0.0 if lowest >= 0 else round_to_nice(lowest * 1.2, round_up=False)
    suggested_max = round_to_nice(max(current * 2, highest * 1.5, current + 100), round_up=True)
    return SuggestedRange(suggested_min=suggested_min, suggested_max=suggested_max)


def extract_chart_values(
    chart_config: dict[str, Any] | None,
    selected_dimension: str | None,
    baseline_value: float | None,
) -> ChartValues:
    chart = chart_from_config(chart_config, selected_dimension)
    return ChartValues(
        current_value=extract_current_value(chart),
        baseline_value=extract_baseline_value(chart, baseline_value),
        values=extract_all_values(chart),
    )
