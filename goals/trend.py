"""
goals/trend.py

Momentum classification over a series of chart values.
"""

from __future__ import annotations

from goals.types import Trend, TrendResult

MIN_POINTS_FOR_TREND = 3
_SIGNIFICANT_RATIO = 0.1
_FLAT_EPSILON = 0.001


def _avg_change(values: list[float]) -> float:
    if len(values) < 2:
        return 0.0
    steps = [current - previous for previous, current in zip(values, values[1:])]
    return sum(steps) / len(steps)


def _classify(early_avg: float, recent_avg: float) -> str:
    if abs(early_avg) < _FLAT_EPSILON and abs(recent_avg) < _FLAT_EPSILON:
        return Trend.STABLE

    if early_avg != 0:
        ratio = (recent_avg - early_avg) / abs(early_avg)
    else:
        ratio = 1.0 if recent_avg > 0 else -1.0

    if ratio > _SIGNIFICANT_RATIO:
        return Trend.ACCELERATING
    if ratio < -_SIGNIFICANT_RATIO:
        return Trend.DECELERATING
    return Trend.STABLE


def analyze_trend(values: list[float], days_remaining: float) -> TrendResult:
    """
    Compare the average step change of the early half of ``values`` with the
    recent half and project the last value forward by ``days_remaining``.
    """

    if len(values) < MIN_POINTS_FOR_TREND:
        return TrendResult(trend=Trend.UNKNOWN, projected_end_value=None, is_decline=False)

    midpoint = len(values) // 2
    early_avg = _avg_change(values[:midpoint])
    recent_avg = _avg_change(values[midpoint:])

    return TrendResult(
        trend=_classify(early_avg, recent_avg),
        projected_end_value=values[-1] + recent_avg * days_remaining,
        is_decline=recent_avg < 0,
    )
