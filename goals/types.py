"""
goals/types.py

Value types shared by the goal engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class Cadence:
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"

    ALL = (DAILY, WEEKLY, MONTHLY)


class GoalStatus:
    EXCEEDED = "exceeded"
    ON_TRACK = "on_track"
    BEHIND = "behind"
    AT_RISK = "at_risk"
    NO_DATA = "no_data"
    INVALID_BASELINE = "invalid_baseline"


class Trend:
    ACCELERATING = "accelerating"
    STABLE = "stable"
    DECELERATING = "decelerating"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PeriodBounds:
    period_start: datetime
    period_end: datetime
    days_elapsed: float
    days_total: int
    days_remaining: float
    hours_remaining: float


@dataclass(frozen=True)
class ProgressResult:
    progress_percent: float
    expected_progress_percent: float
    growth_percent: float | None = None


@dataclass(frozen=True)
class TrendResult:
    trend: str
    projected_end_value: float | None
    is_decline: bool


@dataclass(frozen=True)
class GoalInput:
    """
    Plain view of a MetricGoal row so the engine never touches the ORM.

    on_track_threshold is a fraction (0.8 == 80%), or None for the default.
    """

    goal_type: str
    target_value: float
    baseline_value: float | None = None
    baseline_timestamp: datetime | None = None
    on_track_threshold: float | None = None


@dataclass(frozen=True)
class ChartDataForGoal:
    chart_data: list[dict[str, Any]] = field(default_factory=list)
    x_axis_key: str = "date"
    data_keys: list[str] = field(default_factory=list)
    selected_dimension: str | None = None


@dataclass(frozen=True)
class GoalProgress:
    cadence: str
    bounds: PeriodBounds
    baseline_value: float | None
    current_value: float | None
    target_value: float
    target_display_value: float
    progress_percent: float
    expected_progress_percent: float
    status: str
    trend: str
    projected_end_value: float | None
    is_decline: bool
    growth_percent: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "cadence": self.cadence,
            "period_start": self.bounds.period_start.isoformat(),
            "period_end": self.bounds.period_end.isoformat(),
            "days_elapsed": self.bounds.days_elapsed,
            "days_total": self.bounds.days_total,
            "days_remaining": self.bounds.days_remaining,
            "hours_remaining": self.bounds.hours_remaining,
            "baseline_value": self.baseline_value,
            "current_value": self.current_value,
            "target_value": self.target_value,
            "target_display_value": self.target_display_value,
            "progress_percent": self.progress_percent,
            "expected_progress_percent": self.expected_progress_percent,
            "growth_percent": self.growth_percent,
            "status": self.status,
            "trend": self.trend,
            "projected_end_value": self.projected_end_value,
            "is_decline": self.is_decline,
        }


@dataclass(frozen=True)
class SuggestedRange:
    suggested_min: float
    suggested_max: float


@dataclass(frozen=True)
class ChartValues:
    current_value: float | None
    baseline_value: float | None
    values: list[float] = field(default_factory=list)
