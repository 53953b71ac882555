"""
goals/periods.py

Calendar arithmetic for goal cadences and manual check-in periods.

All bounds are computed in UTC. Weeks run Monday through Sunday.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from goals.types import Cadence, PeriodBounds

_ONE_MS = timedelta(milliseconds=1)
_SECONDS_PER_DAY = 86_400.0
_SECONDS_PER_HOUR = 3_600.0


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _week_start(value: datetime) -> datetime:
    # weekday(): Monday == 0, Sunday == 6
    return _start_of_day(value) - timedelta(days=value.weekday())


def _month_bounds(value: datetime) -> tuple[datetime, datetime, int]:
    days_in_month = calendar.monthrange(value.year, value.month)[1]
    start = value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=days_in_month) - _ONE_MS
    return start, end, days_in_month


# ---------------------------------------------------------------------------
# Goal period bounds
# ---------------------------------------------------------------------------


def get_period_bounds(cadence: str, now: datetime | None = None) -> PeriodBounds:
    """
    Return the bounds of the goal period containing ``now`` for ``cadence``.

    days_elapsed is fractional and capped at days_total; days_remaining and
    hours_remaining never go negative.
    """

    current = _as_utc(now) if now is not None else _utc_now()
    normalized = cadence.upper()

    if normalized == Cadence.DAILY:
        start = _start_of_day(current)
        end = start + timedelta(days=1) - _ONE_MS
        days_total = 1
    elif normalized == Cadence.WEEKLY:
        start = _week_start(current)
        end = start + timedelta(days=7) - _ONE_MS
        days_total = 7
    elif normalized == Cadence.MONTHLY:
        start, end, days_total = _month_bounds(current)
    else:
        raise ValueError(f"Unsupported cadence: {cadence!r}")

    elapsed_seconds = (current - start).total_seconds()
    remaining_seconds = max(0.0, (end - current).total_seconds())

    return PeriodBounds(
        period_start=start,
        period_end=end,
        days_elapsed=min(float(days_total), elapsed_seconds / _SECONDS_PER_DAY),
        days_total=days_total,
        days_remaining=remaining_seconds / _SECONDS_PER_DAY,
        hours_remaining=remaining_seconds / _SECONDS_PER_HOUR,
    )


# ---------------------------------------------------------------------------
# Check-in periods
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Period:
    """
    One check-in period. ``timestamp`` (the period end) is the instant a
    manual data point for this period is stored under.
    """

    start: datetime
    end: datetime
    label: str

    @property
    def timestamp(self) -> datetime:
        return self.end


def _format_week_label(start: datetime, end: datetime) -> str:
    start_month = start.strftime("%b")
    end_month = end.strftime("%b")
    if start_month == end_month:
        return f"{start_month} {start.day} - {end.day}"
    return f"{start_month} {start.day} - {end_month} {end.day}"


def get_period_for_date(cadence: str, date: datetime) -> Period:
    value = _as_utc(date)
    normalized = cadence.lower()

    if normalized == "daily":
        start = _start_of_day(value)
        return Period(
            start=start,
            end=start + timedelta(days=1) - _ONE_MS,
            label=f"{value.strftime('%b')} {value.day}",
        )
    if normalized == "weekly":
        start = _week_start(value)
        end = start + timedelta(days=7) - _ONE_MS
        return Period(start=start, end=end, label=_format_week_label(start, end))
    if normalized == "monthly":
        start, end, _ = _month_bounds(value)
        return Period(start=start, end=end, label=value.strftime("%b"))

    raise ValueError(f"Unsupported cadence: {cadence!r}")


def get_current_period(cadence: str, now: datetime | None = None) -> Period:
    return get_period_for_date(cadence, now if now is not None else _utc_now())


def get_recent_periods(cadence: str, count: int, now: datetime | None = None) -> list[Period]:
    """
    Return ``count`` periods ending with the current one, most recent first.
    """

    current = _as_utc(now) if now is not None else _utc_now()
    normalized = cadence.lower()
    periods: list[Period] = []

    for offset in range(max(0, count)):
        if normalized == "daily":
            anchor = current - timedelta(days=offset)
        elif normalized == "weekly":
            anchor = current - timedelta(days=7 * offset)
        elif normalized == "monthly":
            month_index = current.year * 12 + (current.month - 1) - offset
            anchor = current.replace(year=month_index // 12, month=month_index % 12 + 1, day=1)
        else:
            raise ValueError(f"Unsupported cadence: {cadence!r}")
        periods.append(get_period_for_date(cadence, anchor))

    return periods


def is_in_period(timestamp: datetime, period: Period) -> bool:
    value = _as_utc(timestamp)
    return period.start <= value <= period.end


def find_period_for_timestamp(timestamp: datetime, periods: list[Period]) -> Period | None:
    return next((period for period in periods if is_in_period(timestamp, period)), None)


def get_periods(cadence: str, start: datetime, end: datetime) -> list[Period]:
    """
    Return every period overlapping ``start``..``end``, most recent first.
    """

    first = get_period_for_date(cadence, start)
    periods: list[Period] = []
    current = get_period_for_date(cadence, end)
    while current.end >= first.start:
        periods.append(current)
        current = get_period_for_date(cadence, current.start - _ONE_MS)
    return periods
