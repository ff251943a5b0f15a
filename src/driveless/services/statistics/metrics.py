"""Windowing and rate helpers shared by the route store and the dashboard."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Optional

HEALTHY = "Healthy"
WARNING = "Warning"
UNKNOWN = "Unknown"


def growth_rate(last_week: int, this_week: int) -> float:
    """Percentage change week over week; 0.0 when there is no baseline."""
    if last_week == 0:
        return 0.0
    return (this_week - last_week) / last_week * 100


def success_rate(total_routes: int, error_count: int) -> float:
    denominator = total_routes + error_count
    if denominator == 0:
        return 100.0
    return total_routes / denominator * 100


def system_health(error_count: int, threshold: int = 10) -> str:
    return HEALTHY if error_count < threshold else WARNING


@dataclass(frozen=True, slots=True)
class Windows:
    """Calendar-day boundaries relative to ``now`` in the local time zone."""

    now: datetime
    today_start: datetime
    week_start: datetime
    last_week_start: datetime
    month_start: datetime


def local_windows(now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> Windows:
    if now is None:
        now = datetime.now(tz) if tz is not None else datetime.now().astimezone()
    elif now.tzinfo is None:
        now = now.replace(tzinfo=tz) if tz is not None else now.astimezone()
    else:
        # astimezone(None) converts to the system local zone.
        now = now.astimezone(tz)

    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = _days_before(today_start, 6)
    return Windows(
        now=now,
        today_start=today_start,
        week_start=week_start,
        last_week_start=_days_before(week_start, 7),
        month_start=_days_before(today_start, 29),
    )


def _days_before(midnight: datetime, days: int) -> datetime:
    # Step by calendar date so DST changes keep the boundary at local midnight.
    shifted = (midnight.date() - timedelta(days=days))
    return midnight.replace(year=shifted.year, month=shifted.month, day=shifted.day)
