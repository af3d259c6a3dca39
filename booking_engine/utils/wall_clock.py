"""Wall-clock to instant conversion, DST-safe.

Availability templates say "09:00-12:00" with no date attached. What that
means on the UTC axis depends on the date, so every conversion resolves the
zone offset for the specific date instead of reusing a cached offset.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

WALL_TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$")

_RESOLUTION = timedelta(seconds=1)


def parse_wall_time(value: str | time) -> time:
    """Parse an "HH:MM" wall-clock string. Raises ValueError if malformed."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    value = value.strip()
    if not WALL_TIME_PATTERN.match(value):
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return time.fromisoformat(value)


def day_of_week(on_date: date) -> int:
    """Day of week with Sunday=0 ... Saturday=6."""
    return (on_date.weekday() + 1) % 7


def to_instant(on_date: date, wall_time: time, tz: ZoneInfo) -> datetime:
    """
    Resolve a local wall-clock time on a given date to a UTC instant.

    - Repeated times (fall back) resolve to their first occurrence.
    - Skipped times (spring forward) resolve to the first instant after
      the gap, so a window lying wholly inside a gap collapses to nothing.
    """
    local = datetime.combine(on_date, wall_time, tzinfo=tz)
    first = local.astimezone(timezone.utc)
    second = local.replace(fold=1).astimezone(timezone.utc)
    if second >= first:
        return first
    # Inside a gap: fold=1 lands before the transition, fold=0 after it
    return _transition_instant(second, first, tz)


def _transition_instant(lo: datetime, hi: datetime, tz: ZoneInfo) -> datetime:
    """Bisect for the instant where the zone switches to hi's offset."""
    target = hi.astimezone(tz).utcoffset()
    while hi - lo > _RESOLUTION:
        mid = lo + (hi - lo) // 2
        if mid.astimezone(tz).utcoffset() == target:
            hi = mid
        else:
            lo = mid
    return hi.replace(microsecond=0)


def local_day_bounds(on_date: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC instants of local midnight on on_date and on the following day.

    Spans 23 or 25 hours on transition days.
    """
    start = to_instant(on_date, time.min, tz)
    end = to_instant(on_date + timedelta(days=1), time.min, tz)
    return start, end


def local_dates_spanned(start: datetime, end: datetime, tz: ZoneInfo) -> list[date]:
    """Local calendar dates touched by the half-open range [start, end)."""
    first = start.astimezone(tz).date()
    last_instant = end - timedelta(microseconds=1) if end > start else start
    last = last_instant.astimezone(tz).date()
    dates = []
    current = first
    while current <= last:
        dates.append(current)
        current += timedelta(days=1)
    return dates
