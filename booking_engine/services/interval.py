"""Half-open time intervals on the UTC instant axis.

An interval is [start, end). Touching intervals (a.end == b.start) do not
overlap, which is what lets appointments sit back to back.
"""

from datetime import datetime, timedelta
from typing import Iterable, NamedTuple


class Interval(NamedTuple):
    """Half-open [start, end) range of aware instants."""
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self, other)

    def contains(self, other: "Interval") -> bool:
        return contains(self, other)

    def expand(self, before: timedelta, after: timedelta) -> "Interval":
        return expand(self, before, after)


# A bookable interval of the requested duration
TimeSlot = Interval


def overlaps(a: Interval, b: Interval) -> bool:
    """True when a and b share at least one instant. Empty intervals share none."""
    if a.is_empty or b.is_empty:
        return False
    return a.start < b.end and b.start < a.end


def contains(outer: Interval, inner: Interval) -> bool:
    """True when inner lies entirely within outer."""
    return outer.start <= inner.start and inner.end <= outer.end


def expand(interval: Interval, before: timedelta, after: timedelta) -> Interval:
    """Pad an interval on both sides (used for appointment buffers)."""
    return Interval(interval.start - before, interval.end + after)


def merge(intervals: Iterable[Interval]) -> list[Interval]:
    """Union of intervals as a sorted list of disjoint, non-touching ranges."""
    merged: list[Interval] = []
    for current in sorted(i for i in intervals if not i.is_empty):
        if merged and current.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, current.end))
        else:
            merged.append(current)
    return merged


def contained_in_union(inner: Interval, windows: Iterable[Interval]) -> bool:
    """True when inner is covered by the union of windows.

    Adjacent windows (09:00-12:00 and 12:00-15:00) count as one span.
    """
    return any(contains(window, inner) for window in merge(windows))
