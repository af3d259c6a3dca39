"""Utility modules."""

from booking_engine.utils.wall_clock import (
    day_of_week,
    local_dates_spanned,
    local_day_bounds,
    parse_wall_time,
    to_instant,
)

__all__ = [
    "day_of_week",
    "local_dates_spanned",
    "local_day_bounds",
    "parse_wall_time",
    "to_instant",
]
