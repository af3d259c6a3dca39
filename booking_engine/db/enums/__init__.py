"""Enum definitions for application constants."""

from booking_engine.db.enums.appointments import (
    AppointmentStatus,
    BookingEventType,
    ConflictReason,
    DEFAULT_APPOINTMENT_STATUS,
)
from booking_engine.db.enums.auth import BOOKABLE_ROLES, Role

__all__ = [
    "AppointmentStatus",
    "BookingEventType",
    "ConflictReason",
    "DEFAULT_APPOINTMENT_STATUS",
    "BOOKABLE_ROLES",
    "Role",
]
