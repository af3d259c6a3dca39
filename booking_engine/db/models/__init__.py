"""SQLAlchemy ORM models."""

from booking_engine.db.models.firms import Firm, User
from booking_engine.db.models.availability import AvailabilityTemplate, BlockedRange, DAY_NAMES
from booking_engine.db.models.appointments import Appointment, AppointmentType

__all__ = [
    "Appointment",
    "AppointmentType",
    "AvailabilityTemplate",
    "BlockedRange",
    "DAY_NAMES",
    "Firm",
    "User",
]
