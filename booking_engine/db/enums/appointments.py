"""Appointment and scheduling enums."""

from enum import Enum


class AppointmentStatus(str, Enum):
    """
    Appointment lifecycle status.

    Flow: scheduled → completed
                ↘ cancelled
                ↘ no_show
    """

    SCHEDULED = "scheduled"  # Booked, occupies the lawyer's time
    COMPLETED = "completed"  # Meeting took place
    CANCELLED = "cancelled"  # Frees the interval
    NO_SHOW = "no_show"  # Client didn't show up

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid status."""
        return value in cls._value2member_map_


class ConflictReason(str, Enum):
    """Why a candidate interval was rejected."""

    APPOINTMENT_OVERLAP = "appointment_overlap"
    BUFFER_OVERLAP = "buffer_overlap"
    BLOCKED_RANGE = "blocked_range"
    OUTSIDE_AVAILABILITY = "outside_availability"


class BookingEventType(str, Enum):
    """Domain events emitted after a committed booking change."""

    CREATED = "appointment.created"
    RESCHEDULED = "appointment.rescheduled"
    CANCELLED = "appointment.cancelled"
    COMPLETED = "appointment.completed"
    NO_SHOW = "appointment.no_show"


# Default appointment status
DEFAULT_APPOINTMENT_STATUS = AppointmentStatus.SCHEDULED
