"""Scheduling error taxonomy shared by all engine services."""

from booking_engine.db.enums import ConflictReason


class SchedulingError(Exception):
    """Base exception for scheduling errors."""

    pass


class ValidationError(SchedulingError, ValueError):
    """Malformed input (end <= start, invalid day of week, unknown buffer). Caller-fixable."""

    pass


class NotFoundError(SchedulingError, LookupError):
    """Referenced id does not exist or is not owned by the expected lawyer/firm."""

    pass


class ConflictError(SchedulingError):
    """Candidate interval collides with existing state.

    Expected outcome, never retried by the engine. `reason` is informational:
    every reason means the same thing to the booking flow.
    """

    MESSAGES = {
        ConflictReason.APPOINTMENT_OVERLAP: "Selected time overlaps an existing appointment",
        ConflictReason.BUFFER_OVERLAP: "Selected time is too close to an existing appointment",
        ConflictReason.BLOCKED_RANGE: "Selected time falls in a blocked period",
        ConflictReason.OUTSIDE_AVAILABILITY: "Selected time is not within the lawyer's availability",
    }

    def __init__(self, reason: ConflictReason, message: str | None = None):
        self.reason = reason
        super().__init__(message or self.MESSAGES[reason])
