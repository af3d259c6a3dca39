"""Slot service - bookable slots for one lawyer on one date.

All state is read up front; the returned iterator only walks the windows.
Each call starts from scratch, nothing is cached between calls.
"""

from datetime import date, timedelta
from typing import Iterator
from uuid import UUID

from sqlalchemy.orm import Session

from booking_engine.schemas.policy import BookingPolicy
from booking_engine.services import availability_service, conflict_service
from booking_engine.services.errors import ValidationError
from booking_engine.services.interval import Interval, TimeSlot
from booking_engine.utils.wall_clock import day_of_week


def generate_slots(
    db: Session,
    lawyer_id: UUID,
    on_date: date,
    slot_duration_minutes: int,
    policy: BookingPolicy,
    exclude_appointment_id: UUID | None = None,
) -> Iterator[TimeSlot]:
    """
    Calculate bookable slots for a lawyer on a date in the firm timezone.

    Steps:
    - anchor each active template for the weekday to on_date (DST-aware)
    - walk each window in slot_duration_minutes steps
    - drop candidates hitting an appointment, its buffer or a blocked range

    A date without availability yields nothing. Pass exclude_appointment_id
    to list reschedule options for that appointment.
    """
    if slot_duration_minutes <= 0:
        raise ValidationError("Slot duration must be positive")
    availability_service.get_lawyer(db, lawyer_id)

    templates = availability_service.active_templates_for(db, lawyer_id, day_of_week(on_date))
    if not templates:
        return iter(())

    windows = conflict_service.availability_windows(templates, [on_date], policy.tz)
    if not windows:
        return iter(())

    span = Interval(windows[0].start, max(w.end for w in windows))
    snapshot = conflict_service.load_snapshot(
        db,
        lawyer_id,
        span,
        policy,
        exclude_appointment_id=exclude_appointment_id,
        include_windows=False,
    )
    return _walk_windows(windows, timedelta(minutes=slot_duration_minutes), snapshot)


def _walk_windows(
    windows: list[Interval],
    duration: timedelta,
    snapshot: conflict_service.ConflictSnapshot,
) -> Iterator[TimeSlot]:
    for window in windows:
        cursor = window.start
        while cursor + duration <= window.end:
            slot = TimeSlot(cursor, cursor + duration)
            # Containment holds by construction
            if snapshot.conflict_reason(slot, check_availability=False) is None:
                yield slot
            cursor += duration
