"""Conflict service - the overlap rules every write and slot goes through.

Three checks, all built on the half-open Interval model:
- template self-consistency (same lawyer + day of week)
- blocked range self-consistency (same lawyer, absolute time)
- appointment conflicts: existing appointments, their buffers, blocked
  ranges and the lawyer's availability windows for the dates spanned
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from booking_engine.core.structured_logging import build_log_context
from booking_engine.db.enums import AppointmentStatus, ConflictReason
from booking_engine.db.models import Appointment, AvailabilityTemplate
from booking_engine.schemas.policy import BookingPolicy
from booking_engine.services import availability_service
from booking_engine.services.errors import ConflictError, ValidationError
from booking_engine.services.interval import Interval, contained_in_union
from booking_engine.utils.wall_clock import day_of_week, local_dates_spanned, to_instant

logger = logging.getLogger(__name__)

# Anchor date for comparing wall-clock template windows
_WALL_CLOCK_ANCHOR = date(2000, 1, 1)


# =============================================================================
# Self-consistency checks
# =============================================================================

def _wall_interval(start_time: time, end_time: time) -> Interval:
    return Interval(
        datetime.combine(_WALL_CLOCK_ANCHOR, start_time),
        datetime.combine(_WALL_CLOCK_ANCHOR, end_time),
    )


def check_template_overlap(
    db: Session,
    lawyer_id: UUID,
    day_of_week: int,
    start_time: time,
    end_time: time,
    exclude_template_id: UUID | None = None,
) -> None:
    """Reject a template window overlapping another active one on the same day."""
    candidate = _wall_interval(start_time, end_time)
    for sibling in availability_service.active_templates_for(db, lawyer_id, day_of_week):
        if exclude_template_id and sibling.id == exclude_template_id:
            continue
        if candidate.overlaps(_wall_interval(sibling.start_time, sibling.end_time)):
            logger.info(
                "Template overlap rejected",
                extra=build_log_context(lawyer_id=str(lawyer_id), reason="template_overlap"),
            )
            raise ValidationError(
                f"Time slot overlaps with existing availability on {sibling.day_name} "
                f"({sibling.start_time:%H:%M}-{sibling.end_time:%H:%M})"
            )


def check_blocked_range_overlap(
    db: Session,
    lawyer_id: UUID,
    start_at: datetime,
    end_at: datetime,
    exclude_blocked_range_id: UUID | None = None,
) -> None:
    """Reject a blocked range overlapping an existing one for the lawyer."""
    candidate = Interval(start_at, end_at)
    for existing in availability_service.blocked_ranges_overlapping(db, lawyer_id, candidate):
        if exclude_blocked_range_id and existing.id == exclude_blocked_range_id:
            continue
        if candidate.overlaps(Interval(existing.start_at, existing.end_at)):
            logger.info(
                "Blocked range overlap rejected",
                extra=build_log_context(lawyer_id=str(lawyer_id), reason="blocked_range_overlap"),
            )
            raise ValidationError("Blocked range overlaps an existing blocked range")


# =============================================================================
# Availability windows
# =============================================================================

def template_window(
    template: AvailabilityTemplate,
    on_date: date,
    tz: ZoneInfo,
) -> Interval | None:
    """
    Anchor a template's wall-clock window to a date in the firm timezone.

    The offset is resolved for that specific date. Returns None when the
    window collapses (it lies wholly inside a spring-forward gap).
    """
    window = Interval(
        to_instant(on_date, template.start_time, tz),
        to_instant(on_date, template.end_time, tz),
    )
    if window.is_empty:
        return None
    return window


def availability_windows(
    templates: list[AvailabilityTemplate],
    dates: list[date],
    tz: ZoneInfo,
) -> list[Interval]:
    """Absolute windows for each date from the templates matching its weekday."""
    windows: list[Interval] = []
    for on_date in dates:
        dow = day_of_week(on_date)
        for template in templates:
            if template.day_of_week != dow:
                continue
            window = template_window(template, on_date, tz)
            if window is not None:
                windows.append(window)
    return sorted(windows)


# =============================================================================
# Appointment conflicts
# =============================================================================

@dataclass
class ConflictSnapshot:
    """
    Committed state around a time span, read once.

    Slot generation tests many candidates against one snapshot; a booking
    loads a fresh one inside its lock.
    """

    buffer: timedelta
    appointments: list[Interval] = field(default_factory=list)
    blocked: list[Interval] = field(default_factory=list)
    windows: list[Interval] = field(default_factory=list)

    def conflict_reason(
        self,
        candidate: Interval,
        check_availability: bool = True,
    ) -> ConflictReason | None:
        """First rule the candidate breaks, or None when it is bookable."""
        for booked in self.appointments:
            if candidate.overlaps(booked):
                return ConflictReason.APPOINTMENT_OVERLAP
        # Buffer is measured around already-booked appointments
        for booked in self.appointments:
            if candidate.overlaps(booked.expand(self.buffer, self.buffer)):
                return ConflictReason.BUFFER_OVERLAP
        for blocked in self.blocked:
            if candidate.overlaps(blocked):
                return ConflictReason.BLOCKED_RANGE
        if check_availability and not contained_in_union(candidate, self.windows):
            return ConflictReason.OUTSIDE_AVAILABILITY
        return None


def load_snapshot(
    db: Session,
    lawyer_id: UUID,
    span: Interval,
    policy: BookingPolicy,
    exclude_appointment_id: UUID | None = None,
    include_windows: bool = True,
) -> ConflictSnapshot:
    """Read the appointments, blocked ranges and windows relevant to span."""
    buffer = policy.buffer
    query = select(Appointment.start_time, Appointment.end_time).where(
        Appointment.lawyer_id == lawyer_id,
        Appointment.status != AppointmentStatus.CANCELLED.value,
        Appointment.start_time < span.end + buffer,
        Appointment.end_time > span.start - buffer,
    )
    if exclude_appointment_id:
        query = query.where(Appointment.id != exclude_appointment_id)
    appointments = [
        Interval(start, end)
        for start, end in db.execute(query.order_by(Appointment.start_time)).all()
    ]

    blocked = [
        Interval(b.start_at, b.end_at)
        for b in availability_service.blocked_ranges_overlapping(db, lawyer_id, span)
    ]

    windows: list[Interval] = []
    if include_windows:
        dates = local_dates_spanned(span.start, span.end, policy.tz)
        templates = availability_service.active_templates_for_days(
            db, lawyer_id, {day_of_week(d) for d in dates}
        )
        windows = availability_windows(templates, dates, policy.tz)

    return ConflictSnapshot(
        buffer=buffer,
        appointments=appointments,
        blocked=blocked,
        windows=windows,
    )


def validate_candidate(start: datetime, end: datetime) -> Interval:
    """Check a proposed appointment interval is well formed."""
    if start.tzinfo is None or end.tzinfo is None:
        raise ValidationError("Appointment times must be timezone-aware")
    if start >= end:
        raise ValidationError("End time must be after start time")
    return Interval(start, end)


def find_appointment_conflict(
    db: Session,
    lawyer_id: UUID,
    start: datetime,
    end: datetime,
    policy: BookingPolicy,
    exclude_appointment_id: UUID | None = None,
) -> ConflictReason | None:
    """Reason the interval cannot be booked for the lawyer, or None."""
    candidate = validate_candidate(start, end)
    snapshot = load_snapshot(
        db, lawyer_id, candidate, policy, exclude_appointment_id=exclude_appointment_id
    )
    return snapshot.conflict_reason(candidate)


def assert_no_appointment_conflict(
    db: Session,
    lawyer_id: UUID,
    start: datetime,
    end: datetime,
    policy: BookingPolicy,
    exclude_appointment_id: UUID | None = None,
) -> None:
    """Raise ConflictError if the interval cannot be booked."""
    reason = find_appointment_conflict(
        db, lawyer_id, start, end, policy, exclude_appointment_id=exclude_appointment_id
    )
    if reason is not None:
        logger.info(
            "Booking conflict",
            extra=build_log_context(
                lawyer_id=str(lawyer_id),
                appointment_id=str(exclude_appointment_id) if exclude_appointment_id else None,
                reason=reason.value,
            ),
        )
        raise ConflictError(reason)
