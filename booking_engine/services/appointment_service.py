"""Appointment service - booking transaction and appointment lifecycle.

Handles:
- Appointment types (firm defaults, duration lookup)
- Available slots for a lawyer/date under the firm policy
- Create / reschedule under the per-lawyer booking lock
- Cancel, complete, no-show status changes
- Domain events after every committed change
"""

import logging
from datetime import date, datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from booking_engine.core.config import settings
from booking_engine.core.structured_logging import build_log_context
from booking_engine.db.enums import AppointmentStatus, BookingEventType
from booking_engine.db.models import Appointment, AppointmentType
from booking_engine.services import (
    availability_service,
    booking_events,
    conflict_service,
    policy_service,
    slot_service,
)
from booking_engine.services.booking_lock import lawyer_booking_scope
from booking_engine.services.errors import NotFoundError, ValidationError
from booking_engine.services.interval import TimeSlot

logger = logging.getLogger(__name__)


# Seeded for a firm on first use: (name, description, duration, color)
DEFAULT_APPOINTMENT_TYPES: list[tuple[str, str, int, str]] = [
    ("Initial Consultation", "First meeting to evaluate the case", 60, "#3B82F6"),
    ("Follow-up", "Follow-up meeting on case progress", 30, "#10B981"),
    ("Case Review", "Detailed review of case documents and strategy", 90, "#8B5CF6"),
    ("Document Signing", "Meeting to sign legal documents", 30, "#F59E0B"),
    ("Court Preparation", "Preparation session before court appearance", 60, "#EF4444"),
]


# =============================================================================
# Appointment Types
# =============================================================================

def ensure_default_appointment_types(db: Session, firm_id: UUID) -> list[AppointmentType]:
    """Create the default appointment types for a firm that has none."""
    existing = db.query(AppointmentType).filter(
        AppointmentType.firm_id == firm_id
    ).count()
    if existing:
        return list_active_appointment_types(db, firm_id)

    types = [
        AppointmentType(
            firm_id=firm_id,
            name=name,
            description=description,
            duration_minutes=duration,
            color=color,
            sort_order=index,
            is_active=True,
        )
        for index, (name, description, duration, color) in enumerate(DEFAULT_APPOINTMENT_TYPES)
    ]
    db.add_all(types)
    db.commit()
    return list_active_appointment_types(db, firm_id)


def list_active_appointment_types(db: Session, firm_id: UUID) -> list[AppointmentType]:
    """Active appointment types for a firm, by sort order then name."""
    return db.query(AppointmentType).filter(
        AppointmentType.firm_id == firm_id,
        AppointmentType.is_active.is_(True),
    ).order_by(AppointmentType.sort_order, AppointmentType.name).all()


def get_appointment_type(
    db: Session,
    appointment_type_id: UUID,
    firm_id: UUID,
) -> AppointmentType:
    """Get appointment type by ID."""
    appt_type = db.query(AppointmentType).filter(
        AppointmentType.id == appointment_type_id,
        AppointmentType.firm_id == firm_id,
    ).first()
    if not appt_type:
        raise NotFoundError(f"Appointment type {appointment_type_id} not found")
    return appt_type


# =============================================================================
# Slots
# =============================================================================

def get_available_slots(
    db: Session,
    firm_id: UUID,
    lawyer_id: UUID,
    on_date: date,
    appointment_type_id: UUID | None = None,
    slot_duration_minutes: int | None = None,
    exclude_appointment_id: UUID | None = None,
) -> list[TimeSlot]:
    """
    Bookable slots for a firm lawyer on a date.

    Duration comes from slot_duration_minutes, else the appointment type,
    else DEFAULT_SLOT_DURATION_MINUTES.
    """
    availability_service.get_lawyer(db, lawyer_id, firm_id)
    policy = policy_service.get_booking_policy(db, firm_id)

    duration = slot_duration_minutes
    if duration is None and appointment_type_id:
        duration = get_appointment_type(db, appointment_type_id, firm_id).duration_minutes
    if duration is None:
        duration = settings.DEFAULT_SLOT_DURATION_MINUTES

    return list(
        slot_service.generate_slots(
            db,
            lawyer_id,
            on_date,
            duration,
            policy,
            exclude_appointment_id=exclude_appointment_id,
        )
    )


# =============================================================================
# Booking
# =============================================================================

def _duration_minutes(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def create_appointment(
    db: Session,
    firm_id: UUID,
    lawyer_id: UUID,
    start_time: datetime,
    client_name: str,
    client_email: str,
    end_time: datetime | None = None,
    appointment_type_id: UUID | None = None,
    client_id: UUID | None = None,
    client_phone: str | None = None,
    case_id: UUID | None = None,
    notes: str | None = None,
    internal_notes: str | None = None,
) -> Appointment:
    """
    Book an appointment for a lawyer.

    The conflict check is re-run inside the lawyer's booking lock against
    committed state, even if the caller picked a slot moments ago. On any
    failure the transaction is rolled back and nothing is persisted.

    Raises ValidationError, ConflictError or NotFoundError.
    """
    availability_service.get_lawyer(db, lawyer_id, firm_id)

    if end_time is None:
        if not appointment_type_id:
            raise ValidationError("End time or appointment type is required")
        appt_type = get_appointment_type(db, appointment_type_id, firm_id)
        end_time = start_time + timedelta(minutes=appt_type.duration_minutes)
    elif appointment_type_id:
        get_appointment_type(db, appointment_type_id, firm_id)

    candidate = conflict_service.validate_candidate(start_time, end_time)
    client_name = (client_name or "").strip()
    client_email = (client_email or "").strip()
    if not client_name or not client_email:
        raise ValidationError("Client name and email are required")

    policy = policy_service.get_booking_policy(db, firm_id)

    with lawyer_booking_scope(db, lawyer_id):
        try:
            conflict_service.assert_no_appointment_conflict(
                db, lawyer_id, candidate.start, candidate.end, policy
            )
            appointment = Appointment(
                firm_id=firm_id,
                lawyer_id=lawyer_id,
                client_id=client_id,
                appointment_type_id=appointment_type_id,
                case_id=case_id,
                client_name=client_name,
                client_email=client_email,
                client_phone=client_phone,
                start_time=candidate.start,
                end_time=candidate.end,
                duration_minutes=_duration_minutes(candidate.start, candidate.end),
                status=AppointmentStatus.SCHEDULED.value,
                notes=notes,
                internal_notes=internal_notes,
            )
            db.add(appointment)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(appointment)
    logger.info(
        "Appointment created",
        extra=build_log_context(
            lawyer_id=str(lawyer_id),
            firm_id=str(firm_id),
            appointment_id=str(appointment.id),
        ),
    )
    booking_events.emit_for_appointment(appointment, BookingEventType.CREATED)
    return appointment


def reschedule_appointment(
    db: Session,
    appointment_id: UUID,
    firm_id: UUID,
    new_start: datetime,
    new_end: datetime | None = None,
) -> Appointment:
    """
    Move a scheduled appointment; the row keeps its id.

    The appointment's own current interval is excluded from the conflict
    check, so moving it onto (or partly onto) itself succeeds. Without
    new_end the current duration is kept.
    """
    appointment = get_appointment(db, appointment_id, firm_id)
    if not appointment.is_editable:
        raise ValidationError(f"Cannot reschedule appointment with status {appointment.status}")

    if new_end is None:
        new_end = new_start + (appointment.end_time - appointment.start_time)
    candidate = conflict_service.validate_candidate(new_start, new_end)
    policy = policy_service.get_booking_policy(db, firm_id)
    lawyer_id = appointment.lawyer_id

    with lawyer_booking_scope(db, lawyer_id):
        try:
            conflict_service.assert_no_appointment_conflict(
                db,
                lawyer_id,
                candidate.start,
                candidate.end,
                policy,
                exclude_appointment_id=appointment.id,
            )
            appointment.start_time = candidate.start
            appointment.end_time = candidate.end
            appointment.duration_minutes = _duration_minutes(candidate.start, candidate.end)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(appointment)
    logger.info(
        "Appointment rescheduled",
        extra=build_log_context(
            lawyer_id=str(lawyer_id),
            firm_id=str(firm_id),
            appointment_id=str(appointment.id),
        ),
    )
    booking_events.emit_for_appointment(appointment, BookingEventType.RESCHEDULED)
    return appointment


def cancel_appointment(
    db: Session,
    appointment_id: UUID,
    firm_id: UUID,
    reason: str | None = None,
    cancelled_by_id: UUID | None = None,
) -> Appointment:
    """
    Cancel an appointment, freeing its interval.

    Idempotent: an already-cancelled appointment is returned unchanged.
    No booking lock is needed since cancelling only frees time.
    """
    appointment = get_appointment(db, appointment_id, firm_id)
    if appointment.status == AppointmentStatus.CANCELLED.value:
        return appointment
    if not appointment.is_cancellable:
        raise ValidationError(f"Cannot cancel appointment with status {appointment.status}")

    appointment.status = AppointmentStatus.CANCELLED.value
    appointment.cancelled_at = datetime.now(timezone.utc)
    appointment.cancellation_reason = reason
    appointment.cancelled_by_id = cancelled_by_id
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(appointment)

    logger.info(
        "Appointment cancelled",
        extra=build_log_context(
            lawyer_id=str(appointment.lawyer_id),
            firm_id=str(firm_id),
            appointment_id=str(appointment.id),
        ),
    )
    booking_events.emit_for_appointment(appointment, BookingEventType.CANCELLED)
    return appointment


_STATUS_EVENTS = {
    AppointmentStatus.COMPLETED: BookingEventType.COMPLETED,
    AppointmentStatus.NO_SHOW: BookingEventType.NO_SHOW,
}


def _set_outcome_status(
    db: Session,
    appointment_id: UUID,
    firm_id: UUID,
    status: AppointmentStatus,
) -> Appointment:
    """
    Record how a meeting went.

    Whether the start time has passed is the caller's rule, not enforced
    here. Cancelled appointments no longer hold their interval and cannot
    take an outcome status.
    """
    appointment = get_appointment(db, appointment_id, firm_id)
    if appointment.status == status.value:
        return appointment
    if appointment.status == AppointmentStatus.CANCELLED.value:
        raise ValidationError(f"Cannot mark cancelled appointment as {status.value}")

    appointment.status = status.value
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(appointment)

    logger.info(
        "Appointment marked %s",
        status.value,
        extra=build_log_context(
            lawyer_id=str(appointment.lawyer_id),
            firm_id=str(firm_id),
            appointment_id=str(appointment.id),
        ),
    )
    booking_events.emit_for_appointment(appointment, _STATUS_EVENTS[status])
    return appointment


def complete_appointment(db: Session, appointment_id: UUID, firm_id: UUID) -> Appointment:
    """Mark an appointment as completed."""
    return _set_outcome_status(db, appointment_id, firm_id, AppointmentStatus.COMPLETED)


def mark_no_show(db: Session, appointment_id: UUID, firm_id: UUID) -> Appointment:
    """Mark an appointment as a no-show."""
    return _set_outcome_status(db, appointment_id, firm_id, AppointmentStatus.NO_SHOW)


# =============================================================================
# Queries
# =============================================================================

def get_appointment(
    db: Session,
    appointment_id: UUID,
    firm_id: UUID | None = None,
) -> Appointment:
    """Get appointment by ID, optionally scoped to a firm."""
    query = db.query(Appointment).filter(Appointment.id == appointment_id)
    if firm_id:
        query = query.filter(Appointment.firm_id == firm_id)
    appointment = query.first()
    if not appointment:
        raise NotFoundError(f"Appointment {appointment_id} not found")
    return appointment


def list_lawyer_appointments(
    db: Session,
    lawyer_id: UUID,
    window_start: datetime,
    window_end: datetime,
) -> list[Appointment]:
    """A lawyer's non-cancelled appointments overlapping [window_start, window_end)."""
    return db.query(Appointment).filter(
        Appointment.lawyer_id == lawyer_id,
        Appointment.status != AppointmentStatus.CANCELLED.value,
        Appointment.start_time < window_end,
        Appointment.end_time > window_start,
    ).order_by(Appointment.start_time).all()


def list_firm_appointments(
    db: Session,
    firm_id: UUID,
    window_start: datetime,
    window_end: datetime,
    status: str | None = None,
    lawyer_id: UUID | None = None,
) -> list[Appointment]:
    """Firm appointments starting in [window_start, window_end)."""
    query = db.query(Appointment).filter(
        Appointment.firm_id == firm_id,
        Appointment.start_time >= window_start,
        Appointment.start_time < window_end,
    )
    if status:
        if not AppointmentStatus.has_value(status):
            raise ValidationError(f"Invalid status '{status}'")
        query = query.filter(Appointment.status == status)
    if lawyer_id:
        query = query.filter(Appointment.lawyer_id == lawyer_id)
    return query.order_by(Appointment.start_time).all()


def list_client_appointments(
    db: Session,
    firm_id: UUID,
    client_id: UUID | None = None,
    client_email: str | None = None,
) -> list[Appointment]:
    """A client's appointments, most recent first.

    Matches the client user id or the booked e-mail address.
    """
    if not client_id and not client_email:
        raise ValidationError("Client id or email is required")
    filters = []
    if client_id:
        filters.append(Appointment.client_id == client_id)
    if client_email:
        filters.append(Appointment.client_email == client_email.strip())
    return db.query(Appointment).filter(
        Appointment.firm_id == firm_id,
        or_(*filters),
    ).order_by(Appointment.start_time.desc()).all()
