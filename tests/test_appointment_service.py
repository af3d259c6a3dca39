"""
Tests for Appointment Service - booking transaction and lifecycle.

Coverage:
- Create: validation, conflicts, appointment type durations
- Reschedule with self-exclusion
- Cancel / complete / no-show transitions
- Domain events after commit
- Storage failures leave no row behind
- Concurrent double booking
"""

import threading
from datetime import date, datetime, time, timezone
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.exc import OperationalError

from booking_engine.db.enums import AppointmentStatus, BookingEventType, ConflictReason, Role
from booking_engine.db.models import Appointment, AvailabilityTemplate, Firm, User
from booking_engine.services import appointment_service, availability_service, booking_events
from booking_engine.services.errors import ConflictError, NotFoundError, ValidationError

NY = ZoneInfo("America/New_York")
MONDAY = date(2025, 6, 2)


def local(hour: int, minute: int = 0, on_date: date = MONDAY) -> datetime:
    return datetime.combine(on_date, time(hour, minute), tzinfo=NY).astimezone(timezone.utc)


@pytest.fixture
def monday_hours(add_template):
    add_template(1, "09:00", "12:00")
    add_template(1, "14:00", "17:00")


@pytest.fixture
def book(db, firm, lawyer, monday_hours):
    def _book(start: datetime, end: datetime | None = None, **kwargs) -> Appointment:
        kwargs.setdefault("end_time", end)
        return appointment_service.create_appointment(
            db, firm.id, lawyer.id, start, "Jane Client", "jane@example.com", **kwargs
        )

    return _book


# =============================================================================
# Create
# =============================================================================

class TestCreateAppointment:
    def test_create_persists_scheduled(self, db, book, lawyer):
        appt = book(local(10), local(10, 30))
        assert appt.status == AppointmentStatus.SCHEDULED.value
        assert appt.start_time == local(10)
        assert appt.end_time == local(10, 30)
        assert appt.duration_minutes == 30
        assert appt.lawyer_id == lawyer.id

    def test_end_before_start_rejected(self, book):
        with pytest.raises(ValidationError, match="after start"):
            book(local(10), local(10))

    def test_naive_datetimes_rejected(self, book):
        with pytest.raises(ValidationError, match="timezone-aware"):
            book(datetime(2025, 6, 2, 10), datetime(2025, 6, 2, 11))

    def test_missing_end_and_type(self, book):
        with pytest.raises(ValidationError, match="End time or appointment type"):
            book(local(10))

    def test_client_required(self, db, firm, lawyer, monday_hours):
        with pytest.raises(ValidationError, match="Client name"):
            appointment_service.create_appointment(
                db, firm.id, lawyer.id, local(10), "  ", "jane@example.com", end_time=local(11)
            )

    @pytest.mark.parametrize(
        "start, end, reason",
        [
            ((10, 0), (10, 30), ConflictReason.APPOINTMENT_OVERLAP),
            ((10, 15), (10, 45), ConflictReason.APPOINTMENT_OVERLAP),
            ((10, 30), (11, 0), ConflictReason.BUFFER_OVERLAP),
            ((9, 30), (10, 0), ConflictReason.BUFFER_OVERLAP),
            ((11, 30), (12, 30), ConflictReason.OUTSIDE_AVAILABILITY),
            ((7, 0), (8, 0), ConflictReason.OUTSIDE_AVAILABILITY),
        ],
    )
    def test_conflicts(self, book, start, end, reason):
        book(local(10), local(10, 30))
        with pytest.raises(ConflictError) as exc_info:
            book(local(*start), local(*end))
        assert exc_info.value.reason == reason

    def test_back_to_back_after_buffer(self, book):
        book(local(10), local(10, 30))
        appt = book(local(11), local(11, 30))
        assert appt.start_time == local(11)

    def test_flush_with_window_start(self, book):
        appt = book(local(9), local(9, 30))
        assert appt.start_time == local(9)

    def test_blocked_range_conflict(self, db, book, lawyer):
        availability_service.create_blocked_range(db, lawyer.id, local(14), local(15), is_full_day=False)
        with pytest.raises(ConflictError) as exc_info:
            book(local(14, 30), local(15))
        assert exc_info.value.reason == ConflictReason.BLOCKED_RANGE

    def test_zero_length_block_does_not_conflict(self, db, book, lawyer):
        availability_service.create_blocked_range(
            db, lawyer.id, local(10, 15), local(10, 15), is_full_day=False
        )
        appt = book(local(10), local(10, 30))
        assert appt.start_time == local(10)

    def test_spanning_adjacent_windows(self, db, firm, lawyer, add_template):
        add_template(1, "09:00", "12:00")
        add_template(1, "12:00", "13:00")
        appt = appointment_service.create_appointment(
            db, firm.id, lawyer.id, local(11, 30), "Jane Client", "jane@example.com",
            end_time=local(12, 30),
        )
        assert appt.duration_minutes == 60

    def test_conflict_leaves_no_row(self, db, book):
        book(local(10), local(10, 30))
        with pytest.raises(ConflictError):
            book(local(10), local(10, 30))
        assert db.query(Appointment).count() == 1

    def test_end_from_appointment_type(self, db, book, firm):
        types = appointment_service.ensure_default_appointment_types(db, firm.id)
        review = next(t for t in types if t.name == "Case Review")
        appt = book(local(9), appointment_type_id=review.id)
        assert appt.end_time == local(10, 30)
        assert appt.duration_minutes == 90
        assert appt.appointment_type_id == review.id

    def test_lawyer_from_other_firm(self, db, firm_factory, lawyer, monday_hours):
        other_firm = firm_factory()
        with pytest.raises(NotFoundError):
            appointment_service.create_appointment(
                db, other_firm.id, lawyer.id, local(10), "Jane", "jane@example.com",
                end_time=local(10, 30),
            )

    def test_other_lawyer_not_blocked(self, db, firm, book, lawyer_factory, add_template):
        book(local(10), local(10, 30))
        other = lawyer_factory(firm)
        add_template(1, "09:00", "12:00", lawyer_id=other.id)
        appt = appointment_service.create_appointment(
            db, firm.id, other.id, local(10), "Jane", "jane@example.com", end_time=local(10, 30)
        )
        assert appt.lawyer_id == other.id


# =============================================================================
# Reschedule
# =============================================================================

class TestRescheduleAppointment:
    def test_reschedule_to_own_interval(self, db, firm, book):
        appt = book(local(10), local(10, 30))
        moved = appointment_service.reschedule_appointment(
            db, appt.id, firm.id, local(10), local(10, 30)
        )
        assert moved.id == appt.id
        assert moved.start_time == local(10)

    def test_reschedule_overlapping_itself(self, db, firm, book):
        appt = book(local(10), local(10, 30))
        moved = appointment_service.reschedule_appointment(db, appt.id, firm.id, local(10, 15))
        assert moved.start_time == local(10, 15)
        assert moved.end_time == local(10, 45)
        assert db.query(Appointment).count() == 1

    def test_reschedule_conflict_keeps_original(self, db, firm, book):
        first = book(local(10), local(10, 30))
        second = book(local(14), local(14, 30))
        with pytest.raises(ConflictError):
            appointment_service.reschedule_appointment(db, second.id, firm.id, local(10, 30))
        db.refresh(second)
        assert second.start_time == local(14)
        assert first.start_time == local(10)

    def test_reschedule_cancelled_rejected(self, db, firm, book):
        appt = book(local(10), local(10, 30))
        appointment_service.cancel_appointment(db, appt.id, firm.id)
        with pytest.raises(ValidationError, match="Cannot reschedule"):
            appointment_service.reschedule_appointment(db, appt.id, firm.id, local(14))

    def test_reschedule_unknown(self, db, firm):
        with pytest.raises(NotFoundError):
            appointment_service.reschedule_appointment(db, uuid4(), firm.id, local(10))


# =============================================================================
# Status changes
# =============================================================================

class TestStatusChanges:
    def test_new_row_defaults_to_scheduled(self, db, firm, lawyer):
        appt = Appointment(
            firm_id=firm.id, lawyer_id=lawyer.id, client_name="Jane", client_email="jane@example.com",
            start_time=local(10), end_time=local(10, 30), duration_minutes=30,
        )
        db.add(appt)
        db.flush()
        assert appt.status == AppointmentStatus.SCHEDULED.value
        db.rollback()

    def test_cancel(self, db, firm, lawyer, book):
        appt = book(local(10), local(10, 30))
        cancelled = appointment_service.cancel_appointment(
            db, appt.id, firm.id, reason="Client request", cancelled_by_id=lawyer.id
        )
        assert cancelled.status == AppointmentStatus.CANCELLED.value
        assert cancelled.cancelled_at is not None
        assert cancelled.cancellation_reason == "Client request"
        assert cancelled.cancelled_by_id == lawyer.id

    def test_cancel_is_idempotent(self, db, firm, book):
        appt = book(local(10), local(10, 30))
        first = appointment_service.cancel_appointment(db, appt.id, firm.id)
        cancelled_at = first.cancelled_at
        events = []
        booking_events.subscribe(events.append)
        again = appointment_service.cancel_appointment(db, appt.id, firm.id)
        assert again.status == AppointmentStatus.CANCELLED.value
        assert again.cancelled_at == cancelled_at
        assert events == []

    def test_complete_and_no_show(self, db, firm, book):
        appt = book(local(10), local(10, 30))
        assert appointment_service.complete_appointment(db, appt.id, firm.id).status == "completed"
        assert appointment_service.mark_no_show(db, appt.id, firm.id).status == "no_show"

    def test_status_change_on_cancelled_rejected(self, db, firm, book):
        appt = book(local(10), local(10, 30))
        appointment_service.cancel_appointment(db, appt.id, firm.id)
        with pytest.raises(ValidationError):
            appointment_service.complete_appointment(db, appt.id, firm.id)
        with pytest.raises(ValidationError):
            appointment_service.mark_no_show(db, appt.id, firm.id)

    def test_cancel_completed_rejected(self, db, firm, book):
        appt = book(local(10), local(10, 30))
        appointment_service.complete_appointment(db, appt.id, firm.id)
        with pytest.raises(ValidationError, match="Cannot cancel"):
            appointment_service.cancel_appointment(db, appt.id, firm.id)

    def test_get_appointment_scoped_to_firm(self, db, firm, firm_factory, book):
        appt = book(local(10), local(10, 30))
        assert appointment_service.get_appointment(db, appt.id, firm.id).id == appt.id
        with pytest.raises(NotFoundError):
            appointment_service.get_appointment(db, appt.id, firm_factory().id)


# =============================================================================
# Domain events
# =============================================================================

class TestBookingEvents:
    def test_events_for_lifecycle(self, db, firm, lawyer, book):
        events = []
        booking_events.subscribe(events.append)

        appt = book(local(10), local(10, 30))
        appointment_service.reschedule_appointment(db, appt.id, firm.id, local(11))
        appointment_service.cancel_appointment(db, appt.id, firm.id)

        assert [e.type for e in events] == [
            BookingEventType.CREATED,
            BookingEventType.RESCHEDULED,
            BookingEventType.CANCELLED,
        ]
        assert all(e.appointment_id == appt.id for e in events)
        assert events[0].lawyer_id == lawyer.id
        assert events[0].firm_id == firm.id
        assert events[1].interval.start == local(11)
        assert events[1].interval.end == local(11, 30)

    def test_no_event_on_conflict(self, book):
        book(local(10), local(10, 30))
        events = []
        booking_events.subscribe(events.append)
        with pytest.raises(ConflictError):
            book(local(10), local(10, 30))
        assert events == []

    def test_failing_subscriber_does_not_break_booking(self, db, book, caplog):
        received = []

        def broken(event):
            raise RuntimeError("mailer down")

        booking_events.subscribe(broken)
        booking_events.subscribe(received.append)

        appt = book(local(10), local(10, 30))
        assert db.get(Appointment, appt.id) is not None
        assert len(received) == 1
        assert "subscriber failed" in caplog.text

    def test_unsubscribe(self, book):
        events = []
        booking_events.subscribe(events.append)
        booking_events.unsubscribe(events.append)
        book(local(10), local(10, 30))
        assert events == []


# =============================================================================
# Storage failures
# =============================================================================

def test_storage_failure_leaves_no_row(db, book, monkeypatch):
    events = []
    booking_events.subscribe(events.append)

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", failing_commit)
    with pytest.raises(OperationalError):
        book(local(10), local(10, 30))
    monkeypatch.undo()

    assert db.query(Appointment).count() == 0
    assert events == []


# =============================================================================
# Concurrency
# =============================================================================

def test_concurrent_double_booking_single_winner(file_session_factory):
    setup = file_session_factory()
    firm = Firm(name="Race Firm", timezone="America/New_York", buffer_minutes=15)
    setup.add(firm)
    setup.flush()
    lawyer = User(
        firm_id=firm.id, name="Race Lawyer", email="race@test.com", role=Role.LAWYER.value
    )
    setup.add(lawyer)
    setup.flush()
    setup.add(AvailabilityTemplate(
        lawyer_id=lawyer.id, day_of_week=1, start_time=time(9), end_time=time(12)
    ))
    setup.commit()
    firm_id, lawyer_id = firm.id, lawyer.id
    setup.close()

    barrier = threading.Barrier(2)
    outcomes: list[object] = []
    outcomes_lock = threading.Lock()

    def attempt(client: str):
        session = file_session_factory()
        try:
            barrier.wait()
            appt = appointment_service.create_appointment(
                session, firm_id, lawyer_id, local(10), client, f"{client}@example.com",
                end_time=local(10, 30),
            )
            result: object = appt.id
        except ConflictError as exc:
            result = exc
        finally:
            session.close()
        with outcomes_lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt, args=(name,)) for name in ("alice", "bob")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    conflicts = [o for o in outcomes if isinstance(o, ConflictError)]
    assert len(outcomes) == 2
    assert len(conflicts) == 1
    assert conflicts[0].reason == ConflictReason.APPOINTMENT_OVERLAP

    check = file_session_factory()
    assert check.query(Appointment).count() == 1
    check.close()


# =============================================================================
# Appointment types, slots, listings
# =============================================================================

class TestAppointmentTypes:
    def test_defaults_seeded_once(self, db, firm):
        types = appointment_service.ensure_default_appointment_types(db, firm.id)
        assert [(t.name, t.duration_minutes) for t in types] == [
            ("Initial Consultation", 60),
            ("Follow-up", 30),
            ("Case Review", 90),
            ("Document Signing", 30),
            ("Court Preparation", 60),
        ]
        again = appointment_service.ensure_default_appointment_types(db, firm.id)
        assert len(again) == 5

    def test_type_scoped_to_firm(self, db, firm, firm_factory):
        types = appointment_service.ensure_default_appointment_types(db, firm.id)
        with pytest.raises(NotFoundError):
            appointment_service.get_appointment_type(db, types[0].id, firm_factory().id)

    def test_available_slots_use_type_duration(self, db, firm, lawyer, monday_hours):
        types = appointment_service.ensure_default_appointment_types(db, firm.id)
        consult = types[0]
        slots = appointment_service.get_available_slots(
            db, firm.id, lawyer.id, MONDAY, appointment_type_id=consult.id
        )
        assert [s.start for s in slots] == [
            local(9), local(10), local(11), local(14), local(15), local(16),
        ]

    def test_available_slots_default_duration(self, db, firm, lawyer, monday_hours):
        slots = appointment_service.get_available_slots(db, firm.id, lawyer.id, MONDAY)
        assert len(slots) == 12


class TestListings:
    def test_lawyer_appointments_skip_cancelled(self, db, firm, lawyer, book):
        kept = book(local(10), local(10, 30))
        dropped = book(local(14), local(14, 30))
        appointment_service.cancel_appointment(db, dropped.id, firm.id)

        listed = appointment_service.list_lawyer_appointments(db, lawyer.id, local(0), local(23))
        assert [a.id for a in listed] == [kept.id]

    def test_firm_appointments_by_status(self, db, firm, book):
        first = book(local(10), local(10, 30))
        second = book(local(14), local(14, 30))
        appointment_service.complete_appointment(db, first.id, firm.id)

        window = (local(0), local(23))
        assert [a.id for a in appointment_service.list_firm_appointments(db, firm.id, *window)] == [
            first.id, second.id,
        ]
        scheduled = appointment_service.list_firm_appointments(db, firm.id, *window, status="scheduled")
        assert [a.id for a in scheduled] == [second.id]
        with pytest.raises(ValidationError):
            appointment_service.list_firm_appointments(db, firm.id, *window, status="pending")

    def test_client_appointments(self, db, firm, lawyer_factory, book):
        client = lawyer_factory(firm, role=Role.CLIENT.value)
        mine = book(local(10), local(10, 30), client_id=client.id)
        book(local(14), local(14, 30))

        by_id = appointment_service.list_client_appointments(db, firm.id, client_id=client.id)
        assert [a.id for a in by_id] == [mine.id]
        by_email = appointment_service.list_client_appointments(
            db, firm.id, client_email="jane@example.com"
        )
        assert len(by_email) == 2
        with pytest.raises(ValidationError):
            appointment_service.list_client_appointments(db, firm.id)
