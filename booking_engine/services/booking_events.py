"""Booking domain events (side-effect dispatch).

Notification and audit collaborators subscribe here. Events are published
only after the change is committed; a failing subscriber is logged and
skipped so it can never undo or block a booking.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from booking_engine.core.structured_logging import build_log_context
from booking_engine.db.enums import BookingEventType
from booking_engine.db.models import Appointment
from booking_engine.schemas.events import BookingEvent, IntervalPayload

logger = logging.getLogger(__name__)

Subscriber = Callable[[BookingEvent], None]

_subscribers: list[Subscriber] = []
_subscribers_lock = threading.Lock()


def subscribe(handler: Subscriber) -> None:
    """Register a handler for every booking event."""
    with _subscribers_lock:
        if handler not in _subscribers:
            _subscribers.append(handler)


def unsubscribe(handler: Subscriber) -> None:
    with _subscribers_lock:
        if handler in _subscribers:
            _subscribers.remove(handler)


def clear_subscribers() -> None:
    with _subscribers_lock:
        _subscribers.clear()


def publish(event: BookingEvent) -> None:
    """Deliver an event to every subscriber; subscriber errors are isolated."""
    with _subscribers_lock:
        handlers = list(_subscribers)
    for handler in handlers:
        try:
            handler(event)
        except Exception:
            logger.exception(
                "Booking event subscriber failed type=%s",
                event.type.value,
                extra=build_log_context(
                    lawyer_id=str(event.lawyer_id),
                    firm_id=str(event.firm_id),
                    appointment_id=str(event.appointment_id),
                ),
            )


def emit_for_appointment(appointment: Appointment, event_type: BookingEventType) -> BookingEvent:
    """Build and publish the event describing an appointment's current interval."""
    event = BookingEvent(
        type=event_type,
        appointment_id=appointment.id,
        lawyer_id=appointment.lawyer_id,
        firm_id=appointment.firm_id,
        interval=IntervalPayload(start=appointment.start_time, end=appointment.end_time),
    )
    publish(event)
    return event
