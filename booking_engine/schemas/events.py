"""Booking domain event payloads."""

from datetime import datetime, timezone
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from booking_engine.db.enums import BookingEventType


class IntervalPayload(BaseModel):
    """UTC [start, end) of the appointment after the change."""
    start: datetime
    end: datetime


class BookingEvent(BaseModel):
    """Emitted after a committed create/reschedule/cancel/status change."""
    model_config = ConfigDict(frozen=True)

    type: BookingEventType
    appointment_id: UUID
    lawyer_id: UUID
    firm_id: UUID
    interval: IntervalPayload
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
