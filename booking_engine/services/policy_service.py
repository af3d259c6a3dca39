"""Firm booking policy reader.

The engine never changes a firm's buffer or timezone; it only reads them
and hands the validated policy to the slot and conflict checks.
"""

from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from booking_engine.core.config import settings
from booking_engine.db.models import Firm
from booking_engine.schemas.policy import BookingPolicy
from booking_engine.services.errors import NotFoundError, ValidationError


def build_policy(buffer_minutes: int, timezone_name: str) -> BookingPolicy:
    """Validate raw policy values into a BookingPolicy."""
    try:
        return BookingPolicy(buffer_minutes=buffer_minutes, timezone=timezone_name)
    except PydanticValidationError as exc:
        message = exc.errors()[0].get("msg", "Invalid booking policy")
        raise ValidationError(message.removeprefix("Value error, ")) from exc


def get_booking_policy(db: Session, firm_id: UUID) -> BookingPolicy:
    """Read {buffer_minutes, timezone} for a firm."""
    firm = db.get(Firm, firm_id)
    if not firm:
        raise NotFoundError(f"Firm {firm_id} not found")
    buffer_minutes = firm.buffer_minutes
    if buffer_minutes is None:
        buffer_minutes = settings.DEFAULT_BUFFER_MINUTES
    timezone_name = firm.timezone
    if timezone_name is None:
        timezone_name = settings.DEFAULT_FIRM_TIMEZONE
    return build_policy(buffer_minutes, timezone_name)
