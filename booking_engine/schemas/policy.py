"""Firm booking policy - validated, read-only input to slot and conflict checks."""

from datetime import timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, field_validator

from booking_engine.core.config import settings


class BookingPolicy(BaseModel):
    """Buffer and timezone a firm applies to every lawyer's calendar."""
    model_config = ConfigDict(frozen=True)

    buffer_minutes: int
    timezone: str

    @field_validator("buffer_minutes")
    @classmethod
    def validate_buffer_minutes(cls, value: int) -> int:
        allowed = settings.allowed_buffer_minutes_list
        if value not in allowed:
            raise ValueError(
                f"Buffer must be one of {', '.join(str(v) for v in allowed)} minutes"
            )
        return value

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        value = value.strip()
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone '{value}'")
        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def buffer(self) -> timedelta:
        return timedelta(minutes=self.buffer_minutes)
