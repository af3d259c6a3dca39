"""SQLAlchemy ORM models for lawyer availability."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime, time

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from booking_engine.db.base import Base

if TYPE_CHECKING:
    from booking_engine.db.models import User


DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


class AvailabilityTemplate(Base):
    """
    Recurring weekly window (e.g., "Monday 09:00-12:00").

    Day of week: Sunday=0 ... Saturday=6.
    Times are wall-clock in the firm's timezone, no date attached.
    Soft-removed through deleted_at.
    """

    __tablename__ = "availability_templates"
    __table_args__ = (
        Index("idx_availability_templates_lawyer_day", "lawyer_id", "day_of_week", "is_active"),
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_template_day_of_week"),
        CheckConstraint("start_time < end_time", name="ck_template_time_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    lawyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    lawyer: Mapped["User"] = relationship()

    @property
    def day_name(self) -> str:
        if 0 <= self.day_of_week < len(DAY_NAMES):
            return DAY_NAMES[self.day_of_week]
        return ""


class BlockedRange(Base):
    """
    Absolute-time exclusion window (vacation, holiday).

    Overrides templates. Immutable in place: edits are delete + recreate.
    """

    __tablename__ = "blocked_ranges"
    __table_args__ = (
        Index("idx_blocked_ranges_lawyer_window", "lawyer_id", "start_at", "end_at"),
        CheckConstraint("start_at <= end_at", name="ck_blocked_range_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    lawyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    start_at: Mapped[datetime] = mapped_column(nullable=False)
    end_at: Mapped[datetime] = mapped_column(nullable=False)

    # "Vacation", "Holiday", "Personal", "Other"
    reason: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    is_full_day: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    lawyer: Mapped["User"] = relationship()
