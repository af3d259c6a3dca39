"""SQLAlchemy ORM models for appointments."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from booking_engine.db.base import Base
from booking_engine.db.enums import AppointmentStatus, DEFAULT_APPOINTMENT_STATUS

if TYPE_CHECKING:
    from booking_engine.db.models import Firm, User


class AppointmentType(Base):
    """
    Firm-level appointment type (e.g., "Initial Consultation").

    Supplies the default duration when booking or listing slots.
    """

    __tablename__ = "appointment_types"
    __table_args__ = (
        Index("idx_appointment_types_firm", "firm_id", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    firm_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("firms.id", ondelete="CASCADE"), nullable=False
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    color: Mapped[str] = mapped_column(String(7), default="#3B82F6", nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    firm: Mapped["Firm"] = relationship()


class Appointment(Base):
    """
    A booked appointment between a lawyer and a client.

    start_time/end_time are UTC instants. The client snapshot (name, email,
    phone) is copied at booking time so the record survives client edits.
    Never hard-deleted: cancellation is a status.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_lawyer_window", "lawyer_id", "start_time", "end_time"),
        Index("idx_appointments_firm_start", "firm_id", "start_time"),
        Index("idx_appointments_client", "client_id"),
        CheckConstraint("start_time < end_time", name="ck_appointment_time_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    firm_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("firms.id", ondelete="CASCADE"), nullable=False
    )
    lawyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    client_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    appointment_type_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("appointment_types.id", ondelete="SET NULL"), nullable=True
    )
    # Cases live in another service
    case_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    # Client snapshot
    client_name: Mapped[str] = mapped_column(String(200), nullable=False)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False)
    client_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Schedule
    start_time: Mapped[datetime] = mapped_column(nullable=False)
    end_time: Mapped[datetime] = mapped_column(nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_APPOINTMENT_STATUS.value, nullable=False
    )
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)  # Visible to client
    internal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)  # Staff only

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    firm: Mapped["Firm"] = relationship()
    lawyer: Mapped["User"] = relationship(foreign_keys=[lawyer_id])
    client: Mapped["User | None"] = relationship(foreign_keys=[client_id])
    appointment_type: Mapped["AppointmentType | None"] = relationship()

    @property
    def is_editable(self) -> bool:
        """Only scheduled appointments can be moved."""
        return self.status == AppointmentStatus.SCHEDULED.value

    @property
    def is_cancellable(self) -> bool:
        return self.status == AppointmentStatus.SCHEDULED.value
