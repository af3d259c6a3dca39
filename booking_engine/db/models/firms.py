"""SQLAlchemy ORM models for firms and their users."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from booking_engine.db.base import Base
from booking_engine.db.enums import Role


class Firm(Base):
    """
    A law firm (tenant).

    Carries the booking policy the engine reads: the buffer kept around
    booked appointments and the IANA timezone wall-clock hours are
    interpreted in. Only an admin changes these, outside this engine.
    """
    __tablename__ = "firms"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    timezone: Mapped[str] = mapped_column(
        String(50), server_default=text("'UTC'"), default="UTC", nullable=False
    )
    buffer_minutes: Mapped[int] = mapped_column(
        Integer, server_default=text("15"), default=15, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    users: Mapped[list["User"]] = relationship(back_populates="firm")


class User(Base):
    """A firm user. Lawyers and admins own bookable calendars."""
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_firm_role", "firm_id", "role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    firm_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("firms.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default=Role.LAWYER.value, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    firm: Mapped["Firm"] = relationship(back_populates="users")
