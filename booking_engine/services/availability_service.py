"""Availability service - weekly templates and blocked ranges per lawyer.

Handles:
- Availability template CRUD (soft delete) and default seeding
- Blocked range CRUD (immutable in place; edits are delete + recreate)
- The read queries slot generation and conflict checks depend on

Writes run the conflict service's self-consistency checks before
committing, so active templates for a lawyer/day and blocked ranges for a
lawyer never overlap.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from booking_engine.core.structured_logging import build_log_context
from booking_engine.db.enums import BOOKABLE_ROLES
from booking_engine.db.models import AvailabilityTemplate, BlockedRange, User
from booking_engine.db.types import as_utc
from booking_engine.services.booking_lock import lawyer_booking_scope
from booking_engine.services.errors import NotFoundError, ValidationError
from booking_engine.services.interval import Interval
from booking_engine.utils.wall_clock import parse_wall_time, to_instant

logger = logging.getLogger(__name__)


# Firm-wide default working hours: Mon-Fri, 09:00-12:00 and 14:00-17:00
DEFAULT_TEMPLATE_WINDOWS: list[tuple[int, str, str]] = [
    (day, start, end)
    for day in range(1, 6)
    for start, end in (("09:00", "12:00"), ("14:00", "17:00"))
]


# =============================================================================
# Lawyers
# =============================================================================

def get_lawyer(
    db: Session,
    lawyer_id: UUID,
    firm_id: UUID | None = None,
) -> User:
    """Get a bookable user (lawyer or admin), optionally scoped to a firm."""
    query = select(User).where(User.id == lawyer_id, User.role.in_(BOOKABLE_ROLES))
    if firm_id:
        query = query.where(User.firm_id == firm_id)
    lawyer = db.execute(query).scalar_one_or_none()
    if not lawyer:
        raise NotFoundError(f"Lawyer {lawyer_id} not found")
    return lawyer


def list_lawyers_with_availability(db: Session, firm_id: UUID) -> list[User]:
    """Active lawyers of a firm with at least one active template."""
    has_template = (
        select(AvailabilityTemplate.lawyer_id)
        .where(
            AvailabilityTemplate.is_active.is_(True),
            AvailabilityTemplate.deleted_at.is_(None),
        )
        .distinct()
    )
    return list(
        db.execute(
            select(User)
            .where(
                User.firm_id == firm_id,
                User.role.in_(BOOKABLE_ROLES),
                User.is_active.is_(True),
                User.id.in_(has_template),
            )
            .order_by(User.name)
        ).scalars()
    )


# =============================================================================
# Availability Templates
# =============================================================================

def _parse_time(value: str | time, field: str) -> time:
    try:
        return parse_wall_time(value)
    except ValueError as exc:
        raise ValidationError(f"{field}: {exc}") from exc


def _validate_template_fields(day_of_week: int, start_time: time, end_time: time) -> None:
    if not isinstance(day_of_week, int) or not 0 <= day_of_week <= 6:
        raise ValidationError("Invalid day of week (0=Sunday ... 6=Saturday)")
    if start_time >= end_time:
        raise ValidationError("End time must be after start time")


def _live_templates(lawyer_id: UUID):
    return select(AvailabilityTemplate).where(
        AvailabilityTemplate.lawyer_id == lawyer_id,
        AvailabilityTemplate.deleted_at.is_(None),
    )


def list_templates(db: Session, lawyer_id: UUID) -> list[AvailabilityTemplate]:
    """All (non-deleted) templates for a lawyer, ordered by day then start."""
    return list(
        db.execute(
            _live_templates(lawyer_id).order_by(
                AvailabilityTemplate.day_of_week, AvailabilityTemplate.start_time
            )
        ).scalars()
    )


def active_templates_for(
    db: Session,
    lawyer_id: UUID,
    day_of_week: int,
) -> list[AvailabilityTemplate]:
    """Active templates for one weekday, ordered by start time."""
    return active_templates_for_days(db, lawyer_id, [day_of_week])


def active_templates_for_days(
    db: Session,
    lawyer_id: UUID,
    days_of_week: Iterable[int],
) -> list[AvailabilityTemplate]:
    """Active templates for several weekdays, ordered by day then start time."""
    days = sorted(set(days_of_week))
    if not days:
        return []
    return list(
        db.execute(
            _live_templates(lawyer_id)
            .where(
                AvailabilityTemplate.is_active.is_(True),
                AvailabilityTemplate.day_of_week.in_(days),
            )
            .order_by(AvailabilityTemplate.day_of_week, AvailabilityTemplate.start_time)
        ).scalars()
    )


def has_templates(db: Session, lawyer_id: UUID) -> bool:
    """Check if a lawyer has any templates configured."""
    return db.execute(_live_templates(lawyer_id).limit(1)).first() is not None


def get_template(
    db: Session,
    template_id: UUID,
    lawyer_id: UUID,
) -> AvailabilityTemplate:
    """Get a lawyer's template by ID."""
    template = db.execute(
        _live_templates(lawyer_id).where(AvailabilityTemplate.id == template_id)
    ).scalar_one_or_none()
    if not template:
        raise NotFoundError(f"Availability template {template_id} not found")
    return template


def create_template(
    db: Session,
    lawyer_id: UUID,
    day_of_week: int,
    start_time: str | time,
    end_time: str | time,
    is_active: bool = True,
) -> AvailabilityTemplate:
    """Create a weekly window; rejects overlap with an active sibling."""
    from booking_engine.services import conflict_service

    get_lawyer(db, lawyer_id)
    start = _parse_time(start_time, "start_time")
    end = _parse_time(end_time, "end_time")
    _validate_template_fields(day_of_week, start, end)

    with lawyer_booking_scope(db, lawyer_id):
        try:
            if is_active:
                conflict_service.check_template_overlap(db, lawyer_id, day_of_week, start, end)
            template = AvailabilityTemplate(
                lawyer_id=lawyer_id,
                day_of_week=day_of_week,
                start_time=start,
                end_time=end,
                is_active=is_active,
            )
            db.add(template)
            db.commit()
        except Exception:
            db.rollback()
            raise
    db.refresh(template)
    return template


def update_template(
    db: Session,
    template_id: UUID,
    lawyer_id: UUID,
    day_of_week: int | None = None,
    start_time: str | time | None = None,
    end_time: str | time | None = None,
    is_active: bool | None = None,
) -> AvailabilityTemplate:
    """Edit a template in place; the edited row is excluded from the overlap check."""
    from booking_engine.services import conflict_service

    template = get_template(db, template_id, lawyer_id)

    new_day = template.day_of_week if day_of_week is None else day_of_week
    new_start = template.start_time if start_time is None else _parse_time(start_time, "start_time")
    new_end = template.end_time if end_time is None else _parse_time(end_time, "end_time")
    new_active = template.is_active if is_active is None else is_active
    _validate_template_fields(new_day, new_start, new_end)

    with lawyer_booking_scope(db, lawyer_id):
        try:
            if new_active:
                conflict_service.check_template_overlap(
                    db, lawyer_id, new_day, new_start, new_end, exclude_template_id=template.id
                )
            template.day_of_week = new_day
            template.start_time = new_start
            template.end_time = new_end
            template.is_active = new_active
            db.commit()
        except Exception:
            db.rollback()
            raise
    db.refresh(template)
    return template


def delete_template(db: Session, template_id: UUID, lawyer_id: UUID) -> None:
    """Soft-remove a template."""
    template = get_template(db, template_id, lawyer_id)
    template.is_active = False
    template.deleted_at = datetime.now(timezone.utc)
    db.commit()


def seed_default_templates(db: Session, lawyer_id: UUID) -> list[AvailabilityTemplate]:
    """
    Seed the firm-wide default week for a newly activated lawyer.

    No-op when the lawyer already has templates.
    """
    get_lawyer(db, lawyer_id)
    with lawyer_booking_scope(db, lawyer_id):
        try:
            if has_templates(db, lawyer_id):
                # Ends the transaction so the advisory lock is released
                db.rollback()
                return []
            templates = [
                AvailabilityTemplate(
                    lawyer_id=lawyer_id,
                    day_of_week=day,
                    start_time=time.fromisoformat(start),
                    end_time=time.fromisoformat(end),
                    is_active=True,
                )
                for day, start, end in DEFAULT_TEMPLATE_WINDOWS
            ]
            db.add_all(templates)
            db.commit()
        except Exception:
            db.rollback()
            raise
    for template in templates:
        db.refresh(template)
    logger.info(
        "Seeded %d default availability templates",
        len(templates),
        extra=build_log_context(lawyer_id=str(lawyer_id)),
    )
    return templates


# =============================================================================
# Blocked Ranges
# =============================================================================

def blocked_ranges_overlapping(
    db: Session,
    lawyer_id: UUID,
    window: Interval,
) -> list[BlockedRange]:
    """Blocked ranges intersecting the window, ordered by start."""
    return list(
        db.execute(
            select(BlockedRange)
            .where(
                BlockedRange.lawyer_id == lawyer_id,
                BlockedRange.start_at < window.end,
                BlockedRange.end_at > window.start,
            )
            .order_by(BlockedRange.start_at)
        ).scalars()
    )


def list_upcoming_blocked_ranges(
    db: Session,
    lawyer_id: UUID,
    now: datetime | None = None,
) -> list[BlockedRange]:
    """Blocked ranges ending today (UTC) or later."""
    now = now or datetime.now(timezone.utc)
    today_start = datetime.combine(as_utc(now).date(), time.min, tzinfo=timezone.utc)
    return list(
        db.execute(
            select(BlockedRange)
            .where(BlockedRange.lawyer_id == lawyer_id, BlockedRange.end_at >= today_start)
            .order_by(BlockedRange.start_at)
        ).scalars()
    )


def get_blocked_range(db: Session, blocked_range_id: UUID, lawyer_id: UUID) -> BlockedRange:
    """Get a lawyer's blocked range by ID."""
    blocked = db.execute(
        select(BlockedRange).where(
            BlockedRange.id == blocked_range_id,
            BlockedRange.lawyer_id == lawyer_id,
        )
    ).scalar_one_or_none()
    if not blocked:
        raise NotFoundError(f"Blocked range {blocked_range_id} not found")
    return blocked


def create_blocked_range(
    db: Session,
    lawyer_id: UUID,
    start_at: datetime,
    end_at: datetime,
    reason: str = "",
    is_full_day: bool = True,
) -> BlockedRange:
    """Create an absolute exclusion window; rejects overlap with an existing one."""
    from booking_engine.services import conflict_service

    get_lawyer(db, lawyer_id)
    if start_at.tzinfo is None or end_at.tzinfo is None:
        raise ValidationError("Blocked range bounds must be timezone-aware")
    start_at, end_at = as_utc(start_at), as_utc(end_at)
    if start_at > end_at:
        raise ValidationError("End date must be after start date")

    with lawyer_booking_scope(db, lawyer_id):
        try:
            conflict_service.check_blocked_range_overlap(db, lawyer_id, start_at, end_at)
            blocked = BlockedRange(
                lawyer_id=lawyer_id,
                start_at=start_at,
                end_at=end_at,
                reason=(reason or "").strip(),
                is_full_day=is_full_day,
            )
            db.add(blocked)
            db.commit()
        except Exception:
            db.rollback()
            raise
    db.refresh(blocked)
    return blocked


def create_blocked_range_for_dates(
    db: Session,
    lawyer_id: UUID,
    start_date: date,
    end_date: date,
    timezone_name: str,
    reason: str = "",
) -> BlockedRange:
    """
    Block whole calendar days in the firm's timezone.

    start_at is local midnight of start_date; end_at is one second before
    local midnight after end_date.
    """
    if end_date < start_date:
        raise ValidationError("End date must be after start date")
    tz = ZoneInfo(timezone_name)
    start_at = to_instant(start_date, time.min, tz)
    end_at = to_instant(end_date + timedelta(days=1), time.min, tz) - timedelta(seconds=1)
    return create_blocked_range(
        db, lawyer_id, start_at, end_at, reason=reason, is_full_day=True
    )


def delete_blocked_range(db: Session, blocked_range_id: UUID, lawyer_id: UUID) -> None:
    """Remove a blocked range."""
    blocked = get_blocked_range(db, blocked_range_id, lawyer_id)
    db.delete(blocked)
    db.commit()
