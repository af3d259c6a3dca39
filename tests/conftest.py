"""
Test configuration and fixtures.

Provides:
- In-memory SQLite engine and session per test (schema via create_all)
- File-backed SQLite session factory for multi-threaded tests
- Firm, lawyer and policy fixtures
"""
import uuid
from datetime import time
from typing import Callable, Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from booking_engine.db.base import Base
from booking_engine.db.enums import Role
from booking_engine.db.models import AvailabilityTemplate, Firm, User
from booking_engine.schemas.policy import BookingPolicy
from booking_engine.services import booking_events


NEW_YORK = "America/New_York"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory database for each test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    """Session bound to the per-test engine; service code may commit freely."""
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture(scope="function")
def file_session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """
    Session factory over a SQLite file.

    Each thread opens its own session and connection, like separate requests.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'booking.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def clear_booking_subscribers():
    """Keep event subscribers from leaking between tests."""
    booking_events.clear_subscribers()
    yield
    booking_events.clear_subscribers()


# =============================================================================
# Firm / Lawyer Fixtures
# =============================================================================

def make_firm(db: Session, timezone: str = NEW_YORK, buffer_minutes: int = 30) -> Firm:
    firm = Firm(
        id=uuid.uuid4(),
        name=f"Test Firm {uuid.uuid4().hex[:8]}",
        timezone=timezone,
        buffer_minutes=buffer_minutes,
    )
    db.add(firm)
    db.commit()
    return firm


def make_lawyer(db: Session, firm: Firm, role: str = Role.LAWYER.value) -> User:
    user = User(
        id=uuid.uuid4(),
        firm_id=firm.id,
        name=f"Lawyer {uuid.uuid4().hex[:6]}",
        email=f"lawyer-{uuid.uuid4().hex[:8]}@test.com",
        role=role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def firm_factory(db: Session) -> Callable[..., Firm]:
    return lambda **kwargs: make_firm(db, **kwargs)


@pytest.fixture
def lawyer_factory(db: Session) -> Callable[..., User]:
    return lambda firm, **kwargs: make_lawyer(db, firm, **kwargs)


@pytest.fixture
def firm(db: Session) -> Firm:
    """Firm in New York time with a 30 minute buffer."""
    return make_firm(db)


@pytest.fixture
def lawyer(db: Session, firm: Firm) -> User:
    return make_lawyer(db, firm)


@pytest.fixture
def policy(firm: Firm) -> BookingPolicy:
    return BookingPolicy(buffer_minutes=firm.buffer_minutes, timezone=firm.timezone)


@pytest.fixture
def add_template(db: Session, lawyer: User) -> Callable[..., AvailabilityTemplate]:
    """Insert an active template directly, bypassing service validation."""

    def _add(day_of_week: int, start: str, end: str, lawyer_id: uuid.UUID | None = None):
        template = AvailabilityTemplate(
            id=uuid.uuid4(),
            lawyer_id=lawyer_id or lawyer.id,
            day_of_week=day_of_week,
            start_time=time.fromisoformat(start),
            end_time=time.fromisoformat(end),
            is_active=True,
        )
        db.add(template)
        db.commit()
        return template

    return _add
