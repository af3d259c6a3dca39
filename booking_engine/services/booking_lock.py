"""Per-lawyer mutual exclusion for booking writes.

Every create/reschedule for the same lawyer runs its conflict re-check and
commit inside one scope, so two racing callers cannot both see "no
conflict" and both commit. Template and blocked-range writes use the same
scope for their overlap checks. Different lawyers use different keys and
never wait on each other.

Two layers:
- a process-local lock per lawyer (threads in this process)
- on PostgreSQL, a transaction-scoped advisory lock on the same key
  (other processes); released automatically on commit or rollback
"""

from __future__ import annotations

import threading
import weakref
from contextlib import contextmanager
from typing import Iterator
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

_registry_lock = threading.Lock()
# Entries live only while some caller holds the lock object
_lawyer_locks: weakref.WeakValueDictionary[UUID, threading.Lock] = weakref.WeakValueDictionary()


def _lock_for(lawyer_id: UUID) -> threading.Lock:
    with _registry_lock:
        lock = _lawyer_locks.get(lawyer_id)
        if lock is None:
            lock = threading.Lock()
            _lawyer_locks[lawyer_id] = lock
        return lock


def advisory_key(lawyer_id: UUID) -> int:
    """Signed 64-bit advisory lock key derived from the lawyer id."""
    return int.from_bytes(lawyer_id.bytes[:8], "big", signed=True)


@contextmanager
def lawyer_booking_scope(db: Session, lawyer_id: UUID) -> Iterator[None]:
    """
    Hold the lawyer's booking lock for the enclosed re-check and commit.

    The caller must commit or roll back before leaving the block.
    """
    lock = _lock_for(lawyer_id)
    with lock:
        if db.get_bind().dialect.name == "postgresql":
            db.execute(select(func.pg_advisory_xact_lock(advisory_key(lawyer_id))))
        yield
