"""DB-backed lock so only one process runs the maintenance scheduler."""
from __future__ import annotations

import os
import socket
from contextlib import contextmanager
from datetime import timedelta
from typing import Iterator

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gigpay import db
from gigpay.models.scheduler_lock import SchedulerLock
from gigpay.utils.time import as_utc, utcnow

LOCK_NAME = "gigpay-maintenance"
LOCK_TTL_SECONDS = 300


def owner_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


@contextmanager
def _session_scope(db_session: Session | None) -> Iterator[Session]:
    """Yield a session inside a transaction, owning it only when none was given."""

    if db_session is not None:
        scope = db_session.begin_nested() if db_session.in_transaction() else db_session.begin()
        with scope:
            yield db_session
        return

    session = db.get_sessionmaker()()
    try:
        with session.begin():
            yield session
    finally:
        session.close()


def _locked_row(session: Session, name: str) -> SchedulerLock | None:
    stmt = select(SchedulerLock).where(SchedulerLock.name == name).with_for_update()
    return session.execute(stmt).scalar_one_or_none()


def try_acquire_scheduler_lock(
    name: str = LOCK_NAME,
    *,
    ttl_seconds: int = LOCK_TTL_SECONDS,
    db_session: Session | None = None,
) -> bool:
    """Take the lock when it is free, expired, or already ours."""

    owner = owner_id()
    now = utcnow()
    expires = now + timedelta(seconds=ttl_seconds)
    try:
        with _session_scope(db_session) as session:
            lock = _locked_row(session, name)
            if lock is None:
                session.add(SchedulerLock(name=name, owner=owner, acquired_at=now, expires_at=expires))
                session.flush()
                return True
            expired = lock.expires_at is None or as_utc(lock.expires_at) <= now
            if expired or lock.owner == owner:
                if lock.owner != owner:
                    lock.acquired_at = now
                lock.owner = owner
                lock.expires_at = expires
                return True
            return False
    except IntegrityError:
        return False


def refresh_scheduler_lock(
    name: str = LOCK_NAME, *, ttl_seconds: int = LOCK_TTL_SECONDS, db_session: Session | None = None
) -> None:
    """Extend the lock TTL while this process holds it."""

    with _session_scope(db_session) as session:
        lock = _locked_row(session, name)
        if lock is not None and lock.owner == owner_id():
            lock.expires_at = utcnow() + timedelta(seconds=ttl_seconds)


def release_scheduler_lock(name: str = LOCK_NAME, *, db_session: Session | None = None) -> None:
    with _session_scope(db_session) as session:
        lock = _locked_row(session, name)
        if lock is not None and lock.owner == owner_id():
            session.delete(lock)


def describe_scheduler_lock(name: str = LOCK_NAME, *, db_session: Session | None = None) -> dict[str, object]:
    """Summarise who holds the lock for the health endpoint."""

    session = db_session or db.get_sessionmaker()()
    try:
        lock = session.execute(select(SchedulerLock).where(SchedulerLock.name == name)).scalar_one_or_none()
        if lock is None:
            return {"status": "none", "owner": None, "present": False}
        now = utcnow()
        expires_in = (as_utc(lock.expires_at) - now).total_seconds() if lock.expires_at else None
        return {
            "status": "owned_by_self" if lock.owner == owner_id() else "owned_by_other",
            "owner": lock.owner,
            "present": True,
            "age_seconds": (now - as_utc(lock.acquired_at)).total_seconds(),
            "expires_in_seconds": expires_in,
            "stale": expires_in is not None and expires_in < 0,
        }
    finally:
        if db_session is None:
            session.close()


__all__ = [
    "LOCK_NAME",
    "LOCK_TTL_SECONDS",
    "owner_id",
    "try_acquire_scheduler_lock",
    "refresh_scheduler_lock",
    "release_scheduler_lock",
    "describe_scheduler_lock",
]
