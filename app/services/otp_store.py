from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings, get_settings
from app.core.db import get_session_factory, session_scope
from app.core.locking import KeyedLock, LockTimeout
from app.core.phone import mask_phone
from app.core.redis_client import get_redis_client
from app.models import OTPRecord, OTPRecordRow

from . import exceptions

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class OTPStore(ABC):
    """Keyed storage for one OTP record per recipient phone.

    Every mutation on a key runs under that key's lock, and ``transaction``
    holds the same lock across a read-check-mutate sequence. The lock is
    process-local unless Redis is configured, so mutations also take the
    snapshot the caller read (``expected``) and only land if the stored
    record is still that snapshot. The store stamps ``created_at``/``expires_at``
    itself on ``put``.
    """

    def __init__(
        self,
        *,
        ttl: timedelta = timedelta(minutes=10),
        clock: Clock = utcnow,
        lock: KeyedLock | None = None,
    ):
        self.ttl = ttl
        self.clock = clock
        self._lock = lock or KeyedLock()
        self._clock_guard = threading.Lock()
        self._last_created_at: datetime | None = None

    def now(self) -> datetime:
        return self.clock()

    def _next_created_at(self) -> datetime:
        # Never hand out a creation time earlier than one already issued.
        with self._clock_guard:
            now = self.clock()
            if self._last_created_at is not None and now < self._last_created_at:
                now = self._last_created_at
            self._last_created_at = now
            return now

    @contextmanager
    def transaction(self, phone: str, *, timeout: float | None = None) -> Iterator[OTPStore]:
        try:
            with self._lock.hold(phone, timeout=timeout):
                yield self
        except LockTimeout as exc:
            raise exceptions.StoreError(f"OTP record busy for {mask_phone(phone)}") from exc

    @contextmanager
    def _key_guard(self, phone: str) -> Iterator[None]:
        try:
            with self._lock.hold_local(phone):
                yield
        except LockTimeout as exc:
            raise exceptions.StoreError(f"OTP record busy for {mask_phone(phone)}") from exc

    def put(self, record: OTPRecord) -> OTPRecord:
        with self._key_guard(record.phone):
            created_at = self._next_created_at()
            stored = record.stamped(created_at=created_at, expires_at=created_at + self.ttl)
            self._put(stored)
        logger.debug("OTP record stored | phone=%s | provider=%s", mask_phone(record.phone), record.provider_used)
        return stored

    def get(self, phone: str) -> Optional[OTPRecord]:
        with self._key_guard(phone):
            return self._get(phone)

    def increment_attempts(self, phone: str, *, expected: OTPRecord | None = None) -> int:
        """Add one failed attempt and return the new count.

        With ``expected`` the write only lands if the stored record is still
        that snapshot; otherwise ``StaleRecordError`` is raised.
        """

        with self._key_guard(phone):
            attempts = self._increment_attempts(phone, expected)
        if attempts is None:
            if expected is not None:
                raise exceptions.StaleRecordError()
            raise exceptions.NotFoundError()
        return attempts

    def mark_verified(self, phone: str, *, expected: OTPRecord | None = None) -> bool:
        """Flip ``verified`` to true; returns False when absent, already verified or no longer ``expected``."""

        with self._key_guard(phone):
            return self._mark_verified(phone, self.clock(), expected)

    def delete(self, phone: str, *, expected: OTPRecord | None = None) -> bool:
        with self._key_guard(phone):
            return self._delete(phone, expected)

    @abstractmethod
    def _put(self, record: OTPRecord) -> None: ...

    @abstractmethod
    def _get(self, phone: str) -> Optional[OTPRecord]: ...

    @abstractmethod
    def _increment_attempts(self, phone: str, expected: Optional[OTPRecord]) -> Optional[int]: ...

    @abstractmethod
    def _mark_verified(self, phone: str, now: datetime, expected: Optional[OTPRecord]) -> bool: ...

    @abstractmethod
    def _delete(self, phone: str, expected: Optional[OTPRecord]) -> bool: ...


class InMemoryOTPStore(OTPStore):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._data: dict[str, OTPRecord] = {}

    def __len__(self) -> int:
        return len(self._data)

    def _put(self, record: OTPRecord) -> None:
        self._data[record.phone] = record

    def _get(self, phone: str) -> Optional[OTPRecord]:
        return self._data.get(phone)

    def _current(self, phone: str, expected: Optional[OTPRecord]) -> Optional[OTPRecord]:
        record = self._data.get(phone)
        if record is None or (expected is not None and record != expected):
            return None
        return record

    def _increment_attempts(self, phone: str, expected: Optional[OTPRecord]) -> Optional[int]:
        record = self._current(phone, expected)
        if record is None:
            return None
        updated = replace(record, attempts=record.attempts + 1)
        self._data[phone] = updated
        return updated.attempts

    def _mark_verified(self, phone: str, now: datetime, expected: Optional[OTPRecord]) -> bool:
        record = self._current(phone, expected)
        if record is None or record.verified:
            return False
        self._data[phone] = replace(record, verified=True, verified_at=now)
        return True

    def _delete(self, phone: str, expected: Optional[OTPRecord]) -> bool:
        if self._current(phone, expected) is None:
            return False
        del self._data[phone]
        return True


class SQLOTPStore(OTPStore):
    """OTP store on the ``otp_records`` table; each mutation is one SQL statement."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None, **kwargs):
        super().__init__(**kwargs)
        self._session_factory = session_factory or get_session_factory()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with session_scope(self._session_factory) as session:
                yield session
        except SQLAlchemyError as exc:
            logger.exception("OTP store query failed")
            raise exceptions.StoreError() from exc

    def _put(self, record: OTPRecord) -> None:
        with self._session() as session:
            session.execute(delete(OTPRecordRow).where(OTPRecordRow.phone == record.phone))
            session.add(
                OTPRecordRow(
                    phone=record.phone,
                    code=record.code,
                    created_at=record.created_at,
                    expires_at=record.expires_at,
                    attempts=record.attempts,
                    verified=record.verified,
                    verified_at=record.verified_at,
                    provider_used=record.provider_used,
                )
            )

    def _get(self, phone: str) -> Optional[OTPRecord]:
        with self._session() as session:
            row = session.get(OTPRecordRow, phone)
            return row.to_record() if row is not None else None

    @staticmethod
    def _matching(phone: str, expected: Optional[OTPRecord]) -> list:
        # Compare-and-set guard: the row must still be the snapshot the caller read.
        clauses = [OTPRecordRow.phone == phone]
        if expected is not None:
            clauses += [
                OTPRecordRow.created_at == expected.created_at,
                OTPRecordRow.code == expected.code,
                OTPRecordRow.attempts == expected.attempts,
                OTPRecordRow.verified.is_(expected.verified),
            ]
        return clauses

    def _increment_attempts(self, phone: str, expected: Optional[OTPRecord]) -> Optional[int]:
        with self._session() as session:
            result = session.execute(
                update(OTPRecordRow)
                .where(*self._matching(phone, expected))
                .values(attempts=OTPRecordRow.attempts + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
            return session.scalar(select(OTPRecordRow.attempts).where(OTPRecordRow.phone == phone))

    def _mark_verified(self, phone: str, now: datetime, expected: Optional[OTPRecord]) -> bool:
        with self._session() as session:
            result = session.execute(
                update(OTPRecordRow)
                .where(*self._matching(phone, expected), OTPRecordRow.verified.is_(False))
                .values(verified=True, verified_at=now)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def _delete(self, phone: str, expected: Optional[OTPRecord]) -> bool:
        with self._session() as session:
            result = session.execute(
                delete(OTPRecordRow)
                .where(*self._matching(phone, expected))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0


def build_otp_store(settings: Settings | None = None, *, clock: Clock = utcnow) -> OTPStore:
    settings = settings or get_settings()
    lock = KeyedLock(
        namespace="otp",
        redis_client=get_redis_client(),
        wait_timeout=settings.OTP_LOCK_TIMEOUT_SECONDS,
    )
    ttl = timedelta(minutes=settings.OTP_EXPIRATION_MINUTES)
    if settings.OTP_STORE_BACKEND == "memory":
        return InMemoryOTPStore(ttl=ttl, clock=clock, lock=lock)
    return SQLOTPStore(ttl=ttl, clock=clock, lock=lock)
