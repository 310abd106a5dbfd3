from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base
from .enums import OTPState


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class OTPRecord:
    """Snapshot of the pending-or-resolved OTP for one recipient."""

    phone: str
    code: str
    provider_used: str
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    attempts: int = 0
    verified: bool = False
    verified_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at

    def state(self, now: datetime, max_attempts: int) -> OTPState:
        if self.is_expired(now):
            return OTPState.EXPIRED
        if self.verified:
            return OTPState.VERIFIED
        if self.attempts >= max_attempts:
            return OTPState.ATTEMPTS_EXHAUSTED
        return OTPState.PENDING

    def stamped(self, created_at: datetime, expires_at: datetime) -> OTPRecord:
        return replace(
            self,
            created_at=created_at,
            expires_at=expires_at,
            attempts=0,
            verified=False,
            verified_at=None,
        )


class OTPRecordRow(Base):
    __tablename__ = "otp_records"

    phone: Mapped[str] = mapped_column(String(20), primary_key=True)
    code: Mapped[str] = mapped_column(String(10))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    provider_used: Mapped[str] = mapped_column(String(32))

    def to_record(self) -> OTPRecord:
        return OTPRecord(
            phone=self.phone,
            code=self.code,
            provider_used=self.provider_used,
            created_at=_aware(self.created_at),
            expires_at=_aware(self.expires_at),
            attempts=self.attempts,
            verified=self.verified,
            verified_at=_aware(self.verified_at),
        )
