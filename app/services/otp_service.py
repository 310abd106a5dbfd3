from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.core.config import Settings, build_gateway_config, get_settings
from app.core.deadline import Deadline
from app.core.phone import PhoneValidator, mask_phone
from app.core.security import codes_match, generate_otp_code
from app.models import OTPRecord, OTPState

from . import exceptions
from .cascade import Cascade, CascadeOutcome
from .otp_store import OTPStore, build_otp_store
from .sms_providers import build_providers

logger = logging.getLogger(__name__)

CODE_PLACEHOLDER = "{code}"
STALE_RECORD_RETRIES = 5


@dataclass(frozen=True)
class IssueOutcome:
    provider: Optional[str] = None
    timestamp: Optional[datetime] = None
    error: Optional[exceptions.ServiceError] = None
    cascade: Optional[CascadeOutcome] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class VerifyOutcome:
    timestamp: Optional[datetime] = None
    error: Optional[exceptions.ServiceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class OTPService:
    """Issues OTPs through the SMS cascade and verifies them against the store.

    Business outcomes (bad phone, wrong code, expiry...) are returned inside
    ``IssueOutcome``/``VerifyOutcome``; only configuration mistakes raise.
    """

    def __init__(
        self,
        *,
        store: OTPStore,
        cascade: Cascade,
        validator: PhoneValidator | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.cascade = cascade
        self.validator = validator or PhoneValidator()
        self.max_attempts = self.settings.OTP_MAX_ATTEMPTS

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> OTPService:
        settings = settings or get_settings()
        gateway_config = build_gateway_config(settings)
        return cls(
            store=build_otp_store(settings),
            cascade=Cascade(build_providers(gateway_config)),
            settings=settings,
        )

    def _new_deadline(self, deadline: Deadline | None) -> Deadline:
        if deadline is not None:
            return deadline
        return Deadline(self.settings.OTP_REQUEST_DEADLINE_SECONDS)

    def compose_message(self, code: str, custom_message: str | None = None) -> str:
        template = custom_message.strip() if custom_message and custom_message.strip() else None
        if template is None:
            return self.settings.OTP_SMS_TEMPLATE.replace(CODE_PLACEHOLDER, code)
        if CODE_PLACEHOLDER in template:
            return template.replace(CODE_PLACEHOLDER, code)
        return f"{template} {code}"

    def issue(
        self,
        phone: str | None,
        custom_message: str | None = None,
        *,
        deadline: Deadline | None = None,
    ) -> IssueOutcome:
        if not phone:
            return IssueOutcome(error=exceptions.ValidationError("Phone number is required"))
        if not self.validator.validate(phone):
            return IssueOutcome(
                error=exceptions.ValidationError(
                    f"Invalid phone number format. Use {self.validator.plan.example}"
                )
            )

        deadline = self._new_deadline(deadline)
        code = generate_otp_code(self.settings.OTP_LENGTH)
        message = self.compose_message(code, custom_message)
        logger.info("Attempting to send OTP | phone=%s", mask_phone(phone))

        outcome = self.cascade.send(phone, message, deadline=deadline)
        if not outcome.delivered:
            if outcome.cancelled:
                error: exceptions.ServiceError = exceptions.DeliveryDeadlineExceeded(errors=outcome.errors)
            else:
                error = exceptions.AllProvidersFailedError(errors=outcome.errors)
            return IssueOutcome(error=error, cascade=outcome)

        try:
            with self.store.transaction(phone, timeout=self.settings.OTP_LOCK_TIMEOUT_SECONDS):
                record = self.store.put(OTPRecord(phone=phone, code=code, provider_used=outcome.provider))
        except exceptions.StoreError as exc:
            logger.error("OTP delivered but could not be stored | phone=%s | error=%s", mask_phone(phone), exc)
            return IssueOutcome(error=exceptions.InternalError(f"OTP storage failed: {exc}"), cascade=outcome)

        return IssueOutcome(provider=outcome.provider, timestamp=record.created_at, cascade=outcome)

    def verify(self, phone: str | None, code: str | None, *, deadline: Deadline | None = None) -> VerifyOutcome:
        if not phone or not code:
            return VerifyOutcome(error=exceptions.ValidationError("Phone number and OTP are required"))

        deadline = self._new_deadline(deadline)
        lock_timeout = deadline.cap(self.settings.OTP_LOCK_TIMEOUT_SECONDS)
        try:
            with self.store.transaction(phone, timeout=lock_timeout):
                if deadline.expired():
                    return VerifyOutcome(error=exceptions.VerificationDeadlineExceeded())
                error = self._verify_locked(phone, code)
        except exceptions.StoreError as exc:
            if deadline.expired():
                return VerifyOutcome(error=exceptions.VerificationDeadlineExceeded())
            logger.error("OTP verification failed internally | phone=%s | error=%s", mask_phone(phone), exc)
            return VerifyOutcome(error=exceptions.InternalError(f"OTP verification failed: {exc}"))

        if error is not None:
            return VerifyOutcome(error=error)
        logger.info("OTP verified successfully | phone=%s", mask_phone(phone))
        return VerifyOutcome(timestamp=self.store.now())

    def _verify_locked(self, phone: str, code: str) -> exceptions.ServiceError | None:
        for _ in range(STALE_RECORD_RETRIES):
            try:
                return self._verify_record(phone, code)
            except exceptions.StaleRecordError:
                logger.info("OTP record changed during verification, re-reading | phone=%s", mask_phone(phone))
        raise exceptions.StoreError("OTP record kept changing during verification")

    def _verify_record(self, phone: str, code: str) -> exceptions.ServiceError | None:
        record = self.store.get(phone)
        if record is None:
            return exceptions.NotFoundError()

        state = record.state(self.store.now(), self.max_attempts)
        if state is OTPState.EXPIRED:
            self._discard(record)
            return exceptions.ExpiredError()
        if state is OTPState.VERIFIED:
            return exceptions.AlreadyVerifiedError()
        if state is OTPState.ATTEMPTS_EXHAUSTED:
            self._discard(record)
            logger.warning("OTP attempts exhausted | phone=%s", mask_phone(phone))
            return exceptions.AttemptsExhaustedError()

        if not codes_match(code, record.code):
            attempts = self.store.increment_attempts(phone, expected=record)
            logger.info("OTP mismatch | phone=%s | attempts=%s", mask_phone(phone), attempts)
            return exceptions.MismatchError()

        if not self.store.mark_verified(phone, expected=record):
            raise exceptions.StaleRecordError()
        return None

    def _discard(self, record: OTPRecord) -> None:
        if not self.store.delete(record.phone, expected=record):
            raise exceptions.StaleRecordError()
