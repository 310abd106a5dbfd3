from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from app.core.deadline import Deadline
from app.core.phone import mask_phone

from .exceptions import ProviderError
from .sms_providers import BaseSMSProvider

logger = logging.getLogger("app.sms")


@dataclass(slots=True)
class ProviderAttempt:
    provider: str
    delivered: bool
    error: Optional[str] = None
    elapsed: float = 0.0


@dataclass
class CascadeOutcome:
    delivered: bool
    provider: Optional[str] = None
    attempts: list[ProviderAttempt] = field(default_factory=list)
    cancelled: bool = False

    @property
    def errors(self) -> list[ProviderError]:
        return [
            ProviderError(attempt.provider, attempt.error or "not delivered")
            for attempt in self.attempts
            if not attempt.delivered
        ]

    def describe_errors(self) -> str:
        return "; ".join(str(error) for error in self.errors) or "no SMS providers configured"


class Cascade:
    """Tries SMS providers one at a time, in fixed priority order, until one accepts."""

    def __init__(self, providers: Sequence[BaseSMSProvider]):
        self._providers = tuple(providers)

    @property
    def provider_ids(self) -> list[str]:
        return [provider.name for provider in self._providers]

    def send(self, phone: str, message: str, *, deadline: Deadline | None = None) -> CascadeOutcome:
        deadline = deadline or Deadline.never()
        outcome = CascadeOutcome(delivered=False)

        for provider in self._providers:
            if deadline.expired():
                outcome.cancelled = True
                logger.warning(
                    "SMS cascade stopped before %s: deadline reached | phone=%s",
                    provider.name,
                    mask_phone(phone),
                )
                return outcome

            result = provider.send(phone=phone, message=message, timeout=deadline.cap(provider.timeout))
            outcome.attempts.append(
                ProviderAttempt(
                    provider=provider.name,
                    delivered=result.delivered,
                    error=result.error,
                    elapsed=result.elapsed,
                )
            )
            if result.delivered:
                outcome.delivered = True
                outcome.provider = provider.name
                logger.info(
                    "OTP SMS sent | phone=%s | provider=%s | status=%s | provider_message_id=%s",
                    mask_phone(phone),
                    provider.name,
                    result.provider_status,
                    result.provider_message_id,
                )
                return outcome

            logger.warning(
                "SMS provider %s failed, trying next | phone=%s | error=%s",
                provider.name,
                mask_phone(phone),
                result.error,
            )

        # The last call may have used up the budget.
        outcome.cancelled = deadline.expired()
        logger.error("All SMS providers failed | phone=%s | errors=%s", mask_phone(phone), outcome.describe_errors())
        return outcome

    def close(self) -> None:
        for provider in self._providers:
            provider.close()
