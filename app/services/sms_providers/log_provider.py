from __future__ import annotations

import logging
import re

from app.core.config import ProviderCredentials
from app.core.phone import mask_phone

from .base import BaseSMSProvider, DeliveryResult, ProviderRequest

logger = logging.getLogger("app.sms")


def mask_digits(message: str) -> str:
    return re.sub(r"\d{4,}", lambda match: "*" * (len(match.group(0)) - 2) + match.group(0)[-2:], message or "")


class LogSMSProvider(BaseSMSProvider):
    """Dry-run provider: logs the masked SMS and reports it delivered."""

    name = "log"

    def __init__(self, credentials: ProviderCredentials | None = None):
        self.credentials = credentials or ProviderCredentials(url="")
        self.timeout = self.credentials.timeout

    def build_request(self, *, phone: str, message: str) -> ProviderRequest:
        return ProviderRequest(url="", json={"to": phone, "message": message})

    def is_delivered(self, body) -> bool:
        return True

    def send(self, *, phone: str, message: str, timeout: float | None = None) -> DeliveryResult:
        logger.info("DRY-RUN OTP SMS | phone=%s | message=\"%s\"", mask_phone(phone), mask_digits(message))
        return DeliveryResult(provider=self.name, delivered=True, provider_status="dry-run")

    def close(self) -> None:
        return None
