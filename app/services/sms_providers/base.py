from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from app.core.config import ProviderCredentials
from app.core.phone import mask_phone

from ..exceptions import ProviderConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass(slots=True)
class DeliveryResult:
    """Normalized response returned by SMS providers."""

    provider: str
    delivered: bool
    error: Optional[str] = None
    provider_status: Optional[str] = None
    provider_message_id: Optional[str] = None
    elapsed: float = 0.0
    meta: Optional[dict[str, Any]] = field(default=None, repr=False)


@dataclass(slots=True)
class ProviderRequest:
    """Everything needed to issue one gateway call."""

    url: str
    json: Optional[dict[str, Any]] = None
    data: Optional[dict[str, Any]] = None
    headers: dict[str, str] = field(default_factory=dict)
    auth: Optional[tuple[str, str]] = None


class BaseSMSProvider(ABC):
    """Interface all SMS providers must implement.

    Subclasses only describe the gateway: how the request looks and which
    response means "accepted". Transport failures, timeouts, error statuses
    and rejected bodies all come back as ``delivered=False``; ``send`` never
    raises for a delivery failure.
    """

    name: str
    required_fields: tuple[str, ...] = ()

    def __init__(self, credentials: ProviderCredentials, *, client: httpx.Client | None = None):
        missing = [field_name for field_name in self.required_fields if not getattr(credentials, field_name)]
        if missing:
            raise ProviderConfigurationError(
                f"{self.name} SMS provider is missing required configuration: {', '.join(missing)}"
            )
        self.credentials = credentials
        self.timeout = credentials.timeout or DEFAULT_TIMEOUT_SECONDS
        self._client = client or httpx.Client()

    @classmethod
    def is_configured(cls, credentials: ProviderCredentials) -> bool:
        return all(getattr(credentials, field_name) for field_name in cls.required_fields)

    @abstractmethod
    def build_request(self, *, phone: str, message: str) -> ProviderRequest:
        """Translate a recipient and text into the gateway's request shape."""

    @abstractmethod
    def is_delivered(self, body: dict[str, Any]) -> bool:
        """Gateway-specific success predicate over the decoded response body."""

    def extract_status(self, body: dict[str, Any]) -> Optional[str]:
        status = body.get("status")
        return str(status) if status is not None else None

    def extract_message_id(self, body: dict[str, Any]) -> Optional[str]:
        return None

    def send(self, *, phone: str, message: str, timeout: float | None = None) -> DeliveryResult:
        effective_timeout = self.timeout if timeout is None else min(timeout, self.timeout)
        request = self.build_request(phone=phone, message=message)
        started = time.monotonic()
        logger.debug("Sending %s SMS | phone=%s", self.name, mask_phone(phone))

        def _failed(error: str, status: Optional[str] = None) -> DeliveryResult:
            return DeliveryResult(
                provider=self.name,
                delivered=False,
                error=error,
                provider_status=status,
                elapsed=time.monotonic() - started,
            )

        try:
            response = self._client.post(
                request.url,
                json=request.json,
                data=request.data,
                headers=request.headers,
                auth=request.auth,
                timeout=effective_timeout,
            )
        except httpx.TimeoutException:
            logger.warning("%s SMS timed out after %.1fs | phone=%s", self.name, effective_timeout, mask_phone(phone))
            return _failed(f"timeout after {effective_timeout:.1f}s")
        except httpx.HTTPError as exc:
            logger.warning("%s SMS transport error | phone=%s | error=%s", self.name, mask_phone(phone), exc)
            return _failed(f"transport error: {exc}")

        if response.is_error:
            logger.warning(
                "%s SMS rejected | phone=%s | status=%s | body=%s",
                self.name,
                mask_phone(phone),
                response.status_code,
                response.text[:500],
            )
            return _failed(f"HTTP {response.status_code}", status=str(response.status_code))

        try:
            body = response.json()
        except ValueError:
            return _failed("response body is not JSON")
        if not isinstance(body, dict):
            return _failed("unexpected response body")

        status = self.extract_status(body)
        try:
            delivered = self.is_delivered(body)
        except (TypeError, ValueError) as exc:
            logger.warning("%s SMS response not understood | phone=%s | error=%s", self.name, mask_phone(phone), exc)
            return _failed("unexpected response body", status=status)
        if not delivered:
            logger.warning("%s SMS not accepted | phone=%s | body=%s", self.name, mask_phone(phone), body)
            return _failed("gateway did not accept the message", status=status)

        return DeliveryResult(
            provider=self.name,
            delivered=True,
            provider_status=status,
            provider_message_id=self.extract_message_id(body),
            elapsed=time.monotonic() - started,
            meta=body,
        )

    def close(self) -> None:
        self._client.close()
