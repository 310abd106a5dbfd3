from __future__ import annotations

from typing import Any

from app.core.phone import to_msisdn

from .base import BaseSMSProvider, ProviderRequest


class TigoSMSProvider(BaseSMSProvider):
    """Tigo Tanzania messaging API, the secondary local gateway."""

    name = "tigo"
    required_fields = ("url", "secret")

    def build_request(self, *, phone: str, message: str) -> ProviderRequest:
        return ProviderRequest(
            url=self.credentials.url,
            json={
                "msisdn": to_msisdn(phone),
                "message": message,
                "sender_id": self.credentials.sender or "MtaaSuite",
            },
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.credentials.secret}",
            },
        )

    def is_delivered(self, body: dict[str, Any]) -> bool:
        return body.get("status") == "success"
