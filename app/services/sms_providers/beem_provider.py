from __future__ import annotations

from typing import Any, Optional

from app.core.phone import to_msisdn

from .base import BaseSMSProvider, ProviderRequest


class BeemSMSProvider(BaseSMSProvider):
    """Beem Africa, the primary Tanzanian gateway."""

    name = "beem"
    required_fields = ("url", "username", "secret")

    def build_request(self, *, phone: str, message: str) -> ProviderRequest:
        return ProviderRequest(
            url=self.credentials.url,
            json={
                "source_addr": self.credentials.sender or "MtaaSuite",
                "schedule_time": "",
                "encoding": 0,
                "message": message,
                "recipients": [{"recipient_id": 1, "dest_addr": to_msisdn(phone)}],
            },
            headers={"Content-Type": "application/json"},
            auth=(self.credentials.username, self.credentials.secret),
        )

    def is_delivered(self, body: dict[str, Any]) -> bool:
        successful = body.get("successful")
        # Beem reports either a boolean or a count of accepted recipients.
        if isinstance(successful, bool):
            return successful
        if isinstance(successful, (int, float)):
            return successful > 0
        return False

    def extract_status(self, body: dict[str, Any]) -> Optional[str]:
        code = body.get("code")
        return str(code) if code is not None else None

    def extract_message_id(self, body: dict[str, Any]) -> Optional[str]:
        request_id = body.get("request_id")
        return str(request_id) if request_id is not None else None
