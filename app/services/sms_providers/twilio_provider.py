from __future__ import annotations

from typing import Any, Optional

from .base import BaseSMSProvider, ProviderRequest

ACCEPTED_STATUSES = frozenset({"queued", "sent"})


class TwilioSMSProvider(BaseSMSProvider):
    """Twilio Messages API, used when both local gateways fail."""

    name = "twilio"
    required_fields = ("url", "username", "secret", "sender")

    def build_request(self, *, phone: str, message: str) -> ProviderRequest:
        return ProviderRequest(
            url=self.credentials.url,
            data={"From": self.credentials.sender, "To": phone, "Body": message},
            auth=(self.credentials.username, self.credentials.secret),
        )

    def is_delivered(self, body: dict[str, Any]) -> bool:
        status = body.get("status")
        return isinstance(status, str) and status in ACCEPTED_STATUSES

    def extract_message_id(self, body: dict[str, Any]) -> Optional[str]:
        return body.get("sid")
