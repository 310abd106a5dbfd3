from functools import lru_cache

from app.services import OTPService, StatusService


@lru_cache
def get_otp_service() -> OTPService:
    """Process-wide OTP service; built once so gateways and locks are shared."""

    return OTPService.from_settings()


def get_status_service() -> StatusService:
    return StatusService()
