from .health import HealthResponse, ProviderState, ProviderStatusResponse
from .otp import ErrorResponse, OTPSendRequest, OTPSendResponse, OTPVerifyRequest, OTPVerifyResponse

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "OTPSendRequest",
    "OTPSendResponse",
    "OTPVerifyRequest",
    "OTPVerifyResponse",
    "ProviderState",
    "ProviderStatusResponse",
]
