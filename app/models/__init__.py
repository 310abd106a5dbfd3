from .base import Base
from .enums import OTPState
from .otp_record import OTPRecord, OTPRecordRow

__all__ = [
    "Base",
    "OTPRecord",
    "OTPRecordRow",
    "OTPState",
]
