from .cascade import Cascade, CascadeOutcome, ProviderAttempt
from .otp_service import IssueOutcome, OTPService, VerifyOutcome
from .otp_store import InMemoryOTPStore, OTPStore, SQLOTPStore, build_otp_store
from .status_service import StatusService

__all__ = [
    "Cascade",
    "CascadeOutcome",
    "InMemoryOTPStore",
    "IssueOutcome",
    "OTPService",
    "OTPStore",
    "ProviderAttempt",
    "SQLOTPStore",
    "StatusService",
    "VerifyOutcome",
    "build_otp_store",
]
