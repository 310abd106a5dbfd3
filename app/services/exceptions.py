class ServiceError(Exception):
    """Base exception for service-level errors.

    ``code`` is the stable, transport-neutral error kind returned to clients;
    ``status_code`` is its HTTP rendering.
    """

    code = "internal"
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {"success": False, "code": self.code, "message": self.message}


class ValidationError(ServiceError):
    code = "invalid-argument"
    status_code = 400
    default_message = "Invalid request"


class ProviderConfigurationError(ServiceError):
    default_message = "SMS provider is not configured"


class ProviderError(ServiceError):
    """A single gateway failed; absorbed by the cascade, never surfaced alone."""

    def __init__(self, provider: str, detail: str):
        self.provider = provider
        self.detail = detail
        super().__init__(f"{provider}: {detail}")


class AllProvidersFailedError(ServiceError):
    status_code = 502
    default_message = "Failed to send SMS via all providers. Please try again later."

    def __init__(self, message: str | None = None, errors: list[ProviderError] | None = None):
        self.errors = list(errors or [])
        super().__init__(message)


class DeliveryDeadlineExceeded(AllProvidersFailedError):
    code = "deadline-exceeded"
    status_code = 504
    default_message = "SMS delivery did not complete in time. Please try again later."


class NotFoundError(ServiceError):
    code = "not-found"
    status_code = 404
    default_message = "OTP not found. Please request a new one."


class ExpiredError(ServiceError):
    code = "deadline-exceeded"
    status_code = 410
    default_message = "OTP has expired. Please request a new one."


class AlreadyVerifiedError(ServiceError):
    code = "already-exists"
    status_code = 409
    default_message = "OTP has already been used."


class AttemptsExhaustedError(ServiceError):
    code = "resource-exhausted"
    status_code = 429
    default_message = "Too many failed attempts. Please request a new OTP."


class MismatchError(ServiceError):
    code = "invalid-argument"
    status_code = 400
    default_message = "Invalid OTP. Please check and try again."


class VerificationDeadlineExceeded(ServiceError):
    code = "deadline-exceeded"
    status_code = 504
    default_message = "OTP verification did not complete in time. Please try again."


class StoreError(ServiceError):
    default_message = "OTP store unavailable"


class StaleRecordError(StoreError):
    """The record changed between read and write; the caller should re-read it."""

    default_message = "OTP record changed concurrently"


class InternalError(ServiceError):
    pass
