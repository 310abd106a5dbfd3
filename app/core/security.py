import secrets

from .config import get_settings


def generate_otp_code(length: int | None = None) -> str:
    """Return a zero-padded numeric code drawn uniformly from the OS CSPRNG."""

    if length is None:
        length = get_settings().OTP_LENGTH
    if length < 1:
        raise ValueError("OTP length must be positive")
    return str(secrets.randbelow(10**length)).zfill(length)


def codes_match(supplied: str, expected: str) -> bool:
    return secrets.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))
