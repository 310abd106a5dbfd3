from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE = BASE_DIR / ".env"

DEFAULT_OTP_TEMPLATE = (
    "Your MtaaSuite verification code is: {code}. Valid for 10 minutes. Do not share this code."
)


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    PROJECT_NAME: str = "MtaaSuite OTP Gateway"
    VERSION: str = "1.0.0"
    API_V1_PREFIX: str = "/api/v1"

    DATABASE_URL: str = Field(default="sqlite:///" + str(BASE_DIR / "otp.db"))
    REDIS_URL: Optional[str] = None
    OTP_STORE_BACKEND: str = Field(default="sql", pattern=r"^(sql|memory)$")

    OTP_LENGTH: int = Field(default=6, ge=4, le=8)
    OTP_EXPIRATION_MINUTES: int = Field(default=10, ge=1)
    OTP_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    OTP_SMS_TEMPLATE: str = DEFAULT_OTP_TEMPLATE
    OTP_REQUEST_DEADLINE_SECONDS: Optional[float] = Field(default=None, gt=0)
    OTP_LOCK_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)

    PHONE_CALLING_CODE: str = Field(default="255", pattern=r"^\d{1,3}$")
    PHONE_SUBSCRIBER_LENGTH: int = Field(default=9, ge=4, le=12)
    PHONE_MOBILE_PREFIXES: str = Field(default="6,7")

    SMS_DRY_RUN: bool = False
    SMS_PROVIDER_ORDER: str = Field(default="beem,tigo,twilio")
    SMS_PROVIDER_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)

    BEEM_API_URL: str = "https://apisms.beem.africa/v1/send"
    BEEM_API_KEY: Optional[str] = None
    BEEM_SECRET_KEY: Optional[str] = None
    BEEM_SENDER_NAME: str = "MtaaSuite"

    TIGO_API_URL: str = "https://messaging.tigo.co.tz/sms/sendsms"
    TIGO_API_TOKEN: Optional[str] = None
    TIGO_SENDER_ID: str = "MtaaSuite"

    TWILIO_API_BASE_URL: str = "https://api.twilio.com/2010-04-01"
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE_NUMBER: Optional[str] = None

    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE_PATH: Optional[str] = None
    ENVIRONMENT: str = Field(default="development")

    @field_validator("SMS_PROVIDER_ORDER", "PHONE_MOBILE_PREFIXES", mode="before")
    @classmethod
    def normalize_comma_separated(cls, v: str | list[str]) -> str:
        if isinstance(v, (list, tuple)):
            return ",".join(str(item) for item in v)
        # Handle quoted values copied from shell snippets
        return str(v).strip().strip('"\'')

    @property
    def provider_order(self) -> list[str]:
        return [item.strip().lower() for item in self.SMS_PROVIDER_ORDER.split(",") if item.strip()]

    @property
    def mobile_prefixes(self) -> list[str]:
        return [item.strip() for item in self.PHONE_MOBILE_PREFIXES.split(",") if item.strip()]


@dataclass(frozen=True)
class ProviderCredentials:
    """Static configuration of a single SMS gateway."""

    url: str
    sender: Optional[str] = None
    username: Optional[str] = None
    secret: Optional[str] = None
    timeout: float = 10.0


@dataclass(frozen=True)
class SMSGatewayConfig:
    """Immutable gateway configuration, built once at startup."""

    order: tuple[str, ...]
    dry_run: bool
    beem: ProviderCredentials
    tigo: ProviderCredentials
    twilio: ProviderCredentials

    def for_provider(self, name: str) -> ProviderCredentials:
        return getattr(self, name)


def build_gateway_config(settings: Settings) -> SMSGatewayConfig:
    timeout = settings.SMS_PROVIDER_TIMEOUT_SECONDS
    twilio_url = None
    if settings.TWILIO_ACCOUNT_SID:
        twilio_url = (
            f"{settings.TWILIO_API_BASE_URL.rstrip('/')}/Accounts/"
            f"{settings.TWILIO_ACCOUNT_SID}/Messages.json"
        )
    return SMSGatewayConfig(
        order=tuple(settings.provider_order),
        dry_run=settings.SMS_DRY_RUN,
        beem=ProviderCredentials(
            url=settings.BEEM_API_URL,
            sender=settings.BEEM_SENDER_NAME,
            username=settings.BEEM_API_KEY,
            secret=settings.BEEM_SECRET_KEY,
            timeout=timeout,
        ),
        tigo=ProviderCredentials(
            url=settings.TIGO_API_URL,
            sender=settings.TIGO_SENDER_ID,
            secret=settings.TIGO_API_TOKEN,
            timeout=timeout,
        ),
        twilio=ProviderCredentials(
            url=twilio_url or "",
            sender=settings.TWILIO_PHONE_NUMBER,
            username=settings.TWILIO_ACCOUNT_SID,
            secret=settings.TWILIO_AUTH_TOKEN,
            timeout=timeout,
        ),
    )


load_dotenv(ENV_FILE)


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()
