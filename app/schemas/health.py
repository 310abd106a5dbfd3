from datetime import datetime

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    providers_configured: list[str] = Field(alias="providersConfigured")


class ProviderState(BaseModel):
    configured: bool
    status: str = "unknown"


class ProviderStatusResponse(BaseModel):
    providers: dict[str, ProviderState]
    dry_run: bool = Field(alias="dryRun")
    timestamp: datetime
