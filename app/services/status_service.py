from datetime import datetime, timezone

from app.core.config import Settings, build_gateway_config, get_settings

from .sms_providers import provider_configuration_status


class StatusService:
    """Read-only view of the gateway configuration; never touches the network."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.gateway_config = build_gateway_config(self.settings)

    def providers_configured(self) -> list[str]:
        if self.gateway_config.dry_run:
            return ["log"]
        status = provider_configuration_status(self.gateway_config)
        return [name for name, configured in status.items() if configured]

    def health(self) -> dict:
        return {
            "status": "healthy",
            "timestamp": datetime.now(tz=timezone.utc),
            "version": self.settings.VERSION,
            "providersConfigured": self.providers_configured(),
        }

    def provider_status(self) -> dict:
        status = provider_configuration_status(self.gateway_config)
        return {
            "providers": {
                name: {"configured": configured, "status": "unknown"} for name, configured in status.items()
            },
            "dryRun": self.gateway_config.dry_run,
            "timestamp": datetime.now(tz=timezone.utc),
        }
