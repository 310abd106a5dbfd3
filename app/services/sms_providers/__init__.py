import logging

import httpx

from app.core.config import SMSGatewayConfig

from ..exceptions import ProviderConfigurationError
from .base import BaseSMSProvider, DeliveryResult, ProviderRequest
from .beem_provider import BeemSMSProvider
from .log_provider import LogSMSProvider
from .tigo_provider import TigoSMSProvider
from .twilio_provider import TwilioSMSProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[BaseSMSProvider]] = {
    BeemSMSProvider.name: BeemSMSProvider,
    TigoSMSProvider.name: TigoSMSProvider,
    TwilioSMSProvider.name: TwilioSMSProvider,
}


def provider_configuration_status(config: SMSGatewayConfig) -> dict[str, bool]:
    """Which gateways have their required credentials, in cascade order. No network calls."""

    return {
        name: PROVIDER_CLASSES[name].is_configured(config.for_provider(name))
        for name in config.order
        if name in PROVIDER_CLASSES
    }


def build_providers(config: SMSGatewayConfig, *, client: httpx.Client | None = None) -> list[BaseSMSProvider]:
    """Instantiate the configured gateways in priority order.

    Unconfigured gateways are skipped with a warning; an unknown name in the
    order is a configuration error.
    """

    if config.dry_run:
        return [LogSMSProvider()]

    unknown = [name for name in config.order if name not in PROVIDER_CLASSES]
    if unknown:
        raise ProviderConfigurationError(f"Unknown SMS providers in SMS_PROVIDER_ORDER: {', '.join(unknown)}")

    shared_client = client or httpx.Client()
    providers: list[BaseSMSProvider] = []
    for name in config.order:
        provider_cls = PROVIDER_CLASSES[name]
        credentials = config.for_provider(name)
        if not provider_cls.is_configured(credentials):
            logger.warning("SMS provider %s is not configured; skipping it", name)
            continue
        providers.append(provider_cls(credentials, client=shared_client))
    return providers


__all__ = [
    "BaseSMSProvider",
    "BeemSMSProvider",
    "DeliveryResult",
    "LogSMSProvider",
    "PROVIDER_CLASSES",
    "ProviderRequest",
    "TigoSMSProvider",
    "TwilioSMSProvider",
    "build_providers",
    "provider_configuration_status",
]
