"""Messaging provider abstraction: pluggable event transport.

``MESSAGING_PROVIDER`` picks the transport:

- ``dapr`` (default): Dapr sidecar pub/sub
- ``rabbitmq``: direct RabbitMQ exchange
- ``servicebus``: Azure Service Bus topic
- ``fake``: in-memory recorder for development and tests

Adapter modules are imported lazily so only the selected SDK is loaded.
"""

import structlog

from reviews.config import Settings, get_settings
from reviews.errors import ConfigurationError
from reviews.messaging.port import MessagingProvider

logger = structlog.get_logger(__name__)

PROVIDERS = ("dapr", "rabbitmq", "servicebus", "fake")

_provider_instance: MessagingProvider | None = None


def create_provider(settings: Settings | None = None, **overrides) -> MessagingProvider:
    """Build a new provider from settings; keyword overrides replace setting values.

    Raises ConfigurationError for an unknown provider name or for missing
    mandatory connection parameters.
    """
    settings = settings or get_settings()
    if overrides:
        settings = settings.model_copy(update=overrides)

    kind = (settings.MESSAGING_PROVIDER or "").strip().lower()

    if kind == "dapr":
        from reviews.messaging.dapr_adapter import DaprProvider

        return DaprProvider(settings.DAPR_HOST, settings.DAPR_HTTP_PORT, settings.DAPR_PUBSUB_NAME)
    if kind == "rabbitmq":
        from reviews.messaging.rabbitmq_adapter import RabbitMQProvider

        return RabbitMQProvider(settings.RABBITMQ_URL, settings.RABBITMQ_EXCHANGE)
    if kind == "servicebus":
        from reviews.messaging.servicebus_adapter import ServiceBusProvider

        return ServiceBusProvider(settings.SERVICEBUS_CONNECTION_STRING, settings.SERVICEBUS_TOPIC_NAME)
    if kind == "fake":
        from reviews.messaging.fake_adapter import FakeProvider

        return FakeProvider()

    raise ConfigurationError(
        f"Unknown messaging provider: {settings.MESSAGING_PROVIDER!r}. Supported: {', '.join(PROVIDERS)}"
    )


def get_provider() -> MessagingProvider:
    """Return the process-wide provider, creating it on first access."""
    global _provider_instance
    if _provider_instance is None:
        _provider_instance = create_provider()
        logger.info("messaging_provider_selected", provider=_provider_instance.name)
    return _provider_instance


def set_provider(provider: MessagingProvider | None) -> None:
    """Override the shared provider (useful for tests)."""
    global _provider_instance
    _provider_instance = provider


async def close_provider() -> None:
    """Close and forget the shared provider. Safe to call when none exists."""
    global _provider_instance
    provider, _provider_instance = _provider_instance, None
    if provider is not None:
        await provider.close()
