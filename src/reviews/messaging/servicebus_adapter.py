"""Azure Service Bus messaging provider.

For hosts without a Dapr sidecar (e.g. App Service). Every event goes to one
Service Bus topic; the event topic travels as the message subject and as the
``eventType`` application property so subscriptions can filter on it.
"""

import asyncio
import json

import structlog
from azure.servicebus import ServiceBusMessage
from azure.servicebus.aio import ServiceBusClient, ServiceBusSender

from reviews.errors import ConfigurationError
from reviews.messaging.port import MessagingProvider

logger = structlog.get_logger(__name__)


class ServiceBusProvider(MessagingProvider):
    """Publishes events to an Azure Service Bus topic."""

    name = "servicebus"

    def __init__(self, connection_string: str | None, topic_name: str | None) -> None:
        if not connection_string:
            raise ConfigurationError("SERVICEBUS_CONNECTION_STRING is required for ServiceBusProvider")
        if not topic_name:
            raise ConfigurationError("SERVICEBUS_TOPIC_NAME is required for ServiceBusProvider")

        self.connection_string = connection_string
        self.topic_name = topic_name
        self._client: ServiceBusClient | None = None
        self._sender: ServiceBusSender | None = None
        self._connecting: asyncio.Task | None = None

        logger.info("messaging_provider_initialized", provider=self.name, topic_name=topic_name)

    async def _get_sender(self) -> ServiceBusSender:
        """Create the sender once; concurrent callers share the in-flight attempt."""
        if self._sender is not None:
            return self._sender
        if self._connecting is None:
            self._connecting = asyncio.ensure_future(self._connect())
        return await asyncio.shield(self._connecting)

    async def _connect(self) -> ServiceBusSender:
        client = None
        try:
            client = ServiceBusClient.from_connection_string(self.connection_string)
            sender = client.get_topic_sender(topic_name=self.topic_name)
        except Exception:
            if client is not None:
                await client.close()
            raise
        finally:
            self._connecting = None

        self._client, self._sender = client, sender
        logger.info("messaging_provider_connected", provider=self.name, topic_name=self.topic_name)
        return sender

    async def publish(self, topic: str, envelope: dict, correlation_id: str | None = None) -> bool:
        if not topic:
            logger.error("event_publish_failed", provider=self.name, error="empty topic")
            return False

        try:
            sender = await self._get_sender()
            message = ServiceBusMessage(
                json.dumps(envelope),
                content_type="application/json",
                subject=topic,
                correlation_id=correlation_id,
                application_properties={"eventType": topic},
            )
            await sender.send_messages(message)
        except Exception as exc:
            logger.error(
                "event_publish_failed",
                provider=self.name,
                topic=topic,
                topic_name=self.topic_name,
                correlation_id=correlation_id,
                error=str(exc),
            )
            return False

        logger.info(
            "event_published",
            provider=self.name,
            topic=topic,
            topic_name=self.topic_name,
            correlation_id=correlation_id,
        )
        return True

    async def close(self) -> None:
        sender, client = self._sender, self._client
        self._sender = self._client = None
        if client is None:
            return
        try:
            if sender is not None:
                await sender.close()
            await client.close()
        except Exception as exc:
            logger.error("messaging_provider_close_failed", provider=self.name, error=str(exc))
            return
        logger.info("messaging_provider_closed", provider=self.name)
