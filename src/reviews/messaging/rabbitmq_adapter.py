"""Direct RabbitMQ messaging provider (aio-pika).

Publishes JSON envelopes to a durable topic exchange, with the event topic as
routing key. Used for local development without a Dapr sidecar.
"""

import asyncio
import json

import aio_pika
import structlog

from reviews.errors import ConfigurationError
from reviews.messaging.port import MessagingProvider

logger = structlog.get_logger(__name__)


class RabbitMQProvider(MessagingProvider):
    """Publishes events straight to a RabbitMQ exchange."""

    name = "rabbitmq"

    def __init__(self, url: str, exchange: str = "xshopai.events") -> None:
        if not url:
            raise ConfigurationError("RABBITMQ_URL is required for RabbitMQProvider")
        if not exchange:
            raise ConfigurationError("RABBITMQ_EXCHANGE is required for RabbitMQProvider")

        self.url = url
        self.exchange_name = exchange
        self._connection: aio_pika.abc.AbstractRobustConnection | None = None
        self._exchange: aio_pika.abc.AbstractExchange | None = None
        self._connecting: asyncio.Task | None = None

        logger.info("messaging_provider_initialized", provider=self.name, exchange=exchange)

    async def _get_exchange(self) -> aio_pika.abc.AbstractExchange:
        """Connect once; concurrent callers share the in-flight attempt and its outcome."""
        if self._exchange is not None:
            return self._exchange
        if self._connecting is None:
            self._connecting = asyncio.ensure_future(self._connect())
        # A cancelled caller must not cancel the attempt the others are waiting on
        return await asyncio.shield(self._connecting)

    async def _connect(self) -> aio_pika.abc.AbstractExchange:
        try:
            self._connection = await aio_pika.connect_robust(self.url)
            channel = await self._connection.channel()
            self._exchange = await channel.declare_exchange(
                self.exchange_name, aio_pika.ExchangeType.TOPIC, durable=True
            )
        except Exception:
            await self._reset()
            raise
        finally:
            self._connecting = None

        logger.info("messaging_provider_connected", provider=self.name, exchange=self.exchange_name)
        return self._exchange

    async def publish(self, topic: str, envelope: dict, correlation_id: str | None = None) -> bool:
        if not topic:
            logger.error("event_publish_failed", provider=self.name, error="empty topic")
            return False

        try:
            exchange = await self._get_exchange()
            message = aio_pika.Message(
                body=json.dumps(envelope).encode("utf-8"),
                content_type="application/json",
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                correlation_id=correlation_id,
            )
            await exchange.publish(message, routing_key=topic)
        except Exception as exc:
            logger.error(
                "event_publish_failed",
                provider=self.name,
                topic=topic,
                exchange=self.exchange_name,
                correlation_id=correlation_id,
                error=str(exc),
            )
            return False

        logger.info(
            "event_published",
            provider=self.name,
            topic=topic,
            exchange=self.exchange_name,
            correlation_id=correlation_id,
        )
        return True

    async def _reset(self) -> None:
        connection, self._connection, self._exchange = self._connection, None, None
        if connection is not None and not connection.is_closed:
            await connection.close()

    async def close(self) -> None:
        if self._connection is None:
            return
        try:
            await self._reset()
        except Exception as exc:
            logger.error("messaging_provider_close_failed", provider=self.name, error=str(exc))
            return
        logger.info("messaging_provider_closed", provider=self.name)
