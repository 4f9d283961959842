"""Dapr sidecar messaging provider.

Talks to the local Dapr sidecar over its HTTP API:

- ``POST /v1.0/publish/{pubsub}/{topic}`` for pub/sub
- ``/v1.0/invoke/{app_id}/method/{method}`` for service invocation

The sidecar forwards to whatever broker its pub/sub component is bound to,
so the same build runs on Container Apps, Kubernetes or a local compose setup.
"""

import asyncio

import aiohttp
import structlog

from reviews.errors import LookupUnavailable, TransportUnavailable
from reviews.messaging.port import MessagingProvider

logger = structlog.get_logger(__name__)


class DaprProvider(MessagingProvider):
    """Publishes events through the Dapr sidecar."""

    name = "dapr"

    def __init__(self, host: str = "localhost", port: int = 3500, pubsub_name: str = "pubsub") -> None:
        self.host = host
        self.port = port
        self.pubsub_name = pubsub_name
        self.base_url = f"http://{host}:{port}"
        self._session: aiohttp.ClientSession | None = None
        self._lock = asyncio.Lock()

        logger.info("messaging_provider_initialized", provider=self.name, pubsub=pubsub_name, sidecar=self.base_url)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is not None and not self._session.closed:
            return self._session
        async with self._lock:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(base_url=self.base_url)
        return self._session

    async def publish(self, topic: str, envelope: dict, correlation_id: str | None = None) -> bool:
        if not topic:
            logger.error("event_publish_failed", provider=self.name, error="empty topic")
            return False

        try:
            session = await self._get_session()
            async with session.post(f"/v1.0/publish/{self.pubsub_name}/{topic}", json=envelope) as response:
                if response.status >= 300:
                    body = await response.text()
                    raise TransportUnavailable(f"sidecar answered {response.status}: {body}")
        except (TransportUnavailable, aiohttp.ClientError, asyncio.TimeoutError, TypeError, ValueError) as exc:
            logger.error(
                "event_publish_failed",
                provider=self.name,
                topic=topic,
                correlation_id=correlation_id,
                error=str(exc),
            )
            return False

        logger.info("event_published", provider=self.name, topic=topic, correlation_id=correlation_id)
        return True

    async def invoke(
        self,
        app_id: str,
        method: str,
        http_method: str = "GET",
        payload: dict | None = None,
        headers: dict | None = None,
        timeout: float = 3.0,
    ) -> tuple[int, dict]:
        """Call a sibling service through the sidecar.

        Returns ``(status, body)`` for any answer below 500. Unreachable
        sidecars, timeouts and server errors raise ``LookupUnavailable``.
        """
        session = await self._get_session()
        try:
            async with session.request(
                http_method,
                f"/v1.0/invoke/{app_id}/method/{method}",
                json=payload,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                if response.status >= 500:
                    raise LookupUnavailable(f"{app_id}/{method} answered {response.status}")
                body = await response.json(content_type=None) if response.content_length != 0 else None
                return response.status, body or {}
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise LookupUnavailable(f"{app_id}/{method}: {exc}") from exc

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
            logger.info("messaging_provider_closed", provider=self.name)
