"""Messaging provider port (abstract interface).

Every transport (Dapr sidecar, RabbitMQ, Azure Service Bus) implements this
contract, so the event publisher never knows which broker is wired up.
"""

from abc import ABC, abstractmethod


class MessagingProvider(ABC):
    """Abstract event transport."""

    name: str = "abstract"

    @abstractmethod
    async def publish(self, topic: str, envelope: dict, correlation_id: str | None = None) -> bool:
        """Hand one fully built envelope to the transport.

        Returns True once the transport accepted the message. Connection,
        serialization and broker failures are logged and reported as False;
        they are never raised to the caller.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the transport connection. Safe to call more than once."""
        ...
