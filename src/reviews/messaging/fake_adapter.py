"""Configurable fake messaging provider for development and testing.

Records every envelope it is handed instead of talking to a broker. Can be
switched to fail (return False) or to blow up (raise) so callers' degrade
paths can be exercised.
"""

from reviews.messaging.port import MessagingProvider


class FakeProvider(MessagingProvider):
    """In-memory recorder of published events."""

    name = "fake"

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.raise_error: Exception | None = None
        self.published: list[dict] = []
        self.closed: bool = False

    def configure(self, should_succeed: bool = True, raise_error: Exception | None = None) -> None:
        """Configure provider behavior at runtime."""
        self.should_succeed = should_succeed
        self.raise_error = raise_error

    async def publish(self, topic: str, envelope: dict, correlation_id: str | None = None) -> bool:
        if self.raise_error is not None:
            raise self.raise_error
        if not self.should_succeed:
            return False
        self.published.append({"topic": topic, "envelope": envelope, "correlation_id": correlation_id})
        return True

    async def close(self) -> None:
        self.closed = True

    # Test helpers
    def events_of_type(self, event_type: str) -> list[dict]:
        return [p["envelope"] for p in self.published if p["envelope"]["type"] == event_type]

    def clear(self) -> None:
        self.published.clear()
