"""Event publisher: turns review lifecycle changes into published envelopes.

Publishing is best effort. A review that is already persisted must never be
reported as failed because eventing is down, so every method returns a bool
and logs instead of raising.
"""

import structlog

from reviews.messaging.port import MessagingProvider
from reviews.review import events
from reviews.review.events import TraceContext
from reviews.review.review import Review

logger = structlog.get_logger(__name__)


class EventPublisher:
    """Builds review envelopes and hands them to the active messaging provider."""

    def __init__(self, provider: MessagingProvider | None, source: str, topic: str = "review-events") -> None:
        self.provider = provider
        self.source = source
        self.topic = topic

    async def publish_created(self, review: Review, trace: TraceContext | None = None) -> bool:
        return await self._publish(events.review_created(review, self.source, trace), review)

    async def publish_updated(
        self, review: Review, previous_rating: int, trace: TraceContext | None = None
    ) -> bool:
        envelope = events.review_updated(review, previous_rating, self.source, trace)
        return await self._publish(envelope, review, previous_rating=previous_rating)

    async def publish_deleted(
        self, review: Review, trace: TraceContext | None = None, deleted_by: str | None = None
    ) -> bool:
        envelope = events.review_deleted(review, self.source, trace, deleted_by=deleted_by)
        return await self._publish(envelope, review)

    async def publish_approved(self, review: Review, trace: TraceContext | None = None) -> bool:
        return await self._publish(events.review_approved(review, self.source, trace), review)

    async def _publish(self, envelope: dict, review: Review, **context) -> bool:
        event_type = envelope["type"]
        log = logger.bind(
            event_type=event_type,
            event_id=envelope["id"],
            review_id=str(review.id),
            product_id=str(review.product_id),
            **context,
        )

        if self.provider is None:
            log.warning("event_publish_skipped", reason="no messaging provider configured")
            return False

        correlation_id = envelope["metadata"]["correlationId"]
        try:
            published = await self.provider.publish(self.topic, envelope, correlation_id)
        except Exception:
            log.exception("event_publish_error", topic=self.topic)
            return False

        if published:
            log.info("review_event_published", topic=self.topic)
        else:
            log.warning("review_event_not_published", topic=self.topic)
        return published
