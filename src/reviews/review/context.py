"""Collaborators every review use case works with.

Built once at application startup (or per test) and handed to the handlers
explicitly, so no handler reaches for module-level singletons.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from reviews.config import ReviewPolicy
from reviews.lookup.port import ServiceLookups
from reviews.persistence.port import ReviewRepository
from reviews.review.publisher import EventPublisher


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ReviewContext:
    repository: ReviewRepository
    publisher: EventPublisher
    lookups: ServiceLookups
    policy: ReviewPolicy = field(default_factory=ReviewPolicy)
    lookup_timeout: float = 3.0
    clock: Callable[[], datetime] = _utcnow

    def now(self) -> datetime:
        return self.clock()
