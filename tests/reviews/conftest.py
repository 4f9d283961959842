from datetime import UTC, datetime

import pytest
from protean.integrations.pytest import DomainFixture
from reviews.config import ReviewPolicy
from reviews.lookup.fake_adapter import FakeLookups
from reviews.messaging.fake_adapter import FakeProvider
from reviews.persistence.memory_adapter import MemoryReviewRepository
from reviews.review.access import Actor
from reviews.review.context import ReviewContext
from reviews.review.events import TraceContext
from reviews.review.publisher import EventPublisher
from reviews.review.submission import SubmitReview, SubmitReviewHandler

TRACE_ID = "4bf92f3577b34da6a3ce929d0e0e4736"
SPAN_ID = "00f067aa0ba902b7"


@pytest.fixture(scope="session")
def reviews_bed():
    from reviews.domain import reviews

    bed = DomainFixture(reviews)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(reviews_bed):
    with reviews_bed.domain_context():
        yield


class Clock:
    """Settable clock handed to the review context."""

    def __init__(self, now: datetime | None = None) -> None:
        self.current = now or datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, delta) -> None:
        self.current = self.current + delta


@pytest.fixture()
def clock():
    return Clock()


@pytest.fixture()
def repository():
    return MemoryReviewRepository()


@pytest.fixture()
def provider():
    return FakeProvider()


@pytest.fixture()
def lookups():
    return FakeLookups()


@pytest.fixture()
def context(repository, provider, lookups, clock):
    return ReviewContext(
        repository=repository,
        publisher=EventPublisher(provider, source="review-service"),
        lookups=lookups,
        policy=ReviewPolicy(),
        lookup_timeout=0.2,
        clock=clock,
    )


@pytest.fixture()
def trace():
    return TraceContext(trace_id=TRACE_ID, span_id=SPAN_ID, correlation_id="corr-123")


@pytest.fixture()
def customer():
    return Actor(user_id="cust-001", username="alice")


@pytest.fixture()
def voter():
    return Actor(user_id="cust-002", username="bob")


@pytest.fixture()
def admin():
    return Actor(user_id="admin-001", username="moderator", roles=("admin",))


@pytest.fixture()
def submit_review(context):
    """Submit a review through the real handler and return it."""

    async def _submit(actor=None, trace=None, **overrides):
        actor = actor or Actor(user_id="cust-001", username="alice")
        data = {
            "product_id": "prod-001",
            "rating": 4,
            "title": "Solid purchase",
            "comment": "Does what it says on the box.",
        }
        data.update(overrides)
        return await SubmitReviewHandler(context).submit_review(SubmitReview(**data), actor, trace)

    return _submit
