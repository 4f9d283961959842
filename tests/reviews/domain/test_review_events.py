"""Tests for review lifecycle event envelopes."""

import re
from datetime import UTC, datetime, timedelta

from reviews.review import events
from reviews.review.events import TraceContext
from reviews.review.review import Review, ReviewStatus

CREATED_AT = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
TRACE_ID = "4bf92f3577b34da6a3ce929d0e0e4736"
SPAN_ID = "00f067aa0ba902b7"


def _review(**overrides):
    defaults = {
        "product_id": "prod-evt",
        "user_id": "cust-evt",
        "username": "ivy",
        "rating": 5,
        "title": "Perfect",
        "comment": "Exactly as pictured.",
        "status": ReviewStatus.APPROVED.value,
        "is_verified_purchase": True,
        "order_reference": "ord-777",
        "now": CREATED_AT,
    }
    defaults.update(overrides)
    return Review.submit(**defaults)


class TestEventIds:
    def test_id_format(self):
        event_id = events.new_event_id("review.created", now_ms=1767225600000)
        assert re.fullmatch(r"review-created-1767225600000-[0-9a-z]{9}", event_id)

    def test_ids_are_unique(self):
        ids = {events.new_event_id("review.updated") for _ in range(50)}
        assert len(ids) == 50

    def test_isoformat_uses_z_suffix(self):
        assert events.isoformat(CREATED_AT) == "2026-03-01T12:00:00Z"


class TestTraceContext:
    def test_traceparent_with_span(self):
        trace = TraceContext(trace_id=TRACE_ID, span_id=SPAN_ID)
        assert trace.traceparent() == f"00-{TRACE_ID}-{SPAN_ID}-01"

    def test_span_generated_when_missing(self):
        traceparent = TraceContext(trace_id=TRACE_ID).traceparent()
        assert re.fullmatch(rf"00-{TRACE_ID}-[0-9a-f]{{16}}-01", traceparent)

    def test_no_trace_id_no_traceparent(self):
        assert TraceContext(span_id=SPAN_ID).traceparent() is None


class TestEnvelope:
    def test_cloudevents_attributes(self):
        envelope = events.review_created(_review(), "review-service")
        assert envelope["specversion"] == "1.0"
        assert envelope["type"] == events.REVIEW_CREATED
        assert envelope["source"] == "review-service"
        assert envelope["datacontenttype"] == "application/json"
        assert envelope["id"].startswith("review-created-")
        assert envelope["time"].endswith("Z")

    def test_traceparent_and_correlation(self):
        trace = TraceContext(trace_id=TRACE_ID, span_id=SPAN_ID, correlation_id="corr-1")
        envelope = events.review_created(_review(), "review-service", trace)
        assert envelope["traceparent"] == f"00-{TRACE_ID}-{SPAN_ID}-01"
        assert envelope["metadata"] == {"correlationId": "corr-1", "userId": "cust-evt"}

    def test_correlation_falls_back_to_trace_id(self):
        envelope = events.review_created(_review(), "review-service", TraceContext(trace_id=TRACE_ID))
        assert envelope["metadata"]["correlationId"] == TRACE_ID

    def test_correlation_falls_back_to_event_id(self):
        envelope = events.review_created(_review(), "review-service")
        assert "traceparent" not in envelope
        assert envelope["metadata"]["correlationId"] == envelope["id"]


class TestPayloads:
    def test_created_payload(self):
        review = _review()
        data = events.review_created(review, "review-service")["data"]
        assert data == {
            "reviewId": str(review.id),
            "productId": "prod-evt",
            "userId": "cust-evt",
            "rating": 5,
            "title": "Perfect",
            "comment": "Exactly as pictured.",
            "isVerifiedPurchase": True,
            "status": "approved",
            "username": "ivy",
            "orderReference": "ord-777",
            "helpfulCount": 0,
            "createdAt": "2026-03-01T12:00:00Z",
        }

    def test_missing_title_is_empty_string(self):
        data = events.review_created(_review(title=None), "review-service")["data"]
        assert data["title"] == ""

    def test_updated_carries_previous_rating(self):
        review = _review()
        previous = review.edit("cust-evt", rating=3, now=CREATED_AT + timedelta(days=1))
        data = events.review_updated(review, previous, "review-service")["data"]
        assert data["previousRating"] == 5
        assert data["rating"] == 3
        assert data["status"] == "pending"
        assert data["updatedAt"] == "2026-03-02T12:00:00Z"

    def test_created_then_updated_keep_identity(self):
        review = _review()
        created = events.review_created(review, "review-service")["data"]
        previous = review.edit("cust-evt", rating=2)
        updated = events.review_updated(review, previous, "review-service")["data"]
        for key in ("reviewId", "productId", "userId"):
            assert created[key] == updated[key]
        assert updated["previousRating"] == created["rating"]

    def test_deleted_payload(self):
        envelope = events.review_deleted(_review(), "review-service", deleted_by="cust-evt")
        assert envelope["type"] == events.REVIEW_DELETED
        assert envelope["data"]["deletedBy"] == "cust-evt"
        assert envelope["data"]["rating"] == 5
        assert envelope["data"]["isVerifiedPurchase"] is True
        assert envelope["data"]["deletedAt"].endswith("Z")

    def test_approved_payload(self):
        review = _review(status=ReviewStatus.PENDING.value)
        review.approve("mod-001", now=CREATED_AT + timedelta(hours=1))
        envelope = events.review_approved(review, "review-service")
        assert envelope["type"] == events.REVIEW_APPROVED
        assert envelope["data"]["moderatedBy"] == "mod-001"
        assert envelope["data"]["approvedAt"] == "2026-03-01T13:00:00Z"
        assert envelope["metadata"]["userId"] == "mod-001"
