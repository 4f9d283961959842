"""Integration events for the Review aggregate.

Reviews announce lifecycle changes to the rest of the platform as
CloudEvents 1.0 envelopes on a single topic. Consumers (the product catalogue
recomputing rating aggregates, notifications) tell them apart by ``type``:

- ``review.created``: new review, with verification flag and status
- ``review.updated``: content edit, carries ``previousRating`` for delta updates
- ``review.deleted``: physical removal, carries rating and verification flag
  so the aggregate can be subtracted
- ``review.approved``: moderator approval, used for notifications

Envelopes are plain dicts ready for JSON serialization; every timestamp is an
ISO-8601 string.
"""

import secrets
import string
import time
from dataclasses import dataclass
from datetime import UTC, datetime

from reviews.review.review import Review

SPEC_VERSION = "1.0"
CONTENT_TYPE = "application/json"

REVIEW_CREATED = "review.created"
REVIEW_UPDATED = "review.updated"
REVIEW_DELETED = "review.deleted"
REVIEW_APPROVED = "review.approved"

_BASE36 = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class TraceContext:
    """W3C trace identifiers of the request that caused an event."""

    trace_id: str | None = None
    span_id: str | None = None
    correlation_id: str | None = None

    def traceparent(self) -> str | None:
        """``00-<trace>-<span>-01``; a span id is generated when missing."""
        if not self.trace_id:
            return None
        return f"00-{self.trace_id}-{self.span_id or new_span_id()}-01"


def new_span_id() -> str:
    return secrets.token_hex(8)


def new_event_id(event_type: str, now_ms: int | None = None) -> str:
    """``<type with dashes>-<epoch ms>-<9 base36 chars>``, unique enough for tracing."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{event_type.replace('.', '-')}-{now_ms}-{suffix}"


def isoformat(value: datetime | None) -> str:
    value = value or datetime.now(UTC)
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def build_envelope(
    event_type: str,
    data: dict,
    source: str,
    actor_id: str,
    trace: TraceContext | None = None,
) -> dict:
    trace = trace or TraceContext()
    event_id = new_event_id(event_type)

    envelope = {
        "specversion": SPEC_VERSION,
        "type": event_type,
        "source": source,
        "id": event_id,
        "time": isoformat(None),
        "datacontenttype": CONTENT_TYPE,
        "data": data,
        "metadata": {
            "correlationId": trace.correlation_id or trace.trace_id or event_id,
            "userId": actor_id,
        },
    }
    traceparent = trace.traceparent()
    if traceparent:
        envelope["traceparent"] = traceparent
    return envelope


def _review_data(review: Review) -> dict:
    return {
        "reviewId": str(review.id),
        "productId": str(review.product_id),
        "userId": str(review.user_id),
        "rating": review.rating,
        "title": review.title or "",
        "comment": review.comment or "",
        "isVerifiedPurchase": bool(review.is_verified_purchase),
        "status": review.status,
    }


def review_created(review: Review, source: str, trace: TraceContext | None = None) -> dict:
    data = {
        **_review_data(review),
        "username": review.username,
        "orderReference": review.order_reference,
        "helpfulCount": review.helpful_count or 0,
        "createdAt": isoformat(review.created_at),
    }
    return build_envelope(REVIEW_CREATED, data, source, str(review.user_id), trace)


def review_updated(
    review: Review, previous_rating: int, source: str, trace: TraceContext | None = None
) -> dict:
    data = {
        **_review_data(review),
        "username": review.username,
        "previousRating": previous_rating,
        "updatedAt": isoformat(review.updated_at),
    }
    return build_envelope(REVIEW_UPDATED, data, source, str(review.user_id), trace)


def review_deleted(
    review: Review,
    source: str,
    trace: TraceContext | None = None,
    deleted_by: str | None = None,
) -> dict:
    deleted_by = str(deleted_by or review.user_id)
    data = {
        **_review_data(review),
        "deletedAt": isoformat(None),
        "deletedBy": deleted_by,
    }
    return build_envelope(REVIEW_DELETED, data, source, deleted_by, trace)


def review_approved(review: Review, source: str, trace: TraceContext | None = None) -> dict:
    moderator = str(review.moderated_by) if review.moderated_by else None
    data = {
        **_review_data(review),
        "moderatedBy": moderator,
        "approvedAt": isoformat(review.moderated_at),
        "updatedAt": isoformat(review.updated_at),
    }
    return build_envelope(REVIEW_APPROVED, data, source, moderator or str(review.user_id), trace)
