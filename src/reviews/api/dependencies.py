"""FastAPI dependencies: acting user, trace context and the review context.

Authentication happens at the gateway, which forwards the verified identity
in ``X-User-*`` headers. Trace identifiers come from the W3C ``traceparent``
header when present.
"""

import hmac
import re

from fastapi import Request

from reviews.errors import UnauthorizedError
from reviews.review.access import Actor
from reviews.review.context import ReviewContext
from reviews.review.events import TraceContext

_TRACEPARENT = re.compile(r"^[0-9a-f]{2}-([0-9a-f]{32})-([0-9a-f]{16})-[0-9a-f]{2}$")
_TRACE_ID = re.compile(r"[0-9a-f]{32}")

_FALSE_VALUES = {"false", "0", "no", "off"}


def parse_traceparent(value: str | None) -> tuple[str | None, str | None]:
    match = _TRACEPARENT.match((value or "").strip().lower())
    return (match.group(1), match.group(2)) if match else (None, None)


def parse_trace_id(value: str | None) -> str | None:
    """A bare ``X-Trace-Id`` is only trusted when it is a W3C trace id."""
    value = (value or "").strip().lower()
    return value if _TRACE_ID.fullmatch(value) else None


def trace_from_headers(headers) -> TraceContext:
    trace_id, span_id = parse_traceparent(headers.get("traceparent"))
    return TraceContext(
        trace_id=trace_id or parse_trace_id(headers.get("x-trace-id")),
        span_id=span_id,
        correlation_id=headers.get("x-correlation-id"),
    )


def actor_from_headers(headers) -> Actor | None:
    user_id = (headers.get("x-user-id") or "").strip()
    if not user_id:
        return None
    roles = tuple(r.strip().lower() for r in (headers.get("x-user-roles") or "").split(",") if r.strip())
    return Actor(
        user_id=user_id,
        username=headers.get("x-username") or None,
        roles=roles,
        is_active=(headers.get("x-user-active") or "true").strip().lower() not in _FALSE_VALUES,
    )


def get_trace(request: Request) -> TraceContext:
    trace = getattr(request.state, "trace", None)
    return trace if trace is not None else trace_from_headers(request.headers)


def get_optional_actor(request: Request) -> Actor | None:
    return actor_from_headers(request.headers)


def get_actor(request: Request) -> Actor:
    actor = actor_from_headers(request.headers)
    if actor is None:
        raise UnauthorizedError("Authentication required")
    return actor


def require_internal_caller(request: Request) -> None:
    """Check the shared service key on ``/api/internal`` routes.

    Without a configured key the routes rely on staying cluster-internal.
    """
    expected = getattr(request.app.state, "internal_api_key", None)
    if not expected:
        return
    supplied = request.headers.get("x-internal-api-key") or ""
    if not hmac.compare_digest(supplied.encode(), expected.encode()):
        raise UnauthorizedError("Invalid internal API key")


def get_context(request: Request) -> ReviewContext:
    return request.app.state.review_context
