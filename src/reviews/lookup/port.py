"""Sibling-service lookup port.

Review submission asks two other services for a secondary opinion: does the
product exist, and does the order reference prove a purchase. Neither answer
is allowed to block a review when the other service is down, so every lookup
goes through ``with_fallback`` which turns timeouts and unreachable services
into an explicit ``LookupResult(default, reachable=False)``.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from dataclasses import dataclass

import structlog

from reviews.errors import LookupUnavailable

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LookupResult:
    """Answer of a sibling-service lookup."""

    value: bool
    reachable: bool = True


class ServiceLookups(ABC):
    """Abstract product and purchase lookups.

    Implementations raise ``LookupUnavailable`` when the other side cannot
    answer; callers wrap them in ``with_fallback``.
    """

    @abstractmethod
    async def product_exists(self, product_id: str, trace=None) -> bool: ...

    @abstractmethod
    async def validate_purchase(
        self, user_id: str, product_id: str, order_reference: str, trace=None
    ) -> bool: ...


async def with_fallback(call: Awaitable[bool], default: bool, timeout: float, lookup: str) -> LookupResult:
    """Await a lookup, falling back to ``default`` if it is unreachable or too slow."""
    try:
        async with asyncio.timeout(timeout):
            value = await call
    except TimeoutError:
        logger.warning("lookup_timed_out", lookup=lookup, timeout=timeout, fallback=default)
        return LookupResult(default, reachable=False)
    except LookupUnavailable as exc:
        logger.warning("lookup_unavailable", lookup=lookup, error=str(exc), fallback=default)
        return LookupResult(default, reachable=False)
    return LookupResult(bool(value))
