"""Review repository port (abstract interface).

Defines the contract every review store must implement. Handlers only talk to
this interface, so the MongoDB adapter (production) and the in-memory adapter
(development and tests) are interchangeable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from math import ceil

from reviews.review.review import Review, VoteChange


class SortField(Enum):
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    RATING = "rating"
    HELPFULNESS = "helpfulness"


@dataclass(frozen=True)
class ReviewFilter:
    """Selection, ordering and paging for review listings."""

    product_id: str | None = None
    user_id: str | None = None
    statuses: tuple[str, ...] = ()
    ratings: tuple[int, ...] = ()
    verified_only: bool = False
    with_media: bool = False
    search: str | None = None
    search_username: bool = False
    sort_by: SortField = SortField.CREATED_AT
    descending: bool = True
    page: int = 1
    limit: int = 20

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class Page:
    items: list[Review]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


@dataclass
class RatingSummary:
    """Rating aggregate over approved reviews only."""

    average_rating: float = 0.0
    total_reviews: int = 0
    verified_review_count: int = 0
    distribution: dict[int, int] = field(default_factory=lambda: {star: 0 for star in range(1, 6)})


def round_rating(value) -> float:
    """Round half up to one decimal (4.25 -> 4.3)."""
    if not value:
        return 0.0
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class ReviewRepository(ABC):
    """Abstract review store."""

    @abstractmethod
    async def get(self, review_id: str) -> Review:
        """Return the review or raise NotFoundError (REVIEW_NOT_FOUND)."""
        ...

    @abstractmethod
    async def find_by_product_and_user(self, product_id: str, user_id: str) -> Review | None: ...

    @abstractmethod
    async def count_for_product(self, product_id: str) -> int: ...

    @abstractmethod
    async def add(self, review: Review) -> Review:
        """Insert a new review. Raises DuplicateReviewError for a second (product, user) review."""
        ...

    @abstractmethod
    async def save(self, review: Review) -> Review:
        """Persist content, status, moderation and audit fields.

        Vote records and counters are left untouched; they only change
        through ``apply_vote``.
        """
        ...

    @abstractmethod
    async def apply_vote(self, review_id: str, change: VoteChange, voted_at: datetime) -> Review | None:
        """Atomically apply a vote change.

        The update only lands if the voter's stored vote still equals
        ``change.previous``; otherwise nothing is written and None is returned.
        """
        ...

    @abstractmethod
    async def delete(self, review_id: str) -> bool: ...

    @abstractmethod
    async def delete_many(self, review_ids: list[str]) -> int: ...

    @abstractmethod
    async def delete_for_product(self, product_id: str) -> int: ...

    @abstractmethod
    async def hide_for_product(self, product_id: str, now: datetime) -> int: ...

    @abstractmethod
    async def update_status_many(
        self,
        review_ids: list[str],
        status: str,
        moderator_id: str,
        reason: str | None,
        now: datetime,
    ) -> int:
        """Set the status of many reviews in one batch. Returns the affected count."""
        ...

    @abstractmethod
    async def search(self, criteria: ReviewFilter) -> Page: ...

    @abstractmethod
    async def rating_summary(self, product_id: str | None = None) -> RatingSummary:
        """Aggregate approved reviews (for one product, or across all products)."""
        ...

    @abstractmethod
    async def count_by_status(self) -> dict[str, int]: ...

    @abstractmethod
    async def count_created_between(self, start: datetime, end: datetime) -> int: ...

    async def create_indexes(self) -> None:
        """Create storage indexes. No-op for stores without indexes."""

    async def close(self) -> None:
        """Release storage connections."""
