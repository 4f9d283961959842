"""Read side: review listings, single-review lookups and statistics.

Listings return reviews enriched with derived values (helpful score, vote
total, age) and, when the requester is known, their own vote and whether
the review is theirs. The product listing also carries the rating summary,
which always covers every approved review of the product regardless of the
filters applied to the page.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from reviews.persistence.port import Page, RatingSummary, ReviewFilter, SortField, round_rating
from reviews.review.access import Actor, ensure_can_moderate
from reviews.review.context import ReviewContext
from reviews.review.review import Review, ReviewStatus

GROWTH_WINDOW = timedelta(days=30)

# Sort keywords accepted for "my reviews"
USER_SORTS = {
    "newest": (SortField.CREATED_AT, True),
    "oldest": (SortField.CREATED_AT, False),
    "rating": (SortField.RATING, True),
}


@dataclass
class EnrichedReview:
    review: Review
    helpful_score: int
    total_votes: int
    age_in_days: int
    user_vote: str | None = None
    is_own_review: bool | None = None


@dataclass
class ReviewListing:
    items: list[EnrichedReview]
    total: int
    page: int
    limit: int
    pages: int
    has_next: bool
    has_prev: bool
    summary: RatingSummary | None = None


@dataclass
class ReviewStats:
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    hidden: int = 0
    average_rating: float = 0.0
    growth: float = 0.0
    by_status: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ProductReviewsQuery:
    product_id: str
    statuses: tuple[str, ...] = (ReviewStatus.APPROVED.value,)
    ratings: tuple[int, ...] = ()
    verified_only: bool = False
    with_media: bool = False
    search: str | None = None
    sort_by: SortField = SortField.CREATED_AT
    descending: bool = True
    page: int = 1
    limit: int = 20


@dataclass(frozen=True)
class AdminReviewsQuery:
    statuses: tuple[str, ...] = ()
    ratings: tuple[int, ...] = ()
    search: str | None = None
    sort_by: SortField = SortField.CREATED_AT
    descending: bool = True
    page: int = 1
    limit: int = 20


def enrich(review: Review, requester_id: str | None = None, now: datetime | None = None) -> EnrichedReview:
    enriched = EnrichedReview(
        review=review,
        helpful_score=review.helpful_score,
        total_votes=review.total_votes,
        age_in_days=review.age_in_days(now),
    )
    if requester_id:
        vote = review.current_vote(requester_id)
        enriched.user_vote = vote.value if vote else None
        enriched.is_own_review = str(review.user_id) == str(requester_id)
    return enriched


def growth_percentage(recent: int, previous: int) -> float:
    """Change of the last window over the one before, in percent (one decimal)."""
    if previous > 0:
        return round_rating((recent - previous) / previous * 100)
    return 100.0 if recent > 0 else 0.0


class ReviewQueries:
    def __init__(self, context: ReviewContext) -> None:
        self.context = context

    def _listing(self, page: Page, requester_id: str | None, summary: RatingSummary | None = None):
        now = self.context.now()
        return ReviewListing(
            items=[enrich(r, requester_id, now) for r in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
            pages=page.pages,
            has_next=page.has_next,
            has_prev=page.has_prev,
            summary=summary,
        )

    async def product_reviews(self, query: ProductReviewsQuery, requester_id: str | None = None) -> ReviewListing:
        repo = self.context.repository
        criteria = ReviewFilter(
            product_id=str(query.product_id),
            statuses=query.statuses,
            ratings=query.ratings,
            verified_only=query.verified_only,
            with_media=query.with_media,
            search=query.search,
            sort_by=query.sort_by,
            descending=query.descending,
            page=query.page,
            limit=query.limit,
        )
        page = await repo.search(criteria)
        summary = await repo.rating_summary(str(query.product_id))
        return self._listing(page, requester_id, summary)

    async def user_reviews(
        self,
        actor: Actor,
        statuses: tuple[str, ...] = (),
        sort: str = "newest",
        page: int = 1,
        limit: int = 10,
    ) -> ReviewListing:
        sort_by, descending = USER_SORTS.get(sort, USER_SORTS["newest"])
        criteria = ReviewFilter(
            user_id=actor.user_id,
            statuses=tuple(statuses),
            sort_by=sort_by,
            descending=descending,
            page=page,
            limit=limit,
        )
        return self._listing(await self.context.repository.search(criteria), actor.user_id)

    async def review_by_id(self, review_id: str, requester_id: str | None = None) -> EnrichedReview:
        review = await self.context.repository.get(review_id)
        return enrich(review, requester_id, self.context.now())

    async def all_reviews(self, actor: Actor, query: AdminReviewsQuery) -> ReviewListing:
        ensure_can_moderate(actor)
        criteria = ReviewFilter(
            statuses=query.statuses,
            ratings=query.ratings,
            search=query.search,
            search_username=True,
            sort_by=query.sort_by,
            descending=query.descending,
            page=query.page,
            limit=query.limit,
        )
        return self._listing(await self.context.repository.search(criteria), None)

    async def stats(self, actor: Actor) -> ReviewStats:
        ensure_can_moderate(actor)
        repo = self.context.repository
        now = self.context.now()

        by_status = await repo.count_by_status()
        summary = await repo.rating_summary()
        recent = await repo.count_created_between(now - GROWTH_WINDOW, now)
        previous = await repo.count_created_between(now - 2 * GROWTH_WINDOW, now - GROWTH_WINDOW)

        return ReviewStats(
            total=sum(by_status.values()),
            pending=by_status.get(ReviewStatus.PENDING.value, 0),
            approved=by_status.get(ReviewStatus.APPROVED.value, 0),
            rejected=by_status.get(ReviewStatus.REJECTED.value, 0),
            hidden=by_status.get(ReviewStatus.HIDDEN.value, 0),
            average_rating=summary.average_rating,
            growth=growth_percentage(recent, previous),
            by_status=by_status,
        )
