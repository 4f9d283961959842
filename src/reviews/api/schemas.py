"""Pydantic request/response schemas for the Reviews API.

These are separate from Protean commands (anti-corruption pattern).
The API layer is the external contract; commands are internal domain concepts.
JSON field names are camelCase on the wire; snake_case names are accepted too.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from reviews.review.queries import EnrichedReview, ReviewListing, ReviewStats


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class SubmitReviewRequest(CamelModel):
    product_id: str = Field(min_length=1)
    rating: int = Field(ge=1, le=5)
    title: str | None = Field(default=None, max_length=200)
    comment: str | None = Field(default=None, max_length=2000)
    images: list[str] | None = Field(default=None, max_length=10)
    videos: list[str] | None = Field(default=None, max_length=10)
    order_reference: str | None = Field(default=None, max_length=100)
    source: str = "web"


class EditReviewRequest(CamelModel):
    rating: int | None = Field(default=None, ge=1, le=5)
    title: str | None = Field(default=None, max_length=200)
    comment: str | None = Field(default=None, max_length=2000)
    images: list[str] | None = Field(default=None, max_length=10)
    videos: list[str] | None = Field(default=None, max_length=10)


class VoteRequest(CamelModel):
    vote_type: str  # "helpful" or "notHelpful"


class ModerationReasonRequest(CamelModel):
    reason: str | None = Field(default=None, max_length=500)


class BulkModerateRequest(CamelModel):
    review_ids: list[str] = Field(min_length=1)
    action: str  # "approve", "reject" or "hide"
    reason: str | None = Field(default=None, max_length=500)


class BulkDeleteRequest(CamelModel):
    review_ids: list[str] = Field(min_length=1)


class ProductCleanupRequest(CamelModel):
    delete_reviews: bool = True


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class ModerationSchema(CamelModel):
    moderated_by: str | None = None
    moderated_at: datetime | None = None
    reason: str | None = None


class HelpfulVotesSchema(CamelModel):
    helpful: int = 0
    not_helpful: int = 0


class ReviewResponse(CamelModel):
    id: str
    product_id: str
    user_id: str
    username: str
    rating: int
    title: str | None = None
    comment: str | None = None
    images: list[str] = []
    videos: list[str] = []
    source: str
    is_verified_purchase: bool
    order_reference: str | None = None
    status: str
    helpful_votes: HelpfulVotesSchema
    moderation: ModerationSchema
    created_at: datetime
    updated_at: datetime
    helpful_score: int = 0
    total_votes: int = 0
    age_in_days: int = 0
    user_vote: str | None = None
    is_own_review: bool | None = None

    @classmethod
    def from_enriched(cls, item: EnrichedReview) -> ReviewResponse:
        review = item.review
        return cls(
            id=str(review.id),
            product_id=str(review.product_id),
            user_id=str(review.user_id),
            username=review.username,
            rating=review.rating,
            title=review.title,
            comment=review.comment,
            images=review.image_urls,
            videos=review.video_urls,
            source=review.source,
            is_verified_purchase=bool(review.is_verified_purchase),
            order_reference=review.order_reference,
            status=review.status,
            helpful_votes=HelpfulVotesSchema(
                helpful=review.helpful_count or 0,
                not_helpful=review.not_helpful_count or 0,
            ),
            moderation=ModerationSchema(
                moderated_by=str(review.moderated_by) if review.moderated_by else None,
                moderated_at=review.moderated_at,
                reason=review.moderation_reason,
            ),
            created_at=review.created_at,
            updated_at=review.updated_at,
            helpful_score=item.helpful_score,
            total_votes=item.total_votes,
            age_in_days=item.age_in_days,
            user_vote=item.user_vote,
            is_own_review=item.is_own_review,
        )


class PaginationSchema(CamelModel):
    page: int
    limit: int
    total: int
    pages: int
    has_next: bool
    has_prev: bool


class RatingDetailsSchema(CamelModel):
    average_rating: float
    total_reviews: int
    verified_review_count: int
    rating_distribution: dict[str, int]


class ReviewListData(CamelModel):
    reviews: list[ReviewResponse]
    pagination: PaginationSchema
    rating_details: RatingDetailsSchema | None = None

    @classmethod
    def from_listing(cls, listing: ReviewListing) -> ReviewListData:
        details = None
        if listing.summary is not None:
            details = RatingDetailsSchema(
                average_rating=listing.summary.average_rating,
                total_reviews=listing.summary.total_reviews,
                verified_review_count=listing.summary.verified_review_count,
                rating_distribution={str(k): v for k, v in listing.summary.distribution.items()},
            )
        return cls(
            reviews=[ReviewResponse.from_enriched(item) for item in listing.items],
            pagination=PaginationSchema(
                page=listing.page,
                limit=listing.limit,
                total=listing.total,
                pages=listing.pages,
                has_next=listing.has_next,
                has_prev=listing.has_prev,
            ),
            rating_details=details,
        )


class StatsSchema(CamelModel):
    total: int
    pending: int
    approved: int
    rejected: int
    hidden: int
    average_rating: float
    growth: float

    @classmethod
    def from_stats(cls, stats: ReviewStats) -> StatsSchema:
        return cls(
            total=stats.total,
            pending=stats.pending,
            approved=stats.approved,
            rejected=stats.rejected,
            hidden=stats.hidden,
            average_rating=stats.average_rating,
            growth=stats.growth,
        )
