"""FastAPI routes for the Reviews service.

Each route translates between Pydantic schemas (external contract) and
Protean commands (internal domain concepts), then awaits the matching
use-case handler with the acting user and the request's trace context.
"""

import json

from fastapi import APIRouter, Depends, Query

from reviews.api.dependencies import (
    get_actor,
    get_context,
    get_optional_actor,
    get_trace,
    require_internal_caller,
)
from reviews.api.schemas import (
    BulkDeleteRequest,
    BulkModerateRequest,
    EditReviewRequest,
    ModerationReasonRequest,
    ProductCleanupRequest,
    ReviewListData,
    ReviewResponse,
    StatsSchema,
    SubmitReviewRequest,
    VoteRequest,
)
from reviews.errors import ValidationError
from reviews.persistence.port import SortField
from reviews.review.access import Actor
from reviews.review.context import ReviewContext
from reviews.review.editing import EditReview, EditReviewHandler
from reviews.review.events import TraceContext
from reviews.review.moderation import (
    BulkDeleteReviews,
    BulkDeleteReviewsHandler,
    BulkModerateReviews,
    BulkModerateReviewsHandler,
    CleanupProductReviews,
    CleanupProductReviewsHandler,
    ModerateReview,
    ModerateReviewHandler,
)
from reviews.review.queries import AdminReviewsQuery, ProductReviewsQuery, ReviewQueries, enrich
from reviews.review.removal import DeleteReview, DeleteReviewHandler
from reviews.review.review import ReviewStatus
from reviews.review.submission import SubmitReview, SubmitReviewHandler
from reviews.review.voting import VoteOnReview, VoteOnReviewHandler

review_router = APIRouter(prefix="/api/reviews", tags=["reviews"])
admin_router = APIRouter(prefix="/api/admin/reviews", tags=["admin"])
# Cluster-internal only: keep /api/internal off the public gateway.
internal_router = APIRouter(
    prefix="/api/internal", tags=["internal"], dependencies=[Depends(require_internal_caller)]
)

PUBLIC_STATUSES = (ReviewStatus.APPROVED.value,)


def _ok(data=None, message: str | None = None) -> dict:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


def _review(item) -> dict:
    return ReviewResponse.from_enriched(item).model_dump(by_alias=True, mode="json")


def _listing(listing) -> dict:
    return ReviewListData.from_listing(listing).model_dump(by_alias=True, mode="json", exclude_none=True)


def _dump_media(urls):
    return json.dumps(urls) if urls is not None else None


def _split(raw: str | None) -> list[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


def _statuses(raw: str | None, default: tuple[str, ...] = ()) -> tuple[str, ...]:
    values = _split(raw)
    allowed = {s.value for s in ReviewStatus}
    invalid = [v for v in values if v not in allowed]
    if invalid:
        raise ValidationError(f"Invalid status: {', '.join(invalid)}", details={"status": invalid})
    return tuple(values) or default


def _ratings(raw: str | None) -> tuple[int, ...]:
    try:
        ratings = tuple(int(v) for v in _split(raw))
    except ValueError:
        raise ValidationError("Rating filter must be numbers between 1 and 5") from None
    if any(r < 1 or r > 5 for r in ratings):
        raise ValidationError("Rating filter must be numbers between 1 and 5")
    return ratings


def _sort(sort_by: str, sort_order: str) -> tuple[SortField, bool]:
    try:
        field = SortField(sort_by)
    except ValueError:
        choices = ", ".join(f.value for f in SortField)
        raise ValidationError(f"sortBy must be one of: {choices}") from None
    return field, sort_order.lower() != "asc"


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------
@review_router.post("", status_code=201)
async def submit_review(
    body: SubmitReviewRequest,
    actor: Actor = Depends(get_actor),
    trace: TraceContext = Depends(get_trace),
    ctx: ReviewContext = Depends(get_context),
) -> dict:
    """Submit a new product review."""
    command = SubmitReview(
        product_id=body.product_id,
        rating=body.rating,
        title=body.title,
        comment=body.comment,
        images=_dump_media(body.images),
        videos=_dump_media(body.videos),
        order_reference=body.order_reference,
        source=body.source,
    )
    review = await SubmitReviewHandler(ctx).submit_review(command, actor, trace)
    return _ok(_review(enrich(review, actor.user_id, ctx.now())), "Review created successfully")


@review_router.get("/product/{product_id}")
async def product_reviews(
    product_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    status: str | None = None,
    rating: str | None = None,
    verified_only: bool = Query(False, alias="verifiedOnly"),
    with_media: bool = Query(False, alias="withMedia"),
    search: str | None = None,
    actor: Actor | None = Depends(get_optional_actor),
    ctx: ReviewContext = Depends(get_context),
) -> dict:
    """List a product's reviews together with its rating summary.

    Only administrators may look past approved reviews with ``status``.
    """
    field, descending = _sort(sort_by, sort_order)
    statuses = _statuses(status, default=PUBLIC_STATUSES)
    if not (actor and actor.is_admin):
        statuses = PUBLIC_STATUSES
    query = ProductReviewsQuery(
        product_id=product_id,
        statuses=statuses,
        ratings=_ratings(rating),
        verified_only=verified_only,
        with_media=with_media,
        search=search,
        sort_by=field,
        descending=descending,
        page=page,
        limit=limit,
    )
    listing = await ReviewQueries(ctx).product_reviews(query, actor.user_id if actor else None)
    return _ok(_listing(listing))


@review_router.get("/user/me")
async def my_reviews(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort: str = "newest",
    status: str | None = None,
    actor: Actor = Depends(get_actor),
    ctx: ReviewContext = Depends(get_context),
) -> dict:
    """List the acting user's own reviews."""
    listing = await ReviewQueries(ctx).user_reviews(
        actor, statuses=_statuses(status), sort=sort, page=page, limit=limit
    )
    return _ok(_listing(listing))


@review_router.get("/{review_id}")
async def get_review(
    review_id: str,
    actor: Actor | None = Depends(get_optional_actor),
    ctx: ReviewContext = Depends(get_context),
) -> dict:
    item = await ReviewQueries(ctx).review_by_id(review_id, actor.user_id if actor else None)
    return _ok(_review(item))


@review_router.put("/{review_id}")
async def edit_review(
    review_id: str,
    body: EditReviewRequest,
    actor: Actor = Depends(get_actor),
    trace: TraceContext = Depends(get_trace),
    ctx: ReviewContext = Depends(get_context),
) -> dict:
    """Edit an existing review."""
    command = EditReview(
        review_id=review_id,
        rating=body.rating,
        title=body.title,
        comment=body.comment,
        images=_dump_media(body.images),
        videos=_dump_media(body.videos),
    )
    review = await EditReviewHandler(ctx).edit_review(command, actor, trace)
    return _ok(_review(enrich(review, actor.user_id, ctx.now())), "Review updated successfully")


@review_router.delete("/{review_id}")
async def delete_review(
    review_id: str,
    actor: Actor = Depends(get_actor),
    trace: TraceContext = Depends(get_trace),
    ctx: ReviewContext = Depends(get_context),
) -> dict:
    await DeleteReviewHandler(ctx).delete_review(DeleteReview(review_id=review_id), actor, trace)
    return _ok(message="Review deleted successfully")


@review_router.post("/{review_id}/vote")
async def vote_on_review(
    review_id: str,
    body: VoteRequest,
    actor: Actor = Depends(get_actor),
    ctx: ReviewContext = Depends(get_context),
) -> dict:
    """Vote a review helpful or not helpful; repeating a vote retracts it."""
    command = VoteOnReview(review_id=review_id, vote=body.vote_type)
    review = await VoteOnReviewHandler(ctx).vote_on_review(command, actor)
    return _ok(_review(enrich(review, actor.user_id, ctx.now())), "Vote recorded successfully")


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------
@admin_router.get("/all")
async def all_reviews(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    status: str | None = None,
    rating: str | None = None,
    search: str | None = None,
    actor: Actor = Depends(get_actor),
    ctx: ReviewContext = Depends(get_context),
) -> dict:
    field, descending = _sort(sort_by, sort_order)
    query = AdminReviewsQuery(
        statuses=_statuses(status),
        ratings=_ratings(rating),
        search=search,
        sort_by=field,
        descending=descending,
        page=page,
        limit=limit,
    )
    listing = await ReviewQueries(ctx).all_reviews(actor, query)
    return _ok(_listing(listing))


@admin_router.get("/stats")
async def review_stats(
    actor: Actor = Depends(get_actor),
    ctx: ReviewContext = Depends(get_context),
) -> dict:
    stats = await ReviewQueries(ctx).stats(actor)
    return _ok(StatsSchema.from_stats(stats).model_dump(by_alias=True))


async def _moderate(action: str, review_id: str, reason: str | None, actor, trace, ctx) -> dict:
    command = ModerateReview(review_id=review_id, action=action, reason=reason)
    review = await ModerateReviewHandler(ctx).moderate_review(command, actor, trace)
    return _ok(_review(enrich(review, None, ctx.now())), f"Review {review.status} successfully")


@admin_router.post("/{review_id}/approve")
async def approve_review(
    review_id: str,
    actor: Actor = Depends(get_actor),
    trace: TraceContext = Depends(get_trace),
    ctx: ReviewContext = Depends(get_context),
) -> dict:
    return await _moderate("approve", review_id, None, actor, trace, ctx)


@admin_router.post("/{review_id}/reject")
async def reject_review(
    review_id: str,
    body: ModerationReasonRequest,
    actor: Actor = Depends(get_actor),
    trace: TraceContext = Depends(get_trace),
    ctx: ReviewContext = Depends(get_context),
) -> dict:
    return await _moderate("reject", review_id, body.reason, actor, trace, ctx)


@admin_router.post("/{review_id}/hide")
async def hide_review(
    review_id: str,
    body: ModerationReasonRequest,
    actor: Actor = Depends(get_actor),
    trace: TraceContext = Depends(get_trace),
    ctx: ReviewContext = Depends(get_context),
) -> dict:
    return await _moderate("hide", review_id, body.reason, actor, trace, ctx)


@admin_router.post("/bulk-moderate")
async def bulk_moderate(
    body: BulkModerateRequest,
    actor: Actor = Depends(get_actor),
    ctx: ReviewContext = Depends(get_context),
) -> dict:
    command = BulkModerateReviews(review_ids=json.dumps(body.review_ids), action=body.action, reason=body.reason)
    modified = await BulkModerateReviewsHandler(ctx).bulk_moderate_reviews(command, actor)
    return _ok(
        {"action": body.action, "modifiedCount": modified, "reviewIds": body.review_ids},
        f"Moderated {modified} reviews",
    )


@admin_router.post("/bulk-delete")
async def bulk_delete(
    body: BulkDeleteRequest,
    actor: Actor = Depends(get_actor),
    ctx: ReviewContext = Depends(get_context),
) -> dict:
    command = BulkDeleteReviews(review_ids=json.dumps(body.review_ids))
    deleted = await BulkDeleteReviewsHandler(ctx).bulk_delete_reviews(command, actor)
    return _ok({"deletedCount": deleted}, f"Deleted {deleted} reviews")


# ---------------------------------------------------------------------------
# Internal (service to service)
# ---------------------------------------------------------------------------
@internal_router.post("/products/{product_id}/reviews/cleanup")
async def cleanup_product_reviews(
    product_id: str,
    body: ProductCleanupRequest,
    ctx: ReviewContext = Depends(get_context),
) -> dict:
    """Called by the product service when a product leaves the catalogue.

    Guarded by ``X-Internal-Api-Key`` when ``INTERNAL_API_KEY`` is set.
    """
    command = CleanupProductReviews(product_id=product_id, delete_reviews=body.delete_reviews)
    result = await CleanupProductReviewsHandler(ctx).cleanup_product_reviews(command)
    return _ok(result)
