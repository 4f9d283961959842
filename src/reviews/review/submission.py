"""SubmitReview: submit a new product review.

Gates, in order: who may review (no admins, no inactive accounts), one review
per customer per product, the product must exist, purchase verification when
an order reference is given, the deployment's purchase requirement and review
cap. The initial status comes from the verification result and the review
policy. The created event is published best effort.

Handlers here are plain classes with async methods, not Protean ``@handle``
command handlers, because the review repository port is async.
"""

import json

import structlog
from protean.exceptions import ValidationError as DomainValidationError
from protean.fields import Identifier, Integer, String, Text

from reviews.config import ReviewPolicy
from reviews.domain import reviews
from reviews.errors import ConflictError, DuplicateReviewError, NotFoundError, from_domain_error
from reviews.lookup.port import with_fallback
from reviews.review.access import Actor, ensure_can_create_review, ensure_purchase_requirement
from reviews.review.context import ReviewContext
from reviews.review.events import TraceContext
from reviews.review.review import Review, ReviewSource, ReviewStatus

logger = structlog.get_logger(__name__)


@reviews.command(part_of="Review")
class SubmitReview:
    product_id = Identifier(required=True)
    rating = Integer(required=True)
    title = String(max_length=200)
    comment = String(max_length=2000)
    images = Text()  # JSON array of media URLs
    videos = Text()  # JSON array of media URLs
    order_reference = String(max_length=100)
    source = String(choices=ReviewSource, default=ReviewSource.WEB.value)


def initial_status(policy: ReviewPolicy, is_verified_purchase: bool) -> str:
    if is_verified_purchase and policy.auto_approve_verified:
        return ReviewStatus.APPROVED.value
    if policy.moderation_required:
        return ReviewStatus.PENDING.value
    return ReviewStatus.APPROVED.value


class SubmitReviewHandler:
    def __init__(self, context: ReviewContext) -> None:
        self.context = context

    async def submit_review(self, command: SubmitReview, actor: Actor, trace: TraceContext | None = None) -> Review:
        ctx = self.context
        product_id = str(command.product_id)
        log = logger.bind(product_id=product_id, user_id=actor.user_id)

        ensure_can_create_review(actor)

        if await ctx.repository.find_by_product_and_user(product_id, actor.user_id) is not None:
            raise ConflictError("User has already reviewed this product", code="REVIEW_EXISTS")

        product = await with_fallback(
            ctx.lookups.product_exists(product_id, trace),
            default=True,
            timeout=ctx.lookup_timeout,
            lookup="product_exists",
        )
        if not product.value:
            raise NotFoundError("Product not found", code="PRODUCT_NOT_FOUND")

        is_verified = False
        if command.order_reference:
            purchase = await with_fallback(
                ctx.lookups.validate_purchase(actor.user_id, product_id, command.order_reference, trace),
                default=False,
                timeout=ctx.lookup_timeout,
                lookup="validate_purchase",
            )
            is_verified = purchase.value

        if ctx.policy.require_purchase and not is_verified:
            log.warning("review_rejected_purchase_required", order_reference=command.order_reference)
        ensure_purchase_requirement(ctx.policy, is_verified)

        limit = ctx.policy.max_reviews_per_product
        if limit and await ctx.repository.count_for_product(product_id) >= limit:
            raise ConflictError(
                f"This product already has the maximum of {limit} reviews",
                code="REVIEW_LIMIT_REACHED",
            )

        try:
            review = Review.submit(
                product_id=product_id,
                user_id=actor.user_id,
                username=actor.display_name,
                rating=command.rating,
                title=command.title,
                comment=command.comment,
                images=json.loads(command.images) if command.images else None,
                videos=json.loads(command.videos) if command.videos else None,
                order_reference=command.order_reference,
                is_verified_purchase=is_verified,
                status=initial_status(ctx.policy, is_verified),
                source=command.source or ReviewSource.WEB.value,
                now=ctx.now(),
            )
        except DomainValidationError as exc:
            raise from_domain_error(exc) from exc

        try:
            await ctx.repository.add(review)
        except DuplicateReviewError as exc:
            raise ConflictError("User has already reviewed this product", code="REVIEW_EXISTS") from exc

        await ctx.publisher.publish_created(review, trace)
        log.info("review_created", review_id=str(review.id), status=review.status, verified=is_verified)
        return review
