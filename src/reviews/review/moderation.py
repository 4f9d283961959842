"""Moderation: approve, reject or hide reviews.

Moderators (administrators) change a review's visibility. Reject and hide
need a reason; approve does not. Moving a review into the state it is already
in is refused (ALREADY_IN_STATE). Approval publishes ``review.approved``.

Also home to the administrative batch operations: bulk moderation, bulk
deletion and the clean-up that runs when a product is removed from the
catalogue. Batch operations report how many reviews they touched; ids that no
longer exist are simply not counted.

Handlers here are plain classes with async methods, not Protean ``@handle``
command handlers, because the review repository port is async.
"""

import json

import structlog
from protean.fields import Boolean, Identifier, String, Text

from reviews.domain import reviews
from reviews.errors import ValidationError
from reviews.review.access import Actor, ensure_can_moderate
from reviews.review.context import ReviewContext
from reviews.review.events import TraceContext
from reviews.review.review import (
    ModerationAction,
    Review,
    parse_moderation_action,
    validate_moderation_reason,
)

logger = structlog.get_logger(__name__)


@reviews.command(part_of="Review")
class ModerateReview:
    review_id = Identifier(required=True)
    action = String(required=True)  # "approve", "reject" or "hide"
    reason = String(max_length=500)  # Required for reject and hide


@reviews.command(part_of="Review")
class BulkModerateReviews:
    review_ids = Text(required=True)  # JSON array of review ids
    action = String(required=True)
    reason = String(max_length=500)


@reviews.command(part_of="Review")
class BulkDeleteReviews:
    review_ids = Text(required=True)  # JSON array of review ids


@reviews.command(part_of="Review")
class CleanupProductReviews:
    product_id = Identifier(required=True)
    delete_reviews = Boolean(default=True)  # False hides them instead


def _review_ids(raw: str) -> list[str]:
    ids = json.loads(raw) if raw else []
    if not isinstance(ids, list) or not ids:
        raise ValidationError("reviewIds array is required", details={"reviewIds": ["must be a non-empty list"]})
    return [str(rid) for rid in ids]


class ModerateReviewHandler:
    def __init__(self, context: ReviewContext) -> None:
        self.context = context

    async def moderate_review(self, command: ModerateReview, actor: Actor, trace: TraceContext | None = None) -> Review:
        ensure_can_moderate(actor)
        ctx = self.context

        # Validate the request before touching storage
        action = parse_moderation_action(command.action)
        validate_moderation_reason(action, command.reason)

        review = await ctx.repository.get(command.review_id)
        review.moderate(action, actor.user_id, command.reason, now=ctx.now())
        await ctx.repository.save(review)

        logger.info(
            "review_moderated",
            review_id=str(review.id),
            action=action.value,
            status=review.status,
            moderated_by=actor.user_id,
            reason=command.reason,
        )

        if action == ModerationAction.APPROVE:
            await ctx.publisher.publish_approved(review, trace)
        return review


class BulkModerateReviewsHandler:
    def __init__(self, context: ReviewContext) -> None:
        self.context = context

    async def bulk_moderate_reviews(self, command: BulkModerateReviews, actor: Actor) -> int:
        ensure_can_moderate(actor)
        review_ids = _review_ids(command.review_ids)
        action = parse_moderation_action(command.action)
        validate_moderation_reason(action, command.reason)

        affected = await self.context.repository.update_status_many(
            review_ids,
            action.target_status.value,
            actor.user_id,
            command.reason,
            self.context.now(),
        )
        logger.info(
            "reviews_bulk_moderated",
            action=action.value,
            requested=len(review_ids),
            affected=affected,
            moderated_by=actor.user_id,
        )
        return affected


class BulkDeleteReviewsHandler:
    def __init__(self, context: ReviewContext) -> None:
        self.context = context

    async def bulk_delete_reviews(self, command: BulkDeleteReviews, actor: Actor) -> int:
        ensure_can_moderate(actor)
        review_ids = _review_ids(command.review_ids)

        deleted = await self.context.repository.delete_many(review_ids)
        logger.info("reviews_bulk_deleted", requested=len(review_ids), deleted=deleted, deleted_by=actor.user_id)
        return deleted


class CleanupProductReviewsHandler:
    def __init__(self, context: ReviewContext) -> None:
        self.context = context

    async def cleanup_product_reviews(self, command: CleanupProductReviews) -> dict:
        """Delete (or hide) every review of a product that left the catalogue."""
        repo = self.context.repository
        product_id = str(command.product_id)

        if command.delete_reviews:
            count = await repo.delete_for_product(product_id)
            action = "deleted"
        else:
            count = await repo.hide_for_product(product_id, self.context.now())
            action = "hidden"

        logger.info("product_reviews_cleaned_up", product_id=product_id, action=action, count=count)
        return {"action": action, "count": count}
