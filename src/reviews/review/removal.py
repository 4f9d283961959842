"""DeleteReview: physically remove a review.

Only the author may delete their own review. There is no tombstone: the
document is removed, then a deleted event is published from the snapshot
taken before removal so consumers can subtract its rating.

Handlers here are plain classes with async methods, not Protean ``@handle``
command handlers, because the review repository port is async.
"""

import structlog
from protean.fields import Identifier

from reviews.domain import reviews
from reviews.review.access import Actor, ensure_owner
from reviews.review.context import ReviewContext
from reviews.review.events import TraceContext
from reviews.review.review import Review

logger = structlog.get_logger(__name__)


@reviews.command(part_of="Review")
class DeleteReview:
    review_id = Identifier(required=True)


class DeleteReviewHandler:
    def __init__(self, context: ReviewContext) -> None:
        self.context = context

    async def delete_review(self, command: DeleteReview, actor: Actor, trace: TraceContext | None = None) -> Review:
        ctx = self.context
        review = await ctx.repository.get(command.review_id)
        ensure_owner(review, actor.user_id, action="delete")

        await ctx.repository.delete(str(review.id))
        await ctx.publisher.publish_deleted(review, trace, deleted_by=actor.user_id)

        logger.info("review_deleted", review_id=str(review.id), product_id=str(review.product_id))
        return review
