"""EditReview: edit an existing review.

Only the original author can edit, and only inside the deployment's edit
window when one is configured. A new rating or comment sends the review back
to moderation (PENDING). The updated event always carries the rating held
before the edit so consumers can adjust aggregates by delta.

Handlers here are plain classes with async methods, not Protean ``@handle``
command handlers, because the review repository port is async.
"""

import json

import structlog
from protean.exceptions import ValidationError as DomainValidationError
from protean.fields import Identifier, Integer, String, Text

from reviews.domain import reviews
from reviews.errors import from_domain_error
from reviews.review.access import Actor, ensure_owner, ensure_within_edit_window
from reviews.review.context import ReviewContext
from reviews.review.events import TraceContext
from reviews.review.review import Review

logger = structlog.get_logger(__name__)


@reviews.command(part_of="Review")
class EditReview:
    review_id = Identifier(required=True)
    rating = Integer()
    title = String(max_length=200)
    comment = String(max_length=2000)
    images = Text()  # JSON array of media URLs
    videos = Text()  # JSON array of media URLs


class EditReviewHandler:
    def __init__(self, context: ReviewContext) -> None:
        self.context = context

    async def edit_review(self, command: EditReview, actor: Actor, trace: TraceContext | None = None) -> Review:
        ctx = self.context
        review = await ctx.repository.get(command.review_id)

        ensure_owner(review, actor.user_id, action="update")
        now = ctx.now()
        ensure_within_edit_window(review, ctx.policy, now)

        # Build kwargs; unset fields keep their current value
        kwargs = {}
        if command.rating is not None:
            kwargs["rating"] = command.rating
        if command.title is not None:
            kwargs["title"] = command.title
        if command.comment is not None:
            kwargs["comment"] = command.comment
        if command.images is not None:
            kwargs["images"] = json.loads(command.images)
        if command.videos is not None:
            kwargs["videos"] = json.loads(command.videos)

        try:
            previous_rating = review.edit(actor.user_id, now=now, **kwargs)
        except DomainValidationError as exc:
            raise from_domain_error(exc) from exc

        await ctx.repository.save(review)
        await ctx.publisher.publish_updated(review, previous_rating, trace)

        logger.info(
            "review_updated",
            review_id=str(review.id),
            previous_rating=previous_rating,
            rating=review.rating,
            status=review.status,
        )
        return review
