"""VoteOnReview: record a helpful / notHelpful vote on a review.

Authors cannot vote on their own review. Voting the same way twice retracts
the vote, voting the other way flips it. The change is planned on a fresh
read and applied by the repository as a conditional update keyed on the
voter's previous vote; if another request changed that vote in between, the
plan is recomputed, up to ``MAX_VOTE_ATTEMPTS`` times.

Handlers here are plain classes with async methods, not Protean ``@handle``
command handlers, because the review repository port is async.
"""

import structlog
from protean.fields import Identifier, String

from reviews.domain import reviews
from reviews.errors import ConflictError
from reviews.review.access import Actor
from reviews.review.context import ReviewContext
from reviews.review.review import Review, parse_vote

logger = structlog.get_logger(__name__)

MAX_VOTE_ATTEMPTS = 5


@reviews.command(part_of="Review")
class VoteOnReview:
    review_id = Identifier(required=True)
    vote = String(required=True)  # "helpful" or "notHelpful"


class VoteOnReviewHandler:
    def __init__(self, context: ReviewContext) -> None:
        self.context = context

    async def vote_on_review(self, command: VoteOnReview, actor: Actor) -> Review:
        ctx = self.context
        vote = parse_vote(command.vote)

        for attempt in range(1, MAX_VOTE_ATTEMPTS + 1):
            review = await ctx.repository.get(command.review_id)
            change = review.plan_vote(actor.user_id, vote.value)

            updated = await ctx.repository.apply_vote(str(review.id), change, ctx.now())
            if updated is not None:
                logger.info(
                    "review_vote_recorded",
                    review_id=str(review.id),
                    voter_id=actor.user_id,
                    change=change.kind,
                    helpful=updated.helpful_count,
                    not_helpful=updated.not_helpful_count,
                )
                return updated

            logger.debug("review_vote_retry", review_id=str(review.id), attempt=attempt)

        raise ConflictError("The vote changed concurrently, please retry", code="VOTE_CONFLICT")
