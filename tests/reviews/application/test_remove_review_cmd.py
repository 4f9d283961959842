"""Application tests for the DeleteReview command handler."""

import pytest
from reviews.errors import ForbiddenError, NotFoundError
from reviews.review.events import REVIEW_DELETED
from reviews.review.removal import DeleteReview, DeleteReviewHandler
from reviews.review.voting import VoteOnReview, VoteOnReviewHandler


class TestDeleteReview:
    async def test_deleted_review_is_gone(self, context, submit_review, customer, repository):
        review = await submit_review()
        await DeleteReviewHandler(context).delete_review(DeleteReview(review_id=review.id), customer)

        with pytest.raises(NotFoundError):
            await repository.get(review.id)
        assert await repository.count_for_product("prod-001") == 0

    async def test_delete_leaves_no_vote_side_effects(self, context, submit_review, customer, voter, repository):
        review = await submit_review()
        other = await submit_review(actor=voter, product_id="prod-001")
        await VoteOnReviewHandler(context).vote_on_review(VoteOnReview(review_id=review.id, vote="helpful"), voter)

        await DeleteReviewHandler(context).delete_review(DeleteReview(review_id=review.id), customer)

        remaining = await repository.get(other.id)
        assert remaining.helpful_count == 0
        assert remaining.not_helpful_count == 0
        assert len(remaining.votes) == 0

    async def test_author_may_review_again_after_delete(self, context, submit_review, customer):
        review = await submit_review()
        await DeleteReviewHandler(context).delete_review(DeleteReview(review_id=review.id), customer)
        again = await submit_review(rating=2)
        assert again.id != review.id

    async def test_deleted_event_from_snapshot(self, context, submit_review, customer, provider, trace):
        review = await submit_review(order_reference=None)
        await DeleteReviewHandler(context).delete_review(DeleteReview(review_id=review.id), customer, trace)

        [envelope] = provider.events_of_type(REVIEW_DELETED)
        assert envelope["data"]["reviewId"] == str(review.id)
        assert envelope["data"]["rating"] == 4
        assert envelope["data"]["deletedBy"] == "cust-001"
        assert envelope["metadata"]["userId"] == "cust-001"


class TestDeleteRules:
    async def test_only_owner_can_delete(self, context, submit_review, voter, repository):
        review = await submit_review()
        with pytest.raises(ForbiddenError) as exc:
            await DeleteReviewHandler(context).delete_review(DeleteReview(review_id=review.id), voter)
        assert exc.value.code == "NOT_OWNER"
        assert (await repository.get(review.id)).id == review.id

    async def test_missing_review(self, context, customer):
        with pytest.raises(NotFoundError) as exc:
            await DeleteReviewHandler(context).delete_review(DeleteReview(review_id="nope"), customer)
        assert exc.value.code == "REVIEW_NOT_FOUND"
