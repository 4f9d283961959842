"""Application tests for the EditReview command handler."""

from datetime import timedelta

import pytest
from reviews.config import ReviewPolicy
from reviews.errors import ForbiddenError, NotFoundError, ValidationError
from reviews.review.editing import EditReview, EditReviewHandler
from reviews.review.events import REVIEW_UPDATED
from reviews.review.review import ReviewStatus
from reviews.review.voting import VoteOnReview, VoteOnReviewHandler


async def _edit(context, actor, review_id, trace=None, **fields):
    return await EditReviewHandler(context).edit_review(EditReview(review_id=review_id, **fields), actor, trace)


class TestEditReview:
    async def test_rating_edit_persisted_and_pending(self, context, submit_review, customer, repository):
        review = await submit_review()
        assert review.status == ReviewStatus.APPROVED.value

        await _edit(context, customer, review.id, rating=2)

        stored = await repository.get(review.id)
        assert stored.rating == 2
        assert stored.status == ReviewStatus.PENDING.value

    async def test_title_edit_keeps_status(self, context, submit_review, customer, repository):
        review = await submit_review()
        await _edit(context, customer, review.id, title="Even better after a month")
        stored = await repository.get(review.id)
        assert stored.title == "Even better after a month"
        assert stored.status == ReviewStatus.APPROVED.value

    async def test_media_edit_keeps_status(self, context, submit_review, customer, repository):
        review = await submit_review()
        await _edit(context, customer, review.id, images='["https://cdn.example.com/new.jpg"]')
        stored = await repository.get(review.id)
        assert stored.image_urls == ["https://cdn.example.com/new.jpg"]
        assert stored.status == ReviewStatus.APPROVED.value

    async def test_unset_fields_untouched(self, context, submit_review, customer):
        review = await submit_review()
        updated = await _edit(context, customer, review.id, title="New title")
        assert updated.comment == "Does what it says on the box."
        assert updated.rating == 4

    async def test_updated_event_carries_previous_rating(self, context, submit_review, customer, provider, trace):
        review = await submit_review()
        await _edit(context, customer, review.id, trace=trace, rating=1)
        [envelope] = provider.events_of_type(REVIEW_UPDATED)
        assert envelope["data"]["previousRating"] == 4
        assert envelope["data"]["rating"] == 1
        assert envelope["data"]["reviewId"] == str(review.id)

    async def test_edit_does_not_touch_votes(self, context, submit_review, customer, voter, repository):
        review = await submit_review()
        await VoteOnReviewHandler(context).vote_on_review(VoteOnReview(review_id=review.id, vote="helpful"), voter)
        await _edit(context, customer, review.id, comment="Still great")

        stored = await repository.get(review.id)
        assert stored.helpful_count == 1
        assert stored.current_vote(voter.user_id) is not None

    async def test_audit_stamped(self, context, submit_review, customer, clock):
        review = await submit_review()
        clock.advance(timedelta(hours=3))
        updated = await _edit(context, customer, review.id, title="Later")
        assert updated.updated_at == clock.current
        assert updated.updated_at > updated.created_at


class TestEditRules:
    async def test_only_owner_can_edit(self, context, submit_review, voter, provider):
        review = await submit_review()
        provider.clear()
        with pytest.raises(ForbiddenError) as exc:
            await _edit(context, voter, review.id, rating=1)
        assert exc.value.code == "NOT_OWNER"
        assert provider.published == []

    async def test_missing_review(self, context, customer):
        with pytest.raises(NotFoundError) as exc:
            await _edit(context, customer, "missing-id", rating=1)
        assert exc.value.code == "REVIEW_NOT_FOUND"

    async def test_edit_window_closed(self, context, submit_review, customer, clock):
        context.policy = ReviewPolicy(edit_time_limit_days=30)
        review = await submit_review()
        clock.advance(timedelta(days=31))
        with pytest.raises(ForbiddenError) as exc:
            await _edit(context, customer, review.id, title="Too late")
        assert exc.value.code == "EDIT_WINDOW_CLOSED"

    async def test_edit_window_open(self, context, submit_review, customer, clock):
        context.policy = ReviewPolicy(edit_time_limit_days=30)
        review = await submit_review()
        clock.advance(timedelta(days=29))
        updated = await _edit(context, customer, review.id, title="Just in time")
        assert updated.title == "Just in time"

    async def test_invalid_rating(self, context, submit_review, customer, repository):
        review = await submit_review()
        with pytest.raises(ValidationError):
            await _edit(context, customer, review.id, rating=0)
        assert (await repository.get(review.id)).rating == 4
