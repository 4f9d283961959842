"""Tests for owner edits on the Review aggregate."""

from datetime import UTC, datetime

import pytest
from protean.exceptions import ValidationError
from reviews.review.review import Review, ReviewStatus

EDITED_AT = datetime(2026, 3, 5, 8, 0, tzinfo=UTC)


def _approved_review():
    return Review.submit(
        product_id="prod-edit",
        user_id="cust-edit",
        username="frank",
        rating=4,
        title="Nice kettle",
        comment="Boils fast.",
        status=ReviewStatus.APPROVED.value,
    )


class TestEditReview:
    def test_rating_change_resets_to_pending(self):
        review = _approved_review()
        previous = review.edit("cust-edit", rating=2)
        assert previous == 4
        assert review.rating == 2
        assert review.status == ReviewStatus.PENDING.value

    def test_comment_change_resets_to_pending(self):
        review = _approved_review()
        review.edit("cust-edit", comment="Boils fast, but the lid broke.")
        assert review.status == ReviewStatus.PENDING.value

    def test_title_only_keeps_status(self):
        review = _approved_review()
        review.edit("cust-edit", title="Nice kettle overall")
        assert review.title == "Nice kettle overall"
        assert review.status == ReviewStatus.APPROVED.value

    def test_media_only_keeps_status(self):
        review = _approved_review()
        review.edit("cust-edit", images=["https://cdn.example.com/k.jpg"], videos=["https://cdn.example.com/k.mp4"])
        assert review.image_urls == ["https://cdn.example.com/k.jpg"]
        assert review.video_urls == ["https://cdn.example.com/k.mp4"]
        assert review.status == ReviewStatus.APPROVED.value

    def test_edit_rejected_review_goes_back_to_moderation(self):
        review = _approved_review()
        review.reject("mod-001", "spam")
        review.edit("cust-edit", comment="Rewritten without links")
        assert review.status == ReviewStatus.PENDING.value

    def test_edit_stamps_audit(self):
        review = _approved_review()
        created_at = review.created_at
        review.edit("cust-edit", title="Updated", now=EDITED_AT)
        assert review.updated_at == EDITED_AT
        assert review.updated_by == "cust-edit"
        assert review.created_at == created_at

    def test_previous_rating_returned_when_rating_unchanged(self):
        review = _approved_review()
        assert review.edit("cust-edit", title="Same rating") == 4

    def test_invalid_rating_rejected(self):
        review = _approved_review()
        with pytest.raises(ValidationError):
            review.edit("cust-edit", rating=9)

    def test_clearing_all_content_rejected(self):
        review = _approved_review()
        with pytest.raises(ValidationError) as exc:
            review.edit("cust-edit", title="", comment="")
        assert "content" in exc.value.messages
