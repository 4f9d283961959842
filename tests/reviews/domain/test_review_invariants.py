"""Tests for Review aggregate invariants and field constraints."""

from datetime import UTC, datetime

import pytest
from protean.exceptions import ValidationError
from reviews.review.review import MAX_MEDIA_ITEMS, HelpfulVote, Review


def _review(**overrides):
    defaults = {
        "product_id": "prod-inv",
        "user_id": "cust-inv",
        "username": "carol",
        "rating": 3,
        "title": "Average",
        "comment": None,
    }
    defaults.update(overrides)
    return Review.submit(**defaults)


class TestContentInvariant:
    def test_title_only_is_enough(self):
        review = _review(title="Just a title", comment=None)
        assert review.title == "Just a title"

    def test_comment_only_is_enough(self):
        review = _review(title=None, comment="Only a comment")
        assert review.comment == "Only a comment"

    def test_title_and_comment_both_missing(self):
        with pytest.raises(ValidationError) as exc:
            _review(title=None, comment=None)
        assert "content" in exc.value.messages

    def test_blank_title_and_comment_rejected(self):
        with pytest.raises(ValidationError):
            _review(title="   ", comment="  ")


class TestFieldConstraints:
    @pytest.mark.parametrize("rating", [0, 6, -1])
    def test_rating_out_of_range(self, rating):
        with pytest.raises(ValidationError) as exc:
            _review(rating=rating)
        assert "rating" in exc.value.messages

    @pytest.mark.parametrize("rating", [1, 5])
    def test_rating_bounds_accepted(self, rating):
        assert _review(rating=rating).rating == rating

    def test_title_too_long(self):
        with pytest.raises(ValidationError) as exc:
            _review(title="x" * 201)
        assert "title" in exc.value.messages

    def test_comment_too_long(self):
        with pytest.raises(ValidationError) as exc:
            _review(comment="x" * 2001)
        assert "comment" in exc.value.messages

    def test_product_id_required(self):
        with pytest.raises(ValidationError):
            _review(product_id=None)

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            _review(status="archived")


class TestMediaInvariant:
    def test_maximum_images_accepted(self):
        urls = [f"https://cdn.example.com/{i}.jpg" for i in range(MAX_MEDIA_ITEMS)]
        assert len(_review(images=urls).image_urls) == MAX_MEDIA_ITEMS

    def test_too_many_images(self):
        urls = [f"https://cdn.example.com/{i}.jpg" for i in range(MAX_MEDIA_ITEMS + 1)]
        with pytest.raises(ValidationError) as exc:
            _review(images=urls)
        assert "media" in exc.value.messages

    def test_too_many_videos(self):
        urls = [f"https://cdn.example.com/{i}.mp4" for i in range(MAX_MEDIA_ITEMS + 1)]
        with pytest.raises(ValidationError):
            _review(videos=urls)


class TestVoteCounterInvariant:
    def test_counter_without_record_rejected(self):
        review = _review()
        with pytest.raises(ValidationError) as exc:
            review.helpful_count = 1
        assert "votes" in exc.value.messages

    def test_record_without_counter_rejected(self):
        with pytest.raises(ValidationError):
            Review(
                product_id="prod-inv",
                user_id="cust-inv",
                username="carol",
                rating=3,
                title="Average",
                helpful_count=0,
                not_helpful_count=0,
                votes=[HelpfulVote(user_id="voter-1", vote="helpful", voted_at=datetime(2026, 1, 1, tzinfo=UTC))],
            )
