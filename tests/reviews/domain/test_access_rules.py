"""Tests for review access-control rules."""

from datetime import UTC, datetime, timedelta

import pytest
from reviews.config import ReviewPolicy
from reviews.errors import ForbiddenError
from reviews.review.access import (
    Actor,
    ensure_can_create_review,
    ensure_can_moderate,
    ensure_owner,
    ensure_purchase_requirement,
    ensure_within_edit_window,
)
from reviews.review.review import Review

CREATED_AT = datetime(2026, 3, 1, tzinfo=UTC)


def _review():
    return Review.submit(
        product_id="prod-acl",
        user_id="owner-1",
        username="gina",
        rating=5,
        title="Brilliant",
        now=CREATED_AT,
    )


class TestActor:
    def test_admin_by_role(self):
        assert Actor(user_id="u", roles=("customer", "admin")).is_admin is True

    def test_admin_by_flag(self):
        assert Actor(user_id="u", is_admin_flag=True).is_admin is True

    def test_customer_is_not_admin(self):
        assert Actor(user_id="u", roles=("customer",)).is_admin is False

    def test_display_name_falls_back_to_id(self):
        assert Actor(user_id="u-9").display_name == "u-9"
        assert Actor(user_id="u-9", username="hank").display_name == "hank"


class TestCreateRules:
    def test_customer_may_review(self):
        ensure_can_create_review(Actor(user_id="u", roles=("customer",)))

    @pytest.mark.parametrize("roles", [("admin",), ("customer", "admin")])
    def test_admin_never_may_review(self, roles):
        with pytest.raises(ForbiddenError) as exc:
            ensure_can_create_review(Actor(user_id="u", roles=roles))
        assert exc.value.code == "ADMIN_CANNOT_REVIEW"

    def test_inactive_user_refused(self):
        with pytest.raises(ForbiddenError) as exc:
            ensure_can_create_review(Actor(user_id="u", is_active=False))
        assert exc.value.code == "USER_INACTIVE"

    def test_purchase_required(self):
        policy = ReviewPolicy(require_purchase=True)
        ensure_purchase_requirement(policy, True)
        with pytest.raises(ForbiddenError) as exc:
            ensure_purchase_requirement(policy, False)
        assert exc.value.code == "PURCHASE_REQUIRED"

    def test_purchase_not_required(self):
        ensure_purchase_requirement(ReviewPolicy(), False)


class TestModerateRule:
    def test_admin_may_moderate(self):
        ensure_can_moderate(Actor(user_id="a", roles=("admin",)))

    def test_customer_may_not_moderate(self):
        with pytest.raises(ForbiddenError) as exc:
            ensure_can_moderate(Actor(user_id="c"))
        assert exc.value.code == "MODERATOR_REQUIRED"


class TestOwnerRules:
    def test_owner_passes(self):
        ensure_owner(_review(), "owner-1")

    def test_other_user_refused(self):
        with pytest.raises(ForbiddenError) as exc:
            ensure_owner(_review(), "intruder", action="delete")
        assert exc.value.code == "NOT_OWNER"
        assert "delete" in exc.value.message


class TestEditWindow:
    def test_no_window_configured(self):
        ensure_within_edit_window(_review(), ReviewPolicy(), CREATED_AT + timedelta(days=400))

    def test_inside_window(self):
        policy = ReviewPolicy(edit_time_limit_days=7)
        ensure_within_edit_window(_review(), policy, CREATED_AT + timedelta(days=7))

    def test_outside_window(self):
        policy = ReviewPolicy(edit_time_limit_days=7)
        with pytest.raises(ForbiddenError) as exc:
            ensure_within_edit_window(_review(), policy, CREATED_AT + timedelta(days=7, seconds=1))
        assert exc.value.code == "EDIT_WINDOW_CLOSED"
