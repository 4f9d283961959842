"""Access-control rules for reviews.

Pure functions: they inspect the acting user and the review and raise a coded
error when the action is not allowed. Authentication happens upstream; the
rules only see an already-authenticated ``Actor``.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from reviews.config import ReviewPolicy
from reviews.errors import ForbiddenError

ADMIN_ROLES = frozenset({"admin"})


@dataclass(frozen=True)
class Actor:
    """The authenticated user performing an operation."""

    user_id: str
    username: str | None = None
    roles: tuple[str, ...] = field(default_factory=tuple)
    is_active: bool = True
    is_admin_flag: bool = False

    @property
    def is_admin(self) -> bool:
        return self.is_admin_flag or bool(ADMIN_ROLES.intersection(self.roles))

    @property
    def display_name(self) -> str:
        return self.username or self.user_id


def ensure_can_create_review(actor: Actor) -> None:
    """Admins may not review products (conflict of interest); inactive users may not either."""
    if actor.is_admin:
        raise ForbiddenError(
            "Administrators cannot create product reviews to avoid conflict of interest",
            code="ADMIN_CANNOT_REVIEW",
        )
    if not actor.is_active:
        raise ForbiddenError(
            "Your account is not active. Please contact support.",
            code="USER_INACTIVE",
        )


def ensure_can_moderate(actor: Actor) -> None:
    if not actor.is_admin:
        raise ForbiddenError("Admin privileges required", code="MODERATOR_REQUIRED")


def ensure_owner(review, actor_id: str, action: str = "modify") -> None:
    if str(review.user_id) != str(actor_id):
        raise ForbiddenError(f"You can only {action} your own reviews", code="NOT_OWNER")


def ensure_purchase_requirement(policy: ReviewPolicy, is_verified_purchase: bool) -> None:
    if policy.require_purchase and not is_verified_purchase:
        raise ForbiddenError(
            "You must purchase this product before writing a review. "
            "Please provide a valid order reference.",
            code="PURCHASE_REQUIRED",
        )


def ensure_within_edit_window(review, policy: ReviewPolicy, now=None) -> None:
    if not policy.edit_time_limit_days or review.created_at is None:
        return
    now = now or datetime.now(UTC)
    if now - review.created_at > timedelta(days=policy.edit_time_limit_days):
        raise ForbiddenError(
            f"Reviews can only be edited within {policy.edit_time_limit_days} days of posting",
            code="EDIT_WINDOW_CLOSED",
        )
