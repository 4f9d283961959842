"""Review aggregate: the core of the Reviews domain.

The Review aggregate manages the lifecycle of a customer product review:
submission, owner edits, helpfulness voting and moderation. Persistence and
event publication are driven by the use-case handlers; the aggregate owns the
rules and the state transitions.

State Machine (4 states):
    PENDING  → APPROVED | REJECTED | HIDDEN          (moderation)
    APPROVED ⇄ REJECTED ⇄ HIDDEN                     (moderation)
    APPROVED | REJECTED | HIDDEN → PENDING           (owner edits rating/comment)
    X → X is refused (ALREADY_IN_STATE)
"""

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
)

from reviews import errors
from reviews.domain import reviews

# Sentinel for distinguishing "not provided" from None in partial updates
_UNSET = object()

MAX_MEDIA_ITEMS = 10


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ReviewStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    HIDDEN = "hidden"


class VoteType(Enum):
    HELPFUL = "helpful"
    NOT_HELPFUL = "notHelpful"


class ModerationAction(Enum):
    APPROVE = "approve"
    REJECT = "reject"
    HIDE = "hide"

    @property
    def target_status(self) -> ReviewStatus:
        return _ACTION_TARGETS[self]

    @property
    def requires_reason(self) -> bool:
        return self in (ModerationAction.REJECT, ModerationAction.HIDE)


class ReviewSource(Enum):
    WEB = "web"
    MOBILE = "mobile"
    API = "api"


_ACTION_TARGETS = {
    ModerationAction.APPROVE: ReviewStatus.APPROVED,
    ModerationAction.REJECT: ReviewStatus.REJECTED,
    ModerationAction.HIDE: ReviewStatus.HIDDEN,
}


# ---------------------------------------------------------------------------
# State Machine
# ---------------------------------------------------------------------------
_VALID_TRANSITIONS = {
    ReviewStatus.PENDING: {ReviewStatus.APPROVED, ReviewStatus.REJECTED, ReviewStatus.HIDDEN},
    ReviewStatus.APPROVED: {ReviewStatus.REJECTED, ReviewStatus.HIDDEN, ReviewStatus.PENDING},
    ReviewStatus.REJECTED: {ReviewStatus.APPROVED, ReviewStatus.HIDDEN, ReviewStatus.PENDING},
    ReviewStatus.HIDDEN: {ReviewStatus.APPROVED, ReviewStatus.REJECTED, ReviewStatus.PENDING},
}


def parse_moderation_action(action) -> ModerationAction:
    if isinstance(action, ModerationAction):
        return action
    try:
        return ModerationAction(str(action).lower())
    except ValueError:
        raise errors.ValidationError(
            "Invalid moderation action. Must be: approve, reject, or hide",
            code="INVALID_ACTION",
        ) from None


def validate_moderation_reason(action: ModerationAction, reason) -> None:
    if action.requires_reason and not (reason or "").strip():
        raise errors.ValidationError(
            f"Reason is required for {action.value} action",
            code="REASON_REQUIRED",
        )


def parse_vote(vote) -> VoteType:
    try:
        return VoteType(vote)
    except ValueError:
        raise errors.ValidationError(
            'Vote must be either "helpful" or "notHelpful"',
            code="INVALID_VOTE",
        ) from None


# ---------------------------------------------------------------------------
# Vote change
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class VoteChange:
    """The effect of one vote request on a review.

    ``previous`` is the voter's vote before the request (None if they had not
    voted); ``current`` is their vote afterwards (None when retracted).
    """

    voter_id: str
    previous: VoteType | None
    current: VoteType | None

    @property
    def kind(self) -> str:
        if self.previous is None:
            return "added"
        if self.current is None:
            return "retracted"
        return "changed"

    def counter_deltas(self) -> dict[VoteType, int]:
        deltas = {VoteType.HELPFUL: 0, VoteType.NOT_HELPFUL: 0}
        if self.previous is not None:
            deltas[self.previous] -= 1
        if self.current is not None:
            deltas[self.current] += 1
        return deltas


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@reviews.entity(part_of="Review")
class HelpfulVote:
    """One voter's helpfulness verdict on a review."""

    user_id = Identifier(required=True)
    vote = String(choices=VoteType, required=True)
    voted_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@reviews.aggregate
class Review:
    """A customer's review of a product."""

    # Core identifiers
    product_id = Identifier(required=True)
    user_id = Identifier(required=True)
    username = String(required=True, max_length=100)

    # Content
    rating = Integer(required=True, min_value=1, max_value=5)
    title = String(max_length=200)
    comment = String(max_length=2000)
    images = Text()  # JSON array of media URLs
    videos = Text()  # JSON array of media URLs
    source = String(choices=ReviewSource, default=ReviewSource.WEB.value)

    # Verification
    is_verified_purchase = Boolean(default=False)
    order_reference = String(max_length=100)

    # Status
    status = String(choices=ReviewStatus, default=ReviewStatus.PENDING.value)

    # Voting
    votes = HasMany(HelpfulVote)
    helpful_count = Integer(default=0)
    not_helpful_count = Integer(default=0)

    # Moderation
    moderated_by = Identifier()
    moderated_at = DateTime()
    moderation_reason = String(max_length=500)

    # Audit
    created_by = Identifier()
    updated_by = Identifier()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def title_or_comment_required(self):
        if not (self.title or "").strip() and not (self.comment or "").strip():
            raise ValidationError({"content": ["Review must have either a title or comment"]})

    @invariant.post
    def media_cannot_exceed_maximum(self):
        if len(self.image_urls) > MAX_MEDIA_ITEMS or len(self.video_urls) > MAX_MEDIA_ITEMS:
            raise ValidationError({"media": [f"Cannot attach more than {MAX_MEDIA_ITEMS} images or videos"]})

    @invariant.post
    def vote_counters_match_records(self):
        helpful = sum(1 for v in self.votes if v.vote == VoteType.HELPFUL.value)
        not_helpful = len(self.votes) - helpful
        if (self.helpful_count or 0) != helpful or (self.not_helpful_count or 0) != not_helpful:
            raise ValidationError({"votes": ["Vote counters do not match recorded votes"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def submit(
        cls,
        product_id,
        user_id,
        username,
        rating,
        title=None,
        comment=None,
        images=None,
        videos=None,
        order_reference=None,
        is_verified_purchase=False,
        status=ReviewStatus.PENDING.value,
        source=ReviewSource.WEB.value,
        now=None,
    ):
        """Build a new review. Audit fields are stamped for the author."""
        review = cls(
            product_id=product_id,
            user_id=user_id,
            username=username,
            rating=rating,
            title=title,
            comment=comment,
            images=_dump_media(images),
            videos=_dump_media(videos),
            source=source,
            order_reference=order_reference,
            is_verified_purchase=is_verified_purchase,
            status=status,
            helpful_count=0,
            not_helpful_count=0,
        )
        review.stamp_audit(user_id, now)
        return review

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def image_urls(self) -> list[str]:
        return json.loads(self.images) if self.images else []

    @property
    def video_urls(self) -> list[str]:
        return json.loads(self.videos) if self.videos else []

    @property
    def has_media(self) -> bool:
        return bool(self.image_urls or self.video_urls)

    @property
    def total_votes(self) -> int:
        return (self.helpful_count or 0) + (self.not_helpful_count or 0)

    @property
    def helpful_score(self) -> int:
        """Percentage of voters who found the review helpful, rounded half up."""
        if self.total_votes == 0:
            return 0
        score = Decimal((self.helpful_count or 0) * 100) / self.total_votes
        return int(score.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def age_in_days(self, now=None) -> int:
        now = now or datetime.now(UTC)
        return (now - self.created_at).days

    def current_vote(self, voter_id) -> VoteType | None:
        record = self._vote_record(voter_id)
        return VoteType(record.vote) if record else None

    def _vote_record(self, voter_id):
        return next((v for v in self.votes if str(v.user_id) == str(voter_id)), None)

    # -------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------
    def stamp_audit(self, actor_id, now=None):
        """Stamp audit fields before a write. Timestamps are never client supplied."""
        now = now or datetime.now(UTC)
        if self.created_at is None:
            self.created_at = now
            self.created_by = actor_id
        self.updated_at = now
        self.updated_by = actor_id
        return now

    # -------------------------------------------------------------------
    # Edit
    # -------------------------------------------------------------------
    def edit(
        self,
        editor_id,
        rating=_UNSET,
        title=_UNSET,
        comment=_UNSET,
        images=_UNSET,
        videos=_UNSET,
        now=None,
    ):
        """Edit review content. Returns the rating held before the edit.

        A new rating or comment sends the review back to moderation (PENDING).
        """
        previous_rating = self.rating

        with atomic_change(self):
            if rating is not _UNSET:
                self.rating = rating
            if title is not _UNSET:
                self.title = title
            if comment is not _UNSET:
                self.comment = comment
            if images is not _UNSET:
                self.images = _dump_media(images)
            if videos is not _UNSET:
                self.videos = _dump_media(videos)

            if rating is not _UNSET or comment is not _UNSET:
                self.status = ReviewStatus.PENDING.value

            self.stamp_audit(editor_id, now)

        return previous_rating

    # -------------------------------------------------------------------
    # Moderation
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = ReviewStatus(self.status)
        if current == target_status:
            raise errors.ValidationError(
                f"Review is already {target_status.value}",
                code="ALREADY_IN_STATE",
            )
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise errors.ValidationError(
                f"Cannot transition from {current.value} to {target_status.value}",
                code="INVALID_TRANSITION",
            )

    def moderate(self, action, moderator_id, reason=None, now=None):
        """Apply a moderation action (approve / reject / hide)."""
        action = parse_moderation_action(action)
        validate_moderation_reason(action, reason)
        self._assert_can_transition(action.target_status)

        now = now or datetime.now(UTC)
        self.status = action.target_status.value
        self.moderated_by = moderator_id
        self.moderated_at = now
        self.moderation_reason = reason
        self.stamp_audit(moderator_id, now)

    def approve(self, moderator_id, reason=None, now=None):
        self.moderate(ModerationAction.APPROVE, moderator_id, reason, now)

    def reject(self, moderator_id, reason, now=None):
        self.moderate(ModerationAction.REJECT, moderator_id, reason, now)

    def hide(self, moderator_id, reason, now=None):
        self.moderate(ModerationAction.HIDE, moderator_id, reason, now)

    # -------------------------------------------------------------------
    # Voting
    # -------------------------------------------------------------------
    def plan_vote(self, voter_id, vote) -> VoteChange:
        """Work out what a vote request does without touching state.

        Same vote again retracts it, the opposite vote flips it, otherwise
        a new vote is added. Authors cannot vote on their own review.
        """
        vote_type = parse_vote(vote)
        if str(voter_id) == str(self.user_id):
            raise errors.ForbiddenError("You cannot vote on your own review", code="SELF_VOTE")

        previous = self.current_vote(voter_id)
        current = None if previous == vote_type else vote_type
        return VoteChange(voter_id=str(voter_id), previous=previous, current=current)

    def apply_vote(self, change: VoteChange, now=None):
        """Apply a planned vote change to counters and voter records."""
        now = now or datetime.now(UTC)
        deltas = change.counter_deltas()
        record = self._vote_record(change.voter_id)

        with atomic_change(self):
            if change.current is None:
                self.remove_votes(record)
            elif record is None:
                self.add_votes(
                    HelpfulVote(
                        user_id=change.voter_id,
                        vote=change.current.value,
                        voted_at=now,
                    )
                )
            else:
                record.vote = change.current.value
                record.voted_at = now

            self.helpful_count = (self.helpful_count or 0) + deltas[VoteType.HELPFUL]
            self.not_helpful_count = (self.not_helpful_count or 0) + deltas[VoteType.NOT_HELPFUL]

    def record_vote(self, voter_id, vote) -> VoteChange:
        change = self.plan_vote(voter_id, vote)
        self.apply_vote(change)
        return change


def _dump_media(urls):
    return json.dumps(list(urls)) if urls else None
