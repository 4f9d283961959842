"""Mapping between the Review aggregate and its stored document shape."""

import json

from reviews.review.review import HelpfulVote, Review, VoteType

VOTES = "helpful_votes.user_votes"

COUNTER_FIELDS = {
    VoteType.HELPFUL: "helpful_votes.helpful",
    VoteType.NOT_HELPFUL: "helpful_votes.not_helpful",
}


def content_fields(review: Review) -> dict:
    """Everything except vote records and counters."""
    return {
        "product_id": str(review.product_id),
        "user_id": str(review.user_id),
        "username": review.username,
        "rating": review.rating,
        "title": review.title,
        "comment": review.comment,
        "images": review.image_urls,
        "videos": review.video_urls,
        "source": review.source,
        "is_verified_purchase": bool(review.is_verified_purchase),
        "order_reference": review.order_reference,
        "status": review.status,
        "moderation": {
            "moderated_by": str(review.moderated_by) if review.moderated_by else None,
            "moderated_at": review.moderated_at,
            "reason": review.moderation_reason,
        },
        "created_by": str(review.created_by) if review.created_by else None,
        "updated_by": str(review.updated_by) if review.updated_by else None,
        "created_at": review.created_at,
        "updated_at": review.updated_at,
    }


def to_document(review: Review) -> dict:
    document = {"_id": str(review.id), **content_fields(review)}
    document["helpful_votes"] = {
        "helpful": review.helpful_count or 0,
        "not_helpful": review.not_helpful_count or 0,
        "user_votes": [
            {"user_id": str(v.user_id), "vote": v.vote, "voted_at": v.voted_at}
            for v in review.votes
        ],
    }
    return document


def from_document(document: dict) -> Review:
    helpful_votes = document.get("helpful_votes") or {}
    moderation = document.get("moderation") or {}

    return Review(
        id=str(document["_id"]),
        product_id=document["product_id"],
        user_id=document["user_id"],
        username=document.get("username") or document["user_id"],
        rating=document["rating"],
        title=document.get("title"),
        comment=document.get("comment"),
        images=_dump_media(document.get("images")),
        videos=_dump_media(document.get("videos")),
        source=document.get("source") or "web",
        is_verified_purchase=document.get("is_verified_purchase", False),
        order_reference=document.get("order_reference"),
        status=document["status"],
        helpful_count=helpful_votes.get("helpful", 0),
        not_helpful_count=helpful_votes.get("not_helpful", 0),
        votes=[
            HelpfulVote(user_id=v["user_id"], vote=v["vote"], voted_at=v["voted_at"])
            for v in helpful_votes.get("user_votes", [])
        ],
        moderated_by=moderation.get("moderated_by"),
        moderated_at=moderation.get("moderated_at"),
        moderation_reason=moderation.get("reason"),
        created_by=document.get("created_by"),
        updated_by=document.get("updated_by"),
        created_at=document.get("created_at"),
        updated_at=document.get("updated_at"),
    )


def _dump_media(urls):
    return json.dumps(list(urls)) if urls else None
