"""In-memory review store for development and testing.

Documents are kept in a dict keyed by review id. Every write happens under a
single ``asyncio.Lock`` so read-apply-write sequences (votes, uniqueness
checks) are atomic with respect to other tasks in the process.
"""

import asyncio
import copy
from datetime import datetime

from reviews.errors import DuplicateReviewError, NotFoundError
from reviews.persistence.documents import content_fields, from_document, to_document
from reviews.persistence.port import (
    Page,
    RatingSummary,
    ReviewFilter,
    ReviewRepository,
    SortField,
    round_rating,
)
from reviews.review.review import Review, ReviewStatus, VoteChange


class MemoryReviewRepository(ReviewRepository):
    """Review repository backed by a process-local dict."""

    def __init__(self) -> None:
        self._documents: dict[str, dict] = {}
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    async def get(self, review_id: str) -> Review:
        document = self._documents.get(str(review_id))
        if document is None:
            raise NotFoundError("Review not found", code="REVIEW_NOT_FOUND")
        return from_document(copy.deepcopy(document))

    async def find_by_product_and_user(self, product_id: str, user_id: str) -> Review | None:
        document = self._find_pair(product_id, user_id)
        return from_document(copy.deepcopy(document)) if document else None

    async def count_for_product(self, product_id: str) -> int:
        return sum(1 for d in self._documents.values() if d["product_id"] == str(product_id))

    async def search(self, criteria: ReviewFilter) -> Page:
        matching = [d for d in self._documents.values() if _matches(d, criteria)]
        ordered = _sort(matching, criteria)
        window = ordered[criteria.skip : criteria.skip + criteria.limit]
        return Page(
            items=[from_document(copy.deepcopy(d)) for d in window],
            total=len(matching),
            page=criteria.page,
            limit=criteria.limit,
        )

    async def rating_summary(self, product_id: str | None = None) -> RatingSummary:
        approved = [
            d
            for d in self._documents.values()
            if d["status"] == ReviewStatus.APPROVED.value
            and (product_id is None or d["product_id"] == str(product_id))
        ]
        summary = RatingSummary()
        if not approved:
            return summary

        for document in approved:
            summary.distribution[document["rating"]] += 1
        summary.total_reviews = len(approved)
        summary.verified_review_count = sum(1 for d in approved if d["is_verified_purchase"])
        summary.average_rating = round_rating(sum(d["rating"] for d in approved) / len(approved))
        return summary

    async def count_by_status(self) -> dict[str, int]:
        counts = {status.value: 0 for status in ReviewStatus}
        for document in self._documents.values():
            counts[document["status"]] += 1
        return counts

    async def count_created_between(self, start: datetime, end: datetime) -> int:
        return sum(1 for d in self._documents.values() if start <= d["created_at"] < end)

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    async def add(self, review: Review) -> Review:
        async with self._lock:
            if self._find_pair(review.product_id, review.user_id) is not None:
                raise DuplicateReviewError(f"{review.product_id}/{review.user_id}")
            self._documents[str(review.id)] = to_document(review)
        return review

    async def save(self, review: Review) -> Review:
        async with self._lock:
            document = self._documents.get(str(review.id))
            if document is None:
                raise NotFoundError("Review not found", code="REVIEW_NOT_FOUND")
            document.update(content_fields(review))
        return review

    async def apply_vote(self, review_id: str, change: VoteChange, voted_at: datetime) -> Review | None:
        async with self._lock:
            document = self._documents.get(str(review_id))
            if document is None:
                return None

            review = from_document(copy.deepcopy(document))
            if review.current_vote(change.voter_id) != change.previous:
                return None

            review.apply_vote(change, voted_at)
            self._documents[str(review_id)] = to_document(review)
            return review

    async def delete(self, review_id: str) -> bool:
        async with self._lock:
            return self._documents.pop(str(review_id), None) is not None

    async def delete_many(self, review_ids: list[str]) -> int:
        async with self._lock:
            removed = [self._documents.pop(str(rid), None) for rid in review_ids]
        return sum(1 for d in removed if d is not None)

    async def delete_for_product(self, product_id: str) -> int:
        async with self._lock:
            ids = [rid for rid, d in self._documents.items() if d["product_id"] == str(product_id)]
            for rid in ids:
                del self._documents[rid]
        return len(ids)

    async def hide_for_product(self, product_id: str, now: datetime) -> int:
        async with self._lock:
            affected = 0
            for document in self._documents.values():
                if document["product_id"] == str(product_id):
                    document["status"] = ReviewStatus.HIDDEN.value
                    document["updated_at"] = now
                    affected += 1
        return affected

    async def update_status_many(
        self,
        review_ids: list[str],
        status: str,
        moderator_id: str,
        reason: str | None,
        now: datetime,
    ) -> int:
        async with self._lock:
            affected = 0
            for rid in dict.fromkeys(str(r) for r in review_ids):
                document = self._documents.get(rid)
                if document is None:
                    continue
                document["status"] = status
                document["moderation"] = {
                    "moderated_by": str(moderator_id),
                    "moderated_at": now,
                    "reason": reason,
                }
                document["updated_by"] = str(moderator_id)
                document["updated_at"] = now
                affected += 1
        return affected

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _find_pair(self, product_id, user_id):
        return next(
            (
                d
                for d in self._documents.values()
                if d["product_id"] == str(product_id) and d["user_id"] == str(user_id)
            ),
            None,
        )

    def reset(self) -> None:
        """Drop all stored reviews (useful between tests)."""
        self._documents.clear()


def _matches(document: dict, criteria: ReviewFilter) -> bool:
    if criteria.product_id is not None and document["product_id"] != str(criteria.product_id):
        return False
    if criteria.user_id is not None and document["user_id"] != str(criteria.user_id):
        return False
    if criteria.statuses and document["status"] not in criteria.statuses:
        return False
    if criteria.ratings and document["rating"] not in criteria.ratings:
        return False
    if criteria.verified_only and not document["is_verified_purchase"]:
        return False
    if criteria.with_media and not (document["images"] or document["videos"]):
        return False
    if criteria.search:
        needle = criteria.search.lower()
        haystacks = [document.get("title") or "", document.get("comment") or ""]
        if criteria.search_username:
            haystacks.append(document.get("username") or "")
        if not any(needle in h.lower() for h in haystacks):
            return False
    return True


def _sort(documents: list[dict], criteria: ReviewFilter) -> list[dict]:
    if criteria.sort_by == SortField.RATING:
        # Ties on rating fall back to newest first
        newest_first = sorted(documents, key=lambda d: d["created_at"], reverse=True)
        return sorted(newest_first, key=lambda d: d["rating"], reverse=criteria.descending)

    keys = {
        SortField.CREATED_AT: lambda d: d["created_at"],
        SortField.UPDATED_AT: lambda d: d["updated_at"],
        SortField.HELPFULNESS: lambda d: d["helpful_votes"]["helpful"],
    }
    return sorted(documents, key=keys[criteria.sort_by], reverse=criteria.descending)
