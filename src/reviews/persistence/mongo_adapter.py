"""MongoDB review store on the pymongo asyncio client.

Reviews live in a single ``reviews`` collection, one document per review with
the voter records embedded. Vote changes are applied with one conditional
``find_one_and_update`` per request so counters and voter records can never
drift apart, even when many voters hit the same review at once.
"""

import re
from datetime import datetime

import structlog
from pymongo import ASCENDING, DESCENDING, AsyncMongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError

from reviews.errors import DuplicateReviewError, NotFoundError
from reviews.persistence.documents import (
    COUNTER_FIELDS,
    VOTES,
    content_fields,
    from_document,
    to_document,
)
from reviews.persistence.port import (
    Page,
    RatingSummary,
    ReviewFilter,
    ReviewRepository,
    SortField,
    round_rating,
)
from reviews.review.review import Review, ReviewStatus, VoteChange

logger = structlog.get_logger(__name__)

COLLECTION = "reviews"

_SORT_KEYS = {
    SortField.CREATED_AT: "created_at",
    SortField.UPDATED_AT: "updated_at",
    SortField.RATING: "rating",
    SortField.HELPFULNESS: "helpful_votes.helpful",
}


class MongoReviewRepository(ReviewRepository):
    """Review repository backed by a MongoDB collection."""

    def __init__(self, uri: str, database: str, client: AsyncMongoClient | None = None) -> None:
        self._client = client or AsyncMongoClient(uri, tz_aware=True)
        self._collection = self._client[database][COLLECTION]

    async def create_indexes(self) -> None:
        await self._collection.create_index(
            [("product_id", ASCENDING), ("user_id", ASCENDING)],
            unique=True,
            name="product_user_unique",
        )
        await self._collection.create_index([("product_id", ASCENDING), ("status", ASCENDING)])
        await self._collection.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
        await self._collection.create_index([("status", ASCENDING), ("created_at", DESCENDING)])
        await self._collection.create_index([("created_at", DESCENDING)])
        logger.info("review_indexes_created", collection=COLLECTION)

    async def close(self) -> None:
        await self._client.close()

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    async def get(self, review_id: str) -> Review:
        document = await self._collection.find_one({"_id": str(review_id)})
        if document is None:
            raise NotFoundError("Review not found", code="REVIEW_NOT_FOUND")
        return from_document(document)

    async def find_by_product_and_user(self, product_id: str, user_id: str) -> Review | None:
        document = await self._collection.find_one(
            {"product_id": str(product_id), "user_id": str(user_id)}
        )
        return from_document(document) if document else None

    async def count_for_product(self, product_id: str) -> int:
        return await self._collection.count_documents({"product_id": str(product_id)})

    async def search(self, criteria: ReviewFilter) -> Page:
        query = build_query(criteria)
        total = await self._collection.count_documents(query)
        cursor = (
            self._collection.find(query)
            .sort(build_sort(criteria))
            .skip(criteria.skip)
            .limit(criteria.limit)
        )
        documents = await cursor.to_list()
        return Page(
            items=[from_document(d) for d in documents],
            total=total,
            page=criteria.page,
            limit=criteria.limit,
        )

    async def rating_summary(self, product_id: str | None = None) -> RatingSummary:
        match = {"status": ReviewStatus.APPROVED.value}
        if product_id is not None:
            match["product_id"] = str(product_id)

        cursor = await self._collection.aggregate(
            [
                {"$match": match},
                {
                    "$group": {
                        "_id": "$rating",
                        "count": {"$sum": 1},
                        "verified": {"$sum": {"$cond": ["$is_verified_purchase", 1, 0]}},
                    }
                },
            ]
        )
        summary = RatingSummary()
        weighted = 0
        async for bucket in cursor:
            star, count = bucket["_id"], bucket["count"]
            summary.distribution[star] = count
            summary.total_reviews += count
            summary.verified_review_count += bucket["verified"]
            weighted += star * count

        if summary.total_reviews:
            summary.average_rating = round_rating(weighted / summary.total_reviews)
        return summary

    async def count_by_status(self) -> dict[str, int]:
        counts = {status.value: 0 for status in ReviewStatus}
        cursor = await self._collection.aggregate(
            [{"$group": {"_id": "$status", "count": {"$sum": 1}}}]
        )
        async for bucket in cursor:
            counts[bucket["_id"]] = bucket["count"]
        return counts

    async def count_created_between(self, start: datetime, end: datetime) -> int:
        return await self._collection.count_documents({"created_at": {"$gte": start, "$lt": end}})

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    async def add(self, review: Review) -> Review:
        try:
            await self._collection.insert_one(to_document(review))
        except DuplicateKeyError as exc:
            raise DuplicateReviewError(f"{review.product_id}/{review.user_id}") from exc
        return review

    async def save(self, review: Review) -> Review:
        result = await self._collection.update_one(
            {"_id": str(review.id)}, {"$set": content_fields(review)}
        )
        if result.matched_count == 0:
            raise NotFoundError("Review not found", code="REVIEW_NOT_FOUND")
        return review

    async def apply_vote(self, review_id: str, change: VoteChange, voted_at: datetime) -> Review | None:
        query, update = vote_update(str(review_id), change, voted_at)
        document = await self._collection.find_one_and_update(
            query, update, return_document=ReturnDocument.AFTER
        )
        return from_document(document) if document else None

    async def delete(self, review_id: str) -> bool:
        result = await self._collection.delete_one({"_id": str(review_id)})
        return result.deleted_count == 1

    async def delete_many(self, review_ids: list[str]) -> int:
        result = await self._collection.delete_many({"_id": {"$in": [str(r) for r in review_ids]}})
        return result.deleted_count

    async def delete_for_product(self, product_id: str) -> int:
        result = await self._collection.delete_many({"product_id": str(product_id)})
        return result.deleted_count

    async def hide_for_product(self, product_id: str, now: datetime) -> int:
        result = await self._collection.update_many(
            {"product_id": str(product_id)},
            {"$set": {"status": ReviewStatus.HIDDEN.value, "updated_at": now}},
        )
        return result.modified_count

    async def update_status_many(
        self,
        review_ids: list[str],
        status: str,
        moderator_id: str,
        reason: str | None,
        now: datetime,
    ) -> int:
        result = await self._collection.update_many(
            {"_id": {"$in": [str(r) for r in review_ids]}},
            {
                "$set": {
                    "status": status,
                    "moderation": {
                        "moderated_by": str(moderator_id),
                        "moderated_at": now,
                        "reason": reason,
                    },
                    "updated_by": str(moderator_id),
                    "updated_at": now,
                }
            },
        )
        return result.modified_count


def build_query(criteria: ReviewFilter) -> dict:
    """Translate a ReviewFilter into a MongoDB query document."""
    query: dict = {}
    clauses: list[dict] = []

    if criteria.product_id is not None:
        query["product_id"] = str(criteria.product_id)
    if criteria.user_id is not None:
        query["user_id"] = str(criteria.user_id)
    if criteria.statuses:
        query["status"] = {"$in": list(criteria.statuses)}
    if criteria.ratings:
        query["rating"] = {"$in": list(criteria.ratings)}
    if criteria.verified_only:
        query["is_verified_purchase"] = True
    if criteria.with_media:
        clauses.append({"$or": [{"images.0": {"$exists": True}}, {"videos.0": {"$exists": True}}]})
    if criteria.search:
        pattern = {"$regex": re.escape(criteria.search), "$options": "i"}
        fields = ["title", "comment"] + (["username"] if criteria.search_username else [])
        clauses.append({"$or": [{f: pattern} for f in fields]})

    if clauses:
        query["$and"] = clauses
    return query


def build_sort(criteria: ReviewFilter) -> list[tuple[str, int]]:
    direction = DESCENDING if criteria.descending else ASCENDING
    sort = [(_SORT_KEYS[criteria.sort_by], direction)]
    if criteria.sort_by == SortField.RATING:
        sort.append(("created_at", DESCENDING))
    return sort


def vote_update(review_id: str, change: VoteChange, voted_at: datetime) -> tuple[dict, dict]:
    """Conditional filter and update document for one vote change.

    The filter pins the voter's previous state, so a concurrent change to the
    same voter's record makes the update match nothing instead of corrupting
    the counters.
    """
    voter = change.voter_id

    if change.kind == "added":
        query = {"_id": review_id, f"{VOTES}.user_id": {"$ne": voter}}
        update = {
            "$push": {VOTES: {"user_id": voter, "vote": change.current.value, "voted_at": voted_at}},
            "$inc": {COUNTER_FIELDS[change.current]: 1},
        }
        return query, update

    query = {
        "_id": review_id,
        VOTES: {"$elemMatch": {"user_id": voter, "vote": change.previous.value}},
    }
    if change.kind == "retracted":
        update = {
            "$pull": {VOTES: {"user_id": voter}},
            "$inc": {COUNTER_FIELDS[change.previous]: -1},
        }
    else:
        update = {
            "$set": {f"{VOTES}.$.vote": change.current.value, f"{VOTES}.$.voted_at": voted_at},
            "$inc": {COUNTER_FIELDS[change.previous]: -1, COUNTER_FIELDS[change.current]: 1},
        }
    return query, update
