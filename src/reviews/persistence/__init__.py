"""Review store abstraction: MongoDB in production, in-memory for development."""

from reviews.errors import ConfigurationError
from reviews.persistence.port import ReviewRepository


def build_repository(settings) -> ReviewRepository:
    """Construct the review store selected by ``REVIEW_STORE``."""
    store = (settings.REVIEW_STORE or "mongo").lower()
    if store == "memory":
        from reviews.persistence.memory_adapter import MemoryReviewRepository

        return MemoryReviewRepository()
    if store == "mongo":
        from reviews.persistence.mongo_adapter import MongoReviewRepository

        return MongoReviewRepository(settings.MONGODB_URI, settings.MONGODB_DATABASE)
    raise ConfigurationError(f"Unknown review store: {settings.REVIEW_STORE}")
