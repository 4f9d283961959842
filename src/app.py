"""Review service FastAPI application.

Processes review commands synchronously over HTTP. Every request runs inside
the reviews domain context and carries its trace identifiers into the
structlog context. Collaborators (review store, messaging provider, event
publisher, sibling-service lookups) are built once in the lifespan and shared
through ``app.state.review_context``.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reviews.api.handlers import register_error_handlers, request_context_middleware
from reviews.api.routes import admin_router, internal_router, review_router
from reviews.config import get_settings
from reviews.domain import reviews
from reviews.lookup import build_lookups
from reviews.messaging import close_provider, get_provider
from reviews.persistence import build_repository
from reviews.review.context import ReviewContext
from reviews.review.publisher import EventPublisher
from reviews.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# PROTEAN_ENV selects the config overlay
reviews.init()

settings = get_settings()
configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    repository = build_repository(settings)
    await repository.create_indexes()

    provider = get_provider()
    publisher = EventPublisher(provider, source=settings.SERVICE_NAME, topic=settings.EVENTS_TOPIC)
    app.state.review_context = ReviewContext(
        repository=repository,
        publisher=publisher,
        lookups=build_lookups(provider, settings),
        policy=settings.review_policy,
        lookup_timeout=settings.LOOKUP_TIMEOUT_SECONDS,
    )
    app.state.internal_api_key = settings.INTERNAL_API_KEY
    logger.info(
        "review_service_started",
        version=settings.SERVICE_VERSION,
        store=settings.REVIEW_STORE,
        messaging=provider.name,
    )

    yield

    await close_provider()
    await repository.close()
    logger.info("review_service_stopped")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Review Service API",
    description="Product reviews, helpfulness voting and moderation",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(request_context_middleware)


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------
register_error_handlers(app)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(review_router)
app.include_router(admin_router)
app.include_router(internal_router)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "domain": reviews.name,
        }
    )


@app.get("/health/live")
async def liveness():
    return {"status": "alive"}


@app.get("/health/ready")
async def readiness(request: Request):
    ready = getattr(request.app.state, "review_context", None) is not None
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "not_ready"},
    )
