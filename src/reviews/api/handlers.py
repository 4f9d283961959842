"""HTTP plumbing shared by the service app and API tests.

- ``request_context_middleware`` pushes the reviews domain context for API
  paths and binds the request's trace identifiers into the structlog context.
- ``register_error_handlers`` maps coded service errors, Protean validation
  errors and anything unexpected onto the ``{"success": false, "error": ...}``
  response shape.
"""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import ValidationError as DomainValidationError
from protean.integrations.fastapi import register_exception_handlers

from reviews.api.dependencies import trace_from_headers
from reviews.domain import reviews
from reviews.errors import ReviewServiceError, from_domain_error
from reviews.utils.logging import add_context, clear_context, get_logger

logger = get_logger(__name__)

API_PREFIX = "/api"


async def request_context_middleware(request: Request, call_next):
    """Push the reviews domain context and bind trace identifiers for logging."""
    trace = trace_from_headers(request.headers)
    request.state.trace = trace

    clear_context()
    add_context(
        trace_id=trace.trace_id,
        span_id=trace.span_id,
        correlation_id=trace.correlation_id,
        path=request.url.path,
    )
    if request.url.path.startswith(API_PREFIX):
        with reviews.domain_context():
            return await call_next(request)
    # Health checks and docs need no domain context
    return await call_next(request)


def error_response(status_code: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": code, "message": message, "details": details or {}}},
    )


async def review_error_handler(request: Request, exc: ReviewServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", code=exc.code, error=exc.message)
    else:
        logger.info("request_rejected", code=exc.code, status=exc.status_code, error=exc.message)
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def domain_validation_handler(request: Request, exc: DomainValidationError) -> JSONResponse:
    error = from_domain_error(exc)
    return error_response(error.status_code, error.code, error.message, error.details)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = {"errors": jsonable_encoder(exc.errors())}
    return error_response(400, "VALIDATION_ERROR", "Request validation failed", details)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", error=str(exc))
    return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


def register_error_handlers(app: FastAPI) -> None:
    """Install Protean's handlers, then the service's own (which take precedence)."""
    register_exception_handlers(app)
    app.add_exception_handler(ReviewServiceError, review_error_handler)
    app.add_exception_handler(DomainValidationError, domain_validation_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
