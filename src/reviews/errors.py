"""Error taxonomy for the Reviews service.

Every rejected operation carries a stable machine-readable ``code`` so clients
can branch on it (e.g. show "purchase required" instead of a generic failure).
"""

from protean.exceptions import ValidationError as DomainValidationError


class ReviewServiceError(Exception):
    """Base class for errors that surface to the caller."""

    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(ReviewServiceError):
    status_code = 400
    default_code = "VALIDATION_ERROR"


class UnauthorizedError(ReviewServiceError):
    status_code = 401
    default_code = "UNAUTHORIZED"


class ForbiddenError(ReviewServiceError):
    status_code = 403
    default_code = "FORBIDDEN"


class NotFoundError(ReviewServiceError):
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(ReviewServiceError):
    status_code = 409
    default_code = "CONFLICT"


class ConfigurationError(Exception):
    """Raised at startup when a mandatory setting is missing or invalid."""


class TransportUnavailable(Exception):
    """A messaging transport could not accept a message. Never surfaced."""


class LookupUnavailable(Exception):
    """A sibling service could not be reached or answered with a server error."""


class DuplicateReviewError(Exception):
    """The repository refused a second review for the same (product, user) pair."""


def from_domain_error(exc: DomainValidationError) -> ValidationError:
    """Translate a Protean aggregate validation failure into a coded error."""
    messages = getattr(exc, "messages", None) or {}
    flat = []
    for field_messages in messages.values():
        if isinstance(field_messages, str):
            flat.append(field_messages)
        else:
            flat.extend(str(msg) for msg in field_messages)
    message = "; ".join(flat) if flat else str(exc)
    return ValidationError(message, details=dict(messages))
