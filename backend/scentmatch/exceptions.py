"""
ScentMatch Backend — Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for the error kinds the API exposes.
Why:   Services raise domain errors; global handlers in main.py translate them
       into `{"success": false, "error": ...}` responses with the right status.
How:   Each exception carries a client-safe message and an optional context
       dict that is logged but never returned.

Exception Hierarchy:
    ScentMatchError (base)
    ├── ValidationError          → 400 Bad Request (missing/malformed fields)
    ├── UnauthorizedError        → 401 Unauthorized (bad code, bad session)
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict (duplicate account, note, link)
    ├── RateLimitExceededError   → 429 Too Many Requests
    └── DatabaseError            → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class ScentMatchError(Exception):
    """
    Base exception for all ScentMatch application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(ScentMatchError):
    """
    Raised when client input is missing or malformed.

    Raised before any storage access, so a rejected request never touches
    the database.
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UnauthorizedError(ScentMatchError):
    """
    Raised when a login code or session cannot be accepted.

    The message deliberately does not distinguish a wrong code from a code
    that never existed or was already consumed.
    """

    status_code = 401

    def __init__(
        self,
        message: str = "Invalid or expired code",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(ScentMatchError):
    """Raised when a requested resource does not exist."""

    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(ScentMatchError):
    """
    Raised when a write would violate a uniqueness rule.

    The database unique index is the source of truth; services translate the
    driver's IntegrityError into this exception.
    """

    status_code = 409

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(ScentMatchError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic. Driver errors,
    SQL text and constraint names are only logged.
    """

    status_code = 500

    def __init__(
        self,
        message: str = "Internal server error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(ScentMatchError):
    """Raised when a client exceeds the per-IP request rate limit."""

    status_code = 429

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
