"""
Natours Backend — Custom Exception Hierarchy
==============================================

What:  Defines the application's operational errors plus the raw cast error
       raised by the data layer.
Why:   Operational errors carry a client-safe message and an HTTP status;
       everything else is treated as a programming/infrastructure failure
       whose details never reach a production client.
How:   Each exception class carries a message, a status code and optional
       context. The Error Normalizer (natours.error_handlers) converts raw
       failures into AppError and renders the response envelope.
Who:   Raised by the query translator, handler factory, aggregations and middleware.

Exception Hierarchy:
    AppError (operational base, status derived from status_code)
    ├── ValidationError          → 400 fail
    ├── NotFoundError            → 404 fail
    ├── RouteNotFoundError       → 404 fail ("Can't find <url> on this server!")
    ├── PayloadTooLargeError     → 413 fail
    ├── RateLimitExceededError   → 429 fail
    └── InternalError            → 500 error (non-operational)

    CastError (NOT operational by itself — the normalizer turns it into a 400)
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """
    Base class for every anticipated ("operational") failure.

    Attributes:
        message:        Client-facing description, safe to return verbatim
        status_code:    HTTP status of the response
        status:         "fail" for 4xx, "error" for everything else
        is_operational: Always True for AppError; unmarked exceptions are not
        context:        Debug info, only rendered in development
    """

    is_operational = True

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        status_code: int = 500,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.status = "fail" if str(status_code).startswith("4") else "error"
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Client input failed validation (400)."""

    def __init__(
        self,
        message: str = "Invalid input data.",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, status_code=400, context=ctx)
        self.field = field


class NotFoundError(AppError):
    """
    A document addressed by id does not exist (404).

    Message mirrors the resource name: "No tour found with that ID".
    """

    def __init__(
        self,
        resource: str = "document",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(
            message=f"No {resource} found with that ID",
            status_code=404,
            context=ctx,
        )


class RouteNotFoundError(AppError):
    """No route matched the request's method and path (404)."""

    def __init__(self, url: str):
        super().__init__(
            message=f"Can't find {url} on this server!",
            status_code=404,
            context={"url": url},
        )


class PayloadTooLargeError(AppError):
    """Request body exceeded the configured cap (413)."""

    def __init__(self, limit: int):
        super().__init__(
            message=f"Request body is too large. Maximum allowed size is {limit // 1024}kb.",
            status_code=413,
            context={"limit": limit},
        )
        self.limit = limit


class RateLimitExceededError(AppError):
    """Client exceeded the per-IP request budget (429)."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(
            message="Too many requests from this IP, please try again in an hour!",
            status_code=429,
            context=ctx,
        )
        self.retry_after = retry_after


class InternalError(AppError):
    """
    Wraps an unanticipated failure (500).

    Not operational: outside development the client only ever sees a
    generic message, never the original one.
    """

    is_operational = False

    def __init__(self, message: str = "Something went very wrong!", original: Optional[BaseException] = None):
        super().__init__(message=message, status_code=500)
        self.original = original


class CastError(Exception):
    """
    A raw value could not be converted to the type of the field it addresses.

    Raised for malformed ids and uncoercible filter values. It is NOT an
    AppError: the normalizer classifies it and produces
    "Invalid <path>: <value>." with status 400.
    """

    def __init__(self, path: str, value: Any):
        self.path = path
        self.value = value
        super().__init__(f"Cast failed for value {value!r} at path {path!r}")
