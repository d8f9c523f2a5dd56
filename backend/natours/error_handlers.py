"""
Natours Backend — Error Normalizer
====================================

What:  Converts every failure raised while handling a request into one
       envelope: {"status": "fail" | "error", "message": "..."}.
Why:   Route handlers, the query translator and the database layer raise
       very different things (AppError, CastError, IntegrityError, pydantic
       errors, plain bugs). Clients should see one predictable shape.
How:   normalize_error() classifies a raw exception into an AppError;
       render_error() turns an AppError into a JSONResponse;
       register_exception_handlers() wires both into the FastAPI app.

Classification:
    AppError                          → unchanged
    CastError                         → 400 "Invalid <path>: <value>."
    IntegrityError (unique violation) → 400 "Duplicate field value: <v>. Please use another value!"
    IntegrityError (other)            → 400 "Invalid input data. ..."
    StaleDataError                    → 409 concurrent modification
    pydantic / request validation     → 400 "Invalid input data. <msg>. <msg>"
    anything else                     → 500, non-operational

Development vs production:
    ENVIRONMENT=development adds `error` (type, status code, operational
    flag, context) and `stack` to every failure body. Otherwise
    non-operational failures only ever say "Something went very wrong!".
"""

import logging
import re
import traceback
from typing import Any, Dict, Iterable, List

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

from natours.config import settings
from natours.exceptions import (
    AppError,
    CastError,
    InternalError,
    RateLimitExceededError,
    RouteNotFoundError,
    ValidationError,
)
from natours.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

GENERIC_MESSAGE = "Something went very wrong!"

# PostgreSQL: 'Key (name)=(The Forest Hiker) already exists.'
_PG_DUPLICATE = re.compile(r"Key \((?P<field>[^)]+)\)=\((?P<value>.*?)\) already exists")
# SQLite: 'UNIQUE constraint failed: tours.name'
_SQLITE_DUPLICATE = re.compile(r"UNIQUE constraint failed: (?P<fields>[\w., ]+)")

# Location prefixes FastAPI puts in front of the field path
_LOC_PREFIXES = {"body", "query", "path", "header", "cookie"}


# ══════════════════════════════════════════════════════════════════════════
# Classification
# ══════════════════════════════════════════════════════════════════════════


def _is_unique_violation(exc: IntegrityError) -> bool:
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    text = str(exc.orig)
    return (
        sqlstate == "23505"
        or "duplicate key" in text
        or "UNIQUE constraint failed" in text
    )


def _duplicate_value(exc: IntegrityError) -> str:
    text = str(exc.orig)
    match = _PG_DUPLICATE.search(text)
    if match:
        return match.group("value")
    match = _SQLITE_DUPLICATE.search(text)
    if match:
        # SQLite names the column, not the value
        return ", ".join(f.split(".")[-1].strip() for f in match.group("fields").split(","))
    return "unknown"


def _format_errors(errors: Iterable[Dict[str, Any]]) -> str:
    """
    Join pydantic error entries into "field: message. field: message".

    The "Value error, " prefix pydantic puts on custom validator messages
    and the body/query/path location prefix are dropped.
    """
    messages: List[str] = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] in _LOC_PREFIXES:
            loc = loc[1:]
        msg = str(error.get("msg", "")).removeprefix("Value error, ")
        messages.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return ". ".join(messages)


def normalize_error(exc: BaseException) -> AppError:
    """
    Classify any exception into an AppError.

    Args:
        exc: whatever a handler, dependency or middleware raised
    Returns:
        An AppError carrying the client-facing message and status.
        Unrecognized exceptions come back as a non-operational InternalError.
    """
    if isinstance(exc, AppError):
        return exc

    if isinstance(exc, CastError):
        return ValidationError(
            f"Invalid {exc.path}: {exc.value}.",
            field=exc.path,
            context={"value": str(exc.value)},
        )

    if isinstance(exc, IntegrityError):
        if _is_unique_violation(exc):
            value = _duplicate_value(exc)
            return ValidationError(f"Duplicate field value: {value}. Please use another value!")
        return ValidationError(f"Invalid input data. {str(exc.orig).splitlines()[0]}")

    if isinstance(exc, StaleDataError):
        return AppError(
            "The document was modified by another request. Please retry.",
            status_code=409,
        )

    if isinstance(exc, (PydanticValidationError, RequestValidationError)):
        return ValidationError(f"Invalid input data. {_format_errors(exc.errors())}")

    message = str(exc) if settings.is_development and str(exc) else GENERIC_MESSAGE
    return InternalError(message, original=exc)


# ══════════════════════════════════════════════════════════════════════════
# Rendering
# ══════════════════════════════════════════════════════════════════════════


def render_error(error: AppError) -> JSONResponse:
    """Build the failure envelope for an already-classified error."""
    if error.is_operational or settings.is_development:
        message = error.message
    else:
        message = GENERIC_MESSAGE

    body: Dict[str, Any] = {"status": error.status, "message": message}

    if settings.is_development:
        original = getattr(error, "original", None) or error
        body["error"] = {
            "type": type(original).__name__,
            "statusCode": error.status_code,
            "isOperational": error.is_operational,
            "context": error.context,
        }
        body["stack"] = "".join(
            traceback.format_exception(type(original), original, original.__traceback__)
        )

    headers = None
    if isinstance(error, RateLimitExceededError):
        headers = {"Retry-After": str(error.retry_after)}

    return JSONResponse(
        status_code=error.status_code,
        content=jsonable_encoder(body),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register the global exception handlers.

    Handler hierarchy:
        AppError                → rendered as-is
        RequestValidationError  → 400 (FastAPI path/query/body parsing)
        HTTPException 404/405   → 404 "Can't find <url> on this server!"
        HTTPException (other)   → rendered with its own status
        Exception (fallback)    → logged with stack, 500
    """

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        else:
            logger.info("[%s] %d %s", rid, exc.status_code, exc.message)
        return render_error(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        error = normalize_error(exc)
        logger.info("[%s] Validation error: %s", request_id_var.get(""), error.message)
        return render_error(error)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        # No route matched the method + path
        if exc.status_code in (404, 405):
            url = request.url.path
            if request.url.query:
                url = f"{url}?{request.url.query}"
            return render_error(RouteNotFoundError(url))
        return render_error(AppError(str(exc.detail), status_code=exc.status_code))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        error = normalize_error(exc)
        if error.is_operational:
            logger.info("[%s] %d %s", rid, error.status_code, error.message)
        else:
            logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=exc)
        return render_error(error)
