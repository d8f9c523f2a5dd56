"""
Natours Backend — FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes app configuration, middleware registration, route mounting,
       and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn natours.main:app).
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌──────────┐ ┌────────────┐ ┌───────────┐ ┌──────────┐  │
    │  │ Security │→│ Rate Limit │→│ Body Size │→│ Req ID   │  │
    │  └──────────┘ └────────────┘ └───────────┘ └──────────┘  │
    │                                                          │
    │  Routes:                                                 │
    │  ┌──────────────┐ ┌──────────────┐ ┌────────────────┐    │
    │  │ /api/v1/tours│ │ /api/v1/users│ │ /api/v1/reviews│    │
    │  └──────────────┘ └──────────────┘ └────────────────┘    │
    │                                                          │
    │  Exception Handlers (natours.error_handlers):            │
    │  ┌────────────────────────────────────────────────────┐  │
    │  │ AppError → own status │ unmatched → 404 │ else 500 │  │
    │  └────────────────────────────────────────────────────┘  │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging (DEBUG in development)
    2. Validate configuration (logged, not fatal)
    3. Log startup complete

    Shutdown:
    1. Dispose database engine (close all connections)
    2. Log shutdown complete
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from natours import __version__
from natours.config import settings
from natours.database import dispose_engine
from natours.error_handlers import register_exception_handlers
from natours.middleware.body_size import BodySizeLimitMiddleware
from natours.middleware.logging import RequestLoggingMiddleware
from natours.middleware.rate_limit import RateLimitMiddleware, SlidingWindowLimiter
from natours.middleware.request_id import RequestIDMiddleware
from natours.middleware.security_headers import SecurityHeadersMiddleware
from natours.routes import health, reviews, tours, users

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s

    Development runs at DEBUG regardless of LOG_LEVEL; every other
    environment uses LOG_LEVEL.
    """
    level = logging.DEBUG if settings.is_development else getattr(logging, settings.log_level, logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Docker captures stdout
        ],
        force=True,  # Override any existing logging config
    )

    # Third-party libraries are noisy at DEBUG/INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Manage application lifecycle: startup and shutdown procedures.

    Code before `yield` runs on startup, code after it on shutdown.
    """
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Natours Backend %s starting up (%s)...", __version__, settings.environment)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")
        # Keep serving: /health reports whether the database is reachable

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield  # Application runs here

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Natours Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(rate_limiter: Optional[SlidingWindowLimiter] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        rate_limiter: limiter shared by the rate limit middleware; a fresh
                      one from settings when omitted. Exposed as
                      app.state.rate_limiter.
    Returns:
        Fully configured FastAPI instance ready to receive requests.
    """
    app = FastAPI(
        title="Natours API",
        description=(
            "Tour booking REST API: tours, users and reviews with filtering, "
            "sorting, pagination, statistics and geospatial search."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    limiter = rate_limiter or SlidingWindowLimiter(
        settings.rate_limit_requests, settings.rate_limit_window
    )
    app.state.rate_limiter = limiter

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition (last added = outermost).
    # Execution order: Security → RateLimit → BodySize → RequestID → Logging → GZip → CORS

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "Retry-After",
        ],
    )

    # Skip compressing small responses (overhead > savings)
    app.add_middleware(GZipMiddleware, minimum_size=500)

    if settings.is_development:
        app.add_middleware(RequestLoggingMiddleware)

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(BodySizeLimitMiddleware, max_body_size=settings.max_body_size)
    app.add_middleware(RateLimitMiddleware, limiter=limiter)
    app.add_middleware(SecurityHeadersMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(tours.router)
    app.include_router(reviews.nested_router)
    app.include_router(reviews.router)
    app.include_router(users.router)
    app.include_router(health.router)

    return app


# uvicorn expects `natours.main:app` to be importable
app = create_app()
