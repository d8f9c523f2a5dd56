"""
Natours Backend — Rate Limiting Middleware
============================================

What:  Per-IP sliding window rate limiter for the /api surface.
Why:   Protects the API from abuse: 100 requests per IP per hour by default.
How:   SlidingWindowLimiter keeps the request timestamps of each client
       inside the window; RateLimitMiddleware asks it for a decision on
       every /api request and renders 429 through the error normalizer.
Who:   Applied to every request via Starlette middleware; only paths under
       /api are counted.
When:  Outermost application middleware (rejects abuse before any processing).

Algorithm: Sliding Window Log
    1. Each IP gets a deque of request timestamps
    2. On each request, drop timestamps older than the window
    3. If remaining count >= limit, reject with 429
    4. Otherwise, record the current timestamp and allow through

    Why sliding window (not fixed window):
    - Fixed window: 100 req/hr resets at :00 → can burst 200 at :59/:00 boundary
    - Sliding window: Always counts last N seconds → smooth rate enforcement

Response headers:
    X-RateLimit-Limit       configured budget
    X-RateLimit-Remaining   requests left in the current window
    Retry-After             (429 only) seconds until the oldest request expires

Production Upgrade Path:
    The in-memory store is per process. For multi-worker deployments back
    the limiter with a shared store (e.g. Redis INCR with TTL).
"""

import logging
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from natours.config import settings
from natours.error_handlers import render_error
from natours.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int = 0


class SlidingWindowLimiter:
    """
    In-memory sliding window log keyed by client.

    Args:
        max_requests:   budget per window
        window_seconds: window length
        clock:          time source, injectable for tests

    Thread Safety:
        Safe for single-process async (uvicorn): hit() never awaits.
    """

    CLEANUP_EVERY = 1000

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._calls = 0

    def hit(self, key: str) -> RateLimitDecision:
        """Record one request for `key` unless it is over budget."""
        now = self._clock()
        window_start = now - self.window_seconds
        hits = self._hits[key]
        while hits and hits[0] <= window_start:
            hits.popleft()

        self._calls += 1
        if self._calls % self.CLEANUP_EVERY == 0:
            self._cleanup(window_start)

        if len(hits) >= self.max_requests:
            retry_after = int(hits[0] + self.window_seconds - now) + 1
            return RateLimitDecision(False, self.max_requests, 0, retry_after)

        hits.append(now)
        return RateLimitDecision(True, self.max_requests, self.max_requests - len(hits))

    def reset(self) -> None:
        self._hits.clear()

    def _cleanup(self, window_start: float) -> None:
        """Forget clients with no request inside the current window."""
        inactive = [key for key, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for key in inactive:
            del self._hits[key]
        if inactive:
            logger.debug("Cleaned up %d inactive rate limit entries", len(inactive))


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies a SlidingWindowLimiter to every request under `path_prefix`.

    Configuration (from settings unless a limiter is injected):
        rate_limit_requests: Max requests per window (default: 100)
        rate_limit_window:   Window duration in seconds (default: 3600)
    """

    def __init__(
        self,
        app,
        limiter: Optional[SlidingWindowLimiter] = None,
        path_prefix: str = "/api",
    ):
        super().__init__(app)
        self.limiter = limiter or SlidingWindowLimiter(
            settings.rate_limit_requests, settings.rate_limit_window
        )
        self.path_prefix = path_prefix

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        # Behind a proxy this is the proxy's address unless uvicorn runs
        # with --proxy-headers
        client_ip = request.client.host if request.client else "unknown"
        decision = self.limiter.hit(client_ip)

        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ss window",
                client_ip,
                decision.limit,
                self.limiter.window_seconds,
            )
            response = render_error(RateLimitExceededError(retry_after=decision.retry_after))
        else:
            response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response
