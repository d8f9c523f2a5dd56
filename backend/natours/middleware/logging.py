"""
Natours Backend — Request Logging Middleware
==============================================

What:  One access log line per request: method, path, status, duration.
Why:   Development aid; production relies on the server's access log.
How:   Measures wall time around the downstream call and logs at a level
       chosen by the status class (5xx ERROR, 4xx WARNING, else INFO).
When:  Registered by create_app() only when ENVIRONMENT=development.

What we log vs what we DON'T log (privacy):
    ✅ Log: method, path, query, status, duration, IP, request ID
    ❌ Don't log: request bodies (may contain PII)
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from natours.middleware.request_id import request_id_var

logger = logging.getLogger("natours.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request/response pair with its duration."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        path = request.url.path
        if request.url.query:
            path = f"{path}?{request.url.query}"

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            request_id_var.get(""),
            client_ip,
        )
        return response
