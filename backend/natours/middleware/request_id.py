"""
Natours Backend — Request Context Middleware
==============================================

What:  Gives each request a short correlation ID and a request timestamp.
Why:   Every log line written while serving a request can be tied back to it,
       and handlers can read when the request arrived.
How:   Reads X-Request-ID from the client or generates one, stores it in a
       ContextVar (for loggers) and on request.state (for handlers), and
       echoes it in the response headers. request.state.request_time holds
       the arrival time as an ISO-8601 UTC string.
"""

import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one thread each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Assigns a correlation ID and arrival time to each request.

    Behavior:
        1. Use the client's X-Request-ID header if present, else a new short UUID
        2. Store it in request_id_var and request.state.request_id
        3. Store the arrival time in request.state.request_time
        4. Echo the ID in the X-Request-ID response header
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # 8 chars are enough for correlation and keep log lines short
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        token = request_id_var.set(rid)

        request.state.request_id = rid
        request.state.request_time = datetime.now(timezone.utc).isoformat()

        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = rid
        return response
