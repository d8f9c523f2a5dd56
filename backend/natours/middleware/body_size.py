"""
Natours Backend — Request Body Size Limit
===========================================

What:  Rejects request bodies larger than MAX_BODY_SIZE (10 KB) with 413.
Why:   JSON documents in this API are small; large bodies are abuse.
How:   Pure ASGI middleware, two checks:
       1. Content-Length header → reject before reading anything
       2. Actual bytes received → buffered while counting, rejected as soon
          as the count passes the cap (chunked bodies have no header)
       An accepted body is replayed to the application unchanged.
"""

import logging
from typing import List

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from natours.config import settings
from natours.error_handlers import render_error
from natours.exceptions import PayloadTooLargeError

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware:
    """Caps request bodies at `max_body_size` bytes."""

    def __init__(self, app: ASGIApp, max_body_size: int = 0):
        self.app = app
        self.max_body_size = max_body_size or settings.max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers") or [])
        declared = headers.get(b"content-length")
        if declared is not None:
            try:
                too_large = int(declared) > self.max_body_size
            except ValueError:
                too_large = False
            if too_large:
                await self._reject(scope, receive, send)
                return

        chunks: List[bytes] = []
        received = 0
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                return
            body = message.get("body", b"")
            received += len(body)
            if received > self.max_body_size:
                await self._reject(scope, receive, send)
                return
            chunks.append(body)
            if not message.get("more_body", False):
                break

        body = b"".join(chunks)
        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        await self.app(scope, replay, send)

    async def _reject(self, scope: Scope, receive: Receive, send: Send) -> None:
        logger.warning(
            "Rejected %s %s: body over %d bytes",
            scope.get("method"),
            scope.get("path"),
            self.max_body_size,
        )
        response = render_error(PayloadTooLargeError(self.max_body_size))
        await response(scope, receive, send)
