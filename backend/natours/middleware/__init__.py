"""
Natours Backend — Middleware Package
======================================

What:  Cross-cutting concerns applied to every request.
Why:   Middleware handles functionality needed across all routes without
       duplicating code in each route handler.

Middleware Chain (order matters!):
    Request → [Security Headers] → [Rate Limit] → [Body Size] → [Request ID]
            → [Logging (development)] → [GZip] → [CORS] → Route Handler

    Why this order:
    1. Security headers outermost: every response carries them, 429/413 included
    2. Rate Limit: reject abusive clients before reading their bodies
    3. Body Size: reject oversized bodies before routing
    4. Request ID: correlation ID for logging and error handlers
    5. Logging: development-only access log with the request ID
"""
