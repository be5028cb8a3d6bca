"""
HTTP middleware: request ids and access logs, security headers, rate limiting.
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from imob_api.errors import RateLimitError
from imob_api.logging_utils import request_id_var
from imob_api.rate_limit import RATE_LIMIT_MESSAGE, TokenBucketRateLimiter

logger = logging.getLogger("imob_api.access")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a request id, logs the request and sets the security headers."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        latency_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s %s %s %.1fms [%s]",
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
            request_id,
        )
        response.headers["X-Request-ID"] = request_id
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Global per-IP token bucket applied to every request."""

    def __init__(self, app, limiter: TokenBucketRateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next) -> Response:
        if not self.limiter.allow(client_ip(request)):
            logger.warning("Rate limit exceeded for %s on %s", client_ip(request), request.url.path)
            return JSONResponse(
                status_code=429,
                content={"success": False, "error": RATE_LIMIT_MESSAGE},
            )
        return await call_next(request)


def strict_rate_limit(request: Request) -> None:
    """
    Route dependency for public endpoints that write (lead capture, confirmations).
    The limiter lives on app.state and is absent when rate limiting is off.
    """
    limiter = getattr(request.app.state, "strict_limiter", None)
    if limiter is not None and not limiter.allow(client_ip(request)):
        raise RateLimitError(RATE_LIMIT_MESSAGE)
