"""
HTTP middleware: per-IP rate limiting, security headers and development
request logging.

The rate limiter keeps its counters in process memory: each worker process
limits independently.
"""

import logging
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from tours_api.errors import TooManyRequestsError

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """
    Allow at most `max_requests` per key within any `window_seconds` span.

    Each key keeps the timestamps of its recent requests; timestamps older
    than the window are dropped on every hit.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}

    def hit(self, key: str) -> Tuple[bool, int, float]:
        """
        Record a request for `key`.

        Returns:
            (allowed, remaining, retry_after_seconds). Rejected requests are
            not recorded.
        """
        now = self._clock()
        hits = self._hits.setdefault(key, deque())
        while hits and hits[0] <= now - self.window_seconds:
            hits.popleft()

        if len(hits) >= self.max_requests:
            retry_after = hits[0] + self.window_seconds - now
            return False, 0, max(retry_after, 0.0)

        hits.append(now)
        return True, self.max_requests - len(hits), 0.0

    def prune(self) -> None:
        """Forget keys with no requests inside the window."""
        cutoff = self._clock() - self.window_seconds
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[key]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Apply a SlidingWindowRateLimiter to every request under `path_prefix`."""

    def __init__(
        self,
        app: ASGIApp,
        limiter: SlidingWindowRateLimiter,
        path_prefix: str = "/api",
    ):
        super().__init__(app)
        self.limiter = limiter
        self.path_prefix = path_prefix
        self._requests_since_prune = 0

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        self._requests_since_prune += 1
        if self._requests_since_prune >= 1000:
            self.limiter.prune()
            self._requests_since_prune = 0

        client_ip = request.client.host if request.client else "unknown"
        allowed, remaining, retry_after = self.limiter.hit(client_ip)
        limit_headers = {
            "X-RateLimit-Limit": str(self.limiter.max_requests),
            "X-RateLimit-Remaining": str(remaining),
        }

        if not allowed:
            logger.warning(f"Rate limit exceeded for {client_ip} on {request.url.path}")
            error = TooManyRequestsError()
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_response(),
                headers={**limit_headers, "Retry-After": str(int(retry_after) + 1)},
            )

        response = await call_next(request)
        response.headers.update(limit_headers)
        return response


DEFAULT_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "X-XSS-Protection": "0",
    "Cross-Origin-Resource-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Set standard security headers on every response."""

    def __init__(self, app: ASGIApp, hsts: bool = False, extra: Optional[Dict[str, str]] = None):
        super().__init__(app)
        self.headers = dict(DEFAULT_SECURITY_HEADERS)
        if hsts:
            self.headers["Strict-Transport-Security"] = "max-age=15552000; includeSubDomains"
        self.headers.update(extra or {})

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per request: method, path, status and duration."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f} ms"
        )
        return response
