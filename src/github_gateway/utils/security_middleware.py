"""
Security headers and per-client rate limiting for the gateway.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .status_codes import HTTPStatus

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-DNS-Prefetch-Control": "off",
}

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add conservative security headers to every response."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class FixedWindowRateLimiter:
    """Counts requests per key in fixed time windows."""

    def __init__(
        self,
        max_requests: int,
        window_s: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_s = window_s
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = asyncio.Lock()

    async def hit(self, key: str) -> tuple[bool, int, float]:
        """
        Record one request for ``key``.

        Returns:
            (allowed, remaining, seconds until the window resets)
        """
        async with self._lock:
            now = self._clock()
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_s:
                started, count = now, 0
            count += 1
            self._windows[key] = (started, count)
            self._evict(now)

        reset_in = max(0.0, self.window_s - (now - started))
        remaining = max(0, self.max_requests - count)
        return count <= self.max_requests, remaining, reset_in

    def _evict(self, now: float) -> None:
        expired = [k for k, (s, _) in self._windows.items() if now - s >= self.window_s]
        for k in expired:
            del self._windows[k]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject clients exceeding ``max_requests`` per window with 429."""

    def __init__(
        self,
        app,
        max_requests: int,
        window_s: int,
        exempt_paths: Optional[set[str]] = None,
    ) -> None:
        super().__init__(app)
        self.limiter = FixedWindowRateLimiter(max_requests, window_s)
        self.exempt_paths = exempt_paths or {"/health"}

    async def dispatch(self, request: Request, call_next):
        if self.limiter.max_requests <= 0 or request.url.path in self.exempt_paths:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        allowed, remaining, reset_in = await self.limiter.hit(client_ip)
        headers = {
            "X-RateLimit-Limit": str(self.limiter.max_requests),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Reset": str(int(reset_in)),
        }

        if not allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={"json_data": {"ip": client_ip, "path": request.url.path}},
            )
            return JSONResponse(
                status_code=HTTPStatus.TOO_MANY_REQUESTS,
                content={"error": RATE_LIMIT_MESSAGE},
                headers={**headers, "Retry-After": str(int(reset_in) or 1)},
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
