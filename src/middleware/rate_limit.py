"""Sliding-window rate limiting keyed by an anonymised client address.

Two budgets apply: a general per-minute budget for every API route, and
a much smaller one for anonymous tracking-id lookups.  With only 9000
identifiers per year, an unthrottled lookup route could be enumerated
in minutes.

Client addresses are never stored in the clear; the limiter keys on a
salted hash that changes every process start.
"""

from __future__ import annotations

import asyncio
import hashlib
import secrets
import time
from collections import deque
from typing import Final

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_EXEMPT_PATHS: Final[frozenset[str]] = frozenset({
    "/api/v1/health",
    "/api/v1/health/ready",
    "/docs",
    "/redoc",
    "/openapi.json",
})

LOOKUP_PATH_PREFIX: Final[str] = "/api/v1/complaints/track/"


class SlidingWindowLimiter:
    """Per-key request log over a fixed trailing window.

    :meth:`hit` records a request and returns ``(allowed, remaining,
    retry_after_seconds)``.  Rejected requests are not recorded.
    """

    __slots__ = ("_events", "_max_requests", "_window_seconds")

    def __init__(self, max_requests: int, window_seconds: float = 60.0) -> None:
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._events: dict[str, deque[float]] = {}

    @property
    def max_requests(self) -> int:
        return self._max_requests

    def hit(self, key: str, now: float) -> tuple[bool, int, int]:
        window = self._events.setdefault(key, deque())
        window_start = now - self._window_seconds
        while window and window[0] <= window_start:
            window.popleft()

        if len(window) >= self._max_requests:
            retry_after = max(1, int(self._window_seconds - (now - window[0])) + 1)
            return False, 0, retry_after

        window.append(now)
        return True, self._max_requests - len(window), 0

    def prune(self, now: float) -> int:
        """Drop keys with no requests inside the window; return how many."""
        window_start = now - self._window_seconds
        stale = [k for k, dq in self._events.items() if not dq or dq[-1] <= window_start]
        for key in stale:
            del self._events[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._events)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Apply the general and lookup budgets to incoming requests.

    Parameters
    ----------
    app:
        The ASGI application.
    max_requests_per_minute:
        General budget per client.
    lookup_requests_per_minute:
        Budget per client for ``/api/v1/complaints/track/*``.
    trusted_proxy_count:
        Number of reverse proxies in front of the service.  The client
        address is taken from ``X-Forwarded-For`` at index
        ``-(trusted_proxy_count + 1)``; ``0`` uses the socket address.
    """

    def __init__(
        self,
        app: object,
        max_requests_per_minute: int = 60,
        lookup_requests_per_minute: int = 10,
        trusted_proxy_count: int = 1,
    ) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._general = SlidingWindowLimiter(max_requests_per_minute)
        self._lookup = SlidingWindowLimiter(lookup_requests_per_minute)
        self._trusted_proxy_count = trusted_proxy_count
        self._salt = secrets.token_bytes(16)
        self._lock = asyncio.Lock()
        self._hits_since_prune = 0

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if path in _EXEMPT_PATHS or not path.startswith("/api/"):
            return await call_next(request)

        limiter = self._lookup if path.startswith(LOOKUP_PATH_PREFIX) else self._general
        key = self._client_key(request)
        now = time.monotonic()

        async with self._lock:
            self._hits_since_prune += 1
            if self._hits_since_prune >= 1000:
                self._hits_since_prune = 0
                removed = self._general.prune(now) + self._lookup.prune(now)
                logger.debug("rate_limit.pruned", removed=removed)
            allowed, remaining, retry_after = limiter.hit(key, now)

        if not allowed:
            logger.warning(
                "rate_limit.exceeded",
                budget="lookup" if limiter is self._lookup else "general",
                max_rpm=limiter.max_requests,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "detail": "Too many requests. Please try again later.",
                    "retry_after_seconds": retry_after,
                },
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(limiter.max_requests),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

    def _client_address(self, request: Request) -> str:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for and self._trusted_proxy_count > 0:
            ips = [ip.strip() for ip in forwarded_for.split(",")]
            index = -(self._trusted_proxy_count + 1)
            return ips[index] if abs(index) <= len(ips) else ips[0]
        if request.client:
            return request.client.host
        return "unknown"

    def _client_key(self, request: Request) -> str:
        address = self._client_address(request)
        return hashlib.blake2b(address.encode(), key=self._salt, digest_size=16).hexdigest()
