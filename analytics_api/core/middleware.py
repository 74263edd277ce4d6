"""
Request tracking, rate limiting and security headers.
"""

import time
import uuid
from typing import Callable

from cachetools import TTLCache
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .config import RATE_LIMIT_REQUESTS, RATE_LIMIT_WINDOW_SECONDS
from .logging_config import get_logger

logger = get_logger(__name__)

HEALTH_PREFIX = "/api/health"
MAX_TRACKED_CLIENTS = 10_000


# ============================================================
# Request ID
# ============================================================

class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag every request with an X-Request-ID and log its outcome."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._log(request, request_id, status.HTTP_500_INTERNAL_SERVER_ERROR, start_time)
            raise

        response.headers["X-Request-ID"] = request_id
        self._log(request, request_id, response.status_code, start_time)
        return response

    @staticmethod
    def _log(request: Request, request_id: str, status_code: int, start_time: float) -> None:
        logger.info(
            "API request",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
            },
        )


# ============================================================
# Rate limiting
# ============================================================

class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed-window rate limiter per client IP.

    A client's window opens with its first request and lasts
    ``window_seconds``; past ``max_requests`` it gets 429 until the window
    closes. Health probes are never limited.
    """

    def __init__(
        self,
        app,
        max_requests: int = RATE_LIMIT_REQUESTS,
        window_seconds: int = RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        # {ip: [window_opened_at, count]}; the entry expires with its window
        self.windows: TTLCache = TTLCache(maxsize=MAX_TRACKED_CLIENTS, ttl=window_seconds, timer=clock)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path.startswith(HEALTH_PREFIX):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        window = self.windows.get(client_ip)
        if window is None:
            window = [self.clock(), 0]
            self.windows[client_ip] = window

        if window[1] >= self.max_requests:
            retry_after = max(1, int(window[0] + self.window_seconds - self.clock()))
            logger.warning("Rate limit exceeded", extra={"ip": client_ip, "path": request.url.path})
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"status": "error", "error": "Too many requests, please try again later."},
                headers={"Retry-After": str(retry_after)},
            )

        # mutate in place so the window's expiry stays anchored to its first request
        window[1] += 1
        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(self.max_requests - window[1])
        return response


# ============================================================
# Security headers
# ============================================================

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Cross-Origin-Resource-Policy": "same-origin",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Set conservative browser security headers on every response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response
