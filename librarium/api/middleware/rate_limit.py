"""
Login rate limiting.

Credential attempts are counted per client IP in fixed windows
(5 per 15 minutes by default). Requests to other endpoints pass through
untouched. Counters live in process memory, so the limit applies per
worker.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .error_handler import create_error_response

logger = logging.getLogger(__name__)

LOGIN_PATH = "/api/v1/auth/login"


@dataclass
class RateLimitConfig:
    """Limits for credential endpoints."""

    max_attempts: int = 5
    window_seconds: int = 15 * 60
    enabled: bool = True

    # (method, path) pairs that count as an attempt
    limited_routes: set = field(default_factory=lambda: {("POST", LOGIN_PATH)})

    # First hop of these headers wins over the socket address
    client_ip_headers: tuple = ("X-Forwarded-For", "X-Real-IP")


@dataclass
class AttemptWindow:
    """Attempts seen from one client since ``opened_at``."""

    opened_at: float
    attempts: int = 0


class InMemoryRateLimiter:
    """
    Fixed-window attempt counter.

    Usage:
        limiter = InMemoryRateLimiter(RateLimitConfig())
        allowed, remaining, retry_in = await limiter.check_rate_limit("10.0.0.7")
    """

    def __init__(self, config: RateLimitConfig, clock: Callable[[], float] = time.time):
        self.config = config
        self.clock = clock
        self._windows: Dict[str, AttemptWindow] = {}
        self._lock = asyncio.Lock()

    async def check_rate_limit(self, client: str) -> Tuple[bool, int, float]:
        """
        Record one attempt from ``client``.

        Returns:
            (allowed, attempts left in the window, seconds until the window resets)
        """
        async with self._lock:
            now = self.clock()
            window = self._windows.get(client)
            if window is None or now - window.opened_at >= self.config.window_seconds:
                window = self._windows[client] = AttemptWindow(opened_at=now)

            retry_in = self.config.window_seconds - (now - window.opened_at)
            if window.attempts >= self.config.max_attempts:
                return False, 0, retry_in

            window.attempts += 1
            return True, self.config.max_attempts - window.attempts, retry_in

    async def reset(self) -> None:
        """Forget every client."""
        async with self._lock:
            self._windows.clear()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Answers 429 with ``Retry-After`` once a client runs out of attempts."""

    def __init__(
        self,
        app: FastAPI,
        config: Optional[RateLimitConfig] = None,
        limiter: Optional[InMemoryRateLimiter] = None,
    ):
        super().__init__(app)
        self.config = config or RateLimitConfig()
        self.limiter = limiter or InMemoryRateLimiter(self.config)

    def _client_ip(self, request: Request) -> str:
        for header in self.config.client_ip_headers:
            value = request.headers.get(header)
            if value:
                return value.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        counted = (request.method, request.url.path) in self.config.limited_routes
        if not (self.config.enabled and counted):
            return await call_next(request)

        client_ip = self._client_ip(request)
        allowed, remaining, retry_in = await self.limiter.check_rate_limit(client_ip)

        if not allowed:
            logger.warning(f"Too many login attempts from {client_ip}")
            minutes = self.config.window_seconds // 60
            return create_error_response(
                error="Too many login attempts. Please try again later.",
                code="RATE_LIMIT_EXCEEDED",
                status_code=429,
                detail=f"At most {self.config.max_attempts} attempts every {minutes} minutes",
                headers={"Retry-After": str(int(retry_in) + 1)},
            )

        response = await call_next(request)
        response.headers["X-Rate-Limit-Remaining"] = str(remaining)
        return response


def setup_rate_limiting(app: FastAPI, config: Optional[RateLimitConfig] = None) -> InMemoryRateLimiter:
    """Install the login limiter and return it."""
    config = config or RateLimitConfig()
    limiter = InMemoryRateLimiter(config)
    app.add_middleware(RateLimitMiddleware, config=config, limiter=limiter)
    return limiter
