"""Rate limiting middleware for the public booking endpoints.

Implements rate limiting to prevent:
- Slot hoarding through repeated holds
- Session token guessing on confirmation
- Cancel token enumeration
- Calendar scraping

Counters live in process memory, so each worker enforces its own budget.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from app.booking.results import BookingErrorCode, error_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Allowed requests per client within one fixed window."""

    requests: int
    window_seconds: int = 60


@dataclass
class RateLimitWindow:
    """Counter for one client key; the window opens on its first request."""

    opened_at: float
    count: int = 0


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of counting one request."""

    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_seconds),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.reset_seconds)
        return headers


# Per-IP budgets for the public booking routes
DEFAULT_RATE_LIMITS: dict[tuple[str, str], RateLimitConfig] = {
    ("POST", "/api/bookings"): RateLimitConfig(requests=10),
    ("POST", "/api/bookings/confirm"): RateLimitConfig(requests=5),
    ("POST", "/api/bookings/cancel"): RateLimitConfig(requests=10),
    ("GET", "/api/bookings/cancel"): RateLimitConfig(requests=10),
    ("GET", "/api/availability"): RateLimitConfig(requests=60),
}


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request.

    Handles X-Forwarded-For header for reverse proxy scenarios.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # First hop is the original client
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"


class InMemoryRateLimitStorage:
    """Fixed-window counters keyed by endpoint and client."""

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        sweep_interval_seconds: int = 300,
    ) -> None:
        self._windows: dict[str, RateLimitWindow] = {}
        self._clock = clock
        self._sweep_interval = sweep_interval_seconds
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float, max_age: int) -> None:
        """Forget windows that closed long ago."""
        if now - self._last_sweep < self._sweep_interval:
            return
        stale = [key for key, window in self._windows.items() if now - window.opened_at > max_age]
        for key in stale:
            del self._windows[key]
        self._last_sweep = now

    def hit(self, key: str, config: RateLimitConfig) -> RateLimitDecision:
        """Count one request against ``key`` and decide whether it may pass."""
        now = self._clock()
        self._sweep(now, max_age=max(config.window_seconds, 3600))

        window = self._windows.get(key)
        if window is None or now - window.opened_at >= config.window_seconds:
            window = RateLimitWindow(opened_at=now)
            self._windows[key] = window

        reset = max(int(config.window_seconds - (now - window.opened_at)), 1)

        if window.count >= config.requests:
            return RateLimitDecision(False, config.requests, 0, reset)

        window.count += 1
        return RateLimitDecision(True, config.requests, config.requests - window.count, reset)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware for FastAPI.

    Applies rate limits to configured endpoints based on client IP.
    Returns 429 with the JSON error envelope when limits are exceeded.
    """

    def __init__(
        self,
        app,
        rate_limits: dict[tuple[str, str], RateLimitConfig] | None = None,
        storage: InMemoryRateLimitStorage | None = None,
        enabled: bool = True,
    ) -> None:
        super().__init__(app)
        self.rate_limits = rate_limits if rate_limits is not None else DEFAULT_RATE_LIMITS
        self.storage = storage if storage is not None else InMemoryRateLimitStorage()
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next) -> Response:
        """Process request and apply rate limiting."""
        if not self.enabled:
            return await call_next(request)

        method = request.method
        path = request.url.path.rstrip("/") or "/"

        config = self.rate_limits.get((method, path))
        if config is None:
            return await call_next(request)

        client_ip = get_client_ip(request)
        decision = self.storage.hit(f"{method}:{path}:{client_ip}", config)

        if not decision.allowed:
            logger.warning(f"Rate limit exceeded: {method} {path} from {client_ip}")
            code = BookingErrorCode.RATE_LIMIT_EXCEEDED
            return JSONResponse(
                status_code=429,
                content={
                    "ok": False,
                    "code": code.value,
                    "message": error_message(code),
                    "retryAfter": decision.reset_seconds,
                },
                headers=decision.headers(),
            )

        response = await call_next(request)
        response.headers.update(decision.headers())
        return response
