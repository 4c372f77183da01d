"""Rate limiting for Starlette using throttled-py.

HTTP requests are limited per client IP by ``RateLimitMiddleware``. Signaling
frames on an open websocket are limited per connection by
``EventRateLimiter``; the middleware passes websocket traffic through.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from throttled import RateLimiterType, Throttled, rate_limiter, store

logger = logging.getLogger(__name__)


def extract_client_ip(request: Request) -> str:
    """Extract client IP address from request, supporting X-Forwarded-For header.

    Returns the first (original client) IP in the X-Forwarded-For chain.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        client_ip = forwarded_for.split(",")[0].strip()
        if client_ip:
            return client_ip

    if request.client and request.client.host:
        return request.client.host

    logger.warning("Could not determine client IP, using 'unknown'")
    return "unknown"


def extract_retry_after(result: Any) -> float:
    """Extract retry_after seconds from a throttled-py result (60 when absent)."""
    state = getattr(result, "state", None)
    if state is not None and hasattr(state, "retry_after"):
        return float(state.retry_after)
    return float(getattr(result, "retry_after", 60.0))


class EventRateLimiter:
    """Token-bucket limit on signaling events for one connection."""

    def __init__(self, key: str, events_per_minute: int, limiter_store: Any = None) -> None:
        """Initialize the limiter.

        Args:
            key: Connection handle the bucket belongs to.
            events_per_minute: Sustained events allowed per minute (also the burst).
            limiter_store: throttled-py store; a private MemoryStore by default.
        """
        self.key = key
        self._throttle = Throttled(
            key=f"ws:{key}",
            using=RateLimiterType.TOKEN_BUCKET.value,
            quota=rate_limiter.per_min(events_per_minute, burst=events_per_minute),
            store=limiter_store or store.MemoryStore(),
        )

    def allow(self) -> bool:
        """Consume one token; False when the connection is over its limit."""
        result = self._throttle.limit()
        if result.limited:
            logger.warning(
                f"Event rate limit exceeded for connection {self.key}, "
                f"retry after {extract_retry_after(result)} seconds"
            )
            return False
        return True


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce rate limiting per IP address."""

    def __init__(
        self,
        app: Callable,
        requests_per_minute: int = 100,
    ) -> None:
        """Initialize rate limiting middleware.

        Args:
            app: The ASGI application to wrap.
            requests_per_minute: Maximum number of requests allowed per IP per minute.
        """
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        # Each IP gets its own Throttled instance sharing this quota and store
        self.quota = rate_limiter.per_min(requests_per_minute, burst=requests_per_minute)
        self.rate_limiter_store = store.MemoryStore()
        logger.info(f"Rate limiting enabled: {requests_per_minute} requests per minute per IP")

    def _create_rate_limit_response(self, client_ip: str, retry_after: float) -> Response:
        """Create rate limit exceeded response."""
        logger.warning(f"Rate limit exceeded for IP {client_ip}, retry after {retry_after} seconds")
        return Response(
            content="Rate limit exceeded. Please try again later.",
            status_code=429,
            headers={"Retry-After": str(int(retry_after))},
        )

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Process request and enforce rate limiting."""
        client_ip = extract_client_ip(request)

        throttle = Throttled(
            key=client_ip,
            using=RateLimiterType.TOKEN_BUCKET.value,
            quota=self.quota,
            store=self.rate_limiter_store,
        )

        result = throttle.limit()
        if result.limited:
            return self._create_rate_limit_response(client_ip, extract_retry_after(result))

        response: Response = await call_next(request)
        return response
