"""
Rate limiting middleware and utilities.
"""

import time
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Request, status
from fastapi.responses import JSONResponse

from procqueue.types.api import ErrorResponse

# Paths never subject to rate limiting
EXEMPT_PATHS = {"/health", "/live", "/ready", "/metrics", "/docs", "/openapi.json"}


@dataclass
class TokenBucket:
    """
    Token bucket for rate limiting.

    Implements a simple token bucket algorithm for per-client rate limiting.
    """

    capacity: float
    tokens: float
    refill_rate: float  # tokens per second
    last_refill: float

    def consume(self, tokens: float = 1.0) -> bool:
        """
        Try to consume tokens from the bucket.

        Args:
            tokens: Number of tokens to consume.

        Returns:
            True if tokens were consumed, False if rate limited.
        """
        now = time.time()

        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

        if self.tokens >= tokens:
            self.tokens -= tokens
            return True

        return False

    @property
    def wait_time(self) -> float:
        """Time in seconds until at least 1 token is available."""
        if self.tokens >= 1:
            return 0.0
        return (1 - self.tokens) / self.refill_rate


class RateLimiter:
    """
    In-memory rate limiter using token buckets, keyed by client address.
    """

    def __init__(
        self,
        requests_per_minute: int = 100,
        burst_capacity: int | None = None,
    ):
        """
        Initialize the rate limiter.

        Args:
            requests_per_minute: Maximum sustained requests per minute per client.
            burst_capacity: Maximum burst size. Defaults to the per-minute rate.
        """
        self._refill_rate = requests_per_minute / 60.0
        self._capacity = burst_capacity or requests_per_minute
        self._buckets: dict[str, TokenBucket] = defaultdict(self._create_bucket)

    def _create_bucket(self) -> TokenBucket:
        return TokenBucket(
            capacity=self._capacity,
            tokens=self._capacity,
            refill_rate=self._refill_rate,
            last_refill=time.time(),
        )

    def check(self, key: str, tokens: float = 1.0) -> tuple[bool, float]:
        """
        Check if a request is allowed.

        Args:
            key: Rate limit key (client address).
            tokens: Number of tokens to consume.

        Returns:
            Tuple of (allowed, wait_time_seconds).
        """
        bucket = self._buckets[key]
        allowed = bucket.consume(tokens)
        return allowed, bucket.wait_time

    def reset(self, key: str) -> None:
        """Reset rate limit for a key."""
        self._buckets.pop(key, None)


def client_key(request: Request) -> str:
    """Identify the caller, honouring a forwarding proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "anonymous"


def create_rate_limit_middleware(limiter: RateLimiter) -> Callable:
    """
    Create rate limiting middleware for FastAPI.

    Args:
        limiter: The limiter shared by all requests.

    Returns:
        The middleware function.
    """

    async def rate_limit_middleware(request: Request, call_next: Callable):
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        allowed, wait_time = limiter.check(client_key(request))
        if not allowed:
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content=ErrorResponse(
                    error="Too many requests, please try again later.",
                    detail=f"Retry after {wait_time:.1f} seconds",
                ).model_dump(),
                headers={"Retry-After": str(int(wait_time) + 1)},
            )

        return await call_next(request)

    return rate_limit_middleware
