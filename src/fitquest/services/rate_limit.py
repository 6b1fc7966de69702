"""Per-client throttling for the auth endpoints.

Sliding window counters kept in process memory, keyed by limit type and
client IP. Limits are per process; multiple API workers each count
separately.
"""

import asyncio
import time
from collections import defaultdict, deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from fastapi import Request


class RateLimitType(str, Enum):
    """Rate limit categories."""

    # Credential checks and token minting (register, login, refresh, reset)
    AUTH = "auth"
    # Endpoints that trigger an outbound email
    EMAIL = "email"


@dataclass(frozen=True)
class RateLimitPolicy:
    requests: int
    window_seconds: int


RATE_LIMIT_POLICIES: dict[RateLimitType, RateLimitPolicy] = {
    RateLimitType.AUTH: RateLimitPolicy(requests=10, window_seconds=60),
    RateLimitType.EMAIL: RateLimitPolicy(requests=5, window_seconds=300),
}


@dataclass
class RateLimitResult:
    """Outcome of counting one request against a policy."""

    allowed: bool
    limit: int
    remaining: int
    reset: int  # Unix timestamp in seconds

    def headers(self) -> dict[str, str]:
        """``X-RateLimit-*`` response headers, plus ``Retry-After`` when blocked."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }
        if not self.allowed:
            headers["Retry-After"] = str(max(0, self.reset - int(time.time())))
        return headers


class InMemoryRateLimiter:
    """Sliding window limiter over per-client request timestamps."""

    # How often ``hit`` sweeps out clients with no requests left in their window
    SWEEP_INTERVAL_SECONDS = 60

    def __init__(
        self,
        policies: dict[RateLimitType, RateLimitPolicy] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.policies = policies or RATE_LIMIT_POLICIES
        self._clock = clock
        self._hits: dict[tuple[RateLimitType, str], deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self._next_sweep = 0.0

    async def hit(self, limit_type: RateLimitType, client: str) -> RateLimitResult:
        """Count a request from ``client`` unless it is already over the limit."""
        policy = self.policies[limit_type]
        now = self._clock()

        async with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
                self._next_sweep = now + self.SWEEP_INTERVAL_SECONDS

            hits = self._hits[(limit_type, client)]
            while hits and hits[0] <= now - policy.window_seconds:
                hits.popleft()

            if len(hits) >= policy.requests:
                return RateLimitResult(
                    allowed=False,
                    limit=policy.requests,
                    remaining=0,
                    reset=int(hits[0] + policy.window_seconds),
                )

            hits.append(now)
            return RateLimitResult(
                allowed=True,
                limit=policy.requests,
                remaining=policy.requests - len(hits),
                reset=int(now + policy.window_seconds),
            )

    def _sweep(self, now: float) -> int:
        stale = [
            key
            for key, hits in self._hits.items()
            if not hits or hits[-1] <= now - self.policies[key[0]].window_seconds
        ]
        for key in stale:
            del self._hits[key]
        return len(stale)

    async def cleanup_old_entries(self) -> int:
        """Drop clients whose requests have all left the window.

        Returns:
            Number of clients removed
        """
        async with self._lock:
            return self._sweep(self._clock())

    def reset(self) -> None:
        """Forget every recorded request."""
        self._hits.clear()
        self._next_sweep = 0.0


_rate_limiter = InMemoryRateLimiter()


def get_rate_limiter() -> InMemoryRateLimiter:
    """Get the process-wide rate limiter."""
    return _rate_limiter


def get_client_ip(request: Request) -> str | None:
    """Client address, honouring the first hop of proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return None
