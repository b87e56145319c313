"""
In-memory sliding-window rate limiter for the public intake
"""

from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional
import math
import time

from starlette.requests import Request


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float     # epoch seconds when the oldest hit leaves the window

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_at)),
        }


class RateLimiter:
    """Allow at most max_requests per window_seconds per key"""

    def __init__(self, max_requests: int, window_seconds: int, clock: Optional[Callable[[], float]] = None):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock or time.time
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = self._clock()

    @property
    def tracked_keys(self) -> int:
        return len(self._hits)

    def _sweep(self, now: float) -> None:
        # Drop callers whose newest hit already left the window
        cutoff = now - self.window_seconds
        for key in [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[key]
        self._last_sweep = now

    def hit(self, key: str) -> RateLimitResult:
        now = self._clock()
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)
        hits = self._hits.setdefault(key, deque())
        while hits and hits[0] <= now - self.window_seconds:
            hits.popleft()

        if len(hits) >= self.max_requests:
            return RateLimitResult(False, self.max_requests, 0, hits[0] + self.window_seconds)

        hits.append(now)
        return RateLimitResult(
            True,
            self.max_requests,
            self.max_requests - len(hits),
            hits[0] + self.window_seconds,
        )

    def reset(self, key: Optional[str] = None):
        if key is None:
            self._hits.clear()
        else:
            self._hits.pop(key, None)


def client_ip(request: Request) -> str:
    """Caller address, preferring proxy headers"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client:
        return request.client.host
    return "unknown"
