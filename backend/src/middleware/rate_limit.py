"""
Fixed-window rate limiting with pluggable counter storage.

Protects API endpoints from abuse by counting requests per
(route, scope key) inside fixed time windows. The window boundary is
``floor(now / window_seconds)``; the N-th request in a window is allowed and
the (N+1)-th is rejected. Counters roll over when time crosses into the next
window.

Features:
- Injectable RateLimitStore (in-process map or shared Redis)
- Increments are serialized per key, never behind a process-wide lock
- Returns 429 with Retry-After header when exceeded
- Graceful degradation if Redis is unavailable (allow request, log warning)

Configuration (environment variables, see src.config.settings):
- RATE_LIMIT_BACKEND:  "redis" or "memory" (default: "redis" when REDIS_URL set)
- RATE_LIMIT_ENABLED:  Kill switch (default: "true")
- REDIS_URL:           Redis connection URL

The limiter instance lives on ``app.state.rate_limiter``; it is built once by
the application factory and replaced in tests with an in-memory store and a
fake clock.
"""

import itertools
import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import redis
from fastapi import Request, status

from src.config.settings import (
    RATE_LIMIT_BACKEND_REDIS,
    get_rate_limit_backend,
    get_redis_url,
)
from src.platform.errors import ErrorCode, GuardFailure

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class RateLimitStoreError(Exception):
    """The counter store could not be reached."""


# ---------------------------------------------------------------------------
# Counter stores
# ---------------------------------------------------------------------------

class RateLimitStore(ABC):
    """Counter storage used by the rate limiter."""

    @abstractmethod
    def get(self, key: str) -> int:
        """Current count for ``key`` (0 when absent or expired)."""

    @abstractmethod
    def increment(self, key: str, ttl_seconds: int) -> int:
        """
        Atomically add one to ``key`` and return the new count.

        A key that is absent or expired starts again at 1 and lives for
        ``ttl_seconds``.
        """

    @abstractmethod
    def expire(self, key: str, ttl_seconds: int) -> None:
        """Reset the lifetime of ``key``; a non-positive TTL drops it."""


@dataclass
class _Counter:
    count: int
    expires_at: float


class InMemoryRateLimitStore(RateLimitStore):
    """
    Process-local counters.

    Increments are serialized per key through a fixed pool of striped locks:
    a key always maps to the same lock, and unrelated keys rarely share one.
    Expired counters are swept every ``sweep_every`` increments.
    """

    def __init__(self, clock: Clock = time.time, sweep_every: int = 1000, lock_stripes: int = 64):
        self._clock = clock
        self._counters: Dict[str, _Counter] = {}
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(lock_stripes)]
        self._sweep_every = sweep_every
        self._ops = itertools.count(1)

    def _lock_for(self, key: str) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]

    def get(self, key: str) -> int:
        counter = self._counters.get(key)
        if counter is None or counter.expires_at <= self._clock():
            return 0
        return counter.count

    def increment(self, key: str, ttl_seconds: int) -> int:
        with self._lock_for(key):
            now = self._clock()
            counter = self._counters.get(key)
            if counter is None or counter.expires_at <= now:
                counter = _Counter(count=0, expires_at=now + ttl_seconds)
                self._counters[key] = counter
            counter.count += 1
            count = counter.count

        if self._sweep_every and next(self._ops) % self._sweep_every == 0:
            self.sweep()
        return count

    def expire(self, key: str, ttl_seconds: int) -> None:
        with self._lock_for(key):
            if ttl_seconds <= 0:
                self._counters.pop(key, None)
                return
            counter = self._counters.get(key)
            if counter is not None:
                counter.expires_at = self._clock() + ttl_seconds

    def sweep(self) -> int:
        """Drop expired counters. Returns how many were removed."""
        removed = 0
        for key in list(self._counters):
            with self._lock_for(key):
                counter = self._counters.get(key)
                if counter is not None and counter.expires_at <= self._clock():
                    del self._counters[key]
                    removed += 1
        return removed


class RedisRateLimitStore(RateLimitStore):
    """
    Shared counters for multi-instance deployments.

    INCR is atomic on the server, so concurrent workers never undercount.
    The connection is created lazily on first use so that the module can be
    imported even when Redis is not yet available.
    """

    def __init__(self, redis_url: str, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self._redis: Optional[redis.Redis] = client

    def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        return self._redis

    def get(self, key: str) -> int:
        try:
            raw = self._get_redis().get(key)
        except redis.RedisError as exc:
            raise RateLimitStoreError(str(exc)) from exc
        return int(raw) if raw else 0

    def increment(self, key: str, ttl_seconds: int) -> int:
        try:
            pipe = self._get_redis().pipeline(transaction=True)
            pipe.incr(key)
            pipe.expire(key, ttl_seconds)
            results = pipe.execute()
        except redis.RedisError as exc:
            raise RateLimitStoreError(str(exc)) from exc
        return int(results[0])

    def expire(self, key: str, ttl_seconds: int) -> None:
        try:
            r = self._get_redis()
            if ttl_seconds <= 0:
                r.delete(key)
            else:
                r.expire(key, ttl_seconds)
        except redis.RedisError as exc:
            raise RateLimitStoreError(str(exc)) from exc


def create_rate_limit_store() -> RateLimitStore:
    """Build the store selected by RATE_LIMIT_BACKEND / REDIS_URL."""
    if get_rate_limit_backend() == RATE_LIMIT_BACKEND_REDIS:
        return RedisRateLimitStore(get_redis_url())
    return InMemoryRateLimitStore()


# ---------------------------------------------------------------------------
# Rate limit result dataclass
# ---------------------------------------------------------------------------

@dataclass
class RateLimitResult:
    """
    Result of a rate limit check.

    Attributes:
        allowed:     Whether the request is allowed.
        count:       Requests counted in the current window, this one included.
        limit:       Maximum number of requests allowed per window.
        remaining:   Number of requests remaining in the current window.
        reset_at:    Unix timestamp when the current window ends.
        retry_after: Seconds until the client should retry (0 if allowed).
    """

    allowed: bool
    count: int
    limit: int
    remaining: int
    reset_at: float
    retry_after: int


# ---------------------------------------------------------------------------
# FixedWindowRateLimiter
# ---------------------------------------------------------------------------

class FixedWindowRateLimiter:
    """Fixed-window limiter over a RateLimitStore."""

    def __init__(self, store: RateLimitStore, clock: Clock = time.time):
        self.store = store
        self._clock = clock

    @staticmethod
    def build_key(route: str, scope_key: str, bucket: int) -> str:
        return f"rl:{route}:{scope_key}:{bucket}"

    def hit(
        self,
        route: str,
        scope_key: str,
        limit: int,
        window_seconds: int,
    ) -> RateLimitResult:
        """
        Count one request against ``(route, scope_key)``.

        Algorithm:
        1. bucket = floor(now / window); key ``rl:{route}:{scope}:{bucket}``
        2. Increment the key (TTL = time left in the window)
        3. Deny when the post-increment count exceeds ``limit``

        The increment stands even when the request is denied or later
        aborted.
        """
        if limit < 0 or window_seconds <= 0:
            raise ValueError("limit must be >= 0 and window_seconds > 0")

        now = self._clock()
        bucket = int(now // window_seconds)
        reset_at = float((bucket + 1) * window_seconds)
        seconds_left = max(1, int(math.ceil(reset_at - now)))
        key = self.build_key(route, scope_key, bucket)

        try:
            count = self.store.increment(key, seconds_left)
        except RateLimitStoreError as exc:
            # Graceful degradation: allow the request and log a warning.
            logger.warning(
                "Rate limit store unavailable - allowing request (fail-open)",
                extra={
                    "error": str(exc),
                    "route": route,
                    "scope_key": scope_key,
                },
            )
            return RateLimitResult(
                allowed=True,
                count=0,
                limit=limit,
                remaining=limit,
                reset_at=reset_at,
                retry_after=0,
            )

        if count > limit:
            return RateLimitResult(
                allowed=False,
                count=count,
                limit=limit,
                remaining=0,
                reset_at=reset_at,
                retry_after=seconds_left,
            )

        return RateLimitResult(
            allowed=True,
            count=count,
            limit=limit,
            remaining=limit - count,
            reset_at=reset_at,
            retry_after=0,
        )

    def check(
        self,
        route: str,
        scope_key: str,
        limit: int,
        window_seconds: int,
    ) -> Optional[GuardFailure]:
        """Guard form of ``hit``: None to proceed, TOO_MANY_REQUESTS otherwise."""
        result = self.hit(route, scope_key, limit, window_seconds)
        if result.allowed:
            return None
        return GuardFailure(
            code=ErrorCode.TOO_MANY_REQUESTS,
            message="Too many requests",
            http_status=status.HTTP_429_TOO_MANY_REQUESTS,
            retry_after=result.retry_after,
            details={"limit": result.limit, "route": route},
        )


def build_rate_limiter() -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(create_rate_limit_store())


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    """Return the limiter installed on the application."""
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        limiter = build_rate_limiter()
        request.app.state.rate_limiter = limiter
    return limiter


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then "unknown"."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.headers.get("x-real-ip") or "unknown"
