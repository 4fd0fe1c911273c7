"""
Compass Rate Limiter — fixed-window request quota per authenticated caller.

Per request:
    - no entry, or the window has elapsed (now > reset_at)
          → entry = {count: 1, reset_at: now + window}, allow
    - otherwise count += 1, reject when count > max_requests

Increments are never rolled back: a caller that keeps hammering a closed
window keeps climbing until the window rolls over.

Two stores:
    InMemoryWindowStore — process-local, TTL-swept and capped. At the cap the
                          least recently used callers with quota left are
                          evicted; an evicted caller starts a fresh window.
                          With N service instances the effective quota is
                          N × max_requests.
    RedisWindowStore    — shared INCR/PEXPIRE counter, one quota for the whole
                          deployment. Degrades to allow when Redis is down.

Concurrent requests from the same caller inside one process may race on the
counter and over-admit by a request or two. No lock is taken.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from compass.engine.cache import RedisCache
from compass.engine.errors import CompassRateLimitError

logger = logging.getLogger("compass.engine.rate_limit")

RATE_LIMIT_MESSAGE = "Too many requests. Try again later."

DEFAULT_MAX_REQUESTS = 10
DEFAULT_WINDOW_MS = 60_000


def _now_ms() -> float:
    return time.time() * 1000.0


@dataclass
class WindowEntry:
    """Per-caller counter for the current window."""

    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    count: int
    limit: int
    reset_at: float

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    def retry_after_seconds(self, now_ms: float) -> int:
        return max(1, int((self.reset_at - now_ms + 999) // 1000))


class WindowStore(ABC):
    """Where window counters live."""

    @abstractmethod
    def hit(self, key: str, now_ms: float, window_ms: int) -> Optional[WindowEntry]:
        """
        Record one request for ``key`` and return the post-increment entry,
        or None when the store cannot answer (caller should allow).
        """

    def reset(self, key: str) -> None:
        """Forget a caller's window."""


class InMemoryWindowStore(WindowStore):
    """
    Process-local window store with deliberate expiry.

    Expired entries are swept every ``sweep_interval_ms``. When the map grows
    past ``max_entries`` the least recently used entries are dropped first,
    skipping callers that have used up ``limit`` in their current window so
    that eviction never hands an exhausted caller a fresh quota. If every
    candidate is exhausted the least recently used go anyway.
    """

    def __init__(
        self,
        max_entries: int = 10_000,
        sweep_interval_ms: float = 60_000,
        limit: Optional[int] = None,
    ):
        self._entries: "OrderedDict[str, WindowEntry]" = OrderedDict()
        self._max_entries = max_entries
        self._sweep_interval_ms = sweep_interval_ms
        self._limit = limit
        self._last_sweep = 0.0

    def hit(self, key: str, now_ms: float, window_ms: int) -> Optional[WindowEntry]:
        if now_ms - self._last_sweep >= self._sweep_interval_ms:
            self.sweep(now_ms)

        entry = self._entries.get(key)
        if entry is None or now_ms > entry.reset_at:
            entry = WindowEntry(count=1, reset_at=now_ms + window_ms)
            self._entries[key] = entry
        else:
            entry.count += 1
        self._entries.move_to_end(key)
        if len(self._entries) > self._max_entries:
            self._evict(now_ms, keep=key)
        return WindowEntry(count=entry.count, reset_at=entry.reset_at)

    def reset(self, key: str) -> None:
        self._entries.pop(key, None)

    def sweep(self, now_ms: float) -> int:
        """Drop every entry whose window has elapsed. Returns count dropped."""
        expired = [k for k, e in self._entries.items() if now_ms > e.reset_at]
        for k in expired:
            del self._entries[k]
        self._last_sweep = now_ms
        if expired:
            logger.debug(f"Rate limit sweep dropped {len(expired)} expired entries")
        return len(expired)

    def _exhausted(self, entry: WindowEntry) -> bool:
        return self._limit is not None and entry.count >= self._limit

    def _evict(self, now_ms: float, keep: str) -> None:
        self.sweep(now_ms)
        overflow = len(self._entries) - self._max_entries
        if overflow <= 0:
            return
        # OrderedDict iterates least recently used first
        candidates = [k for k in self._entries if k != keep]
        victims = [k for k in candidates if not self._exhausted(self._entries[k])][:overflow]
        if len(victims) < overflow:
            rest = [k for k in candidates if k not in victims]
            victims += rest[:overflow - len(victims)]
        for k in victims:
            del self._entries[k]
        logger.warning(f"Rate limit store at capacity, evicted {len(victims)} live entries")

    def get(self, key: str) -> Optional[WindowEntry]:
        return self._entries.get(key)

    def __len__(self) -> int:
        return len(self._entries)


class RedisWindowStore(WindowStore):
    """Window counters shared across instances through Redis."""

    def __init__(self, cache: RedisCache, scope: str = "lookup"):
        self._cache = cache
        self._scope = scope

    def _key(self, key: str) -> str:
        return f"{self._scope}:{key}"

    def hit(self, key: str, now_ms: float, window_ms: int) -> Optional[WindowEntry]:
        if not self._cache.is_available:
            return None
        count, remaining_ms = self._cache.incr_window(self._key(key), window_ms)
        if count < 0:
            return None
        if remaining_ms < 0:
            remaining_ms = window_ms
        return WindowEntry(count=count, reset_at=now_ms + remaining_ms)

    def reset(self, key: str) -> None:
        self._cache.delete(self._key(key))


class FixedWindowRateLimiter:
    """
    Fixed-window limiter keyed by caller identity.

    ``clock`` returns the current time in milliseconds and is injectable
    for tests.
    """

    def __init__(
        self,
        store: Optional[WindowStore] = None,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_ms: int = DEFAULT_WINDOW_MS,
        clock: Callable[[], float] = _now_ms,
    ):
        self._store = store or InMemoryWindowStore(limit=max_requests)
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._clock = clock

    def check(self, caller_id: str) -> RateLimitResult:
        """Count one request for ``caller_id`` and report whether it is allowed."""
        now = self._clock()
        entry = self._store.hit(caller_id, now, self.window_ms)
        if entry is None:
            # Store unavailable → allow (degrade gracefully)
            return RateLimitResult(
                allowed=True, count=0, limit=self.max_requests, reset_at=now + self.window_ms
            )
        return RateLimitResult(
            allowed=entry.count <= self.max_requests,
            count=entry.count,
            limit=self.max_requests,
            reset_at=entry.reset_at,
        )

    def enforce(self, caller_id: str) -> RateLimitResult:
        """Like check(), but raises CompassRateLimitError when over quota."""
        result = self.check(caller_id)
        if not result.allowed:
            raise CompassRateLimitError(
                RATE_LIMIT_MESSAGE,
                user_id=caller_id,
                retry_after=result.retry_after_seconds(self._clock()),
                count=result.count,
            )
        return result

    def reset(self, caller_id: str) -> None:
        self._store.reset(caller_id)

    @property
    def store(self) -> WindowStore:
        return self._store


def create_rate_limiter(settings) -> FixedWindowRateLimiter:
    """Build the limiter described by the ``rate_limit`` config section."""
    rl = settings.rate_limit
    if rl.backend == "redis":
        from compass.engine.cache import create_rate_limit_cache

        cache = create_rate_limit_cache(
            settings.redis.url,
            db=settings.redis.rate_limit_db,
            ttl=max(1, rl.window_ms // 1000),
        )
        store: WindowStore = RedisWindowStore(cache)
    else:
        store = InMemoryWindowStore(
            max_entries=rl.max_entries,
            sweep_interval_ms=rl.sweep_interval_s * 1000.0,
            limit=rl.max_requests,
        )
    return FixedWindowRateLimiter(store, max_requests=rl.max_requests, window_ms=rl.window_ms)
