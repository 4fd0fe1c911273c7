"""
Compass Redis Cache Layer — shared counters for the lookup rate limiter.

Redis holds only ephemeral data: per-caller request counters keyed
``compass:rate:{scope}:{caller_id}`` that expire with their window.
Losing Redis never loses state that matters; the limiter degrades to allow.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, Tuple, TypeVar

logger = logging.getLogger("compass.engine.cache")

T = TypeVar("T")


class RedisCache:
    """
    Prefixed redis-py client with a circuit breaker.

    After ``failure_threshold`` failed commands within ``failure_window``
    seconds the circuit opens and every call short-circuits to its fallback
    value. Once the window has passed, the next call tries to reconnect.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "compass:",
        default_ttl: int = 60,
        db: int = 0,
        failure_threshold: int = 5,
        failure_window: float = 30.0,
    ):
        self._redis_url = redis_url
        self._prefix = prefix
        self._default_ttl = default_ttl
        self._db = db
        self._client: Any = None
        self._available = False

        self._failure_threshold = failure_threshold
        self._failure_window = failure_window
        self._failures: list = []
        self._opened_at: Optional[float] = None

    def connect(self) -> bool:
        """Open the connection and ping it. Failure leaves the cache unavailable."""
        import redis

        try:
            client = redis.Redis.from_url(
                self._redis_url,
                db=self._db,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                retry_on_timeout=True,
            )
            client.ping()
        except Exception as e:
            logger.warning(f"Redis unavailable at {self._redis_url} (db {self._db}): {e}")
            self._available = False
            return False

        self._client = client
        self._available = True
        self._failures.clear()
        self._opened_at = None
        logger.info(f"Redis connected: db {self._db}, prefix {self._prefix!r}")
        return True

    def _ready(self) -> bool:
        if self._opened_at is None:
            return self._available
        if time.monotonic() - self._opened_at < self._failure_window:
            return False
        self._opened_at = None
        return self.connect()

    def _trip(self, op: str, error: Exception) -> None:
        now = time.monotonic()
        self._failures = [t for t in self._failures if now - t <= self._failure_window]
        self._failures.append(now)
        logger.debug(f"Redis {op} failed: {error}")
        if len(self._failures) >= self._failure_threshold:
            self._opened_at = now
            self._failures.clear()
            logger.error(f"Redis circuit open after {self._failure_threshold} failures")

    def _run(self, op: str, fn: Callable[[], T], fallback: T) -> T:
        if not self._ready():
            return fallback
        try:
            return fn()
        except Exception as e:
            self._trip(op, e)
            return fallback

    def _key(self, key: str) -> str:
        return self._prefix + key

    def get(self, key: str) -> Optional[str]:
        return self._run("GET", lambda: self._client.get(self._key(key)), None)

    def delete(self, key: str) -> bool:
        def _delete() -> bool:
            self._client.delete(self._key(key))
            return True

        return self._run("DEL", _delete, False)

    def incr_window(self, key: str, window_ms: int) -> Tuple[int, int]:
        """
        Count one hit in a fixed window and return ``(count, remaining_ms)``,
        or ``(-1, -1)`` when Redis cannot answer.

        PEXPIRE runs with NX so only the hit that opens the window sets the
        expiry; later hits never stretch it.
        """
        def _incr() -> Tuple[int, int]:
            full_key = self._key(key)
            pipe = self._client.pipeline()
            pipe.incr(full_key)
            pipe.pexpire(full_key, window_ms, nx=True)
            pipe.pttl(full_key)
            count, _, remaining = pipe.execute()
            return int(count), int(remaining)

        return self._run("INCR", _incr, (-1, -1))

    def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(self._client.ping())
        except Exception:
            return False

    def close(self) -> None:
        client, self._client = self._client, None
        self._available = False
        self._opened_at = None
        self._failures.clear()
        if client is not None:
            try:
                client.close()
            except Exception as e:
                logger.debug(f"Redis close failed: {e}")

    @property
    def is_available(self) -> bool:
        return self._available and self._opened_at is None

    @property
    def is_circuit_open(self) -> bool:
        return self._opened_at is not None


def create_rate_limit_cache(redis_url: str, db: int = 5, ttl: int = 60) -> RedisCache:
    """Connected cache for rate-limit counters (Redis DB 5 by default)."""
    cache = RedisCache(redis_url=redis_url, prefix="compass:rate:", default_ttl=ttl, db=db)
    cache.connect()
    return cache
