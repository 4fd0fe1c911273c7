"""Compass Engine — config, errors, logging, cache and rate limiting."""

from compass.engine.errors import CompassError  # noqa: F401
from compass.engine.rate_limit import FixedWindowRateLimiter, InMemoryWindowStore  # noqa: F401

__all__ = [
    "CompassError",
    "FixedWindowRateLimiter",
    "InMemoryWindowStore",
]
