"""Clock helpers shared by the cache, rate limiter and retry executor.

Components take a clock as a constructor argument so tests can drive time
by hand; these are the production defaults.
"""

import time
from datetime import UTC, datetime


def monotonic_ms() -> float:
    """Monotonic clock in milliseconds (for intervals, never for display)."""
    return time.monotonic() * 1000


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


__all__ = ["monotonic_ms", "utcnow"]
