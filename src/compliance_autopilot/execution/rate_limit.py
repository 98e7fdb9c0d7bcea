"""Rate limiting — admission control for outbound API calls.

Manifesto:
GitHub allows 5,000 authenticated requests an hour and Anthropic enforces
per-minute request quotas. Exceeding either turns a compliance run into a
wall of 429s. ``RateLimiter`` throttles calls *before* they leave the
process by capping two things at once:

- calls in flight at the same time (``max_concurrent_requests``)
- calls admitted in any rolling 60-second window (``max_requests_per_minute``)

ARCHITECTURE
────────────
::

    acquire()
      │
      ├─ active >= max_concurrent ──► sleep poll_interval ──┐
      │                                                     │
      ├─ prune timestamps older than the window             │
      │                                                     │
      ├─ window full ──► sleep until oldest expires ────────┤
      │                                                     │
      └─ admit: record now, active += 1        ◄────────────┘ (loop)

    release()  ─ active -= 1 (floored at 0)

The loop re-evaluates from the top after every sleep; it never recurses.
Admission is poll-based, not a queue: under sustained contention a waiter
can be overtaken by a later one.

Example::

    limiter = RateLimiter(RateLimitConfig(max_requests_per_minute=30))

    async with limiter:
        response = await client.get(url)

    limiter.get_status()
    # RateLimitStatus(active_requests=0, requests_in_last_minute=1)

Tags:
    rate-limit, throttle, sliding-window, concurrency, admission-control

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from compliance_autopilot.core.errors import ConfigError
from compliance_autopilot.core.timestamps import monotonic_ms

if TYPE_CHECKING:
    from compliance_autopilot.core.settings import AutopilotSettings

WINDOW_MS = 60_000
POLL_INTERVAL_MS = 100


@dataclass(frozen=True)
class RateLimitConfig:
    """Admission limits.

    ``backoff_multiplier`` and ``max_retries`` are not used by the limiter
    itself; the retry executor reads them when it is built from this config.
    """

    max_requests_per_minute: int = 50
    max_concurrent_requests: int = 10
    backoff_multiplier: float = 2.0
    max_retries: int = 3
    poll_interval_ms: int = POLL_INTERVAL_MS
    window_ms: int = WINDOW_MS

    def __post_init__(self) -> None:
        for name in ("max_requests_per_minute", "max_concurrent_requests", "max_retries"):
            value = getattr(self, name)
            if value < 1:
                raise ConfigError.invalid(name, value, "must be at least 1")
        if self.backoff_multiplier <= 1:
            raise ConfigError.invalid(
                "backoff_multiplier", self.backoff_multiplier, "must be greater than 1"
            )
        if self.poll_interval_ms <= 0 or self.window_ms <= 0:
            raise ConfigError.invalid(
                "poll_interval_ms/window_ms",
                (self.poll_interval_ms, self.window_ms),
                "must be positive",
            )

    @classmethod
    def from_settings(cls, settings: AutopilotSettings) -> RateLimitConfig:
        return cls(
            max_requests_per_minute=settings.max_requests_per_minute,
            max_concurrent_requests=settings.max_concurrent_requests,
            backoff_multiplier=settings.backoff_multiplier,
            max_retries=settings.max_retries,
        )


@dataclass(frozen=True)
class RateLimitStatus:
    """Point-in-time view of a limiter."""

    active_requests: int
    requests_in_last_minute: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "active_requests": self.active_requests,
            "requests_in_last_minute": self.requests_in_last_minute,
        }


class RateLimiter:
    """Caps concurrent and per-minute calls to one remote endpoint.

    ``acquire()`` never fails, it only delays. Every admission must be
    paired with ``release()``; extra releases are ignored.

    State is guarded by a ``threading.Lock`` so coroutine callers and
    ``acquire_blocking()`` thread callers can share a limiter. The lock is
    never held across a sleep.

    Args:
        config: Limits (defaults: 50/min, 10 concurrent)
        clock: Millisecond clock (monotonic by default)
        sleep: Coroutine sleeping for the given seconds
        blocking_sleep: Thread sleep for the given seconds
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = monotonic_ms,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        blocking_sleep: Callable[[float], Any] = time.sleep,
    ):
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._sleep = sleep
        self._blocking_sleep = blocking_sleep
        self._active_requests = 0
        self._request_timestamps: deque[float] = deque()
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: AutopilotSettings, **kwargs: Any) -> RateLimiter:
        return cls(RateLimitConfig.from_settings(settings), **kwargs)

    def _prune(self, now: float) -> None:
        """Drop admissions that left the sliding window."""
        cutoff = now - self.config.window_ms
        while self._request_timestamps and self._request_timestamps[0] <= cutoff:
            self._request_timestamps.popleft()

    def _try_admit(self) -> float | None:
        """Admit the caller (``None``), or return how many ms to wait before re-checking."""
        with self._lock:
            if self._active_requests >= self.config.max_concurrent_requests:
                return self.config.poll_interval_ms

            now = self._clock()
            self._prune(now)

            if len(self._request_timestamps) >= self.config.max_requests_per_minute:
                oldest = self._request_timestamps[0]
                return self.config.window_ms - (now - oldest)

            self._request_timestamps.append(now)
            self._active_requests += 1
            return None

    async def acquire(self) -> None:
        """Wait until a concurrent slot and a window slot are both free."""
        while True:
            wait_ms = self._try_admit()
            if wait_ms is None:
                return
            await self._sleep(wait_ms / 1000)

    def acquire_blocking(self) -> None:
        """Thread-blocking variant of :meth:`acquire`."""
        while True:
            wait_ms = self._try_admit()
            if wait_ms is None:
                return
            self._blocking_sleep(wait_ms / 1000)

    def release(self) -> None:
        """Free a concurrent slot; never drops below zero."""
        with self._lock:
            self._active_requests = max(0, self._active_requests - 1)

    def get_status(self) -> RateLimitStatus:
        """Snapshot without side effects (the window is not pruned)."""
        with self._lock:
            cutoff = self._clock() - self.config.window_ms
            recent = sum(1 for ts in self._request_timestamps if ts > cutoff)
            return RateLimitStatus(
                active_requests=self._active_requests,
                requests_in_last_minute=recent,
            )

    async def __aenter__(self) -> RateLimiter:
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.release()

    def __enter__(self) -> RateLimiter:
        self.acquire_blocking()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.release()


__all__ = [
    "RateLimitConfig",
    "RateLimitStatus",
    "RateLimiter",
]
