"""
Content-addressed response cache with TTL expiry and bounded size.

The LLM analyser and the platform evaluators ask many identical questions
during one action run (the same file under the same framework, the same
endpoint for several controls). ``ResponseCache`` remembers the answer for
a time window so each question costs one remote call.

Manifesto:
    - **Content-addressed:** keys are fingerprints of (payload, namespace)
    - **Bounded:** at ``max_size`` the insertion-oldest entry is evicted
    - **TTL:** an entry is visible while ``now - created_at <= ttl_ms``
    - **Provenance:** hits come back wrapped in :class:`CacheHit` so callers
      can report that an answer was served from cache
    - **Request-scoped:** in-memory only; nothing survives the process

Architecture:
    ::

        get(payload, ns) ──► fingerprint ──► entry? ──► expired? ──► CacheHit
                                               │           │
                                               ▼           ▼
                                             None     delete, None

        set(payload, ns, value) ──► full? evict oldest ──► insert (hit_count=0)

Examples:
    >>> cache = ResponseCache(max_size=2, ttl_ms=60_000)
    >>> cache.set("def f(): ...", "soc2", {"violations": []})
    >>> hit = cache.get("def f(): ...", "soc2")
    >>> hit.value, hit.from_cache
    ({'violations': []}, True)
    >>> cache.get("def f(): ...", "gdpr") is None
    True

Performance:
    - O(1) get/set (dict preserves insertion order)
    - cleanup(): O(n)

Guardrails:
    ❌ DON'T: rely on the cache across action runs
    ✅ DO: call cleanup() between batches in long runs

Tags:
    cache, ttl, content-addressed, in-memory
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from compliance_autopilot.core.errors import ConfigError
from compliance_autopilot.core.hashing import fingerprint
from compliance_autopilot.core.timestamps import monotonic_ms

if TYPE_CHECKING:
    from compliance_autopilot.core.settings import AutopilotSettings

DEFAULT_MAX_SIZE = 1_000
DEFAULT_TTL_MS = 3_600_000


@dataclass
class CacheEntry:
    """A stored answer and its bookkeeping."""

    key: str
    value: Any
    created_at: float
    hit_count: int = 0


@dataclass(frozen=True)
class CacheHit:
    """A value served from the cache."""

    value: Any
    key: str
    hit_count: int
    age_ms: float
    from_cache: bool = True


@dataclass(frozen=True)
class CacheStats:
    size: int
    max_size: int
    hit_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {"size": self.size, "max_size": self.max_size, "hit_rate": self.hit_rate}


class ResponseCache:
    """Bounded, TTL-expiring, content-addressed cache.

    Eviction is by insertion order, not recency: hits do not protect an
    entry from being evicted. Thread-safe; the lock is held only for the
    dictionary operations.

    Attributes:
        max_size: Maximum entries before the oldest is evicted.
        ttl_ms: Entry lifetime in milliseconds.

    Example:
        cache = ResponseCache(max_size=500, ttl_ms=30 * 60_000)
        hit = cache.get(source, "soc2")
        if hit is None:
            cache.set(source, "soc2", await analyse(source))
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl_ms: float = DEFAULT_TTL_MS,
        *,
        clock: Callable[[], float] = monotonic_ms,
    ):
        if max_size < 1:
            raise ConfigError.invalid("cache_max_size", max_size, "must be at least 1")
        if ttl_ms < 0:
            raise ConfigError.invalid("cache_ttl_ms", ttl_ms, "must not be negative")
        self.max_size = max_size
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: AutopilotSettings, **kwargs: Any) -> ResponseCache:
        return cls(settings.cache_max_size, settings.cache_ttl_ms, **kwargs)

    def generate_key(self, payload: Any, namespace: str) -> str:
        """Deterministic fingerprint of ``payload`` under ``namespace``."""
        return fingerprint(payload, namespace)

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at > self.ttl_ms

    def get(self, payload: Any, namespace: str) -> CacheHit | None:
        """Return the cached answer, or ``None`` on a miss or a stale entry."""
        key = self.generate_key(payload, namespace)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            now = self._clock()
            if self._expired(entry, now):
                del self._entries[key]
                return None

            entry.hit_count += 1
            return CacheHit(
                value=entry.value,
                key=key,
                hit_count=entry.hit_count,
                age_ms=now - entry.created_at,
            )

    def set(self, payload: Any, namespace: str, value: Any) -> None:
        """Store an answer; evicts the insertion-oldest entry when full."""
        key = self.generate_key(payload, namespace)
        with self._lock:
            # Re-setting a key replaces it without evicting a neighbour.
            if self._entries.pop(key, None) is None and len(self._entries) >= self.max_size:
                oldest_key = next(iter(self._entries))
                del self._entries[oldest_key]

            self._entries[key] = CacheEntry(key=key, value=value, created_at=self._clock())

    def cleanup(self) -> int:
        """Remove expired entries; returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if self._expired(entry, now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def get_stats(self) -> CacheStats:
        with self._lock:
            size = len(self._entries)
            total_hits = sum(entry.hit_count for entry in self._entries.values())
        return CacheStats(
            size=size,
            max_size=self.max_size,
            hit_rate=total_hits / size if size else 0.0,
        )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        """Membership by generated key (expired entries still count until read)."""
        with self._lock:
            return key in self._entries


__all__ = [
    "CacheEntry",
    "CacheHit",
    "CacheStats",
    "ResponseCache",
]
