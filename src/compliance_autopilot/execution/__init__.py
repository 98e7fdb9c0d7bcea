"""Compliance Autopilot Execution -- running remote calls safely.

ARCHITECTURE
────────────
::

    ResilientClient.cached_call(payload, namespace, operation)
      │
      ├── ResponseCache.get ─── hit ──► CallResult(from_cache=True)
      │
      ▼ miss
    RetryExecutor.execute(operation)
      ├── RateLimiter.acquire / release  ─ per attempt
      ├── classify_error                  ─ typed failure
      └── backoff sleep                   ─ max(error delay, policy delay)
      │
      ▼
    ResponseCache.set ──► CallResult(from_cache=False)

MODULE MAP
──────────
  1. rate_limit.py   ─ RateLimitConfig, RateLimiter
  2. retry.py        ─ RetryPolicy, RetryExecutor, retry, with_retry
  3. resilience.py   ─ ResilientClient, CallResult
"""

from .rate_limit import RateLimitConfig, RateLimiter, RateLimitStatus
from .resilience import CallResult, ResilientClient
from .retry import (
    RetryExecutor,
    RetryPolicy,
    log_failed_attempt,
    retry,
    with_retry,
)

__all__ = [
    "RateLimitConfig",
    "RateLimitStatus",
    "RateLimiter",
    "CallResult",
    "ResilientClient",
    "RetryExecutor",
    "RetryPolicy",
    "log_failed_attempt",
    "retry",
    "with_retry",
]
