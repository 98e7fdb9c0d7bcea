"""Retry with exponential backoff, jitter, and classified failures.

Runs a fallible remote call under a :class:`RetryPolicy`, taking admission
from a :class:`~compliance_autopilot.execution.rate_limit.RateLimiter` for
every attempt and classifying every failure through
:func:`~compliance_autopilot.core.errors.classify_error`.

Attempt loop::

    attempt = 1, 2, ... max_attempts
      acquire ─► operation() ─► release ─► success: return
                                   │
                                failure
                                   ▼
                   classify ─► on_error(error, attempt)   (retry_with_handler)
                                   │
                 should_retry? no ─► raise error
                 last attempt? yes ─► raise RetryExhaustedError
                                   │
                 sleep max(error.suggested_delay_ms(attempt),
                           policy.backoff_delay(attempt))

``attempt`` is 1-based: ``backoff_delay(1)`` is the wait after the first
failure, and nothing waits before the first try.

Example:
    >>> executor = RetryExecutor(RateLimiter(), RetryPolicy(max_attempts=5))
    >>> protection = await executor.execute(lambda: gh.get(url), jitter=False)
    >>>
    >>> policy = RetryPolicy(initial_delay_ms=500, jitter=False)
    >>> [policy.backoff_delay(n) for n in range(1, 5)]
    [500, 1000, 2000, 4000]
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, fields, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any, TypeVar

from compliance_autopilot.core.errors import (
    AutopilotError,
    ConfigError,
    RetryExhaustedError,
    classify_error,
    is_retryable,
    suggested_delay_ms,
)
from compliance_autopilot.core.timestamps import utcnow
from compliance_autopilot.execution.rate_limit import RateLimitConfig, RateLimiter

if TYPE_CHECKING:
    from compliance_autopilot.core.settings import AutopilotSettings

T = TypeVar("T")

ErrorHandler = Callable[[AutopilotError, int], Awaitable[None] | None]


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry configuration.

    Attributes:
        max_attempts: Total tries including the first (>= 1)
        initial_delay_ms: Backoff after the first failure
        max_delay_ms: Backoff cap
        backoff_multiplier: Exponential growth factor (> 1)
        jitter: Randomise each delay within ``±jitter_range``
        jitter_range: Jitter as a fraction of the delay (0.25 = ±25 %)
        should_retry: Predicate over the classified error
    """

    max_attempts: int = 3
    initial_delay_ms: int = 1_000
    max_delay_ms: int = 30_000
    backoff_multiplier: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.25
    should_retry: Callable[[BaseException], bool] = is_retryable

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigError.invalid("max_attempts", self.max_attempts, "must be at least 1")
        if self.backoff_multiplier <= 1:
            raise ConfigError.invalid(
                "backoff_multiplier", self.backoff_multiplier, "must be greater than 1"
            )
        if self.initial_delay_ms < 0 or self.max_delay_ms < 0:
            raise ConfigError.invalid(
                "initial_delay_ms/max_delay_ms",
                (self.initial_delay_ms, self.max_delay_ms),
                "must not be negative",
            )
        if not 0 <= self.jitter_range <= 1:
            raise ConfigError.invalid("jitter_range", self.jitter_range, "must be within [0, 1]")

    @classmethod
    def from_settings(cls, settings: AutopilotSettings) -> RetryPolicy:
        return cls(
            max_attempts=settings.max_retries,
            initial_delay_ms=settings.initial_delay_ms,
            max_delay_ms=settings.max_delay_ms,
            backoff_multiplier=settings.backoff_multiplier,
            jitter=settings.jitter,
        )

    @classmethod
    def from_rate_limit_config(cls, config: RateLimitConfig) -> RetryPolicy:
        return cls(max_attempts=config.max_retries, backoff_multiplier=config.backoff_multiplier)

    def merge(self, **overrides: Any) -> RetryPolicy:
        """Return a copy with every non-``None`` override applied."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigError.invalid("retry_policy", unknown, "unknown retry option")
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self

    def base_delay(self, attempt: int) -> float:
        """Un-jittered delay: ``min(initial * multiplier**(attempt-1), max)``."""
        try:
            delay = self.initial_delay_ms * self.backoff_multiplier ** (attempt - 1)
        except OverflowError:
            delay = float("inf")
        return min(delay, self.max_delay_ms)

    def backoff_delay(self, attempt: int, *, rng: random.Random | None = None) -> int:
        """Delay in ms after failed attempt ``attempt`` (1-based)."""
        delay = self.base_delay(attempt)
        if self.jitter:
            spread = delay * self.jitter_range
            delay = max(0.0, delay + (rng or random).uniform(-spread, spread))
        return int(delay)


def log_failed_attempt(logger: Any, *, level: str = "warning") -> ErrorHandler:
    """Build an ``on_error`` hook that logs each failed attempt.

    Example:
        await executor.retry_with_handler(call, log_failed_attempt(logger))
    """
    emit = getattr(logger, level)

    def _handler(error: AutopilotError, attempt: int) -> None:
        emit(
            "retry.attempt_failed",
            attempt=attempt,
            code=error.code.value,
            status_code=error.status_code,
            retryable=error.retryable,
            error=error.message,
        )

    return _handler


class RetryExecutor:
    """Runs operations with bounded attempts under a rate limiter.

    Args:
        rate_limiter: Admission control per attempt; ``None`` runs unthrottled
        policy: Default policy (derived from the limiter's config when omitted)
        sleep: Coroutine sleeping for the given seconds
        blocking_sleep: Thread sleep for the given seconds
        logger: Optional structlog logger; nothing is logged without one
        rng: Random source for jitter
        now: Wall clock used for rate-limit reset times
    """

    def __init__(
        self,
        rate_limiter: RateLimiter | None = None,
        policy: RetryPolicy | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        blocking_sleep: Callable[[float], Any] = time.sleep,
        logger: Any = None,
        rng: random.Random | None = None,
        now: Callable[[], datetime] = utcnow,
    ):
        if policy is None:
            policy = (
                RetryPolicy.from_rate_limit_config(rate_limiter.config)
                if rate_limiter is not None
                else RetryPolicy()
            )
        self.rate_limiter = rate_limiter
        self.policy = policy
        self._sleep = sleep
        self._blocking_sleep = blocking_sleep
        self._logger = logger
        self._rng = rng or random.Random()
        self._now = now

    @classmethod
    def from_settings(
        cls,
        settings: AutopilotSettings,
        rate_limiter: RateLimiter | None = None,
        **kwargs: Any,
    ) -> RetryExecutor:
        return cls(rate_limiter, RetryPolicy.from_settings(settings), **kwargs)

    def resolve_policy(self, policy: RetryPolicy | None = None, **overrides: Any) -> RetryPolicy:
        """Caller policy (or the default) with per-call overrides merged in."""
        return (policy or self.policy).merge(**overrides)

    def next_delay_ms(self, error: AutopilotError, attempt: int, policy: RetryPolicy) -> int:
        """Wait before the retry following failed ``attempt``."""
        return max(
            suggested_delay_ms(error, attempt, now=self._now()),
            policy.backoff_delay(attempt, rng=self._rng),
        )

    def _log(self, level: str, event: str, **kwargs: Any) -> None:
        if self._logger is not None:
            getattr(self._logger, level)(event, **kwargs)

    def _plan_retry(self, error: AutopilotError, attempt: int, policy: RetryPolicy) -> int:
        """Raise if the failure is final, else return the delay in ms."""
        if not policy.should_retry(error):
            self._log("debug", "retry.not_retryable", attempt=attempt, code=error.code.value)
            raise error

        if attempt >= policy.max_attempts:
            self._log(
                "error",
                "retry.exhausted",
                attempts=attempt,
                code=error.code.value,
                error=error.message,
            )
            raise RetryExhaustedError(error, attempt) from error

        delay_ms = self.next_delay_ms(error, attempt, policy)
        self._log(
            "warning",
            "retry.attempt_failed",
            attempt=attempt,
            max_attempts=policy.max_attempts,
            delay_ms=delay_ms,
            code=error.code.value,
            error=error.message,
        )
        return delay_ms

    async def _run(
        self,
        operation: Callable[[], Awaitable[T] | T],
        policy: RetryPolicy,
        on_error: ErrorHandler | None,
    ) -> T:
        attempt = 0
        while True:
            attempt += 1
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire()
            try:
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
                return result
            except Exception as exc:
                error = classify_error(exc)
            finally:
                if self.rate_limiter is not None:
                    self.rate_limiter.release()

            if on_error is not None:
                handled = on_error(error, attempt)
                if inspect.isawaitable(handled):
                    await handled

            delay_ms = self._plan_retry(error, attempt, policy)
            await self._sleep(delay_ms / 1000)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T] | T],
        *,
        policy: RetryPolicy | None = None,
        **overrides: Any,
    ) -> T:
        """Run ``operation`` until it succeeds or the policy gives up.

        Args:
            operation: Zero-argument callable, sync or async
            policy: Replaces the executor's default policy for this call
            **overrides: Per-call ``RetryPolicy`` fields (``max_attempts=5``)

        Returns:
            The operation's result

        Raises:
            AutopilotError: The classified failure when it is not retryable
            RetryExhaustedError: A retryable failure outlasted ``max_attempts``
        """
        return await self._run(operation, self.resolve_policy(policy, **overrides), None)

    async def retry_with_handler(
        self,
        operation: Callable[[], Awaitable[T] | T],
        on_error: ErrorHandler,
        *,
        policy: RetryPolicy | None = None,
        **overrides: Any,
    ) -> T:
        """Like :meth:`execute`, calling ``on_error(error, attempt)`` after each failure.

        The handler runs before the retry decision, so it also sees the
        final failure. It may be a plain function or a coroutine function.
        """
        return await self._run(operation, self.resolve_policy(policy, **overrides), on_error)

    def execute_blocking(
        self,
        operation: Callable[[], T],
        *,
        policy: RetryPolicy | None = None,
        **overrides: Any,
    ) -> T:
        """Thread-blocking variant of :meth:`execute` for synchronous callers."""
        resolved = self.resolve_policy(policy, **overrides)
        attempt = 0
        while True:
            attempt += 1
            if self.rate_limiter is not None:
                self.rate_limiter.acquire_blocking()
            try:
                return operation()
            except Exception as exc:
                error = classify_error(exc)
            finally:
                if self.rate_limiter is not None:
                    self.rate_limiter.release()

            delay_ms = self._plan_retry(error, attempt, resolved)
            self._blocking_sleep(delay_ms / 1000)


async def retry(
    operation: Callable[[], Awaitable[T] | T],
    *,
    policy: RetryPolicy | None = None,
    **overrides: Any,
) -> T:
    """Retry ``operation`` without rate limiting (default policy + overrides)."""
    return await RetryExecutor(policy=policy).execute(operation, **overrides)


def with_retry(
    executor: RetryExecutor | None = None,
    **overrides: Any,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator factory running every call through a :class:`RetryExecutor`.

    Coroutine functions go through :meth:`RetryExecutor.execute`, plain
    functions through :meth:`RetryExecutor.execute_blocking`.

    Example:
        >>> @with_retry(executor, max_attempts=5)
        ... async def fetch_branch_protection(owner, repo, branch):
        ...     return await github.get(f"/repos/{owner}/{repo}/branches/{branch}/protection")
    """
    if executor is None:
        executor = RetryExecutor()

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                return await executor.execute(functools.partial(func, *args, **kwargs), **overrides)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> T:
            return executor.execute_blocking(functools.partial(func, *args, **kwargs), **overrides)

        return sync_wrapper

    return decorator


__all__ = [
    "ErrorHandler",
    "RetryPolicy",
    "RetryExecutor",
    "log_failed_attempt",
    "retry",
    "with_retry",
]
