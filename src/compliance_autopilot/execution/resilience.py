"""
Composition root for outbound calls: cache, then rate-limited retries.

Evaluators and the LLM analyser do the same three steps for every remote
question: look the answer up, otherwise run the call under the rate limiter
with retries, then remember the answer. ``ResilientClient`` owns one
limiter, one executor and one cache and performs those steps.

It is also the one place that obtains a structlog logger and hands it to
the executor; the limiter, executor and cache never log on their own.

Example:
    >>> client = ResilientClient.from_settings(load_settings())
    >>> result = await client.cached_call(source, "soc2", lambda: analyse(source))
    >>> result.from_cache
    False
    >>> (await client.cached_call(source, "soc2", lambda: analyse(source))).from_cache
    True
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from compliance_autopilot.core.cache import ResponseCache
from compliance_autopilot.core.logging import configure_logging, get_logger
from compliance_autopilot.core.settings import AutopilotSettings, load_settings
from compliance_autopilot.execution.rate_limit import RateLimiter
from compliance_autopilot.execution.retry import RetryExecutor, RetryPolicy

T = TypeVar("T")


@dataclass(frozen=True)
class CallResult(Generic[T]):
    """A call's value and whether it was served from the cache."""

    value: T
    from_cache: bool
    cache_key: str


class ResilientClient:
    """Rate limiter, retry executor and response cache behind one facade."""

    def __init__(
        self,
        rate_limiter: RateLimiter | None = None,
        executor: RetryExecutor | None = None,
        cache: ResponseCache | None = None,
        *,
        logger: Any = None,
    ):
        # ResponseCache defines __len__, so an empty one is falsy.
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.executor = (
            executor
            if executor is not None
            else RetryExecutor(self.rate_limiter, logger=logger)
        )
        self.cache = cache if cache is not None else ResponseCache()
        self._logger = logger

    @classmethod
    def from_settings(
        cls,
        settings: AutopilotSettings | None = None,
        *,
        configure: bool = True,
        **executor_kwargs: Any,
    ) -> ResilientClient:
        """Build the client from settings.

        Args:
            settings: Loaded settings (``load_settings()`` when omitted)
            configure: Apply ``log_level`` / ``log_json`` via ``configure_logging``
            **executor_kwargs: Passed to ``RetryExecutor`` (``sleep``, ``rng``, ``now``)
        """
        settings = settings if settings is not None else load_settings()
        if configure:
            configure_logging(settings.log_level, settings.log_json)
        logger = get_logger(__name__)
        limiter = RateLimiter.from_settings(settings)
        executor = RetryExecutor(
            limiter, RetryPolicy.from_settings(settings), logger=logger, **executor_kwargs
        )
        return cls(limiter, executor, ResponseCache.from_settings(settings), logger=logger)

    async def call(
        self,
        operation: Callable[[], Awaitable[T] | T],
        *,
        policy: RetryPolicy | None = None,
        **overrides: Any,
    ) -> T:
        """Run ``operation`` through the executor without caching."""
        return await self.executor.execute(operation, policy=policy, **overrides)

    async def cached_call(
        self,
        payload: Any,
        namespace: str,
        operation: Callable[[], Awaitable[T] | T],
        *,
        policy: RetryPolicy | None = None,
        **overrides: Any,
    ) -> CallResult[T]:
        """Serve ``(payload, namespace)`` from the cache or run ``operation`` and store it.

        Failures are not cached; they propagate as classified errors.
        """
        hit = self.cache.get(payload, namespace)
        if hit is not None:
            if self._logger is not None:
                self._logger.debug(
                    "resilience.cache_hit",
                    namespace=namespace,
                    hit_count=hit.hit_count,
                    age_ms=hit.age_ms,
                )
            return CallResult(value=hit.value, from_cache=True, cache_key=hit.key)

        value = await self.executor.execute(operation, policy=policy, **overrides)
        self.cache.set(payload, namespace, value)
        return CallResult(
            value=value,
            from_cache=False,
            cache_key=self.cache.generate_key(payload, namespace),
        )

    def status(self) -> dict[str, Any]:
        """Limiter and cache snapshot for run summaries."""
        return {
            "rate_limit": self.rate_limiter.get_status().to_dict(),
            "cache": self.cache.get_stats().to_dict(),
        }


__all__ = ["CallResult", "ResilientClient"]
