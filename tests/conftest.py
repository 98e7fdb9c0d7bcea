"""
Shared pytest fixtures for compliance-autopilot tests.

This module provides:
- A hand-driven millisecond clock for the limiter and the cache
- Recording sleeps that advance that clock instead of waiting
- A fixed wall-clock "now" for rate-limit reset arithmetic

Usage:
    async def test_waits(limiter_factory, sleeps):
        limiter = limiter_factory(max_requests_per_minute=1)
        ...
        assert sleeps == [60.0]
"""

import asyncio
import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

# Ensure compliance_autopilot is importable without an install
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Time Fixtures
# =============================================================================


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: float = 0.0):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


class SleepRecorder:
    """Records requested sleeps (seconds) and advances the fake clock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.calls: list[float] = []

    def _record(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.advance(seconds * 1000)

    async def sleep(self, seconds: float) -> None:
        self._record(seconds)
        # Yield so other tasks (e.g. a releasing caller) can run.
        await asyncio.sleep(0)

    def blocking_sleep(self, seconds: float) -> None:
        self._record(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep_recorder(clock: FakeClock) -> SleepRecorder:
    return SleepRecorder(clock)


@pytest.fixture
def sleeps(sleep_recorder: SleepRecorder) -> list[float]:
    """The list of sleeps requested so far, in seconds."""
    return sleep_recorder.calls


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 10, 17, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def limiter_factory(clock, sleep_recorder):
    """Build a RateLimiter wired to the fake clock and recording sleeps."""
    from compliance_autopilot.execution.rate_limit import RateLimitConfig, RateLimiter

    def _make(**config_kwargs) -> RateLimiter:
        return RateLimiter(
            RateLimitConfig(**config_kwargs),
            clock=clock,
            sleep=sleep_recorder.sleep,
            blocking_sleep=sleep_recorder.blocking_sleep,
        )

    return _make


@pytest.fixture
def executor_factory(sleep_recorder, fixed_now):
    """Build a RetryExecutor with recording sleeps and a fixed wall clock."""
    import random

    from compliance_autopilot.execution.retry import RetryExecutor

    def _make(rate_limiter=None, policy=None, **kwargs) -> RetryExecutor:
        kwargs.setdefault("sleep", sleep_recorder.sleep)
        kwargs.setdefault("blocking_sleep", sleep_recorder.blocking_sleep)
        kwargs.setdefault("rng", random.Random(1234))
        kwargs.setdefault("now", lambda: fixed_now)
        return RetryExecutor(rate_limiter, policy, **kwargs)

    return _make
