"""Tests for ResilientClient."""

import json

import httpx
import pytest
import structlog

from compliance_autopilot.core.cache import ResponseCache
from compliance_autopilot.core.errors import NotFoundError
from compliance_autopilot.core.settings import AutopilotSettings
from compliance_autopilot.execution.rate_limit import RateLimiter
from compliance_autopilot.execution.resilience import CallResult, ResilientClient
from compliance_autopilot.execution.retry import RetryExecutor


class RecordingLogger:
    def __init__(self):
        self.events = []

    def __getattr__(self, level):
        def _log(event, **kwargs):
            self.events.append((level, event, kwargs))

        return _log


@pytest.fixture
def client(limiter_factory, executor_factory, clock):
    limiter = limiter_factory()
    logger = RecordingLogger()
    return ResilientClient(
        limiter,
        executor_factory(limiter, logger=logger),
        ResponseCache(max_size=10, ttl_ms=60_000, clock=clock),
        logger=logger,
    )


@pytest.mark.integration
class TestCachedCall:
    """Tests for the cache -> execute -> store flow."""

    @pytest.mark.asyncio
    async def test_miss_then_hit(self, client):
        calls = []

        async def analyse():
            calls.append(1)
            return {"violations": ["hardcoded secret"]}

        first = await client.cached_call("def f(): ...", "soc2", analyse)
        second = await client.cached_call("def f(): ...", "soc2", analyse)

        assert isinstance(first, CallResult)
        assert first.from_cache is False
        assert second.from_cache is True
        assert second.value == first.value
        assert second.cache_key == first.cache_key
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_cache_hit_is_logged(self, client):
        await client.cached_call("p", "gdpr", lambda: 1)
        await client.cached_call("p", "gdpr", lambda: 1)
        [(level, event, fields)] = client._logger.events
        assert (level, event) == ("debug", "resilience.cache_hit")
        assert fields["namespace"] == "gdpr"

    @pytest.mark.asyncio
    async def test_namespaces_are_separate(self, client):
        soc2 = await client.cached_call("p", "soc2", lambda: "soc2")
        gdpr = await client.cached_call("p", "gdpr", lambda: "gdpr")
        assert soc2.value == "soc2"
        assert gdpr.value == "gdpr"
        assert gdpr.from_cache is False

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, client, sleeps):
        def missing():
            raise NotFoundError("acme/app")

        with pytest.raises(NotFoundError):
            await client.cached_call("p", "soc2", missing)

        assert client.cache.get("p", "soc2") is None
        result = await client.cached_call("p", "soc2", lambda: "found")
        assert result.value == "found"
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_retries_before_storing(self, client, sleeps):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        failures = [
            httpx.HTTPStatusError(
                "overloaded", request=request, response=httpx.Response(529, request=request)
            )
        ]

        async def analyse():
            if failures:
                raise failures.pop()
            return "analysis"

        result = await client.cached_call("src", "soc2", analyse, jitter=False)

        assert result.value == "analysis"
        assert sleeps == [2.0]
        assert client.cache.get("src", "soc2").value == "analysis"


class TestCallAndStatus:
    """Tests for call() and status()."""

    @pytest.mark.asyncio
    async def test_call_bypasses_cache(self, client):
        assert await client.call(lambda: 5) == 5
        assert len(client.cache) == 0

    @pytest.mark.asyncio
    async def test_status(self, client):
        await client.cached_call("p", "ns", lambda: 1)
        await client.cached_call("p", "ns", lambda: 1)

        status = client.status()

        assert status["rate_limit"] == {"active_requests": 0, "requests_in_last_minute": 1}
        assert status["cache"] == {"size": 1, "max_size": 10, "hit_rate": 1.0}


class TestConstruction:
    """Tests for defaults and settings wiring."""

    @pytest.fixture(autouse=True)
    def _reset_structlog(self):
        yield
        structlog.reset_defaults()

    def test_defaults(self):
        client = ResilientClient()
        assert isinstance(client.rate_limiter, RateLimiter)
        assert isinstance(client.executor, RetryExecutor)
        assert client.executor.rate_limiter is client.rate_limiter
        assert isinstance(client.cache, ResponseCache)

    def test_injected_empty_components_are_kept(self, clock):
        """Test an empty (falsy) cache is used as given, not replaced by defaults."""
        cache = ResponseCache(max_size=5, ttl_ms=10, clock=clock)
        limiter = RateLimiter()
        executor = RetryExecutor(limiter)

        client = ResilientClient(limiter, executor, cache)

        assert client.cache is cache
        assert client.rate_limiter is limiter
        assert client.executor is executor
        assert client.status()["cache"]["max_size"] == 5

    def test_from_settings(self, capsys, sleep_recorder):
        settings = AutopilotSettings(
            max_requests_per_minute=20,
            max_retries=5,
            cache_max_size=42,
            log_json=True,
        )

        client = ResilientClient.from_settings(settings, sleep=sleep_recorder.sleep)

        assert client.rate_limiter.config.max_requests_per_minute == 20
        assert client.executor.policy.max_attempts == 5
        assert client.executor.rate_limiter is client.rate_limiter
        assert client.cache.max_size == 42

    @pytest.mark.asyncio
    async def test_from_settings_logs_retries_through_structlog(self, capsys, sleep_recorder):
        """Test a retried call emits a JSON retry.attempt_failed event."""
        settings = AutopilotSettings(log_level="INFO", log_json=True, jitter=False)
        client = ResilientClient.from_settings(settings, sleep=sleep_recorder.sleep)
        request = httpx.Request("GET", "https://api.github.com/repos/acme/app")
        failures = [
            httpx.HTTPStatusError(
                "HTTP 502", request=request, response=httpx.Response(502, request=request)
            )
        ]

        def fetch():
            if failures:
                raise failures.pop()
            return "ok"

        assert await client.call(fetch) == "ok"

        records = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line]
        [record] = [r for r in records if r["event"] == "retry.attempt_failed"]
        assert record["level"] == "warning"
        assert record["logger_name"] == "compliance_autopilot.execution.resilience"
        assert record["attempt"] == 1
        assert record["delay_ms"] == 2000
        assert sleep_recorder.calls == [2.0]

    def test_from_settings_applies_log_level(self, capsys):
        """Test log_level from settings filters what the client logs."""
        client = ResilientClient.from_settings(
            AutopilotSettings(log_level="ERROR", log_json=True)
        )
        client._logger.warning("retry.attempt_failed")
        client._logger.error("retry.exhausted")

        events = [json.loads(line)["event"] for line in capsys.readouterr().out.splitlines() if line]
        assert events == ["retry.exhausted"]
