"""Tests for ResponseCache."""

import threading

import pytest

from compliance_autopilot.core.cache import CacheHit, ResponseCache
from compliance_autopilot.core.errors import ConfigError
from compliance_autopilot.core.settings import AutopilotSettings


@pytest.fixture
def cache(clock):
    return ResponseCache(max_size=3, ttl_ms=1_000, clock=clock)


class TestResponseCacheBasics:
    """Tests for get/set round trips."""

    def test_defaults(self):
        cache = ResponseCache()
        assert cache.max_size == 1000
        assert cache.ttl_ms == 3_600_000

    def test_miss_returns_none(self, cache):
        assert cache.get("def f(): ...", "soc2") is None

    def test_hit_is_marked_as_cached(self, cache, clock):
        """Test a stored answer comes back wrapped with provenance."""
        cache.set("def f(): ...", "soc2", {"violations": []})
        clock.advance(250)

        hit = cache.get("def f(): ...", "soc2")

        assert isinstance(hit, CacheHit)
        assert hit.value == {"violations": []}
        assert hit.from_cache is True
        assert hit.hit_count == 1
        assert hit.age_ms == 250

    def test_namespace_separates_entries(self, cache):
        """Test the same payload under another framework is a miss."""
        cache.set("def f(): ...", "soc2", "soc2 answer")
        assert cache.get("def f(): ...", "gdpr") is None

    def test_cached_none_is_distinguishable(self, cache):
        """Test a stored None is still a hit."""
        cache.set("payload", "ns", None)
        hit = cache.get("payload", "ns")
        assert hit is not None
        assert hit.value is None

    def test_structured_payloads(self, cache):
        """Test dict payloads key by content, not key order."""
        cache.set({"owner": "acme", "repo": "app"}, "branches", ["main"])
        hit = cache.get({"repo": "app", "owner": "acme"}, "branches")
        assert hit is not None
        assert hit.value == ["main"]

    def test_mixed_key_payload_round_trips(self, cache):
        """Test dict payloads with int and str keys can be stored and served."""
        cache.set({1: "branch", "repo": "acme"}, "soc2", "v")
        hit = cache.get({"repo": "acme", 1: "branch"}, "soc2")
        assert hit is not None
        assert hit.value == "v"

    def test_int_key_payload_does_not_serve_str_key_payload(self, cache):
        """Test {1: 'x'} and {'1': 'x'} are cached separately."""
        cache.set({1: "x"}, "soc2", "int-key")
        assert cache.get({"1": "x"}, "soc2") is None
        assert cache.get({1: "x"}, "soc2").value == "int-key"

    def test_hits_increment(self, cache):
        cache.set("p", "ns", 1)
        cache.get("p", "ns")
        cache.get("p", "ns")
        assert cache.get("p", "ns").hit_count == 3

    def test_generate_key_is_deterministic(self, cache):
        assert cache.generate_key("p", "ns") == cache.generate_key("p", "ns")
        assert cache.generate_key("p", "ns") != cache.generate_key("p", "other")

    def test_contains_by_key(self, cache):
        key = cache.generate_key("p", "ns")
        assert key not in cache
        cache.set("p", "ns", 1)
        assert key in cache


class TestResponseCacheExpiry:
    """Tests for TTL handling."""

    def test_visible_until_ttl(self, cache, clock):
        """Test an entry is served while age <= ttl."""
        cache.set("p", "ns", "v")
        clock.advance(1_000)
        assert cache.get("p", "ns") is not None

    def test_expired_on_read(self, cache, clock):
        """Test a stale entry is a miss and is removed."""
        cache.set("p", "ns", "v")
        clock.advance(1_001)
        assert cache.get("p", "ns") is None
        assert len(cache) == 0

    def test_cleanup_removes_only_expired(self, cache, clock):
        cache.set("old", "ns", 1)
        clock.advance(600)
        cache.set("new", "ns", 2)
        clock.advance(600)

        removed = cache.cleanup()

        assert removed == 1
        assert len(cache) == 1
        assert cache.get("new", "ns").value == 2


class TestResponseCacheEviction:
    """Tests for the size bound."""

    def test_evicts_insertion_oldest(self, cache):
        """Test the first inserted entry goes when a fourth arrives."""
        for name in ("a", "b", "c"):
            cache.set(name, "ns", name)
        cache.get("a", "ns")  # hits do not protect an entry

        cache.set("d", "ns", "d")

        assert len(cache) == 3
        assert cache.get("a", "ns") is None
        assert cache.get("d", "ns").value == "d"

    def test_overwrite_does_not_evict(self, cache):
        """Test re-setting an existing key keeps the other entries."""
        for name in ("a", "b", "c"):
            cache.set(name, "ns", name)

        cache.set("a", "ns", "A")

        assert len(cache) == 3
        assert cache.get("a", "ns").value == "A"
        assert cache.get("b", "ns") is not None
        assert cache.get("c", "ns") is not None

    def test_overwrite_resets_age_and_hits(self, cache, clock):
        cache.set("a", "ns", 1)
        cache.get("a", "ns")
        clock.advance(900)
        cache.set("a", "ns", 2)
        clock.advance(900)

        hit = cache.get("a", "ns")

        assert hit.value == 2
        assert hit.hit_count == 1
        assert hit.age_ms == 900

    def test_size_never_exceeds_max(self, cache):
        for i in range(50):
            cache.set(f"payload-{i}", "ns", i)
            assert len(cache) <= 3


class TestResponseCacheStats:
    """Tests for stats, clear and configuration."""

    def test_stats(self, cache):
        cache.set("a", "ns", 1)
        cache.set("b", "ns", 2)
        cache.get("a", "ns")
        cache.get("a", "ns")
        cache.get("b", "ns")

        stats = cache.get_stats()

        assert stats.size == 2
        assert stats.max_size == 3
        assert stats.hit_rate == 1.5
        assert stats.to_dict() == {"size": 2, "max_size": 3, "hit_rate": 1.5}

    def test_empty_stats(self, cache):
        assert cache.get_stats().hit_rate == 0.0

    def test_clear(self, cache):
        cache.set("a", "ns", 1)
        cache.clear()
        assert len(cache) == 0
        assert cache.get("a", "ns") is None

    @pytest.mark.parametrize("kwargs", [{"max_size": 0}, {"ttl_ms": -1}])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ConfigError):
            ResponseCache(**kwargs)

    def test_from_settings(self):
        settings = AutopilotSettings(cache_max_size=7, cache_ttl_ms=5_000)
        cache = ResponseCache.from_settings(settings)
        assert cache.max_size == 7
        assert cache.ttl_ms == 5_000

    def test_concurrent_writers_respect_bound(self):
        """Test threads writing at once never overflow the cache."""
        cache = ResponseCache(max_size=10)

        def writer(offset):
            for i in range(200):
                cache.set(f"{offset}-{i}", "ns", i)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(cache) == 10
