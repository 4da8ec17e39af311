"""
Unit tests for the two-tier result cache.

L1 behaviour is tested with a fake clock; the Redis tier is a MagicMock.
"""

import json
from unittest.mock import MagicMock

import pytest
import redis
from lume_match.tools.cache_tools import CacheKey, CacheManager, LocalCache
from lume_match.utils.errors import CacheError


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestLocalCache:
    """Test the in-process tier."""

    def test_get_after_set(self):
        cache = LocalCache(max_size=10, ttl_seconds=60)
        cache.set("k", "v")
        assert cache.get("k") == "v"

    def test_entries_expire(self):
        clock = FakeClock()
        cache = LocalCache(max_size=10, ttl_seconds=60, clock=clock)
        cache.set("k", "v")
        clock.now = 61
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_least_recently_used_evicted(self):
        cache = LocalCache(max_size=2, ttl_seconds=60)
        cache.set("a", "1")
        cache.set("b", "2")
        cache.get("a")
        cache.set("c", "3")
        assert cache.get("b") is None
        assert cache.get("a") == "1"
        assert cache.get("c") == "3"

    def test_size_excludes_expired_entries(self):
        clock = FakeClock()
        cache = LocalCache(max_size=10, ttl_seconds=60, clock=clock)
        cache.set("old", "1")
        clock.now = 30
        cache.set("new", "2")
        clock.now = 61

        assert len(cache) == 1
        assert cache.get("new") == "2"

    def test_zero_size_stores_nothing(self):
        cache = LocalCache(max_size=0, ttl_seconds=60)
        cache.set("a", "1")
        assert cache.get("a") is None


class TestCacheManager:
    """Test the two-tier manager."""

    def test_l1_only(self):
        cache = CacheManager(redis_client=None)
        cache.set("k", {"a": 1})
        assert cache.get("k") == {"a": 1}
        cache.delete("k")
        assert cache.get("k") is None

    def test_set_writes_both_tiers(self):
        client = MagicMock()
        cache = CacheManager(redis_client=client, ttl_seconds=120)

        cache.set("k", [1, 2])

        client.setex.assert_called_once_with("k", 120, json.dumps([1, 2]))

    def test_l2_hit_backfills_l1(self):
        client = MagicMock()
        client.get.return_value = json.dumps({"x": 1})
        cache = CacheManager(redis_client=client)

        assert cache.get("k") == {"x": 1}
        assert cache.get("k") == {"x": 1}
        client.get.assert_called_once_with("k")

    def test_miss_in_both_tiers(self):
        client = MagicMock()
        client.get.return_value = None
        assert CacheManager(redis_client=client).get("k") is None

    def test_redis_failure_raises_cache_error(self):
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("refused")
        with pytest.raises(CacheError):
            CacheManager(redis_client=client).get("k")

    def test_unserializable_value(self):
        with pytest.raises(CacheError):
            CacheManager().set("k", object())

    def test_delete_removes_from_both_tiers(self):
        client = MagicMock()
        client.get.return_value = None
        cache = CacheManager(redis_client=client)
        cache.set("k", 1)

        cache.delete("k")

        client.delete.assert_called_once_with("k")
        assert cache.get("k") is None

    def test_stats(self):
        cache = CacheManager()
        cache.set("k", 1)
        cache.get("k")
        cache.get("missing")
        stats = cache.stats()
        assert stats["l1_hit_count"] == 1
        assert stats["l1_miss_count"] == 1
        assert stats["l1_hit_rate"] == pytest.approx(0.5)
        assert stats["l2_enabled"] is False

    def test_healthy_without_redis(self):
        assert CacheManager().healthy() is True

    def test_unreachable_redis_is_unhealthy(self):
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("refused")
        assert CacheManager(redis_client=client).healthy() is False


class TestCacheKey:
    def test_matches_key(self):
        assert CacheKey.matches("u1") == "matches:u1"
