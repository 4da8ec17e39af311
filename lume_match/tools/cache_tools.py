"""Two-tier result cache.

L1 is a bounded in-process LRU with a TTL; L2 is Redis, shared across
service instances. Values are stored as JSON. Reads check L1 first and
back-fill it from L2 hits. Redis failures raise CacheError so callers can log
and carry on without the cache.
"""

from __future__ import annotations

import json
import threading
import time
from collections import OrderedDict
from typing import Any

import redis

from lume_match.config import config
from lume_match.utils.errors import CacheError
from lume_match.utils.logging_config import logger


class CacheKey:
    """Cache key builders."""

    @staticmethod
    def matches(user_id: str) -> str:
        return f"matches:{user_id}"


class LocalCache:
    """Thread-safe LRU with per-entry expiry."""

    def __init__(self, max_size: int, ttl_seconds: int, clock=time.monotonic):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, str]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return value

    def set(self, key: str, value: str) -> None:
        if self.max_size <= 0:
            return
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_seconds, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def _drop_expired(self) -> int:
        now = self._clock()
        expired = [
            key
            for key, (expires_at, _) in self._entries.items()
            if expires_at <= now
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        """Number of live entries."""

        with self._lock:
            self._drop_expired()
            return len(self._entries)


class CacheManager:
    """L1 (in-process) + optional L2 (Redis) cache."""

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        l1_size: int = 10_000,
        ttl_seconds: int = 300,
    ):
        self._redis = redis_client
        self._l1 = LocalCache(l1_size, ttl_seconds)
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_config(cls) -> "CacheManager":
        client = None
        if config.REDIS_URL:
            client = redis.Redis.from_url(
                config.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=5,
            )
            logger.info("Redis cache tier enabled")
        return cls(
            redis_client=client,
            l1_size=config.L1_CACHE_SIZE,
            ttl_seconds=config.CACHE_TTL_SECONDS,
        )

    def get(self, key: str) -> Any | None:
        """Return the cached value or None on a miss in both tiers."""

        raw = self._l1.get(key)
        if raw is not None:
            logger.debug("L1 cache hit: %s", key)
            return json.loads(raw)

        if self._redis is None:
            return None

        try:
            raw = self._redis.get(key)
        except redis.RedisError as exc:
            raise CacheError(f"Redis GET failed for {key}: {exc}") from exc

        if raw is None:
            logger.debug("Cache miss: %s", key)
            return None

        logger.debug("L2 cache hit: %s", key)
        self._l1.set(key, raw)
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        """Write to both tiers."""

        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise CacheError(f"Value for {key} is not JSON serializable") from exc

        self._l1.set(key, raw)
        if self._redis is None:
            return
        try:
            self._redis.setex(key, self.ttl_seconds, raw)
        except redis.RedisError as exc:
            raise CacheError(f"Redis SETEX failed for {key}: {exc}") from exc

    def delete(self, key: str) -> None:
        self._l1.delete(key)
        if self._redis is None:
            return
        try:
            self._redis.delete(key)
        except redis.RedisError as exc:
            raise CacheError(f"Redis DEL failed for {key}: {exc}") from exc

    def healthy(self) -> bool:
        if self._redis is None:
            return True
        try:
            return bool(self._redis.ping())
        except redis.RedisError:
            return False

    def stats(self) -> dict:
        lookups = self._l1.hits + self._l1.misses
        return {
            "l1_size": len(self._l1),
            "l1_hit_count": self._l1.hits,
            "l1_miss_count": self._l1.misses,
            "l1_hit_rate": self._l1.hits / lookups if lookups else 0.0,
            "l2_enabled": self._redis is not None,
        }


_cache: CacheManager | None = None


def get_cache() -> CacheManager:
    """Process-wide cache, created on first use."""
    global _cache

    if _cache is None:
        _cache = CacheManager.from_config()
    return _cache
