"""
Status cache backends.

The cache is an accelerant only. Every backend reports a failed read as a
miss and swallows a failed write, so callers stay correct when the cache
is slow, down, or not configured at all.
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

import redis.asyncio as redis

from shared.logging import get_logger
from shared.metrics import MetricsCollector


STATUS_PREFIX = "status:"


def status_key(owner_id: str, record_id: str) -> str:
    """Cache key for a record's status entry."""
    return f"{STATUS_PREFIX}{owner_id}:{record_id}"


class StatusCache(ABC):
    """String-keyed JSON cache with a per-call TTL."""

    backend = "abstract"

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self.metrics = metrics
        self.logger = get_logger(f"media.cache.{self.backend}")

    @abstractmethod
    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the cached value or ``None``."""

    @abstractmethod
    async def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        """Store ``value`` for ``ttl`` seconds."""

    async def close(self) -> None:
        """Release any held connection."""

    def _record_error(self, operation: str, key: str, error: Exception):
        self.logger.warning("Status cache operation failed", operation=operation, key=key, error=str(error))
        if self.metrics:
            self.metrics.increment_counter("status_cache_requests_total", result="error")


class NullStatusCache(StatusCache):
    """Used when no cache backend is configured."""

    backend = "none"

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        return None

    async def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        return None


class MemoryStatusCache(StatusCache):
    """In-process TTL map; expiry is checked lazily against ``clock``."""

    backend = "memory"

    def __init__(self, metrics: Optional[MetricsCollector] = None, clock: Callable[[], float] = time.monotonic):
        super().__init__(metrics)
        self._clock = clock
        self._entries: Dict[str, Tuple[float, str]] = {}

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return json.loads(payload)

    async def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        now = self._clock()
        self._evict_expired(now)
        # Stored serialized so callers never share a mutable dict with the cache
        self._entries[key] = (now + ttl, json.dumps(value))

    def _evict_expired(self, now: float):
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)


class RedisStatusCache(StatusCache):
    """Redis-backed cache using ``SETEX``."""

    backend = "redis"

    def __init__(
        self,
        redis_url: str,
        timeout: float = 1.5,
        metrics: Optional[MetricsCollector] = None,
        client: Optional[redis.Redis] = None,
    ):
        super().__init__(metrics)
        self.redis_url = redis_url
        self.timeout = timeout
        self._redis = client

    def _client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=self.timeout,
                socket_timeout=self.timeout,
            )
        return self._redis

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            data = await asyncio.wait_for(self._client().get(key), timeout=self.timeout)
            if not data:
                return None
            value = json.loads(data)
            return value if isinstance(value, dict) else None
        except Exception as e:
            self._record_error("get", key, e)
            return None

    async def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        try:
            await asyncio.wait_for(self._client().setex(key, ttl, json.dumps(value)), timeout=self.timeout)
        except Exception as e:
            self._record_error("set", key, e)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("Redis status cache closed")

    async def health_check(self) -> bool:
        try:
            await asyncio.wait_for(self._client().ping(), timeout=self.timeout)
            return True
        except Exception:
            return False


def build_status_cache(
    backend: str,
    redis_url: Optional[str] = None,
    timeout: float = 1.5,
    metrics: Optional[MetricsCollector] = None,
) -> StatusCache:
    """Construct the configured cache; anything unusable degrades to no cache."""
    backend = (backend or "none").lower()
    logger = get_logger("media.cache")

    if backend == "redis":
        if not redis_url:
            logger.warning("Redis cache selected but no URL configured. Cache will be disabled.")
            return NullStatusCache(metrics)
        return RedisStatusCache(redis_url, timeout=timeout, metrics=metrics)
    if backend == "memory":
        return MemoryStatusCache(metrics)
    if backend != "none":
        logger.warning("Unknown cache backend. Cache will be disabled.", backend=backend)
    return NullStatusCache(metrics)
