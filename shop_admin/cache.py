"""
Read-through cache for entity records and entity lists.

Cache entries are derived state: a missing entry always falls back to a
repository read, so every operation here is best-effort.  Backend errors
are logged and swallowed; reads degrade to a miss and writes are skipped.

Key layout
----------
- ``<entity>:<id>`` for a single record, e.g. ``user:7``.
- ``<collection>:<serialised filter>`` for a list, e.g. ``users:{}`` (the
  canonical "list all" key) or ``products:{"search":"shoe"}``.
"""
import json
import logging
from typing import Any, Protocol

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class Cache(Protocol):
    """Narrow cache interface the services depend on."""

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None: ...

    async def delete(self, *keys: str) -> None: ...

    async def delete_pattern(self, pattern: str) -> None: ...


# ---------------------------------------------------------------------------
# Key helpers
# ---------------------------------------------------------------------------

def entity_key(entity: str, record_id: Any) -> str:
    return f"{entity}:{record_id}"


def list_key(collection: str, query_filter: dict | None = None) -> str:
    """
    Return the list key for *collection* under *query_filter*.

    The filter is serialised with sorted keys so equal filters always map
    to the same key; an empty filter yields the canonical ``<collection>:{}``.
    """
    serialised = json.dumps(query_filter or {}, sort_keys=True, separators=(",", ":"))
    return f"{collection}:{serialised}"


async def invalidate_lists(cache: Cache, collection: str) -> None:
    """Drop the canonical list entry and every filtered variant."""
    await cache.delete(list_key(collection))
    await cache.delete_pattern(f"{collection}:*")


async def invalidate_entity(cache: Cache, entity: str, collection: str, record_id: Any) -> None:
    """Drop the record's own entry plus all list entries of its collection."""
    await cache.delete(entity_key(entity, record_id))
    await invalidate_lists(cache, collection)


# ---------------------------------------------------------------------------
# Implementations
# ---------------------------------------------------------------------------

class RedisCache:
    """
    Cache-aside store backed by Redis.

    All public methods are safe to call even when Redis is unavailable:
    read operations return None and write operations are skipped, so the
    application degrades gracefully without raising exceptions to callers.
    """

    def __init__(self, url: str, default_ttl: int = 3600) -> None:
        self._url = url
        self._default_ttl = default_ttl
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            self._url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        # Ping to surface mis-configuration early (non-fatal).
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", self._url)
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, cache reads will miss: %s", exc)

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Return the cached value for *key*, or None on a miss / error."""
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
        except Exception as exc:
            logger.warning("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None
        if data is None:
            self._misses += 1
            return None
        try:
            value = json.loads(data)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %r", key)
            self._misses += 1
            return None
        self._hits += 1
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """
        Persist *value* under *key* for *ttl* seconds (default TTL if None).

        Serialisation errors and Redis failures are logged but never
        propagated: a cache write failure must never break a request.
        """
        if not self._redis:
            return
        try:
            serialised = json.dumps(value, default=str)
            await self._redis.set(key, serialised, ex=ttl or self._default_ttl)
        except Exception as exc:
            logger.warning("Cache SET error for key=%r: %s", key, exc)

    async def delete(self, *keys: str) -> None:
        if not self._redis or not keys:
            return
        try:
            await self._redis.delete(*keys)
            logger.debug("Cache cleared key(s) %s", ", ".join(keys))
        except Exception as exc:
            logger.warning("Cache DELETE error for keys=%r: %s", keys, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """
        Delete all keys matching *pattern* using SCAN (avoids blocking KEYS).
        """
        if not self._redis:
            return
        try:
            keys: list[str] = []
            async for key in self._redis.scan_iter(match=pattern):
                keys.append(key)
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache invalidated %d key(s) matching %r", len(keys), pattern)
        except Exception as exc:
            logger.warning("Cache DELETE_PATTERN error for pattern=%r: %s", pattern, exc)

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        """Return a snapshot of hit/miss counters for metrics endpoints."""
        total = self._hits + self._misses
        return {
            "backend": "redis",
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


class NullCache:
    """Cache that stores nothing; every read is a miss."""

    async def get(self, key: str) -> Any | None:
        return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        return None

    async def delete(self, *keys: str) -> None:
        return None

    async def delete_pattern(self, pattern: str) -> None:
        return None

    @property
    def stats(self) -> dict:
        return {"backend": "none", "hits": 0, "misses": 0, "hit_rate": 0.0}
