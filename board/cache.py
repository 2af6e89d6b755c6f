"""
Cache backends and the degradation policy that sits on top of them.

Backends (``RedisCache``, ``MemoryCache``) are thin: they serialise to
JSON, honour a per-key TTL and raise ``StoreUnavailableError`` on any
transport problem.  ``CacheManager`` decides what a failure means:

- ``get`` failures are logged and reported as a miss, so reads fall back
  to the database;
- ``set`` failures are logged and swallowed, since losing a population
  only costs freshness;
- ``invalidate`` failures propagate, so a mutation is aborted instead of
  committing behind a stale entry.
"""
import json
import logging
import time
from typing import Any, Callable, Protocol

import redis.asyncio as redis
from redis.exceptions import RedisError

from board.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Key builders
# ---------------------------------------------------------------------------

POST_LIST_KEY = "posts"


def post_key(post_id: int) -> str:
    return f"post:{post_id}"


def comments_key(post_id: int, page: int, limit: int) -> str:
    return f"comments:post:{post_id}:{page}:{limit}"


def view_key(client_ip: str, user_agent_prefix: str, post_id: int) -> str:
    return f"view:{client_ip}:{user_agent_prefix}:{post_id}"


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------

class CacheBackend(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class RedisCache:
    """Redis-backed store; values are JSON documents written with ``EX``."""

    def __init__(self, url: str) -> None:
        self._url = url
        self._redis: redis.Redis | None = None

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
        except RedisError as exc:
            logger.warning("Redis ping failed, cache will degrade to misses: %s", exc)

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    def _client(self) -> redis.Redis:
        if self._redis is None:
            raise StoreUnavailableError("Redis is not connected")
        return self._redis

    async def get(self, key: str) -> Any | None:
        client = self._client()
        try:
            data = await client.get(key)
        except RedisError as exc:
            raise StoreUnavailableError(f"Redis GET failed: {exc}") from exc
        return json.loads(data) if data is not None else None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        client = self._client()
        try:
            await client.set(key, json.dumps(value, default=str), ex=ttl)
        except RedisError as exc:
            raise StoreUnavailableError(f"Redis SET failed: {exc}") from exc

    async def delete(self, key: str) -> None:
        client = self._client()
        try:
            await client.delete(key)
        except RedisError as exc:
            raise StoreUnavailableError(f"Redis DEL failed: {exc}") from exc


class MemoryCache:
    """
    In-process backend with lazy expiry.

    Values are stored as JSON text so callers never share mutable state
    with the cache, matching what a round trip through Redis gives.
    *clock* returns seconds and can be replaced to fast-forward TTLs.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, str]] = {}

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        self._entries[key] = (self._clock() + ttl, json.dumps(value, default=str))

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() < entry[0]


def build_cache_backend(backend: str, redis_url: str) -> CacheBackend:
    if backend == "memory":
        return MemoryCache()
    if backend == "redis":
        return RedisCache(redis_url)
    raise ValueError(f"Unknown cache backend: {backend!r}")


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

class CacheManager:
    """Applies the read/populate/invalidate failure policy to a backend."""

    def __init__(self, backend: CacheBackend) -> None:
        self.backend = backend
        self._hits: int = 0
        self._misses: int = 0

    async def get(self, key: str) -> Any | None:
        """
        Return the cached value for *key*, or None on a miss / error.

        Increments hit/miss counters for observability.
        """
        try:
            value = await self.backend.get(key)
        except StoreUnavailableError as exc:
            logger.warning("Cache GET failed for key=%r, falling back to store: %s", key, exc)
            self._misses += 1
            return None
        if value is None:
            logger.debug("Cache miss: %s", key)
            self._misses += 1
            return None
        logger.debug("Cache hit: %s", key)
        self._hits += 1
        return value

    async def set(self, key: str, value: Any, ttl: int) -> None:
        """Populate *key*; failures are logged and never propagated."""
        try:
            await self.backend.set(key, value, ttl)
        except StoreUnavailableError as exc:
            logger.warning("Cache SET failed for key=%r: %s", key, exc)

    async def invalidate(self, *keys: str) -> None:
        """
        Delete each of *keys*, one independent call per key.

        Raises ``StoreUnavailableError`` on the first failure; keys before
        it are already gone, keys after it are untouched.
        """
        for key in keys:
            await self.backend.delete(key)
        if keys:
            logger.debug("Cache invalidated %d key(s): %s", len(keys), ", ".join(keys))

    @property
    def stats(self) -> dict:
        """Return a snapshot of hit/miss counters for metrics endpoints."""
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }
