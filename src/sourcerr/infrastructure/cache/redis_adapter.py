"""Redis adapter: async Redis via redis.asyncio."""

from __future__ import annotations

import asyncio
import pickle
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

log = structlog.get_logger(__name__)


class RedisAdapter:
    """Async Redis cache, values pickled like the diskcache adapter.

    Redis errors are logged and degrade to cache misses; the cache never
    takes a request down.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        ttl_seconds: int = 3600,
        max_concurrent: int = 50,
    ) -> None:
        self.url = url
        self.default_ttl = ttl_seconds
        self._client: Redis | None = None
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def __aenter__(self) -> RedisAdapter:
        if self._client is None:
            self._client = Redis.from_url(self.url, decode_responses=False)
            try:
                await self._client.ping()
            except RedisError as e:
                log.error("redis_connection_failed", url=self.url, error=str(e))
                raise
            log.info("redis_connected", url=self.url)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            log.info("redis_closed")

    async def get(self, key: str) -> Any | None:
        if self._client is None:
            raise RuntimeError("Redis not initialized. Use 'async with cache:'")
        async with self._semaphore:
            try:
                raw = await self._client.get(key)
            except RedisError as e:
                log.error("redis_get_error", key=key, error=str(e))
                return None
        if raw is None:
            return None
        try:
            return pickle.loads(raw)
        except pickle.PickleError as e:
            log.error("redis_unpickle_error", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        """SET with TTL; ``ttl=0`` stores without expiry."""
        if self._client is None:
            raise RuntimeError("Redis not initialized.")
        ttl = self.default_ttl if ttl is None else ttl
        packed = pickle.dumps(value)
        async with self._semaphore:
            try:
                await self._client.set(key, packed, ex=ttl if ttl > 0 else None)
            except RedisError as e:
                log.error("redis_set_error", key=key, error=str(e))
                return
        log.debug("cache_set", key=key, ttl=ttl, size_bytes=len(packed))

    async def delete(self, key: str) -> bool:
        if self._client is None:
            return False
        async with self._semaphore:
            try:
                return await self._client.delete(key) > 0
            except RedisError as e:
                log.error("redis_delete_error", key=key, error=str(e))
                return False

    async def exists(self, key: str) -> bool:
        if self._client is None:
            return False
        async with self._semaphore:
            try:
                return await self._client.exists(key) > 0
            except RedisError as e:
                log.error("redis_exists_error", key=key, error=str(e))
                return False

    async def clear(self) -> None:
        if self._client is None:
            return
        async with self._semaphore:
            try:
                await self._client.flushdb()
            except RedisError as e:
                log.error("redis_flush_error", error=str(e))
                return
        log.warning("redis_flushed")
