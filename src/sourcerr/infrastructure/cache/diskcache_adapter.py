"""Diskcache adapter: SQLite-backed cache, no daemon process."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import structlog
from diskcache import Cache as DiskCache

log = structlog.get_logger(__name__)


class DiskcacheAdapter:
    """Async wrapper for the sync-only ``diskcache.Cache``.

    Disk I/O runs in ``asyncio.to_thread``; a semaphore bounds parallel
    operations to limit SQLite lock contention.

    Args:
        directory: SQLite DB directory.
        ttl_seconds: TTL used by ``set()`` when none is given.
        max_concurrent: Max parallel disk operations.
    """

    def __init__(
        self,
        directory: str | Path = "./cache",
        ttl_seconds: int = 3600,
        max_concurrent: int = 10,
    ) -> None:
        self.directory = Path(directory)
        self.default_ttl = ttl_seconds
        self._cache: DiskCache | None = None
        self._semaphore = asyncio.Semaphore(max_concurrent)

    def _require_open(self) -> DiskCache:
        if self._cache is None:
            raise RuntimeError(
                "Cache not initialized. Use 'async with cache:' or await cache.__aenter__()"
            )
        return self._cache

    # --- Context Manager ---
    async def __aenter__(self) -> DiskcacheAdapter:
        if self._cache is None:
            self._cache = await asyncio.to_thread(DiskCache, str(self.directory))
            log.info("diskcache_opened", path=str(self.directory))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._cache is not None:
            await asyncio.to_thread(self._cache.close)
            self._cache = None
            log.info("diskcache_closed", directory=str(self.directory))

    # --- CachePort implementation ---
    async def get(self, key: str) -> Any | None:
        cache = self._require_open()
        async with self._semaphore:
            value = await asyncio.to_thread(cache.get, key, default=None)
        log.debug("cache_get", key=key, hit=value is not None)
        return value

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        """Write with TTL; ``ttl=0`` stores without expiry."""
        cache = self._require_open()
        ttl = self.default_ttl if ttl is None else ttl
        expire = ttl if ttl > 0 else None
        async with self._semaphore:
            await asyncio.to_thread(cache.set, key, value, expire=expire)
        log.debug("cache_set", key=key, ttl=expire)

    async def delete(self, key: str) -> bool:
        if self._cache is None:
            return False
        async with self._semaphore:
            deleted = await asyncio.to_thread(self._cache.delete, key)
        log.debug("cache_delete", key=key, deleted=deleted)
        return bool(deleted)

    async def exists(self, key: str) -> bool:
        if self._cache is None:
            return False
        cache = self._cache
        async with self._semaphore:
            return await asyncio.to_thread(cache.__contains__, key)

    async def clear(self) -> None:
        if self._cache is None:
            return
        async with self._semaphore:
            await asyncio.to_thread(self._cache.clear)
        log.warning("cache_cleared", directory=str(self.directory))
