"""Cache factory: picks the adapter from config."""

from __future__ import annotations

from typing import Literal

import structlog

from sourcerr.domain.ports.cache import CachePort
from sourcerr.infrastructure.cache.diskcache_adapter import DiskcacheAdapter
from sourcerr.infrastructure.cache.redis_adapter import RedisAdapter

log = structlog.get_logger(__name__)

CacheBackend = Literal["diskcache", "redis"]


def create_cache(
    backend: CacheBackend = "diskcache",
    *,
    directory: str = "./cache",
    redis_url: str = "redis://localhost:6379/0",
    ttl_seconds: int = 3600,
    max_concurrent: int = 10,
) -> CachePort:
    """Build the cache adapter for *backend*.

    Raises:
        ValueError: Unknown backend.
    """
    log.info("cache_factory_create", backend=backend, ttl=ttl_seconds)
    if backend == "diskcache":
        return DiskcacheAdapter(
            directory=directory,
            ttl_seconds=ttl_seconds,
            max_concurrent=max_concurrent,
        )
    if backend == "redis":
        return RedisAdapter(url=redis_url, ttl_seconds=ttl_seconds)
    raise ValueError(f"Unknown cache backend: {backend!r}. Must be 'diskcache' or 'redis'.")
