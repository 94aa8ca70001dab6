"""Installed-provider store backed by CachePort (diskcache/redis)."""

from __future__ import annotations

import json
from typing import Any

import structlog

from sourcerr.domain.entities.providers import Provider
from sourcerr.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)

_PROVIDERS_KEY = "providers:installed"
_ORDER_KEY = "providers:order"


def _serialize_provider(provider: Provider) -> dict[str, Any]:
    return {
        "id": provider.id,
        "name": provider.name,
        "version": provider.version,
        "base_url": provider.base_url,
        "original_manifest_url": provider.original_manifest_url,
        "supported_types": sorted(provider.supported_types),
        "stream_capable": provider.stream_capable,
        "id_prefixes": sorted(provider.id_prefixes),
        "stream_id_prefixes": sorted(provider.stream_id_prefixes),
    }


def _deserialize_provider(d: dict[str, Any]) -> Provider:
    return Provider(
        id=d["id"],
        name=d.get("name", d["id"]),
        version=d.get("version", "0.0.0"),
        base_url=d["base_url"],
        original_manifest_url=d.get("original_manifest_url", d["base_url"]),
        supported_types=frozenset(d.get("supported_types", [])),
        stream_capable=bool(d.get("stream_capable", False)),
        id_prefixes=frozenset(d.get("id_prefixes", [])),
        stream_id_prefixes=frozenset(d.get("stream_id_prefixes", [])),
    )


class CacheProviderStore:
    """Persists providers and their order as JSON, without expiry."""

    def __init__(self, cache: CachePort) -> None:
        self.cache = cache

    async def load(self) -> tuple[dict[str, Provider], list[str]]:
        providers: dict[str, Provider] = {}
        raw = await self.cache.get(_PROVIDERS_KEY)
        if raw is not None:
            try:
                for item in json.loads(raw):
                    provider = _deserialize_provider(item)
                    providers[provider.id] = provider
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                log.error("provider_store_deserialize_error", error=str(e))

        order: list[str] = []
        raw_order = await self.cache.get(_ORDER_KEY)
        if raw_order is not None:
            try:
                order = [str(pid) for pid in json.loads(raw_order)]
            except (json.JSONDecodeError, TypeError) as e:
                log.error("provider_order_deserialize_error", error=str(e))

        log.debug("provider_store_loaded", providers=len(providers), order=len(order))
        return providers, order

    async def save(self, providers: dict[str, Provider], order: list[str]) -> None:
        payload = json.dumps([_serialize_provider(p) for p in providers.values()])
        await self.cache.set(_PROVIDERS_KEY, payload, ttl=0)
        await self.cache.set(_ORDER_KEY, json.dumps(order), ttl=0)
        log.debug("provider_store_saved", providers=len(providers))
