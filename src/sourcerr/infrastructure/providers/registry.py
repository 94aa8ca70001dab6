"""Registry of installed third-party stream providers."""

from __future__ import annotations

import asyncio

import structlog

from sourcerr.domain.entities.providers import Provider
from sourcerr.domain.entities.streams import MediaKind
from sourcerr.domain.exceptions import FetchError, ManifestError
from sourcerr.domain.ports.provider_store import ProviderStorePort
from sourcerr.infrastructure.common.resilient_fetcher import ResilientFetcher
from sourcerr.infrastructure.providers.manifest import (
    ensure_http_url,
    manifest_fetch_url,
    parse_manifest,
    provider_from_manifest,
)

log = structlog.get_logger(__name__)


def _matches_any(content_id: str, prefixes: frozenset[str]) -> bool:
    return any(content_id.startswith(p) for p in prefixes)


def heal_order(providers: dict[str, Provider], order: list[str]) -> list[str]:
    """Drop ids that are no longer installed, append installed ids missing from *order*."""
    healed = [pid for pid in dict.fromkeys(order) if pid in providers]
    healed.extend(pid for pid in providers if pid not in healed)
    return healed


class ProviderRegistry:
    """Installed providers plus their display order.

    Constructed once at startup and shared. Reads are lock-free over the
    in-memory state; install/remove are serialized by one lock so
    concurrent mutations cannot lose each other's writes.
    """

    def __init__(
        self,
        *,
        fetcher: ResilientFetcher,
        store: ProviderStorePort,
        manifest_timeout: float = 15.0,
    ) -> None:
        self._fetcher = fetcher
        self._store = store
        self._manifest_timeout = manifest_timeout
        self._providers: dict[str, Provider] = {}
        self._order: list[str] = []
        self._lock = asyncio.Lock()

    async def load(self) -> None:
        async with self._lock:
            providers, order = await self._store.load()
            self._providers = dict(providers)
            self._order = heal_order(self._providers, order)
        log.info("provider_registry_loaded", count=len(self._providers))

    async def install(self, manifest_url: str) -> Provider:
        """Fetch, validate and upsert a provider by manifest URL.

        Raises:
            UnsupportedSchemeError: URL is not http(s).
            ManifestError: Manifest could not be fetched or parsed.
        """
        manifest_url = ensure_http_url(manifest_url)
        fetch_url = manifest_fetch_url(manifest_url)

        try:
            data = await self._fetcher.fetch_json(fetch_url, timeout=self._manifest_timeout)
        except FetchError as exc:
            log.warning("provider_manifest_fetch_failed", url=fetch_url, error=str(exc))
            raise ManifestError(f"Failed to fetch provider manifest: {exc}") from exc

        provider = provider_from_manifest(parse_manifest(data), manifest_url)

        async with self._lock:
            is_new = provider.id not in self._providers
            self._providers[provider.id] = provider
            if is_new:
                self._order.append(provider.id)
            await self._store.save(dict(self._providers), list(self._order))

        log.info(
            "provider_installed",
            provider_id=provider.id,
            name=provider.name,
            updated=not is_new,
        )
        return provider

    async def remove(self, provider_id: str) -> bool:
        async with self._lock:
            if provider_id not in self._providers:
                return False
            del self._providers[provider_id]
            self._order = [pid for pid in self._order if pid != provider_id]
            await self._store.save(dict(self._providers), list(self._order))
        log.info("provider_removed", provider_id=provider_id)
        return True

    def list_providers(self) -> list[Provider]:
        """Installed providers in persisted order."""
        return [self._providers[pid] for pid in self._order if pid in self._providers]

    def get(self, provider_id: str) -> Provider | None:
        return self._providers.get(provider_id)

    @staticmethod
    def supports(provider: Provider, media_kind: MediaKind, content_id: str) -> bool:
        """Stream-capable, and *content_id* matches every declared prefix constraint.

        ``media_kind`` is accepted for interface symmetry; declared types
        are not checked since many providers under-declare them.
        """
        if not provider.stream_capable:
            return False
        if provider.id_prefixes and not _matches_any(content_id, provider.id_prefixes):
            return False
        if provider.stream_id_prefixes and not _matches_any(
            content_id, provider.stream_id_prefixes
        ):
            return False
        return True

    def eligible(self, media_kind: MediaKind, content_id: str) -> list[Provider]:
        return [
            p for p in self.list_providers() if self.supports(p, media_kind, content_id)
        ]

    def has_stream_providers(self) -> bool:
        return any(p.stream_capable for p in self._providers.values())
