"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, cast

import httpx
import structlog
from fastapi import FastAPI

from sourcerr.application.use_cases import AggregateStreamsUseCase, ResolvePlaybackUseCase
from sourcerr.domain.ports import CachePort
from sourcerr.infrastructure.cache.cache_factory import create_cache
from sourcerr.infrastructure.classification import classify
from sourcerr.infrastructure.common import ResilientFetcher, SupersedingScope
from sourcerr.infrastructure.config import AppConfig, ConfigSettingsStore
from sourcerr.infrastructure.debrid import TorboxClient
from sourcerr.infrastructure.persistence import CacheProviderStore
from sourcerr.infrastructure.providers import ProviderRegistry
from sourcerr.infrastructure.sources import (
    DirectDebridSource,
    DmmCacheSource,
    ThirdPartySource,
    TorrentAggregatorSource,
)
from sourcerr.infrastructure.streams import CacheVerifier, ResultRanker, merge_streams
from sourcerr.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


def _debrid_factory(
    config: AppConfig, http_client: httpx.AsyncClient, cache: CachePort
) -> Callable[[str], TorboxClient]:
    """One TorboxClient per API key, created on first use."""
    clients: dict[str, TorboxClient] = {}

    def _get(api_key: str) -> TorboxClient:
        client = clients.get(api_key)
        if client is None:
            client = TorboxClient(
                api_key=api_key,
                http_client=http_client,
                cache=cache,
                api_url=config.debrid.api_url,
                timeout=config.debrid.timeout_seconds,
                url_cache_ttl=config.debrid.url_cache_ttl_seconds,
                file_batch_size=config.debrid.file_batch_size,
                file_batch_delay=config.debrid.file_batch_delay_seconds,
            )
            clients[api_key] = client
        return client

    return _get


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan Hook: Initialize and cleanup all resources (DI Composition Root).

    Order matters:
        1. Cache (provider store and debrid URL cache depend on it)
        2. HTTP client + resilient fetcher
        3. Provider registry (loaded from the store)
        4. Sources, verifier, ranker
        5. Use cases
    """
    state = cast(AppState, app.state)
    config = state.config

    # 1) Cache
    cache = create_cache(
        backend=config.cache.backend,
        directory=str(config.cache.directory),
        redis_url=config.cache.redis_url,
        ttl_seconds=config.cache.ttl_seconds,
        max_concurrent=config.cache.max_concurrent,
    )
    await cache.__aenter__()
    state.cache = cache
    log.info("cache_initialized", backend=config.cache.backend)

    # 2) HTTP client + fetcher
    state.http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(config.http_timeout_seconds),
        headers={"User-Agent": config.http_user_agent},
        follow_redirects=config.http_follow_redirects,
    )
    state.fetcher = ResilientFetcher(
        state.http_client,
        proxies=config.fetch.proxies,
        selected_proxy=config.fetch.selected_proxy,
        attempt_timeout=config.fetch.attempt_timeout_seconds,
        direct_attempts=config.fetch.direct_attempts,
        direct_attempts_after_proxies=config.fetch.direct_attempts_after_proxies,
        backoff_base=config.fetch.backoff_base_seconds,
        max_backoff=config.fetch.max_backoff_seconds,
    )
    log.info("http_client_initialized", proxies=len(config.fetch.proxies))

    # 3) Provider registry
    state.registry = ProviderRegistry(
        fetcher=state.fetcher,
        store=CacheProviderStore(state.cache),
        manifest_timeout=config.sources.manifest_timeout_seconds,
    )
    await state.registry.load()

    # 4) Sources and stream pipeline
    state.settings = ConfigSettingsStore(config.settings)
    aggregator = TorrentAggregatorSource(
        state.fetcher,
        base_url=config.sources.aggregator_url,
        credential_token=config.sources.aggregator_token,
        provider_name=config.sources.aggregator_name,
        timeout=config.sources.aggregator_timeout_seconds,
    )
    state.dmm = DmmCacheSource(
        state.fetcher,
        base_url=config.sources.dmm_url,
        provider_name=config.sources.dmm_name,
        timeout=config.sources.dmm_timeout_seconds,
    )
    third_party = ThirdPartySource(
        state.fetcher, timeout=config.sources.provider_timeout_seconds
    )
    debrid_for = _debrid_factory(config, state.http_client, state.cache)

    # 5) Use cases
    state.aggregate_uc = AggregateStreamsUseCase(
        settings=state.settings,
        registry=state.registry,
        aggregator=aggregator,
        dmm=state.dmm,
        third_party=third_party,
        verifier_factory=lambda key: CacheVerifier(debrid_for(key)),
        ranker=ResultRanker(config.ranking),
        classify_fn=classify,
        merge_fn=merge_streams,
        request_deadline=config.sources.request_deadline_seconds,
    )
    state.playback_uc = ResolvePlaybackUseCase(
        settings=state.settings,
        direct_source_factory=lambda key: DirectDebridSource(debrid_for(key)),
    )
    state.superseding = SupersedingScope()
    log.info(
        "use_cases_initialized",
        third_party_enabled=config.settings.third_party_enabled,
        active_source=config.settings.active_source,
    )

    try:
        yield
    finally:
        await state.http_client.aclose()
        log.info("http_client_closed")

        await state.cache.aclose()
        log.info("cache_closed")

        log.info("app_shutdown_complete")
