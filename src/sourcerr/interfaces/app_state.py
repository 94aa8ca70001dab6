"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from sourcerr.infrastructure.config import AppConfig

if TYPE_CHECKING:
    from sourcerr.application.use_cases import (
        AggregateStreamsUseCase,
        ResolvePlaybackUseCase,
    )
    from sourcerr.domain.ports import CachePort, SettingsPort
    from sourcerr.infrastructure.common import ResilientFetcher, SupersedingScope
    from sourcerr.infrastructure.providers import ProviderRegistry
    from sourcerr.infrastructure.sources import DmmCacheSource


class AppState(State):
    """FastAPI application state with all DI resources.

    Lifecycle managed by composition.py::lifespan().
    """

    # Configuration
    config: AppConfig

    # Infrastructure
    cache: CachePort
    http_client: httpx.AsyncClient
    fetcher: ResilientFetcher
    settings: SettingsPort

    # Providers and sources
    registry: ProviderRegistry
    dmm: DmmCacheSource

    # Application services
    aggregate_uc: AggregateStreamsUseCase
    playback_uc: ResolvePlaybackUseCase

    # One in-flight stream request per client
    superseding: SupersedingScope
