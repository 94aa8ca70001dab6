"""Shared test fixtures for the Sourcerr test suite."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest

from sourcerr.domain.entities.providers import Provider
from sourcerr.domain.entities.streams import (
    ClassifiedStream,
    QualityTier,
    SourceKind,
    SourceMode,
    Stream,
    StreamTraits,
)
from sourcerr.domain.ports.settings import SettingsSnapshot

HASH_A = "a" * 40
HASH_B = "b" * 40
HASH_C = "c" * 40
HASH_D = "d" * 40

# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_stream(
    *,
    info_hash: str | None = HASH_A,
    url: str | None = None,
    provider_id: str = "torrentio",
    provider_name: str = "Torrentio",
    name: str = "Torrentio\n1080p",
    title: str = "Movie.2023.1080p.WEB-DL.x264-GRP\n👤 42 💾 2.5 GB",
    description: str = "",
    file_index: int | None = None,
    size_hint: int | None = None,
    cached_flag: bool = False,
) -> Stream:
    kind = SourceKind.DIRECT_URL if url else SourceKind.TORRENT
    return Stream(
        source_kind=kind,
        provider_id=provider_id,
        provider_name=provider_name,
        name=name,
        title=title,
        description=description,
        info_hash=info_hash,
        url=url,
        file_index=file_index,
        size_hint=size_hint,
        cached_flag=cached_flag,
    )


def make_classified(
    *,
    info_hash: str | None = HASH_A,
    url: str | None = None,
    provider_name: str = "Torrentio",
    tier: QualityTier = QualityTier.FHD_1080P,
    size_bytes: int = 0,
    is_season_pack: bool = False,
    cached: bool = False,
) -> ClassifiedStream:
    stream = make_stream(
        info_hash=info_hash,
        url=url,
        provider_id=provider_name.lower(),
        provider_name=provider_name,
    )
    traits = StreamTraits(
        quality_tier=tier,
        size_bytes=size_bytes,
        is_season_pack=is_season_pack,
    )
    return ClassifiedStream(stream=stream, traits=traits, cached=cached)


def make_provider(
    *,
    provider_id: str = "community.example",
    name: str = "Example",
    manifest_url: str = "https://addon.example.com/manifest.json",
    stream_capable: bool = True,
    id_prefixes: frozenset[str] = frozenset(),
    stream_id_prefixes: frozenset[str] = frozenset(),
) -> Provider:
    return Provider(
        id=provider_id,
        name=name,
        version="1.0.0",
        base_url=manifest_url.replace("/manifest.json", ""),
        original_manifest_url=manifest_url,
        supported_types=frozenset({"movie", "series"}),
        stream_capable=stream_capable,
        id_prefixes=id_prefixes,
        stream_id_prefixes=stream_id_prefixes,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def stream_factory() -> Callable[..., Stream]:
    return make_stream


@pytest.fixture()
def classified_factory() -> Callable[..., ClassifiedStream]:
    return make_classified


@pytest.fixture()
def provider_factory() -> Callable[..., Provider]:
    return make_provider


@pytest.fixture()
def mock_cache() -> AsyncMock:
    """Mock CachePort."""
    cache = AsyncMock()
    cache.get = AsyncMock(return_value=None)
    cache.set = AsyncMock()
    cache.delete = AsyncMock(return_value=True)
    cache.exists = AsyncMock(return_value=False)
    cache.clear = AsyncMock()
    cache.aclose = AsyncMock()
    return cache


@pytest.fixture()
def aggregator_settings() -> AsyncMock:
    """SettingsPort in default (torrent aggregator) mode with a credential."""
    settings = AsyncMock()
    settings.snapshot = AsyncMock(
        return_value=SettingsSnapshot(
            third_party_enabled=False,
            active_source=SourceMode.TORRENT_AGGREGATOR,
            debrid_credential="tb-key",
        )
    )
    return settings
