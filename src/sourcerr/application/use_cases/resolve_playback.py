"""Resolve a selected stream into a playable URL."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

import structlog

from sourcerr.domain.entities.streams import AggregationRequest, SourceKind, Stream
from sourcerr.domain.ports.settings import SettingsPort


class _DirectSource(Protocol):
    async def resolve(
        self,
        stream: Stream,
        *,
        season: int | None = None,
        episode: int | None = None,
    ) -> Stream | None: ...


_DirectSourceFactory = Callable[[str], _DirectSource]

log = structlog.get_logger(__name__)


class ResolvePlaybackUseCase:
    """Direct streams pass through; torrents go through the debrid service.

    Returns None when there is no credential or the service has no link.
    ``DebridError`` propagates to the caller.
    """

    def __init__(
        self,
        *,
        settings: SettingsPort,
        direct_source_factory: _DirectSourceFactory,
    ) -> None:
        self._settings = settings
        self._direct_source_factory = direct_source_factory

    async def execute(
        self, stream: Stream, request: AggregationRequest
    ) -> Stream | None:
        if stream.source_kind is SourceKind.DIRECT_URL:
            return stream

        snapshot = await self._settings.snapshot()
        if not snapshot.debrid_credential:
            log.info("playback_no_credential", info_hash=stream.info_hash)
            return None

        source = self._direct_source_factory(snapshot.debrid_credential)
        return await source.resolve(
            stream,
            season=request.season,
            episode=request.episode,
        )
