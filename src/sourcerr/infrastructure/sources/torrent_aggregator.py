"""Torrent aggregator source (credential-prefiltered and unfiltered variants)."""

from __future__ import annotations

import structlog

from sourcerr.domain.entities.streams import AggregationRequest, Stream
from sourcerr.domain.exceptions import FetchError
from sourcerr.infrastructure.common.cancellation import CancellationToken
from sourcerr.infrastructure.common.resilient_fetcher import ResilientFetcher
from sourcerr.infrastructure.sources.normalizers import normalize_all
from sourcerr.infrastructure.sources.payloads import (
    TorrentAggregatorPayload,
    parse_wire_streams,
)

log = structlog.get_logger(__name__)


class TorrentAggregatorSource:
    """Queries ``{base}/stream/{type}/{id}.json``.

    The prefiltered variant inserts ``{token}={credential}`` after the
    base URL so the aggregator only returns entries cached on the
    debrid service.
    """

    def __init__(
        self,
        fetcher: ResilientFetcher,
        *,
        base_url: str = "https://torrentio.strem.fun",
        credential_token: str = "torbox",
        provider_id: str = "torrentio",
        provider_name: str = "Torrentio",
        timeout: float = 15.0,
    ) -> None:
        self._fetcher = fetcher
        self._base_url = base_url.rstrip("/")
        self._credential_token = credential_token
        self.provider_id = provider_id
        self.provider_name = provider_name
        self.timeout = timeout

    def stream_url(self, request: AggregationRequest, credential: str | None = None) -> str:
        prefix = self._base_url
        if credential:
            prefix = f"{prefix}/{self._credential_token}={credential}"
        return f"{prefix}/stream/{request.stremio_type}/{request.stremio_id}.json"

    async def fetch_prefiltered(
        self,
        request: AggregationRequest,
        credential: str,
        *,
        token: CancellationToken | None = None,
    ) -> list[Stream]:
        """Cached-only results; every stream is flagged cached."""
        return await self._fetch(
            self.stream_url(request, credential), request, prefiltered=True, token=token
        )

    async def fetch_unfiltered(
        self,
        request: AggregationRequest,
        *,
        token: CancellationToken | None = None,
    ) -> list[Stream]:
        return await self._fetch(
            self.stream_url(request), request, prefiltered=False, token=token
        )

    async def _fetch(
        self,
        url: str,
        request: AggregationRequest,
        *,
        prefiltered: bool,
        token: CancellationToken | None,
    ) -> list[Stream]:
        variant = "prefiltered" if prefiltered else "unfiltered"
        try:
            data = await self._fetcher.fetch_json(url, timeout=self.timeout, token=token)
        except FetchError as exc:
            # url is not logged: the prefiltered one carries the credential
            log.warning(
                "source_fetch_failed",
                source=self.provider_id,
                variant=variant,
                content_id=request.stremio_id,
                error=str(exc),
            )
            return []

        streams = normalize_all(
            TorrentAggregatorPayload(
                provider_id=self.provider_id,
                provider_name=self.provider_name,
                prefiltered=prefiltered,
                stream=wire,
            )
            for wire in parse_wire_streams(data, source=self.provider_id)
        )
        log.info(
            "source_fetched",
            source=self.provider_id,
            variant=variant,
            content_id=request.stremio_id,
            count=len(streams),
        )
        return streams
