"""DMM-cache source: pre-verified cached torrent metadata."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

import structlog

from sourcerr.domain.entities.streams import AggregationRequest, Stream
from sourcerr.domain.exceptions import FetchError
from sourcerr.infrastructure.common.cancellation import CancellationToken
from sourcerr.infrastructure.common.resilient_fetcher import ResilientFetcher
from sourcerr.infrastructure.sources.normalizers import normalize_all
from sourcerr.infrastructure.sources.payloads import DmmCachePayload, parse_dmm_records

log = structlog.get_logger(__name__)


class DmmCacheSource:
    def __init__(
        self,
        fetcher: ResilientFetcher,
        *,
        base_url: str = "https://zileanfortheweebs.midnightignite.me",
        provider_id: str = "zilean",
        provider_name: str = "Zilean",
        timeout: float = 15.0,
    ) -> None:
        self._fetcher = fetcher
        self._base_url = base_url.rstrip("/")
        self.provider_id = provider_id
        self.provider_name = provider_name
        self.timeout = timeout

    def search_url(self, request: AggregationRequest) -> str:
        params: dict[str, Any] = {"ImdbId": request.content_id}
        if request.media_kind == "episode":
            params["Season"] = request.season
            params["Episode"] = request.episode
        return f"{self._base_url}/dmm/filtered?{urlencode(params)}"

    async def search(
        self,
        request: AggregationRequest,
        *,
        token: CancellationToken | None = None,
    ) -> list[Stream]:
        """Query the filtered endpoint. Network failures yield ``[]``."""
        url = self.search_url(request)
        try:
            data = await self._fetcher.fetch_json(url, timeout=self.timeout, token=token)
        except FetchError as exc:
            log.warning(
                "source_fetch_failed",
                source=self.provider_id,
                content_id=request.stremio_id,
                error=str(exc),
            )
            return []

        streams = normalize_all(
            DmmCachePayload(
                provider_id=self.provider_id,
                provider_name=self.provider_name,
                record=record,
            )
            for record in parse_dmm_records(data)
        )
        log.info(
            "source_fetched",
            source=self.provider_id,
            content_id=request.stremio_id,
            count=len(streams),
        )
        return streams

    async def healthcheck(self) -> bool:
        try:
            await self._fetcher.fetch(f"{self._base_url}/healthchecks/ping", timeout=5.0)
        except FetchError:
            return False
        return True
