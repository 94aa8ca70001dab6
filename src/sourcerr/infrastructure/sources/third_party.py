"""Third-party provider source: one stream request per installed provider."""

from __future__ import annotations

import structlog

from sourcerr.domain.entities.providers import Provider
from sourcerr.domain.entities.streams import AggregationRequest, Stream
from sourcerr.domain.exceptions import FetchError
from sourcerr.infrastructure.common.cancellation import CancellationToken
from sourcerr.infrastructure.common.resilient_fetcher import ResilientFetcher
from sourcerr.infrastructure.providers.manifest import split_manifest_url
from sourcerr.infrastructure.sources.normalizers import normalize_all
from sourcerr.infrastructure.sources.payloads import ThirdPartyPayload, parse_wire_streams

log = structlog.get_logger(__name__)


def provider_stream_url(provider: Provider, request: AggregationRequest) -> str:
    """``{base}/stream/{type}/{id}.json`` plus the manifest's query string."""
    base, query = split_manifest_url(provider.original_manifest_url)
    url = f"{base}/stream/{request.stremio_type}/{request.stremio_id}.json"
    if query:
        url = f"{url}?{query}"
    return url


def dedupe_by_hash(streams: list[Stream]) -> list[Stream]:
    """First stream per info hash wins; hashless streams are all kept."""
    seen: set[str] = set()
    unique: list[Stream] = []
    for stream in streams:
        if stream.info_hash is not None:
            if stream.info_hash in seen:
                continue
            seen.add(stream.info_hash)
        unique.append(stream)
    return unique


class ThirdPartySource:
    def __init__(self, fetcher: ResilientFetcher, *, timeout: float = 60.0) -> None:
        self._fetcher = fetcher
        self.timeout = timeout

    async def fetch_provider(
        self,
        provider: Provider,
        request: AggregationRequest,
        *,
        token: CancellationToken | None = None,
    ) -> list[Stream]:
        """Streams of one provider; failures are logged and yield ``[]``."""
        url = provider_stream_url(provider, request)
        try:
            data = await self._fetcher.fetch_json(url, timeout=self.timeout, token=token)
        except FetchError as exc:
            log.warning(
                "source_fetch_failed",
                source=provider.id,
                content_id=request.stremio_id,
                error=str(exc),
            )
            return []

        streams = dedupe_by_hash(
            normalize_all(
                ThirdPartyPayload(
                    provider_id=provider.id,
                    provider_name=provider.name,
                    stream=wire,
                )
                for wire in parse_wire_streams(data, source=provider.id)
            )
        )
        log.info(
            "source_fetched",
            source=provider.id,
            content_id=request.stremio_id,
            count=len(streams),
        )
        return streams
