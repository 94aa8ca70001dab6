"""One normalizer per payload variant, each producing a canonical Stream."""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import singledispatch

import structlog

from sourcerr.domain.entities.streams import SourceKind, Stream, canonical_info_hash
from sourcerr.infrastructure.common.parsers import format_size, to_int
from sourcerr.infrastructure.sources.payloads import (
    DirectDebridUrlPayload,
    DmmCachePayload,
    DmmRecord,
    SourcePayload,
    ThirdPartyPayload,
    TorrentAggregatorPayload,
)

log = structlog.get_logger(__name__)

_HASH_IN_PATH = re.compile(r"/([a-fA-F0-9]{40})")
_HASH_ANYWHERE = re.compile(r"([a-fA-F0-9]{40})")

# Substrings marking a URL served by a debrid service
DEBRID_URL_MARKERS: tuple[str, ...] = (
    "torbox",
    "real-debrid",
    "alldebrid",
    "premiumize",
    "debrid",
)

_MAX_TITLE = 100


def _safe_hash(value: str | None) -> str | None:
    try:
        return canonical_info_hash(value)
    except ValueError:
        return None


def extract_info_hash(
    info_hash: str | None, url: str | None, binge_group: str | None
) -> str | None:
    """``infoHash``, else a 40-hex URL path segment, else one in ``bingeGroup``."""
    found = _safe_hash(info_hash)
    if found:
        return found
    if url:
        match = _HASH_IN_PATH.search(url)
        if match:
            return match.group(1).lower()
    if binge_group:
        match = _HASH_ANYWHERE.search(binge_group)
        if match:
            return match.group(1).lower()
    return None


def is_debrid_url(url: str | None) -> bool:
    if not url:
        return False
    lowered = url.lower()
    return any(marker in lowered for marker in DEBRID_URL_MARKERS)


def dmm_quality(record: DmmRecord) -> str:
    if record.resolution:
        res = record.resolution.lower()
        if "2160" in res or "4k" in res:
            return "4K"
        for height in ("1080", "720", "480"):
            if height in res:
                return f"{height}p"
        return record.resolution
    return record.quality or "Unknown"


def dmm_description(record: DmmRecord) -> str:
    parts: list[str] = []
    size_bytes = to_int(record.size)
    if size_bytes:
        parts.append(format_size(size_bytes))
    if record.codec:
        parts.append(record.codec.upper())
    if record.audio:
        parts.append("/".join(record.audio))
    if record.hdr:
        parts.append("/".join(record.hdr))
    if record.quality:
        parts.append(record.quality)
    if 0 < len(record.languages) <= 3:
        parts.append("/".join(lang.upper() for lang in record.languages))
    if record.group:
        parts.append(record.group)
    return " • ".join(parts)


# --- Public API ---


@singledispatch
def normalize(payload: object) -> Stream | None:
    """Turn one payload into a canonical Stream; None drops it."""
    raise TypeError(f"No normalizer for payload type {type(payload).__name__}")


@normalize.register
def _normalize_aggregator(payload: TorrentAggregatorPayload) -> Stream | None:
    wire = payload.stream
    info_hash = extract_info_hash(wire.info_hash, wire.url, wire.behavior_hints.binge_group)
    if info_hash is None and not wire.url:
        return None
    return Stream(
        source_kind=SourceKind.DIRECT_URL if wire.url else SourceKind.TORRENT,
        provider_id=payload.provider_id,
        provider_name=payload.provider_name,
        name=wire.name or "",
        title=wire.title or "",
        description=wire.description or "",
        info_hash=info_hash,
        url=wire.url,
        file_index=wire.file_idx,
        size_hint=wire.behavior_hints.video_size,
        cached_flag=payload.prefiltered or bool(wire.behavior_hints.cached),
    )


@normalize.register
def _normalize_dmm(payload: DmmCachePayload) -> Stream | None:
    record = payload.record
    info_hash = _safe_hash(record.info_hash)
    if info_hash is None:
        return None
    title = record.raw_title or record.parsed_title or f"{payload.provider_name} Stream"
    if len(title) > _MAX_TITLE:
        title = title[: _MAX_TITLE - 3] + "..."
    return Stream(
        source_kind=SourceKind.TORRENT,
        provider_id=payload.provider_id,
        provider_name=payload.provider_name,
        name=f"⚡ {payload.provider_name} • {dmm_quality(record)}",
        title=title,
        description=dmm_description(record),
        info_hash=info_hash,
        size_hint=to_int(record.size),
    )


@normalize.register
def _normalize_third_party(payload: ThirdPartyPayload) -> Stream | None:
    wire = payload.stream
    info_hash = _safe_hash(wire.info_hash)
    if info_hash is None and not wire.url:
        return None

    hinted_cached = bool(wire.behavior_hints.cached)
    is_direct = bool(wire.url) and (
        info_hash is None or is_debrid_url(wire.url) or hinted_cached
    )
    return Stream(
        source_kind=SourceKind.DIRECT_URL if is_direct else SourceKind.TORRENT,
        provider_id=payload.provider_id,
        provider_name=payload.provider_name,
        name=wire.name or "",
        title=wire.title or wire.name or "",
        description=wire.description or "",
        info_hash=info_hash,
        url=wire.url if is_direct else None,
        file_index=wire.file_idx,
        size_hint=wire.behavior_hints.video_size,
        cached_flag=is_direct or hinted_cached,
    )


@normalize.register
def _normalize_direct_debrid(payload: DirectDebridUrlPayload) -> Stream | None:
    return Stream(
        source_kind=SourceKind.DIRECT_URL,
        provider_id=payload.provider_id,
        provider_name=payload.provider_name,
        name=payload.name,
        title=payload.title,
        description=payload.description,
        info_hash=_safe_hash(payload.info_hash),
        url=payload.url,
        file_index=payload.file_index,
        cached_flag=True,
    )


def normalize_all(payloads: Iterable[SourcePayload]) -> list[Stream]:
    streams: list[Stream] = []
    dropped = 0
    for payload in payloads:
        stream = normalize(payload)
        if stream is None:
            dropped += 1
            continue
        streams.append(stream)
    if dropped:
        log.debug("payloads_dropped", dropped=dropped, kept=len(streams))
    return streams
