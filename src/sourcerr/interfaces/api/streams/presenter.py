"""JSON rendering of aggregation results."""

from __future__ import annotations

from typing import Any

from sourcerr.domain.entities.streams import AggregationResult, ClassifiedStream
from sourcerr.infrastructure.common.parsers import format_size


def present_stream(item: ClassifiedStream) -> dict[str, Any]:
    stream, traits = item.stream, item.traits
    return {
        "source_kind": stream.source_kind.value,
        "provider_id": stream.provider_id,
        "provider": stream.provider_name,
        "name": stream.name,
        "title": stream.title,
        "description": stream.description,
        "info_hash": stream.info_hash,
        "url": stream.url,
        "file_index": stream.file_index,
        "cached": item.cached,
        "quality": traits.quality_tier.value,
        "resolution": traits.resolution,
        "codec": traits.codec,
        "hdr": traits.hdr,
        "audio": traits.audio,
        "source_type": traits.source_type,
        "languages": sorted(traits.languages),
        "seeders": traits.seed_count,
        "size_bytes": traits.size_bytes,
        "size": traits.size_label or (format_size(traits.size_bytes) if traits.size_bytes else None),
        "season_pack": traits.is_season_pack,
    }


def present_result(result: AggregationResult) -> dict[str, Any]:
    """Render *result*; group members are reported as counts only."""
    return {
        "mode": result.mode.value if result.mode is not None else None,
        "state": result.state.value,
        "error": result.error,
        "streams": [present_stream(s) for s in result.streams],
        "tiers": {
            tier.value: [present_stream(s) for s in streams]
            for tier, streams in result.tiers.items()
        },
        "tier_counts": {tier.value: count for tier, count in result.tier_counts.items()},
        "groups": {name: len(streams) for name, streams in result.groups.items()},
        "provider_counts": result.provider_counts,
        "season_packs": [present_stream(s) for s in result.season_packs],
    }
