"""Tiering, sorting, capping and grouping of verified streams."""

from __future__ import annotations

from collections import Counter

import structlog

from sourcerr.domain.entities.streams import (
    AggregationResult,
    AggregationState,
    ClassifiedStream,
    MediaKind,
    QualityTier,
    SortOrder,
    SourceMode,
)
from sourcerr.infrastructure.config.schema import RankingConfig

log = structlog.get_logger(__name__)

ALL_PROVIDERS = "All"

_TIER_ORDER = (QualityTier.UHD_4K, QualityTier.FHD_1080P, QualityTier.OTHER)


def sort_by_size(
    streams: list[ClassifiedStream], order: SortOrder
) -> list[ClassifiedStream]:
    return sorted(
        streams, key=lambda s: s.size_bytes, reverse=order is SortOrder.HIGH_TO_LOW
    )


class ResultRanker:
    """Builds the final AggregationResult for one mode.

    Tier rules:
      - 4K and 1080p are always surfaced (possibly empty).
      - Other is surfaced only in DMM-cache mode, and only when non-empty.
      - The per-tier cap applies in torrent-aggregator mode only.
    """

    def __init__(self, config: RankingConfig | None = None) -> None:
        self._config = config or RankingConfig()

    def _tiers(
        self,
        streams: list[ClassifiedStream],
        mode: SourceMode,
        sort_order: SortOrder,
    ) -> dict[QualityTier, list[ClassifiedStream]]:
        buckets: dict[QualityTier, list[ClassifiedStream]] = {t: [] for t in _TIER_ORDER}
        for stream in streams:
            buckets[stream.quality_tier].append(stream)

        tiers: dict[QualityTier, list[ClassifiedStream]] = {}
        for tier in _TIER_ORDER:
            bucket = sort_by_size(buckets[tier], sort_order)
            if tier is QualityTier.OTHER and (mode is not SourceMode.DMM_CACHE or not bucket):
                continue
            if mode is SourceMode.TORRENT_AGGREGATOR:
                bucket = bucket[: self._config.aggregator_cap]
            tiers[tier] = bucket
        return tiers

    def rank(
        self,
        streams: list[ClassifiedStream],
        *,
        mode: SourceMode,
        media_kind: MediaKind,
        sort_order: SortOrder | None = None,
        provider_filter: str | None = None,
    ) -> AggregationResult:
        sort_order = sort_order or self._config.default_sort
        provider_counts: dict[str, int] = {ALL_PROVIDERS: len(streams)}
        provider_counts.update(Counter(s.provider_name for s in streams))

        if provider_filter and provider_filter != ALL_PROVIDERS:
            streams = [s for s in streams if s.provider_name == provider_filter]

        season_packs: list[ClassifiedStream] = []
        if media_kind == "episode":
            season_packs = sort_by_size(
                [s for s in streams if s.traits.is_season_pack], SortOrder.HIGH_TO_LOW
            )
            streams = [s for s in streams if not s.traits.is_season_pack]
            if mode is SourceMode.TORRENT_AGGREGATOR:
                season_packs = season_packs[: self._config.aggregator_cap]

        tiers = self._tiers(streams, mode, sort_order)
        ranked = [s for bucket in tiers.values() for s in bucket]

        groups: dict[str, list[ClassifiedStream]] = {ALL_PROVIDERS: ranked}
        for stream in ranked:
            groups.setdefault(stream.provider_name, []).append(stream)

        log.debug(
            "streams_ranked",
            mode=mode.value,
            ranked=len(ranked),
            season_packs=len(season_packs),
            tiers={t.value: len(b) for t, b in tiers.items()},
        )
        return AggregationResult(
            mode=mode,
            state=AggregationState.DONE,
            streams=ranked,
            tiers=tiers,
            tier_counts={t: len(b) for t, b in tiers.items()},
            groups=groups,
            provider_counts=provider_counts,
            season_packs=season_packs,
        )
