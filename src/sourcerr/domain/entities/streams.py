"""Domain entities for stream aggregation.

Pure value objects, no framework dependencies, no I/O.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

MediaKind = Literal["movie", "episode"]
StremioType = Literal["movie", "series"]

_HASH_RE = re.compile(r"^[0-9a-f]{40}$")


class SourceKind(str, Enum):
    TORRENT = "torrent"
    DIRECT_URL = "direct_url"


class QualityTier(str, Enum):
    """Coarse resolution bucket. Every stream belongs to exactly one."""

    UHD_4K = "4K"
    FHD_1080P = "1080p"
    OTHER = "Other"


class SourceMode(str, Enum):
    THIRD_PARTY = "third_party"
    DMM_CACHE = "dmm_cache"
    TORRENT_AGGREGATOR = "torrent_aggregator"


class CachePolicy(str, Enum):
    CACHED_ONLY = "cached_only"
    EXPLORATORY = "exploratory"


class SortOrder(str, Enum):
    HIGH_TO_LOW = "high_to_low"
    LOW_TO_HIGH = "low_to_high"


class AggregationState(str, Enum):
    INIT = "INIT"
    SOURCE_SELECT = "SOURCE_SELECT"
    FETCH = "FETCH"
    CLASSIFY = "CLASSIFY"
    DEDUP = "DEDUP"
    CACHE_VERIFY = "CACHE_VERIFY"
    DONE = "DONE"
    FAILED = "FAILED"


def canonical_info_hash(value: str | None) -> str | None:
    """Return the lowercase 40-hex form of an info hash.

    Empty values map to None. Anything that is not 40 hex characters
    raises ValueError.
    """
    if value is None:
        return None
    candidate = value.strip().lower()
    if not candidate:
        return None
    if not _HASH_RE.match(candidate):
        raise ValueError(f"Invalid info hash: {value!r}")
    return candidate


@dataclass(frozen=True)
class Stream:
    """Canonical stream record produced by every source normalizer."""

    source_kind: SourceKind
    provider_id: str
    provider_name: str
    name: str = ""
    title: str = ""
    description: str = ""
    info_hash: str | None = None
    url: str | None = None
    file_index: int | None = None
    size_hint: int | None = None
    cached_flag: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "info_hash", canonical_info_hash(self.info_hash))
        if self.source_kind is SourceKind.DIRECT_URL and not self.url:
            raise ValueError("direct_url streams require a url")
        if self.source_kind is SourceKind.TORRENT and self.info_hash is None:
            raise ValueError("torrent streams require an info hash")

    @property
    def raw_text(self) -> str:
        """Newline-joined text fields used for classification."""
        return "\n".join(part for part in (self.name, self.title, self.description) if part)


@dataclass(frozen=True)
class StreamTraits:
    """Attributes extracted from a stream's free text."""

    quality_tier: QualityTier = QualityTier.OTHER
    resolution: str | None = None
    codec: str | None = None
    hdr: str | None = None
    audio: str | None = None
    source_type: str | None = None
    languages: frozenset[str] = frozenset()
    seed_count: int = 0
    size_bytes: int = 0
    size_label: str | None = None
    cached_hint: bool = False
    is_season_pack: bool = False


@dataclass(frozen=True)
class ClassifiedStream:
    """A stream plus its classified traits and verified cache status."""

    stream: Stream
    traits: StreamTraits
    cached: bool = False

    @property
    def info_hash(self) -> str | None:
        return self.stream.info_hash

    @property
    def provider_id(self) -> str:
        return self.stream.provider_id

    @property
    def provider_name(self) -> str:
        return self.stream.provider_name

    @property
    def quality_tier(self) -> QualityTier:
        return self.traits.quality_tier

    @property
    def size_bytes(self) -> int:
        return self.traits.size_bytes


@dataclass(frozen=True)
class AggregationRequest:
    """One lookup: a movie, or a single episode of a series."""

    content_id: str  # IMDb id, e.g. "tt1234567"
    media_kind: MediaKind
    season: int | None = None
    episode: int | None = None

    def __post_init__(self) -> None:
        if self.media_kind == "episode" and (self.season is None or self.episode is None):
            raise ValueError("episode requests require season and episode")

    @property
    def stremio_type(self) -> StremioType:
        return "series" if self.media_kind == "episode" else "movie"

    @property
    def stremio_id(self) -> str:
        """Path id: ``imdbId`` or ``imdbId:season:episode``."""
        if self.media_kind == "episode":
            return f"{self.content_id}:{self.season}:{self.episode}"
        return self.content_id

    @classmethod
    def from_stremio_id(cls, content_type: str, raw_id: str) -> AggregationRequest:
        """Parse a ``movie``/``series`` path id.

        Raises:
            ValueError: Unknown type or malformed id.
        """
        if content_type == "movie":
            if not raw_id or ":" in raw_id:
                raise ValueError(f"Invalid movie id: {raw_id!r}")
            return cls(content_id=raw_id, media_kind="movie")
        if content_type == "series":
            parts = raw_id.split(":")
            if len(parts) != 3 or not parts[0]:
                raise ValueError(f"Invalid episode id: {raw_id!r}")
            return cls(
                content_id=parts[0],
                media_kind="episode",
                season=int(parts[1]),
                episode=int(parts[2]),
            )
        raise ValueError(f"Unsupported content type: {content_type!r}")


@dataclass(frozen=True)
class AggregationResult:
    """Ranked, grouped output of one aggregation request."""

    mode: SourceMode | None
    state: AggregationState
    streams: list[ClassifiedStream] = field(default_factory=list)
    tiers: dict[QualityTier, list[ClassifiedStream]] = field(default_factory=dict)
    tier_counts: dict[QualityTier, int] = field(default_factory=dict)
    groups: dict[str, list[ClassifiedStream]] = field(default_factory=dict)
    provider_counts: dict[str, int] = field(default_factory=dict)
    season_packs: list[ClassifiedStream] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def failed(cls, mode: SourceMode | None, error: str) -> AggregationResult:
        return cls(
            mode=mode,
            state=AggregationState.FAILED,
            provider_counts={"All": 0},
            error=error,
        )
