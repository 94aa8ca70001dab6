from .debrid import DebridFile, DebridTorrent
from .providers import Provider
from .streams import (
    AggregationRequest,
    AggregationResult,
    AggregationState,
    CachePolicy,
    ClassifiedStream,
    MediaKind,
    QualityTier,
    SortOrder,
    SourceKind,
    SourceMode,
    Stream,
    StreamTraits,
    canonical_info_hash,
)

__all__ = [
    "AggregationRequest",
    "AggregationResult",
    "AggregationState",
    "CachePolicy",
    "ClassifiedStream",
    "DebridFile",
    "DebridTorrent",
    "MediaKind",
    "Provider",
    "QualityTier",
    "SortOrder",
    "SourceKind",
    "SourceMode",
    "Stream",
    "StreamTraits",
    "canonical_info_hash",
]
