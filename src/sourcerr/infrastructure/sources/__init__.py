"""Stream sources and their payload normalizers."""

from __future__ import annotations

from .direct_debrid import DirectDebridSource
from .dmm_cache import DmmCacheSource
from .normalizers import extract_info_hash, is_debrid_url, normalize, normalize_all
from .third_party import ThirdPartySource, dedupe_by_hash, provider_stream_url
from .torrent_aggregator import TorrentAggregatorSource

__all__ = [
    "DirectDebridSource",
    "DmmCacheSource",
    "ThirdPartySource",
    "TorrentAggregatorSource",
    "dedupe_by_hash",
    "extract_info_hash",
    "is_debrid_url",
    "normalize",
    "normalize_all",
    "provider_stream_url",
]
