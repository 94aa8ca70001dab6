"""Merging, cache verification and ranking of aggregated streams."""

from __future__ import annotations

from .cache_verifier import CacheVerifier
from .merger import merge_streams
from .ranker import ALL_PROVIDERS, ResultRanker, sort_by_size

__all__ = [
    "ALL_PROVIDERS",
    "CacheVerifier",
    "ResultRanker",
    "merge_streams",
    "sort_by_size",
]
