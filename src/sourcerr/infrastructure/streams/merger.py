"""Cross-source deduplication by info hash."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, TypeVar

import structlog

log = structlog.get_logger(__name__)


class _Hashed(Protocol):
    @property
    def info_hash(self) -> str | None: ...


T = TypeVar("T", bound=_Hashed)


def merge_streams(per_source: Iterable[list[T]]) -> list[T]:
    """Flatten per-source results, keeping the first item per info hash.

    Works on raw and classified streams alike. Later duplicates are
    dropped as-is (no field reconciliation). Hashless direct-URL streams
    are never deduplicated.
    """
    seen: set[str] = set()
    merged: list[T] = []
    total = 0
    for items in per_source:
        for item in items:
            total += 1
            key = item.info_hash.lower() if item.info_hash else None
            if key is not None:
                if key in seen:
                    continue
                seen.add(key)
            merged.append(item)

    if total != len(merged):
        log.debug("streams_merged", received=total, kept=len(merged))
    return merged
