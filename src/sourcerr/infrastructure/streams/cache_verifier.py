"""Batch debrid cache verification of classified streams."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable

import structlog

from sourcerr.domain.entities.streams import CachePolicy, ClassifiedStream
from sourcerr.domain.ports.debrid import DebridPort

log = structlog.get_logger(__name__)


class CacheVerifier:
    """Checks cache status of all hashes in a request with one service call.

    ``DebridError`` from the service is not caught here; each aggregation
    mode decides how to degrade.
    """

    def __init__(self, debrid: DebridPort) -> None:
        self._debrid = debrid

    async def batch_check(self, hashes: Iterable[str]) -> dict[str, bool]:
        wanted = list(dict.fromkeys(h.lower() for h in hashes if h))
        if not wanted:
            return {}
        statuses = await self._debrid.batch_check_cached(wanted)
        return {str(k).lower(): bool(v) for k, v in statuses.items()}

    @staticmethod
    def apply(
        streams: list[ClassifiedStream],
        statuses: dict[str, bool],
        policy: CachePolicy,
    ) -> list[ClassifiedStream]:
        """Tag or filter *streams* by *statuses*.

        ``cached_only`` drops hashed streams that are not verified cached;
        hashless direct URLs are kept. ``exploratory`` keeps everything and
        never clears a cached flag the provider already set.
        """
        result: list[ClassifiedStream] = []
        for item in streams:
            info_hash = item.info_hash
            if info_hash is None:
                result.append(item)
                continue
            cached = statuses.get(info_hash, False)
            if policy is CachePolicy.CACHED_ONLY:
                if not cached:
                    continue
            else:
                cached = cached or item.cached
            result.append(dataclasses.replace(item, cached=cached))
        return result

    async def verify(
        self, streams: list[ClassifiedStream], policy: CachePolicy
    ) -> list[ClassifiedStream]:
        statuses = await self.batch_check(s.info_hash for s in streams if s.info_hash)
        verified = self.apply(streams, statuses, policy)
        log.info(
            "cache_verified",
            policy=policy.value,
            checked=len(statuses),
            kept=len(verified),
            dropped=len(streams) - len(verified),
        )
        return verified
