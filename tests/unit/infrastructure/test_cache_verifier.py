"""Tests for CacheVerifier batch checks and policies."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest

from sourcerr.domain.entities.streams import CachePolicy, ClassifiedStream
from sourcerr.domain.exceptions import DebridError
from sourcerr.infrastructure.streams import CacheVerifier

HASH_A = "a" * 40
HASH_B = "b" * 40
HASH_C = "c" * 40


def _make_debrid(statuses: dict[str, bool]) -> AsyncMock:
    debrid = AsyncMock()
    debrid.batch_check_cached = AsyncMock(return_value=statuses)
    return debrid


class TestBatchCheck:
    async def test_deduplicates_and_lowercases(self) -> None:
        debrid = _make_debrid({HASH_A: True})
        await CacheVerifier(debrid).batch_check([HASH_A, HASH_A.upper(), ""])
        debrid.batch_check_cached.assert_awaited_once_with([HASH_A])

    async def test_empty_makes_no_call(self) -> None:
        debrid = _make_debrid({})
        assert await CacheVerifier(debrid).batch_check([]) == {}
        debrid.batch_check_cached.assert_not_awaited()


class TestVerify:
    async def test_cached_only_keeps_verified(
        self, classified_factory: Callable[..., ClassifiedStream]
    ) -> None:
        streams = [classified_factory(info_hash=h) for h in (HASH_A, HASH_B, HASH_C)]
        debrid = _make_debrid({HASH_A: True, HASH_B: False})

        verified = await CacheVerifier(debrid).verify(streams, CachePolicy.CACHED_ONLY)

        assert [s.info_hash for s in verified] == [HASH_A]
        assert verified[0].cached is True
        debrid.batch_check_cached.assert_awaited_once()

    async def test_exploratory_tags_everything(
        self, classified_factory: Callable[..., ClassifiedStream]
    ) -> None:
        streams = [
            classified_factory(info_hash=HASH_A),
            classified_factory(info_hash=HASH_B),
        ]
        debrid = _make_debrid({HASH_A: True, HASH_B: False})

        verified = await CacheVerifier(debrid).verify(streams, CachePolicy.EXPLORATORY)

        assert [(s.info_hash, s.cached) for s in verified] == [(HASH_A, True), (HASH_B, False)]

    async def test_exploratory_keeps_provider_cached_flag(
        self, classified_factory: Callable[..., ClassifiedStream]
    ) -> None:
        # Provider already resolved this to a debrid link; the service map misses it.
        direct = classified_factory(
            info_hash=HASH_A, url=f"https://torbox.app/dl/{HASH_A}/1", cached=True
        )
        debrid = _make_debrid({})

        verified = await CacheVerifier(debrid).verify([direct], CachePolicy.EXPLORATORY)

        assert verified[0].cached is True

    async def test_cached_only_ignores_provider_flag(
        self, classified_factory: Callable[..., ClassifiedStream]
    ) -> None:
        stream = classified_factory(info_hash=HASH_A, cached=True)
        debrid = _make_debrid({HASH_A: False})

        assert await CacheVerifier(debrid).verify([stream], CachePolicy.CACHED_ONLY) == []

    async def test_hashless_streams_survive_cached_only(
        self, classified_factory: Callable[..., ClassifiedStream]
    ) -> None:
        direct = classified_factory(info_hash=None, url="https://cdn.torbox.app/dl/1", cached=True)
        debrid = _make_debrid({HASH_A: False})

        verified = await CacheVerifier(debrid).verify(
            [direct, classified_factory(info_hash=HASH_A)], CachePolicy.CACHED_ONLY
        )

        assert verified == [direct]

    async def test_service_error_propagates(
        self, classified_factory: Callable[..., ClassifiedStream]
    ) -> None:
        debrid = AsyncMock()
        debrid.batch_check_cached = AsyncMock(side_effect=DebridError("down"))
        with pytest.raises(DebridError):
            await CacheVerifier(debrid).verify(
                [classified_factory(info_hash=HASH_A)], CachePolicy.CACHED_ONLY
            )
