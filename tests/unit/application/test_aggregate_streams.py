"""Tests for AggregateStreamsUseCase mode selection, fan-out and verification."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from sourcerr.application.use_cases.aggregate_streams import (
    MISSING_CREDENTIAL,
    NO_ELIGIBLE_PROVIDERS,
    AggregateStreamsUseCase,
)
from sourcerr.domain.entities.providers import Provider
from sourcerr.domain.entities.streams import (
    AggregationRequest,
    AggregationState,
    CachePolicy,
    QualityTier,
    SourceMode,
    Stream,
    StreamTraits,
)
from sourcerr.domain.exceptions import DebridError, RequestCancelled
from sourcerr.domain.ports.settings import SettingsSnapshot
from sourcerr.infrastructure.common.cancellation import CancellationToken
from sourcerr.infrastructure.streams import ResultRanker, merge_streams

HASH_A = "a" * 40
HASH_B = "b" * 40
HASH_C = "c" * 40

_MOVIE = AggregationRequest(content_id="tt0111161", media_kind="movie")

StreamFactory = Callable[..., Stream]


def _classify(stream: Stream) -> StreamTraits:
    return StreamTraits(quality_tier=QualityTier.FHD_1080P, cached_hint=stream.cached_flag)


def _settings(
    *,
    third_party: bool = False,
    source: SourceMode = SourceMode.TORRENT_AGGREGATOR,
    credential: str | None = "tb-key",
) -> AsyncMock:
    settings = AsyncMock()
    settings.snapshot = AsyncMock(
        return_value=SettingsSnapshot(
            third_party_enabled=third_party,
            active_source=source,
            debrid_credential=credential,
        )
    )
    return settings


def _aggregator(
    prefiltered: list[Stream] | None = None, unfiltered: list[Stream] | None = None
) -> MagicMock:
    aggregator = MagicMock()
    aggregator.provider_id = "torrentio"
    aggregator.timeout = 1.0
    aggregator.fetch_prefiltered = AsyncMock(return_value=prefiltered or [])
    aggregator.fetch_unfiltered = AsyncMock(return_value=unfiltered or [])
    return aggregator


def _dmm(streams: list[Stream] | None = None) -> MagicMock:
    dmm = MagicMock()
    dmm.provider_id = "zilean"
    dmm.timeout = 1.0
    dmm.search = AsyncMock(return_value=streams or [])
    return dmm


def _third_party(side_effect=None, *, timeout: float = 1.0) -> MagicMock:
    third_party = MagicMock()
    third_party.timeout = timeout
    third_party.fetch_provider = AsyncMock(side_effect=side_effect, return_value=[])
    return third_party


def _registry(providers: list[Provider] | None = None) -> MagicMock:
    registry = MagicMock()
    registry.eligible = MagicMock(return_value=providers or [])
    return registry


def _verifier(*, error: Exception | None = None) -> MagicMock:
    verifier = MagicMock()
    if error is not None:
        verifier.verify = AsyncMock(side_effect=error)
    else:
        verifier.verify = AsyncMock(
            side_effect=lambda streams, policy: [s for s in streams if s.info_hash != HASH_B]
        )
    return verifier


def _make_use_case(
    *,
    settings: AsyncMock | None = None,
    registry: MagicMock | None = None,
    aggregator: MagicMock | None = None,
    dmm: MagicMock | None = None,
    third_party: MagicMock | None = None,
    verifier: MagicMock | None = None,
    request_deadline: float | None = None,
) -> tuple[AggregateStreamsUseCase, MagicMock]:
    verifier = verifier or _verifier()
    factory = MagicMock(return_value=verifier)
    use_case = AggregateStreamsUseCase(
        settings=settings or _settings(),
        registry=registry or _registry(),
        aggregator=aggregator or _aggregator(),
        dmm=dmm or _dmm(),
        third_party=third_party or _third_party(),
        verifier_factory=factory,
        ranker=ResultRanker(),
        classify_fn=_classify,
        merge_fn=merge_streams,
        request_deadline=request_deadline,
    )
    return use_case, factory


class TestTorrentAggregatorMode:
    async def test_prefiltered_results_skip_verification(
        self, stream_factory: StreamFactory
    ) -> None:
        aggregator = _aggregator(prefiltered=[stream_factory(info_hash=HASH_A, cached_flag=True)])
        use_case, factory = _make_use_case(aggregator=aggregator)

        result = await use_case.execute(_MOVIE)

        assert result.state is AggregationState.DONE
        assert result.mode is SourceMode.TORRENT_AGGREGATOR
        assert [s.info_hash for s in result.streams] == [HASH_A]
        assert result.streams[0].cached is True
        aggregator.fetch_prefiltered.assert_awaited_once()
        assert aggregator.fetch_prefiltered.await_args.args[1] == "tb-key"
        aggregator.fetch_unfiltered.assert_not_awaited()
        factory.assert_not_called()

    async def test_empty_prefilter_falls_back_once(self, stream_factory: StreamFactory) -> None:
        aggregator = _aggregator(
            unfiltered=[stream_factory(info_hash=HASH_A), stream_factory(info_hash=HASH_B)]
        )
        verifier = _verifier()
        use_case, factory = _make_use_case(aggregator=aggregator, verifier=verifier)

        result = await use_case.execute(_MOVIE)

        aggregator.fetch_unfiltered.assert_awaited_once()
        factory.assert_called_once_with("tb-key")
        verifier.verify.assert_awaited_once()
        assert verifier.verify.await_args.args[1] is CachePolicy.CACHED_ONLY
        assert [s.info_hash for s in result.streams] == [HASH_A]

    async def test_fallback_verify_failure_yields_nothing(
        self, stream_factory: StreamFactory
    ) -> None:
        aggregator = _aggregator(unfiltered=[stream_factory(info_hash=HASH_A)])
        use_case, _ = _make_use_case(
            aggregator=aggregator, verifier=_verifier(error=DebridError("down"))
        )

        result = await use_case.execute(_MOVIE)

        assert result.state is AggregationState.DONE
        assert result.streams == []

    async def test_missing_credential_fails(self) -> None:
        aggregator = _aggregator()
        use_case, _ = _make_use_case(settings=_settings(credential=None), aggregator=aggregator)

        result = await use_case.execute(_MOVIE)

        assert result.state is AggregationState.FAILED
        assert result.error == MISSING_CREDENTIAL
        assert result.mode is SourceMode.TORRENT_AGGREGATOR
        aggregator.fetch_prefiltered.assert_not_awaited()

    async def test_source_exception_isolated(self) -> None:
        aggregator = _aggregator()
        aggregator.fetch_prefiltered.side_effect = RuntimeError("boom")
        use_case, _ = _make_use_case(aggregator=aggregator)

        result = await use_case.execute(_MOVIE)

        assert result.state is AggregationState.DONE
        aggregator.fetch_unfiltered.assert_awaited_once()


class TestDmmCacheMode:
    async def test_cached_only_verification(self, stream_factory: StreamFactory) -> None:
        dmm = _dmm([stream_factory(info_hash=HASH_A), stream_factory(info_hash=HASH_B)])
        verifier = _verifier()
        use_case, _ = _make_use_case(
            settings=_settings(source=SourceMode.DMM_CACHE), dmm=dmm, verifier=verifier
        )

        result = await use_case.execute(_MOVIE)

        assert result.mode is SourceMode.DMM_CACHE
        assert verifier.verify.await_args.args[1] is CachePolicy.CACHED_ONLY
        assert [s.info_hash for s in result.streams] == [HASH_A]

    async def test_verify_failure_keeps_streams(self, stream_factory: StreamFactory) -> None:
        dmm = _dmm([stream_factory(info_hash=HASH_A), stream_factory(info_hash=HASH_B)])
        use_case, _ = _make_use_case(
            settings=_settings(source=SourceMode.DMM_CACHE),
            dmm=dmm,
            verifier=_verifier(error=DebridError("down")),
        )

        result = await use_case.execute(_MOVIE)

        assert len(result.streams) == 2

    async def test_missing_credential_fails(self) -> None:
        dmm = _dmm()
        use_case, _ = _make_use_case(
            settings=_settings(source=SourceMode.DMM_CACHE, credential=""), dmm=dmm
        )

        result = await use_case.execute(_MOVIE)

        assert result.state is AggregationState.FAILED
        assert result.error == MISSING_CREDENTIAL
        dmm.search.assert_not_awaited()


class TestThirdPartyMode:
    async def test_no_eligible_providers_fails_without_fetching(self) -> None:
        aggregator = _aggregator()
        dmm = _dmm()
        third_party = _third_party()
        use_case, _ = _make_use_case(
            settings=_settings(third_party=True),
            aggregator=aggregator,
            dmm=dmm,
            third_party=third_party,
        )

        result = await use_case.execute(_MOVIE)

        assert result.state is AggregationState.FAILED
        assert result.mode is SourceMode.THIRD_PARTY
        assert result.error == NO_ELIGIBLE_PROVIDERS
        assert result.provider_counts == {"All": 0}
        aggregator.fetch_prefiltered.assert_not_awaited()
        aggregator.fetch_unfiltered.assert_not_awaited()
        dmm.search.assert_not_awaited()
        third_party.fetch_provider.assert_not_awaited()

    async def test_failing_providers_are_isolated(
        self,
        stream_factory: StreamFactory,
        provider_factory: Callable[..., Provider],
    ) -> None:
        good = provider_factory(provider_id="good", name="Good")
        broken = provider_factory(provider_id="broken", name="Broken")
        slow = provider_factory(provider_id="slow", name="Slow")

        async def fetch(provider, request, *, token=None):
            if provider.id == "broken":
                raise RuntimeError("bad payload")
            if provider.id == "slow":
                await asyncio.sleep(5)
            return [stream_factory(info_hash=HASH_A, provider_name=provider.name)]

        use_case, _ = _make_use_case(
            settings=_settings(third_party=True, credential=None),
            registry=_registry([good, broken, slow]),
            third_party=_third_party(fetch, timeout=0.05),
        )

        result = await use_case.execute(_MOVIE)

        assert result.state is AggregationState.DONE
        assert [s.provider_name for s in result.streams] == ["Good"]

    async def test_duplicates_across_providers_merged(
        self,
        stream_factory: StreamFactory,
        provider_factory: Callable[..., Provider],
    ) -> None:
        first = provider_factory(provider_id="first", name="First")
        second = provider_factory(provider_id="second", name="Second")

        async def fetch(provider, request, *, token=None):
            hashes = [HASH_A, HASH_C] if provider.id == "first" else [HASH_A, HASH_B]
            return [stream_factory(info_hash=h, provider_name=provider.name) for h in hashes]

        use_case, _ = _make_use_case(
            settings=_settings(third_party=True, credential=None),
            registry=_registry([first, second]),
            third_party=_third_party(fetch),
        )

        result = await use_case.execute(_MOVIE)

        assert sorted(s.info_hash for s in result.streams) == [HASH_A, HASH_B, HASH_C]
        owner = {s.info_hash: s.provider_name for s in result.streams}
        assert owner[HASH_A] == "First"
        assert result.provider_counts == {"All": 3, "First": 2, "Second": 1}

    async def test_exploratory_verification_with_credential(
        self,
        stream_factory: StreamFactory,
        provider_factory: Callable[..., Provider],
    ) -> None:
        third_party = _third_party()
        third_party.fetch_provider.return_value = [stream_factory(info_hash=HASH_A)]
        verifier = _verifier()
        use_case, factory = _make_use_case(
            settings=_settings(third_party=True),
            registry=_registry([provider_factory()]),
            third_party=third_party,
            verifier=verifier,
        )

        await use_case.execute(_MOVIE)

        factory.assert_called_once_with("tb-key")
        assert verifier.verify.await_args.args[1] is CachePolicy.EXPLORATORY

    async def test_verification_failure_keeps_streams(
        self,
        stream_factory: StreamFactory,
        provider_factory: Callable[..., Provider],
    ) -> None:
        third_party = _third_party()
        third_party.fetch_provider.return_value = [stream_factory(info_hash=HASH_A)]
        use_case, _ = _make_use_case(
            settings=_settings(third_party=True),
            registry=_registry([provider_factory()]),
            third_party=third_party,
            verifier=_verifier(error=DebridError("down")),
        )

        result = await use_case.execute(_MOVIE)

        assert len(result.streams) == 1

    async def test_third_party_beats_active_source(
        self, provider_factory: Callable[..., Provider]
    ) -> None:
        dmm = _dmm()
        use_case, _ = _make_use_case(
            settings=_settings(third_party=True, source=SourceMode.DMM_CACHE, credential=None),
            registry=_registry([provider_factory()]),
            dmm=dmm,
        )

        result = await use_case.execute(_MOVIE)

        assert result.mode is SourceMode.THIRD_PARTY
        dmm.search.assert_not_awaited()


class TestDeadlineAndCancellation:
    async def test_deadline_cancels_pending_sources(
        self,
        stream_factory: StreamFactory,
        provider_factory: Callable[..., Provider],
    ) -> None:
        fast = provider_factory(provider_id="fast", name="Fast")
        slow = provider_factory(provider_id="slow", name="Slow")

        async def fetch(provider, request, *, token=None):
            if provider.id == "slow":
                await asyncio.sleep(5)
            return [stream_factory(info_hash=HASH_A, provider_name=provider.name)]

        use_case, _ = _make_use_case(
            settings=_settings(third_party=True, credential=None),
            registry=_registry([fast, slow]),
            third_party=_third_party(fetch, timeout=10.0),
            request_deadline=0.05,
        )

        result = await use_case.execute(_MOVIE)

        assert [s.provider_name for s in result.streams] == ["Fast"]

    async def test_cancelled_token_raises(self, stream_factory: StreamFactory) -> None:
        token = CancellationToken()
        token.cancel("superseded")
        aggregator = _aggregator(prefiltered=[stream_factory()])
        use_case, _ = _make_use_case(aggregator=aggregator)

        with pytest.raises(RequestCancelled):
            await use_case.execute(_MOVIE, token=token)
        aggregator.fetch_prefiltered.assert_not_awaited()

    async def test_source_cancellation_propagates(self) -> None:
        aggregator = _aggregator()
        aggregator.fetch_prefiltered.side_effect = RequestCancelled("superseded")
        use_case, _ = _make_use_case(aggregator=aggregator)

        with pytest.raises(RequestCancelled):
            await use_case.execute(_MOVIE)

    async def test_cancellation_stops_sibling_sources(
        self,
        stream_factory: StreamFactory,
        provider_factory: Callable[..., Provider],
    ) -> None:
        stopped: list[str] = []

        async def fetch(provider, request, *, token=None):
            if provider.id == "gone":
                raise RequestCancelled("superseded")
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                stopped.append(provider.id)
                raise
            return [stream_factory(info_hash=HASH_A)]

        use_case, _ = _make_use_case(
            settings=_settings(third_party=True, credential=None),
            registry=_registry(
                [provider_factory(provider_id="gone"), provider_factory(provider_id="slow")]
            ),
            third_party=_third_party(fetch, timeout=10.0),
        )

        with pytest.raises(RequestCancelled):
            await use_case.execute(_MOVIE)
        assert stopped == ["slow"]
