"""Stream aggregation use case.

Settings snapshot -> mode selection -> concurrent fetch -> classify
-> dedup -> cache verification -> ranked AggregationResult.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from sourcerr.domain.entities.providers import Provider
from sourcerr.domain.entities.streams import (
    AggregationRequest,
    AggregationResult,
    AggregationState,
    CachePolicy,
    ClassifiedStream,
    MediaKind,
    SortOrder,
    SourceMode,
    Stream,
    StreamTraits,
)
from sourcerr.domain.exceptions import ConfigurationError, DebridError, RequestCancelled
from sourcerr.domain.ports.settings import SettingsPort, SettingsSnapshot

# ---------------------------------------------------------------------------
# Protocols: what this use case needs from its dependencies.
# ---------------------------------------------------------------------------


class _Token(Protocol):
    @property
    def cancelled(self) -> bool: ...

    def raise_if_cancelled(self) -> None: ...


class _ProviderRegistry(Protocol):
    def eligible(self, media_kind: MediaKind, content_id: str) -> list[Provider]: ...


class _AggregatorSource(Protocol):
    provider_id: str
    timeout: float

    async def fetch_prefiltered(
        self, request: AggregationRequest, credential: str, *, token: Any = None
    ) -> list[Stream]: ...

    async def fetch_unfiltered(
        self, request: AggregationRequest, *, token: Any = None
    ) -> list[Stream]: ...


class _DmmSource(Protocol):
    provider_id: str
    timeout: float

    async def search(self, request: AggregationRequest, *, token: Any = None) -> list[Stream]: ...


class _ThirdPartySource(Protocol):
    timeout: float

    async def fetch_provider(
        self, provider: Provider, request: AggregationRequest, *, token: Any = None
    ) -> list[Stream]: ...


class _Verifier(Protocol):
    async def verify(
        self, streams: list[ClassifiedStream], policy: CachePolicy
    ) -> list[ClassifiedStream]: ...


class _Ranker(Protocol):
    def rank(
        self,
        streams: list[ClassifiedStream],
        *,
        mode: SourceMode,
        media_kind: MediaKind,
        sort_order: SortOrder | None = None,
        provider_filter: str | None = None,
    ) -> AggregationResult: ...


# Injected pure functions and factories.
_ClassifyFn = Callable[[Stream], StreamTraits]
_MergeFn = Callable[[Iterable[list[ClassifiedStream]]], list[ClassifiedStream]]
_VerifierFactory = Callable[[str], _Verifier]

log = structlog.get_logger(__name__)

NO_ELIGIBLE_PROVIDERS = "No installed stream providers support this content"
MISSING_CREDENTIAL = "A debrid API key is required for the built-in sources"


async def _cancel_all(tasks: Iterable[asyncio.Future[list[Stream]]]) -> None:
    """Cancel unfinished *tasks* and wait until they have all settled."""
    futures = list(tasks)
    for future in futures:
        if not future.done():
            future.cancel()
    await asyncio.gather(*futures, return_exceptions=True)


@dataclass
class _SourceCall:
    """One fan-out unit: a named coroutine factory with its own timeout."""

    name: str
    run: Callable[[], Awaitable[list[Stream]]]
    timeout: float


@dataclass
class _Plan:
    mode: SourceMode
    credential: str | None
    providers: list[Provider] = field(default_factory=list)


class AggregateStreamsUseCase:
    """Aggregates streams for one title from exactly one source mode.

    Mode priority (no cross-mode fallback):
        1. third-party providers, when enabled
        2. DMM cache, when selected
        3. torrent aggregator (default)

    Only a missing precondition (credential, eligible providers) ends a
    request in FAILED. Source failures shrink the result instead.
    """

    def __init__(
        self,
        *,
        settings: SettingsPort,
        registry: _ProviderRegistry,
        aggregator: _AggregatorSource,
        dmm: _DmmSource,
        third_party: _ThirdPartySource,
        verifier_factory: _VerifierFactory,
        ranker: _Ranker,
        classify_fn: _ClassifyFn,
        merge_fn: _MergeFn,
        request_deadline: float | None = None,
    ) -> None:
        self._settings = settings
        self._registry = registry
        self._aggregator = aggregator
        self._dmm = dmm
        self._third_party = third_party
        self._verifier_factory = verifier_factory
        self._ranker = ranker
        self._classify = classify_fn
        self._merge = merge_fn
        self._request_deadline = request_deadline

    async def execute(
        self,
        request: AggregationRequest,
        *,
        sort_order: SortOrder | None = None,
        provider_filter: str | None = None,
        token: _Token | None = None,
    ) -> AggregationResult:
        """Run one aggregation.

        Returns:
            A DONE result, or a FAILED one carrying the precondition message.

        Raises:
            RequestCancelled: *token* was cancelled (e.g. superseded).
        """
        self._transition(AggregationState.INIT, request)
        snapshot = await self._settings.snapshot()

        self._transition(AggregationState.SOURCE_SELECT, request)
        try:
            plan = self._select(request, snapshot)
        except ConfigurationError as exc:
            mode = self._mode_for(snapshot)
            self._transition(AggregationState.FAILED, request, mode=mode, error=str(exc))
            return AggregationResult.failed(mode, str(exc))

        self._transition(AggregationState.FETCH, request, mode=plan.mode)
        if plan.mode is SourceMode.THIRD_PARTY:
            result = await self._run_third_party(request, plan, token)
        elif plan.mode is SourceMode.DMM_CACHE:
            result = await self._run_dmm(request, plan, token)
        else:
            result = await self._run_aggregator(request, plan, token)

        ranked = self._ranker.rank(
            result,
            mode=plan.mode,
            media_kind=request.media_kind,
            sort_order=sort_order,
            provider_filter=provider_filter,
        )
        self._transition(
            AggregationState.DONE, request, mode=plan.mode, streams=len(ranked.streams)
        )
        return ranked

    # ------------------------------------------------------------------
    # Mode selection
    # ------------------------------------------------------------------

    @staticmethod
    def _mode_for(snapshot: SettingsSnapshot) -> SourceMode:
        if snapshot.third_party_enabled:
            return SourceMode.THIRD_PARTY
        if snapshot.active_source is SourceMode.DMM_CACHE:
            return SourceMode.DMM_CACHE
        return SourceMode.TORRENT_AGGREGATOR

    def _select(self, request: AggregationRequest, snapshot: SettingsSnapshot) -> _Plan:
        mode = self._mode_for(snapshot)
        credential = snapshot.debrid_credential or None

        if mode is SourceMode.THIRD_PARTY:
            providers = self._registry.eligible(request.media_kind, request.content_id)
            if not providers:
                raise ConfigurationError(NO_ELIGIBLE_PROVIDERS)
            return _Plan(mode=mode, credential=credential, providers=providers)

        if credential is None:
            raise ConfigurationError(MISSING_CREDENTIAL)
        return _Plan(mode=mode, credential=credential)

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    async def _run_third_party(
        self, request: AggregationRequest, plan: _Plan, token: _Token | None
    ) -> list[ClassifiedStream]:
        def _call(provider: Provider) -> _SourceCall:
            return _SourceCall(
                name=provider.id,
                run=lambda: self._third_party.fetch_provider(provider, request, token=token),
                timeout=self._third_party.timeout,
            )

        per_source = await self._fan_out([_call(p) for p in plan.providers], token)
        streams = self._classify_and_merge(request, per_source, plan.mode)
        if plan.credential is None:
            return streams

        self._transition(AggregationState.CACHE_VERIFY, request, mode=plan.mode)
        try:
            return await self._verifier_factory(plan.credential).verify(
                streams, CachePolicy.EXPLORATORY
            )
        except DebridError as exc:
            log.warning("cache_verify_failed", mode=plan.mode.value, error=str(exc))
            return streams

    async def _run_dmm(
        self, request: AggregationRequest, plan: _Plan, token: _Token | None
    ) -> list[ClassifiedStream]:
        call = _SourceCall(
            name=self._dmm.provider_id,
            run=lambda: self._dmm.search(request, token=token),
            timeout=self._dmm.timeout,
        )
        per_source = await self._fan_out([call], token)
        streams = self._classify_and_merge(request, per_source, plan.mode)

        self._transition(AggregationState.CACHE_VERIFY, request, mode=plan.mode)
        try:
            return await self._verifier_factory(plan.credential or "").verify(
                streams, CachePolicy.CACHED_ONLY
            )
        except DebridError as exc:
            # Records are already cache-verified upstream
            log.warning("cache_verify_failed", mode=plan.mode.value, error=str(exc))
            return streams

    async def _run_aggregator(
        self, request: AggregationRequest, plan: _Plan, token: _Token | None
    ) -> list[ClassifiedStream]:
        credential = plan.credential or ""
        prefiltered = _SourceCall(
            name=self._aggregator.provider_id,
            run=lambda: self._aggregator.fetch_prefiltered(request, credential, token=token),
            timeout=self._aggregator.timeout,
        )
        per_source = await self._fan_out([prefiltered], token)
        if any(per_source):
            return self._classify_and_merge(request, per_source, plan.mode)

        log.info("aggregator_prefilter_empty", content_id=request.stremio_id)
        unfiltered = _SourceCall(
            name=self._aggregator.provider_id,
            run=lambda: self._aggregator.fetch_unfiltered(request, token=token),
            timeout=self._aggregator.timeout,
        )
        per_source = await self._fan_out([unfiltered], token)
        streams = self._classify_and_merge(request, per_source, plan.mode)

        self._transition(AggregationState.CACHE_VERIFY, request, mode=plan.mode)
        try:
            return await self._verifier_factory(credential).verify(
                streams, CachePolicy.CACHED_ONLY
            )
        except DebridError as exc:
            # Unfiltered results cannot be shown unverified
            log.warning("cache_verify_failed", mode=plan.mode.value, error=str(exc))
            return []

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    def _classify_and_merge(
        self,
        request: AggregationRequest,
        per_source: list[list[Stream]],
        mode: SourceMode,
    ) -> list[ClassifiedStream]:
        self._transition(AggregationState.CLASSIFY, request, mode=mode)
        classified = [
            [self._classify_one(stream) for stream in streams] for streams in per_source
        ]
        self._transition(AggregationState.DEDUP, request, mode=mode)
        return self._merge(classified)

    def _classify_one(self, stream: Stream) -> ClassifiedStream:
        traits = self._classify(stream)
        return ClassifiedStream(stream=stream, traits=traits, cached=traits.cached_hint)

    async def _fan_out(
        self, calls: list[_SourceCall], token: _Token | None
    ) -> list[list[Stream]]:
        """Run all calls concurrently; a failing call contributes ``[]``.

        With a request deadline, calls still pending when it expires are
        cancelled and contribute ``[]`` as well.
        """

        async def _run_one(call: _SourceCall) -> list[Stream]:
            try:
                return await asyncio.wait_for(call.run(), timeout=call.timeout)
            except TimeoutError:
                log.warning("source_timeout", source=call.name, timeout=call.timeout)
                return []
            except RequestCancelled:
                raise
            except Exception:
                log.warning("source_unexpected_error", source=call.name, exc_info=True)
                return []

        if token is not None:
            token.raise_if_cancelled()

        tasks = [asyncio.ensure_future(_run_one(call)) for call in calls]
        try:
            if self._request_deadline is None:
                results = list(await asyncio.gather(*tasks))
            else:
                done, pending = await asyncio.wait(tasks, timeout=self._request_deadline)
                if pending:
                    await _cancel_all(pending)
                    log.warning(
                        "request_deadline_exceeded",
                        deadline=self._request_deadline,
                        pending=len(pending),
                    )
                results = [task.result() if task in done else [] for task in tasks]
        except RequestCancelled:
            await _cancel_all(tasks)
            raise

        if token is not None:
            token.raise_if_cancelled()
        return results

    @staticmethod
    def _transition(
        state: AggregationState, request: AggregationRequest, **context: Any
    ) -> None:
        mode = context.pop("mode", None)
        log.info(
            "aggregation_state",
            state=state.value,
            content_id=request.stremio_id,
            mode=mode.value if mode is not None else None,
            **context,
        )
