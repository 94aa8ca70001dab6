"""Cooperative cancellation for in-flight aggregation requests."""

from __future__ import annotations

import asyncio

import structlog

from sourcerr.domain.exceptions import RequestCancelled

log = structlog.get_logger(__name__)


class CancellationToken:
    """Flag checked by network calls before each attempt.

    Cancelling never interrupts a running HTTP attempt; the next
    checkpoint raises ``RequestCancelled``.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelled(self.reason or "cancelled")

    async def wait(self) -> None:
        await self._event.wait()


class SupersedingScope:
    """Hands out one live token per key; a new request cancels the old one.

    Typical key: the client session or the content id being looked up.
    """

    def __init__(self) -> None:
        self._tokens: dict[str, CancellationToken] = {}

    def begin(self, key: str) -> CancellationToken:
        previous = self._tokens.get(key)
        if previous is not None and not previous.cancelled:
            previous.cancel("superseded")
            log.debug("request_superseded", key=key)
        token = CancellationToken()
        self._tokens[key] = token
        return token

    def end(self, key: str, token: CancellationToken) -> None:
        """Forget *token* if it is still the live one for *key*."""
        if self._tokens.get(key) is token:
            del self._tokens[key]
