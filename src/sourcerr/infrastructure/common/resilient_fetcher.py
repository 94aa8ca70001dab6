"""HTTP fetch with proxy failover, content sniffing and direct retry."""

from __future__ import annotations

import asyncio
import random
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from sourcerr.domain.exceptions import FetchError
from sourcerr.infrastructure.common.cancellation import CancellationToken

log = structlog.get_logger(__name__)


def _is_client_error(exc: FetchError) -> bool:
    return exc.status_code is not None and 400 <= exc.status_code < 500


def _check_cancelled(token: CancellationToken | None) -> None:
    if token is not None:
        token.raise_if_cancelled()


def _validate_content(response: httpx.Response, url: str) -> None:
    """Reject HTML error pages served in place of JSON.

    The body is already buffered by httpx, so callers can still read it.
    """
    content_type = response.headers.get("content-type", "").lower()
    if "text/html" in content_type:
        raise FetchError("html_content_type", url=url, status_code=response.status_code)
    if response.text.lstrip().startswith("<"):
        raise FetchError("html_body", url=url, status_code=response.status_code)


class ResilientFetcher:
    """Fetch JSON-ish resources through proxies first, then directly.

    Attempt order:
      1. ``selected_proxy`` (if any), then every other configured proxy.
         Each attempt has its own timeout.
      2. Direct fetch with exponential backoff. 4xx responses are not
         retried.

    There is no global deadline; every attempt is bounded on its own.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        proxies: list[str] | tuple[str, ...] = (),
        selected_proxy: str | None = None,
        attempt_timeout: float = 8.0,
        direct_attempts: int = 3,
        direct_attempts_after_proxies: int = 2,
        backoff_base: float = 1.0,
        max_backoff: float = 8.0,
    ) -> None:
        self._client = http_client
        self._proxies = list(proxies)
        self._selected_proxy = selected_proxy
        self._attempt_timeout = attempt_timeout
        self._direct_attempts = direct_attempts
        self._direct_attempts_after_proxies = direct_attempts_after_proxies
        self._backoff_base = backoff_base
        self._max_backoff = max_backoff

    def proxy_chain(self) -> list[str]:
        """Selected proxy first, then the remaining fallbacks (no repeats)."""
        chain: list[str] = []
        if self._selected_proxy:
            chain.append(self._selected_proxy)
        for proxy in self._proxies:
            if proxy not in chain:
                chain.append(proxy)
        return chain

    async def fetch(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        token: CancellationToken | None = None,
    ) -> httpx.Response:
        """Return the first response that is 2xx and not an HTML page.

        Raises:
            FetchError: Every attempt failed (last error is raised).
            RequestCancelled: *token* was cancelled between attempts.
        """
        attempt_timeout = timeout or self._attempt_timeout
        last_error: FetchError | None = None

        chain = self.proxy_chain()
        for proxy in chain:
            _check_cancelled(token)
            proxied = f"{proxy}{quote(url, safe='')}"
            try:
                return await self._attempt(proxied, url, headers, attempt_timeout)
            except FetchError as exc:
                last_error = exc
                log.info("fetch_proxy_failed", url=url, proxy=proxy, error=str(exc))

        attempts = self._direct_attempts_after_proxies if chain else self._direct_attempts
        for attempt in range(1, attempts + 1):
            _check_cancelled(token)
            try:
                return await self._attempt(url, url, headers, attempt_timeout)
            except FetchError as exc:
                last_error = exc
                if _is_client_error(exc):
                    log.info(
                        "fetch_client_error",
                        url=url,
                        status=exc.status_code,
                    )
                    break
                if attempt == attempts:
                    break
                delay = self._compute_delay(attempt)
                log.info(
                    "fetch_retry",
                    url=url,
                    attempt=attempt,
                    delay=round(delay, 2),
                    error=str(exc),
                )
                _check_cancelled(token)
                await asyncio.sleep(delay)

        if last_error is None:
            last_error = FetchError("no_attempts", url=url)
        log.warning(
            "fetch_exhausted",
            url=url,
            error=str(last_error),
            status=last_error.status_code,
        )
        raise last_error

    async def fetch_json(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        token: CancellationToken | None = None,
    ) -> Any:
        """``fetch`` + JSON decode. Undecodable bodies raise FetchError."""
        response = await self.fetch(url, headers=headers, timeout=timeout, token=token)
        try:
            return response.json()
        except ValueError as exc:
            raise FetchError("invalid_json", url=url, status_code=response.status_code) from exc

    async def _attempt(
        self,
        target: str,
        url: str,
        headers: dict[str, str] | None,
        timeout: float,
    ) -> httpx.Response:
        try:
            response = await self._client.get(target, headers=headers, timeout=timeout)
        except httpx.TimeoutException as exc:
            raise FetchError("timeout", url=url) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"network_error: {exc}", url=url) from exc

        if response.status_code >= 400:
            raise FetchError(
                f"http_{response.status_code}",
                url=url,
                status_code=response.status_code,
            )
        _validate_content(response, url)
        return response

    def _compute_delay(self, attempt: int) -> float:
        """Exponential backoff with jitter (attempt is 1-based)."""
        delay = self._backoff_base * (2 ** (attempt - 1))
        jitter = random.uniform(0, self._backoff_base * 0.1)  # noqa: S311
        return min(delay + jitter, self._max_backoff)
