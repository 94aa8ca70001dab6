"""TorBox API client: async httpx implementation of DebridPort."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from sourcerr.domain.entities.debrid import DebridFile, DebridTorrent
from sourcerr.domain.entities.streams import canonical_info_hash
from sourcerr.domain.exceptions import DebridError
from sourcerr.domain.ports.cache import CachePort
from sourcerr.infrastructure.classification.episodes import is_video_file

log = structlog.get_logger(__name__)

_DEFAULT_API_URL = "https://api.torbox.app/v1/api"


def _magnet(info_hash: str) -> str:
    return f"magnet:?xt=urn:btih:{info_hash}"


def _is_cached_value(value: Any) -> bool:
    """TorBox reports cached entries as ``true``, a file list or an object."""
    if value is True:
        return True
    if isinstance(value, list):
        return len(value) > 0
    return isinstance(value, dict)


def _normalize_progress(raw: Any) -> float:
    """TorBox sends progress as 0-1 or 0-100 depending on endpoint."""
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if value < 0:
        return 0.0
    return value * 100 if value <= 1 else value


def _to_torrent(item: dict[str, Any]) -> DebridTorrent:
    files = [
        DebridFile(
            index=position,
            id=int(f.get("id", position)),
            name=f.get("short_name") or f.get("name") or "",
            size=int(f.get("size") or 0),
        )
        for position, f in enumerate(item.get("files") or [])
    ]
    progress_raw = item.get("progress")
    if progress_raw is None:
        progress_raw = item.get("download_progress")
    return DebridTorrent(
        id=int(item["id"]),
        hash=(item.get("hash") or "").lower(),
        name=item.get("name") or "Unknown",
        size=int(item.get("size") or 0),
        progress=_normalize_progress(progress_raw),
        download_finished=bool(item.get("download_finished", False)),
        files=files,
    )


class TorboxClient:
    """Async TorBox client using httpx + CachePort for stream URLs.

    Implements ``DebridPort`` from domain.ports.debrid.
    """

    def __init__(
        self,
        *,
        api_key: str,
        http_client: httpx.AsyncClient,
        cache: CachePort,
        api_url: str = _DEFAULT_API_URL,
        timeout: float = 30.0,
        url_cache_ttl: int = 1800,
        file_batch_size: int = 5,
        file_batch_delay: float = 0.1,
        settle_delay: float = 1.0,
    ) -> None:
        self._api_key = api_key
        self._http = http_client
        self._cache = cache
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._url_cache_ttl = url_cache_ttl
        self._file_batch_size = file_batch_size
        self._file_batch_delay = file_batch_delay
        self._settle_delay = settle_delay

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        allow_404: bool = False,
        accept_error_body: bool = False,
        **kwargs: Any,
    ) -> dict[str, Any] | None:
        """Send a request and return the decoded body.

        Returns None for a 404 when *allow_404* is set, and a 4xx JSON body
        as-is when *accept_error_body* is set. Anything else that is not
        2xx raises DebridError.
        """
        url = f"{self._api_url}{path}"
        try:
            resp = await self._http.request(
                method, url, headers=self._headers(), timeout=self._timeout, **kwargs
            )
        except httpx.HTTPError as exc:
            log.warning("debrid_network_error", path=path, error=str(exc))
            raise DebridError(f"TorBox request failed: {exc}") from exc

        if resp.status_code == 404 and allow_404:
            return None
        if resp.status_code in (401, 403):
            log.error("debrid_auth_failed", status=resp.status_code)
            raise DebridError(
                "TorBox rejected the API key", status_code=resp.status_code
            )

        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.status_code >= 400:
            if accept_error_body and isinstance(body, dict) and resp.status_code < 500:
                return body
            log.warning("debrid_http_error", path=path, status=resp.status_code)
            raise DebridError(
                f"TorBox returned HTTP {resp.status_code}", status_code=resp.status_code
            )
        if not isinstance(body, dict):
            raise DebridError("TorBox returned a non-JSON body", status_code=resp.status_code)
        return body

    async def _find_by_hash(self, info_hash: str) -> DebridTorrent | None:
        for torrent in await self.list_user_torrents():
            if torrent.hash == info_hash:
                return torrent
        return None

    async def _request_download(self, torrent_id: int, file_id: int | None) -> str | None:
        params: dict[str, Any] = {"token": self._api_key, "torrent_id": torrent_id}
        if file_id is not None:
            params["file_id"] = file_id
        body = await self._request("GET", "/torrents/requestdl", params=params)
        if body and body.get("success") and isinstance(body.get("data"), str):
            return body["data"]
        log.warning("debrid_requestdl_empty", torrent_id=torrent_id, file_id=file_id)
        return None

    # ------------------------------------------------------------------
    # Public API (DebridPort)
    # ------------------------------------------------------------------

    async def batch_check_cached(self, hashes: list[str]) -> dict[str, bool]:
        """One POST for all hashes. Unknown hashes map to False."""
        wanted = [h.lower() for h in hashes]
        if not wanted:
            return {}

        body = await self._request(
            "POST", "/torrents/checkcached", json={"hashes": wanted}, params={"format": "object"}
        )
        data = (body or {}).get("data") or {}
        if not isinstance(data, dict):
            data = {}
        lowered = {str(k).lower(): v for k, v in data.items()}

        result = {h: _is_cached_value(lowered.get(h)) for h in wanted}
        log.info(
            "debrid_check_cached",
            requested=len(wanted),
            cached=sum(result.values()),
        )
        return result

    async def add_torrent(self, info_hash: str) -> DebridTorrent:
        info_hash = canonical_info_hash(info_hash) or ""
        body = await self._request(
            "POST",
            "/torrents/createtorrent",
            data={"magnet": _magnet(info_hash)},
            accept_error_body=True,
        )
        body = body or {}
        if not body.get("success"):
            message = f"{body.get('detail') or ''} {body.get('error') or ''}"
            if "already" in message.lower():
                existing = await self._find_by_hash(info_hash)
                if existing is not None:
                    log.debug("debrid_torrent_exists", torrent_id=existing.id)
                    return existing
            raise DebridError(f"TorBox could not add torrent: {message.strip()}")

        data = body.get("data") or {}
        log.info("debrid_torrent_added", torrent_id=data.get("torrent_id"))
        return DebridTorrent(
            id=int(data["torrent_id"]),
            hash=(data.get("hash") or info_hash).lower(),
            name=data.get("name") or "Unknown",
            size=int(data.get("size") or 0),
        )

    async def resolve_stream_url(
        self, info_hash: str, file_index: int | None = None
    ) -> str | None:
        """Library lookup (adding if needed), then a download link.

        Links are cached for ``url_cache_ttl`` seconds.
        """
        info_hash = canonical_info_hash(info_hash) or ""
        cache_key = f"debrid:url:{info_hash}:{'auto' if file_index is None else file_index}"
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return cached

        torrent = await self._find_by_hash(info_hash)
        if torrent is None:
            await self.add_torrent(info_hash)
            await asyncio.sleep(self._settle_delay)
            torrent = await self._find_by_hash(info_hash)
            if torrent is None:
                log.warning("debrid_torrent_missing_after_add", info_hash=info_hash)
                return None

        file_id: int | None = None
        if file_index is not None and 0 <= file_index < len(torrent.files):
            file_id = torrent.files[file_index].id

        url = await self._request_download(torrent.id, file_id)
        if url:
            await self._cache.set(cache_key, url, ttl=self._url_cache_ttl)
        return url

    async def list_user_torrents(self) -> list[DebridTorrent]:
        """Whole library. A 404 means the library is empty."""
        body = await self._request(
            "GET", "/torrents/mylist", params={"bypass_cache": "true"}, allow_404=True
        )
        if body is None:
            return []
        raw = body.get("data")
        items = raw if isinstance(raw, list) else []
        torrents: list[DebridTorrent] = []
        for item in items:
            try:
                torrents.append(_to_torrent(item))
            except (KeyError, TypeError, ValueError):
                log.debug("debrid_torrent_unparseable", item=str(item)[:200])
        return torrents

    async def get_torrent_files(self, torrent_id: int) -> list[DebridFile]:
        """Video files of one torrent with stream URLs, fetched in small batches."""
        body = await self._request(
            "GET",
            "/torrents/mylist",
            params={"id": torrent_id, "bypass_cache": "true"},
            allow_404=True,
        )
        raw = (body or {}).get("data")
        items = raw if isinstance(raw, list) else [raw] if isinstance(raw, dict) else []
        torrent = next((_to_torrent(i) for i in items if i.get("id") == torrent_id), None)
        if torrent is None:
            return []

        videos = [f for f in torrent.files if is_video_file(f.name)]
        results: list[DebridFile] = []
        for start in range(0, len(videos), self._file_batch_size):
            batch = videos[start : start + self._file_batch_size]
            urls = await asyncio.gather(
                *(self._request_download(torrent_id, f.id) for f in batch),
                return_exceptions=True,
            )
            for file, url in zip(batch, urls):
                if isinstance(url, BaseException):
                    log.warning("debrid_file_url_failed", file=file.name, error=str(url))
                    url = None
                results.append(
                    DebridFile(
                        index=file.index,
                        id=file.id,
                        name=file.name,
                        size=file.size,
                        stream_url=url,
                    )
                )
            if start + self._file_batch_size < len(videos):
                await asyncio.sleep(self._file_batch_delay)
        return results

    async def verify(self) -> bool:
        try:
            body = await self._request("GET", "/user/me")
        except DebridError:
            return False
        return bool(body and body.get("success"))
