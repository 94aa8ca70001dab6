"""Port for the debrid cache service (query/lookup contract only)."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from sourcerr.domain.entities.debrid import DebridFile, DebridTorrent


@runtime_checkable
class DebridPort(Protocol):
    """Async interface to a debrid service.

    All methods raise ``DebridError`` on service failure.
    """

    async def batch_check_cached(self, hashes: list[str]) -> dict[str, bool]:
        """One call for all hashes. Every requested hash is a key in the result."""
        ...

    async def add_torrent(self, info_hash: str) -> DebridTorrent: ...

    async def resolve_stream_url(
        self, info_hash: str, file_index: int | None = None
    ) -> str | None: ...

    async def list_user_torrents(self) -> list[DebridTorrent]: ...

    async def get_torrent_files(self, torrent_id: int) -> list[DebridFile]: ...

    async def verify(self) -> bool: ...
