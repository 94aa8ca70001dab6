"""Tests for DirectDebridSource playback resolution."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from sourcerr.domain.entities.debrid import DebridFile, DebridTorrent
from sourcerr.domain.entities.streams import SourceKind, Stream
from sourcerr.domain.exceptions import DebridError
from sourcerr.infrastructure.sources import DirectDebridSource

HASH = "c" * 40

_PACK_FILES = [
    DebridFile(index=0, id=10, name="Show.S01E01.1080p.mkv", size=2_000),
    DebridFile(index=1, id=11, name="Show.S01E02.1080p.mkv", size=1_000),
    DebridFile(index=2, id=12, name="Show.S01.nfo", size=5),
]


def _torrent(files: list[DebridFile]) -> DebridTorrent:
    return DebridTorrent(id=7, hash=HASH, name="Show.S01", files=files)


def _make_debrid(
    *,
    added_files: list[DebridFile] | None = None,
    library: list[DebridTorrent] | None = None,
    url: str | None = "https://cdn.torbox.app/dl/7",
) -> AsyncMock:
    debrid = AsyncMock()
    debrid.add_torrent = AsyncMock(return_value=_torrent(added_files or []))
    debrid.list_user_torrents = AsyncMock(return_value=library or [])
    debrid.resolve_stream_url = AsyncMock(return_value=url)
    return debrid


def _stream(*, file_index: int | None = None) -> Stream:
    return Stream(
        source_kind=SourceKind.TORRENT,
        provider_id="torrentio",
        provider_name="Torrentio",
        name="Torrentio\n1080p",
        title="Show.S01.1080p",
        info_hash=HASH,
        file_index=file_index,
    )


class TestResolve:
    async def test_known_file_index_skips_lookup(self) -> None:
        debrid = _make_debrid()
        result = await DirectDebridSource(debrid).resolve(_stream(file_index=4))

        debrid.add_torrent.assert_not_awaited()
        debrid.resolve_stream_url.assert_awaited_once_with(HASH, 4)
        assert result.source_kind is SourceKind.DIRECT_URL
        assert result.url == "https://cdn.torbox.app/dl/7"
        assert result.provider_name == "TorBox"
        assert result.title == "Show.S01.1080p"
        assert result.cached_flag is True

    async def test_episode_picked_from_pack(self) -> None:
        debrid = _make_debrid(added_files=_PACK_FILES)
        result = await DirectDebridSource(debrid).resolve(_stream(), season=1, episode=2)

        debrid.resolve_stream_url.assert_awaited_once_with(HASH, 1)
        assert result.file_index == 1

    async def test_missing_episode_falls_back_to_largest(self) -> None:
        debrid = _make_debrid(added_files=_PACK_FILES)
        await DirectDebridSource(debrid).resolve(_stream(), season=3, episode=9)
        debrid.resolve_stream_url.assert_awaited_once_with(HASH, 0)

    async def test_files_looked_up_in_library(self) -> None:
        debrid = _make_debrid(library=[_torrent(_PACK_FILES)])
        await DirectDebridSource(debrid).resolve(_stream())

        debrid.list_user_torrents.assert_awaited_once()
        debrid.resolve_stream_url.assert_awaited_once_with(HASH, 0)

    async def test_no_files_resolves_without_index(self) -> None:
        debrid = _make_debrid()
        await DirectDebridSource(debrid).resolve(_stream())
        debrid.resolve_stream_url.assert_awaited_once_with(HASH, None)

    async def test_no_url_returns_none(self) -> None:
        debrid = _make_debrid(url=None)
        assert await DirectDebridSource(debrid).resolve(_stream(file_index=0)) is None

    async def test_hashless_stream_returns_none(self) -> None:
        debrid = _make_debrid()
        stream = Stream(
            source_kind=SourceKind.DIRECT_URL,
            provider_id="p",
            provider_name="P",
            url="https://example.com/a.mkv",
        )
        assert await DirectDebridSource(debrid).resolve(stream) is None
        debrid.resolve_stream_url.assert_not_awaited()

    async def test_debrid_error_propagates(self) -> None:
        debrid = _make_debrid()
        debrid.resolve_stream_url.side_effect = DebridError("down")
        with pytest.raises(DebridError):
            await DirectDebridSource(debrid).resolve(_stream(file_index=0))
