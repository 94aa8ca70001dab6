"""Resolve a torrent stream to a playable debrid URL."""

from __future__ import annotations

import structlog

from sourcerr.domain.entities.debrid import DebridFile
from sourcerr.domain.entities.streams import Stream
from sourcerr.domain.ports.debrid import DebridPort
from sourcerr.infrastructure.classification.episodes import (
    pick_episode_file,
    pick_largest_video,
)
from sourcerr.infrastructure.sources.normalizers import normalize
from sourcerr.infrastructure.sources.payloads import DirectDebridUrlPayload

log = structlog.get_logger(__name__)


class DirectDebridSource:
    """Turns a cached torrent into a DIRECT_URL stream served by the debrid service.

    File choice when the stream carries no file index:
      1. the requested episode's file (season packs),
      2. otherwise the largest video file.
    """

    def __init__(
        self,
        debrid: DebridPort,
        *,
        provider_id: str = "torbox",
        provider_name: str = "TorBox",
    ) -> None:
        self._debrid = debrid
        self.provider_id = provider_id
        self.provider_name = provider_name

    async def _torrent_files(self, info_hash: str) -> list[DebridFile]:
        torrent = await self._debrid.add_torrent(info_hash)
        if torrent.files:
            return torrent.files
        # Freshly added torrents come back without a file list
        for item in await self._debrid.list_user_torrents():
            if item.hash == info_hash:
                return item.files
        return []

    async def pick_file_index(
        self,
        info_hash: str,
        *,
        season: int | None = None,
        episode: int | None = None,
    ) -> int | None:
        files = await self._torrent_files(info_hash)
        chosen = None
        if season is not None and episode is not None:
            chosen = pick_episode_file(files, season, episode)
            if chosen is None:
                log.info(
                    "episode_file_not_found",
                    info_hash=info_hash,
                    season=season,
                    episode=episode,
                    files=len(files),
                )
        if chosen is None:
            chosen = pick_largest_video(files)
        return chosen.index if chosen is not None else None

    async def resolve(
        self,
        stream: Stream,
        *,
        season: int | None = None,
        episode: int | None = None,
    ) -> Stream | None:
        """Return a direct stream, or None when the service has no link.

        Raises:
            DebridError: The debrid service failed.
        """
        if stream.info_hash is None:
            return None

        file_index = stream.file_index
        if file_index is None:
            file_index = await self.pick_file_index(
                stream.info_hash, season=season, episode=episode
            )

        url = await self._debrid.resolve_stream_url(stream.info_hash, file_index)
        if not url:
            log.warning("direct_url_unavailable", info_hash=stream.info_hash)
            return None

        log.info("direct_url_resolved", info_hash=stream.info_hash, file_index=file_index)
        return normalize(
            DirectDebridUrlPayload(
                provider_id=self.provider_id,
                provider_name=self.provider_name,
                url=url,
                info_hash=stream.info_hash,
                file_index=file_index,
                name=stream.name,
                title=stream.title,
                description=stream.description,
            )
        )
