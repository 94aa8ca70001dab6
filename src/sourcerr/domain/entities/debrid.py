"""Debrid service records (lookup contract only)."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DebridFile:
    index: int  # position inside the torrent (stream fileIdx)
    id: int  # service-side file id
    name: str
    size: int = 0
    stream_url: str | None = None


@dataclass(frozen=True)
class DebridTorrent:
    id: int
    hash: str
    name: str
    size: int = 0
    progress: float = 0.0  # 0-100
    download_finished: bool = False
    files: list[DebridFile] = field(default_factory=list)
