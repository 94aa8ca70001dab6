"""Port for the externally owned settings surface (read-only here)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sourcerr.domain.entities.streams import SourceMode


@dataclass(frozen=True)
class SettingsSnapshot:
    """Settings read once per request."""

    third_party_enabled: bool = False
    active_source: SourceMode = SourceMode.TORRENT_AGGREGATOR
    debrid_credential: str | None = None


class SettingsPort(Protocol):
    async def snapshot(self) -> SettingsSnapshot: ...
