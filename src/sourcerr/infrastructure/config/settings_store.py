"""SettingsPort backed by the loaded AppConfig."""

from __future__ import annotations

from sourcerr.domain.entities.streams import SourceMode
from sourcerr.domain.ports.settings import SettingsSnapshot

from .schema import SettingsConfig


class ConfigSettingsStore:
    """Read-only settings from the ``settings`` config section."""

    def __init__(self, settings: SettingsConfig) -> None:
        self._settings = settings

    async def snapshot(self) -> SettingsSnapshot:
        return SettingsSnapshot(
            third_party_enabled=self._settings.third_party_enabled,
            active_source=SourceMode(self._settings.active_source),
            debrid_credential=self._settings.debrid_api_key,
        )
