from __future__ import annotations

from .load import load_config
from .schema import AppConfig, EnvOverrides
from .settings_store import ConfigSettingsStore

__all__ = ["AppConfig", "ConfigSettingsStore", "EnvOverrides", "load_config"]
