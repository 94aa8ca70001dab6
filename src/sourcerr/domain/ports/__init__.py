from .cache import CachePort
from .debrid import DebridPort
from .provider_store import ProviderStorePort
from .settings import SettingsPort, SettingsSnapshot

__all__ = [
    "CachePort",
    "DebridPort",
    "ProviderStorePort",
    "SettingsPort",
    "SettingsSnapshot",
]
