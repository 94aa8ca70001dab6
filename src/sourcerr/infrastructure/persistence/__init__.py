from .provider_store import CacheProviderStore

__all__ = ["CacheProviderStore"]
