"""Third-party provider management."""

from __future__ import annotations

from .manifest import Manifest, parse_manifest, provider_from_manifest, split_manifest_url
from .registry import ProviderRegistry, heal_order

__all__ = [
    "Manifest",
    "ProviderRegistry",
    "heal_order",
    "parse_manifest",
    "provider_from_manifest",
    "split_manifest_url",
]
