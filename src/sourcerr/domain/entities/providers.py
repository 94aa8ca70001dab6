"""Installed third-party stream provider."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Provider:
    """A provider installed by manifest URL.

    ``id_prefixes`` come from the manifest root, ``stream_id_prefixes``
    from its ``stream`` resource entry. Empty sets mean "no constraint".
    """

    id: str
    name: str
    version: str
    base_url: str
    original_manifest_url: str
    supported_types: frozenset[str] = frozenset()
    stream_capable: bool = False
    id_prefixes: frozenset[str] = frozenset()
    stream_id_prefixes: frozenset[str] = frozenset()
