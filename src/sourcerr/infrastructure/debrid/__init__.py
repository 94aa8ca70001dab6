"""Debrid service clients."""

from __future__ import annotations

from .torbox_client import TorboxClient

__all__ = ["TorboxClient"]
