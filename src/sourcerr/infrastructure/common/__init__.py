"""Common infrastructure utilities."""

from __future__ import annotations

from .cancellation import CancellationToken, SupersedingScope
from .parsers import format_size, parse_size_to_bytes, to_int
from .resilient_fetcher import ResilientFetcher

__all__ = [
    "CancellationToken",
    "ResilientFetcher",
    "SupersedingScope",
    "format_size",
    "parse_size_to_bytes",
    "to_int",
]
