"""Size and number parsing shared by sources and the classifier."""

from __future__ import annotations

import re

_SIZE_RE = re.compile(r"([\d.]+)\s*([KMGT]?B)")

_SIZE_MULTIPLIERS: dict[str, int] = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
}

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def parse_size_to_bytes(size_str: str | None) -> int:
    """Parse "4.5 GB", "500 MB" or a raw byte count into bytes (1024-based).

    Unparseable input yields 0.
    """
    if not size_str:
        return 0

    text = size_str.strip()
    if text.isdigit():
        return int(text)

    match = _SIZE_RE.match(text.upper())
    if not match:
        return 0
    try:
        value = float(match.group(1))
    except ValueError:
        return 0
    return int(value * _SIZE_MULTIPLIERS.get(match.group(2), 1))


def format_size(size_bytes: int) -> str:
    """Render bytes as "1.5 GB" (1024-based, two decimals above MB)."""
    if size_bytes <= 0:
        return "0 B"
    value = float(size_bytes)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    if unit == 0:
        return f"{int(value)} B"
    return f"{value:.2f} {_SIZE_UNITS[unit]}"


def to_int(raw: str | int | None) -> int | None:
    """Digits-only int conversion ("1,234" -> 1234). None when nothing parses."""
    if raw is None:
        return None
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    digits = "".join(ch for ch in str(raw) if ch.isdigit())
    return int(digits) if digits else None
