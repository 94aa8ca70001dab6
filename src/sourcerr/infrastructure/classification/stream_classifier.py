"""Heuristic extraction of technical traits from free-text stream titles.

Everything is driven by ``_RULES``: an ordered table of
``(category, priority, pattern, value)``. For single-valued categories
the lowest priority that matches anywhere in the text wins; languages
collect every match. Re-prioritizing is a table edit.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from sourcerr.domain.entities.streams import QualityTier, Stream, StreamTraits
from sourcerr.infrastructure.classification.episodes import is_season_pack_title
from sourcerr.infrastructure.common.parsers import parse_size_to_bytes


@dataclass(frozen=True)
class Rule:
    category: str
    priority: int
    pattern: re.Pattern[str]
    value: str | None = None  # None: derive from the match


def _rx(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


_RULES: tuple[Rule, ...] = (
    # resolution
    Rule("resolution", 0, _rx(r"(?<!\d)(?:2160p|4k)(?![a-z0-9])"), "4K"),
    Rule("resolution", 1, _rx(r"(?<!\d)(\d{3,4})p(?![a-z])")),
    # codec
    Rule("codec", 0, _rx(r"\b(?:hevc|x265|h\.?265)\b"), "HEVC"),
    Rule("codec", 1, _rx(r"\bav1\b"), "AV1"),
    Rule("codec", 2, _rx(r"\b(?:x264|h\.?264)\b"), "x264"),
    Rule("codec", 3, _rx(r"\bxvid\b"), "XVID"),
    Rule("codec", 4, _rx(r"\bdivx\b"), "DIVX"),
    # hdr
    Rule("hdr", 0, _rx(r"\b(?:dolby[\s.]*vision|dovi|dv)\b"), "DV"),
    Rule("hdr", 1, _rx(r"\bhdr10\+|\bhdr10plus\b"), "HDR10+"),
    Rule("hdr", 2, _rx(r"\bhdr10\b"), "HDR10"),
    Rule("hdr", 3, _rx(r"\bhdr\b"), "HDR"),
    # audio
    Rule("audio", 0, _rx(r"\batmos\b"), "Atmos"),
    Rule("audio", 1, _rx(r"\bdts[-\s.]?(?:hd|ma)\b"), "DTS-HD"),
    Rule("audio", 2, _rx(r"\btrue[-\s.]?hd\b"), "TrueHD"),
    Rule("audio", 3, _rx(r"\bdts\b"), "DTS"),
    Rule("audio", 4, _rx(r"\bdd\+|\bddp|\be-?ac-?3\b"), "DD+"),
    Rule("audio", 5, _rx(r"\bdd(?:5\.?1)?\b|\bac-?3\b"), "DD"),
    Rule("audio", 6, _rx(r"\baac"), "AAC"),
    # source type
    Rule("source_type", 0, _rx(r"\bweb[-\s.]?dl\b"), "WEB-DL"),
    Rule("source_type", 1, _rx(r"\bweb[-\s.]?rip\b"), "WEBRip"),
    Rule("source_type", 2, _rx(r"\b(?:blu[-\s.]?ray|bdrip|brrip|bdremux)\b"), "BluRay"),
    Rule("source_type", 3, _rx(r"\bhdtv\b"), "HDTV"),
    Rule("source_type", 4, _rx(r"\bdvd[-\s.]?rip\b"), "DVDRip"),
    Rule("source_type", 5, _rx(r"\b(?:cam|hdcam|camrip|ts|telesync|hdts)\b"), "CAM"),
    Rule("source_type", 6, _rx(r"\bremux\b"), "Remux"),
    # languages (all matches collected)
    Rule("language", 0, _rx(r"\b(?:english|eng)\b"), "EN"),
    Rule("language", 0, _rx(r"\b(?:italian|ita)\b"), "IT"),
    Rule("language", 0, _rx(r"\b(?:spanish|spa|esp)\b"), "ES"),
    Rule("language", 0, _rx(r"\b(?:french|fra|fre)\b"), "FR"),
    Rule("language", 0, _rx(r"\b(?:german|ger|deu)\b"), "DE"),
    Rule("language", 0, _rx(r"\b(?:portuguese|por)\b"), "PT"),
    Rule("language", 0, _rx(r"\b(?:russian|rus)\b"), "RU"),
    Rule("language", 0, _rx(r"\b(?:hindi|hin)\b"), "HI"),
    Rule("language", 0, _rx(r"\b(?:japanese|jpn)\b"), "JA"),
    Rule("language", 0, _rx(r"\b(?:korean|kor)\b"), "KO"),
    Rule("language", 0, _rx(r"\b(?:chinese|chi|zho)\b"), "ZH"),
    Rule("language", 0, _rx(r"\bmulti\b"), "Multi"),
    # cache markers; "TB" right after a number is a size unit
    Rule("cached", 0, _rx(r"⚡")),
    Rule("cached", 0, _rx(r"\b(?:cached|instant|torbox|rd|realdebrid)\b")),
    Rule("cached", 0, _rx(r"(?<!\d)(?<![\d.]\s)\btb\b")),
)

_SIZE_RE = _rx(r"(\d+(?:[.,]\d+)?)\s*(GB|MB|TB)\b")
_SEEDERS_RE = _rx(r"(?:👤|🌱|\bS:|\bSeeders?:?)\s*(\d+)")
_LANGUAGE_PAIR_RE = re.compile(r"\b([A-Z]{2})/([A-Z]{2})\b")


def _build_index(rules: tuple[Rule, ...]) -> dict[str, list[Rule]]:
    index: dict[str, list[Rule]] = {}
    for rule in rules:
        index.setdefault(rule.category, []).append(rule)
    for bucket in index.values():
        bucket.sort(key=lambda r: r.priority)
    return index


_INDEX = _build_index(_RULES)


def _normalize_resolution(match: re.Match[str]) -> str:
    return f"{match.group(1)}p"


_DERIVED: dict[str, Callable[[re.Match[str]], str]] = {
    "resolution": _normalize_resolution,
}


def _first_match(category: str, text: str) -> str | None:
    for rule in _INDEX.get(category, ()):
        match = rule.pattern.search(text)
        if match is None:
            continue
        if rule.value is not None:
            return rule.value
        return _DERIVED.get(category, lambda m: m.group(0))(match)
    return None


def _languages(text: str) -> frozenset[str]:
    found = {r.value for r in _INDEX["language"] if r.value and r.pattern.search(text)}
    for match in _LANGUAGE_PAIR_RE.finditer(text):
        found.add(match.group(1))
        found.add(match.group(2))
    return frozenset(found)


def _size(text: str) -> tuple[str | None, int]:
    match = _SIZE_RE.search(text)
    if match is None:
        return None, 0
    number = match.group(1).replace(",", ".")
    label = f"{number} {match.group(2).upper()}"
    return label, parse_size_to_bytes(label)


def _seeders(text: str) -> int:
    match = _SEEDERS_RE.search(text)
    return int(match.group(1)) if match else 0


# --- Public API ---


def tier_for_resolution(resolution: str | None) -> QualityTier:
    """4K for 2160p/4K, 1080p for 1080p, Other for everything else."""
    if resolution is None:
        return QualityTier.OTHER
    normalized = resolution.strip().upper()
    if normalized in ("4K", "2160P"):
        return QualityTier.UHD_4K
    if normalized == "1080P":
        return QualityTier.FHD_1080P
    return QualityTier.OTHER


def classify_text(
    name: str = "",
    title: str = "",
    description: str = "",
    *,
    cached_flag: bool = False,
    size_hint: int | None = None,
) -> StreamTraits:
    """Classify the newline-joined text fields. Pure and deterministic.

    Missing matches leave the trait empty; nothing here raises.
    ``size_hint`` (bytes from a structured source) beats a size parsed
    from text.
    """
    text = "\n".join(part for part in (name, title, description) if part)

    resolution = _first_match("resolution", text)
    size_label, size_bytes = _size(text)
    if size_hint and size_hint > 0:
        size_bytes = size_hint

    return StreamTraits(
        quality_tier=tier_for_resolution(resolution),
        resolution=resolution,
        codec=_first_match("codec", text),
        hdr=_first_match("hdr", text),
        audio=_first_match("audio", text),
        source_type=_first_match("source_type", text),
        languages=_languages(text),
        seed_count=_seeders(text),
        size_bytes=size_bytes,
        size_label=size_label,
        cached_hint=cached_flag or _first_match("cached", text) is not None,
        is_season_pack=is_season_pack_title(text),
    )


def classify(stream: Stream) -> StreamTraits:
    return classify_text(
        stream.name,
        stream.title,
        stream.description,
        cached_flag=stream.cached_flag,
        size_hint=stream.size_hint,
    )
