"""Season-pack detection and episode file selection."""

from __future__ import annotations

import re
from dataclasses import dataclass

from guessit import guessit

from sourcerr.domain.entities.debrid import DebridFile

_VIDEO_EXTENSIONS = (
    ".mkv",
    ".mp4",
    ".avi",
    ".mov",
    ".wmv",
    ".flv",
    ".webm",
    ".m4v",
    ".ts",
    ".m2ts",
)

_SKIP_PATTERN = re.compile(
    r"(?i)sample|featurette|behind.the.scenes|deleted.scenes|extras?[\\/\-.]|bonus|trailer"
)

# --- Title heuristics ---

_SINGLE_EPISODE_PATTERNS = (
    re.compile(r"(?i)S\d{1,2}E\d{1,3}"),
    re.compile(r"(?i)(?<!\d)\d{1,2}x\d{1,3}(?!\d)"),
    re.compile(r"(?i)Episode\s*\d+"),
)

_SEASON_PACK_PATTERNS = (
    re.compile(r"(?i)\bS\d{1,2}\b(?!E)"),
    re.compile(r"(?i)\bSeason\s*\d+\b"),
    re.compile(r"(?i)\bComplete\b"),
    re.compile(r"(?i)\bFull\s*Season\b"),
    re.compile(r"(?i)\bSeasons?\s*\d+\s*[-–]\s*\d+"),
    re.compile(r"(?i)\bS\d{1,2}\s*[-–]\s*S?\d{1,2}\b"),
    re.compile(r"(?i)\bEntire\s*Series\b"),
    re.compile(r"(?i)\bAll\s*Episodes?\b"),
)

# --- Filename patterns, tried in order ---

_EPISODE_PATTERNS = (
    re.compile(r"[Ss](\d{1,2})[Ee](\d{1,3})"),
    re.compile(r"(?i)(?<!\d)(\d{1,2})x(\d{1,3})(?!\d)"),
    re.compile(r"(?i)Season[\s._-]*(\d{1,2})[\s._-]*Episode[\s._-]*(\d{1,3})"),
)


@dataclass(frozen=True)
class EpisodeInfo:
    season: int
    episode: int


# --- Public API ---


def is_season_pack_title(title: str) -> bool:
    """True when *title* names a multi-episode release.

    Any explicit single-episode marker (S01E01, 1x01, Episode 3) wins
    over pack markers.
    """
    if not title:
        return False
    if any(p.search(title) for p in _SINGLE_EPISODE_PATTERNS):
        return False
    return any(p.search(title) for p in _SEASON_PACK_PATTERNS)


def is_video_file(filename: str) -> bool:
    """Video extension and not a sample, trailer or extra."""
    if not filename.lower().endswith(_VIDEO_EXTENSIONS):
        return False
    return not _SKIP_PATTERN.search(filename)


def parse_episode_info(filename: str) -> EpisodeInfo | None:
    """Extract season/episode from a file path.

    Regex patterns first, guessit as fallback for anything more exotic.
    """
    name = re.split(r"[/\\]", filename)[-1]
    for pattern in _EPISODE_PATTERNS:
        match = pattern.search(name)
        if match:
            return EpisodeInfo(season=int(match.group(1)), episode=int(match.group(2)))

    guess = guessit(name, {"type": "episode"})
    episode = guess.get("episode")
    if isinstance(episode, list):
        episode = episode[0] if episode else None
    if not isinstance(episode, int):
        return None
    season = guess.get("season")
    if isinstance(season, list):
        season = season[0] if season else None
    return EpisodeInfo(season=season if isinstance(season, int) else 1, episode=episode)


def pick_episode_file(
    files: list[DebridFile], season: int, episode: int
) -> DebridFile | None:
    """Return the video file for ``season``/``episode`` inside a pack."""
    for file in files:
        if not is_video_file(file.name):
            continue
        info = parse_episode_info(file.name)
        if info is not None and info.season == season and info.episode == episode:
            return file
    return None


def pick_largest_video(files: list[DebridFile]) -> DebridFile | None:
    videos = [f for f in files if is_video_file(f.name)]
    if not videos:
        return None
    return max(videos, key=lambda f: f.size)
