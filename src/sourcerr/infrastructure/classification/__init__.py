"""Free-text stream classification."""

from __future__ import annotations

from .episodes import (
    EpisodeInfo,
    is_season_pack_title,
    is_video_file,
    parse_episode_info,
    pick_episode_file,
    pick_largest_video,
)
from .stream_classifier import classify, classify_text, tier_for_resolution

__all__ = [
    "EpisodeInfo",
    "classify",
    "classify_text",
    "is_season_pack_title",
    "is_video_file",
    "parse_episode_info",
    "pick_episode_file",
    "pick_largest_video",
    "tier_for_resolution",
]
