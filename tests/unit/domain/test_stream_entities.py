"""Tests for stream domain entities."""

from __future__ import annotations

import pytest

from sourcerr.domain.entities.streams import (
    AggregationRequest,
    AggregationResult,
    AggregationState,
    SourceKind,
    SourceMode,
    Stream,
    canonical_info_hash,
)

_HASH = "0123456789abcdef0123456789abcdef01234567"


class TestCanonicalInfoHash:
    def test_lowercases_and_strips(self) -> None:
        assert canonical_info_hash(f"  {_HASH.upper()} ") == _HASH

    def test_empty_is_none(self) -> None:
        assert canonical_info_hash("") is None
        assert canonical_info_hash("   ") is None
        assert canonical_info_hash(None) is None

    @pytest.mark.parametrize("value", ["abc", "z" * 40, _HASH + "0"])
    def test_rejects_non_hex_or_wrong_length(self, value: str) -> None:
        with pytest.raises(ValueError, match="Invalid info hash"):
            canonical_info_hash(value)


class TestStream:
    def test_hash_is_canonicalized(self) -> None:
        stream = Stream(
            source_kind=SourceKind.TORRENT,
            provider_id="p",
            provider_name="P",
            info_hash=_HASH.upper(),
        )
        assert stream.info_hash == _HASH

    def test_mixed_case_hashes_compare_equal(self) -> None:
        upper = Stream(SourceKind.TORRENT, "p", "P", info_hash=_HASH.upper())
        lower = Stream(SourceKind.TORRENT, "p", "P", info_hash=_HASH)
        assert upper.info_hash == lower.info_hash

    def test_direct_url_requires_url(self) -> None:
        with pytest.raises(ValueError, match="require a url"):
            Stream(source_kind=SourceKind.DIRECT_URL, provider_id="p", provider_name="P")

    def test_torrent_requires_hash(self) -> None:
        with pytest.raises(ValueError, match="require an info hash"):
            Stream(source_kind=SourceKind.TORRENT, provider_id="p", provider_name="P")

    def test_direct_url_without_hash_is_valid(self) -> None:
        stream = Stream(
            source_kind=SourceKind.DIRECT_URL,
            provider_id="p",
            provider_name="P",
            url="https://cdn.example.com/video.mkv",
        )
        assert stream.info_hash is None

    def test_raw_text_skips_empty_fields(self) -> None:
        stream = Stream(
            SourceKind.TORRENT, "p", "P", name="Name", title="", description="Desc",
            info_hash=_HASH,
        )
        assert stream.raw_text == "Name\nDesc"


class TestAggregationRequest:
    def test_movie_from_stremio_id(self) -> None:
        request = AggregationRequest.from_stremio_id("movie", "tt1234567")
        assert request.media_kind == "movie"
        assert request.stremio_type == "movie"
        assert request.stremio_id == "tt1234567"

    def test_episode_from_stremio_id(self) -> None:
        request = AggregationRequest.from_stremio_id("series", "tt1234567:2:5")
        assert request.media_kind == "episode"
        assert (request.season, request.episode) == (2, 5)
        assert request.stremio_type == "series"
        assert request.stremio_id == "tt1234567:2:5"

    @pytest.mark.parametrize(
        ("content_type", "raw_id"),
        [
            ("movie", ""),
            ("movie", "tt1:1:1"),
            ("series", "tt1234567"),
            ("series", "tt1234567:x:1"),
            ("channel", "tt1234567"),
        ],
    )
    def test_invalid_ids_raise(self, content_type: str, raw_id: str) -> None:
        with pytest.raises(ValueError):
            AggregationRequest.from_stremio_id(content_type, raw_id)

    def test_episode_needs_season_and_episode(self) -> None:
        with pytest.raises(ValueError):
            AggregationRequest(content_id="tt1", media_kind="episode", season=1)


class TestAggregationResult:
    def test_failed_result_is_empty(self) -> None:
        result = AggregationResult.failed(SourceMode.THIRD_PARTY, "boom")
        assert result.state is AggregationState.FAILED
        assert result.streams == []
        assert result.provider_counts == {"All": 0}
        assert result.error == "boom"
