"""Tests for minimum-quality and codec filtering."""

from __future__ import annotations

from tmdbembed.domain.entities.streams import Stream
from tmdbembed.infrastructure.streams.stream_filter import (
    apply_filters,
    detect_codecs,
    normalize_codec,
)


def _s(quality: str | None, title: str = "Movie", url: str = "https://cdn/x.mp4") -> Stream:
    return Stream(title=title, url=url, provider="p", quality=quality)


class TestNormalizeCodec:
    def test_hevc_aliases(self) -> None:
        for alias in ("x265", "H265", "h.265", "HEVC"):
            assert normalize_codec(alias) == "hevc"

    def test_avc_aliases(self) -> None:
        for alias in ("x264", "h264", "H.264", "avc"):
            assert normalize_codec(alias) == "avc"

    def test_unknown_is_lowercased(self) -> None:
        assert normalize_codec(" MPEG2 ") == "mpeg2"


class TestDetectCodecs:
    def test_from_release_title(self) -> None:
        assert "hevc" in detect_codecs(_s("1080p", title="The.Matrix.1999.1080p.BluRay.x265"))

    def test_from_url_token(self) -> None:
        found = detect_codecs(_s("1080p", url="https://cdn.example.com/av1/master.m3u8"))
        assert "av1" in found

    def test_plain_title_has_none(self) -> None:
        assert detect_codecs(_s("1080p", title="The Matrix - 1080p [MP4Hydra #1]")) == set()


class TestMinimumQuality:
    def test_no_policies_returns_all(self) -> None:
        streams = [_s("480p"), _s("1080p")]
        assert apply_filters(streams, "aggregate", {}, {}) == streams
        assert apply_filters(streams, "aggregate", None, None) == streams

    def test_drops_below_minimum(self) -> None:
        streams = [_s("480p"), _s("720p"), _s("1080p")]
        kept = apply_filters(streams, "aggregate", {"aggregate": "720p"}, {})
        assert [s.quality for s in kept] == ["720p", "1080p"]

    def test_unrecognized_quality_is_kept(self) -> None:
        streams = [_s(None), _s("Auto"), _s("480p")]
        kept = apply_filters(streams, "aggregate", {"aggregate": "1080p"}, {})
        assert [s.quality for s in kept] == [None, "Auto"]

    def test_falls_back_to_default_scope(self) -> None:
        streams = [_s("480p"), _s("1080p")]
        kept = apply_filters(streams, "mp4hydra", {"default": "720p"}, {})
        assert [s.quality for s in kept] == ["1080p"]

    def test_own_scope_wins_over_default(self) -> None:
        streams = [_s("480p"), _s("1080p")]
        kept = apply_filters(
            streams, "mp4hydra", {"default": "1080p", "mp4hydra": "480p"}, {}
        )
        assert len(kept) == 2

    def test_other_scope_does_not_apply(self) -> None:
        streams = [_s("480p")]
        kept = apply_filters(streams, "aggregate", {"mp4hydra": "1080p"}, {})
        assert kept == streams


class TestCodecExclusion:
    def test_excludes_by_alias(self) -> None:
        streams = [
            _s("1080p", title="Movie.2020.1080p.WEB.x265"),
            _s("1080p", title="Movie.2020.1080p.WEB.x264"),
        ]
        kept = apply_filters(streams, "aggregate", {}, {"aggregate": ["h.265"]})
        assert [s.title for s in kept] == ["Movie.2020.1080p.WEB.x264"]

    def test_default_scope_exclusion(self) -> None:
        streams = [_s("1080p", title="Movie HEVC")]
        assert apply_filters(streams, "any", {}, {"default": ["x265"]}) == []

    def test_order_preserved(self) -> None:
        streams = [_s("720p", title=f"M{i}") for i in range(5)]
        kept = apply_filters(streams, "aggregate", {"aggregate": "480p"}, {"aggregate": ["vp9"]})
        assert [s.title for s in kept] == ["M0", "M1", "M2", "M3", "M4"]
