"""Minimum-quality and codec-exclusion filtering.

Policies are keyed by *scope*: ``"aggregate"`` for the multi-provider
route, the provider name for the single-provider route, and ``"default"``
as the fallback for both.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence

import structlog
from guessit import guessit

from tmdbembed.domain.entities.streams import Stream
from tmdbembed.infrastructure.streams.quality import quality_tier

log = structlog.get_logger(__name__)

DEFAULT_SCOPE = "default"

# Alias -> canonical codec name.
_CODEC_ALIASES: dict[str, str] = {
    "hevc": "hevc",
    "x265": "hevc",
    "h265": "hevc",
    "h.265": "hevc",
    "avc": "avc",
    "x264": "avc",
    "h264": "avc",
    "h.264": "avc",
    "av1": "av1",
    "vp9": "vp9",
    "xvid": "xvid",
}

# Alias tokens delimited by anything that is not a letter/digit.
_CODEC_TOKEN_RE = re.compile(
    r"(?<![a-z0-9])("
    + "|".join(re.escape(a) for a in sorted(_CODEC_ALIASES, key=len, reverse=True))
    + r")(?![a-z0-9])"
)


def normalize_codec(name: str) -> str:
    """Canonical codec name for an alias (unknown names are lowercased)."""
    key = name.strip().lower()
    return _CODEC_ALIASES.get(key, key)


def _scoped(policy: Mapping[str, object] | None, scope: str) -> object | None:
    if not policy:
        return None
    if scope in policy:
        return policy[scope]
    return policy.get(DEFAULT_SCOPE)


def detect_codecs(stream: Stream) -> set[str]:
    """Detect the video codecs a stream advertises in its title or URL."""
    found: set[str] = set()
    if stream.title:
        guessed = guessit(stream.title).get("video_codec")
        if isinstance(guessed, str):
            found.add(normalize_codec(guessed))
        elif isinstance(guessed, list):
            found.update(normalize_codec(str(c)) for c in guessed)
    haystack = f"{stream.title} {stream.url}".lower()
    found.update(_CODEC_ALIASES[m] for m in _CODEC_TOKEN_RE.findall(haystack))
    return found


def _meets_minimum(stream: Stream, minimum: int) -> bool:
    tier = quality_tier(stream.quality)
    # Unlabelled streams are kept: a missing label says nothing about quality.
    return tier is None or tier >= minimum


def apply_filters(
    streams: Sequence[Stream],
    scope: str,
    min_qualities: Mapping[str, str] | None,
    exclude_codecs: Mapping[str, Iterable[str]] | None,
) -> list[Stream]:
    """Drop streams below the scope's minimum quality or using an excluded codec.

    Order is preserved.
    """
    min_label = _scoped(min_qualities, scope)
    minimum = quality_tier(min_label) if isinstance(min_label, str) else None

    excluded_raw = _scoped(exclude_codecs, scope) or ()
    excluded = {normalize_codec(str(c)) for c in excluded_raw}  # type: ignore[union-attr]

    if minimum is None and not excluded:
        return list(streams)

    kept: list[Stream] = []
    for s in streams:
        if minimum is not None and not _meets_minimum(s, minimum):
            continue
        if excluded and detect_codecs(s) & excluded:
            continue
        kept.append(s)

    if len(kept) < len(streams):
        log.debug(
            "stream_filter_applied",
            scope=scope,
            min_quality=min_label,
            exclude_codecs=sorted(excluded),
            before=len(streams),
            after=len(kept),
        )
    return kept
