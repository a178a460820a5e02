"""Quality scoring for free-text stream labels.

Providers label quality inconsistently ("1080p", "FHD 1080", "4K HDR",
"Auto"...), so scoring is a case-insensitive substring match against an
ordered tier table: the first tier whose token appears in the label wins.
"""

from __future__ import annotations

# Ordered: first match wins. "2K" must not shadow "4K"/"2160", which come first.
_TIERS: tuple[tuple[tuple[str, ...], int], ...] = (
    (("4K", "2160"), 100),
    (("1440", "2K"), 90),
    (("1080",), 80),
    (("720",), 60),
    (("480", "SD"), 40),
)

UNKNOWN_SCORE = 20


def quality_tier(label: object) -> int | None:
    """Return the tier score for *label*, or ``None`` when no tier matches."""
    if not label or not isinstance(label, str):
        return None
    upper = label.upper()
    for tokens, score in _TIERS:
        if any(token in upper for token in tokens):
            return score
    return None


def quality_score(label: object) -> int:
    """Map a quality label to its rank on the 20–100 scale.

    >>> quality_score("2160p HDR")
    100
    >>> quality_score("1080p")
    80
    >>> quality_score(None)
    20
    """
    tier = quality_tier(label)
    return UNKNOWN_SCORE if tier is None else tier


def provider_quality_score(label: object) -> int:
    """Provider-internal 2–10 scale with the same tier ordering."""
    return quality_score(label) // 10
