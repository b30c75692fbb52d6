"""Word-level text similarity used for advisory issue deduplication."""

from __future__ import annotations

import re

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lower-case text, replace punctuation with spaces and collapse whitespace."""
    text = _PUNCTUATION.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def tokenize(text: str) -> frozenset[str]:
    """Split normalized text into its set of unique words."""
    return frozenset(normalize_text(text).split())


def jaccard_similarity(a: str, b: str) -> float:
    """Compute the Jaccard index of the word sets of two strings.

    Two empty inputs are identical (1.0); exactly one empty input has no
    overlap (0.0).

    Args:
        a: First string.
        b: Second string.

    Returns:
        Float between 0.0 (no shared words) and 1.0 (same word set).
    """
    words_a = tokenize(a)
    words_b = tokenize(b)

    if not words_a and not words_b:
        return 1.0

    if not words_a or not words_b:
        return 0.0

    return len(words_a & words_b) / len(words_a | words_b)
