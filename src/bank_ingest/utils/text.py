"""Text cleaning and fuzzy comparison helpers."""

import re

from rapidfuzz.distance import Levenshtein

# Zero-width spaces/joiners, word joiner and byte-order mark
INVISIBLE_CHARS_PATTERN = re.compile(
    "[" + "".join(chr(c) for c in (0x200B, 0x200C, 0x200D, 0x2060, 0xFEFF)) + "]"
)

_NON_ALNUM_PATTERN = re.compile(r"[^a-z0-9]")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def strip_invisible(value: str) -> str:
    """Remove zero-width and BOM characters and surrounding whitespace."""
    return INVISIBLE_CHARS_PATTERN.sub("", value).strip()


def normalize_text(value: str | None) -> str:
    """Lowercase and drop every character that is not a-z or 0-9."""
    if not value:
        return ""
    return _NON_ALNUM_PATTERN.sub("", value.lower())


def normalize_header(value: str) -> str:
    """Lowercase a header and collapse punctuation/whitespace to single spaces."""
    cleaned = re.sub(r"[^a-z0-9]+", " ", strip_invisible(value).lower())
    return _WHITESPACE_PATTERN.sub(" ", cleaned).strip()


def levenshtein_similarity(a: str, b: str) -> float:
    """Return ``(longer - distance) / longer`` for two strings.

    Two empty strings are identical (1.0).
    """
    if not a and not b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)


def is_similar(a: str | None, b: str | None, threshold: float = 0.8) -> bool:
    """Fuzzy text equality used for reversal pairing.

    Both values are normalized to lowercase alphanumerics. Empty values are
    never similar. Otherwise containment either way, or Levenshtein similarity
    strictly above ``threshold``.
    """
    left = normalize_text(a)
    right = normalize_text(b)
    if not left or not right:
        return False
    if left in right or right in left:
        return True
    return levenshtein_similarity(left, right) > threshold
