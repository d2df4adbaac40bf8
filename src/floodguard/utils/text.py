"""
Text helpers shared by the classifier and the ingestion path.

- Edit-distance similarity normalized to [0, 1]
- Keyword extraction (runs of CJK or Latin letters)
- Link detection
"""

from __future__ import annotations

import re

# Two or more consecutive CJK ideographs or ASCII letters
KEYWORD_PATTERN = re.compile(r"[一-龥a-zA-Z]{2,}")

URL_PATTERN = re.compile(
    r"https?://[^\s]+|(?:www\.)?[a-zA-Z0-9][-a-zA-Z0-9]*\.[a-zA-Z]{2,}(?:/[^\s]*)?",
    re.IGNORECASE,
)


def levenshtein(a: str, b: str) -> int:
    """
    Classic dynamic-programming edit distance.

    Insertions, deletions and substitutions all cost 1. Only two rows of the
    table are kept.
    """
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                current[j] = previous[j - 1]
            else:
                current[j] = min(previous[j], current[j - 1], previous[j - 1]) + 1
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """
    Normalized similarity of two strings.

    Returns:
        float: 1 for equal strings (both empty included), 0 when exactly one
        is empty, otherwise ``1 - distance / max(len(a), len(b))``
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1 - levenshtein(a, b) / max(len(a), len(b))


def extract_keywords(content: str) -> list[str]:
    """Keywords in order of appearance. Repeats are kept."""
    return KEYWORD_PATTERN.findall(content)


def contains_link(text: str) -> bool:
    return bool(URL_PATTERN.search(text))
