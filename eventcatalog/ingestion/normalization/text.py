"""
Title normalization and similarity scoring.

normalize_title() defines identity for the upsert fallback match (exact
equality only). calculate_similarity() is used for ranking ticket-platform
candidates and is never used to decide identity on its own.
"""

import re

from rapidfuzz.distance import Levenshtein

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_ARTICLES_RE = re.compile(r"\b(the|a|an)\b", re.IGNORECASE)


def normalize_title(title: str) -> str:
    """
    Lowercase, drop punctuation, collapse whitespace and trim.

    Example:
        >>> normalize_title("  Bob   Dylan!! ")
        'bob dylan'
    """
    if not title:
        return ""
    text = _PUNCTUATION_RE.sub("", title.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def _normalize_for_comparison(text: str) -> str:
    text = _ARTICLES_RE.sub("", normalize_title(text))
    return _WHITESPACE_RE.sub(" ", text).strip()


def calculate_similarity(str1: str, str2: str) -> float:
    """
    Score how alike two titles are, in [0, 1].

    Steps, first hit wins:
        1. identical after normalization -> 1.0
        2. either side empty -> 0.0
        3. one contains the other -> max(shorter/longer, 0.7)
        4. >= half of the first title's significant words (len > 2) appear
           in the second -> max(0.5, overlap * 0.8)
        5. otherwise 1 - Levenshtein distance / max length
    """
    s1 = _normalize_for_comparison(str1)
    s2 = _normalize_for_comparison(str2)

    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    if s1 in s2 or s2 in s1:
        containment = min(len(s1), len(s2)) / max(len(s1), len(s2))
        return max(containment, 0.7)

    words1 = [w for w in s1.split() if len(w) > 2]
    words2 = [w for w in s2.split() if len(w) > 2]
    common = [w for w in words1 if any(w in w2 or w2 in w for w2 in words2)]
    if common and words1:
        overlap = len(common) / len(words1)
        if overlap >= 0.5:
            return max(0.5, overlap * 0.8)

    distance = Levenshtein.distance(s1, s2)
    return 1 - distance / max(len(s1), len(s2))
