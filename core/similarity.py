"""
Similarity - String and set similarity used for duplicate detection.

All functions are pure and total: any pair of inputs yields a value in [0, 1].
"""
from typing import Iterable, Optional

from core.utils import normalize_technologies

WINKLER_THRESHOLD = 0.7
WINKLER_PREFIX_LIMIT = 4
WINKLER_SCALING = 0.1


def jaro(s1: str, s2: str) -> float:
    """Jaro similarity of two strings (case-sensitive, no trimming)."""
    if s1 == s2:
        return 1.0
    len1, len2 = len(s1), len(s2)
    if len1 == 0 or len2 == 0:
        return 0.0

    match_window = max(0, max(len1, len2) // 2 - 1)
    s1_matches = [False] * len1
    s2_matches = [False] * len2

    matches = 0
    for i in range(len1):
        start = max(0, i - match_window)
        end = min(i + match_window + 1, len2)
        for j in range(start, end):
            if s2_matches[j] or s1[i] != s2[j]:
                continue
            s1_matches[i] = True
            s2_matches[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    transpositions = 0
    k = 0
    for i in range(len1):
        if not s1_matches[i]:
            continue
        while not s2_matches[k]:
            k += 1
        if s1[i] != s2[k]:
            transpositions += 1
        k += 1

    return (
        matches / len1
        + matches / len2
        + (matches - transpositions / 2) / matches
    ) / 3.0


def common_prefix_length(s1: str, s2: str, limit: int = WINKLER_PREFIX_LIMIT) -> int:
    prefix = 0
    for c1, c2 in zip(s1[:limit], s2[:limit]):
        if c1 != c2:
            break
        prefix += 1
    return prefix


def similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Case-insensitive Jaro-Winkler similarity.

    Trimmed-equal strings (including two empty strings) score 1.0; a single
    empty side scores 0.0. The Winkler prefix boost only applies once the
    Jaro score reaches 0.7.
    """
    s1 = (a or "").strip().lower()
    s2 = (b or "").strip().lower()

    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    # Greedy matching is order-dependent; fix the argument order.
    if s1 > s2:
        s1, s2 = s2, s1

    score = jaro(s1, s2)
    if score >= WINKLER_THRESHOLD:
        prefix = common_prefix_length(s1, s2)
        score += prefix * WINKLER_SCALING * (1 - score)

    return max(0.0, min(1.0, score))


def technology_overlap(a: Optional[Iterable[str]], b: Optional[Iterable[str]]) -> float:
    """Jaccard index of two normalized technology sets; 0.0 if either is empty."""
    set_a = set(normalize_technologies(a))
    set_b = set(normalize_technologies(b))
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)
