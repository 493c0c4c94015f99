"""String similarity used for deduplication and candidate ranking.

Ratcliff/Obershelp "gestalt pattern matching": find the longest common
contiguous substring, then repeat on the unmatched pieces to its left and right.
The ratio is ``2 * matched / (len(a) + len(b))``, the same figure Python's
``difflib.SequenceMatcher.ratio`` reports without its junk heuristics.
"""

from __future__ import annotations

import re
from typing import Iterable

from models import CandidateMatch, Citation

TITLE_WEIGHT = 0.8
AUTHOR_WEIGHT = 0.2

_NON_WORD_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize(text: str | None) -> str:
    """Lowercase, replace punctuation with spaces, collapse whitespace."""
    if not text:
        return ""
    lowered = _NON_WORD_RE.sub(" ", text.lower())
    return _WHITESPACE_RE.sub(" ", lowered).strip()


def longest_common_substring(a: str, b: str) -> tuple[int, int, int]:
    """Return ``(i, j, length)`` of the first longest common substring of a and b."""
    best_len = 0
    best_i = 0
    best_j = 0
    row = [0] * (len(b) + 1)
    for i in range(1, len(a) + 1):
        prev = 0
        char = a[i - 1]
        for j in range(1, len(b) + 1):
            above = row[j]
            if char == b[j - 1]:
                row[j] = prev + 1
                if row[j] > best_len:
                    best_len = row[j]
                    best_i = i - best_len
                    best_j = j - best_len
            else:
                row[j] = 0
            prev = above
    return best_i, best_j, best_len


def similarity(a: str, b: str) -> float:
    """Ratcliff/Obershelp similarity ratio in [0, 1]."""
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    # Equal-length blocks resolve to the first one in the left string; a fixed
    # argument order keeps the ratio symmetric.
    if (len(a), a) > (len(b), b):
        a, b = b, a

    matched = 0
    pending = [(a, b)]
    while pending:
        left, right = pending.pop()
        if not left or not right:
            continue
        i, j, length = longest_common_substring(left, right)
        if length == 0:
            continue
        matched += length
        pending.append((left[:i], right[:j]))
        pending.append((left[i + length:], right[j + length:]))

    return 2.0 * matched / (len(a) + len(b))


def title_similarity(cited: str | None, found: str | None) -> float:
    """Similarity of two titles after normalization; 0 when either is missing."""
    if not cited or not found:
        return 0.0
    return similarity(normalize(cited), normalize(found))


def author_overlap(cited: Iterable[str], found: Iterable[str]) -> float:
    """Fraction of cited authors that also appear among the found authors."""
    cited_set = {name for name in (normalize(author) for author in cited) if name}
    found_set = {name for name in (normalize(author) for author in found) if name}
    if not cited_set or not found_set:
        return 0.0
    return len(cited_set & found_set) / len(cited_set)


def match_score(citation: Citation, candidate: CandidateMatch | None) -> float:
    """Weighted title/author agreement between a citation and one candidate."""
    if candidate is None:
        return 0.0
    score = (
        title_similarity(citation.title, candidate.title) * TITLE_WEIGHT
        + author_overlap(citation.authors, candidate.authors) * AUTHOR_WEIGHT
    )
    return min(max(score, 0.0), 1.0)


def best_by_title(citation: Citation, candidates: list[CandidateMatch]) -> CandidateMatch | None:
    """Highest title similarity wins; the first candidate is kept on ties."""
    best: CandidateMatch | None = None
    best_score = -1.0
    for candidate in candidates:
        score = title_similarity(citation.title, candidate.title)
        if score > best_score:
            best = candidate
            best_score = score
    return best
