"""Locate the reference list inside extracted document text (no LLM calls)."""

from __future__ import annotations

import re

_HEADING_RE = re.compile(r"^\s*(references|bibliography|works cited)\s*$", re.IGNORECASE)

# Section headings that always follow the reference list in a paper.
_STOP_HEADINGS: frozenset[str] = frozenset({
    "appendix",
    "acknowledgments",
    "acknowledgements",
    "supplementary",
    "supplemental",
    "algorithm",
    "proof",
    "proofs",
})

_STOP_LINE_RE = re.compile(r"^(algorithm|figure|table)\s+\d+", re.IGNORECASE)
_YEAR_RE = re.compile(r"\b(19|20)\d{2}\b")
_SHORT_HEADING_MAX_LEN = 40


def locate_references_section(text: str) -> str:
    """Return the reference list substring of ``text``.

    Collection starts on the line after the first standalone "References",
    "Bibliography" or "Works Cited" heading and stops at the next section-like
    line. When no heading exists the full text is returned unchanged and the
    extractor decides whether anything usable is in there.
    """
    lines = text.splitlines()
    start: int | None = None
    for index, line in enumerate(lines):
        if _HEADING_RE.match(line.strip()):
            start = index + 1
            break
    if start is None:
        return text

    collected: list[str] = []
    for line in lines[start:]:
        stripped = line.strip()
        if not stripped:
            collected.append("")
            continue
        if _is_section_break(stripped):
            break
        collected.append(line)

    return "\n".join(collected)


def _is_section_break(stripped: str) -> bool:
    if stripped.lower() in _STOP_HEADINGS:
        return True
    if _STOP_LINE_RE.match(stripped):
        return True
    # Short all-caps lines without a year are headings ("A PROOFS OF LEMMAS"),
    # not citation fragments like "NEURIPS 2017".
    return (
        len(stripped) <= _SHORT_HEADING_MAX_LEN
        and stripped == stripped.upper()
        and not _YEAR_RE.search(stripped)
    )
