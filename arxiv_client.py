"""arXiv lookups (Source B: preprint archive metadata search)."""

from __future__ import annotations

import logging
import re
from typing import Callable

from config import Settings
from http_retry import HttpGet, get_with_retry
from models import ARXIV, CandidateMatch, Citation
from similarity import best_by_title, title_similarity

ARXIV_API_URL = "https://export.arxiv.org/api/query"
MAX_RESULTS = 5
# Below this title similarity the title-only query is not trusted and the
# first author is added as a second strategy.
STRONG_TITLE_MATCH = 0.9

LOGGER = logging.getLogger(__name__)

_ENTRY_RE = re.compile(r"<entry>[\s\S]*?</entry>", re.IGNORECASE)
_TITLE_RE = re.compile(r"<title>([\s\S]*?)</title>", re.IGNORECASE)
_AUTHOR_RE = re.compile(r"<author>[\s\S]*?<name>([\s\S]*?)</name>[\s\S]*?</author>", re.IGNORECASE)
_ID_RE = re.compile(r"<id>https?://arxiv\.org/abs/([^<]+)</id>", re.IGNORECASE)
_NON_WORD_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def lookup(
    citation: Citation,
    settings: Settings,
    http_get: HttpGet | None = None,
    sleep: Callable[[float], None] | None = None,
) -> CandidateMatch | None:
    """Best arXiv candidate for the citation, or None."""
    clean_title = _clean_query_text(citation.title)
    if not clean_title:
        return None

    def search(query: str) -> list[CandidateMatch]:
        response = get_with_retry(
            ARXIV_API_URL,
            source=ARXIV,
            params={"search_query": query, "start": 0, "max_results": MAX_RESULTS},
            headers={"Accept": "application/atom+xml, text/xml"},
            timeout=settings.arxiv_timeout,
            attempts=settings.lookup_attempts,
            backoff_base=settings.backoff_base,
            backoff_ceiling=settings.backoff_ceiling,
            http_get=http_get,
            sleep=sleep,
        )
        if response is None:
            return []
        return parse_arxiv_feed(response.text)

    candidates = search(f'ti:"{clean_title}"')
    best = best_by_title(citation, candidates)

    surname = _first_author_surname(citation)
    if surname and (best is None or title_similarity(citation.title, best.title) < STRONG_TITLE_MATCH):
        LOGGER.debug("arXiv title query weak for %r; retrying with author %s", citation.title, surname)
        candidates += search(f'ti:"{clean_title}" AND au:{surname}')
        best = best_by_title(citation, candidates)

    return best


def parse_arxiv_feed(xml: str) -> list[CandidateMatch]:
    """Pull title, author names and arXiv id out of each ``<entry>`` block."""
    entries: list[CandidateMatch] = []
    for block in _ENTRY_RE.findall(xml or ""):
        title_match = _TITLE_RE.search(block)
        title = _collapse(title_match.group(1)) if title_match else ""
        if not title:
            continue
        authors = tuple(name for name in (_collapse(raw) for raw in _AUTHOR_RE.findall(block)) if name)
        id_match = _ID_RE.search(block)
        entries.append(
            CandidateMatch(
                title=title,
                authors=authors,
                external_id=id_match.group(1).strip() if id_match else None,
                source_kind=ARXIV,
            )
        )
    return entries


def _clean_query_text(text: str) -> str:
    return _collapse(_NON_WORD_RE.sub(" ", text or ""))


def _first_author_surname(citation: Citation) -> str | None:
    if not citation.authors:
        return None
    first = citation.authors[0]
    # "Vaswani, A." and "Ashish Vaswani" both yield "Vaswani".
    name = first.split(",")[0] if "," in first else first
    parts = _clean_query_text(name).split()
    if not parts:
        return None
    return parts[0] if "," in first else parts[-1]


def _collapse(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()
