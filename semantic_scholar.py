"""Semantic Scholar lookups (Source A: exact-match oriented scholarly index)."""

from __future__ import annotations

import logging
from typing import Any, Callable

import requests

from config import Settings
from errors import SourceLookupError
from http_retry import HttpGet, get_with_retry
from models import SEMANTIC_SCHOLAR, CandidateMatch, Citation
from similarity import best_by_title

SEMANTIC_SCHOLAR_API_URL = "https://api.semanticscholar.org/graph/v1/paper"
MATCH_URL = f"{SEMANTIC_SCHOLAR_API_URL}/search/match"
SEARCH_URL = f"{SEMANTIC_SCHOLAR_API_URL}/search"
FIELDS = "title,authors,paperId"
FALLBACK_LIMIT = 3

LOGGER = logging.getLogger(__name__)


def lookup(
    citation: Citation,
    settings: Settings,
    http_get: HttpGet | None = None,
    sleep: Callable[[float], None] | None = None,
) -> CandidateMatch | None:
    """Best Semantic Scholar candidate for the citation, or None.

    Tries the title-match endpoint first; when it has nothing, falls back to a
    top-3 keyword search ranked by title similarity.
    """
    query = citation.title.strip()
    if not query:
        return None

    headers = {"Accept": "application/json"}
    if settings.semantic_scholar_api_key:
        headers["x-api-key"] = settings.semantic_scholar_api_key

    def fetch(url: str, params: dict[str, Any]) -> list[CandidateMatch]:
        response = get_with_retry(
            url,
            source=SEMANTIC_SCHOLAR,
            params=params,
            headers=headers,
            timeout=settings.semantic_scholar_timeout,
            attempts=settings.lookup_attempts,
            backoff_base=settings.backoff_base,
            backoff_ceiling=settings.backoff_ceiling,
            http_get=http_get,
            sleep=sleep,
        )
        if response is None:
            return []
        return _parse_search_payload(_json_body(response))

    matches = fetch(MATCH_URL, {"query": query, "limit": 1, "fields": FIELDS})
    if matches:
        return matches[0]

    LOGGER.debug("Semantic Scholar exact match empty; broad search for %r", query)
    candidates = fetch(SEARCH_URL, {"query": query, "limit": FALLBACK_LIMIT, "fields": FIELDS})
    return best_by_title(citation, candidates)


def _json_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise SourceLookupError(SEMANTIC_SCHOLAR, f"invalid JSON body: {exc}") from exc


def _parse_search_payload(payload: Any) -> list[CandidateMatch]:
    """Parse ``{"data": [{"title", "authors": [{"name"}], "paperId"}]}`` into candidates."""
    if not isinstance(payload, dict):
        return []
    items = payload.get("data")
    if not isinstance(items, list):
        return []

    candidates: list[CandidateMatch] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = _as_str(item.get("title"))
        if not title:
            continue
        raw_authors = item.get("authors") if isinstance(item.get("authors"), list) else []
        authors = tuple(
            name
            for name in (_as_str(a.get("name")) for a in raw_authors if isinstance(a, dict))
            if name
        )
        candidates.append(
            CandidateMatch(
                title=title,
                authors=authors,
                external_id=_as_str(item.get("paperId")),
                source_kind=SEMANTIC_SCHOLAR,
            )
        )
    return candidates


def _as_str(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None
