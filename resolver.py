"""Resolve one citation against Semantic Scholar and arXiv and score the result."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

import arxiv_client
import semantic_scholar
from config import Settings
from errors import SourceLookupError
from models import ARXIV, SEMANTIC_SCHOLAR, UNVERIFIED, VERIFIED, CandidateMatch, Citation, VerificationResult
from similarity import match_score

LOGGER = logging.getLogger(__name__)

SourceLookup = Callable[[Citation, Settings], "CandidateMatch | None"]


class BibliographicResolver:
    """Queries both sources concurrently for a citation; ``resolve`` never raises."""

    def __init__(
        self,
        settings: Settings,
        source_a: SourceLookup | None = None,
        source_b: SourceLookup | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.source_a = source_a or semantic_scholar.lookup
        self.source_b = source_b or arxiv_client.lookup
        self._sleep = sleep

    def resolve(self, citation: Citation) -> VerificationResult:
        if self.settings.lookup_delay > 0:
            self._sleep(self.settings.lookup_delay)

        with ThreadPoolExecutor(max_workers=2) as executor:
            future_a = executor.submit(self._query, SEMANTIC_SCHOLAR, self.source_a, citation)
            future_b = executor.submit(self._query, ARXIV, self.source_b, citation)
            candidate_a, error_a = future_a.result()
            candidate_b, error_b = future_b.result()

        score_a = match_score(citation, candidate_a)
        score_b = match_score(citation, candidate_b)
        score = max(score_a, score_b)
        status = VERIFIED if score >= self.settings.min_score else UNVERIFIED

        # Semantic Scholar wins ties.
        winner = candidate_a if score_a >= score_b else candidate_b
        errors = tuple(error for error in (error_a, error_b) if error) if self.settings.debug else ()

        return VerificationResult(
            citation=citation,
            score=score,
            status=status,
            source_url=winner.url if status == VERIFIED and winner else None,
            source_kind=winner.source_kind if winner else None,
            matched_title=winner.title if winner else None,
            semantic_scholar_score=score_a,
            arxiv_score=score_b,
            lookup_errors=errors,
        )

    def _query(
        self,
        source: str,
        lookup: SourceLookup,
        citation: Citation,
    ) -> tuple[CandidateMatch | None, str | None]:
        try:
            return lookup(citation, self.settings), None
        except SourceLookupError as exc:
            LOGGER.warning("Lookup gave up for %r: %s", citation.title, exc)
            return None, str(exc)
        except Exception as exc:  # broad so one bad source only costs its own match
            LOGGER.warning("Unexpected %s lookup failure for %r: %s", source, citation.title, exc)
            LOGGER.debug("Lookup traceback", exc_info=True)
            return None, f"{source}: {exc}"
