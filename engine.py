"""Bounded worker pool that verifies every citation of a run."""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import replace
from typing import Callable

from config import resolve_concurrency
from errors import RunAborted
from models import Citation, VerificationResult, unverified_result
from similarity import normalize

LOGGER = logging.getLogger(__name__)

Resolve = Callable[[Citation], VerificationResult]


def cache_key(citation: Citation) -> str:
    return f"{normalize(citation.title)}|{normalize(', '.join(citation.authors))}"


def abort_reason(cancel_event: threading.Event | None, deadline: float | None) -> str | None:
    """Why the run must stop scheduling work, or None while it may continue.

    ``deadline`` is a ``time.monotonic()`` timestamp.
    """
    if cancel_event is not None and cancel_event.is_set():
        return "Verification cancelled"
    if deadline is not None and time.monotonic() >= deadline:
        return "Verification exceeded its time budget"
    return None


class VerificationEngine:
    """Runs ``resolve`` over all citations with W worker threads.

    Workers pull indices from a shared queue and write into a pre-sized list at
    the citation's own index, so output order always matches input order. A
    per-run cache keyed by normalized title and authors makes repeated
    citations cost one lookup.
    """

    def __init__(self, resolve: Resolve, concurrency: int) -> None:
        self._resolve = resolve
        self.concurrency = resolve_concurrency(concurrency)
        self._cache: dict[str, VerificationResult] = {}

    def verify_all(
        self,
        citations: list[Citation],
        cancel_event: threading.Event | None = None,
        deadline: float | None = None,
        on_result: Callable[[int, VerificationResult], None] | None = None,
    ) -> list[VerificationResult]:
        """Verify citations and return results in input order.

        ``deadline`` is a ``time.monotonic()`` timestamp. When it passes, or when
        ``cancel_event`` is set, no further citations are started and RunAborted
        is raised once in-flight lookups finish.
        """
        results: list[VerificationResult | None] = [None] * len(citations)
        if not citations:
            return []

        work: queue.Queue[int] = queue.Queue()
        for index in range(len(citations)):
            work.put(index)

        def worker() -> None:
            while abort_reason(cancel_event, deadline) is None:
                try:
                    index = work.get_nowait()
                except queue.Empty:
                    return
                result = self._verify_one(citations[index])
                results[index] = result
                if on_result:
                    on_result(index, result)

        workers = [
            threading.Thread(target=worker, name=f"verify-worker-{n}", daemon=True)
            for n in range(min(self.concurrency, len(citations)))
        ]
        LOGGER.info("Verifying %s citations with %s workers", len(citations), len(workers))
        for thread in workers:
            thread.start()
        # In-flight lookups end on their own request timeouts.
        for thread in workers:
            thread.join()

        done = sum(1 for result in results if result is not None)
        if done < len(citations):
            reason = abort_reason(cancel_event, deadline) or "Verification stopped early"
            LOGGER.warning("%s after %s/%s citations", reason, done, len(citations))
            raise RunAborted(f"{reason} ({done}/{len(citations)} citations verified)", results)

        return [result for result in results if result is not None]

    def _verify_one(self, citation: Citation) -> VerificationResult:
        key = cache_key(citation)
        cached = self._cache.get(key)
        if cached is not None:
            LOGGER.debug("Cache hit for %r", citation.title)
            return cached if cached.citation == citation else _rebind(cached, citation)

        try:
            result = self._resolve(citation)
        except Exception as exc:  # one citation never aborts the run
            LOGGER.exception("Verification failed for %r: %s", citation.title, exc)
            return unverified_result(citation)

        self._cache[key] = result
        return result


def _rebind(result: VerificationResult, citation: Citation) -> VerificationResult:
    """Reuse a cached verdict for a citation that differs only in formatting."""
    return replace(result, citation=citation)
