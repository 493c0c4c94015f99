"""End-to-end verification run: locate, chunk, extract, verify, report."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

import csv_sink
from citation_extractor import Completion, extract_citations
from config import Settings
from engine import VerificationEngine
from errors import CitationVerifierError, InputError, PersistenceError, RunAborted
from llm_client import complete_prompt
from models import AggregateReport
from progress import ProgressReporter
from reference_locator import locate_references_section
from resolver import BibliographicResolver
from text_chunker import chunk_references

LOGGER = logging.getLogger(__name__)


def verify_document(
    text: str,
    settings: Settings,
    reporter: ProgressReporter,
    *,
    fallback_title: str = "",
    complete: Completion = complete_prompt,
    resolver: BibliographicResolver | None = None,
    cancel_event: threading.Event | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> AggregateReport | None:
    """Run the pipeline synchronously and report through ``reporter``.

    Returns the report after emitting the ``result`` event, or None after
    emitting the ``error`` event. An aborted run yields no partial report.
    """
    try:
        report = _run(
            text,
            settings,
            reporter,
            fallback_title=fallback_title,
            complete=complete,
            resolver=resolver,
            cancel_event=cancel_event,
            sleep=sleep,
        )
    except CitationVerifierError as exc:
        LOGGER.error("Verification run failed: %s", exc)
        reporter.error(str(exc))
        return None
    except Exception as exc:  # every run must end with exactly one terminal event
        LOGGER.exception("Unexpected failure during verification: %s", exc)
        reporter.error(f"Failed to verify citations: {exc}")
        return None

    reporter.result(report)
    return report


def run_background_job(
    run_id: str,
    text: str,
    settings: Settings,
    reporter: ProgressReporter,
    *,
    fallback_title: str = "",
    complete: Completion = complete_prompt,
    resolver: BibliographicResolver | None = None,
    cancel_event: threading.Event | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> AggregateReport | None:
    """Run the pipeline as a job whose outcome is recorded through ``csv_sink``.

    On abort the citations verified so far are flushed and the run is recorded
    as failed. A storage failure is reported but the computed report stands.
    """
    try:
        report = _run(
            text,
            settings,
            reporter,
            fallback_title=fallback_title,
            complete=complete,
            resolver=resolver,
            cancel_event=cancel_event,
            sleep=sleep,
        )
    except RunAborted as exc:
        LOGGER.error("Background run_id=%s aborted: %s", run_id, exc)
        _persist(reporter, lambda: csv_sink.save_partial(run_id, exc.paper_title, exc.partial_results, str(exc)))
        reporter.error(str(exc))
        return None
    except CitationVerifierError as exc:
        LOGGER.error("Background run_id=%s failed: %s", run_id, exc)
        _persist(reporter, lambda: _record_failure(run_id, fallback_title, str(exc)))
        reporter.error(str(exc))
        return None
    except Exception as exc:  # every run must end with exactly one terminal event
        LOGGER.exception("Unexpected failure in background run_id=%s: %s", run_id, exc)
        message = f"Failed to verify citations: {exc}"
        _persist(reporter, lambda: _record_failure(run_id, fallback_title, message))
        reporter.error(message)
        return None

    _persist(reporter, lambda: csv_sink.save_report(run_id, report))
    reporter.result(report)
    return report


def _run(
    text: str,
    settings: Settings,
    reporter: ProgressReporter,
    *,
    fallback_title: str,
    complete: Completion,
    resolver: BibliographicResolver | None,
    cancel_event: threading.Event | None,
    sleep: Callable[[float], None],
) -> AggregateReport:
    deadline = time.monotonic() + settings.run_timeout if settings.run_timeout else None
    reporter.progress("Locating references section")
    section = locate_references_section(text or "")
    if not section.strip():
        raise InputError("Could not find references section in the document")

    chunks = chunk_references(section, settings.max_chunk_chars)
    LOGGER.info("References section: chars=%s chunks=%s", len(section), len(chunks))

    try:
        outcome = extract_citations(
            chunks,
            settings,
            complete=complete,
            sleep=sleep,
            on_chunk=lambda n, total: reporter.progress(f"Extracting citations (chunk {n}/{total})"),
            cancel_event=cancel_event,
            deadline=deadline,
        )
    except RunAborted as exc:
        raise RunAborted(str(exc), exc.partial_results, paper_title=fallback_title) from exc
    if not outcome.citations:
        raise InputError("Could not extract citations from the document")
    paper_title = outcome.paper_title or fallback_title

    reporter.progress(f"Verifying {len(outcome.citations)} citations")
    resolver = resolver or BibliographicResolver(settings)
    engine = VerificationEngine(resolver.resolve, settings.concurrency)
    try:
        results = engine.verify_all(outcome.citations, cancel_event=cancel_event, deadline=deadline)
    except RunAborted as exc:
        raise RunAborted(str(exc), exc.partial_results, paper_title=paper_title) from exc

    report = AggregateReport.from_results(paper_title, results)
    LOGGER.info(
        "Verification complete: total=%s verified=%s unverified=%s",
        report.total_count,
        report.verified_count,
        report.unverified_count,
    )
    return report


def _persist(reporter: ProgressReporter, write: Callable[[], None]) -> None:
    try:
        write()
    except PersistenceError as exc:
        LOGGER.error("Saving results failed: %s", exc)
        reporter.progress(f"Saving results failed: {exc}")


def _record_failure(run_id: str, paper_title: str, message: str) -> None:
    csv_sink.write_run_status(
        run_id,
        paper_title=paper_title,
        status=csv_sink.STATUS_FAILED,
        total=0,
        verified=0,
        unverified=0,
        error_message=message,
    )
