"""CSV storage for verification runs and their per-citation verdicts."""

from __future__ import annotations

import csv
import logging
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Iterable

from errors import PersistenceError
from models import AggregateReport, VerificationResult

CITATIONS_CSV_PATH = os.getenv("CITATIONS_CSV_PATH", "citations.csv")
PAPERS_CSV_PATH = os.getenv("PAPERS_CSV_PATH", "papers.csv")

STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

LOGGER = logging.getLogger(__name__)

CITATION_COLUMNS = [
    "run_id",
    "position",              # index of the citation in the extracted list
    "citation_text",         # "<authors>. <title>"
    "authors",
    "title",
    "verification_status",   # verified | unverified
    "verification_details",  # e.g. "Verified (92%)"
    "source_url",
    "source",                # semantic_scholar | arxiv | empty
    "matched_title",
    "score",
    "created_at",
]

PAPER_COLUMNS = [
    "run_id",
    "paper_title",
    "status",                # completed | failed
    "total_citations",
    "verified_citations",
    "unverified_citations",
    "error_message",
    "created_at",
]


def save_report(run_id: str, report: AggregateReport) -> None:
    """Persist a finished run: one row per citation plus a completed run row."""
    write_citation_rows(run_id, enumerate(report.citations))
    write_run_status(
        run_id,
        paper_title=report.paper_title,
        status=STATUS_COMPLETED,
        total=report.total_count,
        verified=report.verified_count,
        unverified=report.unverified_count,
    )


def save_partial(
    run_id: str,
    paper_title: str,
    partial_results: list[VerificationResult | None],
    error_message: str,
) -> None:
    """Flush whatever an aborted background run computed and mark it failed."""
    finished = [(index, result) for index, result in enumerate(partial_results) if result is not None]
    write_citation_rows(run_id, finished)
    verified = sum(1 for _, result in finished if result.verified)
    write_run_status(
        run_id,
        paper_title=paper_title,
        status=STATUS_FAILED,
        total=len(partial_results),
        verified=verified,
        unverified=len(finished) - verified,
        error_message=error_message,
    )


def write_citation_rows(run_id: str, results: Iterable[tuple[int, VerificationResult]]) -> int:
    """Append one row per (position, result) pair; returns the number written."""
    created_at = datetime.now(UTC).isoformat()
    rows = [_citation_row(run_id, position, result, created_at) for position, result in results]
    _append_rows(Path(CITATIONS_CSV_PATH), CITATION_COLUMNS, rows)
    LOGGER.info("Wrote %s citation rows for run_id=%s to %s", len(rows), run_id, CITATIONS_CSV_PATH)
    return len(rows)


def write_run_status(
    run_id: str,
    *,
    paper_title: str,
    status: str,
    total: int,
    verified: int,
    unverified: int,
    error_message: str = "",
) -> None:
    row = {
        "run_id": run_id,
        "paper_title": _as_text(paper_title),
        "status": status,
        "total_citations": total,
        "verified_citations": verified,
        "unverified_citations": unverified,
        "error_message": _as_text(error_message),
        "created_at": datetime.now(UTC).isoformat(),
    }
    _append_rows(Path(PAPERS_CSV_PATH), PAPER_COLUMNS, [row])
    LOGGER.info("Recorded run_id=%s status=%s in %s", run_id, status, PAPERS_CSV_PATH)


def read_rows(path: str) -> list[dict[str, str]]:
    """Read back every row of a CSV written by this module."""
    csv_path = Path(path)
    if not csv_path.exists():
        return []
    with csv_path.open(newline="", encoding="utf-8") as fh:
        return list(csv.DictReader(fh))


def _citation_row(run_id: str, position: int, result: VerificationResult, created_at: str) -> dict[str, Any]:
    label = "Verified" if result.verified else "Unverified"
    return {
        "run_id": run_id,
        "position": position,
        "citation_text": _as_text(result.citation.as_text(), max_len=1000),
        "authors": ", ".join(result.citation.authors),
        "title": result.citation.title,
        "verification_status": result.status,
        "verification_details": f"{label} ({round(result.score * 100)}%)",
        "source_url": result.source_url or "",
        "source": result.source_kind or "",
        "matched_title": _as_text(result.matched_title),
        "score": f"{result.score:.4f}",
        "created_at": created_at,
    }


def _append_rows(path: Path, columns: list[str], rows: list[dict[str, Any]]) -> None:
    if not rows:
        return
    try:
        write_header = not path.exists() or path.stat().st_size == 0
        with path.open("a", newline="", encoding="utf-8") as fh:
            writer = csv.DictWriter(fh, fieldnames=columns)
            if write_header:
                writer.writeheader()
            writer.writerows(rows)
    except OSError as exc:
        raise PersistenceError(f"Could not write {path}: {exc}") from exc


def _as_text(value: Any, max_len: int = 500) -> str:
    """Convert value to a stripped string, truncated to max_len chars."""
    s = value.strip() if isinstance(value, str) else ""
    if len(s) > max_len:
        return s[: max_len - 1] + "…"
    return s
