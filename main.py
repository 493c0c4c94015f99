"""CLI entrypoint: verify the citations of one extracted document."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from pathlib import Path

from dotenv import load_dotenv

import csv_sink
from config import Settings
from errors import PersistenceError
from models import ProgressEvent
from pipeline import run_background_job, verify_document
from progress import ProgressReporter


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Verify that a document's citations exist in Semantic Scholar or arXiv")
    parser.add_argument("input", help="Path to the document's extracted text, or '-' for stdin")
    parser.add_argument("--min-score", type=float, default=None, help="Acceptance threshold in [0, 1] (default 0.5)")
    parser.add_argument("--concurrency", type=int, default=None, help="Lookup worker count (capped at 10)")
    parser.add_argument(
        "--timeout-ms",
        type=int,
        default=None,
        help="Per-source lookup timeout in milliseconds (Semantic Scholar and arXiv)",
    )
    parser.add_argument("--retries", type=int, default=None, help="Attempts per lookup call")
    parser.add_argument("--run-timeout", type=float, default=None, help="Wall-clock budget for verification, in seconds")
    parser.add_argument("--provider", choices=["openai", "anthropic"], default=None, help="Extraction model provider")
    parser.add_argument("--debug", action="store_true", help="Record per-citation lookup errors and log at DEBUG")
    parser.add_argument(
        "--background",
        action="store_true",
        help="Run as a job: results are always saved, and an aborted run is recorded as failed with partial results",
    )
    parser.add_argument("--no-save", action="store_true", help="Do not write results to the CSV files")
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    timeout = args.timeout_ms / 1000.0 if args.timeout_ms is not None else None
    return Settings.from_env(
        min_score=args.min_score,
        concurrency=args.concurrency,
        semantic_scholar_timeout=timeout,
        arxiv_timeout=timeout,
        lookup_attempts=args.retries,
        run_timeout=args.run_timeout,
        extraction_provider=args.provider,
        debug=True if args.debug else None,
    )


def read_input(source: str) -> tuple[str, str]:
    """Return (text, fallback title) for a file path or '-'."""
    if source == "-":
        return sys.stdin.read(), ""
    path = Path(source)
    return path.read_text(encoding="utf-8", errors="replace"), path.name


def emit_json_line(event: ProgressEvent) -> None:
    """Transport: one JSON record per line on stdout."""
    sys.stdout.write(json.dumps(event.to_dict(), ensure_ascii=False) + "\n")
    sys.stdout.flush()


def run(args: argparse.Namespace) -> int:
    settings = build_settings(args)
    try:
        text, fallback_title = read_input(args.input)
    except OSError as exc:
        emit_json_line(ProgressEvent(kind="error", message=f"Could not read {args.input}: {exc}"))
        return 1

    reporter = ProgressReporter(emit_json_line)
    run_id = uuid.uuid4().hex

    if args.background:
        report = run_background_job(run_id, text, settings, reporter, fallback_title=fallback_title)
        return 0 if report is not None else 1

    report = verify_document(text, settings, reporter, fallback_title=fallback_title)
    if report is None:
        return 1

    if not args.no_save:
        try:
            csv_sink.save_report(run_id, report)
        except PersistenceError as exc:
            logging.error("Results computed but not saved: %s", exc)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute one verification run."""
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
