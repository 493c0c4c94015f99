"""Turn reference-list chunks into structured citations with an extraction model."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from config import Settings
from engine import abort_reason
from errors import ExtractionError, RunAborted
from json_repair import parse_model_json
from llm_client import complete_prompt
from models import Citation
from similarity import normalize

LOGGER = logging.getLogger(__name__)

Completion = Callable[[str, Settings], str]

EXTRACTION_PROMPT = """Extract every citation from the references section below.
Return strict JSON only: a single object with exactly these keys:
{
  "paperTitle": "<title of the citing paper if it is visible, else empty string>",
  "citations": [
    {"title": "<cited work title>", "authors": ["<author name>", "..."]}
  ]
}
Rules:
- Do not wrap the JSON in markdown or code fences.
- Do not use trailing commas.
- No extra keys and no prose before or after the object.
- Use an empty authors array when no authors are listed.

References section:
"""


@dataclass(frozen=True, slots=True)
class ExtractionOutcome:
    paper_title: str
    citations: list[Citation]


def build_extraction_prompt(chunk: str) -> str:
    return EXTRACTION_PROMPT + chunk


def extract_citations(
    chunks: list[str],
    settings: Settings,
    complete: Completion = complete_prompt,
    sleep: Callable[[float], None] = time.sleep,
    on_chunk: Callable[[int, int], None] | None = None,
    cancel_event: threading.Event | None = None,
    deadline: float | None = None,
) -> ExtractionOutcome:
    """Extract citations from each chunk in order, then dedupe by normalized title.

    Chunks are sent one at a time with ``settings.chunk_delay`` between calls.
    Only the first chunk's paper title is kept. RunAborted is raised before the
    next model call once ``cancel_event`` is set or ``deadline`` (monotonic) passes.
    """
    paper_title = ""
    collected: list[Citation] = []

    for index, chunk in enumerate(chunks):
        if index > 0 and settings.chunk_delay > 0:
            _check_abort(cancel_event, deadline)
            sleep(settings.chunk_delay)
        _check_abort(cancel_event, deadline)
        if on_chunk:
            on_chunk(index + 1, len(chunks))

        payload = _extract_chunk(chunk, settings, complete, sleep, cancel_event, deadline)
        if index == 0:
            raw_title = payload.get("paperTitle")
            paper_title = raw_title.strip() if isinstance(raw_title, str) else ""
        citations = validate_citations(payload.get("citations"))
        LOGGER.info("Extraction chunk %s/%s: citations=%s", index + 1, len(chunks), len(citations))
        collected.extend(citations)

    unique = dedupe_citations(collected)
    LOGGER.info(
        "Extraction complete: chunks=%s raw=%s unique=%s",
        len(chunks),
        len(collected),
        len(unique),
    )
    return ExtractionOutcome(paper_title=paper_title, citations=unique)


def _extract_chunk(
    chunk: str,
    settings: Settings,
    complete: Completion,
    sleep: Callable[[float], None],
    cancel_event: threading.Event | None = None,
    deadline: float | None = None,
) -> dict[str, Any]:
    prompt = build_extraction_prompt(chunk)
    last_error: ExtractionError | None = None

    for attempt in range(settings.extraction_attempts):
        try:
            content = complete(prompt, settings)
            return parse_model_json(content, accept=_looks_like_extraction)
        except ExtractionError as exc:
            if not exc.retryable:
                raise
            last_error = exc
            LOGGER.warning(
                "Extraction attempt %s/%s failed: %s",
                attempt + 1,
                settings.extraction_attempts,
                exc,
            )
            if attempt < settings.extraction_attempts - 1:
                _check_abort(cancel_event, deadline)
                sleep(settings.backoff_delay(attempt))
                _check_abort(cancel_event, deadline)

    raise ExtractionError(
        f"Citation extraction failed after {settings.extraction_attempts} attempts: {last_error}"
    )


def _check_abort(cancel_event: threading.Event | None, deadline: float | None) -> None:
    reason = abort_reason(cancel_event, deadline)
    if reason is not None:
        raise RunAborted(f"{reason} during citation extraction", [])


def _looks_like_extraction(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("citations", []), list)


def validate_citations(raw: Any) -> list[Citation]:
    """Keep entries with a non-empty title; authors default to an empty tuple."""
    if not isinstance(raw, list):
        return []

    citations: list[Citation] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        title = item.get("title")
        if not isinstance(title, str) or not title.strip():
            continue
        authors_raw = item.get("authors")
        authors = (
            tuple(a.strip() for a in authors_raw if isinstance(a, str) and a.strip())
            if isinstance(authors_raw, list)
            else ()
        )
        citations.append(Citation(title=title.strip(), authors=authors))
    return citations


def dedupe_citations(citations: list[Citation]) -> list[Citation]:
    """Drop later citations whose normalized title was already seen."""
    seen: set[str] = set()
    unique: list[Citation] = []
    for citation in citations:
        key = normalize(citation.title)
        if key in seen:
            continue
        seen.add(key)
        unique.append(citation)
    return unique
