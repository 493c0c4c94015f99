import json
import threading
import time
from unittest.mock import MagicMock

import pytest

from citation_extractor import build_extraction_prompt, dedupe_citations, extract_citations, validate_citations
from config import Settings
from errors import ExtractionError, RunAborted
from models import Citation

_SETTINGS = Settings(chunk_delay=1.0, backoff_base=0.5, extraction_attempts=2)


def _payload(paper_title: str, citations: list[dict]) -> str:
    return json.dumps({"paperTitle": paper_title, "citations": citations})


def test_dedupe_keeps_first_occurrence_by_normalized_title() -> None:
    citations = [Citation("A Study"), Citation("a study"), Citation("B Study")]

    assert dedupe_citations(citations) == [Citation("A Study"), Citation("B Study")]


def test_validate_drops_untitled_entries_and_defaults_authors() -> None:
    raw = [
        {"title": "  Kept Title  ", "authors": ["Ann Lee", "", 7]},
        {"title": "No Authors"},
        {"title": "   "},
        {"authors": ["Orphan"]},
        "not a dict",
        {"title": "Bad Authors", "authors": "Ann Lee"},
    ]

    assert validate_citations(raw) == [
        Citation("Kept Title", ("Ann Lee",)),
        Citation("No Authors", ()),
        Citation("Bad Authors", ()),
    ]
    assert validate_citations(None) == []


def test_prompt_demands_bare_json() -> None:
    prompt = build_extraction_prompt("[1] Some reference")

    assert prompt.endswith("[1] Some reference")
    assert "paperTitle" in prompt
    assert "markdown" in prompt
    assert "trailing commas" in prompt


def test_chunks_processed_in_order_with_delay_and_first_title_kept() -> None:
    replies = [
        _payload("Main Paper", [{"title": "A Study", "authors": ["X"]}, {"title": "B Study", "authors": []}]),
        "```json\n" + _payload("Ignored", [{"title": "b study", "authors": []}, {"title": "C Study"}]) + "\n```",
    ]
    complete = MagicMock(side_effect=replies)
    sleeps: list[float] = []

    outcome = extract_citations(["chunk one", "chunk two"], _SETTINGS, complete=complete, sleep=sleeps.append)

    assert outcome.paper_title == "Main Paper"
    assert [c.title for c in outcome.citations] == ["A Study", "B Study", "C Study"]
    assert sleeps == [1.0]
    prompts = [call.args[0] for call in complete.call_args_list]
    assert prompts[0].endswith("chunk one")
    assert prompts[1].endswith("chunk two")


def test_retryable_failure_is_retried_after_backoff() -> None:
    complete = MagicMock(
        side_effect=[
            ExtractionError("HTTP 503", retryable=True),
            _payload("T", [{"title": "A Study", "authors": []}]),
        ]
    )
    sleeps: list[float] = []

    outcome = extract_citations(["chunk"], _SETTINGS, complete=complete, sleep=sleeps.append)

    assert [c.title for c in outcome.citations] == ["A Study"]
    assert complete.call_count == 2
    assert sleeps == [0.5]


def test_non_retryable_failure_propagates_immediately() -> None:
    complete = MagicMock(side_effect=ExtractionError("HTTP 401", retryable=False))

    with pytest.raises(ExtractionError, match="401"):
        extract_citations(["chunk"], _SETTINGS, complete=complete, sleep=lambda _: None)

    assert complete.call_count == 1


def test_unparseable_output_fails_after_attempt_budget() -> None:
    complete = MagicMock(return_value="no json at all")

    with pytest.raises(ExtractionError, match="after 2 attempts"):
        extract_citations(["chunk"], _SETTINGS, complete=complete, sleep=lambda _: None)

    assert complete.call_count == 2


def test_cancel_before_first_chunk_skips_model_calls() -> None:
    complete = MagicMock(return_value=_payload("T", []))
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(RunAborted, match="cancelled"):
        extract_citations(["chunk"], _SETTINGS, complete=complete, sleep=lambda _: None, cancel_event=cancel)

    complete.assert_not_called()


def test_cancel_between_chunks_stops_before_next_call() -> None:
    cancel = threading.Event()

    def complete(prompt, settings):
        cancel.set()
        return _payload("T", [{"title": "A Study"}])

    sleeps: list[float] = []
    with pytest.raises(RunAborted):
        extract_citations(["one", "two"], _SETTINGS, complete=complete, sleep=sleeps.append, cancel_event=cancel)

    assert sleeps == []


def test_expired_deadline_stops_extraction() -> None:
    complete = MagicMock(return_value=_payload("T", []))

    with pytest.raises(RunAborted, match="time budget"):
        extract_citations(["chunk"], _SETTINGS, complete=complete, sleep=lambda _: None, deadline=time.monotonic() - 1)

    complete.assert_not_called()


def test_cancel_after_failed_attempt_skips_backoff_and_retry() -> None:
    cancel = threading.Event()

    def complete(prompt, settings):
        cancel.set()
        raise ExtractionError("HTTP 503", retryable=True)

    sleeps: list[float] = []
    with pytest.raises(RunAborted, match="cancelled"):
        extract_citations(["chunk"], _SETTINGS, complete=complete, sleep=sleeps.append, cancel_event=cancel)

    assert sleeps == []
