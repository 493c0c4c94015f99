"""Outbound event stream for a verification run."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Iterator

from models import AggregateReport, ProgressEvent

LOGGER = logging.getLogger(__name__)

EventSink = Callable[[ProgressEvent], None]


class ProgressReporter:
    """Emits zero or more ``progress`` events followed by exactly one terminal event.

    The sink decides the transport; this class only guarantees the ordering.
    """

    def __init__(self, sink: EventSink) -> None:
        self._sink = sink
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def progress(self, message: str) -> None:
        self._emit(ProgressEvent(kind="progress", message=message))

    def result(self, report: AggregateReport) -> None:
        self._emit(
            ProgressEvent(
                kind="result",
                message=f"{report.verified_count}/{report.total_count} citations verified",
                report=report,
            )
        )

    def error(self, message: str) -> None:
        self._emit(ProgressEvent(kind="error", message=message))

    def _emit(self, event: ProgressEvent) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError(f"Cannot emit {event.kind!r} event after the run has ended")
            if event.terminal:
                self._closed = True
            self._sink(event)
        LOGGER.debug("Emitted %s event: %s", event.kind, event.message)


class QueueSink:
    """In-process channel: producers call the sink, a consumer iterates ``events()``."""

    def __init__(self) -> None:
        self._queue: queue.Queue[ProgressEvent] = queue.Queue()

    def __call__(self, event: ProgressEvent) -> None:
        self._queue.put(event)

    def events(self, timeout: float | None = None) -> Iterator[ProgressEvent]:
        """Yield events in order, stopping after the terminal one."""
        while True:
            event = self._queue.get(timeout=timeout)
            yield event
            if event.terminal:
                return


def collect_events() -> tuple[list[ProgressEvent], EventSink]:
    """Return a list and a sink that appends to it."""
    events: list[ProgressEvent] = []
    return events, events.append
