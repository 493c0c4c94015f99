"""Error hierarchy for the citation verification pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from models import VerificationResult


class CitationVerifierError(RuntimeError):
    """Base class for every failure the pipeline reports to its caller."""


class InputError(CitationVerifierError):
    """The document has no usable reference section or no citations."""


class ExtractionError(CitationVerifierError):
    """The extraction model was unreachable or its output could not be recovered."""

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class SourceLookupError(CitationVerifierError):
    """One bibliographic source exhausted its retry budget."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class PersistenceError(CitationVerifierError):
    """Writing results to the storage collaborator failed."""


class RunAborted(CitationVerifierError):
    """Verification was cancelled or ran past its wall-clock budget.

    ``partial_results`` holds whatever finished before the abort, indexed like the
    input citations; unfinished slots are ``None``.
    """

    def __init__(
        self,
        message: str,
        partial_results: list[VerificationResult | None],
        paper_title: str = "",
    ) -> None:
        super().__init__(message)
        self.partial_results = partial_results
        self.paper_title = paper_title
