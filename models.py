"""Shared typed models for the citation verification pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

VERIFIED = "verified"
UNVERIFIED = "unverified"

SEMANTIC_SCHOLAR = "semantic_scholar"
ARXIV = "arxiv"

SEMANTIC_SCHOLAR_PAPER_URL = "https://www.semanticscholar.org/paper/"
ARXIV_ABS_URL = "https://arxiv.org/abs/"

EventKind = Literal["progress", "result", "error"]


@dataclass(frozen=True, slots=True)
class Citation:
    """One reference entry extracted from the document's reference list."""

    title: str
    authors: tuple[str, ...] = ()

    def as_text(self) -> str:
        if not self.authors:
            return self.title
        return f"{', '.join(self.authors)}. {self.title}"


@dataclass(frozen=True, slots=True)
class CandidateMatch:
    """A paper returned by one external lookup service."""

    title: str
    authors: tuple[str, ...]
    external_id: str | None
    source_kind: str

    @property
    def url(self) -> str | None:
        if not self.external_id:
            return None
        if self.source_kind == SEMANTIC_SCHOLAR:
            return f"{SEMANTIC_SCHOLAR_PAPER_URL}{self.external_id}"
        if self.source_kind == ARXIV:
            return f"{ARXIV_ABS_URL}{self.external_id}"
        return None


@dataclass(frozen=True, slots=True)
class VerificationResult:
    """Verdict for a single citation."""

    citation: Citation
    score: float
    status: str
    source_url: str | None = None
    source_kind: str | None = None
    matched_title: str | None = None
    semantic_scholar_score: float = 0.0
    arxiv_score: float = 0.0
    lookup_errors: tuple[str, ...] = ()

    @property
    def verified(self) -> bool:
        return self.status == VERIFIED

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "title": self.citation.title,
            "authors": list(self.citation.authors),
            "score": round(self.score, 4),
            "status": self.status,
            "source_url": self.source_url,
            "source": self.source_kind,
            "matched_title": self.matched_title,
            "semantic_scholar_score": round(self.semantic_scholar_score, 4),
            "arxiv_score": round(self.arxiv_score, 4),
        }
        if self.lookup_errors:
            data["lookup_errors"] = list(self.lookup_errors)
        return data


def unverified_result(citation: Citation, lookup_errors: tuple[str, ...] = ()) -> VerificationResult:
    """Result used when a citation could not be resolved at all."""
    return VerificationResult(citation=citation, score=0.0, status=UNVERIFIED, lookup_errors=lookup_errors)


@dataclass(frozen=True, slots=True)
class AggregateReport:
    """Final output of one verification run."""

    paper_title: str
    citations: tuple[VerificationResult, ...]
    total_count: int
    verified_count: int
    unverified_count: int

    @classmethod
    def from_results(cls, paper_title: str, results: list[VerificationResult]) -> AggregateReport:
        verified = sum(1 for result in results if result.verified)
        return cls(
            paper_title=paper_title,
            citations=tuple(results),
            total_count=len(results),
            verified_count=verified,
            unverified_count=len(results) - verified,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "paper_title": self.paper_title,
            "total_count": self.total_count,
            "verified_count": self.verified_count,
            "unverified_count": self.unverified_count,
            "citations": [result.to_dict() for result in self.citations],
        }


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """One record of the run's outbound event stream."""

    kind: EventKind
    message: str = ""
    report: AggregateReport | None = field(default=None)

    @property
    def terminal(self) -> bool:
        return self.kind != "progress"

    def to_dict(self) -> dict[str, Any]:
        if self.kind == "result" and self.report is not None:
            return {"type": "result", "data": self.report.to_dict()}
        if self.kind == "error":
            return {"type": "error", "error": self.message}
        return {"type": "progress", "stage": self.message}
