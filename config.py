"""Run configuration, read from the environment with per-run overrides."""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import Any

LOGGER = logging.getLogger(__name__)

DEFAULT_MIN_SCORE = 0.5
DEFAULT_CONCURRENCY = 5
MAX_CONCURRENCY = 10

DEFAULT_EXTRACTION_BASE_URL = "https://api.deepseek.com/v1"
DEFAULT_EXTRACTION_MODEL = "deepseek-chat"
DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-5"
PROVIDERS: frozenset[str] = frozenset({"openai", "anthropic"})


@dataclass(frozen=True, slots=True)
class Settings:
    """Everything one verification run needs to know. Durations are in seconds."""

    min_score: float = DEFAULT_MIN_SCORE
    concurrency: int = DEFAULT_CONCURRENCY
    semantic_scholar_timeout: float = 15.0
    arxiv_timeout: float = 15.0
    extraction_timeout: float = 20.0
    lookup_attempts: int = 3
    extraction_attempts: int = 2
    backoff_base: float = 0.5
    backoff_ceiling: float = 8.0
    max_chunk_chars: int = 12000
    chunk_delay: float = 1.0
    lookup_delay: float = 0.05
    run_timeout: float | None = None
    debug: bool = False
    extraction_provider: str = "openai"
    extraction_model: str = DEFAULT_EXTRACTION_MODEL
    extraction_base_url: str | None = DEFAULT_EXTRACTION_BASE_URL
    claude_model: str = DEFAULT_CLAUDE_MODEL
    semantic_scholar_api_key: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "min_score", clamp_min_score(self.min_score))
        object.__setattr__(self, "concurrency", resolve_concurrency(self.concurrency))
        object.__setattr__(self, "lookup_attempts", max(1, int(self.lookup_attempts)))
        object.__setattr__(self, "extraction_attempts", max(1, int(self.extraction_attempts)))
        if self.extraction_provider not in PROVIDERS:
            raise ValueError(
                f"Unknown extraction provider {self.extraction_provider!r}; "
                f"expected one of {sorted(PROVIDERS)}"
            )

    @classmethod
    def from_env(cls, **overrides: Any) -> Settings:
        """Build settings from environment variables, then apply non-None overrides."""
        settings = cls(
            min_score=_env_float("VERIFY_MIN_SCORE", DEFAULT_MIN_SCORE),
            concurrency=_env_int("VERIFY_LOOKUP_CONCURRENCY", DEFAULT_CONCURRENCY),
            semantic_scholar_timeout=_env_millis("SEMANTIC_SCHOLAR_TIMEOUT_MS", 15000),
            arxiv_timeout=_env_millis("ARXIV_TIMEOUT_MS", 15000),
            extraction_timeout=_env_millis("EXTRACTION_TIMEOUT_MS", 20000),
            lookup_attempts=_env_int("LOOKUP_MAX_ATTEMPTS", 3),
            extraction_attempts=_env_int("EXTRACTION_MAX_ATTEMPTS", 2),
            backoff_base=_env_millis("RETRY_BACKOFF_BASE_MS", 500),
            backoff_ceiling=_env_millis("RETRY_BACKOFF_CEILING_MS", 8000),
            max_chunk_chars=_env_int("MAX_CHUNK_CHARS", 12000),
            chunk_delay=_env_millis("CHUNK_DELAY_MS", 1000),
            lookup_delay=_env_millis("LOOKUP_DELAY_MS", 50),
            run_timeout=_env_float("VERIFY_RUN_TIMEOUT_S", 0.0) or None,
            debug=os.getenv("VERIFY_DEBUG", "").strip().lower() in {"1", "true", "yes", "on"},
            extraction_provider=os.getenv("EXTRACTION_PROVIDER", "openai").strip().lower(),
            extraction_model=os.getenv("EXTRACTION_MODEL", DEFAULT_EXTRACTION_MODEL),
            extraction_base_url=os.getenv("EXTRACTION_BASE_URL", DEFAULT_EXTRACTION_BASE_URL) or None,
            claude_model=os.getenv("CLAUDE_MODEL", DEFAULT_CLAUDE_MODEL),
            semantic_scholar_api_key=os.getenv("SEMANTIC_SCHOLAR_API_KEY") or None,
        )
        return settings.with_overrides(**overrides)

    def with_overrides(self, **overrides: Any) -> Settings:
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        if not changes:
            return self
        return dataclasses.replace(self, **changes)

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after the given zero-based failed attempt."""
        return min(self.backoff_base * (2 ** attempt), self.backoff_ceiling)


def clamp_min_score(value: Any) -> float:
    """Coerce the acceptance threshold into [0, 1]; garbage falls back to the default."""
    try:
        score = float(value)
    except (TypeError, ValueError):
        return DEFAULT_MIN_SCORE
    if score != score:  # NaN
        return DEFAULT_MIN_SCORE
    return min(max(score, 0.0), 1.0)


def resolve_concurrency(value: Any) -> int:
    """Worker count clamped to [1, MAX_CONCURRENCY]; invalid values use the default."""
    try:
        workers = int(value)
    except (TypeError, ValueError):
        return DEFAULT_CONCURRENCY
    if workers <= 0:
        return DEFAULT_CONCURRENCY
    return min(workers, MAX_CONCURRENCY)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        LOGGER.warning("Ignoring non-numeric %s=%r; using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        LOGGER.warning("Ignoring non-integer %s=%r; using %s", name, raw, default)
        return default


def _env_millis(name: str, default_ms: int) -> float:
    return _env_float(name, float(default_ms)) / 1000.0
