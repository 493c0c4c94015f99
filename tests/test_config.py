from unittest.mock import patch

import pytest

from config import MAX_CONCURRENCY, Settings, clamp_min_score, resolve_concurrency


@pytest.mark.parametrize(("raw", "expected"), [(1.5, 1.0), (-0.2, 0.0), (0.7, 0.7), ("abc", 0.5), (None, 0.5)])
def test_clamp_min_score(raw, expected) -> None:
    assert clamp_min_score(raw) == expected


def test_resolve_concurrency() -> None:
    assert resolve_concurrency(100) == MAX_CONCURRENCY
    assert resolve_concurrency(0) == 5
    assert resolve_concurrency("4") == 4


def test_settings_clamp_on_construction() -> None:
    settings = Settings(min_score=3, concurrency=99, lookup_attempts=0)

    assert settings.min_score == 1.0
    assert settings.concurrency == MAX_CONCURRENCY
    assert settings.lookup_attempts == 1


def test_from_env_reads_variables_and_applies_overrides() -> None:
    env = {
        "VERIFY_MIN_SCORE": "0.7",
        "VERIFY_LOOKUP_CONCURRENCY": "3",
        "SEMANTIC_SCHOLAR_TIMEOUT_MS": "2500",
        "LOOKUP_MAX_ATTEMPTS": "4",
        "VERIFY_DEBUG": "true",
        "VERIFY_RUN_TIMEOUT_S": "30",
    }
    with patch.dict("os.environ", env, clear=True):
        settings = Settings.from_env(concurrency=7, arxiv_timeout=None)

    assert settings.min_score == 0.7
    assert settings.concurrency == 7
    assert settings.semantic_scholar_timeout == 2.5
    assert settings.arxiv_timeout == 15.0
    assert settings.lookup_attempts == 4
    assert settings.debug is True
    assert settings.run_timeout == 30.0


def test_from_env_ignores_garbage_numbers() -> None:
    with patch.dict("os.environ", {"VERIFY_LOOKUP_CONCURRENCY": "lots"}, clear=True):
        settings = Settings.from_env()

    assert settings.concurrency == 5
    assert settings.run_timeout is None


def test_unknown_provider_rejected() -> None:
    with pytest.raises(ValueError, match="provider"):
        Settings(extraction_provider="mystery")


def test_backoff_delay_doubles_up_to_ceiling() -> None:
    settings = Settings(backoff_base=0.5, backoff_ceiling=1.5)

    assert [settings.backoff_delay(i) for i in range(4)] == [0.5, 1.0, 1.5, 1.5]
