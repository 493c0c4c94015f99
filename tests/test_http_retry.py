from unittest.mock import MagicMock

import pytest
import requests

from errors import SourceLookupError
from http_retry import USER_AGENT, get_with_retry


def _resp(status: int) -> MagicMock:
    mock = MagicMock()
    mock.status_code = status
    return mock


def _get(http_get: MagicMock, sleeps: list[float], attempts: int = 3, ceiling: float = 8.0):
    return get_with_retry(
        "https://example.org/search",
        source="test",
        params={"q": "x"},
        timeout=5.0,
        attempts=attempts,
        backoff_base=0.5,
        backoff_ceiling=ceiling,
        http_get=http_get,
        sleep=sleeps.append,
    )


def test_503_twice_then_200_succeeds_after_two_backoff_waits() -> None:
    ok = _resp(200)
    http_get = MagicMock(side_effect=[_resp(503), _resp(503), ok])
    sleeps: list[float] = []

    assert _get(http_get, sleeps) is ok
    assert http_get.call_count == 3
    assert sleeps == [0.5, 1.0]


def test_404_is_no_match_without_retries() -> None:
    http_get = MagicMock(return_value=_resp(404))
    sleeps: list[float] = []

    assert _get(http_get, sleeps) is None
    assert http_get.call_count == 1
    assert sleeps == []


def test_429_is_retried() -> None:
    ok = _resp(200)
    http_get = MagicMock(side_effect=[_resp(429), ok])
    sleeps: list[float] = []

    assert _get(http_get, sleeps) is ok
    assert sleeps == [0.5]


def test_network_errors_exhaust_budget() -> None:
    http_get = MagicMock(side_effect=requests.ConnectionError("down"))
    sleeps: list[float] = []

    with pytest.raises(SourceLookupError, match="failed after 3 attempts"):
        _get(http_get, sleeps)

    assert http_get.call_count == 3
    assert sleeps == [0.5, 1.0]


def test_backoff_is_capped_by_ceiling() -> None:
    http_get = MagicMock(return_value=_resp(500))
    sleeps: list[float] = []

    with pytest.raises(SourceLookupError):
        _get(http_get, sleeps, attempts=4, ceiling=0.75)

    assert sleeps == [0.5, 0.75, 0.75]


def test_timeout_and_user_agent_are_sent() -> None:
    http_get = MagicMock(return_value=_resp(200))

    _get(http_get, [])

    kwargs = http_get.call_args.kwargs
    assert kwargs["timeout"] == 5.0
    assert kwargs["params"] == {"q": "x"}
    assert kwargs["headers"]["User-Agent"] == USER_AGENT
