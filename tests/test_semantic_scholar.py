from unittest.mock import MagicMock

from config import Settings
from models import SEMANTIC_SCHOLAR, Citation
from semantic_scholar import MATCH_URL, SEARCH_URL, _parse_search_payload, lookup

_SETTINGS = Settings(backoff_base=0.0)
_CITATION = Citation("Attention Is All You Need", ("Ashish Vaswani",))


def _json_resp(payload: object, status: int = 200) -> MagicMock:
    mock = MagicMock()
    mock.status_code = status
    mock.json.return_value = payload
    return mock


def test_exact_match_endpoint_result_is_used() -> None:
    payload = {
        "data": [
            {"paperId": "204e3073", "title": "Attention is All you Need", "authors": [{"name": "Ashish Vaswani"}]}
        ]
    }
    http_get = MagicMock(return_value=_json_resp(payload))

    match = lookup(_CITATION, _SETTINGS, http_get=http_get)

    assert match is not None
    assert match.external_id == "204e3073"
    assert match.authors == ("Ashish Vaswani",)
    assert match.source_kind == SEMANTIC_SCHOLAR
    assert match.url == "https://www.semanticscholar.org/paper/204e3073"
    assert http_get.call_count == 1
    assert http_get.call_args.args[0] == MATCH_URL
    assert http_get.call_args.kwargs["params"]["query"] == "Attention Is All You Need"


def test_falls_back_to_top3_search_ranked_by_title() -> None:
    search_payload = {
        "data": [
            {"paperId": "p1", "title": "Attention in vision", "authors": []},
            {"paperId": "p2", "title": "Attention is all you need", "authors": [{"name": "A. Vaswani"}]},
            {"paperId": "p3", "title": "Unrelated work", "authors": []},
        ]
    }
    http_get = MagicMock(side_effect=[_json_resp({}, status=404), _json_resp(search_payload)])

    match = lookup(_CITATION, _SETTINGS, http_get=http_get)

    assert match is not None
    assert match.external_id == "p2"
    assert http_get.call_args_list[1].args[0] == SEARCH_URL
    assert http_get.call_args_list[1].kwargs["params"]["limit"] == 3


def test_no_results_anywhere_returns_none() -> None:
    http_get = MagicMock(side_effect=[_json_resp({"data": []}), _json_resp({"data": []})])

    assert lookup(_CITATION, _SETTINGS, http_get=http_get) is None


def test_api_key_header_sent_when_configured() -> None:
    http_get = MagicMock(return_value=_json_resp({"data": [{"paperId": "x", "title": "T"}]}))

    lookup(_CITATION, Settings(semantic_scholar_api_key="secret"), http_get=http_get)

    assert http_get.call_args.kwargs["headers"]["x-api-key"] == "secret"


def test_parse_search_payload_skips_untitled_items() -> None:
    payload = {"data": [{"paperId": "a"}, {"paperId": "b", "title": " Real ", "authors": [{"name": " Ann "}, {}]}, 5]}

    candidates = _parse_search_payload(payload)

    assert len(candidates) == 1
    assert candidates[0].title == "Real"
    assert candidates[0].authors == ("Ann",)
    assert _parse_search_payload(["not", "a", "dict"]) == []
