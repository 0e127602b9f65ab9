"""Tests for API module."""

import pytest
from httpx import HTTPStatusError, Request, RequestError, Response

from tarkov_data import api
from tarkov_data.cache import CacheClient
from tarkov_data.exceptions import APIError

TRADERS = [
    {"id": "t-prapor", "name": "Prapor", "normalizedName": "prapor", "image4xLink": None},
]

TASKS = [
    {
        "id": "task-debut",
        "name": "Debut",
        "normalizedName": "debut",
        "taskRequirements": [],
    },
    {
        "id": "task-picnic",
        "name": "Shootout  picnic\n",
        "normalizedName": "shootout-picnic",
        "taskRequirements": [
            {"task": {"id": "task-debut", "name": "Debut", "normalizedName": "debut"}},
            {"task": None},
        ],
    },
]


@pytest.fixture(autouse=True)
def no_retry_sleep(mocker):
    return mocker.patch("tarkov_data.api.time.sleep")


def _graphql_response(mocker, payload):
    mock_post = mocker.patch("httpx.post")
    mock_post.return_value.json.return_value = payload
    mock_post.return_value.raise_for_status = lambda: None
    return mock_post


def test_get_traders_success(mocker, cache_client: CacheClient):
    mock_post = _graphql_response(mocker, {"data": {"traders": TRADERS}})

    result = api.get_traders(cache_client)

    assert result == TRADERS
    mock_post.assert_called_once()
    assert "traders" in mock_post.call_args.kwargs["json"]["query"]


def test_get_traders_caches_result(mocker, cache_client: CacheClient):
    mock_post = _graphql_response(mocker, {"data": {"traders": TRADERS}})

    api.get_traders(cache_client)
    api.get_traders(cache_client)

    mock_post.assert_called_once()
    assert cache_client.get_api_traders() == TRADERS


def test_get_traders_force_refetches(mocker, cache_client: CacheClient):
    mock_post = _graphql_response(mocker, {"data": {"traders": TRADERS}})

    api.get_traders(cache_client)
    api.get_traders(cache_client, force=True)

    assert mock_post.call_count == 2


def test_get_tasks_success(mocker, cache_client: CacheClient):
    _graphql_response(mocker, {"data": {"tasks": TASKS}})

    result = api.get_tasks(cache_client)

    assert [task["id"] for task in result] == ["task-debut", "task-picnic"]
    assert cache_client.get_api_tasks() == TASKS


def test_graphql_errors_raise(mocker, cache_client: CacheClient):
    _graphql_response(mocker, {"errors": [{"message": "Syntax Error"}]})

    with pytest.raises(APIError, match="GraphQL errors: Syntax Error"):
        api.get_tasks(cache_client)


def test_missing_data_raises(mocker, cache_client: CacheClient):
    _graphql_response(mocker, {"data": None})

    with pytest.raises(APIError, match="missing 'data'"):
        api.get_traders(cache_client)


def test_invalid_json_raises(mocker, cache_client: CacheClient):
    mock_post = mocker.patch("httpx.post")
    mock_post.return_value.json.side_effect = ValueError("Invalid JSON")
    mock_post.return_value.raise_for_status = lambda: None

    with pytest.raises(APIError, match="Invalid JSON response"):
        api.get_traders(cache_client)


def test_http_error_retries_then_raises(mocker, no_retry_sleep, cache_client: CacheClient):
    mock_post = mocker.patch("httpx.post")
    mock_response = Response(502, request=Request("POST", "https://api.tarkov.dev/graphql"))
    mock_post.return_value.raise_for_status.side_effect = HTTPStatusError(
        "Bad gateway", request=mock_response.request, response=mock_response
    )

    with pytest.raises(APIError, match="HTTP 502"):
        api.get_traders(cache_client)

    assert mock_post.call_count == 3
    assert [call.args[0] for call in no_retry_sleep.call_args_list] == [1.0, 2.0]


def test_network_error_recovers_on_retry(mocker, cache_client: CacheClient):
    good = mocker.MagicMock()
    good.json.return_value = {"data": {"traders": TRADERS}}
    good.raise_for_status = lambda: None
    mock_post = mocker.patch(
        "httpx.post", side_effect=[RequestError("Connection reset"), good]
    )

    assert api.get_traders(cache_client) == TRADERS
    assert mock_post.call_count == 2


def test_retries_follow_settings(mocker, monkeypatch, cache_client: CacheClient):
    monkeypatch.setenv("TARKOV_API_RETRIES", "1")
    mock_post = mocker.patch("httpx.post", side_effect=RequestError("down"))

    with pytest.raises(APIError, match="Network error"):
        api.get_traders(cache_client)

    mock_post.assert_called_once()


def test_index_tasks_by_name_cleans_names():
    index = api.index_tasks_by_name(TASKS)

    assert set(index) == {"debut", "shootout picnic"}
    assert index["shootout picnic"]["id"] == "task-picnic"


def test_requirement_names_skips_empty_entries():
    assert api.requirement_names(TASKS[1]) == ["Debut"]
    assert api.requirement_names(TASKS[0]) == []


def test_clean_name():
    assert api.clean_name(" Shootout\n picnic\r ") == "Shootout picnic"
