from __future__ import annotations

import pytest

from tix.adapters.assistant.claude import ALL_NOTION_TOOLS, QUERY_TOOL
from tix.adapters.tickets.strategies import (
    SEARCH_TIMEOUT_FLOOR,
    QueryModeStrategy,
    SearchStrategy,
    ViewStrategy,
    default_strategies,
)
from tix.ports.tickets import SyncParameters

VIEW_URL = "https://www.notion.so/acme/1234?v=abcd"
DATA_SOURCE = "0f1e2d3c-4b5a-6978-8a9b-0c1d2e3f4a5b"


def _value_after(args: list[str], flag: str) -> str:
    return args[args.index(flag) + 1]


def test_default_priority_order() -> None:
    assert [strategy.name for strategy in default_strategies()] == [
        "structured-view",
        "structured-query",
        "open-ended-search",
    ]


@pytest.mark.parametrize(
    "params, expected",
    [
        (SyncParameters(user_name="Ada"), ["open-ended-search"]),
        (SyncParameters(user_name="Ada", database_url=VIEW_URL), ["structured-view", "open-ended-search"]),
        (
            SyncParameters(user_name="Ada", database_url="https://www.notion.so/acme/1234"),
            ["open-ended-search"],
        ),
        (
            SyncParameters(user_name="Ada", database_url=VIEW_URL, data_source_id=DATA_SOURCE),
            ["structured-query", "open-ended-search"],
        ),
    ],
)
def test_eligibility(params: SyncParameters, expected: list[str]) -> None:
    eligible = [strategy.name for strategy in default_strategies() if strategy.eligible(params)]

    assert eligible == expected


def test_view_request_uses_query_tool_and_base_timeout() -> None:
    params = SyncParameters(user_name="Ada", database_url=VIEW_URL, timeout=45, model="sonnet")

    request = ViewStrategy().build_request(params)

    assert request.timeout == 45
    assert _value_after(request.args, "--allowedTools") == QUERY_TOOL
    assert _value_after(request.args, "--model") == "sonnet"
    assert VIEW_URL in _value_after(request.args, "-p")
    assert "--output-format" not in request.args


@pytest.mark.parametrize("output, soft", [("", True), ("Invalid view", True), ("an error occurred", True), ("[]", False)])
def test_view_soft_failure_markers(output: str, soft: bool) -> None:
    assert ViewStrategy().is_soft_failure(output) is soft


def test_query_filters_on_assignee_and_escapes_statuses() -> None:
    params = SyncParameters(user_name="Ada O'Neil", data_source_id=DATA_SOURCE)

    query = QueryModeStrategy().build_query(params)

    assert f'"collection://{DATA_SOURCE}"' in query
    assert "'Won''t Do'" in query
    assert "LIKE '%Ada O''Neil%'" in query


def test_query_prefers_notion_user_id_and_requests_json_envelope() -> None:
    params = SyncParameters(user_name="Ada", data_source_id=DATA_SOURCE, notion_user_id="user-42")

    request = QueryModeStrategy().build_request(params)

    assert "LIKE '%user-42%'" in _value_after(request.args, "-p")
    assert _value_after(request.args, "--output-format") == "json"
    assert request.timeout == params.timeout


@pytest.mark.parametrize("timeout, expected", [(30, SEARCH_TIMEOUT_FLOOR), (60, 120), (90, 180)])
def test_search_timeout_is_doubled_with_floor(timeout: float, expected: float) -> None:
    params = SyncParameters(user_name="Ada", timeout=timeout)

    request = SearchStrategy().build_request(params)

    assert request.timeout == expected
    assert _value_after(request.args, "--allowedTools") == ALL_NOTION_TOOLS
    assert '"Ada"' in _value_after(request.args, "-p")


def test_empty_output_is_soft_failure_by_default() -> None:
    assert SearchStrategy().is_soft_failure("  \n")
    assert not SearchStrategy().is_soft_failure("[]")
