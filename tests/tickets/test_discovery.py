from __future__ import annotations

from typing import Sequence

import pytest

from tix.adapters.assistant.claude import FETCH_TOOL
from tix.adapters.tickets.discovery import (
    DiscoveryError,
    build_discovery_args,
    discover_data_source_id,
    extract_data_source_id,
)
from tix.ports.assistant import AssistantRunner, TickCallback

DATABASE_URL = "https://www.notion.so/acme/1234?v=abcd"


class _EchoRunner(AssistantRunner):
    def __init__(self, output: str) -> None:
        self.output = output
        self.calls: list[tuple[str, list[str], float]] = []

    def run(
        self,
        command: str,
        args: Sequence[str],
        *,
        timeout: float,
        on_tick: TickCallback | None = None,
    ) -> str:
        self.calls.append((command, list(args), timeout))
        return self.output


def test_extracts_first_uuid_lowercased() -> None:
    output = 'Found <data-source url="collection://0F1E2D3C-4B5A-6978-8A9B-0C1D2E3F4A5B"> and 11111111-2222-3333-4444-555555555555'

    assert extract_data_source_id(output) == "0f1e2d3c-4b5a-6978-8a9b-0c1d2e3f4a5b"


@pytest.mark.parametrize("output", ["", "no id here", "0f1e2d3c-4b5a-6978-8a9b"])
def test_missing_uuid_raises(output: str) -> None:
    with pytest.raises(DiscoveryError):
        extract_data_source_id(output)


def test_discovery_args_use_fetch_tool() -> None:
    args = build_discovery_args(DATABASE_URL, model="haiku")

    assert args[args.index("--allowedTools") + 1] == FETCH_TOOL
    assert DATABASE_URL in args[args.index("-p") + 1]


def test_discover_runs_assistant_once() -> None:
    runner = _EchoRunner("0f1e2d3c-4b5a-6978-8a9b-0c1d2e3f4a5b\n")

    result = discover_data_source_id(runner, DATABASE_URL, timeout=12, command="assistant")

    assert result == "0f1e2d3c-4b5a-6978-8a9b-0c1d2e3f4a5b"
    assert len(runner.calls) == 1
    command, _args, timeout = runner.calls[0]
    assert command == "assistant"
    assert timeout == 12


def test_discover_requires_database_url() -> None:
    runner = _EchoRunner("")

    with pytest.raises(DiscoveryError):
        discover_data_source_id(runner, "", timeout=5)
    assert runner.calls == []
