"""Argument construction for the Claude CLI in non-interactive print mode."""

from __future__ import annotations

import json
from typing import List

DEFAULT_COMMAND = "claude"
DEFAULT_MODEL = "haiku"

QUERY_TOOL = "mcp__notion__notion-query-data-sources"
FETCH_TOOL = "mcp__notion__notion-fetch"
ALL_NOTION_TOOLS = "mcp__notion__*"


def build_print_args(
    prompt: str,
    *,
    allowed_tools: str,
    system_prompt: str,
    model: str = DEFAULT_MODEL,
    json_output: bool = False,
) -> List[str]:
    """Return CLI arguments for a single print-and-exit assistant call."""

    args = ["--print", "--model", model or DEFAULT_MODEL]
    if json_output:
        args += ["--output-format", "json"]
    args += [
        "--allowedTools",
        allowed_tools,
        "--append-system-prompt",
        system_prompt,
        "-p",
        prompt,
    ]
    return args


def unwrap_envelope(output: str) -> str:
    """Return the ``result`` text of a ``--output-format json`` envelope, or ``output`` unchanged."""

    try:
        wrapper = json.loads(output)
    except (TypeError, ValueError):
        return output
    if isinstance(wrapper, dict) and isinstance(wrapper.get("result"), str):
        return wrapper["result"]
    return output


__all__ = [
    "ALL_NOTION_TOOLS",
    "DEFAULT_COMMAND",
    "DEFAULT_MODEL",
    "FETCH_TOOL",
    "QUERY_TOOL",
    "build_print_args",
    "unwrap_envelope",
]
