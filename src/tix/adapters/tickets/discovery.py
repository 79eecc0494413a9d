"""Resolve a Notion data source id from a database URL via the assistant."""

from __future__ import annotations

import logging
import re

from tix.adapters.assistant.claude import DEFAULT_COMMAND, DEFAULT_MODEL, FETCH_TOOL, build_print_args
from tix.ports.assistant import AssistantRunner, TickCallback

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)


class DiscoveryError(ValueError):
    """Raised when the discovery output does not contain a data source id."""


def build_discovery_args(database_url: str, *, model: str = DEFAULT_MODEL) -> list[str]:
    prompt = "\n".join(
        [
            f'Call the notion-fetch tool with id="{database_url}".',
            'In the result, find the <data-source url="collection://..."> tag.',
            'Return ONLY the UUID from inside that tag (the part after "collection://"), nothing else.',
        ]
    )
    return build_print_args(
        prompt,
        allowed_tools=FETCH_TOOL,
        system_prompt="Make exactly ONE tool call. Return only the UUID. No explanation.",
        model=model,
    )


def extract_data_source_id(output: str) -> str:
    match = UUID_PATTERN.search(output or "")
    if match is None:
        excerpt = (output or "").strip()[:200]
        raise DiscoveryError(f"could not extract data source id from assistant output: {excerpt!r}")
    return match.group(0).lower()


def discover_data_source_id(
    runner: AssistantRunner,
    database_url: str,
    *,
    timeout: float,
    model: str = DEFAULT_MODEL,
    command: str = DEFAULT_COMMAND,
    on_tick: TickCallback | None = None,
) -> str:
    """Ask the assistant to fetch ``database_url`` and return the embedded data source id."""

    if not database_url:
        raise DiscoveryError("database url is required for discovery")
    args = build_discovery_args(database_url, model=model)
    output = runner.run(command, args, timeout=timeout, on_tick=on_tick)
    data_source_id = extract_data_source_id(output)
    logger.info("resolved data source %s", data_source_id)
    return data_source_id


__all__ = [
    "DiscoveryError",
    "UUID_PATTERN",
    "build_discovery_args",
    "discover_data_source_id",
    "extract_data_source_id",
]
