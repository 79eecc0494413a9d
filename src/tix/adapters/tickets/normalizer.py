"""Normalise free-form assistant output into canonical ticket records.

The assistant is asked for JSON but routinely answers with JSON wrapped in
prose, fenced blocks, loose objects or a markdown table. Parsing is an
ordered cascade of pure attempts; the first one returning rows wins.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from tix.adapters.assistant.claude import unwrap_envelope
from tix.domain.tickets import TicketRecord, is_completed_status

Row = Mapping[str, Any]
ParseAttempt = Callable[[str, Sequence[Any]], Optional[List[Row]]]

DEFAULT_TICKET_PREFIX = "TN"

FIELD_SYNONYMS: Mapping[str, Tuple[str, ...]] = {
    "id": ("id", "page_id", "pageid", "notion_id"),
    "ticket_number": (
        "new id",
        "new_id",
        "newid",
        "ticket_number",
        "ticketnumber",
        "ticket id",
        "ticket_id",
    ),
    "title": ("title", "name", "task", "ticket"),
    "status": ("status", "state"),
    "priority": ("priority", "urgency"),
    "last_updated": (
        "last updated",
        "last_updated",
        "lastupdated",
        "updated",
        "last edited",
        "last_edited_time",
    ),
    "url": ("url", "link", "notion_url"),
}

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_SEPARATOR_RE = re.compile(r"^\|?\s*:?-+:?\s*(\|\s*:?-+:?\s*)*\|?$")
_GITHUB_LINK_RE = re.compile(r"(?:https?://)?(?:www\.)?github\.com/[^\s,;|<>()\[\]{}\"'`]+")
_DECODER = json.JSONDecoder()


class NormalizationError(ValueError):
    """Raised when no parse attempt recognises the assistant output."""


def _normalize_key(key: str) -> str:
    return re.sub(r"[\s_]", "", str(key).lower())


def _stringify(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return json.dumps(value)
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        return ", ".join(_stringify(item) or "" for item in value)
    return json.dumps(value, ensure_ascii=False)


def find_field(row: Row, field: str) -> Optional[str]:
    """Look up a canonical field through its synonym list."""

    index: Dict[str, str] = {}
    for key in row.keys():
        index.setdefault(_normalize_key(key), key)
    for candidate in FIELD_SYNONYMS[field]:
        key = index.get(_normalize_key(candidate))
        if key is not None:
            return _stringify(row[key])
    return None


def harvest_github_links(row: Row) -> List[str]:
    links: List[str] = []
    for value in row.values():
        items = value if isinstance(value, list) else [value]
        for item in items:
            if not isinstance(item, str) or "github.com" not in item:
                continue
            links.extend(match.rstrip(".") for match in _GITHUB_LINK_RE.findall(item))
    return links


def strip_fence(text: str) -> str:
    match = _FENCE_RE.search(text)
    if match is None:
        return text
    return match.group(1).strip()


def decode_top_level(text: str) -> Tuple[Any, ...]:
    """Decode every top-level JSON object/array embedded in ``text``, skipping prose."""

    values: List[Any] = []
    position = 0
    length = len(text)
    while position < length:
        char = text[position]
        if char not in "{[":
            position += 1
            continue
        try:
            value, end = _DECODER.raw_decode(text, position)
        except ValueError:
            position += 1
            continue
        values.append(value)
        position = end
    return tuple(values)


def _rows_from_list(items: Sequence[Any]) -> Optional[List[Row]]:
    if all(isinstance(item, dict) for item in items):
        return list(items)
    return None


def _first_rows(candidates: Sequence[Sequence[Any]], values: Sequence[Any]) -> Optional[List[Row]]:
    """First non-empty list of objects; an empty one counts only as the sole JSON value."""

    saw_empty = False
    for items in candidates:
        rows = _rows_from_list(items)
        if rows:
            return rows
        if rows is not None:
            saw_empty = True
    if saw_empty and len(values) == 1:
        return []
    return None


def parse_results_object(text: str, values: Sequence[Any] | None = None) -> Optional[List[Row]]:
    if values is None:
        values = decode_top_level(text)
    candidates = [
        value["results"]
        for value in values
        if isinstance(value, dict) and isinstance(value.get("results"), list)
    ]
    return _first_rows(candidates, values)


def parse_json_array(text: str, values: Sequence[Any] | None = None) -> Optional[List[Row]]:
    if values is None:
        values = decode_top_level(text)
    return _first_rows([value for value in values if isinstance(value, list)], values)


def parse_object_stream(text: str, values: Sequence[Any] | None = None) -> Optional[List[Row]]:
    if values is None:
        values = decode_top_level(text)
    rows = [value for value in values if isinstance(value, dict)]
    return rows or None


def _split_table_row(line: str) -> List[str]:
    stripped = line.strip()
    if stripped.startswith("|"):
        stripped = stripped[1:]
    if stripped.endswith("|"):
        stripped = stripped[:-1]
    return [cell.strip() for cell in stripped.split("|")]


def parse_markdown_table(text: str, values: Sequence[Any] | None = None) -> Optional[List[Row]]:
    lines = [line.strip() for line in text.splitlines() if "|" in line]
    if len(lines) < 3 or not _SEPARATOR_RE.match(lines[1]):
        return None
    headers = _split_table_row(lines[0])
    if not any(headers):
        return None
    rows: List[Row] = []
    for line in lines[2:]:
        if _SEPARATOR_RE.match(line):
            continue
        cells = _split_table_row(line)
        row: Dict[str, str] = {}
        for position, header in enumerate(headers):
            if not header:
                continue
            row[header] = cells[position] if position < len(cells) else ""
        rows.append(row)
    return rows or None


PARSE_ATTEMPTS: Tuple[ParseAttempt, ...] = (
    parse_results_object,
    parse_json_array,
    parse_object_stream,
    parse_markdown_table,
)


def parse_rows(text: str) -> Optional[List[Row]]:
    body = strip_fence(text)
    values = decode_top_level(body)
    for attempt in PARSE_ATTEMPTS:
        rows = attempt(body, values)
        if rows is not None:
            return rows
    return None


def _ticket_number(raw: str, prefix: str) -> str:
    raw = raw.strip()
    if raw and prefix and "-" not in raw:
        return f"{prefix}-{raw}"
    return raw


def rows_to_tickets(rows: Sequence[Row], *, ticket_prefix: str = DEFAULT_TICKET_PREFIX) -> List[TicketRecord]:
    tickets: Dict[str, TicketRecord] = {}
    for position, row in enumerate(rows, start=1):
        if not isinstance(row, Mapping):
            continue
        status = find_field(row, "status") or ""
        if is_completed_status(status):
            continue
        ticket_number = _ticket_number(find_field(row, "ticket_number") or "", ticket_prefix)
        url = find_field(row, "url") or ""
        ticket_id = (find_field(row, "id") or "").strip() or ticket_number or url or f"row-{position}"
        tickets[ticket_id] = TicketRecord(
            id=ticket_id,
            ticket_number=ticket_number,
            title=find_field(row, "title") or "",
            status=status,
            priority=find_field(row, "priority") or "",
            last_updated=find_field(row, "last_updated") or "",
            url=url,
            github_links=harvest_github_links(row),
        )
    return list(tickets.values())


def normalize_output(output: str, *, ticket_prefix: str = DEFAULT_TICKET_PREFIX) -> List[TicketRecord]:
    """Convert raw assistant output into ticket records, dropping completed ones."""

    text = unwrap_envelope((output or "").strip())
    if not text.strip():
        raise NormalizationError("assistant output is empty")
    rows = parse_rows(text)
    if rows is None:
        raise NormalizationError("could not parse ticket data from assistant output")
    return rows_to_tickets(rows, ticket_prefix=ticket_prefix)


__all__ = [
    "FIELD_SYNONYMS",
    "NormalizationError",
    "PARSE_ATTEMPTS",
    "decode_top_level",
    "find_field",
    "harvest_github_links",
    "normalize_output",
    "parse_json_array",
    "parse_markdown_table",
    "parse_object_stream",
    "parse_results_object",
    "parse_rows",
    "rows_to_tickets",
    "strip_fence",
]
