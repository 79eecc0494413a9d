from __future__ import annotations

import json
import tempfile
from pathlib import Path

from hypothesis import given, settings
from hypothesis import strategies as st

from tix.adapters.tickets.cache import TicketCache
from tix.adapters.tickets.normalizer import normalize_output
from tix.domain.tickets import COMPLETED_STATUSES, TicketRecord

_word = st.text(alphabet=st.characters(min_codepoint=97, max_codepoint=122), min_size=1, max_size=12)
_status = st.sampled_from(["To Do", "In Progress", "Blocked", "Done", "Shipped", "Won't Do", "closed", "Merged"])


@st.composite
def ticket_row(draw: st.DataObject) -> dict[str, object]:
    row: dict[str, object] = {
        "id": draw(_word),
        "Title": draw(_word),
        "Status": draw(_status),
    }
    if draw(st.booleans()):
        row["New ID"] = draw(st.integers(min_value=1, max_value=9999))
    if draw(st.booleans()):
        row["Priority"] = draw(st.sampled_from(["Low", "Medium", "High"]))
    return row


rows_strategy = st.lists(ticket_row(), max_size=8)


@settings(max_examples=50)
@given(rows=rows_strategy)
def test_json_shapes_normalize_identically(rows: list[dict[str, object]]) -> None:
    expected = normalize_output(json.dumps({"results": rows}))

    assert normalize_output(json.dumps(rows)) == expected
    if rows:
        stream = "\n".join(json.dumps(row) for row in rows)
        assert normalize_output(stream) == expected


@settings(max_examples=50)
@given(rows=rows_strategy)
def test_completed_statuses_never_survive(rows: list[dict[str, object]]) -> None:
    tickets = normalize_output(json.dumps(rows))

    assert all(ticket.status.strip().lower() not in COMPLETED_STATUSES for ticket in tickets)
    assert len({ticket.id for ticket in tickets}) == len(tickets)


@settings(max_examples=30)
@given(rows=rows_strategy)
def test_cache_round_trip_preserves_records(rows: list[dict[str, object]]) -> None:
    tickets = normalize_output(json.dumps(rows))
    with tempfile.TemporaryDirectory() as tmp:
        cache = TicketCache(Path(tmp) / "_summary.json")
        cache.save(tickets)
        assert cache.load() == tickets


@settings(max_examples=30)
@given(numbers=st.lists(st.integers(min_value=1, max_value=9999), min_size=1, max_size=5))
def test_numeric_ticket_numbers_get_prefix(numbers: list[int]) -> None:
    rows = [{"id": f"p{index}", "New ID": number, "Status": "To Do"} for index, number in enumerate(numbers)]

    tickets = normalize_output(json.dumps(rows), ticket_prefix="ENG")

    assert [ticket.ticket_number for ticket in tickets] == [f"ENG-{number}" for number in numbers]
    assert [ticket.label for ticket in tickets] == [f"ENG-{number}" for number in numbers]


def test_records_survive_dict_round_trip() -> None:
    record = TicketRecord(id="x", github_links=["a", "a", "b"])

    assert TicketRecord.from_dict(record.to_dict()) == record
