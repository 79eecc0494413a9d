from __future__ import annotations

import json
from datetime import timezone
from pathlib import Path

import pytest

from tix.adapters.tickets.cache import TicketCache, TicketCacheError
from tix.domain.tickets import TicketRecord
from tix.utils import files as files_module


def _tickets() -> list[TicketRecord]:
    return [
        TicketRecord(
            id="page-1",
            ticket_number="TN-1",
            title="Fix login redirect",
            status="In Progress",
            priority="High",
            last_updated="2025-10-01",
            url="https://www.notion.so/page-1",
            github_links=["https://github.com/acme/web/pull/7"],
        ),
        TicketRecord(id="page-2", title="Audit cron jobs", status="To Do"),
    ]


def test_missing_snapshot_loads_empty(tmp_path: Path) -> None:
    cache = TicketCache(tmp_path / "tickets" / "_summary.json")

    assert cache.exists() is False
    assert cache.load() == []
    assert cache.last_synced_at() is None


def test_save_then_load_round_trip(tmp_path: Path) -> None:
    cache = TicketCache(tmp_path / "tickets" / "_summary.json")
    tickets = _tickets()

    cache.save(tickets)

    assert cache.load() == tickets
    payload = json.loads(cache.path.read_text(encoding="utf-8"))
    assert payload[0]["ticketNumber"] == "TN-1"
    assert payload[0]["githubLinks"] == ["https://github.com/acme/web/pull/7"]
    synced_at = cache.last_synced_at()
    assert synced_at is not None
    assert synced_at.tzinfo == timezone.utc


def test_empty_list_round_trip(tmp_path: Path) -> None:
    cache = TicketCache(tmp_path / "_summary.json")

    cache.save([])

    assert cache.exists() is True
    assert cache.load() == []


def test_save_replaces_previous_snapshot(tmp_path: Path) -> None:
    cache = TicketCache(tmp_path / "_summary.json")
    cache.save(_tickets())

    replacement = [TicketRecord(id="page-9", title="Only one")]
    cache.save(replacement)

    assert cache.load() == replacement


def test_corrupt_snapshot_loads_empty(tmp_path: Path) -> None:
    path = tmp_path / "_summary.json"
    path.write_text("{not json", encoding="utf-8")

    assert TicketCache(path).load() == []


def test_invalid_entries_are_skipped(tmp_path: Path) -> None:
    path = tmp_path / "_summary.json"
    path.write_text(
        json.dumps([{"id": ""}, "garbage", {"id": "ok", "title": "Kept"}, {"id": "x", "githubLinks": "nope"}]),
        encoding="utf-8",
    )

    records = TicketCache(path).load()

    assert [record.id for record in records] == ["ok"]


def test_failed_write_preserves_previous_snapshot(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cache = TicketCache(tmp_path / "_summary.json")
    original = _tickets()
    cache.save(original)

    def _boom(src: str, dst: str) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(files_module.os, "replace", _boom)

    with pytest.raises(TicketCacheError):
        cache.save([TicketRecord(id="new", title="lost")])

    monkeypatch.undo()
    assert cache.load() == original
    assert sorted(p.name for p in tmp_path.iterdir()) == ["_summary.json"]
