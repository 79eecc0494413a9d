from __future__ import annotations

from pathlib import Path

import jsonschema
import pytest

from tix.settings import RuntimeSettings
from tix.utils import telemetry


def _settings(tmp_path: Path) -> RuntimeSettings:
    return RuntimeSettings(home_dir=tmp_path, tickets_dir=tmp_path / "tickets", log_dir=tmp_path / "logs")


def test_events_are_appended_and_summarized(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TIX_TELEMETRY", raising=False)
    settings = _settings(tmp_path)

    telemetry.record_structured_event(settings, "sync", status="ok", duration_ms=12.5, payload={"tickets": 3})
    telemetry.record_structured_event(settings, "sync.discover", status="ok")

    events = list(telemetry.iter_events(settings))
    assert [event["event"] for event in events] == ["sync", "sync.discover"]
    assert events[0]["payload"] == {"tickets": 3}
    assert telemetry.summarize(events)["by_event"] == {"sync": 1, "sync.discover": 1}


def test_invalid_events_are_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TIX_TELEMETRY", raising=False)
    settings = _settings(tmp_path)

    with pytest.raises(ValueError):
        telemetry.record_structured_event(settings, " ")
    with pytest.raises(ValueError):
        telemetry.record_structured_event(settings, "sync", level="debug")
    with pytest.raises(ValueError):
        telemetry.record_structured_event(settings, "sync", duration_ms=-1)


def test_schema_rejects_unknown_fields() -> None:
    with pytest.raises(jsonschema.ValidationError):
        telemetry._validator().validate({"ts": 1.0, "event": "sync", "payload": {}, "level": "info", "extra": 1})


def test_corrupt_lines_are_skipped(tmp_path: Path) -> None:
    settings = _settings(tmp_path)
    log_path = settings.log_dir / "telemetry.jsonl"
    log_path.parent.mkdir(parents=True)
    log_path.write_text('{"event": "sync"}\nnot-json\n\n', encoding="utf-8")

    assert list(telemetry.iter_events(settings)) == [{"event": "sync"}]


@pytest.mark.parametrize("value", ["0", "false", "OFF", "no"])
def test_disabled_via_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, value: str) -> None:
    monkeypatch.setenv("TIX_TELEMETRY", value)
    settings = _settings(tmp_path)

    telemetry.record_structured_event(settings, "sync")

    assert list(telemetry.iter_events(settings)) == []


def test_summary_counts_strategy_wins_and_durations() -> None:
    events = [
        {"event": "sync", "status": "ok", "durationMs": 1000.0, "payload": {"strategy": "structured-query"}},
        {"event": "sync", "status": "ok", "durationMs": 3000.0, "payload": {"strategy": "open-ended-search"}},
        {"event": "sync", "status": "ok", "durationMs": 2000.0, "payload": {"strategy": "structured-query"}},
        {"event": "sync", "status": "failed", "payload": {"reason": "exhausted"}},
        {"event": "sync.discover", "status": "ok", "payload": {}},
    ]

    summary = telemetry.summarize(events)

    assert summary["total"] == 5
    assert summary["strategy_wins"] == {"structured-query": 2, "open-ended-search": 1}
    assert summary["sync_ms"] == {"mean": 2000.0, "max": 3000.0}
    assert summary["by_status"] == {"ok": 4, "failed": 1}


def test_clear_reports_whether_a_log_existed(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TIX_TELEMETRY", raising=False)
    settings = _settings(tmp_path)

    assert telemetry.clear(settings) is False
    telemetry.record_structured_event(settings, "sync")
    assert telemetry.clear(settings) is True
    assert not telemetry.telemetry_path(settings).exists()
