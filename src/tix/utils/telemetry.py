"""Local JSONL log of sync outcomes (opt-out with ``TIX_TELEMETRY=0``).

Nothing leaves the machine; ``tix telemetry report`` reads the log back to
show which strategy tends to win and how long syncs take.
"""

from __future__ import annotations

import json
import os
import time
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List

import jsonschema

from tix.settings import RuntimeSettings

LOG_FILENAME = "telemetry.jsonl"
LEVELS = ("info", "warn", "error")

_DISABLE_VALUES = {"0", "false", "no", "off"}

_TELEMETRY_VALIDATOR = None


def telemetry_enabled() -> bool:
    return os.getenv("TIX_TELEMETRY", "1").strip().lower() not in _DISABLE_VALUES


def telemetry_path(settings: RuntimeSettings) -> Path:
    return settings.log_dir / LOG_FILENAME


def record_structured_event(
    settings: RuntimeSettings,
    event: str,
    *,
    payload: Dict[str, Any] | None = None,
    level: str = "info",
    status: str | None = None,
    component: str | None = None,
    duration_ms: float | None = None,
) -> None:
    """Append one event; raises ``ValueError`` for malformed input even when disabled."""

    if not isinstance(event, str) or not event.strip():
        raise ValueError("telemetry event name must be a non-empty string")
    if level not in LEVELS:
        raise ValueError(f"telemetry level '{level}' is not one of {', '.join(LEVELS)}")
    if duration_ms is not None and duration_ms < 0:
        raise ValueError("telemetry durationMs must be non-negative")
    if not telemetry_enabled():
        return

    record: Dict[str, Any] = {
        "ts": time.time(),
        "event": event,
        "payload": dict(payload or {}),
        "level": level,
    }
    if status:
        record["status"] = status
    if component:
        record["component"] = component
    if duration_ms is not None:
        record["durationMs"] = round(float(duration_ms), 1)
    _validator().validate(record)

    path = telemetry_path(settings)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(record, ensure_ascii=False) + "\n")


def iter_events(settings: RuntimeSettings) -> Iterator[Dict[str, Any]]:
    path = telemetry_path(settings)
    if not path.exists():
        return
    with path.open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                # partially written line from an interrupted run
                continue


def summarize(events: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Aggregate counts per event and status, plus sync strategy wins and timings."""

    total = 0
    by_event: Dict[str, int] = {}
    by_status: Dict[str, int] = {}
    wins: Dict[str, int] = {}
    durations: List[float] = []
    for evt in events:
        total += 1
        name = evt.get("event", "unknown")
        by_event[name] = by_event.get(name, 0) + 1
        status = evt.get("status", "unknown")
        by_status[status] = by_status.get(status, 0) + 1
        if name != "sync" or status != "ok":
            continue
        strategy = (evt.get("payload") or {}).get("strategy")
        if strategy:
            wins[strategy] = wins.get(strategy, 0) + 1
        if isinstance(evt.get("durationMs"), (int, float)):
            durations.append(float(evt["durationMs"]))

    summary: Dict[str, Any] = {"total": total, "by_event": by_event, "by_status": by_status}
    if wins:
        summary["strategy_wins"] = wins
    if durations:
        summary["sync_ms"] = {
            "mean": round(sum(durations) / len(durations), 1),
            "max": max(durations),
        }
    return summary


def clear(settings: RuntimeSettings) -> bool:
    path = telemetry_path(settings)
    if not path.exists():
        return False
    path.unlink()
    return True


def _validator():
    global _TELEMETRY_VALIDATOR
    if _TELEMETRY_VALIDATOR is None:
        schema_resource = resources.files("tix.resources") / "telemetry.schema.json"
        schema = json.loads(schema_resource.read_text(encoding="utf-8"))
        _TELEMETRY_VALIDATOR = jsonschema.Draft202012Validator(schema)
    return _TELEMETRY_VALIDATOR


__all__ = [
    "LEVELS",
    "clear",
    "iter_events",
    "record_structured_event",
    "summarize",
    "telemetry_enabled",
    "telemetry_path",
]
