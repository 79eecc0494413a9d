"""Filesystem-backed snapshot of the last successful ticket sync."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from importlib import resources
from pathlib import Path
from typing import Iterable, List

import jsonschema

from tix.domain.tickets import TicketRecord, TicketRecordError
from tix.utils.files import atomic_write_text

logger = logging.getLogger(__name__)

_RECORD_VALIDATOR = None


class TicketCacheError(RuntimeError):
    """Raised when the ticket snapshot cannot be written."""


def _record_validator():
    global _RECORD_VALIDATOR
    if _RECORD_VALIDATOR is None:
        schema_resource = resources.files("tix.resources") / "ticket.schema.json"
        schema = json.loads(schema_resource.read_text(encoding="utf-8"))
        _RECORD_VALIDATOR = jsonschema.Draft202012Validator(schema)
    return _RECORD_VALIDATOR


class TicketCache:
    """Full-replace JSON snapshot; the file mtime is the sync timestamp."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def save(self, records: Iterable[TicketRecord]) -> None:
        payload = [record.to_dict() for record in records]
        text = json.dumps(payload, ensure_ascii=False, indent=2) + "\n"
        try:
            atomic_write_text(self._path, text)
        except OSError as exc:
            raise TicketCacheError(f"failed to write ticket cache at {self._path}: {exc}") from exc
        logger.debug("wrote %d ticket(s) to %s", len(payload), self._path)

    def load(self) -> List[TicketRecord]:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("ignoring unreadable ticket cache %s: %s", self._path, exc)
            return []
        if not isinstance(raw, list):
            logger.warning("ignoring ticket cache %s: root must be a list", self._path)
            return []

        validator = _record_validator()
        records: List[TicketRecord] = []
        for entry in raw:
            errors = list(validator.iter_errors(entry))
            if errors:
                logger.warning("skipping cached ticket: %s", errors[0].message)
                continue
            try:
                records.append(TicketRecord.from_dict(entry))
            except TicketRecordError as exc:
                logger.warning("skipping cached ticket: %s", exc)
        return records

    def last_synced_at(self) -> datetime | None:
        try:
            mtime = self._path.stat().st_mtime
        except OSError:
            return None
        return datetime.fromtimestamp(mtime, tz=timezone.utc)


__all__ = ["TicketCache", "TicketCacheError"]
