"""Domain models for ticket synchronisation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

COMPLETED_STATUSES = frozenset(
    {
        "done",
        "complete",
        "completed",
        "shipped",
        "released",
        "closed",
        "won't do",
        "wont do",
        "merged",
    }
)


def is_completed_status(status: str | None) -> bool:
    if not status:
        return False
    return status.strip().lower() in COMPLETED_STATUSES


class TicketRecordError(ValueError):
    """Raised when a ticket payload is invalid."""


def _dedupe(values: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    ordered: List[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


@dataclass
class TicketRecord:
    """A ticket mirrored from the remote store into the local cache."""

    id: str
    title: str = ""
    status: str = ""
    priority: str = ""
    ticket_number: str = ""
    last_updated: str = ""
    url: str = ""
    github_links: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise TicketRecordError("ticket id must be a non-empty string")
        self.github_links = _dedupe(str(link) for link in self.github_links)

    @property
    def label(self) -> str:
        return self.ticket_number or self.id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ticketNumber": self.ticket_number,
            "title": self.title,
            "status": self.status,
            "priority": self.priority,
            "lastUpdated": self.last_updated,
            "url": self.url,
            "githubLinks": list(self.github_links),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TicketRecord":
        if not isinstance(payload, Mapping):
            raise TicketRecordError("ticket entry must be an object")
        links = payload.get("githubLinks") or []
        if not isinstance(links, list):
            raise TicketRecordError("ticket githubLinks must be a list")
        return cls(
            id=str(payload.get("id") or ""),
            title=str(payload.get("title") or ""),
            status=str(payload.get("status") or ""),
            priority=str(payload.get("priority") or ""),
            ticket_number=str(payload.get("ticketNumber") or ""),
            last_updated=str(payload.get("lastUpdated") or ""),
            url=str(payload.get("url") or ""),
            github_links=[str(link) for link in links],
        )


@dataclass(frozen=True)
class StrategyResult:
    """Outcome of a single strategy attempt; never persisted."""

    strategy: str
    output: str = ""
    elapsed: float = 0.0
    error: str | None = None
    error_kind: str | None = None
    stderr: str = ""
    soft_failure: bool = False

    @property
    def usable(self) -> bool:
        return bool(self.output) and self.error is None and not self.soft_failure

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "strategy": self.strategy,
            "elapsed": round(self.elapsed, 3),
            "usable": self.usable,
            "outputLength": len(self.output),
        }
        if self.error:
            payload["error"] = self.error
            payload["errorKind"] = self.error_kind or "process"
        if self.soft_failure:
            payload["softFailure"] = True
        return payload


@dataclass
class SyncRun:
    attempts: List[StrategyResult] = field(default_factory=list)
    tickets: List[TicketRecord] = field(default_factory=list)
    strategy: str | None = None
    elapsed: float = 0.0

    @property
    def winning_result(self) -> StrategyResult | None:
        for result in self.attempts:
            if result.usable:
                return result
        return None

    def summary(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "tickets": len(self.tickets),
            "attempts": [result.to_dict() for result in self.attempts],
            "elapsed": round(self.elapsed, 3),
        }


def find_ticket(tickets: Iterable[TicketRecord], id_or_url: str) -> TicketRecord | None:
    """Locate a cached ticket by id, ticket number or URL fragment."""

    needle = id_or_url.strip().lower()
    if not needle:
        return None
    compact = needle.replace("-", "")
    for ticket in tickets:
        ticket_id = ticket.id.lower()
        if ticket_id == needle:
            return ticket
        if ticket.ticket_number and ticket.ticket_number.lower() == needle:
            return ticket
        if ticket.url and needle in ticket.url.lower():
            return ticket
        if compact and compact in ticket_id.replace("-", ""):
            return ticket
    return None
