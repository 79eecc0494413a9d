"""Ticket domain exports."""

from .models import (
    COMPLETED_STATUSES,
    StrategyResult,
    SyncRun,
    TicketRecord,
    TicketRecordError,
    find_ticket,
    is_completed_status,
)

__all__ = [
    "COMPLETED_STATUSES",
    "StrategyResult",
    "SyncRun",
    "TicketRecord",
    "TicketRecordError",
    "find_ticket",
    "is_completed_status",
]
