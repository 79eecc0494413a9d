"""Ticket synchronisation package."""

from .service import (  # noqa: F401
    DEFAULT_TIMEOUT,
    DiscoveryFailedError,
    SyncExhaustedError,
    SyncParseError,
    TicketSyncError,
    TicketSyncService,
)

__all__ = [
    "DEFAULT_TIMEOUT",
    "DiscoveryFailedError",
    "SyncExhaustedError",
    "SyncParseError",
    "TicketSyncError",
    "TicketSyncService",
]
