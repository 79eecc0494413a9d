"""Ports for invoking the external assistant process."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Sequence

TickCallback = Callable[[float], None]


class AssistantProcessError(RuntimeError):
    """Raised when the assistant process fails without usable output."""

    def __init__(self, message: str, *, stderr: str = "", returncode: int | None = None) -> None:
        super().__init__(message)
        self.stderr = stderr
        self.returncode = returncode


class AssistantTimeoutError(AssistantProcessError):
    """Raised when the assistant process exceeds its deadline and is terminated."""


class AssistantNotFoundError(AssistantProcessError):
    """Raised when the assistant executable cannot be located."""


class AssistantRunner(ABC):
    """Runs one external command and resolves to its trimmed stdout."""

    @abstractmethod
    def run(
        self,
        command: str,
        args: Sequence[str],
        *,
        timeout: float,
        on_tick: TickCallback | None = None,
    ) -> str:
        """Execute ``command`` with ``args`` and return captured stdout."""
