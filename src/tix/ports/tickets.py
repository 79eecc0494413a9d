"""Ports for ticket query strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class SyncParameters:
    user_name: str
    database_url: str | None = None
    data_source_id: str | None = None
    notion_user_id: str | None = None
    timeout: float = 60.0
    model: str = "haiku"


@dataclass(frozen=True)
class AssistantRequest:
    args: List[str] = field(default_factory=list)
    timeout: float = 60.0


class QueryStrategy(ABC):
    """One approach to querying the remote ticket store through the assistant."""

    name: str = ""

    @abstractmethod
    def eligible(self, params: SyncParameters) -> bool:
        """Return True when the strategy can run with the given configuration."""

    @abstractmethod
    def build_request(self, params: SyncParameters) -> AssistantRequest:
        """Build the assistant arguments and deadline for this strategy."""

    def is_soft_failure(self, output: str) -> bool:
        return not output.strip()
