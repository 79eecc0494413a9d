"""User configuration consumed by the sync engine."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping

# python attribute -> persisted key
CONFIG_KEYS: Dict[str, str] = {
    "user_name": "userName",
    "notion_database_url": "notionDatabaseUrl",
    "notion_data_source_id": "notionDataSourceId",
    "notion_user_id": "notionUserId",
    "notion_api_key": "notionApiKey",
    "notion_database_id": "notionDatabaseId",
    "github_org": "githubOrg",
    "assistant_command": "assistantCommand",
    "assistant_model": "assistantModel",
    "ticket_prefix": "ticketPrefix",
}


@dataclass
class TixConfig:
    user_name: str = ""
    notion_database_url: str | None = None
    notion_data_source_id: str | None = None
    notion_user_id: str | None = None
    notion_api_key: str | None = None
    notion_database_id: str | None = None
    github_org: str | None = None
    assistant_command: str = "claude"
    assistant_model: str = "haiku"
    ticket_prefix: str = "TN"

    @property
    def has_direct_api(self) -> bool:
        return bool(self.notion_api_key and self.notion_database_id)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if value is None:
                continue
            payload[CONFIG_KEYS[item.name]] = value
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TixConfig":
        reverse = {persisted: attr for attr, persisted in CONFIG_KEYS.items()}
        kwargs: Dict[str, Any] = {}
        for key, value in payload.items():
            attr = reverse.get(key)
            if attr is None or value is None:
                continue
            kwargs[attr] = str(value)
        return cls(**kwargs)


__all__ = ["CONFIG_KEYS", "TixConfig"]
