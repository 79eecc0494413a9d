"""Query strategies for fetching tickets through the assistant CLI."""

from __future__ import annotations

from typing import Tuple

from tix.adapters.assistant.claude import (
    ALL_NOTION_TOOLS,
    QUERY_TOOL,
    build_print_args,
)
from tix.ports.tickets import AssistantRequest, QueryStrategy, SyncParameters

SEARCH_TIMEOUT_FLOOR = 120.0

EXCLUDED_STATUSES = (
    "Done",
    "Complete",
    "Completed",
    "Shipped",
    "Released",
    "Closed",
    "Won't Do",
    "Won't do",
    "Merged",
)

QUERY_COLUMNS = (
    "New ID",
    "Title",
    "Status",
    "Priority",
    "Assignee",
    "Last edited time",
    "url",
    "GitHub Pull Requests",
)

TICKET_SCHEMA_EXAMPLE = (
    '[{"id":"notion-page-id","ticketNumber":"NEW-123","title":"Ticket title",'
    '"status":"Status value","priority":"Priority value","lastUpdated":"YYYY-MM-DD",'
    '"url":"https://www.notion.so/...","githubLinks":["https://github.com/..."]}]'
)


def _sql_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _sql_like(value: str) -> str:
    return _sql_literal(f"%{value}%")


class ViewStrategy(QueryStrategy):
    """Query a saved database view directly from its URL."""

    name = "structured-view"
    error_markers = ("error", "Invalid")

    def eligible(self, params: SyncParameters) -> bool:
        if params.data_source_id:
            return False
        return bool(params.database_url) and "?v=" in str(params.database_url)

    def build_request(self, params: SyncParameters) -> AssistantRequest:
        payload = '{"data": {"mode": "view", "view_url": "%s"}}' % params.database_url
        prompt = "\n".join(
            [
                "Call the notion-query-data-sources tool with EXACTLY these parameters:",
                payload,
                "",
                "Return ONLY the raw tool output, no explanation.",
            ]
        )
        args = build_print_args(
            prompt,
            allowed_tools=QUERY_TOOL,
            system_prompt=(
                "Make exactly ONE tool call with the exact parameters given. "
                "Return the raw result immediately. No exploration."
            ),
            model=params.model,
        )
        return AssistantRequest(args=args, timeout=params.timeout)

    def is_soft_failure(self, output: str) -> bool:
        if not output.strip():
            return True
        return any(marker in output for marker in self.error_markers)


class QueryModeStrategy(QueryStrategy):
    """Run a SQL-like filter against a resolved data source."""

    name = "structured-query"

    def eligible(self, params: SyncParameters) -> bool:
        return bool(params.data_source_id)

    def build_query(self, params: SyncParameters) -> str:
        assignee = params.notion_user_id or params.user_name
        columns = ", ".join(f'"{column}"' for column in QUERY_COLUMNS)
        excluded = ", ".join(_sql_literal(status) for status in EXCLUDED_STATUSES)
        return (
            f'SELECT {columns} FROM "collection://{params.data_source_id}" '
            f'WHERE "Status" NOT IN ({excluded}) '
            f'AND "Assignee" LIKE {_sql_like(assignee)}'
        )

    def build_request(self, params: SyncParameters) -> AssistantRequest:
        query = self.build_query(params)
        prompt = (
            f"Query Notion database collection://{params.data_source_id} with this SQL:\n"
            f"{query}\n\nReturn only the raw JSON result."
        )
        args = build_print_args(
            prompt,
            allowed_tools=QUERY_TOOL,
            system_prompt="Make exactly ONE tool call. Return only the raw result JSON. No commentary.",
            model=params.model,
            json_output=True,
        )
        return AssistantRequest(args=args, timeout=params.timeout)


class SearchStrategy(QueryStrategy):
    """Open-ended natural-language search; slowest, always available."""

    name = "open-ended-search"

    def eligible(self, params: SyncParameters) -> bool:
        return True

    def timeout_for(self, params: SyncParameters) -> float:
        return max(params.timeout * 2, SEARCH_TIMEOUT_FLOOR)

    def build_request(self, params: SyncParameters) -> AssistantRequest:
        prompt = "\n".join(
            [
                f'Search Notion for tickets assigned to "{params.user_name}".',
                "Return ONLY a JSON array (no markdown fences, no explanation) matching this schema:",
                "",
                TICKET_SCHEMA_EXAMPLE,
                "",
                'IMPORTANT: Query the database ONCE. Use "New ID" property for ticketNumber.',
                "Exclude completed statuses (Done, Complete, Shipped, Released, Closed, Won't Do).",
                "Return ONLY the JSON array.",
            ]
        )
        args = build_print_args(
            prompt,
            allowed_tools=ALL_NOTION_TOOLS,
            system_prompt=(
                "Query the database ONCE. Return only the JSON array. "
                "Do not open individual pages or explore the schema."
            ),
            model=params.model,
        )
        return AssistantRequest(args=args, timeout=self.timeout_for(params))


def default_strategies() -> Tuple[QueryStrategy, ...]:
    """Strategies in priority order."""

    return (ViewStrategy(), QueryModeStrategy(), SearchStrategy())


__all__ = [
    "EXCLUDED_STATUSES",
    "QueryModeStrategy",
    "SEARCH_TIMEOUT_FLOOR",
    "SearchStrategy",
    "ViewStrategy",
    "default_strategies",
]
