"""Command line interface for tix."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from textwrap import dedent
from typing import Any, Callable, Dict, List

from tix import __version__
from tix.adapters.assistant.subprocess_runner import SubprocessRunner
from tix.adapters.config.file_store import ConfigError, ConfigStore
from tix.adapters.tickets.cache import TicketCache
from tix.app.sync import (
    DEFAULT_TIMEOUT,
    SyncExhaustedError,
    SyncParseError,
    TicketSyncError,
    TicketSyncService,
)
from tix.domain.tickets import SyncRun, TicketRecord, find_ticket
from tix.ports.assistant import AssistantRunner
from tix.settings import SETTINGS
from tix.utils.telemetry import clear as telemetry_clear
from tix.utils.telemetry import iter_events as telemetry_iter
from tix.utils.telemetry import record_structured_event, summarize as telemetry_summarize

HELP_OVERVIEW = dedent(
    """
    Quick start:
      - tix config set userName "Ada Lovelace"
      - tix config set notionDatabaseUrl "https://www.notion.so/...?v=..."
      - tix sync --discover   (once, resolves the data source id)
      - tix sync              (mirror your open tickets into the local cache)
      - tix status

    Tickets are fetched through the assistant CLI; raise --timeout when the
    Notion workspace is slow.
    """
)

RAW_OUTPUT_PREVIEW = 2000
SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"

logger = logging.getLogger("tix")


def _configure_logging(verbose: bool) -> None:
    # rebind to the current sys.stderr on every invocation
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _build_runner() -> AssistantRunner:
    return SubprocessRunner()


def _config_store() -> ConfigStore:
    return ConfigStore(SETTINGS.config_path)


def _ticket_cache() -> TicketCache:
    return TicketCache(SETTINGS.cache_path)


def _progress_printer() -> Callable[[str, float, bool], None] | None:
    stream = sys.stderr
    if not stream.isatty():
        return None
    frame = {"index": 0}

    def _progress(strategy: str, elapsed: float, done: bool) -> None:
        if done:
            stream.write("\r" + " " * 60 + "\r")
            stream.flush()
            return
        glyph = SPINNER_FRAMES[frame["index"] % len(SPINNER_FRAMES)]
        frame["index"] += 1
        stream.write(f"\r{glyph} Waiting for assistant ({strategy})... {int(elapsed)}s")
        stream.flush()

    return _progress


def _build_service() -> TicketSyncService:
    return TicketSyncService(
        runner=_build_runner(),
        cache=_ticket_cache(),
        config_store=_config_store(),
        progress=_progress_printer(),
    )


def _print_sync_hints(exc: SyncExhaustedError, timeout: float) -> None:
    for attempt in exc.attempts:
        if attempt.stderr:
            print(f"{attempt.strategy} stderr:\n{attempt.stderr}", file=sys.stderr)
    if exc.timed_out:
        print(
            f"The request timed out after {timeout:g}s. Try increasing the timeout: tix sync --timeout 120",
            file=sys.stderr,
        )
    if exc.assistant_missing:
        print(
            "Assistant CLI not found. Install it: npm install -g @anthropic-ai/claude-code",
            file=sys.stderr,
        )
    if not exc.timed_out and not exc.assistant_missing:
        print("Check that the assistant CLI is logged in and can reach Notion.", file=sys.stderr)


def _format_ticket_line(ticket: TicketRecord) -> str:
    prefix = f"{ticket.ticket_number} " if ticket.ticket_number else ""
    status = f" [{ticket.status}]" if ticket.status else ""
    return f"  {prefix}{ticket.title}{status}"


def _print_sync_result(run: SyncRun, *, as_json: bool, verbose: bool) -> None:
    if as_json:
        payload = run.summary()
        payload["tickets"] = [ticket.to_dict() for ticket in run.tickets]
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return
    if verbose:
        winner = run.winning_result
        if winner is not None:
            print("Raw output:")
            print(winner.output[:RAW_OUTPUT_PREVIEW])
            if len(winner.output) > RAW_OUTPUT_PREVIEW:
                print(f"... ({len(winner.output) - RAW_OUTPUT_PREVIEW} more chars)")
            print("-" * 40)
    print(f"Assistant responded in {run.elapsed:.1f}s via {run.strategy}")
    print(f"Synced {len(run.tickets)} ticket(s)")
    for ticket in run.tickets:
        print(_format_ticket_line(ticket))


def _sync_cmd(args: argparse.Namespace) -> int:
    verbose = bool(getattr(args, "verbose", False))
    _configure_logging(verbose)
    raw_timeout = getattr(args, "timeout", None)
    timeout = float(raw_timeout) if raw_timeout is not None else DEFAULT_TIMEOUT
    if timeout <= 0:
        print("--timeout must be a positive number of seconds", file=sys.stderr)
        return 1

    store = _config_store()
    try:
        config = store.load()
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    service = _build_service()
    if getattr(args, "discover", False):
        return _discover(service, timeout=timeout)

    if config.has_direct_api:
        print("Direct Notion API credentials are configured; `tix status` reads Notion directly.")
        return 0

    try:
        run = service.sync(timeout=timeout, config=config)
    except SyncExhaustedError as exc:
        print(f"Sync failed: {exc}", file=sys.stderr)
        _print_sync_hints(exc, timeout)
        _record_sync_event("failed", {"reason": "exhausted", "attempts": [a.to_dict() for a in exc.attempts]})
        return 1
    except SyncParseError as exc:
        print(f"Could not parse ticket data from assistant output: {exc}", file=sys.stderr)
        print(f"Raw output (first 500 chars):\n{exc.raw_excerpt}", file=sys.stderr)
        _record_sync_event("failed", {"reason": "parse", "strategy": exc.run.strategy})
        return 1
    except TicketSyncError as exc:
        print(f"Sync failed: {exc}", file=sys.stderr)
        _record_sync_event("failed", {"reason": "error"})
        return 1

    _print_sync_result(run, as_json=bool(getattr(args, "json", False)), verbose=verbose)
    _record_sync_event(
        "ok",
        {
            "strategy": run.strategy,
            "tickets": len(run.tickets),
            "attempts": [attempt.to_dict() for attempt in run.attempts],
        },
        duration_ms=run.elapsed * 1000,
    )
    return 0


def _discover(service: TicketSyncService, *, timeout: float) -> int:
    print("Discovering data source id via notion-fetch...")
    try:
        data_source_id = service.discover(timeout=timeout)
    except TicketSyncError as exc:
        print(f"Discovery failed: {exc}", file=sys.stderr)
        _record_sync_event("failed", {"reason": "discovery"}, event="sync.discover")
        return 1
    print(f"Discovered data source: {data_source_id}")
    _record_sync_event("ok", {"dataSourceId": data_source_id}, event="sync.discover")
    return 0


def _record_sync_event(
    status: str,
    payload: Dict[str, Any],
    *,
    event: str = "sync",
    duration_ms: float | None = None,
) -> None:
    record_structured_event(
        SETTINGS,
        event,
        status=status,
        component="sync",
        level="info" if status == "ok" else "error",
        payload=payload,
        duration_ms=duration_ms,
    )


def _status_cmd(args: argparse.Namespace) -> int:
    cache = _ticket_cache()
    if not cache.exists():
        print("No cached tickets found. Run `tix sync` first to fetch tickets.")
        return 0
    tickets = cache.load()
    synced_at = cache.last_synced_at()
    if getattr(args, "json", False):
        payload = {
            "lastSyncedAt": synced_at.isoformat().replace("+00:00", "Z") if synced_at else None,
            "tickets": [ticket.to_dict() for ticket in tickets],
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0
    if not tickets:
        print("No tickets in cache. Run `tix sync` to refresh.")
        return 0
    for ticket in tickets:
        line = _format_ticket_line(ticket)
        if ticket.priority:
            line += f" ({ticket.priority})"
        if ticket.last_updated:
            line += f" updated {ticket.last_updated}"
        print(line)
    print(f"\n{len(tickets)} ticket(s) from cache")
    if synced_at is not None:
        print(f"Last synced: {synced_at.astimezone().strftime('%Y-%m-%d %H:%M:%S')}")
    return 0


def _ticket_cmd(args: argparse.Namespace) -> int:
    tickets = _ticket_cache().load()
    ticket = find_ticket(tickets, args.ticket)
    if ticket is None:
        print(f"Ticket '{args.ticket}' not found in cache. Run `tix sync` to refresh.", file=sys.stderr)
        return 1
    if getattr(args, "json", False):
        print(json.dumps(ticket.to_dict(), ensure_ascii=False, indent=2))
        return 0
    print(f"{ticket.label}: {ticket.title}")
    print(f"  status:   {ticket.status or '-'}")
    print(f"  priority: {ticket.priority or '-'}")
    print(f"  updated:  {ticket.last_updated or '-'}")
    print(f"  url:      {ticket.url or '-'}")
    if ticket.github_links:
        print("  github:")
        for link in ticket.github_links:
            print(f"    {link}")
    return 0


def _config_cmd(args: argparse.Namespace) -> int:
    store = _config_store()
    command = getattr(args, "config_command", "show")
    try:
        if command == "path":
            print(store.path)
            return 0
        if command == "set":
            updated = store.set_value(args.key, args.value)
            print(f"Updated {store.path}")
            payload = updated.to_dict()
        else:
            payload = store.load(require_user=False).to_dict()
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    if command == "show":
        if "notionApiKey" in payload:
            payload["notionApiKey"] = "***"
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def _telemetry_cmd(args: argparse.Namespace) -> int:
    command = getattr(args, "telemetry_command", "report")
    if command == "clear":
        if telemetry_clear(SETTINGS):
            print("Telemetry log cleared")
        else:
            print("No telemetry log to clear")
        return 0
    events: List[dict[str, Any]] = list(telemetry_iter(SETTINGS))
    if command == "tail":
        limit = max(0, int(getattr(args, "limit", 20)))
        for event in events[-limit:] if limit else []:
            print(json.dumps(event, ensure_ascii=False))
        return 0
    recent = int(getattr(args, "recent", 0) or 0)
    if recent > 0:
        events = events[-recent:]
    print(json.dumps(telemetry_summarize(events), ensure_ascii=False, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tix",
        description=HELP_OVERVIEW,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"tix {__version__}")

    sub = parser.add_subparsers(dest="command", required=True)

    sync_cmd = sub.add_parser(
        "sync",
        help="Fetch your open tickets via the assistant CLI into the local cache",
    )
    sync_cmd.add_argument("-v", "--verbose", action="store_true", help="Show strategy diagnostics and raw output")
    sync_cmd.add_argument(
        "--timeout",
        type=float,
        metavar="SECONDS",
        help=f"Assistant timeout per strategy (default: {DEFAULT_TIMEOUT:g})",
    )
    sync_cmd.add_argument(
        "--discover",
        action="store_true",
        help="Resolve and store the Notion data source id instead of syncing",
    )
    sync_cmd.add_argument("--json", action="store_true", help="Emit machine-readable result")
    sync_cmd.set_defaults(func=_sync_cmd)

    status_cmd = sub.add_parser("status", help="Show cached tickets")
    status_cmd.add_argument("--json", action="store_true", help="Emit machine-readable result")
    status_cmd.set_defaults(func=_status_cmd)

    ticket_cmd = sub.add_parser("ticket", help="Show a cached ticket by id, ticket number or URL")
    ticket_cmd.add_argument("ticket", help="Notion page id, ticket number (e.g. TN-123) or URL")
    ticket_cmd.add_argument("--json", action="store_true", help="Emit machine-readable result")
    ticket_cmd.set_defaults(func=_ticket_cmd)

    config_cmd = sub.add_parser("config", help="Inspect or edit ~/.tix/config.yaml")
    config_sub = config_cmd.add_subparsers(dest="config_command", required=True)
    config_show = config_sub.add_parser("show", help="Print the current configuration")
    config_show.set_defaults(func=_config_cmd)
    config_set = config_sub.add_parser("set", help="Set a configuration value (empty value unsets)")
    config_set.add_argument("key", help="Config key, e.g. userName or notionDatabaseUrl")
    config_set.add_argument("value")
    config_set.set_defaults(func=_config_cmd)
    config_path = config_sub.add_parser("path", help="Print the configuration file path")
    config_path.set_defaults(func=_config_cmd)

    telemetry_cmd = sub.add_parser("telemetry", help="Inspect local telemetry logs")
    telemetry_sub = telemetry_cmd.add_subparsers(dest="telemetry_command", required=True)

    telemetry_report = telemetry_sub.add_parser("report", help="Print aggregated telemetry stats")
    telemetry_report.add_argument(
        "--recent",
        type=int,
        default=0,
        help="Limit aggregation to the last N telemetry events",
    )
    telemetry_report.set_defaults(func=_telemetry_cmd)

    telemetry_clear_cmd = telemetry_sub.add_parser("clear", help="Remove telemetry log file")
    telemetry_clear_cmd.set_defaults(func=_telemetry_cmd)

    telemetry_tail = telemetry_sub.add_parser("tail", help="Print last N telemetry events")
    telemetry_tail.add_argument("--limit", type=int, default=20)
    telemetry_tail.set_defaults(func=_telemetry_cmd)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
