"""Application service orchestrating ticket sync and data source discovery."""

from __future__ import annotations

import logging
import time
from typing import Callable, Sequence

from tix.adapters.assistant.claude import unwrap_envelope
from tix.adapters.config.file_store import ConfigError, ConfigStore
from tix.adapters.tickets.cache import TicketCache, TicketCacheError
from tix.adapters.tickets.discovery import DiscoveryError, discover_data_source_id
from tix.adapters.tickets.normalizer import NormalizationError, normalize_output
from tix.adapters.tickets.strategies import default_strategies
from tix.domain.config import TixConfig
from tix.domain.tickets import StrategyResult, SyncRun
from tix.ports.assistant import (
    AssistantNotFoundError,
    AssistantProcessError,
    AssistantRunner,
    AssistantTimeoutError,
    TickCallback,
)
from tix.ports.tickets import QueryStrategy, SyncParameters

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
RAW_EXCERPT_CHARS = 500

ProgressCallback = Callable[[str, float, bool], None]


class TicketSyncError(RuntimeError):
    """Raised when synchronisation cannot be performed."""


class SyncExhaustedError(TicketSyncError):
    """Raised when no eligible strategy produced usable output."""

    def __init__(self, message: str, *, attempts: Sequence[StrategyResult]) -> None:
        super().__init__(message)
        self.attempts = list(attempts)

    @property
    def timed_out(self) -> bool:
        return any(result.error_kind == "timeout" for result in self.attempts)

    @property
    def assistant_missing(self) -> bool:
        return any(result.error_kind == "not_found" for result in self.attempts)


class SyncParseError(TicketSyncError):
    """Raised when the winning output cannot be normalised."""

    def __init__(self, message: str, *, raw_excerpt: str, run: SyncRun) -> None:
        super().__init__(message)
        self.raw_excerpt = raw_excerpt
        self.run = run


class DiscoveryFailedError(TicketSyncError):
    """Raised when the data source id cannot be resolved; configuration is untouched."""


def _error_kind(exc: AssistantProcessError) -> str:
    if isinstance(exc, AssistantTimeoutError):
        return "timeout"
    if isinstance(exc, AssistantNotFoundError):
        return "not_found"
    return "process"


class TicketSyncService:
    def __init__(
        self,
        *,
        runner: AssistantRunner,
        cache: TicketCache,
        config_store: ConfigStore,
        strategies: Sequence[QueryStrategy] | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        self._runner = runner
        self._cache = cache
        self._config_store = config_store
        self._strategies = tuple(strategies) if strategies is not None else default_strategies()
        self._progress = progress

    def load_config(self) -> TixConfig:
        try:
            return self._config_store.load()
        except ConfigError as exc:
            raise TicketSyncError(str(exc)) from exc

    def sync(self, *, timeout: float = DEFAULT_TIMEOUT, config: TixConfig | None = None) -> SyncRun:
        config = config or self.load_config()
        params = SyncParameters(
            user_name=config.user_name,
            database_url=config.notion_database_url,
            data_source_id=config.notion_data_source_id,
            notion_user_id=config.notion_user_id,
            timeout=timeout,
            model=config.assistant_model,
        )
        run = SyncRun()
        started = time.monotonic()
        output: str | None = None
        for strategy in self._strategies:
            if not strategy.eligible(params):
                logger.debug("skipping %s: not eligible", strategy.name)
                continue
            result = self._attempt(strategy, params, config.assistant_command, started)
            run.attempts.append(result)
            if result.usable:
                output = result.output
                run.strategy = strategy.name
                break

        run.elapsed = time.monotonic() - started
        if output is None:
            tried = ", ".join(result.strategy for result in run.attempts) or "none"
            raise SyncExhaustedError(
                f"no strategy produced usable output (tried: {tried})",
                attempts=run.attempts,
            )

        logger.info("%s responded in %.1fs", run.strategy, run.elapsed)
        try:
            tickets = normalize_output(output, ticket_prefix=config.ticket_prefix)
        except NormalizationError as exc:
            excerpt = unwrap_envelope(output)[:RAW_EXCERPT_CHARS]
            raise SyncParseError(str(exc), raw_excerpt=excerpt, run=run) from exc

        try:
            self._cache.save(tickets)
        except TicketCacheError as exc:
            raise TicketSyncError(str(exc)) from exc
        run.tickets = tickets
        return run

    def discover(self, *, timeout: float = DEFAULT_TIMEOUT) -> str:
        config = self.load_config()
        if not config.notion_database_url:
            raise DiscoveryFailedError(
                "no notionDatabaseUrl in config; run `tix config set notionDatabaseUrl <url>`"
            )
        started = time.monotonic()
        try:
            data_source_id = discover_data_source_id(
                self._runner,
                config.notion_database_url,
                timeout=timeout,
                model=config.assistant_model,
                command=config.assistant_command,
                on_tick=self._tick_callback("discovery", started),
            )
        except (AssistantProcessError, DiscoveryError) as exc:
            raise DiscoveryFailedError(str(exc)) from exc
        finally:
            self._notify("discovery", time.monotonic() - started, True)

        config.notion_data_source_id = data_source_id
        try:
            self._config_store.save(config)
        except ConfigError as exc:
            raise DiscoveryFailedError(f"resolved {data_source_id} but could not save it: {exc}") from exc
        return data_source_id

    def _attempt(
        self,
        strategy: QueryStrategy,
        params: SyncParameters,
        command: str,
        sync_started: float,
    ) -> StrategyResult:
        request = strategy.build_request(params)
        logger.info("trying %s (timeout %.0fs)", strategy.name, request.timeout)
        started = time.monotonic()
        try:
            output = self._runner.run(
                command,
                request.args,
                timeout=request.timeout,
                on_tick=self._tick_callback(strategy.name, sync_started),
            )
        except AssistantProcessError as exc:
            logger.info("%s failed: %s", strategy.name, exc)
            if exc.stderr:
                logger.debug("%s stderr: %s", strategy.name, exc.stderr)
            return StrategyResult(
                strategy=strategy.name,
                elapsed=time.monotonic() - started,
                error=str(exc),
                error_kind=_error_kind(exc),
                stderr=exc.stderr,
            )
        finally:
            self._notify(strategy.name, time.monotonic() - sync_started, True)

        soft_failure = strategy.is_soft_failure(output)
        if soft_failure:
            logger.info("%s returned an unusable response, falling through", strategy.name)
        return StrategyResult(
            strategy=strategy.name,
            output=output,
            elapsed=time.monotonic() - started,
            soft_failure=soft_failure,
        )

    def _tick_callback(self, name: str, started: float) -> TickCallback | None:
        if self._progress is None:
            return None

        def _tick(_elapsed: float) -> None:
            self._notify(name, time.monotonic() - started, False)

        return _tick

    def _notify(self, name: str, elapsed: float, done: bool) -> None:
        if self._progress is not None:
            self._progress(name, elapsed, done)


__all__ = [
    "DEFAULT_TIMEOUT",
    "DiscoveryFailedError",
    "ProgressCallback",
    "SyncExhaustedError",
    "SyncParseError",
    "TicketSyncError",
    "TicketSyncService",
]
