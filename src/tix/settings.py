"""Runtime settings for the tix CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from tix import __version__


@dataclass(frozen=True)
class RuntimeSettings:
    home_dir: Path
    tickets_dir: Path
    log_dir: Path
    cli_version: str = __version__

    @property
    def config_path(self) -> Path:
        return self.home_dir / "config.yaml"

    @property
    def cache_path(self) -> Path:
        return self.tickets_dir / "_summary.json"


def _default_home_dir() -> Path:
    override = os.environ.get("TIX_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".tix"


def load_settings() -> RuntimeSettings:
    base = _default_home_dir()
    return RuntimeSettings(
        home_dir=base,
        tickets_dir=base / "tickets",
        log_dir=base / "logs",
    )


SETTINGS = load_settings()
