"""YAML-backed storage for the user configuration."""

from __future__ import annotations

from pathlib import Path

import yaml

from tix.domain.config import CONFIG_KEYS, TixConfig
from tix.utils.files import atomic_write_text


class ConfigError(RuntimeError):
    """Raised when the configuration is missing, unreadable or incomplete."""


class ConfigStore:
    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load(self, *, require_user: bool = True) -> TixConfig:
        if not self._path.exists():
            if not require_user:
                return TixConfig()
            raise ConfigError(
                f"config not found at {self._path}; run `tix config set userName <name>` first"
            )
        try:
            raw = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"failed to read config at {self._path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"config at {self._path} must be a mapping")
        config = TixConfig.from_dict(raw)
        if require_user and not config.user_name:
            raise ConfigError("config is incomplete: userName is required")
        return config

    def save(self, config: TixConfig) -> None:
        text = yaml.safe_dump(config.to_dict(), sort_keys=False, allow_unicode=True)
        try:
            atomic_write_text(self._path, text)
        except OSError as exc:
            raise ConfigError(f"failed to write config at {self._path}: {exc}") from exc

    def set_value(self, key: str, value: str) -> TixConfig:
        reverse = {persisted.lower(): persisted for persisted in CONFIG_KEYS.values()}
        persisted = reverse.get(key.strip().lower())
        if persisted is None:
            known = ", ".join(sorted(CONFIG_KEYS.values()))
            raise ConfigError(f"unknown config key '{key}' (known: {known})")
        config = self.load(require_user=False)
        payload = config.to_dict()
        if value == "":
            payload.pop(persisted, None)
        else:
            payload[persisted] = value
        updated = TixConfig.from_dict(payload)
        self.save(updated)
        return updated


__all__ = ["ConfigError", "ConfigStore"]
