"""Terminal settings loaded from TOML."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .core.context import ProtocolPreferences
from .core.fuzzy import (
    DEFAULT_AUTOCOMPLETE_LIMIT,
    DEFAULT_AUTOCOMPLETE_THRESHOLD,
    DEFAULT_FUZZY_THRESHOLD,
)
from .errors import ConfigError
from .log import get_logger
from .plugins.types import PluginConfig

logger = get_logger("defi_terminal.config")

SETTINGS_TABLE = "terminal"
ENV_FUZZY_THRESHOLD = "DEFI_TERMINAL_FUZZY_THRESHOLD"
ENV_HISTORY_PATH = "DEFI_TERMINAL_HISTORY_PATH"


@dataclass(frozen=True, slots=True)
class TerminalSettings:
    fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD
    autocomplete_threshold: float = DEFAULT_AUTOCOMPLETE_THRESHOLD
    autocomplete_limit: int = DEFAULT_AUTOCOMPLETE_LIMIT
    suggestion_limit: int = 5
    protocol_priority: tuple[str, ...] = ()
    command_defaults: Mapping[str, str] = field(default_factory=dict)
    history_path: Path | None = None
    max_history: int = 1000
    plugins: Mapping[str, PluginConfig] = field(default_factory=dict)

    def preferences(self) -> ProtocolPreferences:
        return ProtocolPreferences(
            defaults=dict(self.command_defaults),
            priority=self.protocol_priority,
        )

    def plugin_config(self, plugin_id: str) -> PluginConfig | None:
        return self.plugins.get(plugin_id)


def _expand_path(s: str) -> Path:
    return Path(os.path.expandvars(os.path.expanduser(s)))


def _env(name: str) -> str:
    return (os.environ.get(name) or "").strip()


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read settings at {path}: {exc}") from exc
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid TOML in {path}: {exc}") from exc


def _threshold(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{SETTINGS_TABLE}.{key} must be a number")
    value = float(value)
    if not 0.0 <= value <= 1.0:
        raise ConfigError(f"{SETTINGS_TABLE}.{key} must be within [0, 1]")
    return value


def _positive_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{SETTINGS_TABLE}.{key} must be a positive integer")
    return value


def _string_list(value: Any, key: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{SETTINGS_TABLE}.{key} must be a list of strings")
    return tuple(v.strip() for v in value if v.strip())


def _string_map(value: Any, key: str) -> dict[str, str]:
    if not isinstance(value, dict):
        raise ConfigError(f"{SETTINGS_TABLE}.{key} must be a table")
    result: dict[str, str] = {}
    for name, target in value.items():
        if not isinstance(target, str) or not target.strip():
            raise ConfigError(f"{SETTINGS_TABLE}.{key}.{name} must be a string")
        result[name] = target.strip()
    return result


def _plugin_configs(value: Any) -> dict[str, PluginConfig]:
    if not isinstance(value, dict):
        raise ConfigError(f"{SETTINGS_TABLE}.plugins must be a table")
    plugins: dict[str, PluginConfig] = {}
    for plugin_id, raw in value.items():
        if not isinstance(raw, dict):
            raise ConfigError(f"{SETTINGS_TABLE}.plugins.{plugin_id} must be a table")
        enabled = raw.get("enabled", True)
        config = raw.get("config", {})
        credentials = raw.get("credentials", {})
        if not isinstance(enabled, bool):
            raise ConfigError(
                f"{SETTINGS_TABLE}.plugins.{plugin_id}.enabled must be a boolean"
            )
        if not isinstance(config, dict) or not isinstance(credentials, dict):
            raise ConfigError(
                f"{SETTINGS_TABLE}.plugins.{plugin_id} config and credentials "
                "must be tables"
            )
        plugins[plugin_id] = PluginConfig(
            enabled=enabled,
            config=dict(config),
            credentials={str(k): str(v) for k, v in credentials.items()},
        )
    return plugins


def parse_settings(data: Mapping[str, Any]) -> TerminalSettings:
    table = data.get(SETTINGS_TABLE, {})
    if not isinstance(table, dict):
        raise ConfigError(f"{SETTINGS_TABLE} must be a table")

    settings = TerminalSettings()
    updates: dict[str, Any] = {}
    if "fuzzy_threshold" in table:
        updates["fuzzy_threshold"] = _threshold(table["fuzzy_threshold"], "fuzzy_threshold")
    if "autocomplete_threshold" in table:
        updates["autocomplete_threshold"] = _threshold(
            table["autocomplete_threshold"], "autocomplete_threshold"
        )
    for key in ("autocomplete_limit", "suggestion_limit", "max_history"):
        if key in table:
            updates[key] = _positive_int(table[key], key)
    if "protocol_priority" in table:
        updates["protocol_priority"] = _string_list(
            table["protocol_priority"], "protocol_priority"
        )
    if "command_defaults" in table:
        updates["command_defaults"] = _string_map(
            table["command_defaults"], "command_defaults"
        )
    if "history_path" in table:
        raw_path = table["history_path"]
        if not isinstance(raw_path, str) or not raw_path.strip():
            raise ConfigError(f"{SETTINGS_TABLE}.history_path must be a string")
        updates["history_path"] = _expand_path(raw_path.strip())
    if "plugins" in table:
        updates["plugins"] = _plugin_configs(table["plugins"])
    return replace(settings, **updates)


def apply_env_overrides(settings: TerminalSettings) -> TerminalSettings:
    updates: dict[str, Any] = {}
    raw_threshold = _env(ENV_FUZZY_THRESHOLD)
    if raw_threshold:
        try:
            value = float(raw_threshold)
        except ValueError as exc:
            raise ConfigError(f"{ENV_FUZZY_THRESHOLD} must be a number") from exc
        updates["fuzzy_threshold"] = _threshold(value, "fuzzy_threshold")
    raw_history = _env(ENV_HISTORY_PATH)
    if raw_history:
        updates["history_path"] = _expand_path(raw_history)
    if updates:
        logger.debug("config.env_overrides", keys=sorted(updates))
    return replace(settings, **updates) if updates else settings


def load_settings(path: Path | str | None = None) -> TerminalSettings:
    """Load settings from a TOML file, then apply environment overrides.

    With no path, defaults are used and only the environment is consulted.
    """
    if path is None:
        return apply_env_overrides(TerminalSettings())
    config_path = _expand_path(str(path))
    if not config_path.is_file():
        raise ConfigError(f"missing settings file at: {config_path}")
    settings = apply_env_overrides(parse_settings(_load_toml(config_path)))
    logger.info(
        "config.loaded",
        path=str(config_path),
        plugins=sorted(settings.plugins),
        protocol_priority=list(settings.protocol_priority),
    )
    return settings
