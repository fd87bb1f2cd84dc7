"""Persistent store for typed input lines."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .state_store import JsonStateStore

STATE_VERSION = 1
STATE_FILENAME = "defi_terminal_history.json"
DEFAULT_MAX_ENTRIES = 1000


@dataclass
class _InputHistoryState:
    version: int
    entries: list[str] = field(default_factory=list)


def resolve_history_path(config_path: Path) -> Path:
    """Get the path for the history file, adjacent to config."""
    return config_path.with_name(STATE_FILENAME)


def _normalize_line(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _new_state() -> _InputHistoryState:
    return _InputHistoryState(version=STATE_VERSION, entries=[])


class InputHistoryStore(JsonStateStore[_InputHistoryState]):
    """Sliding window of the most recent input lines, oldest first."""

    def __init__(self, path: Path, *, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        super().__init__(
            path,
            version=STATE_VERSION,
            state_type=_InputHistoryState,
            state_factory=_new_state,
            log_prefix="input_history",
        )
        self._max_entries = max_entries

    async def append(self, line: str) -> None:
        normalized = _normalize_line(line)
        if normalized is None:
            return
        async with self._lock:
            self._reload_locked_if_needed()
            entries = [e for e in self._state.entries if isinstance(e, str)]
            entries.append(normalized)
            self._state.entries = entries[-self._max_entries :]
            self._save_locked()

    async def entries(self) -> list[str]:
        async with self._lock:
            self._reload_locked_if_needed()
            return [e for e in self._state.entries if isinstance(e, str)]

    async def last(self, count: int) -> list[str]:
        if count <= 0:
            return []
        entries = await self.entries()
        return entries[-count:]

    async def clear(self) -> None:
        async with self._lock:
            self._reload_locked_if_needed()
            if not self._state.entries:
                return
            self._state.entries = []
            self._save_locked()
