"""Versioned JSON state files guarded by an async lock."""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from dataclasses import asdict
from pathlib import Path
from typing import Any, Generic, TypeVar

import anyio

from .log import get_logger

T = TypeVar("T")

logger = get_logger("defi_terminal.state_store")


class JsonStateStore(Generic[T]):
    """Keep a dataclass state in a JSON file.

    All access goes through `self._lock`. Methods ending in `_locked` assume
    the caller holds it. The file is re-read when its mtime changes, so two
    processes sharing a file see each other's writes.
    """

    def __init__(
        self,
        path: Path,
        *,
        version: int,
        state_type: type[T],
        state_factory: Callable[[], T],
        log_prefix: str,
    ) -> None:
        self._path = path
        self._version = version
        self._state_type = state_type
        self._state_factory = state_factory
        self._log_prefix = log_prefix
        self._lock = anyio.Lock()
        self._state: T = state_factory()
        self._mtime_ns: int | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _stat_mtime_ns(self) -> int | None:
        try:
            return self._path.stat().st_mtime_ns
        except FileNotFoundError:
            return None

    def _reload_locked_if_needed(self) -> None:
        mtime_ns = self._stat_mtime_ns()
        if mtime_ns is None:
            if self._mtime_ns is not None:
                self._state = self._state_factory()
                self._mtime_ns = None
            return
        if mtime_ns == self._mtime_ns:
            return
        self._load_locked()
        self._mtime_ns = mtime_ns

    def _load_locked(self) -> None:
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"{self._log_prefix}.load_failed", path=str(self._path), error=str(exc))
            self._state = self._state_factory()
            return
        if not isinstance(payload, dict) or payload.get("version") != self._version:
            logger.warning(
                f"{self._log_prefix}.version_mismatch",
                path=str(self._path),
                expected=self._version,
                found=payload.get("version") if isinstance(payload, dict) else None,
            )
            self._state = self._state_factory()
            return
        try:
            self._state = self._state_type(**payload)
        except TypeError as exc:
            logger.warning(f"{self._log_prefix}.load_failed", path=str(self._path), error=str(exc))
            self._state = self._state_factory()

    def _save_locked(self) -> None:
        payload: dict[str, Any] = asdict(self._state)  # type: ignore[call-overload]
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_name(f"{self._path.name}.tmp")
        temp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(temp_path, self._path)
        self._mtime_ns = self._stat_mtime_ns()
