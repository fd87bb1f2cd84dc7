"""Contract between protocol plugins and the loader."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from ..core.context import ExecutionContext
from ..core.types import ProtocolFiber


@dataclass(frozen=True, slots=True)
class PluginMetadata:
    id: str
    name: str
    version: str
    description: str = ""
    author: str | None = None
    homepage: str | None = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PluginConfig:
    enabled: bool = True
    config: Mapping[str, Any] = field(default_factory=dict)
    credentials: Mapping[str, str] = field(default_factory=dict)


class Plugin(Protocol):
    """A protocol integration.

    `initialize` builds and returns the plugin's fiber; its id must equal
    `metadata.id`. Plugins may also define `cleanup(context)`,
    `validate_config(config) -> bool` and `health_check(context) -> bool`.
    """

    metadata: PluginMetadata
    default_config: PluginConfig

    async def initialize(self, context: ExecutionContext) -> ProtocolFiber: ...


@dataclass(frozen=True, slots=True)
class PluginLoadResult:
    success: bool
    plugin: Plugin | None = None
    fiber: ProtocolFiber | None = None
    error: BaseException | None = None


@dataclass(slots=True)
class PluginEntry:
    plugin: Plugin
    config: PluginConfig
    loaded: bool
    fiber: ProtocolFiber | None = None
    loaded_at: datetime | None = None
    error: BaseException | None = None
