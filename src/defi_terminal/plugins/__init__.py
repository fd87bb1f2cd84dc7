"""Protocol plugin loading."""

from __future__ import annotations

from .loader import PluginLoader
from .types import Plugin, PluginConfig, PluginEntry, PluginLoadResult, PluginMetadata

__all__ = [
    "Plugin",
    "PluginConfig",
    "PluginEntry",
    "PluginLoadResult",
    "PluginLoader",
    "PluginMetadata",
]
