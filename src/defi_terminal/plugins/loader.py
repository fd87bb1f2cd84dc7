"""Plugin lifecycle: load, unload, reload, health checks."""

from __future__ import annotations

from datetime import UTC, datetime

from ..core.context import ExecutionContext
from ..core.registry import FiberRegistry
from ..core.types import ProtocolId
from ..errors import RegistrationError
from ..log import get_logger
from .types import Plugin, PluginConfig, PluginEntry, PluginLoadResult

logger = get_logger("defi_terminal.plugins.loader")


class PluginLoader:
    def __init__(self, registry: FiberRegistry) -> None:
        self._registry = registry
        self._plugins: dict[ProtocolId, PluginEntry] = {}

    async def load_plugin(
        self,
        plugin: Plugin,
        config: PluginConfig | None,
        context: ExecutionContext,
    ) -> PluginLoadResult:
        """Initialize `plugin` and publish its fiber.

        Disabled plugins, rejected configs and initialization failures come
        back as failed results. Registration errors are recorded and then
        re-raised so startup stops.
        """
        plugin_id = plugin.metadata.id
        plugin_config = config if config is not None else plugin.default_config

        validate = getattr(plugin, "validate_config", None)
        if validate is not None and not validate(plugin_config):
            return self._record_failure(
                plugin,
                plugin_config,
                ValueError(f"invalid configuration for plugin {plugin_id}"),
            )
        if not plugin_config.enabled:
            logger.info("plugins.load_skipped", plugin=plugin_id, reason="disabled")
            return self._record_failure(
                plugin, plugin_config, RuntimeError(f"plugin {plugin_id} is disabled")
            )

        try:
            fiber = await plugin.initialize(context)
            if fiber.id != plugin_id:
                raise RegistrationError(
                    f"plugin {plugin_id!r} returned fiber {fiber.id!r}; "
                    "fiber id must match plugin id",
                    fiber_id=fiber.id,
                )
            self._registry.register_fiber(fiber)
        except RegistrationError as exc:
            self._record_failure(plugin, plugin_config, exc)
            logger.error(
                "plugins.registration_failed",
                plugin=plugin_id,
                command=exc.command_id,
                fiber=exc.fiber_id,
                error=str(exc),
            )
            raise
        except Exception as exc:
            return self._record_failure(plugin, plugin_config, exc)

        self._plugins[plugin_id] = PluginEntry(
            plugin=plugin,
            config=plugin_config,
            loaded=True,
            fiber=fiber,
            loaded_at=datetime.now(UTC),
        )
        logger.info(
            "plugins.loaded",
            plugin=plugin_id,
            version=plugin.metadata.version,
            commands=len(fiber.public_commands()),
        )
        return PluginLoadResult(success=True, plugin=plugin, fiber=fiber)

    def _record_failure(
        self, plugin: Plugin, config: PluginConfig, error: BaseException
    ) -> PluginLoadResult:
        self._plugins[plugin.metadata.id] = PluginEntry(
            plugin=plugin, config=config, loaded=False, error=error
        )
        if not isinstance(error, RegistrationError):
            logger.warning(
                "plugins.load_failed", plugin=plugin.metadata.id, error=str(error)
            )
        return PluginLoadResult(success=False, plugin=plugin, error=error)

    async def unload_plugin(self, plugin_id: ProtocolId, context: ExecutionContext) -> None:
        # Commands stay in the registry; resolved references must keep working.
        entry = self._plugins.get(plugin_id)
        if entry is None:
            raise KeyError(f"plugin {plugin_id} is not loaded")
        cleanup = getattr(entry.plugin, "cleanup", None)
        if cleanup is not None and entry.loaded:
            await cleanup(context)
        del self._plugins[plugin_id]
        logger.info("plugins.unloaded", plugin=plugin_id)

    async def reload_plugin(
        self, plugin_id: ProtocolId, context: ExecutionContext
    ) -> PluginLoadResult:
        entry = self._plugins.get(plugin_id)
        if entry is None:
            raise KeyError(f"plugin {plugin_id} is not loaded")
        await self.unload_plugin(plugin_id, context)
        return await self.load_plugin(entry.plugin, entry.config, context)

    def get_plugin(self, plugin_id: ProtocolId) -> PluginEntry | None:
        return self._plugins.get(plugin_id)

    def get_all_plugins(self) -> list[PluginEntry]:
        return list(self._plugins.values())

    def loaded_plugin_ids(self) -> list[ProtocolId]:
        return [pid for pid, entry in self._plugins.items() if entry.loaded]

    def is_plugin_loaded(self, plugin_id: ProtocolId) -> bool:
        entry = self._plugins.get(plugin_id)
        return entry is not None and entry.loaded

    async def health_check_all(
        self, context: ExecutionContext
    ) -> dict[ProtocolId, bool]:
        results: dict[ProtocolId, bool] = {}
        for plugin_id, entry in self._plugins.items():
            if not entry.loaded:
                results[plugin_id] = False
                continue
            check = getattr(entry.plugin, "health_check", None)
            if check is None:
                results[plugin_id] = True
                continue
            try:
                results[plugin_id] = bool(await check(context))
            except Exception as exc:
                logger.warning(
                    "plugins.health_check_failed", plugin=plugin_id, error=str(exc)
                )
                results[plugin_id] = False
        return results
