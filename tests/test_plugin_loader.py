"""Tests for plugin loading and lifecycle."""

from __future__ import annotations

from typing import Any

import pytest

from defi_terminal.core.context import ExecutionContext, create_execution_context
from defi_terminal.core.monoid import create_protocol_fiber
from defi_terminal.core.registry import FiberRegistry
from defi_terminal.errors import RegistrationError
from defi_terminal.plugins import PluginConfig, PluginLoader, PluginMetadata
from terminal_fixtures import AAVE, UNISWAP, make_uniswap_fiber


class _FakePlugin:
    def __init__(
        self,
        plugin_id: str = UNISWAP,
        *,
        fiber_id: str | None = None,
        fail_with: BaseException | None = None,
        accept_config: bool = True,
        healthy: Any = True,
    ) -> None:
        self.metadata = PluginMetadata(id=plugin_id, name="Uniswap V4", version="1.2.0")
        self.default_config = PluginConfig()
        self._fiber_id = fiber_id or plugin_id
        self._fail_with = fail_with
        self._accept_config = accept_config
        self._healthy = healthy
        self.initialized = 0
        self.cleaned_up = 0

    async def initialize(self, context: ExecutionContext):
        self.initialized += 1
        if self._fail_with is not None:
            raise self._fail_with
        if self._fiber_id == UNISWAP:
            return make_uniswap_fiber()
        return create_protocol_fiber(self._fiber_id, self._fiber_id)

    async def cleanup(self, context: ExecutionContext) -> None:
        self.cleaned_up += 1

    def validate_config(self, config: PluginConfig) -> bool:
        return self._accept_config

    async def health_check(self, context: ExecutionContext) -> bool:
        if isinstance(self._healthy, BaseException):
            raise self._healthy
        return self._healthy


class _MinimalPlugin:
    def __init__(self, plugin_id: str) -> None:
        self.metadata = PluginMetadata(id=plugin_id, name=plugin_id, version="0.1.0")
        self.default_config = PluginConfig()

    async def initialize(self, context: ExecutionContext):
        return create_protocol_fiber(self.metadata.id, self.metadata.name)


def _loader() -> tuple[PluginLoader, FiberRegistry]:
    registry = FiberRegistry()
    return PluginLoader(registry), registry


# --- load_plugin tests ---


@pytest.mark.anyio
async def test_load_plugin_registers_fiber() -> None:
    loader, registry = _loader()
    plugin = _FakePlugin()
    result = await loader.load_plugin(plugin, None, create_execution_context())

    assert result.success
    assert result.fiber is not None
    assert registry.get_fiber(UNISWAP) is result.fiber
    assert registry.lookup_local_alias(UNISWAP, "s") == "swap"
    entry = loader.get_plugin(UNISWAP)
    assert entry is not None
    assert entry.loaded
    assert entry.config is plugin.default_config
    assert entry.loaded_at is not None
    assert loader.is_plugin_loaded(UNISWAP)
    assert loader.loaded_plugin_ids() == [UNISWAP]


@pytest.mark.anyio
async def test_disabled_plugin_is_not_initialized() -> None:
    loader, registry = _loader()
    plugin = _FakePlugin()
    result = await loader.load_plugin(
        plugin, PluginConfig(enabled=False), create_execution_context()
    )
    assert not result.success
    assert isinstance(result.error, RuntimeError)
    assert plugin.initialized == 0
    assert not registry.has_fiber(UNISWAP)
    assert not loader.is_plugin_loaded(UNISWAP)


@pytest.mark.anyio
async def test_rejected_config_fails() -> None:
    loader, registry = _loader()
    plugin = _FakePlugin(accept_config=False)
    result = await loader.load_plugin(plugin, None, create_execution_context())
    assert not result.success
    assert isinstance(result.error, ValueError)
    assert plugin.initialized == 0


@pytest.mark.anyio
async def test_initialize_failure_is_recorded() -> None:
    loader, registry = _loader()
    plugin = _FakePlugin(fail_with=ConnectionError("rpc down"))
    result = await loader.load_plugin(plugin, None, create_execution_context())
    assert not result.success
    assert isinstance(result.error, ConnectionError)
    entry = loader.get_plugin(UNISWAP)
    assert entry is not None
    assert not entry.loaded
    assert entry.error is result.error
    assert not registry.has_fiber(UNISWAP)


@pytest.mark.anyio
async def test_fiber_id_mismatch_is_fatal() -> None:
    loader, registry = _loader()
    plugin = _FakePlugin(fiber_id=AAVE)
    with pytest.raises(RegistrationError) as exc_info:
        await loader.load_plugin(plugin, None, create_execution_context())
    assert exc_info.value.fiber_id == AAVE
    assert not registry.has_fiber(AAVE)
    entry = loader.get_plugin(UNISWAP)
    assert entry is not None
    assert isinstance(entry.error, RegistrationError)


@pytest.mark.anyio
async def test_registration_error_from_initialize_is_reraised() -> None:
    loader, _ = _loader()
    plugin = _FakePlugin(fail_with=RegistrationError("bad scope", command_id="swap"))
    with pytest.raises(RegistrationError):
        await loader.load_plugin(plugin, None, create_execution_context())
    assert not loader.is_plugin_loaded(UNISWAP)


# --- unload / reload tests ---


@pytest.mark.anyio
async def test_unload_calls_cleanup_and_keeps_commands() -> None:
    loader, registry = _loader()
    plugin = _FakePlugin()
    context = create_execution_context()
    await loader.load_plugin(plugin, None, context)
    await loader.unload_plugin(UNISWAP, context)

    assert plugin.cleaned_up == 1
    assert loader.get_plugin(UNISWAP) is None
    assert registry.has_fiber(UNISWAP)


@pytest.mark.anyio
async def test_unload_unknown_plugin_raises() -> None:
    loader, _ = _loader()
    with pytest.raises(KeyError):
        await loader.unload_plugin("curve", create_execution_context())


@pytest.mark.anyio
async def test_reload_reinitializes_with_same_config() -> None:
    loader, registry = _loader()
    plugin = _FakePlugin()
    context = create_execution_context()
    config = PluginConfig(config={"slippage": 0.5})
    await loader.load_plugin(plugin, config, context)
    result = await loader.reload_plugin(UNISWAP, context)

    assert result.success
    assert plugin.initialized == 2
    assert plugin.cleaned_up == 1
    entry = loader.get_plugin(UNISWAP)
    assert entry is not None
    assert entry.config is config
    assert registry.get_fiber(UNISWAP) is result.fiber


@pytest.mark.anyio
async def test_plugins_without_optional_hooks() -> None:
    loader, _ = _loader()
    context = create_execution_context()
    result = await loader.load_plugin(_MinimalPlugin(AAVE), None, context)
    assert result.success
    assert await loader.health_check_all(context) == {AAVE: True}
    await loader.unload_plugin(AAVE, context)
    assert loader.get_all_plugins() == []


# --- health check tests ---


@pytest.mark.anyio
async def test_health_check_all() -> None:
    loader, _ = _loader()
    context = create_execution_context()
    await loader.load_plugin(_FakePlugin(healthy=True), None, context)
    await loader.load_plugin(
        _FakePlugin(AAVE, healthy=RuntimeError("timeout")), None, context
    )
    await loader.load_plugin(
        _FakePlugin("curve", fail_with=ConnectionError("rpc down")), None, context
    )
    assert await loader.health_check_all(context) == {
        UNISWAP: True,
        AAVE: False,
        "curve": False,
    }
