"""Fiber registry: the global command monoid.

The registry owns three disjoint pools: core commands, alias-scope commands,
and one fiber per protocol. Aliases declared by core and alias-scope commands
land in the global alias table; aliases declared inside a fiber are only
reachable through that fiber's local table.

The registry is populated during startup and read-only afterwards. Hosts that
load plugins at runtime must not mutate it while a resolution is in flight.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from ..errors import RegistrationError
from ..log import get_logger
from .context import ExecutionContext
from .fuzzy import (
    DEFAULT_AUTOCOMPLETE_LIMIT,
    DEFAULT_AUTOCOMPLETE_THRESHOLD,
    DEFAULT_FUZZY_THRESHOLD,
    Suggestion,
    autocomplete,
    fuzzy_resolve,
)
from .monoid import add_command_to_fiber, check_fiber_membership
from .resolver import resolve_exact
from .types import (
    IDENTITY_COMMAND_ID,
    Alias,
    Command,
    Core,
    ProtocolFiber,
    ProtocolId,
    ProtocolScoped,
    ResolvedCommand,
    ScopeKind,
)

logger = get_logger("defi_terminal.registry")

NAMESPACE_SEPARATOR = ":"


def _drop_stale_aliases(table: dict[str, str], previous: Command | None) -> None:
    # Only entries still owned by the replaced command are removed.
    if previous is None:
        return
    for alias in previous.aliases:
        if table.get(alias) == previous.id:
            del table[alias]


class FiberRegistry:
    def __init__(self) -> None:
        self._core: dict[str, Command] = {}
        self._aliased: dict[str, Command] = {}
        self._fibers: dict[ProtocolId, ProtocolFiber] = {}
        self._global_aliases: dict[str, str] = {}
        self._local_aliases: dict[ProtocolId, dict[str, str]] = {}

    # registration

    def register_core(self, command: Command) -> None:
        if not isinstance(command.scope, Core):
            raise RegistrationError(
                f"command {command.id!r} must have core scope, "
                f"got {command.scope.kind}",
                command_id=command.id,
                fiber_id=command.protocol,
            )
        _drop_stale_aliases(self._global_aliases, self._core.get(command.id))
        self._core[command.id] = command
        self._register_global_aliases(command)
        logger.debug("registry.core_registered", command=command.id)

    def register_alias(self, command: Command) -> None:
        if not isinstance(command.scope, Alias):
            raise RegistrationError(
                f"command {command.id!r} must have alias scope, "
                f"got {command.scope.kind}",
                command_id=command.id,
                fiber_id=command.protocol,
            )
        _drop_stale_aliases(self._global_aliases, self._aliased.get(command.id))
        self._aliased[command.id] = command
        self._register_global_aliases(command)
        logger.debug("registry.alias_command_registered", command=command.id)

    def register_fiber(self, fiber: ProtocolFiber) -> None:
        identity = fiber.commands.get(IDENTITY_COMMAND_ID)
        if identity is None or identity.protocol != fiber.id:
            raise RegistrationError(
                f"fiber {fiber.id!r} is missing its identity command",
                command_id=IDENTITY_COMMAND_ID,
                fiber_id=fiber.id,
            )
        for key, command in fiber.commands.items():
            check_fiber_membership(fiber, command)
            if key != command.id:
                raise RegistrationError(
                    f"fiber {fiber.id!r} stores command {command.id!r} "
                    f"under key {key!r}",
                    command_id=command.id,
                    fiber_id=fiber.id,
                )

        previous = self._fibers.get(fiber.id)
        if previous is not None and previous is not fiber:
            logger.warning("registry.fiber_replaced", fiber=fiber.id)
        self._fibers[fiber.id] = fiber
        self._local_aliases[fiber.id] = {}
        for command in fiber.commands.values():
            self._register_local_aliases(fiber.id, command)
        logger.info(
            "registry.fiber_registered",
            fiber=fiber.id,
            commands=len(fiber.commands),
        )

    def add_to_fiber(self, fiber: ProtocolFiber, command: Command) -> None:
        previous = fiber.commands.get(command.id)
        add_command_to_fiber(fiber, command)
        if self._fibers.get(fiber.id) is fiber:
            _drop_stale_aliases(self._local_aliases.get(fiber.id, {}), previous)
            self._register_local_aliases(fiber.id, command)

    def _register_global_aliases(self, command: Command) -> None:
        for alias in command.aliases:
            previous = self._global_aliases.get(alias)
            if previous is not None and previous != command.id:
                logger.debug(
                    "registry.alias_overwritten",
                    alias=alias,
                    previous=previous,
                    command=command.id,
                )
            self._global_aliases[alias] = command.id

    def _register_local_aliases(self, protocol: ProtocolId, command: Command) -> None:
        table = self._local_aliases.setdefault(protocol, {})
        for alias in command.aliases:
            previous = table.get(alias)
            if previous is not None and previous != command.id:
                logger.debug(
                    "registry.alias_overwritten",
                    alias=f"{protocol}{NAMESPACE_SEPARATOR}{alias}",
                    previous=previous,
                    command=command.id,
                )
            table[alias] = command.id

    # lookups used by the resolvers

    def core_command(self, command_id: str) -> Command | None:
        return self._core.get(command_id)

    def alias_command(self, command_id: str) -> Command | None:
        return self._aliased.get(command_id)

    def lookup_alias(self, alias: str) -> str | None:
        return self._global_aliases.get(alias)

    def lookup_local_alias(self, protocol: ProtocolId, alias: str) -> str | None:
        table = self._local_aliases.get(protocol)
        if table is None:
            return None
        return table.get(alias)

    def has_fiber(self, protocol: ProtocolId) -> bool:
        return protocol in self._fibers

    @property
    def core_commands(self) -> Mapping[str, Command]:
        return MappingProxyType(self._core)

    @property
    def aliased_commands(self) -> Mapping[str, Command]:
        return MappingProxyType(self._aliased)

    @property
    def fibers(self) -> Mapping[ProtocolId, ProtocolFiber]:
        return MappingProxyType(self._fibers)

    def alias_table(self) -> dict[str, str]:
        """Return every alias, namespaced ones keyed as `<protocol>:<alias>`."""
        table = dict(self._global_aliases)
        for protocol, local in self._local_aliases.items():
            for alias, command_id in local.items():
                table[f"{protocol}{NAMESPACE_SEPARATOR}{alias}"] = command_id
        return table

    # introspection

    def get_fiber(self, protocol: ProtocolId) -> ProtocolFiber | None:
        return self._fibers.get(protocol)

    def get_protocols(self) -> list[ProtocolId]:
        return list(self._fibers)

    def project(self, command: Command) -> ProtocolId | None:
        """Map a command to the protocol namespace it lives in."""
        if isinstance(command.scope, ProtocolScoped):
            return command.scope.protocol
        return None

    def get_all_commands(self) -> list[Command]:
        commands = [*self._core.values(), *self._aliased.values()]
        for fiber in self._fibers.values():
            commands.extend(fiber.commands.values())
        return commands

    def get_commands_by_scope(self, kind: ScopeKind) -> list[Command]:
        if kind == "core":
            return list(self._core.values())
        if kind == "alias":
            return list(self._aliased.values())
        if kind == "protocol":
            return [
                command
                for fiber in self._fibers.values()
                for command in fiber.commands.values()
            ]
        raise ValueError(f"unknown scope kind {kind!r}")

    # resolution

    def resolve(
        self,
        text: str,
        context: ExecutionContext,
        explicit_protocol: ProtocolId | None = None,
    ) -> ResolvedCommand | None:
        return resolve_exact(self, text, context, explicit_protocol)

    def fuzzy_resolve(
        self,
        text: str,
        context: ExecutionContext,
        threshold: float = DEFAULT_FUZZY_THRESHOLD,
        explicit_protocol: ProtocolId | None = None,
    ) -> list[ResolvedCommand]:
        return fuzzy_resolve(
            self, text, context, threshold, explicit_protocol=explicit_protocol
        )

    def autocomplete(
        self,
        text: str,
        context: ExecutionContext,
        *,
        threshold: float = DEFAULT_AUTOCOMPLETE_THRESHOLD,
        limit: int = DEFAULT_AUTOCOMPLETE_LIMIT,
        min_chars: int = 1,
    ) -> list[Suggestion]:
        return autocomplete(
            self,
            text,
            context,
            threshold=threshold,
            limit=limit,
            min_chars=min_chars,
        )
