"""Exact command resolution.

Priority, first hit wins:

1. input equal to a fiber id resolves to `use <id>`
2. alias lookup: global table first, then the active fiber's local table
3. core command by (alias-resolved) id
4. alias-scope command, bound to a protocol at resolution time
5. `<protocol>:<command>` syntax, blocked when another fiber is active
6. `--protocol` flag, only while no fiber is active
7. the active fiber

A miss returns None; so does a blocked cross-fiber reference.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..log import get_logger
from .context import ExecutionContext
from .types import ProtocolId, ResolutionMethod, ResolvedCommand

if TYPE_CHECKING:
    from .registry import FiberRegistry

logger = get_logger("defi_terminal.resolver")

USE_COMMAND_ID = "use"


def bind_protocol(
    command_id: str,
    context: ExecutionContext,
    explicit_protocol: ProtocolId | None = None,
) -> ProtocolId | None:
    """Pick the protocol an alias-scope command runs against."""
    if explicit_protocol:
        return explicit_protocol
    preferred = context.preferences.defaults.get(command_id)
    if preferred:
        return preferred
    if context.active_protocol:
        return context.active_protocol
    if context.preferences.priority:
        return context.preferences.priority[0]
    return None


def split_namespaced(text: str) -> tuple[ProtocolId, str] | None:
    protocol, sep, command_id = text.partition(":")
    if not sep or not protocol or not command_id:
        return None
    return protocol, command_id


def resolve_exact(
    registry: FiberRegistry,
    text: str,
    context: ExecutionContext,
    explicit_protocol: ProtocolId | None = None,
) -> ResolvedCommand | None:
    raw = text.strip()
    if not raw:
        return None
    active = context.active_protocol

    if registry.has_fiber(raw):
        use_command = registry.core_command(USE_COMMAND_ID)
        if use_command is not None:
            return ResolvedCommand(
                command=use_command, method=ResolutionMethod.EXACT, argument=raw
            )

    resolved_id = registry.lookup_alias(raw)
    if resolved_id is None and active:
        resolved_id = registry.lookup_local_alias(active, raw)
    if resolved_id is None:
        resolved_id = raw

    core_command = registry.core_command(resolved_id)
    if core_command is not None:
        return ResolvedCommand(command=core_command, method=ResolutionMethod.EXACT)

    aliased = registry.alias_command(resolved_id)
    if aliased is not None:
        return ResolvedCommand(
            command=aliased,
            method=ResolutionMethod.ALIAS,
            protocol=bind_protocol(resolved_id, context, explicit_protocol),
        )

    namespaced = split_namespaced(raw)
    if namespaced is not None:
        protocol, command_id = namespaced
        if active and protocol != active:
            logger.debug(
                "resolver.cross_fiber_blocked",
                input=raw,
                active_protocol=active,
                target_protocol=protocol,
            )
            return None
        fiber = registry.get_fiber(protocol)
        if fiber is not None:
            command = fiber.get(command_id)
            if command is None:
                local_id = registry.lookup_local_alias(protocol, command_id)
                command = fiber.get(local_id) if local_id is not None else None
            if command is not None:
                return ResolvedCommand(
                    command=command,
                    method=ResolutionMethod.PROTOCOL_SCOPED,
                    protocol=protocol,
                )

    if explicit_protocol and not active:
        fiber = registry.get_fiber(explicit_protocol)
        command = fiber.get(resolved_id) if fiber is not None else None
        if command is not None:
            return ResolvedCommand(
                command=command,
                method=ResolutionMethod.PROTOCOL_SCOPED,
                protocol=explicit_protocol,
            )

    if active:
        fiber = registry.get_fiber(active)
        command = fiber.get(resolved_id) if fiber is not None else None
        if command is not None:
            return ResolvedCommand(
                command=command,
                method=ResolutionMethod.PROTOCOL_SCOPED,
                protocol=active,
            )

    return None
