"""Content builders for built-in command payloads."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..core.context import ExecutionContext
    from ..core.registry import FiberRegistry
    from ..core.types import Command, ProtocolFiber

NO_DESCRIPTION = "No description"


def _build_command_entry(command: Command) -> dict[str, Any]:
    return {
        "id": command.id,
        "description": command.description or NO_DESCRIPTION,
        "aliases": list(command.aliases),
    }


def _build_fiber_entry(fiber: ProtocolFiber) -> dict[str, Any]:
    return {
        "id": fiber.id,
        "name": fiber.name or fiber.id,
        "commands": [_build_command_entry(cmd) for cmd in fiber.public_commands()],
    }


def _build_help_content(
    registry: FiberRegistry, active_protocol: str | None = None
) -> dict[str, Any]:
    """Build the `help` payload.

    Inside a fiber only that fiber is listed, matching what the resolver can
    actually reach.
    """
    protocols = (
        [active_protocol] if active_protocol else registry.get_protocols()
    )
    content: dict[str, Any] = {
        "message": "Available commands",
        "core": [_build_command_entry(cmd) for cmd in registry.core_commands.values()],
        "aliases": [],
        "protocols": [],
    }
    if not active_protocol:
        content["aliases"] = [
            _build_command_entry(cmd) for cmd in registry.aliased_commands.values()
        ]
    for protocol_id in protocols:
        fiber = registry.get_fiber(protocol_id)
        if fiber is not None:
            content["protocols"].append(_build_fiber_entry(fiber))
    if active_protocol:
        content["active_protocol"] = active_protocol
    return content


def _build_protocols_content(registry: FiberRegistry) -> list[dict[str, Any]]:
    entries: list[dict[str, Any]] = []
    for protocol_id in registry.get_protocols():
        fiber = registry.get_fiber(protocol_id)
        if fiber is None:
            continue
        entries.append(
            {
                "id": protocol_id,
                "name": fiber.name or protocol_id,
                "description": fiber.description or NO_DESCRIPTION,
                "command_count": len(fiber.public_commands()),
            }
        )
    return entries


def _build_history_content(
    context: ExecutionContext, limit: int | None = None
) -> list[dict[str, Any]]:
    records = list(enumerate(context.history, start=1))
    if limit is not None:
        records = records[-limit:] if limit > 0 else []
    return [
        {
            "index": index,
            "command": record.command_id,
            "protocol": record.protocol,
            "timestamp": record.timestamp.isoformat(),
            "success": record.success,
            "error": record.error_message,
        }
        for index, record in records
    ]
