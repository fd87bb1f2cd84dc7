"""Built-in core commands."""

from __future__ import annotations

from collections.abc import Mapping
from functools import partial
from typing import Any

from .. import __version__
from ..core.context import ExecutionContext
from ..core.registry import FiberRegistry
from ..core.types import CORE, Command, CommandResult
from ..errors import CommandUsageError
from ..log import get_logger
from .content_builders import (
    _build_help_content,
    _build_history_content,
    _build_protocols_content,
)
from .parse import split_command_args

logger = get_logger("defi_terminal.commands.builtin")

BUILTIN_COMMAND_IDS = frozenset(
    {
        "help",
        "protocols",
        "use",
        "exit",
        "history",
        "clear",
        "version",
    }
)

USE_USAGE = "usage: `use <protocol-id>`"
HISTORY_USAGE = "usage: `history` or `history <count>`"
TERMINAL_NAME = "DeFi Terminal"


def _first_arg(args: Any, key: str) -> str | None:
    if isinstance(args, Mapping):
        value = args.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip() or None
        return None
    if isinstance(args, str):
        tokens = split_command_args(args)
        return tokens[0] if tokens else None
    return None


async def _handle_help_command(
    registry: FiberRegistry, args: Any, context: ExecutionContext
) -> CommandResult:
    return CommandResult.ok(_build_help_content(registry, context.active_protocol))


async def _handle_protocols_command(
    registry: FiberRegistry, args: Any, context: ExecutionContext
) -> CommandResult:
    return CommandResult.ok(_build_protocols_content(registry))


async def _handle_use_command(
    registry: FiberRegistry, args: Any, context: ExecutionContext
) -> CommandResult:
    protocol_id = _first_arg(args, "protocol")
    if protocol_id is None:
        return CommandResult.fail(
            CommandUsageError(f"protocol id required. {USE_USAGE}")
        )
    fiber = registry.get_fiber(protocol_id)
    if fiber is None:
        available = ", ".join(registry.get_protocols()) or "none"
        return CommandResult.fail(
            CommandUsageError(
                f"protocol {protocol_id!r} not found. available protocols: {available}"
            )
        )
    previous = context.active_protocol
    context.active_protocol = protocol_id
    logger.info(
        "commands.protocol_entered", protocol=protocol_id, previous=previous
    )
    return CommandResult.ok(
        {
            "message": f"Active protocol set to: {fiber.name}",
            "protocol": protocol_id,
        }
    )


async def _handle_exit_command(
    registry: FiberRegistry, args: Any, context: ExecutionContext
) -> CommandResult:
    previous = context.active_protocol
    if previous is None:
        return CommandResult.ok({"message": "no active protocol", "protocol": None})
    context.active_protocol = None
    logger.info("commands.protocol_exited", protocol=previous)
    return CommandResult.ok(
        {"message": f"Left protocol: {previous}", "protocol": previous}
    )


async def _handle_history_command(
    registry: FiberRegistry, args: Any, context: ExecutionContext
) -> CommandResult:
    limit: int | None = None
    token = _first_arg(args, "limit")
    if token is not None:
        try:
            limit = int(token)
        except ValueError:
            return CommandResult.fail(CommandUsageError(HISTORY_USAGE))
        if limit < 0:
            return CommandResult.fail(CommandUsageError(HISTORY_USAGE))
    return CommandResult.ok(_build_history_content(context, limit))


async def _handle_clear_command(
    registry: FiberRegistry, args: Any, context: ExecutionContext
) -> CommandResult:
    return CommandResult.ok({"cleared": True})


async def _handle_version_command(
    registry: FiberRegistry, args: Any, context: ExecutionContext
) -> CommandResult:
    return CommandResult.ok(
        {
            "name": TERMINAL_NAME,
            "version": __version__,
            "architecture": "Fibered Monoid",
        }
    )


def build_builtin_commands(registry: FiberRegistry) -> list[Command]:
    """Build the core command set bound to `registry`."""

    def _command(
        command_id: str, handler, description: str, aliases: tuple[str, ...]
    ) -> Command:
        return Command(
            id=command_id,
            scope=CORE,
            run=partial(handler, registry),
            description=description,
            aliases=aliases,
        )

    return [
        _command(
            "help", _handle_help_command, "Display available commands", ("h", "?")
        ),
        _command(
            "protocols",
            _handle_protocols_command,
            "List all available protocols",
            ("ls-protocols", "list-protocols"),
        ),
        _command(
            "use",
            _handle_use_command,
            "Set the active protocol",
            ("protocol", "set-protocol"),
        ),
        _command("exit", _handle_exit_command, "Leave the active protocol", ("leave",)),
        _command(
            "history", _handle_history_command, "Show command execution history", ("hist",)
        ),
        _command("clear", _handle_clear_command, "Clear the terminal", ("cls",)),
        _command(
            "version", _handle_version_command, "Show terminal version", ("v", "ver")
        ),
    ]


def register_builtin_commands(registry: FiberRegistry) -> list[Command]:
    commands = build_builtin_commands(registry)
    for command in commands:
        registry.register_core(command)
    return commands
