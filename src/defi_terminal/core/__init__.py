"""Command algebra, fiber registry and resolvers."""

from __future__ import annotations

from .context import (
    ExecutionContext,
    ExecutionRecord,
    ProtocolPreferences,
    WalletState,
    create_execution_context,
    update_context,
)
from .fuzzy import Suggestion, levenshtein, similarity
from .monoid import (
    add_command_to_fiber,
    compose_commands,
    create_protocol_fiber,
    identity_command,
    verify_fiber_closure,
    verify_monoid_laws,
)
from .registry import FiberRegistry
from .types import (
    ALIAS,
    CORE,
    Alias,
    Command,
    CommandResult,
    Core,
    ProtocolFiber,
    ProtocolId,
    ProtocolScoped,
    ResolutionMethod,
    ResolvedCommand,
    Scope,
)

__all__ = [
    "ALIAS",
    "CORE",
    "Alias",
    "Command",
    "CommandResult",
    "Core",
    "ExecutionContext",
    "ExecutionRecord",
    "FiberRegistry",
    "ProtocolFiber",
    "ProtocolId",
    "ProtocolPreferences",
    "ProtocolScoped",
    "ResolutionMethod",
    "ResolvedCommand",
    "Scope",
    "Suggestion",
    "WalletState",
    "add_command_to_fiber",
    "compose_commands",
    "create_execution_context",
    "create_protocol_fiber",
    "identity_command",
    "levenshtein",
    "similarity",
    "update_context",
    "verify_fiber_closure",
    "verify_monoid_laws",
]
