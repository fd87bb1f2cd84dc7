"""Per-session execution state."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from .types import Command, CommandResult, ProtocolId


@dataclass(slots=True)
class WalletState:
    address: str | None = None
    chain_id: int | None = None
    is_connected: bool = False
    is_connecting: bool = False
    is_disconnecting: bool = False


@dataclass(frozen=True, slots=True)
class ProtocolPreferences:
    """Protocol binding preferences for alias-scope commands.

    `defaults` maps a command id to its preferred protocol; `priority` is the
    fallback order when nothing else picks one.
    """

    defaults: Mapping[str, ProtocolId] = field(default_factory=dict)
    priority: tuple[ProtocolId, ...] = ()


@dataclass(frozen=True, slots=True)
class ExecutionRecord:
    command_id: str
    protocol: ProtocolId | None
    timestamp: datetime
    success: bool
    error: BaseException | None = None
    args: Any = None

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        return str(self.error) or self.error.__class__.__name__


@dataclass(slots=True)
class ExecutionContext:
    """Mutable session state threaded through resolution and invocation.

    Commands may change `active_protocol` and their own entry in
    `protocol_state` while they run. Hosts publish those changes by swapping
    in the snapshot returned from `update_context`.
    """

    active_protocol: ProtocolId | None = None
    preferences: ProtocolPreferences = field(default_factory=ProtocolPreferences)
    wallet: WalletState = field(default_factory=WalletState)
    global_state: dict[str, Any] = field(default_factory=dict)
    protocol_state: dict[ProtocolId, Any] = field(default_factory=dict)
    history: tuple[ExecutionRecord, ...] = ()

    def state_for(self, protocol: ProtocolId, default: Any = None) -> Any:
        return self.protocol_state.get(protocol, default)

    def set_state(self, protocol: ProtocolId, value: Any) -> None:
        self.protocol_state[protocol] = value


def create_execution_context(
    *,
    preferences: ProtocolPreferences | None = None,
    wallet: WalletState | None = None,
) -> ExecutionContext:
    return ExecutionContext(
        preferences=preferences if preferences is not None else ProtocolPreferences(),
        wallet=wallet if wallet is not None else WalletState(),
    )


def update_context(
    context: ExecutionContext,
    command: Command,
    args: Any,
    result: CommandResult,
    protocol: ProtocolId | None = None,
    *,
    store_args: bool = False,
) -> ExecutionContext:
    """Return the next context snapshot after an invocation.

    The returned object is always new, so callers comparing by identity see
    the change. Wallet and the state dictionaries are copied; preferences are
    immutable and shared. The state copies are shallow: the per-protocol
    values themselves are shared between snapshots, so commands replace a
    protocol's state with `set_state` rather than mutating it in place.
    """
    record = ExecutionRecord(
        command_id=command.id,
        protocol=protocol,
        timestamp=datetime.now(UTC),
        success=result.success,
        error=None if result.success else result.error,
        args=args if store_args else None,
    )
    return ExecutionContext(
        active_protocol=context.active_protocol,
        preferences=context.preferences,
        wallet=replace(context.wallet),
        global_state=dict(context.global_state),
        protocol_state=dict(context.protocol_state),
        history=(*context.history, record),
    )
