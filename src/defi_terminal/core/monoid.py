"""Command composition and protocol fibers.

Commands form a monoid under `compose_commands`. Every protocol fiber is a
submonoid: it is seeded with its own identity command and composing two of
its commands yields a command tagged with the same protocol. Composition
across fibers or scopes lands in the global core scope.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..errors import RegistrationError
from .context import ExecutionContext
from .types import (
    ALIAS,
    CORE,
    IDENTITY_COMMAND_ID,
    Alias,
    Command,
    CommandResult,
    ProtocolFiber,
    ProtocolId,
    ProtocolScoped,
    Scope,
)


async def _pass_through(args: Any, context: ExecutionContext) -> CommandResult:
    return CommandResult.ok(args)


identity_command = Command(
    id=IDENTITY_COMMAND_ID,
    scope=CORE,
    run=_pass_through,
    description="Identity operation (no-op) for global scope",
)


def composite_scope(f: Command, g: Command) -> Scope:
    if (
        isinstance(f.scope, ProtocolScoped)
        and isinstance(g.scope, ProtocolScoped)
        and f.scope.protocol == g.scope.protocol
    ):
        return f.scope
    if isinstance(f.scope, Alias) and isinstance(g.scope, Alias):
        return ALIAS
    return CORE


def compose_commands(f: Command, g: Command) -> Command:
    """Build the command that runs `f`, then feeds its value into `g`.

    A failure from `f` short-circuits: `g` never runs and the composite
    returns `f`'s result unchanged.
    """

    async def run(args: Any, context: ExecutionContext) -> CommandResult:
        first = await f.invoke(args, context)
        if not first.success:
            return first
        return await g.invoke(first.value, context)

    return Command(
        id=f"{f.id}_then_{g.id}",
        scope=composite_scope(f, g),
        run=run,
        description=f"{f.description or f.id} then {g.description or g.id}",
    )


def create_protocol_fiber(
    protocol_id: ProtocolId, name: str, description: str = ""
) -> ProtocolFiber:
    if not protocol_id or not protocol_id.strip():
        raise ValueError("fiber id must be a non-empty string")
    if ":" in protocol_id:
        raise ValueError(f"fiber id {protocol_id!r} cannot contain ':'")
    fiber = ProtocolFiber(id=protocol_id, name=name or protocol_id, description=description)
    fiber.commands[IDENTITY_COMMAND_ID] = Command(
        id=IDENTITY_COMMAND_ID,
        scope=ProtocolScoped(protocol_id),
        run=_pass_through,
        description=f"Identity operation for {fiber.name}",
    )
    return fiber


def check_fiber_membership(fiber: ProtocolFiber, command: Command) -> None:
    """Raise `RegistrationError` unless `command` may live in `fiber`."""
    if not isinstance(command.scope, ProtocolScoped):
        raise RegistrationError(
            f"cannot add {command.scope.kind} command {command.id!r} "
            f"to protocol fiber {fiber.id!r}",
            command_id=command.id,
            fiber_id=fiber.id,
        )
    if command.scope.protocol != fiber.id:
        raise RegistrationError(
            f"command {command.id!r} is tagged with protocol "
            f"{command.scope.protocol!r} but fiber is {fiber.id!r}",
            command_id=command.id,
            fiber_id=fiber.id,
        )


def add_command_to_fiber(fiber: ProtocolFiber, command: Command) -> None:
    check_fiber_membership(fiber, command)
    if command.id == IDENTITY_COMMAND_ID:
        raise RegistrationError(
            f"fiber {fiber.id!r} already owns its identity command",
            command_id=command.id,
            fiber_id=fiber.id,
        )
    fiber.commands[command.id] = command


@dataclass(frozen=True, slots=True)
class FiberClosureReport:
    valid: bool
    reason: str | None = None
    composed: Command | None = None


@dataclass(frozen=True, slots=True)
class MonoidLawReport:
    left_identity: bool
    right_identity: bool
    associativity: bool

    @property
    def holds(self) -> bool:
        return self.left_identity and self.right_identity and self.associativity


def verify_fiber_closure(
    fiber: ProtocolFiber, f: Command, g: Command
) -> FiberClosureReport:
    for command in (f, g):
        if command.protocol != fiber.id:
            return FiberClosureReport(
                valid=False, reason=f"command {command.id} is not in fiber {fiber.id}"
            )
    composed = compose_commands(f, g)
    if composed.protocol != fiber.id:
        return FiberClosureReport(
            valid=False,
            reason=f"composed command has scope {composed.scope.kind}, "
            f"expected protocol {fiber.id}",
            composed=composed,
        )
    return FiberClosureReport(valid=True, composed=composed)


def same_outcome(a: CommandResult, b: CommandResult) -> bool:
    """Compare two results by observable outcome.

    Errors match when they share type and message, so two runs that raise
    fresh exceptions still compare equal.
    """
    if a.success != b.success:
        return False
    if a.success:
        return a.value == b.value
    return type(a.error) is type(b.error) and str(a.error) == str(b.error)


async def verify_monoid_laws(
    f: Command,
    test_input: Any,
    context: ExecutionContext,
    g: Command | None = None,
    h: Command | None = None,
    *,
    identity: Command | None = None,
) -> MonoidLawReport:
    """Check identity and associativity laws by running the commands.

    Pass a fiber's identity to check the laws inside that fiber; the global
    identity is used otherwise. `g` and `h` default to the identity, which
    makes the associativity check trivial.
    """
    e = identity if identity is not None else identity_command
    g = g if g is not None else e
    h = h if h is not None else e

    direct = await f.invoke(test_input, context)
    left = await compose_commands(e, f).invoke(test_input, context)
    right = await compose_commands(f, e).invoke(test_input, context)

    left_assoc = compose_commands(compose_commands(f, g), h)
    right_assoc = compose_commands(f, compose_commands(g, h))
    left_assoc_result = await left_assoc.invoke(test_input, context)
    right_assoc_result = await right_assoc.invoke(test_input, context)

    return MonoidLawReport(
        left_identity=same_outcome(left, direct),
        right_identity=same_outcome(right, direct),
        associativity=same_outcome(left_assoc_result, right_assoc_result),
    )
