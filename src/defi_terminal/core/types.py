"""Core value types for the command algebra.

Commands live in one of three scopes: the global core pool, the global alias
pool (protocol-agnostic, bound to a protocol when resolved), or a protocol
fiber. The scope is a closed variant; only the protocol arm carries data, so
a core command tagged with a protocol cannot be built.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, TypeAlias

if TYPE_CHECKING:
    from .context import ExecutionContext

ProtocolId: TypeAlias = str
ScopeKind = Literal["core", "alias", "protocol"]

IDENTITY_COMMAND_ID = "identity"


@dataclass(frozen=True, slots=True)
class Core:
    @property
    def kind(self) -> ScopeKind:
        return "core"


@dataclass(frozen=True, slots=True)
class Alias:
    @property
    def kind(self) -> ScopeKind:
        return "alias"


@dataclass(frozen=True, slots=True)
class ProtocolScoped:
    protocol: ProtocolId

    def __post_init__(self) -> None:
        if not self.protocol or not self.protocol.strip():
            raise ValueError("protocol-scoped commands need a protocol id")

    @property
    def kind(self) -> ScopeKind:
        return "protocol"


Scope: TypeAlias = Core | Alias | ProtocolScoped

CORE = Core()
ALIAS = Alias()


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of one invocation: a value on success, an error otherwise."""

    success: bool
    value: Any = None
    error: BaseException | None = None

    @classmethod
    def ok(cls, value: Any = None) -> CommandResult:
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: BaseException | str) -> CommandResult:
        if isinstance(error, str):
            error = RuntimeError(error)
        return cls(success=False, error=error)

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        return str(self.error) or self.error.__class__.__name__


CommandRunner: TypeAlias = (
    "Callable[[Any, ExecutionContext], Awaitable[CommandResult]]"
)


def _dedupe(values: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for value in values:
        if not isinstance(value, str):
            raise TypeError(f"alias must be a string, got {type(value).__name__}")
        value = value.strip()
        if value:
            seen.setdefault(value, None)
    return tuple(seen)


@dataclass(frozen=True, slots=True)
class Command:
    """An invokable unit.

    `run` is the opaque asynchronous operation supplied by whoever builds the
    command; the core only ever awaits it through `invoke`.
    """

    id: str
    scope: Scope
    run: CommandRunner = field(repr=False, compare=False)
    description: str = ""
    aliases: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError("command id must be a non-empty string")
        object.__setattr__(self, "aliases", _dedupe(self.aliases))

    @property
    def protocol(self) -> ProtocolId | None:
        if isinstance(self.scope, ProtocolScoped):
            return self.scope.protocol
        return None

    async def invoke(self, args: Any, context: ExecutionContext) -> CommandResult:
        return await self.run(args, context)


@dataclass(slots=True)
class ProtocolFiber:
    """An isolated command namespace for one protocol.

    Build with `monoid.create_protocol_fiber` so the identity command is
    seeded; add commands with `monoid.add_command_to_fiber` or
    `FiberRegistry.add_to_fiber`.
    """

    id: ProtocolId
    name: str
    description: str = ""
    commands: dict[str, Command] = field(default_factory=dict)

    @property
    def identity(self) -> Command | None:
        return self.commands.get(IDENTITY_COMMAND_ID)

    def get(self, command_id: str) -> Command | None:
        return self.commands.get(command_id)

    def public_commands(self) -> list[Command]:
        return [
            command
            for command_id, command in self.commands.items()
            if command_id != IDENTITY_COMMAND_ID
        ]


class ResolutionMethod(Enum):
    EXACT = "exact"
    ALIAS = "alias"
    PROTOCOL_SCOPED = "protocol-scoped"
    FUZZY = "fuzzy"


@dataclass(frozen=True, slots=True)
class ResolvedCommand:
    """A concrete command picked for some input.

    `argument` is only set by the protocol-name shortcut: typing a fiber id
    resolves to `use` with that id as its argument.
    """

    command: Command
    method: ResolutionMethod
    protocol: ProtocolId | None = None
    confidence: float | None = None
    argument: str | None = None

    def __post_init__(self) -> None:
        if self.method is ResolutionMethod.FUZZY:
            if self.confidence is None or not 0.0 <= self.confidence <= 1.0:
                raise ValueError("fuzzy matches need a confidence in [0, 1]")
        elif self.confidence is not None:
            raise ValueError("only fuzzy matches carry a confidence")
