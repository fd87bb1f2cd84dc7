"""Session host: parse a line, resolve it, invoke, and record the result."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

import anyio

from ..config import TerminalSettings
from ..core.context import ExecutionContext, update_context
from ..core.registry import FiberRegistry
from ..core.types import CommandResult, ResolvedCommand
from ..input_history import InputHistoryStore
from ..log import get_logger
from .parse import parse_command_line

logger = get_logger("defi_terminal.commands.executor")


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    """What happened to one input line.

    `resolved` is None when nothing matched; `suggestions` then holds the
    closest fuzzy matches. `result` is None for blank input and misses.
    """

    text: str
    resolved: ResolvedCommand | None = None
    result: CommandResult | None = None
    suggestions: tuple[ResolvedCommand, ...] = ()

    @property
    def matched(self) -> bool:
        return self.resolved is not None

    @property
    def success(self) -> bool:
        return self.result is not None and self.result.success


def _working_copy(context: ExecutionContext) -> ExecutionContext:
    # Shallow: nested state values are shared with the published snapshot.
    return replace(
        context,
        wallet=replace(context.wallet),
        global_state=dict(context.global_state),
        protocol_state=dict(context.protocol_state),
    )


def _invocation_args(resolved: ResolvedCommand, args_text: str) -> Any:
    # Typing a fiber id always enters that fiber; trailing text is ignored.
    if resolved.argument is not None:
        return resolved.argument
    return args_text


class CommandHost:
    def __init__(
        self,
        registry: FiberRegistry,
        context: ExecutionContext,
        settings: TerminalSettings | None = None,
        *,
        history_store: InputHistoryStore | None = None,
    ) -> None:
        self._registry = registry
        self._context = context
        self._settings = settings if settings is not None else TerminalSettings()
        self._history_store = history_store
        self._lock = anyio.Lock()

    @property
    def registry(self) -> FiberRegistry:
        return self._registry

    @property
    def context(self) -> ExecutionContext:
        return self._context

    @property
    def settings(self) -> TerminalSettings:
        return self._settings

    async def dispatch(self, text: str) -> DispatchOutcome:
        """Run one input line against the current context.

        Dispatches are serialized so each one sees the context left by the
        previous one.
        """
        async with self._lock:
            return await self._dispatch_locked(text)

    async def _dispatch_locked(self, text: str) -> DispatchOutcome:
        parsed = parse_command_line(text)
        if parsed is None:
            return DispatchOutcome(text=text)
        if self._history_store is not None:
            try:
                await self._history_store.append(text)
            except OSError as exc:
                logger.warning(
                    "executor.history_append_failed",
                    path=str(self._history_store.path),
                    error=str(exc),
                )

        # Commands mutate a working copy; the published snapshot never changes.
        context = _working_copy(self._context)
        resolved = self._registry.resolve(
            parsed.command, context, parsed.explicit_protocol
        )
        if resolved is None:
            matches = self._registry.fuzzy_resolve(
                parsed.command,
                context,
                self._settings.fuzzy_threshold,
                parsed.explicit_protocol,
            )
            suggestions = tuple(matches[: self._settings.suggestion_limit])
            logger.info(
                "executor.unresolved",
                command=parsed.command,
                active_protocol=context.active_protocol,
                suggestions=[s.command.id for s in suggestions],
            )
            return DispatchOutcome(text=text, suggestions=suggestions)

        command = resolved.command
        args = _invocation_args(resolved, parsed.args_text)
        try:
            result = await command.invoke(args, context)
        except Exception as exc:
            logger.exception(
                "executor.invoke_failed",
                command=command.id,
                protocol=resolved.protocol,
            )
            result = CommandResult.fail(exc)
        if not result.success:
            logger.warning(
                "executor.command_failed",
                command=command.id,
                protocol=resolved.protocol,
                error=result.error_message,
            )
        else:
            logger.debug(
                "executor.command_succeeded",
                command=command.id,
                protocol=resolved.protocol,
                method=resolved.method.value,
            )

        self._context = update_context(
            context, command, args, result, resolved.protocol
        )
        return DispatchOutcome(text=text, resolved=resolved, result=result)

    def complete(self, text: str) -> list[str]:
        """Autocomplete the command token of a partially typed line."""
        suggestions = self._registry.autocomplete(
            text,
            self._context,
            threshold=self._settings.autocomplete_threshold,
            limit=self._settings.autocomplete_limit,
        )
        return [s.text for s in suggestions]
