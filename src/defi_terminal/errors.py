"""Exception types raised by the terminal core."""

from __future__ import annotations


class DefiTerminalError(Exception):
    """Base class for terminal errors."""


class ConfigError(DefiTerminalError):
    """Settings file or environment override is invalid."""


class CommandUsageError(DefiTerminalError):
    """A command was invoked with missing or malformed arguments."""


class RegistrationError(DefiTerminalError):
    """A command or fiber was registered into the wrong scope.

    Raised at plugin-load time. Hosts must surface it and stop loading the
    offending plugin instead of dropping the command.
    """

    def __init__(
        self,
        message: str,
        *,
        command_id: str | None = None,
        fiber_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.command_id = command_id
        self.fiber_id = fiber_id
