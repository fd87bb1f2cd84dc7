"""Command handling for the terminal.

This module provides command line parsing, the built-in command set, and the
session host that dispatches input lines.
"""

from __future__ import annotations

from .builtin import BUILTIN_COMMAND_IDS, build_builtin_commands, register_builtin_commands
from .executor import CommandHost, DispatchOutcome
from .parse import (
    ParsedCommandLine,
    extract_protocol_flag,
    parse_command_line,
    split_command_args,
)

__all__ = [
    "BUILTIN_COMMAND_IDS",
    "CommandHost",
    "DispatchOutcome",
    "ParsedCommandLine",
    "build_builtin_commands",
    "extract_protocol_flag",
    "parse_command_line",
    "register_builtin_commands",
    "split_command_args",
]
