"""Command line parsing utilities."""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass

PROTOCOL_FLAG_RE = re.compile(r"(?:^|\s)--protocol(?:=|\s+)(?P<protocol>[^\s=]+)")


@dataclass(frozen=True, slots=True)
class ParsedCommandLine:
    command: str
    args_text: str
    explicit_protocol: str | None = None


def extract_protocol_flag(args_text: str) -> tuple[str, str | None]:
    """Strip a `--protocol <id>` or `--protocol=<id>` flag from the arguments.

    Returns:
        A tuple of (remaining_args, protocol). The last flag wins when the
        flag is repeated.
    """
    matches = list(PROTOCOL_FLAG_RE.finditer(args_text))
    if not matches:
        return args_text, None
    protocol = matches[-1].group("protocol")
    remaining = PROTOCOL_FLAG_RE.sub(" ", args_text)
    return " ".join(remaining.split()), protocol


def parse_command_line(text: str) -> ParsedCommandLine | None:
    """Parse a typed line into command token, arguments and protocol flag.

    Args:
        text: The raw input line.

    Returns:
        None for blank input, otherwise the parsed line. Lines after the first
        are kept in `args_text`.
    """
    stripped = text.strip()
    if not stripped:
        return None
    lines = stripped.splitlines()
    first_line = lines[0].strip()
    token, _, rest = first_line.partition(" ")
    args_text = rest.strip()
    if len(lines) > 1:
        tail = "\n".join(lines[1:])
        args_text = f"{args_text}\n{tail}" if args_text else tail
    args_text, protocol = extract_protocol_flag(args_text)
    return ParsedCommandLine(
        command=token, args_text=args_text, explicit_protocol=protocol
    )


def split_command_args(text: str) -> tuple[str, ...]:
    """Split command arguments using shell-like parsing.

    Args:
        text: The arguments text to split.

    Returns:
        A tuple of argument strings.
    """
    if not text.strip():
        return ()
    try:
        return tuple(shlex.split(text))
    except ValueError:
        return tuple(text.split())
