"""Approximate command matching.

Similarity is normalized Levenshtein distance over lower-cased strings:
`(max_len - distance) / max_len`, with two empty strings scoring 1.0.
Candidates follow the same isolation rules as exact resolution: inside a
fiber only that fiber's commands (plus core commands) are considered.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from .context import ExecutionContext
from .resolver import bind_protocol
from .types import Command, ProtocolId, ResolutionMethod, ResolvedCommand

if TYPE_CHECKING:
    from .registry import FiberRegistry

DEFAULT_FUZZY_THRESHOLD = 0.6
DEFAULT_AUTOCOMPLETE_THRESHOLD = 0.3
DEFAULT_AUTOCOMPLETE_LIMIT = 8


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + cost,
                )
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - levenshtein(a, b)) / longest


def _check_threshold(threshold: float) -> None:
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must be within [0, 1], got {threshold!r}")


@dataclass(frozen=True, slots=True)
class Candidate:
    command: Command
    protocol: ProtocolId | None

    def names(self) -> tuple[str, ...]:
        return (self.command.id, *self.command.aliases)


def collect_candidates(
    registry: FiberRegistry,
    context: ExecutionContext,
    explicit_protocol: ProtocolId | None = None,
) -> list[Candidate]:
    candidates = [
        Candidate(command=command, protocol=None)
        for command in registry.core_commands.values()
    ]
    active = context.active_protocol
    if active:
        fiber = registry.get_fiber(active)
        if fiber is not None:
            candidates.extend(
                Candidate(command=command, protocol=active)
                for command in fiber.public_commands()
            )
        return candidates

    for command_id, command in registry.aliased_commands.items():
        candidates.append(
            Candidate(
                command=command,
                protocol=bind_protocol(command_id, context, explicit_protocol),
            )
        )
    for protocol, fiber in registry.fibers.items():
        candidates.extend(
            Candidate(command=command, protocol=protocol)
            for command in fiber.public_commands()
        )
    return candidates


def fuzzy_resolve(
    registry: FiberRegistry,
    text: str,
    context: ExecutionContext,
    threshold: float = DEFAULT_FUZZY_THRESHOLD,
    *,
    explicit_protocol: ProtocolId | None = None,
) -> list[ResolvedCommand]:
    """Return every match at or above `threshold`, best first.

    A command appears once for its id and once for each alias that clears
    the threshold. Ties keep registration order.
    """
    _check_threshold(threshold)
    needle = text.strip().lower()
    matches: list[ResolvedCommand] = []
    for candidate in collect_candidates(registry, context, explicit_protocol):
        for name in candidate.names():
            score = similarity(needle, name.lower())
            if score >= threshold:
                matches.append(
                    ResolvedCommand(
                        command=candidate.command,
                        method=ResolutionMethod.FUZZY,
                        protocol=candidate.protocol,
                        confidence=score,
                    )
                )
    matches.sort(key=lambda match: match.confidence or 0.0, reverse=True)
    return matches


@dataclass(frozen=True, slots=True)
class Suggestion:
    """One autocomplete entry; `text` is what the user would type."""

    text: str
    command: Command
    protocol: ProtocolId | None
    kind: Literal["prefix", "fuzzy"]
    score: float


def completion_text(candidate: Candidate, name: str, active: ProtocolId | None) -> str:
    # Outside any fiber, protocol commands are only reachable namespaced.
    if candidate.command.protocol is not None and not active:
        return f"{candidate.protocol}:{name}"
    return name


def autocomplete(
    registry: FiberRegistry,
    text: str,
    context: ExecutionContext,
    *,
    threshold: float = DEFAULT_AUTOCOMPLETE_THRESHOLD,
    limit: int = DEFAULT_AUTOCOMPLETE_LIMIT,
    min_chars: int = 1,
) -> list[Suggestion]:
    """Suggest completions for a partially typed command token.

    Prefix matches come first, shortest completion first; fuzzy matches
    follow by descending similarity. Input with whitespace is treated as
    already carrying arguments and gets no suggestions.
    """
    _check_threshold(threshold)
    needle = text.strip().lower()
    if not needle or len(needle) < min_chars or any(c.isspace() for c in needle):
        return []
    if limit <= 0:
        return []

    prefix: list[Suggestion] = []
    fuzzy: list[Suggestion] = []
    active = context.active_protocol
    for candidate in collect_candidates(registry, context):
        for name in candidate.names():
            lowered = name.lower()
            completion = completion_text(candidate, name, active)
            if lowered.startswith(needle):
                prefix.append(
                    Suggestion(
                        text=completion,
                        command=candidate.command,
                        protocol=candidate.protocol,
                        kind="prefix",
                        score=len(needle) / len(lowered),
                    )
                )
                continue
            score = similarity(needle, lowered)
            if score >= threshold:
                fuzzy.append(
                    Suggestion(
                        text=completion,
                        command=candidate.command,
                        protocol=candidate.protocol,
                        kind="fuzzy",
                        score=score,
                    )
                )

    prefix.sort(key=lambda item: item.score, reverse=True)
    fuzzy.sort(key=lambda item: item.score, reverse=True)
    suggestions: list[Suggestion] = []
    seen: set[str] = set()
    for item in (*prefix, *fuzzy):
        if item.text in seen:
            continue
        seen.add(item.text)
        suggestions.append(item)
        if len(suggestions) >= limit:
            break
    return suggestions
