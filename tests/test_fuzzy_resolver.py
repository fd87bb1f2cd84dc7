"""Tests for fuzzy resolution and autocomplete."""

from __future__ import annotations

import pytest

from defi_terminal.core.context import ProtocolPreferences, create_execution_context
from defi_terminal.core.fuzzy import levenshtein, similarity
from defi_terminal.core.monoid import create_protocol_fiber
from defi_terminal.core.registry import FiberRegistry
from defi_terminal.core.types import (
    ALIAS,
    CORE,
    IDENTITY_COMMAND_ID,
    ProtocolScoped,
    ResolutionMethod,
)
from terminal_fixtures import AAVE, UNISWAP, make_command, make_registry


def _context(active: str | None = None):
    context = create_execution_context()
    context.active_protocol = active
    return context


# --- similarity tests ---


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ("", "", 0),
        ("swap", "swap", 0),
        ("swap", "swsp", 1),
        ("swap", "", 4),
        ("kitten", "sitting", 3),
        ("flaw", "lawn", 2),
    ],
)
def test_levenshtein(a: str, b: str, expected: int) -> None:
    assert levenshtein(a, b) == expected
    assert levenshtein(b, a) == expected


def test_similarity_values() -> None:
    assert similarity("", "") == 1.0
    assert similarity("swap", "swap") == 1.0
    assert similarity("swap", "swsp") == 0.75
    assert similarity("swap", "") == 0.0


# --- threshold tests ---


def test_swsp_matches_swap_at_default_threshold() -> None:
    matches = make_registry().fuzzy_resolve("swsp", _context(), 0.6)
    swaps = [m for m in matches if m.command.id == "swap"]
    assert len(swaps) == 1
    assert swaps[0].confidence == 0.75
    assert swaps[0].method is ResolutionMethod.FUZZY
    assert swaps[0].protocol == UNISWAP


def test_swsp_rejected_at_higher_threshold() -> None:
    matches = make_registry().fuzzy_resolve("swsp", _context(), 0.8)
    assert all(m.command.id != "swap" for m in matches)


def test_threshold_is_inclusive() -> None:
    matches = make_registry().fuzzy_resolve("swsp", _context(), 0.75)
    assert [m.command.id for m in matches] == ["swap"]


@pytest.mark.parametrize("threshold", [-0.1, 1.5])
def test_invalid_threshold_raises(threshold: float) -> None:
    with pytest.raises(ValueError):
        make_registry().fuzzy_resolve("swap", _context(), threshold)


def test_matching_is_case_insensitive() -> None:
    matches = make_registry().fuzzy_resolve("HELP", _context())
    assert matches[0].command.id == "help"
    assert matches[0].confidence == 1.0


def test_no_matches_returns_empty_list() -> None:
    assert make_registry().fuzzy_resolve("zzzzzzzz", _context()) == []


# --- ordering tests ---


def test_one_entry_per_matching_name() -> None:
    registry = FiberRegistry()
    registry.register_core(make_command("stake", CORE, aliases=("stak",)))
    matches = registry.fuzzy_resolve("stak", _context())
    assert [m.command.id for m in matches] == ["stake", "stake"]
    assert [m.confidence for m in matches] == [1.0, 0.8]


def test_ties_keep_registration_order() -> None:
    registry = FiberRegistry()
    registry.register_core(make_command("abc", CORE))
    registry.register_core(make_command("abd", CORE))
    matches = registry.fuzzy_resolve("abx", _context())
    assert [m.command.id for m in matches] == ["abc", "abd"]
    assert matches[0].confidence == matches[1].confidence


# --- isolation tests ---


def test_identity_never_suggested() -> None:
    matches = make_registry().fuzzy_resolve("identity", _context(), 0.0)
    assert all(m.command.id != IDENTITY_COMMAND_ID for m in matches)


def test_all_fibers_are_candidates_without_active_protocol() -> None:
    registry = make_registry(with_aave=True)
    ids = {m.command.id for m in registry.fuzzy_resolve("x", _context(), 0.0)}
    assert {"swap", "supply", "help"} <= ids


def test_only_active_fiber_is_candidate() -> None:
    registry = make_registry(with_aave=True)
    registry.register_alias(make_command("balance", ALIAS))
    matches = registry.fuzzy_resolve("x", _context(AAVE), 0.0)
    ids = {m.command.id for m in matches}
    assert "supply" in ids
    assert "help" in ids
    assert "swap" not in ids
    assert "balance" not in ids
    assert all(m.protocol in (None, AAVE) for m in matches)


def test_swap_hidden_inside_other_fiber() -> None:
    registry = make_registry(with_aave=True)
    assert all(
        m.command.id != "swap" for m in registry.fuzzy_resolve("swsp", _context(AAVE))
    )


def test_alias_commands_bound_like_exact_resolution() -> None:
    registry = make_registry()
    registry.register_alias(make_command("balance", ALIAS))
    context = create_execution_context(
        preferences=ProtocolPreferences(defaults={"balance": AAVE})
    )
    matches = registry.fuzzy_resolve("balanse", context)
    assert matches[0].command.id == "balance"
    assert matches[0].protocol == AAVE

    flagged = registry.fuzzy_resolve("balanse", context, explicit_protocol=UNISWAP)
    assert flagged[0].protocol == UNISWAP


# --- autocomplete tests ---


def test_autocomplete_prefix_first() -> None:
    registry = make_registry()
    suggestions = registry.autocomplete("he", _context())
    assert suggestions[0].text == "help"
    assert suggestions[0].kind == "prefix"


def test_autocomplete_namespaces_protocol_commands() -> None:
    registry = make_registry()
    texts = [s.text for s in registry.autocomplete("sw", _context())]
    assert f"{UNISWAP}:swap" in texts
    assert "swap" not in texts


def test_autocomplete_bare_names_inside_fiber() -> None:
    registry = make_registry()
    texts = [s.text for s in registry.autocomplete("sw", _context(UNISWAP))]
    assert texts[0] == "swap"


def test_autocomplete_respects_limit() -> None:
    registry = make_registry()
    assert len(registry.autocomplete("e", _context(), threshold=0.0, limit=3)) == 3


@pytest.mark.parametrize("text", ["", "   ", "use uni"])
def test_autocomplete_skips_blank_and_argument_input(text: str) -> None:
    assert make_registry().autocomplete(text, _context()) == []


def test_autocomplete_min_chars() -> None:
    assert make_registry().autocomplete("h", _context(), min_chars=2) == []


def test_autocomplete_prefers_shorter_prefix_match() -> None:
    registry = FiberRegistry()
    fiber = create_protocol_fiber(UNISWAP, "Uniswap V4")
    registry.register_fiber(fiber)
    registry.add_to_fiber(
        fiber, make_command("swap", ProtocolScoped(UNISWAP), aliases=("swap-exact",))
    )
    texts = [s.text for s in registry.autocomplete("swap", _context(UNISWAP))]
    assert texts == ["swap", "swap-exact"]
