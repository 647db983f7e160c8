from __future__ import annotations

from collections.abc import Callable

import pytest

from tilewave.generators import WFC, RuleSet, TileRule, WFCConfig


def uniform_rule(weight: float, allowed: set[int]) -> TileRule:
    """A rule that allows the same neighbors in every direction."""
    return TileRule(
        weight=weight, up=allowed, right=allowed, down=allowed, left=allowed
    )


@pytest.fixture
def gradient_rules() -> RuleSet:
    """Three tiles forming a gradient: 0 <-> 1 <-> 2.

    - 0 can be next to 0 and 1 (common base tile)
    - 1 can be next to 0, 1 and 2 (transition tile)
    - 2 can be next to 1 and 2 (rare tile)

    0 and 2 can never touch. Every intersection of these sets contains 1, so
    this rule set never produces a contradiction.
    """
    return RuleSet(
        {
            0: uniform_rule(3.0, {0, 1}),
            1: uniform_rule(2.0, {0, 1, 2}),
            2: uniform_rule(1.0, {1, 2}),
        }
    )


@pytest.fixture
def hostile_rules() -> RuleSet:
    """Two tiles that forbid every neighbor, including themselves."""
    return RuleSet({0: uniform_rule(1.0, set()), 1: uniform_rule(1.0, set())})


@pytest.fixture
def make_wfc() -> Callable[..., WFC]:
    """Build and initialize a solver from keyword config values."""

    def _make(width: int, height: int, rules: RuleSet, **kwargs) -> WFC:
        kwargs.setdefault("seed", 1234)
        wfc = WFC(WFCConfig(width=width, height=height, rules=rules, **kwargs))
        wfc.initialize()
        return wfc

    return _make
