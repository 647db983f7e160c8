"""Tests for constraint propagation and contradiction marking."""

from __future__ import annotations

import math

import numpy as np
import pytest

from tilewave.generators.errors import WFCContradiction
from tilewave.generators.grid import Grid
from tilewave.generators.propagation import recompute_entropy, update_entropy
from tilewave.generators.rules import RuleSet, TileRule

ALL = {0, 1, 2}


@pytest.fixture
def directional_rules() -> RuleSet:
    """Tile 0 wants tile 1 above it and tile 2 below it."""
    return RuleSet(
        {
            0: TileRule(up={1}, down={2}, left=ALL, right={0}),
            1: TileRule(up=ALL, down=ALL, left=ALL, right=ALL),
            2: TileRule(up=ALL, down=ALL, left=ALL, right=ALL),
        }
    )


class TestDirectionSemantics:
    def test_neighbor_sets_apply_from_the_collapsed_cell(
        self, directional_rules: RuleSet
    ) -> None:
        grid = Grid(3, 3, directional_rules)
        grid.set_collapsed(4, 0)

        assert grid.get_cell(1).candidates == frozenset({1})
        assert grid.get_cell(7).candidates == frozenset({2})
        assert grid.get_cell(3).candidates == frozenset(ALL)
        assert grid.get_cell(5).candidates == frozenset({0})
        # Diagonals have no collapsed neighbor.
        assert grid.get_cell(0).is_unconstrained

    def test_constraints_intersect(self, directional_rules: RuleSet) -> None:
        grid = Grid(3, 1, directional_rules)
        grid.set_collapsed(0, 0)
        grid.set_collapsed(2, 1)
        # Left neighbor allows {0}; right neighbor (tile 1) allows anything.
        assert grid.get_cell(1).candidates == frozenset({0})
        assert grid.get_cell(1).entropy == 1


class TestContradictions:
    def test_every_contradicted_cell_is_marked(self, hostile_rules: RuleSet) -> None:
        grid = Grid(3, 1, hostile_rules)

        with pytest.raises(WFCContradiction) as exc_info:
            grid.set_collapsed(1, 0)

        assert exc_info.value.cell_index == 0
        assert exc_info.value.cell_indices == (0, 2)
        assert grid.get_cell(0).is_contradiction
        assert grid.get_cell(2).is_contradiction
        # The commit itself stays in place.
        assert grid.collapsed_tile(1) == 0
        assert list(grid.contradicted_cells()) == [0, 2]

    def test_contradiction_message(self, hostile_rules: RuleSet) -> None:
        grid = Grid(2, 1, hostile_rules)
        with pytest.raises(WFCContradiction, match="No available tiles for index 1"):
            grid.set_collapsed(0, 1)

    def test_scalar_recompute_marks_then_raises(self, hostile_rules: RuleSet) -> None:
        grid = Grid(2, 1, hostile_rules)
        grid.collapsed_bit[0] = 0
        grid.entropy[0] = 0

        with pytest.raises(WFCContradiction):
            recompute_entropy(grid, 1)

        assert grid.entropy[1] == 0
        assert grid.candidates[1] == 0


class TestRecomputation:
    def test_free_cells_return_to_unconstrained(self, gradient_rules: RuleSet) -> None:
        """Removing the only collapsed neighbor clears stale candidates."""
        grid = Grid(2, 1, gradient_rules)
        grid.set_collapsed(0, 2)
        assert grid.get_cell(1).candidates == frozenset({1, 2})

        grid.collapsed_bit[0] = -1
        update_entropy(grid)

        assert math.isinf(grid.entropy[1])
        assert grid.candidates[1] == 0

    def test_collapsed_cells_are_untouched(self, gradient_rules: RuleSet) -> None:
        grid = Grid(2, 1, gradient_rules)
        grid.set_collapsed(0, 1)
        recompute_entropy(grid, 0)
        assert grid.collapsed_tile(0) == 1
        assert grid.entropy[0] == 0

    def test_scalar_and_vectorized_agree(self, gradient_rules: RuleSet) -> None:
        grid = Grid(5, 5, gradient_rules)
        grid.set_collapsed(0, 0)
        grid.set_collapsed(12, 1)
        grid.set_collapsed(24, 2)
        grid.set_collapsed(3, 1)

        expected_candidates = grid.candidates.copy()
        expected_entropy = grid.entropy.copy()

        # Scramble the derived state, then rebuild it cell by cell.
        uncollapsed = grid.collapsed_bit < 0
        grid.candidates[uncollapsed] = 0b111
        grid.entropy[uncollapsed] = 7.0
        for index in np.flatnonzero(uncollapsed):
            recompute_entropy(grid, int(index))

        np.testing.assert_array_equal(grid.candidates, expected_candidates)
        np.testing.assert_array_equal(grid.entropy, expected_entropy)
