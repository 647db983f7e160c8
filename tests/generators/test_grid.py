"""Tests for grid storage, coordinates and snapshots."""

from __future__ import annotations

import math

import numpy as np
import pytest

from tilewave.generators.errors import (
    CellIndexError,
    ConfigurationError,
    UnknownTileError,
)
from tilewave.generators.grid import Cell, Grid
from tilewave.generators.rules import RuleSet


class TestGridLayout:
    """Tests for indexing and neighbor lookup."""

    @pytest.mark.parametrize(("width", "height"), [(0, 3), (3, 0), (-1, 2)])
    def test_rejects_empty_dimensions(
        self, gradient_rules: RuleSet, width: int, height: int
    ) -> None:
        with pytest.raises(ConfigurationError):
            Grid(width, height, gradient_rules)

    def test_row_major_indexing(self, gradient_rules: RuleSet) -> None:
        grid = Grid(4, 3, gradient_rules)
        assert grid.size == 12
        assert grid.index_of(1, 2) == 9
        assert grid.coords_of(9) == (1, 2)

    def test_neighbors_in_the_middle(self, gradient_rules: RuleSet) -> None:
        grid = Grid(3, 3, gradient_rules)
        assert grid.neighbors(4) == {"up": 1, "right": 5, "down": 7, "left": 3}

    def test_neighbors_at_the_edges(self, gradient_rules: RuleSet) -> None:
        grid = Grid(3, 2, gradient_rules)
        assert grid.neighbors(0) == {"up": -1, "right": 1, "down": 3, "left": -1}
        assert grid.neighbors(5) == {"up": 2, "right": -1, "down": -1, "left": 4}

    def test_rows_do_not_wrap(self, gradient_rules: RuleSet) -> None:
        grid = Grid(3, 3, gradient_rules)
        assert grid.neighbors(2)["right"] == -1
        assert grid.neighbors(3)["left"] == -1

    def test_out_of_range_index(self, gradient_rules: RuleSet) -> None:
        grid = Grid(2, 2, gradient_rules)
        with pytest.raises(CellIndexError):
            grid.get_cell(4)
        with pytest.raises(IndexError):
            grid.neighbors(-1)
        with pytest.raises(CellIndexError):
            grid.index_of(2, 0)


class TestGridState:
    """Tests for cell state, commits and snapshots."""

    def test_starts_unconstrained(self, gradient_rules: RuleSet) -> None:
        grid = Grid(2, 2, gradient_rules)
        cells = grid.snapshot()

        assert len(cells) == 4
        assert all(cell.is_unconstrained for cell in cells)
        assert all(cell.candidates == frozenset() for cell in cells)
        assert grid.remaining_count() == 4
        assert grid.lowest_entropy_cells().size == 0
        assert not grid.has_contradiction()

    def test_set_collapsed_constrains_neighbors(self, gradient_rules: RuleSet) -> None:
        grid = Grid(3, 1, gradient_rules)
        grid.set_collapsed(0, 0)

        first = grid.get_cell(0)
        assert first.is_collapsed
        assert first.collapsed_tile == 0
        assert first.entropy == 0
        assert first.candidates == frozenset()

        second = grid.get_cell(1)
        assert second.candidates == frozenset({0, 1})
        assert second.entropy == 2
        assert grid.get_cell(2).is_unconstrained

        assert grid.remaining_count() == 2
        assert list(grid.lowest_entropy_cells()) == [1]

    def test_lowest_entropy_ties_in_index_order(self, gradient_rules: RuleSet) -> None:
        grid = Grid(3, 3, gradient_rules)
        grid.set_collapsed(4, 1)
        # All four orthogonal neighbors see {0, 1, 2}.
        assert list(grid.lowest_entropy_cells()) == [1, 3, 5, 7]

    def test_set_collapsed_unknown_tile(self, gradient_rules: RuleSet) -> None:
        grid = Grid(2, 1, gradient_rules)
        with pytest.raises(UnknownTileError):
            grid.set_collapsed(0, 7)
        assert grid.remaining_count() == 2

    def test_tile_array_shape_and_values(self, gradient_rules: RuleSet) -> None:
        grid = Grid(3, 2, gradient_rules)
        grid.set_collapsed(0, 0)
        grid.set_collapsed(5, 2)

        tiles = grid.tile_array()
        assert tiles.shape == (2, 3)
        assert tiles.tolist() == [[0, -1, -1], [-1, -1, 2]]

    def test_tile_array_is_a_copy(self, gradient_rules: RuleSet) -> None:
        grid = Grid(2, 1, gradient_rules)
        grid.set_collapsed(0, 1)
        tiles = grid.tile_array()
        tiles[0, 0] = 99
        assert grid.collapsed_tile(0) == 1

    def test_capture_and_restore(self, gradient_rules: RuleSet) -> None:
        grid = Grid(3, 1, gradient_rules)
        step = grid.capture(0)
        assert step.previous_collapsed_tile == -1
        assert math.isinf(step.previous_entropy)

        grid.set_collapsed(0, 2)
        grid.restore(step)

        assert all(cell.is_unconstrained for cell in grid.snapshot())
        assert grid.remaining_count() == 3

    def test_restore_keeps_other_constraints(self, gradient_rules: RuleSet) -> None:
        grid = Grid(3, 1, gradient_rules)
        grid.set_collapsed(0, 0)
        step = grid.capture(1)
        grid.set_collapsed(1, 1)
        grid.restore(step)

        middle = grid.get_cell(1)
        assert not middle.is_collapsed
        assert middle.candidates == frozenset({0, 1})
        assert grid.get_cell(2).is_unconstrained


class TestCell:
    def test_flags(self) -> None:
        free = Cell(0, 0, 0, -1, math.inf, frozenset())
        bound = Cell(1, 1, 0, -1, 2.0, frozenset({0, 1}))
        empty = Cell(2, 2, 0, -1, 0.0, frozenset())
        done = Cell(3, 3, 0, 4, 0.0, frozenset())

        assert free.is_unconstrained and not free.is_contradiction
        assert not bound.is_unconstrained and not bound.is_contradiction
        assert empty.is_contradiction
        assert done.is_collapsed and not done.is_contradiction

    def test_cells_are_frozen(self) -> None:
        cell = Cell(0, 0, 0, -1, np.inf, frozenset())
        with pytest.raises(AttributeError):
            cell.collapsed_tile = 3  # type: ignore[misc]
