"""Cell storage for the collapse engine.

The grid is a flat, row-major array of cells (`index = y * width + x`) kept
as three parallel numpy arrays:

- `collapsed_bit`: bit index of the committed tile, or -1.
- `candidates`: uint64 bitmask of the remaining tiles.
- `entropy`: inf while unconstrained, the candidate count while constrained,
  0 once collapsed. An uncollapsed cell with entropy 0 is a contradiction.

Callers only ever see `Cell` snapshots, never the arrays themselves.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from tilewave.generators.errors import CellIndexError, ConfigurationError
from tilewave.generators.history import HistoryStep
from tilewave.generators.propagation import recompute_entropy, update_entropy
from tilewave.generators.rules import DIR_OFFSETS, DIRECTIONS, RuleSet
from tilewave.types import CellIndex, Direction, GridPos, TileId


@dataclass(frozen=True)
class Cell:
    """Read-only snapshot of one grid position.

    Attributes:
        index: Flattened row-major position.
        x, y: Column and row.
        collapsed_tile: Committed tile id, or -1 if not collapsed.
        entropy: inf if unconstrained, 0 if collapsed or contradicted,
            otherwise the number of candidates.
        candidates: Remaining tiles (empty when collapsed or unconstrained).
    """

    index: CellIndex
    x: int
    y: int
    collapsed_tile: int
    entropy: float
    candidates: frozenset[TileId]

    @property
    def is_collapsed(self) -> bool:
        return self.collapsed_tile != -1

    @property
    def is_unconstrained(self) -> bool:
        return not self.is_collapsed and math.isinf(self.entropy)

    @property
    def is_contradiction(self) -> bool:
        return not self.is_collapsed and self.entropy == 0


class Grid:
    """A width x height grid of cells for one rule set."""

    def __init__(self, width: int, height: int, rules: RuleSet) -> None:
        if width < 1 or height < 1:
            raise ConfigurationError(
                f"Grid dimensions must be positive, got {width}x{height}"
            )
        self.width = width
        self.height = height
        self.size = width * height
        self.rules = rules

        self.collapsed_bit = np.full(self.size, -1, dtype=np.int64)
        self.candidates = np.zeros(self.size, dtype=np.uint64)
        self.entropy = np.full(self.size, np.inf, dtype=np.float64)

        self._build_neighbor_tables()

    def _build_neighbor_tables(self) -> None:
        """Precompute the neighbor index in each direction (-1 off-grid)."""
        xs, ys = np.meshgrid(
            np.arange(self.width), np.arange(self.height), indexing="xy"
        )
        xs = xs.ravel()
        ys = ys.ravel()

        self.neighbor_indices: dict[Direction, np.ndarray] = {}
        for direction in DIRECTIONS:
            dx, dy = DIR_OFFSETS[direction]
            nx, ny = xs + dx, ys + dy
            in_bounds = (nx >= 0) & (nx < self.width) & (ny >= 0) & (ny < self.height)
            self.neighbor_indices[direction] = np.where(
                in_bounds, ny * self.width + nx, -1
            ).astype(np.int64)

    # -------------------------------------------------------------------------
    # Coordinates
    # -------------------------------------------------------------------------

    def _check_index(self, index: CellIndex) -> None:
        if not 0 <= index < self.size:
            raise CellIndexError(index, self.size)

    def index_of(self, x: int, y: int) -> CellIndex:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise CellIndexError(y * self.width + x, self.size)
        return y * self.width + x

    def coords_of(self, index: CellIndex) -> GridPos:
        self._check_index(index)
        return index % self.width, index // self.width

    def neighbors(self, index: CellIndex) -> dict[Direction, CellIndex]:
        """Neighbor index in each direction, -1 where the grid ends."""
        self._check_index(index)
        return {
            direction: int(self.neighbor_indices[direction][index])
            for direction in DIRECTIONS
        }

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def collapsed_tile(self, index: CellIndex) -> int:
        bit = int(self.collapsed_bit[index])
        return -1 if bit < 0 else int(self.rules.bit_to_tile[bit])

    def candidate_tiles(self, index: CellIndex) -> tuple[TileId, ...]:
        """The cell's candidates in ascending tile-id order."""
        return tuple(sorted(self.rules.tiles_of(int(self.candidates[index]))))

    def get_cell(self, index: CellIndex) -> Cell:
        self._check_index(index)
        x, y = self.coords_of(index)
        return Cell(
            index=index,
            x=x,
            y=y,
            collapsed_tile=self.collapsed_tile(index),
            entropy=float(self.entropy[index]),
            candidates=self.rules.tiles_of(int(self.candidates[index])),
        )

    def snapshot(self) -> list[Cell]:
        return [self.get_cell(index) for index in range(self.size)]

    def tile_array(self) -> np.ndarray:
        """Collapsed tile ids as a (height, width) array, -1 where unresolved."""
        tiles = np.full(self.size, -1, dtype=np.int64)
        collapsed = self.collapsed_bit >= 0
        tiles[collapsed] = self.rules.bit_to_tile[self.collapsed_bit[collapsed]]
        return tiles.reshape(self.height, self.width)

    def remaining_count(self) -> int:
        """Number of cells without a committed tile."""
        return int(np.count_nonzero(self.collapsed_bit < 0))

    def is_complete(self) -> bool:
        return self.remaining_count() == 0

    def lowest_entropy_cells(self) -> np.ndarray:
        """All uncollapsed cells sharing the minimum finite, positive entropy.

        Unconstrained cells (infinite entropy) are never eligible. Returned in
        ascending index order.
        """
        eligible = (
            (self.collapsed_bit < 0) & np.isfinite(self.entropy) & (self.entropy > 0)
        )
        if not eligible.any():
            return np.empty(0, dtype=np.int64)
        min_entropy = self.entropy[eligible].min()
        return np.flatnonzero(eligible & (self.entropy == min_entropy))

    def contradicted_cells(self) -> np.ndarray:
        return np.flatnonzero((self.collapsed_bit < 0) & (self.entropy == 0))

    def has_contradiction(self) -> bool:
        return bool(self.contradicted_cells().size)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def capture(self, index: CellIndex) -> HistoryStep:
        """Record a cell's state so a later `restore` can undo a collapse."""
        self._check_index(index)
        return HistoryStep(
            cell_index=index,
            previous_collapsed_tile=self.collapsed_tile(index),
            previous_entropy=float(self.entropy[index]),
            previous_candidates=self.rules.tiles_of(int(self.candidates[index])),
        )

    def set_collapsed(self, index: CellIndex, tile: int) -> None:
        """Commit `tile` to a cell and re-run propagation over the whole grid.

        Raises:
            CellIndexError: If the index is outside the grid.
            UnknownTileError: If the tile is not in the rule set.
            WFCContradiction: If propagation empties any cell. The commit and
                the contradiction marks stay in place.
        """
        self._check_index(index)
        bit = self.rules.bit_of(tile)

        self.collapsed_bit[index] = bit
        self.candidates[index] = 0
        self.entropy[index] = 0

        update_entropy(self)

    def restore(self, step: HistoryStep) -> None:
        """Put a cell back the way `step` recorded it and re-run propagation."""
        index = step.cell_index
        self._check_index(index)
        previous = step.previous_collapsed_tile

        self.collapsed_bit[index] = (
            -1 if previous == -1 else self.rules.bit_of(previous)
        )
        self.candidates[index] = self.rules.mask_of(step.previous_candidates)
        self.entropy[index] = step.previous_entropy

        update_entropy(self)

    def recompute_entropy(self, index: CellIndex) -> None:
        self._check_index(index)
        recompute_entropy(self, index)

    def update_entropy(self) -> None:
        update_entropy(self)
