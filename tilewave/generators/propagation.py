"""Constraint propagation from collapsed cells to their neighbors.

A cell's candidates are derived only from its collapsed neighbors: each one
contributes the adjacency set it allows in the direction pointing back at the
cell (a collapsed neighbor above contributes its `down` set), and the cell's
candidates are the intersection of those contributions.

A cell with no collapsed neighbor is unconstrained: entropy is infinite and
its candidate set is empty, meaning "unknown" rather than "every tile". An
empty intersection is a contradiction.

The global pass recomputes every uncollapsed cell from scratch on each call.
It is O(cells) per commit and not incremental, but a cell whose last
collapsed neighbor was undone by backtracking correctly falls back to the
unconstrained state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from tilewave.generators.errors import WFCContradiction
from tilewave.generators.rules import DIRECTIONS, OPPOSITE_DIR
from tilewave.types import CellIndex

if TYPE_CHECKING:
    from tilewave.generators.grid import Grid


def recompute_entropy(grid: Grid, index: CellIndex) -> None:
    """Recompute one cell's candidates and entropy from its collapsed neighbors.

    Collapsed cells are left untouched.

    Raises:
        WFCContradiction: If the collapsed neighbors leave no common tile.
            The cell is marked (entropy 0, no candidates) before raising.
    """
    if grid.collapsed_bit[index] >= 0:
        return

    masks = grid.rules.masks
    candidates: int | None = None

    for direction, neighbor in grid.neighbors(index).items():
        if neighbor < 0:
            continue
        neighbor_bit = int(grid.collapsed_bit[neighbor])
        if neighbor_bit < 0:
            continue
        allowed = int(masks[OPPOSITE_DIR[direction]][neighbor_bit])
        candidates = allowed if candidates is None else candidates & allowed

    if candidates is None:
        grid.candidates[index] = 0
        grid.entropy[index] = np.inf
        return

    grid.candidates[index] = candidates
    grid.entropy[index] = candidates.bit_count()

    if candidates == 0:
        raise WFCContradiction(index)


def update_entropy(grid: Grid) -> None:
    """Recompute every uncollapsed cell in one vectorized pass.

    Gives the same per-cell result as calling `recompute_entropy` on each
    uncollapsed cell, but the pass always runs to the end: every contradicted
    cell is marked before the first one is reported.

    Raises:
        WFCContradiction: Naming the lowest contradicted index, with all of
            them in `cell_indices`.
    """
    rules = grid.rules
    collapsed_bit = grid.collapsed_bit

    mask = np.full(grid.size, rules.all_tiles_mask, dtype=np.uint64)
    constrained = np.zeros(grid.size, dtype=bool)

    for direction in DIRECTIONS:
        neighbor = grid.neighbor_indices[direction]
        # Off-grid neighbors are -1; the where() discards whatever they index.
        neighbor_bits = np.where(neighbor >= 0, collapsed_bit[neighbor], -1)
        has_collapsed = neighbor_bits >= 0
        if not has_collapsed.any():
            continue

        allowed = rules.masks[OPPOSITE_DIR[direction]][neighbor_bits[has_collapsed]]
        mask[has_collapsed] &= allowed
        constrained |= has_collapsed

    uncollapsed = collapsed_bit < 0

    free = uncollapsed & ~constrained
    grid.candidates[free] = 0
    grid.entropy[free] = np.inf

    bound = uncollapsed & constrained
    grid.candidates[bound] = mask[bound]
    grid.entropy[bound] = np.bitwise_count(mask[bound])

    contradicted = np.flatnonzero(bound & (mask == 0))
    if contradicted.size:
        raise WFCContradiction(int(contradicted[0]), contradicted.tolist())
