"""Undo stack for collapses.

Every commit (driver-chosen or a manual seed) records the cell's state from
just before the mutation, so undoing a step is a pure restore. The stack's
length is the current collapse depth.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from tilewave.generators.errors import EmptyHistoryError
from tilewave.types import CellIndex, TileId


@dataclass(frozen=True)
class HistoryStep:
    """One reversible collapse.

    Attributes:
        cell_index: The cell that was collapsed.
        previous_collapsed_tile: Tile id before the collapse (-1 if none).
        previous_entropy: Entropy before the collapse (inf if unconstrained).
        previous_candidates: Candidate tiles before the collapse.
    """

    cell_index: CellIndex
    previous_collapsed_tile: int
    previous_entropy: float
    previous_candidates: frozenset[TileId]


class HistoryStack:
    """LIFO record of collapses, newest last."""

    def __init__(self) -> None:
        self._steps: list[HistoryStep] = []

    def push(self, step: HistoryStep) -> None:
        self._steps.append(step)

    def pop(self) -> HistoryStep:
        """Remove and return the most recent step.

        Raises:
            EmptyHistoryError: If there is nothing to undo.
        """
        if not self._steps:
            raise EmptyHistoryError()
        return self._steps.pop()

    def peek(self) -> HistoryStep | None:
        return self._steps[-1] if self._steps else None

    def clear(self) -> None:
        self._steps.clear()

    def __len__(self) -> int:
        return len(self._steps)

    def __bool__(self) -> bool:
        return bool(self._steps)

    def __iter__(self) -> Iterator[HistoryStep]:
        return iter(self._steps)
