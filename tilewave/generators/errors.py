"""Exception hierarchy for the collapse engine.

Callers need to tell these apart because the remedies differ:

- ConfigurationError: the call itself was wrong (fix the code or the rules).
- WFCContradiction: internal, resolved by backtracking; only escapes when a
  caller drives the grid directly.
- GenerationFailed: the rules could not be satisfied for this grid and seed
  (loosen rules, change the seed, or raise the backtrack budget).
- GenerationCancelled: the caller asked the run to stop.
"""

from __future__ import annotations

from collections.abc import Sequence


class WFCError(Exception):
    """Base class for every error raised by the engine."""

    pass


# =============================================================================
# Configuration errors
# =============================================================================


class ConfigurationError(WFCError):
    """Raised immediately for invalid setup or invalid calls. Never retried."""

    pass


class RuleSetError(ConfigurationError):
    """A rule set failed validation when it was loaded."""

    pass


class UnknownTileError(ConfigurationError):
    """A tile id was referenced that the rule set does not define."""

    def __init__(self, tile: int) -> None:
        super().__init__(f"Tile {tile} not found in rules")
        self.tile = tile


class CellIndexError(ConfigurationError, IndexError):
    """A cell index fell outside the grid."""

    def __init__(self, index: int, size: int) -> None:
        super().__init__(f"Cell index {index} out of bounds for grid of {size} cells")
        self.index = index
        self.size = size


class NotInitializedError(ConfigurationError):
    """The solver was used before initialize() allocated a grid."""

    pass


# =============================================================================
# Contradictions
# =============================================================================


class WFCContradiction(WFCError):
    """Raised when propagation leaves a cell with no possible tiles.

    The driver catches this and backtracks; it is not a failure on its own.
    """

    def __init__(self, cell_index: int, cell_indices: Sequence[int] = ()) -> None:
        self.cell_index = cell_index
        self.cell_indices = tuple(cell_indices) or (cell_index,)
        super().__init__(
            f"No available tiles for index {cell_index} - contradiction detected"
        )


# =============================================================================
# Terminal outcomes
# =============================================================================


class GenerationFailed(WFCError):
    """The run cannot continue. The grid keeps its last consistent state."""

    pass


class BacktrackBudgetExhausted(GenerationFailed):
    """Too many consecutive backtracks without a successful forward step."""

    def __init__(self, max_backtracks: int) -> None:
        super().__init__(
            f"Max backtrack limit ({max_backtracks}) reached. Generation failed: "
            "the rule set is likely over-constrained for this grid size."
        )
        self.max_backtracks = max_backtracks


class EmptyHistoryError(GenerationFailed):
    """A contradiction needs resolving but there is nothing left to undo."""

    def __init__(self) -> None:
        super().__init__("Cannot backtrack: no steps available. Generation failed.")


class GenerationCancelled(WFCError):
    """The caller cancelled a run between steps."""

    pass
