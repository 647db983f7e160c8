"""Wave Function Collapse engine.

This package provides the pieces of the solver, leaves first:
- RuleSet / TileRule: adjacency rules and weights, stored as bitmasks
- Grid / Cell: per-cell candidate sets and entropy
- propagation: recomputing candidates from collapsed neighbors
- HistoryStack / HistoryStep: the undo stack used for backtracking
- WFC / WFCConfig: the collapse driver with step, run and async generate
"""

from .errors import (
    BacktrackBudgetExhausted,
    CellIndexError,
    ConfigurationError,
    EmptyHistoryError,
    GenerationCancelled,
    GenerationFailed,
    NotInitializedError,
    RuleSetError,
    UnknownTileError,
    WFCContradiction,
    WFCError,
)
from .grid import Cell, Grid
from .history import HistoryStack, HistoryStep
from .propagation import recompute_entropy, update_entropy
from .rules import (
    DIR_OFFSETS,
    DIRECTIONS,
    OPPOSITE_DIR,
    RuleSet,
    TileRule,
    load_rules,
    save_rules,
)
from .wfc_solver import WFC, CancelSignal, RunState, WFCConfig

__all__ = [
    "DIRECTIONS",
    "DIR_OFFSETS",
    "OPPOSITE_DIR",
    "WFC",
    "BacktrackBudgetExhausted",
    "CancelSignal",
    "Cell",
    "CellIndexError",
    "ConfigurationError",
    "EmptyHistoryError",
    "GenerationCancelled",
    "GenerationFailed",
    "Grid",
    "HistoryStack",
    "HistoryStep",
    "NotInitializedError",
    "RuleSet",
    "RuleSetError",
    "RunState",
    "TileRule",
    "UnknownTileError",
    "WFCConfig",
    "WFCContradiction",
    "WFCError",
    "load_rules",
    "recompute_entropy",
    "save_rules",
    "update_entropy",
]
