"""Wave Function Collapse tile-grid generation.

The engine fills a rectangular grid with tile ids so that every pair of
4-neighbors satisfies a per-tile adjacency rule set. Cells are chosen by
lowest entropy, tiles by weighted random draw, and dead ends are escaped by
undoing recent collapses. A fixed seed always reproduces the same grid.
"""

from .events import CellCollapsedEvent, CollapseCompleteEvent, EventBus, WFCEvent
from .generators import (
    WFC,
    BacktrackBudgetExhausted,
    Cell,
    ConfigurationError,
    EmptyHistoryError,
    GenerationCancelled,
    GenerationFailed,
    RuleSet,
    RunState,
    TileRule,
    WFCConfig,
    WFCContradiction,
    WFCError,
)
from .util.rng import SeededRNG

__all__ = [
    "WFC",
    "BacktrackBudgetExhausted",
    "Cell",
    "CellCollapsedEvent",
    "CollapseCompleteEvent",
    "ConfigurationError",
    "EmptyHistoryError",
    "EventBus",
    "GenerationCancelled",
    "GenerationFailed",
    "RuleSet",
    "RunState",
    "SeededRNG",
    "TileRule",
    "WFCConfig",
    "WFCContradiction",
    "WFCError",
    "WFCEvent",
]
