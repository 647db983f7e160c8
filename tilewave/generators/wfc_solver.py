"""Wave Function Collapse driver.

This module runs the collapse loop over a `Grid`: pick the most constrained
cell, pick a tile for it, commit, propagate, and back up when propagation
leaves some cell with nothing to choose from.

Usage:
    from tilewave.generators.wfc_solver import WFC, WFCConfig

    both = [0, 1]
    rules = {
        0: {"weight": 3, "up": both, "down": both, "left": both, "right": both},
        1: {"weight": 1, "up": both, "down": both, "left": both, "right": both},
    }
    wfc = WFC(WFCConfig(width=20, height=10, rules=rules, seed=42))
    wfc.initialize()
    wfc.set_collapsed(0, 1)          # optional manual seed
    cells = wfc.run()                # or call wfc.step() until it returns True

Execution model:
    `step()` performs exactly one forward collapse and returns whether the grid
    is complete. Any backtracking needed to get there happens inside the same
    call and is not counted as a step, so a single call can take as long as
    `max_backtracks` retries. `run()` and `generate()` repeat `step()` and
    check a cancel signal between steps only.

    Only one caller may drive an instance at a time. Independent grids need
    independent `WFC` instances; nothing mutable is shared between them.

Backtracking:
    Every commit, including manual seeds, pushes a `HistoryStep`. On a
    contradiction the most recent step is undone and the loop retries. The
    consecutive-backtrack counter resets after every clean forward step; when
    it exceeds `max_backtracks` the run fails. Manual seeds are ordinary
    history entries and can be undone like any other collapse.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, TypeAlias

import numpy as np

from tilewave import config
from tilewave.events import (
    CellCollapsedEvent,
    CollapseCompleteEvent,
    EventBus,
    EventHandler,
)
from tilewave.generators.errors import (
    BacktrackBudgetExhausted,
    CellIndexError,
    ConfigurationError,
    EmptyHistoryError,
    GenerationCancelled,
    GenerationFailed,
    NotInitializedError,
    WFCContradiction,
)
from tilewave.generators.grid import Cell, Grid
from tilewave.generators.history import HistoryStack, HistoryStep
from tilewave.generators.rules import RuleSet, TileRule
from tilewave.types import CellIndex, RandomSeed, TileId
from tilewave.util.metrics import GenerationStats
from tilewave.util.rng import SeededRNG

logger = logging.getLogger(__name__)


class RunState(Enum):
    """Lifecycle of a solver instance."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    COLLAPSING = "collapsing"
    COLLAPSED = "collapsed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class CancelSignal(Protocol):
    """Anything with `is_set()`, e.g. `threading.Event` or `asyncio.Event`."""

    def is_set(self) -> bool: ...


RulesInput: TypeAlias = RuleSet | Mapping[Any, TileRule | Mapping[str, Any]] | None


@dataclass
class WFCConfig:
    """Construction input for a `WFC` solver.

    Attributes:
        width: Grid width in cells.
        height: Grid height in cells.
        rules: Rule set, or rule data accepted by `RuleSet`.
        name: Attached to every notification.
        seed: RNG seed. None picks a time-based seed.
        starting_index: Cell collapsed first. None picks one at random.
        max_backtracks: Consecutive backtracks allowed before failing.
        auto: Whether `generate()` runs to completion or takes one step.
        collapse_delay: Seconds awaited between steps in `generate()`.
        sprite_sheet_width: Columns in the host's sprite sheet, used by
            `get_sprite_coords()`.
    """

    width: int
    height: int
    rules: RulesInput = None
    name: str = config.DEFAULT_SOLVER_NAME
    seed: RandomSeed = config.RANDOM_SEED
    starting_index: CellIndex | None = None
    max_backtracks: int = config.DEFAULT_MAX_BACKTRACKS
    auto: bool = config.DEFAULT_AUTO
    collapse_delay: float = config.DEFAULT_COLLAPSE_DELAY
    sprite_sheet_width: int | None = None


def _as_rule_set(rules: RulesInput) -> RuleSet:
    if isinstance(rules, RuleSet):
        return rules
    return RuleSet(rules)


def _check_dims(width: int, height: int) -> None:
    if width < 1 or height < 1:
        raise ConfigurationError(
            f"Grid dimensions must be positive, got {width}x{height}"
        )


class WFC:
    """Wave Function Collapse solver for one 4-neighbor rectangular grid."""

    def __init__(
        self,
        config: WFCConfig,
        *,
        rng: SeededRNG | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        """Set up a solver. Call `initialize()` before stepping.

        Args:
            config: Grid size, rules and tuning.
            rng: Random source. Defaults to `SeededRNG(config.seed)`.
            event_bus: Where notifications go. Defaults to a private bus.
        """
        _check_dims(config.width, config.height)
        if config.max_backtracks < 0:
            raise ConfigurationError(
                f"max_backtracks must be non-negative, got {config.max_backtracks}"
            )
        if config.collapse_delay < 0:
            raise ConfigurationError(
                f"collapse_delay must be non-negative, got {config.collapse_delay}"
            )

        self.name = config.name
        self.width = config.width
        self.height = config.height
        self.rules = _as_rule_set(config.rules)
        self.rng = rng if rng is not None else SeededRNG(config.seed)
        self.events = event_bus if event_bus is not None else EventBus()
        self.starting_index = config.starting_index
        self.max_backtracks = config.max_backtracks
        self.auto = config.auto
        self.collapse_delay = config.collapse_delay
        self.sprite_sheet_width = config.sprite_sheet_width

        self._grid: Grid | None = None
        self._history = HistoryStack()
        self._state = RunState.UNINITIALIZED
        self._backtrack_count = 0
        self._start_pending = False
        self.stats = GenerationStats()

    # -------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------

    def initialize(self) -> None:
        """Allocate an unconstrained grid and move to READY.

        Raises:
            ConfigurationError: If no rules are loaded.
            CellIndexError: If `starting_index` lies outside the grid.
        """
        if len(self.rules) == 0:
            raise ConfigurationError("No rules found. Load rules before initializing.")

        size = self.width * self.height
        if self.starting_index is not None and not 0 <= self.starting_index < size:
            raise CellIndexError(self.starting_index, size)

        self._grid = Grid(self.width, self.height, self.rules)
        self._history.clear()
        self._backtrack_count = 0
        self._start_pending = True
        self.stats.reset()
        self._state = RunState.READY
        logger.debug(
            f"{self.name}: initialized {self.width}x{self.height} grid "
            f"with {len(self.rules)} tiles"
        )

    def load_rules(self, rules: RulesInput) -> None:
        """Replace the rule set. The grid must be initialized again."""
        self.rules = _as_rule_set(rules)
        self._discard_grid()

    def set_weight(self, tile: int, weight: float) -> None:
        """Change a tile's selection weight for all later draws.

        Raises:
            UnknownTileError: If the tile is not in the rule set.
        """
        self.rules.set_weight(tile, weight)

    def set_dims(self, width: int, height: int) -> None:
        """Change the grid size. The grid must be initialized again."""
        _check_dims(width, height)
        self.width = width
        self.height = height
        self._discard_grid()

    def reset(self) -> None:
        """Drop rules, grid and history and return to UNINITIALIZED."""
        self.rules = RuleSet()
        self._discard_grid()

    def _discard_grid(self) -> None:
        self._grid = None
        self._history.clear()
        self._backtrack_count = 0
        self._start_pending = False
        self.stats.reset()
        self._state = RunState.UNINITIALIZED

    def _require_grid(self) -> Grid:
        if self._grid is None:
            raise NotInitializedError(
                f"{self.name}: grid not initialized. Call initialize() first."
            )
        return self._grid

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def history_depth(self) -> int:
        """Number of collapses that could currently be undone."""
        return len(self._history)

    @property
    def history(self) -> tuple[HistoryStep, ...]:
        """Collapses that could currently be undone, oldest first."""
        return tuple(self._history)

    @property
    def step_count(self) -> int:
        return self.stats.steps

    @property
    def backtrack_count(self) -> int:
        """Consecutive backtracks since the last clean forward step."""
        return self._backtrack_count

    @property
    def total_backtracks(self) -> int:
        return self.stats.backtracks

    def get_cell(self, index: CellIndex) -> Cell:
        return self._require_grid().get_cell(index)

    def get_tile(self, index: CellIndex) -> int:
        """Tile id committed at `index`, or -1."""
        return self.get_cell(index).collapsed_tile

    def get_cells(self) -> list[Cell]:
        return self._require_grid().snapshot()

    def tile_array(self) -> np.ndarray:
        return self._require_grid().tile_array()

    def remaining_count(self) -> int:
        return self._require_grid().remaining_count()

    def get_sprite_coords(self, index: CellIndex) -> tuple[int, int]:
        """Sprite-sheet column and row of the tile at `index`.

        Returns (-1, -1) when the index is outside the grid or the cell has no
        tile yet.
        """
        if self.sprite_sheet_width is None or self.sprite_sheet_width < 1:
            raise ConfigurationError("sprite_sheet_width is not configured")
        grid = self._require_grid()
        if not 0 <= index < grid.size:
            return (-1, -1)
        tile = grid.collapsed_tile(index)
        if tile == -1:
            return (-1, -1)
        return (tile % self.sprite_sheet_width, tile // self.sprite_sheet_width)

    def on_cell_collapsed(self, handler: EventHandler) -> None:
        self.events.subscribe(CellCollapsedEvent, handler)

    def on_complete(self, handler: EventHandler) -> None:
        self.events.subscribe(CollapseCompleteEvent, handler)

    # -------------------------------------------------------------------------
    # Manual control
    # -------------------------------------------------------------------------

    def set_collapsed(self, index: CellIndex, tile: int) -> None:
        """Pin a cell to a tile, e.g. for level-design constraints.

        The seed is recorded in history exactly like a driver collapse, so
        backtracking may undo it. If it leaves a neighbor with no options, the
        contradiction is resolved by backtracking on the next step.

        Raises:
            NotInitializedError: If the grid has not been allocated.
            CellIndexError: If the index is outside the grid.
            UnknownTileError: If the tile is not in the rule set.
        """
        grid = self._require_grid()
        step = grid.capture(index)
        # Reject unknown tiles before anything is recorded.
        self.rules.bit_of(tile)

        self._history.push(step)
        try:
            grid.set_collapsed(index, tile)
        except WFCContradiction as exc:
            logger.warning(
                f"{self.name}: manual tile {tile} at cell {index} leaves no "
                f"options for cells {list(exc.cell_indices)}; "
                "it will be undone by backtracking"
            )
            return

        self.events.publish(CellCollapsedEvent(self.name, grid.get_cell(index)))

    # -------------------------------------------------------------------------
    # Driving
    # -------------------------------------------------------------------------

    def step(self) -> bool:
        """Collapse one cell. Returns True once every cell has a tile.

        Raises:
            NotInitializedError: If `initialize()` has not been called.
            ConfigurationError: If the previous run failed.
            BacktrackBudgetExhausted: If backtracking exceeded the budget.
            EmptyHistoryError: If a contradiction had nothing to undo.
        """
        grid = self._require_grid()

        if self._state is RunState.COLLAPSED:
            return True
        if self._state is RunState.FAILED:
            raise ConfigurationError(
                f"Cannot step: current state is {self._state.value}. "
                "Call initialize() to start over."
            )
        if self._state is not RunState.COLLAPSING:
            logger.info(
                f"{self.name}: collapsing {grid.width}x{grid.height} grid "
                f"(seed {self.rng.seed})"
            )
            self._state = RunState.COLLAPSING

        start = time.perf_counter()
        try:
            return self._advance(grid)
        except GenerationFailed as exc:
            self._state = RunState.FAILED
            logger.info(f"{self.name}: {exc}")
            raise
        finally:
            self.stats.step_times.record((time.perf_counter() - start) * 1000.0)

    def run(self, cancel_event: CancelSignal | None = None) -> list[Cell]:
        """Step until the grid is complete and return its final cells.

        Args:
            cancel_event: Checked between steps. When set, the run stops with
                the grid as the last completed step left it.

        Raises:
            GenerationCancelled: If `cancel_event` was set.
            GenerationFailed: If the rules could not be satisfied.
        """
        grid = self._require_grid()
        self._check_can_generate()

        while True:
            self._check_cancelled(cancel_event)
            if self.step():
                return grid.snapshot()

    async def generate(self, cancel_event: CancelSignal | None = None) -> bool:
        """Async driver that yields to the event loop between steps.

        With `auto` enabled this steps to completion, sleeping
        `collapse_delay` seconds between steps. Otherwise it takes a single
        step and leaves the rest to `step()`. Returns whether the grid is
        complete.
        """
        self._require_grid()
        self._check_can_generate()

        if not self.auto:
            return self.step()

        while True:
            self._check_cancelled(cancel_event)
            if self.step():
                return True
            await asyncio.sleep(self.collapse_delay)

    def _check_can_generate(self) -> None:
        if self._state in (RunState.COLLAPSED, RunState.FAILED):
            raise ConfigurationError(
                f"Cannot generate: current state is {self._state.value}"
            )

    def _check_cancelled(self, cancel_event: CancelSignal | None) -> None:
        if cancel_event is None or not cancel_event.is_set():
            return
        self._state = RunState.CANCELLED
        logger.info(f"{self.name}: cancelled after {self.stats.steps} steps")
        raise GenerationCancelled(
            f"{self.name}: generation cancelled after {self.stats.steps} steps"
        )

    # -------------------------------------------------------------------------
    # Collapse loop
    # -------------------------------------------------------------------------

    def _advance(self, grid: Grid) -> bool:
        """Make one clean forward collapse, backtracking as often as needed."""
        while True:
            if grid.has_contradiction():
                self.stats.contradictions += 1
                self._backtrack(grid)
                continue

            if grid.is_complete():
                self._complete(grid)
                return True

            index = self._select_cell(grid)
            try:
                tile = self._select_tile(grid, index)
                self._history.push(grid.capture(index))
                grid.set_collapsed(index, tile)
            except WFCContradiction as exc:
                self.stats.contradictions += 1
                logger.debug(
                    f"{self.name}: contradiction at {list(exc.cell_indices)} "
                    f"after collapsing cell {index}"
                )
                self._backtrack(grid)
                continue

            self._backtrack_count = 0
            self.stats.steps += 1
            self.events.publish(
                CellCollapsedEvent(self.name, grid.get_cell(index), self.stats.steps)
            )

            if grid.is_complete():
                self._complete(grid)
                return True
            return False

    def _select_cell(self, grid: Grid) -> CellIndex:
        """Pick the run's start cell first, then among the lowest-entropy cells.

        The start cell is collapsed once per run even when manual seeds have
        already constrained other cells. It is skipped if a seed committed it.
        """
        if self._start_pending:
            self._start_pending = False
            start = self._start_cell(grid)
            if grid.collapsed_bit[start] < 0:
                return start

        candidates = grid.lowest_entropy_cells()
        if candidates.size:
            # Uniform tie-break avoids a bias toward the top-left corner.
            return int(self.rng.choice(candidates))

        # Backtracking undid every collapse; bootstrap again.
        return self._start_cell(grid)

    def _start_cell(self, grid: Grid) -> CellIndex:
        if self.starting_index is not None:
            return self.starting_index
        return self.rng.randint(0, grid.size - 1)

    def _select_tile(self, grid: Grid, index: CellIndex) -> TileId:
        if math.isinf(grid.entropy[index]):
            # Unconstrained (start cell): every tile is equally likely.
            return self.rng.choice(self.rules.tile_ids)

        tiles = grid.candidate_tiles(index)
        weights = [self.rules.weight_of(tile) for tile in tiles]
        if sum(weights) <= 0:
            # Only zero-weight tiles fit here; treat it like an empty cell.
            raise WFCContradiction(index)
        return self.rng.choice_weighted(tiles, weights)

    def _backtrack(self, grid: Grid) -> None:
        """Undo the most recent collapse.

        Raises:
            EmptyHistoryError: If there is nothing to undo.
            BacktrackBudgetExhausted: If this backtrack exceeds the budget.
        """
        if not self._history:
            raise EmptyHistoryError()

        step = self._history.pop()
        try:
            grid.restore(step)
        except WFCContradiction as exc:
            # Marks stay on the grid; the next pass of the loop backs up again.
            logger.debug(
                f"{self.name}: contradiction at {list(exc.cell_indices)} "
                f"remains after undoing cell {step.cell_index}"
            )

        self._backtrack_count += 1
        self.stats.note_backtrack(self._backtrack_count)
        logger.debug(
            f"{self.name}: backtracked cell {step.cell_index} "
            f"({self._backtrack_count}/{self.max_backtracks}, "
            f"depth {len(self._history)})"
        )

        if self._backtrack_count > self.max_backtracks:
            raise BacktrackBudgetExhausted(self.max_backtracks)

    def _complete(self, grid: Grid) -> None:
        self._state = RunState.COLLAPSED
        logger.info(
            f"{self.name}: collapse complete after {self.stats.steps} steps "
            f"and {self.stats.backtracks} backtracks"
        )
        self.events.publish(
            CollapseCompleteEvent(
                self.name, tuple(grid.snapshot()), grid.tile_array()
            )
        )

    def __repr__(self) -> str:
        return (
            f"WFC(name={self.name!r}, {self.width}x{self.height}, "
            f"tiles={len(self.rules)}, state={self._state.value})"
        )
