"""Per-solver event bus for progress notifications.

Each solver owns its own `EventBus`; there is no process-wide bus, so two
solvers running side by side never see each other's notifications.

USE FOR:
- Rendering or animating cells as they collapse
- Reporting progress in a UI
- Collecting the finished grid

DO NOT USE FOR:
- Anything the solver's correctness depends on
- Feeding decisions back into the solver

The bus is fire-and-forget: handlers run immediately (synchronously) during
the step that produced the event, and their return values are ignored. A
handler that raises is logged and skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias

if TYPE_CHECKING:
    import numpy as np

    from tilewave.generators.grid import Cell

logger = logging.getLogger(__name__)


@dataclass
class WFCEvent:
    """Base class for all solver events.

    Attributes:
        name: Name of the solver that published the event.
    """

    name: str


@dataclass
class CellCollapsedEvent(WFCEvent):
    """A cell was committed to a tile.

    Attributes:
        cell: Snapshot of the cell right after the commit.
        step: Forward step number (1-based); 0 for manual seeds.
    """

    cell: Cell
    step: int = 0


@dataclass
class CollapseCompleteEvent(WFCEvent):
    """Every cell in the grid has a tile.

    Attributes:
        cells: Final snapshot of every cell, in index order.
        tiles: Tile ids as a (height, width) array.
    """

    cells: tuple[Cell, ...]
    tiles: np.ndarray


EventHandler: TypeAlias = Callable[[WFCEvent], None]


class EventBus:
    """Simple event bus for publish/subscribe pattern."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable]] = {}

    def subscribe(self, event_type: type, handler: Callable) -> None:
        """Subscribe a handler to an event type."""
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: Callable) -> None:
        """Unsubscribe a handler from an event type."""
        if event_type in self._handlers:
            with suppress(ValueError):
                self._handlers[event_type].remove(handler)

    def publish(self, event: WFCEvent) -> None:
        """Publish an event to all subscribed handlers."""
        event_type = type(event)
        if event_type in self._handlers:
            # Copy the handler list to allow safe subscribe/unsubscribe during dispatch
            for handler in list(self._handlers[event_type]):
                try:
                    handler(event)
                except Exception:
                    logger.exception(f"Error handling event {event_type.__name__}")

    def clear(self) -> None:
        self._handlers.clear()
