from __future__ import annotations

from typing import Literal, NewType, TypeAlias

# =============================================================================
# TILE TYPES
# =============================================================================

# Identifier of a tile in a rule set. Non-negative; -1 is reserved for
# "no tile" in query results and flattened grid arrays.
TileId = NewType("TileId", int)

# Flattened row-major position of a cell: y * width + x.
CellIndex: TypeAlias = int

# Bit position of a tile inside a cell's candidate mask.
TileBit: TypeAlias = int

# =============================================================================
# SPATIAL TYPES
# =============================================================================

# Directions are from the tile's own perspective: "up" lists the tiles that
# may sit directly above it.
Direction: TypeAlias = Literal["up", "right", "down", "left"]

GridPos: TypeAlias = tuple[int, int]  # Example: (5, 3) = column 5, row 3

# =============================================================================
# UTILITY TYPES
# =============================================================================

# Random seed for deterministic generation. Can be an int, a descriptive
# string like "meadow", or None for a time-based seed.
RandomSeed: TypeAlias = int | str | None
