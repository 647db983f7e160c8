"""Tile adjacency rules.

A rule set maps each tile id to a `TileRule`: a selection weight plus the
tiles allowed to sit directly above, below, left and right of it. Directions
are from the tile's own perspective, so `up` lists the tiles allowed above.

Rules are not required to be symmetric. If tile A allows B above it but B does
not list A below it, the solver still runs; the constraint from whichever cell
collapsed first is the one that applies.

Bitset representation:
    Tiles are assigned bit indices in ascending id order, so a cell's
    candidate set is a single uint64 and intersection is a bitwise AND. For
    each direction we precompute `masks[direction][bit]`, the mask of tiles
    allowed in that direction of the tile at `bit`. This caps a rule set at
    64 tiles.
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import numpy as np

from tilewave import config
from tilewave.generators.errors import RuleSetError, UnknownTileError
from tilewave.types import Direction, TileBit, TileId

# Direction utilities
DIRECTIONS: tuple[Direction, ...] = ("up", "right", "down", "left")
OPPOSITE_DIR: dict[Direction, Direction] = {
    "up": "down",
    "right": "left",
    "down": "up",
    "left": "right",
}
DIR_OFFSETS: dict[Direction, tuple[int, int]] = {
    "up": (0, -1),
    "right": (1, 0),
    "down": (0, 1),
    "left": (-1, 0),
}


def _coerce_tile_id(value: Any) -> TileId:
    """Validate a tile id from rule data. JSON object keys arrive as strings."""
    if isinstance(value, bool):
        raise RuleSetError(f"Tile id must be an integer, got {value!r}")
    if isinstance(value, str):
        try:
            value = int(value)
        except ValueError:
            raise RuleSetError(f"Tile id must be an integer, got {value!r}") from None
    if not isinstance(value, int | np.integer):
        raise RuleSetError(f"Tile id must be an integer, got {value!r}")
    if value < 0:
        raise RuleSetError(f"Tile id must be non-negative, got {value}")
    return TileId(int(value))


@dataclass(frozen=True)
class TileRule:
    """Adjacency constraints and selection weight for one tile.

    Attributes:
        weight: Relative probability weight for selection (higher = more
            common). A tile with weight 0 is never picked by weighted choice.
        up, right, down, left: Tile ids allowed in the neighboring cell in
            that direction.
    """

    weight: float = config.DEFAULT_TILE_WEIGHT
    up: frozenset[TileId] = field(default_factory=frozenset)
    right: frozenset[TileId] = field(default_factory=frozenset)
    down: frozenset[TileId] = field(default_factory=frozenset)
    left: frozenset[TileId] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        # Accept any iterable of ids so rules can be written with lists.
        for direction in DIRECTIONS:
            tiles = getattr(self, direction)
            if not isinstance(tiles, frozenset):
                object.__setattr__(self, direction, frozenset(tiles))

    def neighbors(self, direction: Direction) -> frozenset[TileId]:
        """Return the tiles allowed in `direction` of this tile."""
        if direction not in OPPOSITE_DIR:
            raise ValueError(f"Unknown direction: {direction!r}")
        return getattr(self, direction)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TileRule:
        """Build a rule from JSON-shaped data. Missing directions allow nothing."""
        try:
            weight = float(data.get("weight", config.DEFAULT_TILE_WEIGHT))
        except (TypeError, ValueError):
            raise RuleSetError(f"Invalid weight: {data.get('weight')!r}") from None
        neighbors = {
            direction: frozenset(_coerce_tile_id(t) for t in data.get(direction, ()))
            for direction in DIRECTIONS
        }
        return cls(weight=weight, **neighbors)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"weight": self.weight}
        for direction in DIRECTIONS:
            result[direction] = sorted(getattr(self, direction))
        return result


class RuleSet:
    """Immutable-by-default mapping from tile id to `TileRule`.

    The only in-place edit is `set_weight`, which affects later draws only.
    """

    def __init__(
        self, rules: Mapping[Any, TileRule | Mapping[str, Any]] | None = None
    ) -> None:
        self._rules: dict[TileId, TileRule] = {}
        for key, rule in (rules or {}).items():
            tile = _coerce_tile_id(key)
            if tile in self._rules:
                raise RuleSetError(f"Tile {tile} defined more than once")
            if not isinstance(rule, TileRule):
                rule = TileRule.from_dict(rule)
            self._rules[tile] = rule

        self.tile_ids: tuple[TileId, ...] = tuple(sorted(self._rules))
        self.num_tiles = len(self.tile_ids)

        if self.num_tiles > config.MAX_TILES:
            raise RuleSetError(
                f"RuleSet supports at most {config.MAX_TILES} tiles, "
                f"got {self.num_tiles}."
            )

        self._validate()

        # Map tile id -> bit index
        self.tile_to_bit: dict[TileId, TileBit] = {
            tile: i for i, tile in enumerate(self.tile_ids)
        }
        # Map bit index -> tile id
        self.bit_to_tile = np.array(self.tile_ids, dtype=np.int64)

        # Tile weights indexed by bit position
        self.weights = np.array(
            [self._rules[tile].weight for tile in self.tile_ids], dtype=np.float64
        )

        self.all_tiles_mask = (1 << self.num_tiles) - 1

        self._precompute_propagation_masks()

    def _validate(self) -> None:
        for tile, rule in self._rules.items():
            _validate_weight(tile, rule.weight)
            for direction in DIRECTIONS:
                unknown = rule.neighbors(direction).difference(self._rules)
                if unknown:
                    raise RuleSetError(
                        f"Tile {tile} allows unknown tiles {sorted(unknown)} "
                        f"to its {direction}"
                    )

    def _precompute_propagation_masks(self) -> None:
        """Build `masks[direction][bit]` lookup tables."""
        self.masks: dict[Direction, np.ndarray] = {}
        for direction in DIRECTIONS:
            lookup = np.zeros(self.num_tiles, dtype=np.uint64)
            for bit, tile in enumerate(self.tile_ids):
                lookup[bit] = self.mask_of(self._rules[tile].neighbors(direction))
            self.masks[direction] = lookup

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def __contains__(self, tile: object) -> bool:
        return tile in self._rules

    def __len__(self) -> int:
        return self.num_tiles

    def __iter__(self) -> Iterator[TileId]:
        return iter(self.tile_ids)

    def __getitem__(self, tile: int) -> TileRule:
        try:
            return self._rules[TileId(tile)]
        except KeyError:
            raise UnknownTileError(tile) from None

    def items(self) -> Iterator[tuple[TileId, TileRule]]:
        for tile in self.tile_ids:
            yield tile, self._rules[tile]

    def weight_of(self, tile: int) -> float:
        return self[tile].weight

    def neighbors(self, tile: int, direction: Direction) -> frozenset[TileId]:
        return self[tile].neighbors(direction)

    def bit_of(self, tile: int) -> TileBit:
        try:
            return self.tile_to_bit[TileId(tile)]
        except KeyError:
            raise UnknownTileError(tile) from None

    def mask_of(self, tiles: Iterable[int]) -> int:
        """Convert a set of tile ids into a candidate bitmask."""
        mask = 0
        for tile in tiles:
            mask |= 1 << self.bit_of(tile)
        return mask

    def tiles_of(self, mask: int) -> frozenset[TileId]:
        """Convert a candidate bitmask back into tile ids."""
        mask = int(mask)
        return frozenset(
            self.tile_ids[bit] for bit in range(self.num_tiles) if mask & (1 << bit)
        )

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def set_weight(self, tile: int, weight: float) -> None:
        """Change a tile's selection weight.

        Raises:
            UnknownTileError: If the tile is not in the rule set. Never
                creates a new entry.
            RuleSetError: If the weight is negative or not finite.
        """
        bit = self.bit_of(tile)
        tile = TileId(tile)
        _validate_weight(tile, weight)
        self._rules[tile] = replace(self._rules[tile], weight=float(weight))
        self.weights[bit] = weight

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping[Any, Mapping[str, Any]]) -> RuleSet:
        """Load JSON-shaped rule data: `{"0": {"weight": 1, "up": [0, 1], ...}}`."""
        if not isinstance(data, Mapping):
            raise RuleSetError(
                f"Rule data must be a mapping, got {type(data).__name__}"
            )
        return cls({key: TileRule.from_dict(rule) for key, rule in data.items()})

    def to_dict(self) -> dict[int, dict[str, Any]]:
        return {tile: rule.to_dict() for tile, rule in self.items()}

    def __repr__(self) -> str:
        return f"RuleSet(tiles={list(self.tile_ids)})"


def _validate_weight(tile: TileId, weight: float) -> None:
    if not isinstance(weight, int | float | np.number) or isinstance(weight, bool):
        raise RuleSetError(f"Weight for tile {tile} must be a number, got {weight!r}")
    if not math.isfinite(weight) or weight < 0:
        raise RuleSetError(
            f"Weight for tile {tile} must be finite and non-negative, got {weight}"
        )


def load_rules(path: str | Path) -> RuleSet:
    """Read a rule set from a JSON file."""
    with Path(path).open() as f:
        data = json.load(f)
    return RuleSet.from_dict(data)


def save_rules(rules: RuleSet, path: str | Path) -> None:
    """Write a rule set to a JSON file (tile ids become string keys)."""
    with Path(path).open("w") as f:
        data = {str(tile): rule for tile, rule in rules.to_dict().items()}
        json.dump(data, f, indent=2)
