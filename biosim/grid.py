"""Grid: terrain registry, cell arrays and the neighbour graph.

Cells are created once when the map is built and never move. Grid owns
every per-cell quantity as parallel arrays indexed by cell number:

  - terrain code, x, y        (fixed)
  - feed                      (mutable, bounded [0, max_feed])
  - neighbours (n_cells, 4)   (fixed; west, north, east, south)
  - residents                 (set of animal indices per cell)

Addresses pack (x, y) as ``(x << 16) + y``.

Boundary policy for neighbours: on the low edges (x = 0 or y = 0) the
missing neighbour is the cell itself. On the high edges the comparison is
made against the column/row count rather than count − 1, so the east
neighbour of the last column and the south neighbour of the last row
name a coordinate outside the map and are stored as OFF_GRID. A move to
OFF_GRID is refused like a move into non-live terrain; either way the
animal stays where it is.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from biosim.errors import ConfigError
from biosim.types import OFF_GRID, TerrainKind


# Neighbour slot order
WEST, NORTH, EAST, SOUTH = range(4)


def coord_pack(x: int, y: int) -> int:
    """Pack grid coordinates into one address (x high, y low)."""
    return (x << 16) + y


def coord_unpack(coord: int) -> Tuple[int, int]:
    return coord >> 16, coord & 0xFFFF


class Grid:
    """The simulation map.

    Build with ``Grid.from_rows(terrain, rows)`` or register terrain,
    call build_cell() for every coordinate and finish with link().
    """

    def __init__(self, terrain: Optional[Dict[str, TerrainKind]] = None):
        self.terrain: Dict[str, TerrainKind] = {}
        for kind in (terrain or {}).values():
            self.register_terrain(kind)

        self.n_rows = 0
        self.n_cols = 0

        # Per-cell storage, grown by build_cell() until link()
        self._codes: List[str] = []
        self._x: List[int] = []
        self._y: List[int] = []
        self._feed: List[float] = []
        self._address: Dict[int, int] = {}
        self.residents: List[Set[int]] = []

        self.feed: np.ndarray = np.zeros(0, dtype=np.float64)
        self.alpha: np.ndarray = np.zeros(0, dtype=np.float64)
        self.max_feed: np.ndarray = np.zeros(0, dtype=np.float64)
        self.live: np.ndarray = np.zeros(0, dtype=bool)
        self.x: np.ndarray = np.zeros(0, dtype=np.int64)
        self.y: np.ndarray = np.zeros(0, dtype=np.int64)
        self.neighbors: np.ndarray = np.zeros((0, 4), dtype=np.int64)
        self._live: np.ndarray = np.zeros(0, dtype=np.int64)
        self._linked = False

    # ── construction ─────────────────────────────────────────────────

    @classmethod
    def from_rows(cls, terrain: Dict[str, TerrainKind],
                  rows: Sequence[str]) -> 'Grid':
        """Build a rectangular grid from rows of terrain codes.

        Row y, column x of ``rows`` becomes the cell at (x, y).

        Raises:
            ConfigError: ragged rows or an unregistered terrain code.
        """
        grid = cls(terrain)
        if not rows:
            raise ConfigError("map has no rows")
        n_cols = len(rows[0])
        for y, row in enumerate(rows):
            if len(row) != n_cols:
                raise ConfigError(
                    f"map row {y} has {len(row)} cells, expected {n_cols}"
                )
            for x, code in enumerate(row):
                grid.build_cell(coord_pack(x, y), code)
        grid.link(n_rows=len(rows), n_cols=n_cols)
        return grid

    def register_terrain(self, kind: TerrainKind) -> None:
        if len(kind.code) != 1:
            raise ConfigError(
                f"terrain code must be a single character, got {kind.code!r}"
            )
        if not 0.0 <= kind.alpha <= 1.0:
            raise ConfigError(
                f"terrain '{kind.code}': alpha must be in [0, 1], got {kind.alpha}"
            )
        if kind.max_feed < 0:
            raise ConfigError(
                f"terrain '{kind.code}': max feed must be >= 0, got {kind.max_feed}"
            )
        self.terrain[kind.code] = kind

    def build_cell(self, coord: int, code: str) -> int:
        """Create the cell at a packed address with full feed.

        Returns:
            The new cell index.

        Raises:
            ConfigError: unregistered terrain code, duplicate address or
                grid already linked.
        """
        if self._linked:
            raise ConfigError("cannot add cells after the grid is linked")
        kind = self.terrain.get(code)
        if kind is None:
            raise ConfigError(f"undefined terrain type: {code!r}")
        if coord in self._address:
            x, y = coord_unpack(coord)
            raise ConfigError(f"cell ({x}, {y}) defined twice")
        idx = len(self._codes)
        x, y = coord_unpack(coord)
        self._codes.append(code)
        self._x.append(x)
        self._y.append(y)
        self._feed.append(kind.max_feed)
        self._address[coord] = idx
        self.residents.append(set())
        return idx

    def link(self, n_rows: Optional[int] = None,
             n_cols: Optional[int] = None) -> None:
        """Freeze the cell set and compute the neighbour table once."""
        if self._linked:
            return
        self.n_cols = n_cols if n_cols is not None else max(self._x, default=-1) + 1
        self.n_rows = n_rows if n_rows is not None else max(self._y, default=-1) + 1

        self.x = np.array(self._x, dtype=np.int64)
        self.y = np.array(self._y, dtype=np.int64)
        self.feed = np.array(self._feed, dtype=np.float64)
        self.alpha = np.array([self.terrain[c].alpha for c in self._codes],
                              dtype=np.float64)
        self.max_feed = np.array([self.terrain[c].max_feed for c in self._codes],
                                 dtype=np.float64)
        self.live = np.array([self.terrain[c].live for c in self._codes],
                             dtype=bool)
        self._live = np.flatnonzero(self.live)
        self._linked = True

        n = len(self._codes)
        self.neighbors = np.full((n, 4), OFF_GRID, dtype=np.int64)
        for idx in range(n):
            self.neighbors[idx] = self._candidates_at(self._x[idx], self._y[idx])

    def _candidates_at(self, x: int, y: int) -> List[int]:
        def lookup(cx: int, cy: int) -> int:
            cell = self.at(cx, cy)
            return OFF_GRID if cell is None else cell

        here = lookup(x, y)
        west = here if x == 0 else lookup(x - 1, y)
        north = here if y == 0 else lookup(x, y - 1)
        east = here if x == self.n_cols else lookup(x + 1, y)
        south = here if y == self.n_rows else lookup(x, y + 1)
        return [west, north, east, south]

    # ── addressing ───────────────────────────────────────────────────

    @property
    def n_cells(self) -> int:
        return len(self._codes)

    def at(self, x: int, y: int) -> Optional[int]:
        """Cell index at (x, y), or None outside the map."""
        if x < 0 or y < 0:
            return None
        if self._linked and (x >= self.n_cols or y >= self.n_rows):
            return None
        return self._address.get(coord_pack(x, y))

    def coords(self, cell: int) -> Tuple[int, int]:
        return self._x[cell], self._y[cell]

    def terrain_of(self, cell: int) -> TerrainKind:
        return self.terrain[self._codes[cell]]

    def code_of(self, cell: int) -> str:
        return self._codes[cell]

    def neighbors_of(self, cell: int) -> Tuple[Optional[int], ...]:
        """The four neighbour slots (west, north, east, south).

        Low-edge slots hold the cell itself; high-edge slots that point
        off the map are None.
        """
        return tuple(None if n == OFF_GRID else int(n)
                     for n in self.neighbors[cell])

    # ── traversal ────────────────────────────────────────────────────

    def live_cells(self, rng) -> np.ndarray:
        """All live cells in a fresh uniformly random order."""
        return self._live[rng.permutation(len(self._live))]

    def all_cells(self) -> np.ndarray:
        """Every cell, live or not, in row-major order (y, then x)."""
        return np.lexsort((self.x, self.y))

    # ── membership ───────────────────────────────────────────────────

    def accepts_animals(self, cell: int) -> bool:
        return bool(self.live[cell])

    def add_resident(self, cell: int, animal: int) -> bool:
        """Register an animal in a cell; False if the cell refuses it."""
        if not self.live[cell]:
            return False
        self.residents[cell].add(animal)
        return True

    def remove_resident(self, cell: int, animal: int) -> None:
        self.residents[cell].discard(animal)

    # ── feed ─────────────────────────────────────────────────────────

    def regrow(self, cell: int) -> None:
        """feed += α · (max_feed − feed)."""
        self.feed[cell] += self.alpha[cell] * (self.max_feed[cell] - self.feed[cell])

    def graze(self, cell: int, amount: float) -> float:
        """Remove up to ``amount`` feed from a cell and return what was granted."""
        available = self.feed[cell]
        if available >= amount:
            self.feed[cell] = available - amount
            return float(amount)
        self.feed[cell] = 0.0
        return float(available)

    # ── read-only reporting queries ──────────────────────────────────

    def feed_levels(self) -> np.ndarray:
        """Copy of the feed of every cell, indexed by cell."""
        return self.feed.copy()

    def density(self) -> np.ndarray:
        """Number of residents of every cell, indexed by cell."""
        return np.array([len(r) for r in self.residents], dtype=np.int64)

    def live_terrain_codes(self) -> List[str]:
        """Codes of live terrain kinds in registration order."""
        return [k.code for k in self.terrain.values() if k.live]

    def summary(self) -> str:
        counts: Dict[str, int] = {}
        for code in self._codes:
            counts[code] = counts.get(code, 0) + 1
        parts = ", ".join(f"{c}={n}" for c, n in sorted(counts.items()))
        return (f"Grid: {self.n_cols}x{self.n_rows}, {self.n_cells} cells "
                f"({len(self._live)} live; {parts})")


def iter_rows(grid: Grid, cells: Iterable[int]) -> Iterable[List[int]]:
    """Group row-major cells into map rows."""
    row: List[int] = []
    for cell in cells:
        row.append(int(cell))
        if len(row) == grid.n_cols:
            yield row
            row = []
    if row:
        yield row
