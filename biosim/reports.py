"""Text report writers.

All reports start with a comment line and a ``Geografi <map>`` line. Cell
reports list every cell of the map (live or not) in row-major order with
a blank line after each map row.

  <stem>.dat               one row per year: herbivore/predator counts per
                           live terrain kind
  <stem>.<year:05d>.dyr    per-cell herbivore and predator counts
  <stem>.<year:05d>.for    per-cell feed
  <stem>.<year:05d>.pop    population snapshot, loadable as a .pop file
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Sequence, TextIO, Tuple

from biosim.grid import Grid, iter_rows
from biosim.population import Population
from biosim.types import Diet

COMMENT_CHAR = '#'

# Column prefixes of the .dat report
DIET_LABELS = {Diet.HERBIVORE: 'B', Diet.PREDATOR: 'R'}


def ensure_output_dir(stem: str) -> Path:
    """Create the directory that will hold files named ``<stem>.*``."""
    directory = Path(stem).parent
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def numbered_name(stem: str, year: int) -> str:
    """Base name of a per-year report, e.g. ``out/run.00042``."""
    return f"{stem}.{year:05d}"


def format_progress(stats) -> str:
    """One-line yearly progress report."""
    return (f"År:{stats.year:5d} bytte: {stats.herbivores:7d} "
            f"rovdyr: {stats.predators:7d} totalt: {stats.total:7d}")


def _write_header(f: TextIO, geography: str, title: str) -> None:
    f.write(f"{COMMENT_CHAR}\nGeografi     {geography}\n")
    f.write(f"{COMMENT_CHAR}{title}\n")


# ═══════════════════════════════════════════════════════════════════════
# .DAT: YEARLY COUNTS BY DIET AND TERRAIN
# ═══════════════════════════════════════════════════════════════════════

class DatReport:
    """Append-only yearly count table.

    Args:
        stem: Output stem; the file is ``<stem>.dat``.
        geography: Map name for the header.
        terrain_codes: Live terrain codes, one column pair each.
    """

    def __init__(self, stem: str, geography: str, terrain_codes: Sequence[str]):
        self.path = Path(f"{stem}.dat")
        self.columns: List[Tuple[Diet, str]] = [
            (diet, code) for code in terrain_codes
            for diet in (Diet.HERBIVORE, Diet.PREDATOR)
        ]
        self._file = open(self.path, 'w')
        labels = ''.join(f"{DIET_LABELS[d] + '/' + c:>8}" for d, c in self.columns)
        _write_header(self._file, geography, f"Year{labels}")

    def write_row(self, year: int, counts: Dict[Tuple[Diet, str], int]) -> None:
        cells = ''.join(f"{counts.get(col, 0):8d}" for col in self.columns)
        self._file.write(f"{year:5d}{cells}\n")
        self._file.flush()

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()

    def __enter__(self) -> 'DatReport':
        return self

    def __exit__(self, *exc) -> None:
        self.close()


# ═══════════════════════════════════════════════════════════════════════
# PER-CELL REPORTS
# ═══════════════════════════════════════════════════════════════════════

def _cell_diet_counts(population: Population, cell: int) -> Tuple[int, int]:
    herbivores = predators = 0
    predator = population.catalog.predator_mask()
    for idx in population.grid.residents[cell]:
        if predator[int(population.animals['species'][idx])]:
            predators += 1
        else:
            herbivores += 1
    return herbivores, predators


def write_animal_report(stem: str, year: int, grid: Grid,
                        population: Population, geography: str) -> Path:
    """Write ``<stem>.<year>.dyr``: herbivores and predators per cell."""
    path = Path(numbered_name(stem, year) + '.dyr')
    n = 0
    with open(path, 'w') as f:
        _write_header(f, geography, "  Bytte  Rovdyr")
        for row in iter_rows(grid, grid.all_cells()):
            for cell in row:
                herbivores, predators = _cell_diet_counts(population, cell)
                f.write(f"{herbivores:8d}{predators:8d}\n")
                n += 1
            f.write("\n")
        f.write(f"{COMMENT_CHAR} antall celler: {n}\n")
    return path


def write_feed_report(stem: str, year: int, grid: Grid, geography: str) -> Path:
    """Write ``<stem>.<year>.for``: feed per cell."""
    path = Path(numbered_name(stem, year) + '.for')
    feed = grid.feed_levels()
    n = 0
    with open(path, 'w') as f:
        _write_header(f, geography, " Fôr")
        for row in iter_rows(grid, grid.all_cells()):
            for cell in row:
                f.write(f"{feed[cell]:5g}\n")
                n += 1
            f.write("\n")
        f.write(f"{COMMENT_CHAR} antall celler: {n}\n")
    return path


def write_population_report(stem: str, year: int, grid: Grid,
                            population: Population, geography: str) -> Path:
    """Write ``<stem>.<year>.pop``, a snapshot readable by the .pop loader."""
    path = Path(numbered_name(stem, year) + '.pop')
    with open(path, 'w') as f:
        f.write(f"{COMMENT_CHAR} populasjon\nGeografi     {geography}\n")
        for cell in grid.all_cells():
            cell = int(cell)
            x, y = grid.coords(cell)
            for name, animals in population.occupants_by_species(cell).items():
                f.write(f"{name} {x} {y} {len(animals)}\n")
                for age, weight in animals:
                    f.write(f"{age:3d} {weight:7.3f}\n")
                f.write("\n")
    return path
