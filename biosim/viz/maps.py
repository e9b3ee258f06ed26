"""Map images and population plots.

The map image draws every cell as a 12×12 pixel tile in its terrain
colour, separated by 1 pixel black lines. On live cells a strip across
the tile shows animal density (left half) and, where the terrain holds
feed, feed density (right half):

  animal density  s = min(3·n, 510):  s < 255 → (s, 0, 255)
                                      else    → (255, 0, 510 − s)
  feed density    c = ⌈510·feed/max⌉: c < 255 → (255, 0, c)
                                      else    → (510 − c, 0, 255)

matplotlib backend is forced to Agg (no display) on import.
"""

from __future__ import annotations

import matplotlib
matplotlib.use('Agg')

import math
from typing import Optional, Tuple, TYPE_CHECKING

import matplotlib.pyplot as plt
import numpy as np

from biosim.grid import Grid
from biosim.viz.style import (
    DARK_PANEL,
    DIET_COLORS,
    GRID_COLOR,
    SPECIES_COLORS,
    TEXT_COLOR,
    dark_figure,
    save_figure,
)

if TYPE_CHECKING:
    from biosim.model import SimulationResult
    from biosim.population import Population


TILE = 13          # 12 px tile + 1 px separator
STRIP_ROWS = range(3, 11)
ANIMAL_COLS = range(3, 7)
FEED_COLS = range(7, 11)

RGB = Tuple[int, int, int]


def hex_to_rgb(color: str) -> RGB:
    return int(color[0:2], 16), int(color[2:4], 16), int(color[4:6], 16)


def animal_density_color(n_animals: int) -> RGB:
    scale = min(3 * n_animals, 0x1FE)
    if scale < 0xFF:
        return scale, 0, 0xFF
    return 0xFF, 0, 0x1FE - scale


def feed_density_color(feed: float, max_feed: float) -> RGB:
    part = int(math.ceil(0x1FE * feed / max_feed))
    if part < 0xFF:
        return 0xFF, 0, part
    return 0x1FE - part, 0, 0xFF


def map_image(grid: Grid, population: Optional['Population'] = None) -> np.ndarray:
    """RGB image (uint8) of the map, with density strips when a
    population is given."""
    image = np.zeros((grid.n_rows * TILE + 1, grid.n_cols * TILE + 1, 3),
                     dtype=np.uint8)
    density = grid.density() if population is not None else None
    for cell in range(grid.n_cells):
        x, y = grid.coords(cell)
        top, left = y * TILE + 1, x * TILE + 1
        kind = grid.terrain_of(cell)
        image[top:top + TILE - 1, left:left + TILE - 1] = hex_to_rgb(kind.color)
        if density is None or not kind.live:
            continue
        rows = slice(y * TILE + STRIP_ROWS.start, y * TILE + STRIP_ROWS.stop)
        image[rows, x * TILE + ANIMAL_COLS.start:x * TILE + ANIMAL_COLS.stop] = \
            animal_density_color(int(density[cell]))
        if kind.max_feed > 0:
            image[rows, x * TILE + FEED_COLS.start:x * TILE + FEED_COLS.stop] = \
                feed_density_color(float(grid.feed[cell]), kind.max_feed)
    return image


def write_map_png(path: str, grid: Grid,
                  population: Optional['Population'] = None) -> str:
    """Write the map image pixel for pixel as a PNG file."""
    plt.imsave(path, map_image(grid, population))
    return path


def plot_population_trajectory(
    result: 'SimulationResult',
    by_species: bool = False,
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Herbivore, predator and total counts per year.

    Args:
        result: SimulationResult from Simulation.run().
        by_species: Plot one line per species instead of per diet.
        save_path: Optional path to save the figure.

    Returns:
        matplotlib Figure.
    """
    fig, ax = dark_figure()
    years = result.years
    if by_species:
        for i, name in enumerate(result.species_names):
            ax.plot(years, result.species_counts[:, i], linewidth=2,
                    color=SPECIES_COLORS[i % len(SPECIES_COLORS)], label=name)
    else:
        ax.plot(years, result.herbivores, color=DIET_COLORS['herbivores'],
                linewidth=2, label='Herbivores')
        ax.plot(years, result.predators, color=DIET_COLORS['predators'],
                linewidth=2, label='Predators')
        ax.plot(years, result.total, color=DIET_COLORS['total'],
                linewidth=1.5, linestyle='--', label='Total')

    ax.set_xlabel('Year', fontsize=12)
    ax.set_ylabel('Animals', fontsize=12)
    ax.set_title('Population Trajectory', fontsize=14, fontweight='bold')
    ax.legend(facecolor=DARK_PANEL, edgecolor=GRID_COLOR,
              labelcolor=TEXT_COLOR, fontsize=10)
    ax.set_ylim(bottom=0)

    if save_path:
        save_figure(fig, save_path)
    return fig
