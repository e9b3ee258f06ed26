"""Core data types for BioSim.

This module is the SINGLE SOURCE OF TRUTH for:
  - ANIMAL_DTYPE: NumPy structured array dtype for the animal arena
  - Diet enumeration (herbivore / predator dispatch flag)
  - Sentinel indices (NO_CELL, OFF_GRID) and the stale-fitness marker
  - TerrainKind descriptors and the built-in terrain catalog
  - Loader/report data transfer objects (PopulationRecord)

Animals and cells never hold references to each other: an animal stores
the index of its cell, a cell stores a set of animal indices. Grid owns
the cell arrays, Population owns the animal arena.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict

import numpy as np


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class Diet(IntEnum):
    """Feeding strategy of a species.

    HERBIVORE  grazes feed from its cell (species defines F).
    PREDATOR   hunts cellmates of other species (species defines ΔΦmax).
    """
    HERBIVORE = 0
    PREDATOR  = 1


# ═══════════════════════════════════════════════════════════════════════
# SENTINELS
# ═══════════════════════════════════════════════════════════════════════

NO_CELL = -1          # animal has no location (dead or never placed)
OFF_GRID = -1         # neighbour slot pointing outside the map
FITNESS_STALE = -1.0  # fitness cache invalidated; recompute on next read


# ═══════════════════════════════════════════════════════════════════════
# ANIMAL_DTYPE: ARENA RECORD FOR ONE INDIVIDUAL
# ═══════════════════════════════════════════════════════════════════════

ANIMAL_DTYPE = np.dtype([
    ('species', np.int16),    # index into SpeciesCatalog
    ('weight',  np.float64),  # body weight
    ('age',     np.int32),    # whole years; 0 at birth
    ('cell',    np.int32),    # index into Grid arrays, NO_CELL when dead
    ('fitness', np.float64),  # cached Φ ∈ [0, 1], FITNESS_STALE when dirty
    ('alive',   np.bool_),    # registered in the global population
])


def allocate_animals(max_n: int) -> np.ndarray:
    """Allocate an empty animal arena.

    Every slot starts dead, location-less and with a stale fitness cache.

    Args:
        max_n: Arena capacity.

    Returns:
        Structured array of shape (max_n,) with ANIMAL_DTYPE.
    """
    arena = np.zeros(max_n, dtype=ANIMAL_DTYPE)
    arena['cell'] = NO_CELL
    arena['fitness'] = FITNESS_STALE
    return arena


# ═══════════════════════════════════════════════════════════════════════
# TERRAIN
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TerrainKind:
    """Immutable descriptor shared by every cell of one terrain type.

    alpha = 0 means no regrowth, alpha = 1 means the cell refills to
    max_feed every year. Non-live terrain neither holds animals nor feed
    that anyone can reach.
    """
    code: str             # single character used in .geo maps
    alpha: float          # regrowth coefficient ∈ [0, 1]
    max_feed: float       # feed capacity
    live: bool            # participates in the simulation
    color: str = '000000'  # RGB hex triplet for map rendering


# Display colours of the built-in terrain kinds
BUILTIN_TERRAIN_COLORS = {
    'H': '0000ff',   # water
    'S': 'adff2f',   # savanna
    'J': '008000',   # jungle
    'F': '808080',   # mountain
    'O': 'ffd700',   # desert
}


def builtin_terrain(
    savanna_alpha: float = 0.3,
    savanna_fmax: float = 300.0,
    jungle_fmax: float = 800.0,
) -> Dict[str, TerrainKind]:
    """The five classic terrain kinds.

    Only savanna regrowth and the savanna/jungle capacities are tunable;
    jungle always regrows fully, the others never hold feed.
    """
    c = BUILTIN_TERRAIN_COLORS
    return {
        'H': TerrainKind('H', 0.0, 0.0, False, c['H']),
        'J': TerrainKind('J', 1.0, jungle_fmax, True, c['J']),
        'S': TerrainKind('S', savanna_alpha, savanna_fmax, True, c['S']),
        'F': TerrainKind('F', 0.0, 0.0, False, c['F']),
        'O': TerrainKind('O', 0.0, 0.0, True, c['O']),
    }


# ═══════════════════════════════════════════════════════════════════════
# DATA TRANSFER OBJECTS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PopulationRecord:
    """One animal as read from a population file."""
    species: str
    x: int
    y: int
    age: int
    weight: float
