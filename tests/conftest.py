"""Shared fixtures: one herbivore and one predator parameter set, small maps."""

import pytest

from biosim.grid import Grid
from biosim.population import Population
from biosim.species import SpeciesCatalog, species_from_parameters
from biosim.types import builtin_terrain


HERBIVORE_PARAMS = {
    'Navn': 'B',
    'v_fod': 8.0, 'beta': 0.9, 'sigma': 0.05, 'v_min': 1.0,
    'a_halv': 40.0, 'phi_alder': 0.2,
    'v_halv_under': 4.0, 'phi_under': 1.0,
    'v_halv_over': 60.0, 'phi_over': 0.2,
    'mu': 0.25, 'gamma': 0.2, 'zeta': 1.5, 'omega': 0.4,
    'F': 10.0,
}

PREDATOR_PARAMS = {
    'Navn': 'R',
    'v_fod': 6.0, 'beta': 0.75, 'sigma': 0.125, 'v_min': 1.0,
    'a_halv': 40.0, 'phi_alder': 0.3,
    'v_halv_under': 4.0, 'phi_under': 1.0,
    'v_halv_over': 60.0, 'phi_over': 0.2,
    'mu': 0.4, 'gamma': 0.8, 'zeta': 1.8, 'omega': 0.9,
    'DeltaPhiMax': 10.0,
}


@pytest.fixture
def herbivore_params():
    return dict(HERBIVORE_PARAMS)


@pytest.fixture
def predator_params():
    return dict(PREDATOR_PARAMS)


@pytest.fixture
def catalog():
    """Herbivore 'B' at index 0, predator 'R' at index 1."""
    return SpeciesCatalog([
        species_from_parameters(HERBIVORE_PARAMS),
        species_from_parameters(PREDATOR_PARAMS),
    ])


@pytest.fixture
def savanna_grid():
    """3×3 map: savanna ring around one jungle cell (cell index = 3y + x)."""
    return Grid.from_rows(builtin_terrain(), ["SSS", "SJS", "SSS"])


@pytest.fixture
def island_grid():
    """4×3 map with water, mountain and desert around live cells."""
    return Grid.from_rows(builtin_terrain(), ["HHHH", "HJSF", "HOSH"])


@pytest.fixture
def population(savanna_grid, catalog):
    return Population(savanna_grid, catalog, capacity=4)
