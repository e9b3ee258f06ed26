"""Tests for biosim.types — arena dtype, sentinels, terrain catalog."""

import numpy as np

from biosim.types import (
    ANIMAL_DTYPE,
    FITNESS_STALE,
    NO_CELL,
    BUILTIN_TERRAIN_COLORS,
    Diet,
    PopulationRecord,
    TerrainKind,
    allocate_animals,
    builtin_terrain,
)


class TestAnimalDtype:
    def test_fields(self):
        assert set(ANIMAL_DTYPE.names) == {
            'species', 'weight', 'age', 'cell', 'fitness', 'alive',
        }

    def test_allocate_defaults(self):
        arena = allocate_animals(5)
        assert arena.shape == (5,)
        assert not arena['alive'].any()
        np.testing.assert_array_equal(arena['cell'], NO_CELL)
        np.testing.assert_array_equal(arena['fitness'], FITNESS_STALE)
        np.testing.assert_array_equal(arena['age'], 0)


class TestDiet:
    def test_values(self):
        assert Diet.HERBIVORE == 0
        assert Diet.PREDATOR == 1


class TestBuiltinTerrain:
    def test_codes(self):
        terrain = builtin_terrain()
        assert list(terrain) == ['H', 'J', 'S', 'F', 'O']

    def test_live_flags(self):
        terrain = builtin_terrain()
        live = [code for code, kind in terrain.items() if kind.live]
        assert live == ['J', 'S', 'O']

    def test_tuning(self):
        terrain = builtin_terrain(savanna_alpha=0.5, savanna_fmax=100.0,
                                  jungle_fmax=550.0)
        assert terrain['S'].alpha == 0.5
        assert terrain['S'].max_feed == 100.0
        assert terrain['J'].alpha == 1.0
        assert terrain['J'].max_feed == 550.0

    def test_barren_terrain(self):
        terrain = builtin_terrain()
        for code in ('H', 'F', 'O'):
            assert terrain[code].alpha == 0.0
            assert terrain[code].max_feed == 0.0

    def test_colors(self):
        terrain = builtin_terrain()
        for code, kind in terrain.items():
            assert kind.color == BUILTIN_TERRAIN_COLORS[code]

    def test_terrain_kind_frozen(self):
        kind = TerrainKind('X', 0.1, 10.0, True)
        try:
            kind.alpha = 0.2
        except AttributeError:
            pass
        else:
            raise AssertionError("TerrainKind should be immutable")


class TestPopulationRecord:
    def test_fields(self):
        rec = PopulationRecord('B', 1, 2, 3, 4.5)
        assert (rec.species, rec.x, rec.y, rec.age, rec.weight) == ('B', 1, 2, 3, 4.5)
