"""Tests for biosim.loaders — input file readers and config assembly."""

import logging
from pathlib import Path

import pytest

from biosim.config import config_from_dict
from biosim.errors import ConfigError
from biosim.loaders import (
    catalog_from_config,
    grid_from_config,
    population_records_from_config,
    read_cell_parameters,
    read_geo,
    read_key_value_file,
    read_population_file,
    read_sim_file,
    read_species_file,
    read_terrain_spec,
    terrain_from_config,
    terrain_from_entries,
)
from biosim.types import PopulationRecord

CONFIG_DIR = Path(__file__).parent.parent / 'configs'


def write(path, text):
    path.write_text(text)
    return path


# ── key/value files ───────────────────────────────────────────────────

class TestKeyValueFile:
    def test_reads_pairs_and_skips_comments(self, tmp_path):
        path = write(tmp_path / 'a.par', "# header\n\nalpha  0.3\nname  two words\n")
        assert read_key_value_file(path) == {'alpha': '0.3', 'name': 'two words'}

    def test_list_keys_collect(self, tmp_path):
        path = write(tmp_path / 'a.sim', "Pop a.pop\nPop b.pop\n")
        assert read_key_value_file(path, list_keys=('Pop', 'Art')) == {
            'Pop': ['a.pop', 'b.pop'], 'Art': [],
        }

    def test_duplicate_key(self, tmp_path):
        path = write(tmp_path / 'a.par', "alpha 1\nalpha 2\n")
        with pytest.raises(ConfigError, match='given twice'):
            read_key_value_file(path)

    def test_missing_value(self, tmp_path):
        path = write(tmp_path / 'a.par', "alpha\n")
        with pytest.raises(ConfigError, match=r"a\.par:1"):
            read_key_value_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match='could not open'):
            read_key_value_file(tmp_path / 'nope.par')


# ── terrain ───────────────────────────────────────────────────────────

class TestTerrain:
    def test_spec_table(self, tmp_path):
        path = write(tmp_path / 't.spec',
                     "# code alpha fmax live colour\n"
                     "W 0.0 0 0 0000FF\n"
                     "G 0.5 200 1 00c000\n"
                     "R 0.0 0 1\n")
        terrain = read_terrain_spec(path)
        assert list(terrain) == ['W', 'G', 'R']
        assert terrain['G'].alpha == 0.5
        assert terrain['G'].max_feed == 200.0
        assert terrain['G'].live
        assert terrain['G'].color == '00c000'
        assert terrain['W'].color == '0000ff'
        assert not terrain['W'].live
        assert terrain['R'].color == '000000'

    def test_spec_bad_colour(self, tmp_path):
        path = write(tmp_path / 't.spec', "G 0.5 200 1 zzzzzz\n")
        with pytest.raises(ConfigError, match='colour'):
            read_terrain_spec(path)

    def test_spec_bad_row(self, tmp_path):
        path = write(tmp_path / 't.spec', "GG 0.5 200 1\n")
        with pytest.raises(ConfigError, match='expected'):
            read_terrain_spec(path)

    def test_spec_empty(self, tmp_path):
        path = write(tmp_path / 't.spec', "# nothing\n")
        with pytest.raises(ConfigError, match='no terrain'):
            read_terrain_spec(path)

    def test_cell_parameters(self, tmp_path):
        path = write(tmp_path / 'c.par', "alpha 0.2\nfmax_sav 100\nfmax_jngl 500\n")
        terrain = read_cell_parameters(path)
        assert terrain['S'].alpha == 0.2
        assert terrain['S'].max_feed == 100.0
        assert terrain['J'].max_feed == 500.0
        assert terrain['J'].alpha == 1.0

    def test_cell_parameters_missing(self, tmp_path):
        path = write(tmp_path / 'c.par', "alpha 0.2\nfmax_sav 100\n")
        with pytest.raises(ConfigError, match='fmax_jngl'):
            read_cell_parameters(path)

    def test_cell_parameters_unknown(self, tmp_path):
        path = write(tmp_path / 'c.par',
                     "alpha 0.2\nfmax_sav 100\nfmax_jngl 500\nbeta 1\n")
        with pytest.raises(ConfigError, match='beta'):
            read_cell_parameters(path)

    def test_inline_entries(self):
        terrain = terrain_from_entries([
            {'code': 'G', 'alpha': 0.5, 'max_feed': 50, 'color': 'AABBCC'},
            {'code': 'W', 'live': False},
        ])
        assert terrain['G'].max_feed == 50.0
        assert terrain['G'].live
        assert terrain['G'].color == 'aabbcc'
        assert not terrain['W'].live

    def test_inline_entry_without_code(self):
        with pytest.raises(ConfigError, match=r'terrain\[0\]'):
            terrain_from_entries([{'alpha': 0.5}])

    def test_builtin_tuned_from_geography(self):
        config = config_from_dict({'geography': {'savanna_alpha': 0.1,
                                                 'jungle_fmax': 400.0}})
        terrain = terrain_from_config(config)
        assert list(terrain) == ['H', 'J', 'S', 'F', 'O']
        assert terrain['S'].alpha == 0.1
        assert terrain['J'].max_feed == 400.0


# ── maps ──────────────────────────────────────────────────────────────

class TestGeo:
    def test_reads_rows(self, tmp_path):
        path = write(tmp_path / 'm.geo', "# map\nRader 2\nKolonner 3\nHJS\nS O H\n")
        assert read_geo(path) == ['HJS', 'SOH']

    def test_header_order_free(self, tmp_path):
        path = write(tmp_path / 'm.geo', "Kolonner 2 Rader 1\nJS\n")
        assert read_geo(path) == ['JS']

    def test_unknown_header_warns(self, tmp_path, caplog):
        path = write(tmp_path / 'm.geo', "Navn x\nRader 1\nKolonner 1\nJ\n")
        with caplog.at_level(logging.WARNING, logger='biosim.loaders'):
            assert read_geo(path) == ['J']
        assert 'Navn' in caplog.text

    def test_too_few_cells(self, tmp_path):
        path = write(tmp_path / 'm.geo', "Rader 2\nKolonner 2\nJJ\nJ\n")
        with pytest.raises(ConfigError, match='expected 4'):
            read_geo(path)

    def test_trailing_characters_ignored(self, tmp_path, caplog):
        path = write(tmp_path / 'm.geo', "Rader 1\nKolonner 2\nJSSS\n")
        with caplog.at_level(logging.WARNING, logger='biosim.loaders'):
            assert read_geo(path) == ['JS']
        assert 'trailing' in caplog.text

    def test_missing_header(self, tmp_path):
        path = write(tmp_path / 'm.geo', "Rader 2\n")
        with pytest.raises(ConfigError):
            read_geo(path)

    def test_grid_from_map_file(self, tmp_path):
        write(tmp_path / 'm.geo', "Rader 2\nKolonner 2\nHJ\nSO\n")
        config = config_from_dict({'geography': {'map_file': 'm.geo'}},
                                  base_dir=tmp_path)
        grid = grid_from_config(config)
        assert (grid.n_cols, grid.n_rows) == (2, 2)
        assert grid.code_of(grid.at(1, 0)) == 'J'

    def test_grid_from_rows(self):
        config = config_from_dict({'geography': {'map_rows': ['J S', 'S J']}})
        grid = grid_from_config(config)
        assert grid.code_of(grid.at(1, 0)) == 'S'

    def test_no_map(self):
        with pytest.raises(ConfigError, match='no map'):
            grid_from_config(config_from_dict({}))


# ── species ───────────────────────────────────────────────────────────

class TestSpecies:
    def test_par_file(self, tmp_path, herbivore_params):
        text = ''.join(f"{k} {v}\n" for k, v in herbivore_params.items())
        params = read_species_file(write(tmp_path / 'b.par', text))
        assert params['F'] == '10.0'
        assert params['Navn'] == 'B'

    def test_yaml_file(self, tmp_path):
        params = read_species_file(write(tmp_path / 'b.yaml', "v_fod: 8.0\nF: 10\n"))
        assert params == {'v_fod': 8.0, 'F': 10}

    def test_yaml_must_be_mapping(self, tmp_path):
        with pytest.raises(ConfigError, match='mapping'):
            read_species_file(write(tmp_path / 'b.yaml', "- 1\n"))

    def test_catalog_mixes_files_and_mappings(self, tmp_path, herbivore_params,
                                              predator_params):
        text = ''.join(f"{k} {v}\n" for k, v in herbivore_params.items())
        write(tmp_path / 'b.par', text)
        config = config_from_dict({'species': ['b.par', predator_params]},
                                  base_dir=tmp_path)
        catalog = catalog_from_config(config)
        assert catalog.names == ['B', 'R']
        assert catalog.predator_mask() == [False, True]

    def test_no_species(self):
        with pytest.raises(ConfigError, match='no species'):
            catalog_from_config(config_from_dict({}))

    def test_incomplete_species(self):
        config = config_from_dict({'species': [{'v_fod': 8.0}]})
        with pytest.raises(ConfigError, match=r'species\[0\]'):
            catalog_from_config(config)


# ── populations ───────────────────────────────────────────────────────

POP_TEXT = """\
# populasjon
Geografi     island.geo
B 1 2 2
  3  10.000
  4  11.500

R 2 2 1
  5   9.000
"""


class TestPopulationFile:
    def test_reads_blocks(self, tmp_path):
        geography, records = read_population_file(write(tmp_path / 'a.pop', POP_TEXT))
        assert geography == 'island.geo'
        assert records == [
            PopulationRecord('B', 1, 2, 3, 10.0),
            PopulationRecord('B', 1, 2, 4, 11.5),
            PopulationRecord('R', 2, 2, 5, 9.0),
        ]

    def test_missing_geography(self, tmp_path):
        with pytest.raises(ConfigError, match='Geografi'):
            read_population_file(write(tmp_path / 'a.pop', "B 1 1 0\n"))

    def test_short_block(self, tmp_path):
        path = write(tmp_path / 'a.pop', "Geografi g\nB 1 1 2\n 3 10.0\n")
        with pytest.raises(ConfigError, match='fewer than 2'):
            read_population_file(path)

    def test_truncated_header(self, tmp_path):
        path = write(tmp_path / 'a.pop', "Geografi g\nB 1 1\n")
        with pytest.raises(ConfigError, match='truncated'):
            read_population_file(path)

    def test_bad_number(self, tmp_path):
        path = write(tmp_path / 'a.pop', "Geografi g\nB 1 1 1\n 3 heavy\n")
        with pytest.raises(ConfigError, match='weight'):
            read_population_file(path)

    def test_records_concatenate_in_order(self, tmp_path):
        write(tmp_path / 'a.pop', POP_TEXT)
        write(tmp_path / 'b.pop', "Geografi island.geo\nB 0 0 1\n 1 5.0\n")
        config = config_from_dict({
            'geography': {'map_file': 'island.geo'},
            'populations': ['b.pop', 'a.pop'],
        }, base_dir=tmp_path)
        records = population_records_from_config(config)
        assert len(records) == 4
        assert records[0] == PopulationRecord('B', 0, 0, 1, 5.0)

    def test_geography_mismatch_warns(self, tmp_path, caplog):
        write(tmp_path / 'a.pop', POP_TEXT)
        config = config_from_dict({
            'geography': {'map_file': 'other.geo'},
            'populations': ['a.pop'],
        }, base_dir=tmp_path)
        with caplog.at_level(logging.WARNING, logger='biosim.loaders'):
            population_records_from_config(config)
        assert 'other.geo' in caplog.text


# ── legacy .sim files ─────────────────────────────────────────────────

SIM_TEXT = """\
# legacy run
Geografi        island.geo
CelleParameter  cells.par
StartAar        10
SluttAar        20
SlumptallFroe   7
UtdataStamme    out/legacy
DumpDyrInterval 5
RovdyrParameter pred.par
BytteParameter  herb.par
ArtParameter    extra.par
Populasjon      a.pop
Populasjon      b.pop
"""


class TestSimFile:
    def test_translation(self, tmp_path):
        data = read_sim_file(write(tmp_path / 'run.sim', SIM_TEXT))
        assert data['simulation'] == {
            'start_year': 10, 'end_year': 20, 'seed': 7,
            'output_stem': 'out/legacy', 'dump_animal_interval': 5,
        }
        assert data['geography'] == {'map_file': 'island.geo',
                                     'cell_parameters': 'cells.par'}
        assert data['species'] == ['extra.par', 'herb.par', 'pred.par']
        assert data['populations'] == ['a.pop', 'b.pop']

    def test_missing_cell_spec(self, tmp_path):
        text = SIM_TEXT.replace('CelleParameter  cells.par\n', '')
        with pytest.raises(ConfigError, match='No valid cell spec'):
            read_sim_file(write(tmp_path / 'run.sim', text))

    def test_missing_required(self, tmp_path):
        text = SIM_TEXT.replace('SluttAar        20\n', '')
        with pytest.raises(ConfigError, match='SluttAar'):
            read_sim_file(write(tmp_path / 'run.sim', text))

    def test_unknown_keyword(self, tmp_path):
        with pytest.raises(ConfigError, match='Farge'):
            read_sim_file(write(tmp_path / 'run.sim', SIM_TEXT + "Farge rød\n"))

    def test_non_integer_year(self, tmp_path):
        text = SIM_TEXT.replace('StartAar        10', 'StartAar        ti')
        with pytest.raises(ConfigError, match='StartAar'):
            read_sim_file(write(tmp_path / 'run.sim', text))


# ── shipped configuration ─────────────────────────────────────────────

class TestShippedConfig:
    def test_island_files_load(self):
        if not (CONFIG_DIR / 'default.yaml').exists():
            pytest.skip('configs/ not present')
        from biosim.config import load_config

        config = load_config(CONFIG_DIR / 'default.yaml')
        grid = grid_from_config(config)
        assert (grid.n_cols, grid.n_rows) == (10, 7)
        assert catalog_from_config(config).names == ['B', 'R']
        assert len(population_records_from_config(config)) == 12
