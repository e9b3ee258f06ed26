"""Tests for biosim.reports — text report formats."""

from types import SimpleNamespace

from biosim.grid import Grid
from biosim.loaders import read_population_file
from biosim.population import Population
from biosim.reports import (
    DatReport,
    ensure_output_dir,
    format_progress,
    numbered_name,
    write_animal_report,
    write_feed_report,
    write_population_report,
)
from biosim.types import Diet, PopulationRecord, builtin_terrain

HERB, PRED = 0, 1


class TestNames:
    def test_numbered_name(self):
        assert numbered_name('out/run', 42) == 'out/run.00042'

    def test_ensure_output_dir(self, tmp_path):
        directory = ensure_output_dir(str(tmp_path / 'a' / 'b' / 'run'))
        assert directory.is_dir()
        assert directory == tmp_path / 'a' / 'b'

    def test_progress_line(self):
        stats = SimpleNamespace(year=3, herbivores=120, predators=7, total=127)
        assert format_progress(stats) == (
            'År:    3 bytte:     120 rovdyr:       7 totalt:     127'
        )


class TestDatReport:
    def test_header_and_rows(self, tmp_path):
        stem = str(tmp_path / 'run')
        with DatReport(stem, 'island.geo', ['J', 'S']) as dat:
            dat.write_row(0, {(Diet.HERBIVORE, 'J'): 12, (Diet.PREDATOR, 'S'): 3})
            dat.write_row(1, {})
        lines = (tmp_path / 'run.dat').read_text().splitlines()
        assert lines == [
            '#',
            'Geografi     island.geo',
            '#Year     B/J     R/J     B/S     R/S',
            '    0      12       0       0       3',
            '    1       0       0       0       0',
        ]

    def test_close_twice(self, tmp_path):
        dat = DatReport(str(tmp_path / 'run'), 'g', ['J'])
        dat.close()
        dat.close()


class TestCellReports:
    def _populated(self, population):
        population.spawn(HERB, 4, age=3, weight=20.0)
        population.spawn(HERB, 4, age=1, weight=9.5)
        population.spawn(PRED, 4, age=2, weight=12.25)
        population.spawn(HERB, 8, age=4, weight=30.0)
        return population

    def test_animal_report(self, population, tmp_path):
        pop = self._populated(population)
        path = write_animal_report(str(tmp_path / 'run'), 5, pop.grid, pop, 'g')
        assert path.name == 'run.00005.dyr'
        lines = path.read_text().splitlines()
        assert lines[:3] == ['#', 'Geografi     g', '#  Bytte  Rovdyr']
        body = lines[3:-1]
        # three rows of three cells, each row followed by a blank line
        assert len(body) == 12
        assert body[3] == '' and body[7] == '' and body[11] == ''
        assert body[5] == '       2       1'
        assert body[10] == '       1       0'
        assert body[0] == '       0       0'
        assert lines[-1] == '# antall celler: 9'

    def test_animal_report_covers_dead_cells(self, island_grid, catalog, tmp_path):
        pop = Population(island_grid, catalog)
        path = write_animal_report(str(tmp_path / 'run'), 0, island_grid, pop, 'g')
        assert path.read_text().splitlines()[-1] == '# antall celler: 12'

    def test_feed_report(self, savanna_grid, tmp_path):
        savanna_grid.feed[0] = 12.5
        path = write_feed_report(str(tmp_path / 'run'), 10, savanna_grid, 'g')
        assert path.name == 'run.00010.for'
        lines = path.read_text().splitlines()
        assert lines[2] == '# Fôr'
        assert lines[3] == ' 12.5'
        assert lines[4] == '  300'
        assert lines[8] == '  800'
        assert lines[-1] == '# antall celler: 9'

    def test_population_report_layout(self, population, tmp_path):
        pop = self._populated(population)
        path = write_population_report(str(tmp_path / 'run'), 1, pop.grid, pop, 'g')
        assert path.read_text().splitlines() == [
            '# populasjon',
            'Geografi     g',
            'B 1 1 2',
            '  3  20.000',
            '  1   9.500',
            '',
            'R 1 1 1',
            '  2  12.250',
            '',
            'B 2 2 1',
            '  4  30.000',
            '',
        ]

    def test_population_report_loads_back(self, population, tmp_path):
        pop = self._populated(population)
        path = write_population_report(str(tmp_path / 'run'), 1, pop.grid, pop, 'g')
        geography, records = read_population_file(path)
        assert geography == 'g'
        assert records[0] == PopulationRecord('B', 1, 1, 3, 20.0)
        assert len(records) == 4

        fresh = Population(Grid.from_rows(builtin_terrain(), ['SSS', 'SJS', 'SSS']),
                           pop.catalog)
        assert fresh.load_records(records) == (4, 0)
        assert fresh.occupants_by_species(4) == pop.occupants_by_species(4)
