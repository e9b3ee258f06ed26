"""Annual-cycle engine and simulation driver.

One simulated year runs four passes in fixed order:
  1. Aging/death:     every living animal ages, then faces a death check;
                      the dead are removed at once
  2. Wander/regrowth: live cells in a fresh random order; each cell's
                      occupants (snapshot) try to wander, then the cell
                      regrows
  3. Breeding:        same cell order; per cell and species (catalog
                      order), every occupant tries to breed against the
                      pre-pass head count; offspring are buffered and
                      placed after the pass
  4. Feeding:         all animals sorted by fitness (descending), stably
                      partitioned herbivores first; herbivores graze,
                      predators hunt; eaten prey are removed once and
                      skipped afterwards

Simulation wires configuration, grid, catalog, population, random source
and report writers together and runs the year loop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from biosim import loaders, reports
from biosim.config import SimulationConfig, default_config
from biosim.grid import Grid
from biosim.perf import PerfMonitor
from biosim.population import Population
from biosim.rng import RandomSource, create_random_source
from biosim.species import SpeciesCatalog
from biosim.types import Diet

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# ANNUAL CYCLE
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class YearStats:
    """Outcome of one advance_year() call."""
    year: int = 0
    deaths: int = 0
    births: int = 0
    eaten: int = 0
    herbivores: int = 0     # after the year
    predators: int = 0      # after the year

    @property
    def total(self) -> int:
        return self.herbivores + self.predators


class AnnualCycleScheduler:
    """Runs the four passes of a simulated year over one population.

    Args:
        grid: The map (must be linked).
        population: Animals living on ``grid``.
        rng: The simulation's only random source.
        perf: Optional pass timer.
    """

    def __init__(self, grid: Grid, population: Population, rng: RandomSource,
                 perf: Optional[PerfMonitor] = None):
        self.grid = grid
        self.population = population
        self.rng = rng
        self.perf = perf if perf is not None else PerfMonitor(enabled=False)

    def aging_pass(self) -> int:
        """Age every living animal and evaluate its death. Returns deaths."""
        pop = self.population
        deaths = 0
        for idx in pop.alive_indices():
            idx = int(idx)
            pop.age(idx)
            if pop.die(idx, self.rng):
                deaths += 1
        return deaths

    def wandering_pass(self, cell_order: np.ndarray) -> None:
        pop = self.population
        for cell in cell_order:
            cell = int(cell)
            occupants = pop.residents(cell)
            for idx in occupants:
                pop.wander(idx, self.rng)
            self.grid.regrow(cell)

    def breeding_pass(self, cell_order: np.ndarray) -> int:
        """Breed cell by cell; offspring join after the pass. Returns births."""
        pop = self.population
        newborns: List[Tuple[int, int]] = []
        n_species = len(pop.catalog)
        for cell in cell_order:
            cell = int(cell)
            if not self.grid.residents[cell]:
                continue
            for species in range(n_species):
                mates = pop.cell_mates(cell, species)
                for idx in mates:
                    if pop.breed(idx, len(mates), self.rng):
                        newborns.append((species, cell))
        for species, cell in newborns:
            pop.spawn(species, cell)
        return len(newborns)

    def feeding_order(self) -> np.ndarray:
        """Living animals by descending fitness, herbivores before predators."""
        pop = self.population
        alive = pop.alive_indices()
        if len(alive) == 0:
            return alive
        fitness = np.array([pop.fitness(int(i)) for i in alive])
        by_fitness = alive[np.argsort(-fitness, kind='stable')]
        predator = np.array(pop.catalog.predator_mask(), dtype=bool)
        is_pred = predator[pop.animals['species'][by_fitness]]
        return np.concatenate([by_fitness[~is_pred], by_fitness[is_pred]])

    def feeding_pass(self) -> int:
        """Feed everyone in feeding_order(); returns the number of prey eaten."""
        pop = self.population
        eaten = 0
        for idx in self.feeding_order():
            idx = int(idx)
            if not pop.is_alive(idx):
                continue
            eaten += len(pop.feed(idx, self.rng))
        return eaten

    def advance_year(self, year: int = 0) -> YearStats:
        """Run one full annual cycle."""
        stats = YearStats(year=year)
        with self.perf.track('aging'):
            stats.deaths = self.aging_pass()
        cell_order = self.grid.live_cells(self.rng)
        with self.perf.track('wandering'):
            self.wandering_pass(cell_order)
        with self.perf.track('breeding'):
            stats.births = self.breeding_pass(cell_order)
        with self.perf.track('feeding'):
            stats.eaten = self.feeding_pass()

        counts = self.population.count_by_diet()
        stats.herbivores = counts[Diet.HERBIVORE]
        stats.predators = counts[Diet.PREDATOR]
        logger.debug(
            "year %d: %d deaths, %d births, %d eaten, %d herbivores, "
            "%d predators", year, stats.deaths, stats.births, stats.eaten,
            stats.herbivores, stats.predators,
        )
        return stats


# ═══════════════════════════════════════════════════════════════════════
# SIMULATION DRIVER
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationResult:
    """Per-year time series of a run.

    Arrays have one entry per simulated year; ``years`` holds the year
    label written to the .dat report after that year (simulated year + 1).
    """
    species_names: List[str] = field(default_factory=list)
    years: Optional[np.ndarray] = None
    herbivores: Optional[np.ndarray] = None
    predators: Optional[np.ndarray] = None
    births: Optional[np.ndarray] = None
    deaths: Optional[np.ndarray] = None
    eaten: Optional[np.ndarray] = None
    species_counts: Optional[np.ndarray] = None    # (n_years, n_species)

    initial_herbivores: int = 0
    initial_predators: int = 0
    final_population: int = 0
    perf_summary: Optional[dict] = None

    @property
    def n_years(self) -> int:
        return 0 if self.years is None else len(self.years)

    @property
    def total(self) -> np.ndarray:
        return self.herbivores + self.predators


class Simulation:
    """One isolated simulation instance.

    Owns its grid, population, catalog and random source; two instances
    never share state.

    Args:
        grid: Linked map.
        catalog: Registered species.
        config: Run settings (years, reports); defaults when None.
        rng: Random source; built from ``config.simulation.seed`` when None.
    """

    def __init__(self, grid: Grid, catalog: SpeciesCatalog,
                 config: Optional[SimulationConfig] = None,
                 rng: Optional[RandomSource] = None):
        if config is None:
            config = default_config()
        self.config = config
        self.grid = grid
        self.catalog = catalog
        self.rng = rng if rng is not None else create_random_source(config.simulation.seed)
        self.perf = PerfMonitor(enabled=config.simulation.perf)
        self.population = Population(grid, catalog)
        self.scheduler = AnnualCycleScheduler(grid, self.population, self.rng,
                                              self.perf)
        self.year = config.simulation.start_year

    @classmethod
    def from_config(cls, config: SimulationConfig,
                    rng: Optional[RandomSource] = None) -> 'Simulation':
        """Load map, terrain, species and populations named by ``config``.

        Raises:
            ConfigError: missing map or species, or a malformed input file.
        """
        grid = loaders.grid_from_config(config)
        catalog = loaders.catalog_from_config(config)
        sim = cls(grid, catalog, config, rng)
        placed, skipped = sim.population.load_records(
            loaders.population_records_from_config(config)
        )
        logger.info("%s; %d species; %d animals placed, %d skipped",
                    grid.summary(), len(catalog), placed, skipped)
        return sim

    def insert_animal(self, name: str, x: int, y: int, age: int = 0,
                      weight: Optional[float] = None) -> Optional[int]:
        return self.population.insert_animal(name, x, y, age, weight)

    def step(self) -> YearStats:
        """Advance one year and increment the year counter."""
        stats = self.scheduler.advance_year(self.year)
        self.year += 1
        return stats

    def _write_interval_reports(self) -> None:
        sim = self.config.simulation
        stem = sim.output_stem
        name = self.config.geography_name
        year = self.year
        if sim.dump_animal_interval and year % sim.dump_animal_interval == 0:
            reports.write_animal_report(stem, year, self.grid, self.population, name)
        if sim.dump_feed_interval and year % sim.dump_feed_interval == 0:
            reports.write_feed_report(stem, year, self.grid, name)
        if sim.dump_population_interval and year % sim.dump_population_interval == 0:
            reports.write_population_report(stem, year, self.grid,
                                            self.population, name)
        if sim.dump_png_interval and year % sim.dump_png_interval == 0:
            from biosim.viz.maps import write_map_png
            write_map_png(reports.numbered_name(stem, year) + '.png',
                          self.grid, self.population)

    def run(self, write_reports: bool = True) -> SimulationResult:
        """Run from the current year through ``end_year`` inclusive.

        With ``write_reports`` the .dat report gets one row before the
        first year and one after each year, and the interval reports are
        written whenever the new year is a multiple of their interval.
        """
        sim = self.config.simulation
        n_years = max(0, sim.end_year - self.year + 1)
        n_species = len(self.catalog)
        result = SimulationResult(
            species_names=self.catalog.names,
            years=np.zeros(n_years, dtype=np.int64),
            herbivores=np.zeros(n_years, dtype=np.int64),
            predators=np.zeros(n_years, dtype=np.int64),
            births=np.zeros(n_years, dtype=np.int64),
            deaths=np.zeros(n_years, dtype=np.int64),
            eaten=np.zeros(n_years, dtype=np.int64),
            species_counts=np.zeros((n_years, n_species), dtype=np.int64),
        )
        initial = self.population.count_by_diet()
        result.initial_herbivores = initial[Diet.HERBIVORE]
        result.initial_predators = initial[Diet.PREDATOR]

        dat = None
        if write_reports:
            reports.ensure_output_dir(sim.output_stem)
            dat = reports.DatReport(sim.output_stem, self.config.geography_name,
                                    self.grid.live_terrain_codes())
            dat.write_row(self.year, self.population.counts_by_diet_and_terrain())

        try:
            for i in range(n_years):
                stats = self.step()
                result.years[i] = self.year
                result.herbivores[i] = stats.herbivores
                result.predators[i] = stats.predators
                result.births[i] = stats.births
                result.deaths[i] = stats.deaths
                result.eaten[i] = stats.eaten
                result.species_counts[i] = self.population.count_by_species()
                if sim.progress:
                    print(reports.format_progress(stats), flush=True)
                if dat is not None:
                    self._write_interval_reports()
                    dat.write_row(self.year,
                                  self.population.counts_by_diet_and_terrain())
        finally:
            if dat is not None:
                dat.close()

        result.final_population = self.population.count()
        if self.perf.enabled:
            result.perf_summary = self.perf.summary()
            print(self.perf.report())
        return result


def run_simulation(config: SimulationConfig,
                   rng: Optional[RandomSource] = None,
                   write_reports: bool = True) -> SimulationResult:
    """Build a Simulation from ``config`` and run it to the end year."""
    return Simulation.from_config(config, rng).run(write_reports=write_reports)
