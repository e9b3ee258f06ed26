"""Population: the animal arena and per-animal behaviours.

Animals live in a NumPy structured array (ANIMAL_DTYPE) owned by the
Population. An animal is identified by its slot index; a slot whose
``alive`` flag is set is registered in the global population and has a
cell. Registration and cell membership always change together:

  - spawn()   allocates a slot, sets alive, adds the index to the cell
  - remove()  clears the cell membership, the location and the alive flag

Freed slots are recycled, lowest index first.

Behaviours (each consumes draws from the injected RandomSource):
  - age()             age += 1, weight −= σ·weight
  - die()             weight == 0, Φ ≤ 0, or uniform < ω(1 − Φ)
  - wander()          uniform < μΦ, then one of 4 neighbours uniformly
  - breed()           uniform < Φγ(N − 1), age ≥ 1, weight ≥ v_min + ζ·v_fod
  - feed_herbivore()  graze up to F, weight += β·granted
  - feed_predator()   one capture attempt per other-species cellmate
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from biosim.errors import InvariantViolation, UnknownSpeciesError
from biosim.grid import Grid
from biosim.rng import RandomSource
from biosim.species import SpeciesCatalog
from biosim.types import (
    FITNESS_STALE,
    NO_CELL,
    OFF_GRID,
    Diet,
    PopulationRecord,
    allocate_animals,
)

logger = logging.getLogger(__name__)


class Population:
    """Global store of living animals.

    Args:
        grid: Map the animals live on.
        catalog: Species registry; arena records store catalog indices.
        capacity: Initial arena size (doubles on demand).
    """

    def __init__(self, grid: Grid, catalog: SpeciesCatalog,
                 capacity: int = 1024):
        self.grid = grid
        self.catalog = catalog
        self.animals = allocate_animals(max(1, capacity))
        self._free: List[int] = list(range(len(self.animals) - 1, -1, -1))
        self._n_alive = 0

    # ── arena management ─────────────────────────────────────────────

    def _grow(self) -> None:
        old = len(self.animals)
        arena = allocate_animals(2 * old)
        arena[:old] = self.animals
        self.animals = arena
        self._free.extend(range(2 * old - 1, old - 1, -1))

    def _allocate(self) -> int:
        if not self._free:
            self._grow()
        return self._free.pop()

    def _require_alive(self, idx: int) -> None:
        if not (0 <= idx < len(self.animals)) or not self.animals['alive'][idx]:
            raise InvariantViolation(f"animal {idx} is dead or unregistered")
        if self.animals['cell'][idx] == NO_CELL:
            raise InvariantViolation(f"living animal {idx} has no cell")

    def spawn(self, species: int, cell: int, age: int = 0,
              weight: Optional[float] = None) -> Optional[int]:
        """Create an animal in a cell.

        Args:
            species: Catalog index.
            cell: Destination cell index.
            age: Age in years.
            weight: Body weight; the species birth weight when None.

        Returns:
            The new animal index, or None if the cell refuses animals.
        """
        if not self.grid.accepts_animals(cell):
            return None
        if weight is None:
            weight = self.catalog[species].birth_weight
        idx = self._allocate()
        rec = self.animals[idx]
        rec['species'] = species
        rec['weight'] = weight
        rec['age'] = age
        rec['cell'] = cell
        rec['fitness'] = FITNESS_STALE
        rec['alive'] = True
        self.grid.add_resident(cell, idx)
        self._n_alive += 1
        return idx

    def insert_animal(self, name: str, x: int, y: int, age: int = 0,
                      weight: Optional[float] = None) -> Optional[int]:
        """Place an animal of a named species at grid coordinates.

        Returns:
            Animal index, or None when (x, y) is off the map or the cell
            does not accept animals.

        Raises:
            UnknownSpeciesError: species name not in the catalog.
        """
        species = self.catalog.index_of(name)
        cell = self.grid.at(x, y)
        if cell is None:
            return None
        return self.spawn(species, cell, age, weight)

    def load_records(self, records: Iterable[PopulationRecord]) -> Tuple[int, int]:
        """Insert population-file records, skipping the ones that fail.

        Returns:
            (n_placed, n_skipped)
        """
        placed = skipped = 0
        for rec in records:
            try:
                idx = self.insert_animal(rec.species, rec.x, rec.y,
                                         rec.age, rec.weight)
            except UnknownSpeciesError as e:
                logger.warning("skipping population record %s: %s", rec, e)
                skipped += 1
                continue
            if idx is None:
                logger.warning(
                    "skipping population record %s: cell (%d, %d) does not "
                    "accept animals", rec, rec.x, rec.y,
                )
                skipped += 1
            else:
                placed += 1
        return placed, skipped

    def remove(self, idx: int) -> None:
        """Unregister an animal from its cell and from the population."""
        self._require_alive(idx)
        rec = self.animals[idx]
        self.grid.remove_resident(int(rec['cell']), idx)
        rec['cell'] = NO_CELL
        rec['alive'] = False
        rec['fitness'] = FITNESS_STALE
        self._n_alive -= 1
        self._free.append(idx)

    # ── attributes ───────────────────────────────────────────────────

    def fitness(self, idx: int) -> float:
        """Cached fitness, recomputed after any weight/age change."""
        rec = self.animals[idx]
        phi = float(rec['fitness'])
        if phi == FITNESS_STALE:
            phi = self.catalog[int(rec['species'])].fitness(
                float(rec['weight']), int(rec['age'])
            )
            rec['fitness'] = phi
        return phi

    def species_of(self, idx: int):
        return self.catalog[int(self.animals['species'][idx])]

    def weight(self, idx: int) -> float:
        return float(self.animals['weight'][idx])

    def age_of(self, idx: int) -> int:
        return int(self.animals['age'][idx])

    def cell_of(self, idx: int) -> int:
        return int(self.animals['cell'][idx])

    def is_alive(self, idx: int) -> bool:
        return bool(self.animals['alive'][idx])

    def adjust(self, idx: int, age: int, weight: float) -> None:
        """Overwrite age and weight (fitness cache is invalidated)."""
        self._require_alive(idx)
        rec = self.animals[idx]
        rec['age'] = age
        rec['weight'] = weight
        rec['fitness'] = FITNESS_STALE

    def fatten(self, idx: int, delta: float) -> None:
        rec = self.animals[idx]
        rec['weight'] += delta
        rec['fitness'] = FITNESS_STALE

    # ── behaviours ───────────────────────────────────────────────────

    def age(self, idx: int) -> None:
        self._require_alive(idx)
        rec = self.animals[idx]
        species = self.catalog[int(rec['species'])]
        rec['age'] += 1
        rec['weight'] -= species.weight_loss(float(rec['weight']))
        rec['fitness'] = FITNESS_STALE

    def die(self, idx: int, rng: RandomSource) -> bool:
        """Evaluate death; a dying animal is removed immediately.

        Weight 0 or fitness 0 kill without consuming a draw.
        """
        self._require_alive(idx)
        if self.animals['weight'][idx] == 0:
            dead = True
        else:
            phi = self.fitness(idx)
            if phi <= 0.0:
                dead = True
            else:
                dead = rng.uniform() < self.species_of(idx).death_probability(phi)
        if dead:
            self.remove(idx)
        return dead

    def move_to(self, idx: int, destination: int) -> bool:
        """Move an animal to another cell.

        Returns False, leaving everything unchanged, if the destination is
        OFF_GRID or refuses animals. A move to the current cell succeeds.
        """
        self._require_alive(idx)
        if destination == OFF_GRID:
            return False
        origin = int(self.animals['cell'][idx])
        if destination == origin:
            return True
        if not self.grid.add_resident(destination, idx):
            return False
        self.grid.remove_resident(origin, idx)
        self.animals['cell'][idx] = destination
        return True

    def wander(self, idx: int, rng: RandomSource) -> bool:
        """Maybe move to one of the four neighbours.

        Returns:
            True if the animal decided to wander (even when the chosen
            neighbour refused it).
        """
        self._require_alive(idx)
        phi = self.fitness(idx)
        if not rng.uniform() < self.species_of(idx).wander_probability(phi):
            return False
        cell = int(self.animals['cell'][idx])
        destination = int(self.grid.neighbors[cell, rng.integer(4)])
        self.move_to(idx, destination)
        return True

    def breed(self, idx: int, n_same_species: int, rng: RandomSource) -> bool:
        """Attempt to give birth.

        One draw is consumed per call whatever the age or weight of the
        animal. On success the parent pays the birth loss; the caller is
        responsible for creating the offspring (at the parent's cell, age
        0, birth weight) once the breeding pass is over.

        Returns:
            True if an offspring was conceived.
        """
        self._require_alive(idx)
        species = self.species_of(idx)
        chance = species.birth_chance(self.fitness(idx), n_same_species)
        if not rng.uniform() < chance:
            return False
        rec = self.animals[idx]
        if rec['age'] < 1 or not species.can_breed(float(rec['weight'])):
            return False
        rec['weight'] -= species.birth_loss
        rec['fitness'] = FITNESS_STALE
        return True

    def feed_herbivore(self, idx: int) -> float:
        """Graze from the animal's cell; returns the feed granted."""
        self._require_alive(idx)
        species = self.species_of(idx)
        granted = self.grid.graze(int(self.animals['cell'][idx]),
                                  species.feed_desire)
        self.fatten(idx, species.beta * granted)
        return granted

    def feed_predator(self, idx: int, rng: RandomSource) -> List[int]:
        """Hunt every other-species cellmate with nonzero weight.

        Each candidate gets one capture draw. Caught prey is removed from
        its cell and the population at once, and the predator gains
        β · prey weight (which also changes its fitness for the next
        attempt).

        Returns:
            Indices of the prey eaten (already removed).
        """
        self._require_alive(idx)
        species = self.species_of(idx)
        own = int(self.animals['species'][idx])
        cell = int(self.animals['cell'][idx])
        eaten: List[int] = []
        for prey in self.residents(cell):
            if not self.animals['alive'][prey]:
                continue
            if self.animals['species'][prey] == own:
                continue
            prey_weight = float(self.animals['weight'][prey])
            if prey_weight == 0:
                continue
            chance = species.capture_chance(self.fitness(idx), self.fitness(prey))
            if rng.uniform() < chance:
                self.fatten(idx, species.beta * prey_weight)
                self.remove(prey)
                eaten.append(prey)
        return eaten

    def feed(self, idx: int, rng: RandomSource) -> List[int]:
        """Diet-dispatched feeding; returns eaten prey (empty for herbivores)."""
        if self.species_of(idx).diet == Diet.PREDATOR:
            return self.feed_predator(idx, rng)
        self.feed_herbivore(idx)
        return []

    # ── read-only queries ────────────────────────────────────────────

    def count(self) -> int:
        return self._n_alive

    def __len__(self) -> int:
        return self._n_alive

    def alive_indices(self) -> np.ndarray:
        """Indices of all living animals, ascending."""
        return np.flatnonzero(self.animals['alive'])

    def residents(self, cell: int) -> List[int]:
        """Snapshot of a cell's occupants, ascending index order."""
        return sorted(self.grid.residents[cell])

    def cell_mates(self, cell: int, species: int,
                   breeders_only: bool = False) -> List[int]:
        """Occupants of a cell belonging to one species."""
        min_age = 1 if breeders_only else 0
        a = self.animals
        return [i for i in self.residents(cell)
                if a['species'][i] == species and a['age'][i] >= min_age]

    def count_by_species(self) -> np.ndarray:
        """Living animals per catalog index."""
        alive = self.alive_indices()
        return np.bincount(self.animals['species'][alive],
                           minlength=len(self.catalog))

    def count_by_diet(self) -> Dict[Diet, int]:
        per_species = self.count_by_species()
        counts = {Diet.HERBIVORE: 0, Diet.PREDATOR: 0}
        for s, n in zip(self.catalog, per_species):
            counts[s.diet] += int(n)
        return counts

    def counts_by_diet_and_terrain(self) -> Dict[Tuple[Diet, str], int]:
        """Living animals per (diet, terrain code), zero-filled for live terrain."""
        counts = {(diet, code): 0
                  for code in self.grid.live_terrain_codes() for diet in Diet}
        diets = [s.diet for s in self.catalog]
        for idx in self.alive_indices():
            key = (diets[int(self.animals['species'][idx])],
                   self.grid.code_of(int(self.animals['cell'][idx])))
            counts[key] = counts.get(key, 0) + 1
        return counts

    def occupants_by_species(self, cell: int) -> Dict[str, List[Tuple[int, float]]]:
        """(age, weight) of every occupant of a cell, grouped by species name."""
        out: Dict[str, List[Tuple[int, float]]] = {}
        for s_idx, species in enumerate(self.catalog):
            mates = self.cell_mates(cell, s_idx)
            if mates:
                out[species.name] = [(self.age_of(i), self.weight(i)) for i in mates]
        return out
