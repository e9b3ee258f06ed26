"""Species descriptors and the fitness model.

A Species is an immutable parameter set shared by every animal of its
kind. Predator/herbivore behaviour is selected by ``Species.diet``, not by
subclassing: there is one animal record type, parameterised by a species
index into the SpeciesCatalog.

Fitness Φ(w, a) of an animal with weight w and age a:

    Φ = 0                                   if w < v_min
    Φ = q(a; a½, φ_age, s_age)
        · q(w; w½_under, φ_under, s_under)
        · q(w; w½_over,  φ_over,  s_over)   otherwise

    q(x; x½, φ, s) = 1 / (1 + exp(s · φ · (x − x½)))

With the default signs (s_age = −1, s_under = −1, s_over = +1) fitness
never decreases with age and is unimodal in weight. ``sign_alder: 1``
turns the age factor into a senescence term that falls with age.

Derived probabilities:
    wander     = μ · Φ
    death      = 1                     if Φ ≤ 0
                 ω · (1 − Φ)           otherwise
    birth      = Φ · γ · (N − 1)       N = same-species occupants of the cell
    capture    = 0                     if Φ_pred ≤ Φ_prey
                 ΔΦ / ΔΦmax            if 0 < ΔΦ < ΔΦmax
                 1                     otherwise
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Optional

from scipy.special import expit

from biosim.errors import ConfigError, UnknownSpeciesError
from biosim.types import Diet


def logistic_factor(x: float, midpoint: float, steepness: float,
                    sign: int = 1) -> float:
    """One sigmoid fitness factor, 1 / (1 + exp(sign·φ·(x − x½)))."""
    return float(expit(-sign * steepness * (x - midpoint)))


@dataclass(frozen=True)
class FitnessCurve:
    """Midpoint, steepness and orientation of one logistic factor."""
    midpoint: float
    steepness: float
    sign: int = 1

    def __call__(self, x: float) -> float:
        return logistic_factor(x, self.midpoint, self.steepness, self.sign)


@dataclass(frozen=True)
class Species:
    """Immutable behavioural parameters of one animal kind.

    Exactly one of ``feed_desire`` (herbivores) and ``delta_phi_max``
    (predators) is set; it determines ``diet``.
    """
    name: str
    birth_weight: float          # v_fod
    beta: float                  # metabolic efficiency
    sigma: float                 # yearly weight-loss rate
    min_weight: float            # v_min
    age_curve: FitnessCurve
    underweight_curve: FitnessCurve
    overweight_curve: FitnessCurve
    mu: float                    # wandering coefficient
    gamma: float                 # birth probability coefficient
    zeta: float                  # birth weight-loss coefficient
    omega: float                 # death probability coefficient
    feed_desire: Optional[float] = None     # F
    delta_phi_max: Optional[float] = None   # ΔΦmax

    def __post_init__(self):
        if (self.feed_desire is None) == (self.delta_phi_max is None):
            raise ConfigError(
                f"species '{self.name}' must define exactly one of "
                f"F (herbivore) and DeltaPhiMax (predator)"
            )

    @property
    def diet(self) -> Diet:
        return Diet.HERBIVORE if self.feed_desire is not None else Diet.PREDATOR

    @property
    def is_predator(self) -> bool:
        return self.delta_phi_max is not None

    @property
    def birth_loss(self) -> float:
        """Weight a parent loses when giving birth."""
        return self.zeta * self.birth_weight

    def weight_loss(self, weight: float) -> float:
        """Yearly weight loss from aging."""
        return self.sigma * weight

    def fitness(self, weight: float, age: int) -> float:
        if weight < self.min_weight:
            return 0.0
        return (self.age_curve(age)
                * self.underweight_curve(weight)
                * self.overweight_curve(weight))

    def wander_probability(self, fitness: float) -> float:
        return self.mu * fitness

    def death_probability(self, fitness: float) -> float:
        if fitness <= 0.0:
            return 1.0
        return self.omega * (1.0 - fitness)

    def birth_chance(self, fitness: float, n_same_species: int) -> float:
        """Chance of giving birth among n_same_species occupants.

        The count includes juveniles and the animal itself.
        """
        return fitness * self.gamma * (n_same_species - 1)

    def can_breed(self, weight: float) -> bool:
        return weight >= self.min_weight + self.birth_loss

    def capture_chance(self, predator_fitness: float,
                       prey_fitness: float) -> float:
        if not self.is_predator:
            raise ConfigError(f"species '{self.name}' is not a predator")
        return capture_chance(predator_fitness, prey_fitness,
                              self.delta_phi_max)


def capture_chance(predator_fitness: float, prey_fitness: float,
                   delta_phi_max: float) -> float:
    """Probability that a predator catches a given prey."""
    if predator_fitness <= prey_fitness:
        return 0.0
    delta = predator_fitness - prey_fitness
    if 0.0 < delta < delta_phi_max:
        return delta / delta_phi_max
    return 1.0


# ═══════════════════════════════════════════════════════════════════════
# PARAMETER PARSING
# ═══════════════════════════════════════════════════════════════════════

# Parameter keys as they appear in species files
REQUIRED_PARAMETERS = (
    'v_fod', 'beta', 'sigma', 'v_min',
    'a_halv', 'phi_alder',
    'v_halv_under', 'phi_under',
    'v_halv_over', 'phi_over',
    'mu', 'gamma', 'zeta', 'omega',
)
OPTIONAL_PARAMETERS = (
    'F', 'DeltaPhiMax', 'Navn', 'name',
    'sign_alder', 'sign_under', 'sign_over',
)


def _sign(params: Mapping, key: str, default: int, source: str) -> int:
    value = params.get(key, default)
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{source}: {key} must be +1 or -1, got {value!r}")
    if value not in (1, -1):
        raise ConfigError(f"{source}: {key} must be +1 or -1, got {value}")
    return value


def species_from_parameters(params: Mapping, source: str = '<species>') -> Species:
    """Build a Species from a mapping of species-file parameters.

    If both F and DeltaPhiMax are present the species is a herbivore and
    DeltaPhiMax is ignored. A missing name defaults to "R" for predators
    and "B" for herbivores.

    Raises:
        ConfigError: unknown key, missing or non-numeric parameter, or
            neither F nor DeltaPhiMax given.
    """
    known = set(REQUIRED_PARAMETERS) | set(OPTIONAL_PARAMETERS)
    unknown = sorted(k for k in params if k not in known)
    if unknown:
        raise ConfigError(f"{source}: unknown species parameter(s) {unknown}")

    missing = [k for k in REQUIRED_PARAMETERS if params.get(k) is None]
    if missing:
        raise ConfigError(f"{source}: missing species parameter(s) {missing}")

    try:
        p = {k: float(params[k]) for k in REQUIRED_PARAMETERS}
        feed_desire = float(params['F']) if params.get('F') is not None else None
        delta_phi_max = (float(params['DeltaPhiMax'])
                         if params.get('DeltaPhiMax') is not None else None)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{source}: non-numeric species parameter ({e})")

    if feed_desire is None and delta_phi_max is None:
        raise ConfigError(f"Animal in {source} not fully defined: "
                          f"needs F or DeltaPhiMax")
    if feed_desire is not None:
        delta_phi_max = None
    elif delta_phi_max <= 0:
        raise ConfigError(f"{source}: DeltaPhiMax must be positive")

    name = params.get('Navn', params.get('name'))
    if not name:
        name = 'B' if feed_desire is not None else 'R'

    return Species(
        name=str(name),
        birth_weight=p['v_fod'],
        beta=p['beta'],
        sigma=p['sigma'],
        min_weight=p['v_min'],
        age_curve=FitnessCurve(p['a_halv'], p['phi_alder'],
                               _sign(params, 'sign_alder', -1, source)),
        underweight_curve=FitnessCurve(p['v_halv_under'], p['phi_under'],
                                       _sign(params, 'sign_under', -1, source)),
        overweight_curve=FitnessCurve(p['v_halv_over'], p['phi_over'],
                                      _sign(params, 'sign_over', 1, source)),
        mu=p['mu'],
        gamma=p['gamma'],
        zeta=p['zeta'],
        omega=p['omega'],
        feed_desire=feed_desire,
        delta_phi_max=delta_phi_max,
    )


# ═══════════════════════════════════════════════════════════════════════
# CATALOG
# ═══════════════════════════════════════════════════════════════════════

class SpeciesCatalog:
    """Registry of species, indexed in registration order.

    The index of a species is what the animal arena stores.
    """

    def __init__(self, species: Optional[List[Species]] = None):
        self._species: List[Species] = []
        self._index: Dict[str, int] = {}
        for s in species or ():
            self.register(s)

    def register(self, species: Species) -> int:
        if species.name in self._index:
            raise ConfigError(f"species '{species.name}' registered twice")
        self._index[species.name] = len(self._species)
        self._species.append(species)
        return self._index[species.name]

    def register_parameters(self, params: Mapping, source: str = '<species>') -> int:
        return self.register(species_from_parameters(params, source))

    def index_of(self, name: str) -> int:
        try:
            return self._index[name]
        except KeyError:
            raise UnknownSpeciesError(f"unknown species '{name}'") from None

    def get(self, name: str) -> Species:
        return self._species[self.index_of(name)]

    def __getitem__(self, idx: int) -> Species:
        return self._species[idx]

    def __iter__(self) -> Iterator[Species]:
        return iter(self._species)

    def __len__(self) -> int:
        return len(self._species)

    def __contains__(self, name: str) -> bool:
        return name in self._index

    @property
    def names(self) -> List[str]:
        return [s.name for s in self._species]

    def predator_mask(self) -> List[bool]:
        """is_predator per species index."""
        return [s.is_predator for s in self._species]
