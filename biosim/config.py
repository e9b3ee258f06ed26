"""Configuration system for BioSim.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → keyword overrides

Legacy ``.sim`` parameter files (``Geografi``, ``StartAar``, ...) are
accepted wherever a YAML file is; they are translated into the same
nested dictionary before merging (see ``biosim.loaders.read_sim_file``).

Relative file names inside a configuration resolve against the directory
of the file that was loaded first (``SimulationConfig.base_dir``).
"""

from __future__ import annotations

import dataclasses
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from biosim.errors import ConfigError


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationSection:
    """Run length, seeding and report scheduling."""
    start_year: int = 0
    end_year: int = 100
    seed: int = 0
    output_stem: str = 'output/biosim'
    dump_animal_interval: int = 0       # .dyr reports (0 = never)
    dump_population_interval: int = 0   # .pop reports
    dump_feed_interval: int = 0         # .for reports
    dump_png_interval: int = 0          # .png map images
    progress: bool = True               # one progress line per year
    perf: bool = False                  # time the four annual passes


@dataclass
class GeographySection:
    """Map and terrain.

    Exactly one map source is used: ``map_file`` (.geo) or the inline
    ``map_rows``. Terrain comes from ``terrain_file`` (.spec table), an
    inline ``terrain`` list, a legacy ``cell_parameters`` file, or else the
    built-in catalog tuned by the three savanna/jungle values.
    """
    map_file: Optional[str] = None
    map_rows: Optional[List[str]] = None
    name: Optional[str] = None          # written as "Geografi" in reports
    terrain_file: Optional[str] = None
    terrain: Optional[List[Dict[str, Any]]] = None
    cell_parameters: Optional[str] = None
    savanna_alpha: float = 0.3
    savanna_fmax: float = 300.0
    jungle_fmax: float = 800.0


@dataclass
class SimulationConfig:
    """Complete BioSim configuration.

    ``species`` entries are parameter mappings or species-file paths;
    ``populations`` are .pop file paths loaded in order.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    geography: GeographySection = field(default_factory=GeographySection)
    species: List[Union[str, Dict[str, Any]]] = field(default_factory=list)
    populations: List[str] = field(default_factory=list)
    base_dir: Optional[str] = None

    def resolve(self, path: Union[str, Path]) -> Path:
        """Resolve a file name from this config against ``base_dir``."""
        p = Path(path)
        if p.is_absolute() or self.base_dir is None:
            return p
        return Path(self.base_dir) / p

    @property
    def geography_name(self) -> str:
        g = self.geography
        if g.name:
            return g.name
        if g.map_file:
            return str(g.map_file)
        return '<inline>'


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values (lists included) are replaced
    - Keys in override but not base are added

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict, name: str) -> Any:
    """Convert a dict to a section dataclass; unknown keys are an error."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    unknown = sorted(k for k in data if k not in valid_fields)
    if unknown:
        raise ConfigError(f"unknown key(s) in '{name}' section: {unknown}")
    return section_cls(**data)


def config_from_dict(data: Dict, base_dir: Optional[Union[str, Path]] = None
                     ) -> SimulationConfig:
    """Convert a merged configuration dict to a SimulationConfig."""
    unknown = sorted(k for k in data
                     if k not in ('simulation', 'geography', 'species', 'populations'))
    if unknown:
        raise ConfigError(f"unknown configuration section(s): {unknown}")

    sections: Dict[str, Any] = {}
    for key, cls in (('simulation', SimulationSection),
                     ('geography', GeographySection)):
        value = data.get(key)
        if value is None:
            sections[key] = cls()
        elif isinstance(value, dict):
            sections[key] = _dict_to_section(cls, value, key)
        else:
            raise ConfigError(f"'{key}' must be a mapping")

    for key in ('species', 'populations'):
        value = data.get(key) or []
        if not isinstance(value, list):
            raise ConfigError(f"'{key}' must be a list")
        sections[key] = list(value)

    return SimulationConfig(
        base_dir=str(base_dir) if base_dir is not None else None,
        **sections,
    )


def validate_config(config: SimulationConfig) -> None:
    """Validate configuration constraints. Raises ConfigError on failure.

    Checks:
      - Year ordering
      - Non-negative seed and report intervals
      - Terrain tuning values in range
      - Species and population entries have a usable type

    Presence of a map and of species is checked when a simulation is
    built, so that a bare default configuration validates.
    """
    sim = config.simulation
    if sim.start_year > sim.end_year:
        raise ConfigError(
            f"start_year ({sim.start_year}) must be <= "
            f"end_year ({sim.end_year})"
        )
    if sim.seed < 0:
        raise ConfigError("simulation.seed must be non-negative")
    for name in ('dump_animal_interval', 'dump_population_interval',
                 'dump_feed_interval', 'dump_png_interval'):
        if getattr(sim, name) < 0:
            raise ConfigError(f"simulation.{name} must be >= 0")
    if not sim.output_stem:
        raise ConfigError("simulation.output_stem must not be empty")

    geo = config.geography
    if not 0.0 <= geo.savanna_alpha <= 1.0:
        raise ConfigError(
            f"geography.savanna_alpha must be in [0, 1], got {geo.savanna_alpha}"
        )
    if geo.savanna_fmax < 0 or geo.jungle_fmax < 0:
        raise ConfigError("geography fmax values must be >= 0")
    if geo.map_file and geo.map_rows:
        raise ConfigError("geography: give map_file or map_rows, not both")
    terrain_sources = [s for s in (geo.terrain_file, geo.terrain,
                                   geo.cell_parameters) if s]
    if len(terrain_sources) > 1:
        raise ConfigError(
            "geography: terrain_file, terrain and cell_parameters are "
            "mutually exclusive"
        )

    for i, entry in enumerate(config.species):
        if not isinstance(entry, (str, dict)):
            raise ConfigError(
                f"species[{i}] must be a file name or a parameter mapping"
            )
    for i, entry in enumerate(config.populations):
        if not isinstance(entry, str):
            raise ConfigError(f"populations[{i}] must be a file name")

    if config.species and not config.populations:
        warnings.warn(
            "species defined but no populations given; the map starts empty",
            UserWarning,
            stacklevel=2,
        )


def _read_layer(path: Path) -> Dict:
    if path.suffix == '.sim':
        from biosim.loaders import read_sim_file
        return read_sim_file(path)
    with open(path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"{path}: invalid YAML ({e})") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict] = None,
) -> SimulationConfig:
    """Load and merge hierarchical configuration.

    Merge order: base → scenario → overrides. Each layer overrides only
    the fields it specifies.

    Args:
        base_path: Base configuration (YAML or legacy .sim).
        scenario_path: Optional scenario override file.
        overrides: Optional dict of overrides (e.g. from the command line).

    Returns:
        Validated SimulationConfig with ``base_dir`` set to the directory
        of ``base_path``.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        ConfigError: If parsing or validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    config_dict = _read_layer(base_path)

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if not scenario_path.exists():
            raise FileNotFoundError(f"Scenario file not found: {scenario_path}")
        deep_merge(config_dict, _read_layer(scenario_path))

    if overrides is not None:
        deep_merge(config_dict, overrides)

    config = config_from_dict(config_dict, base_dir=base_path.parent)
    validate_config(config)
    return config


def default_config() -> SimulationConfig:
    """Return a SimulationConfig with all default values."""
    config = SimulationConfig()
    validate_config(config)
    return config
