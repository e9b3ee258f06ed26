"""Readers for BioSim input files.

Formats (all use '#' as the comment character; comment lines must start
with it):

  .geo    map: ``Rader <rows>`` and ``Kolonner <cols>`` header pairs, then
          rows × cols terrain characters row by row (whitespace ignored)
  .spec   terrain table: one ``code alpha fmax live colour`` row per kind
  .par    ``key value`` lines: cell parameters (alpha, fmax_sav,
          fmax_jngl) or species parameters (v_fod, beta, ...)
  .yaml   species parameters as a YAML mapping (same keys as .par)
  .pop    population: a ``Geografi <map>`` pair, then blocks of
          ``species x y count`` followed by ``count`` lines ``age weight``
  .sim    legacy run description, translated into a configuration dict

Each ``*_from_config`` helper turns a SimulationConfig section into the
runtime object it describes.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

import yaml

from biosim.config import SimulationConfig
from biosim.errors import ConfigError
from biosim.grid import Grid
from biosim.species import SpeciesCatalog
from biosim.types import PopulationRecord, TerrainKind, builtin_terrain

logger = logging.getLogger(__name__)

COMMENT_CHAR = '#'

PathLike = Union[str, Path]


# ═══════════════════════════════════════════════════════════════════════
# LOW-LEVEL READERS
# ═══════════════════════════════════════════════════════════════════════

def _content_lines(path: PathLike) -> Iterator[Tuple[int, str]]:
    """(line number, stripped text) of every non-blank, non-comment line."""
    try:
        f = open(path)
    except FileNotFoundError:
        raise ConfigError(f"could not open {path}") from None
    with f:
        for lineno, line in enumerate(f, start=1):
            text = line.strip()
            if text and not text.startswith(COMMENT_CHAR):
                yield lineno, text


def _tokens(path: PathLike) -> Iterator[str]:
    for _, text in _content_lines(path):
        yield from text.split()


def read_key_value_file(
    path: PathLike,
    list_keys: Tuple[str, ...] = (),
) -> Dict[str, Union[str, List[str]]]:
    """Read a ``key value`` parameter file.

    Keys in ``list_keys`` may repeat and collect into a list; any other
    key given twice is an error.

    Raises:
        ConfigError: missing value, duplicate key, or unreadable file.
    """
    params: Dict[str, Union[str, List[str]]] = {k: [] for k in list_keys}
    for lineno, text in _content_lines(path):
        parts = text.split(None, 1)
        if len(parts) != 2:
            raise ConfigError(f"{path}:{lineno}: expected 'key value', got {text!r}")
        key, value = parts[0], parts[1].strip()
        if key in list_keys:
            params[key].append(value)
        elif key in params:
            raise ConfigError(f"{path}:{lineno}: parameter '{key}' given twice")
        else:
            params[key] = value
    return params


def _as_int(value, what: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{what}: expected an integer, got {value!r}") from None


def _as_float(value, what: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{what}: expected a number, got {value!r}") from None


# ═══════════════════════════════════════════════════════════════════════
# TERRAIN
# ═══════════════════════════════════════════════════════════════════════

def _parse_color(value: str, what: str) -> str:
    if len(value) != 6:
        raise ConfigError(f"{what}: colour must be 6 hex digits, got {value!r}")
    try:
        int(value, 16)
    except ValueError:
        raise ConfigError(f"{what}: colour must be 6 hex digits, got {value!r}") from None
    return value.lower()


def read_terrain_spec(path: PathLike) -> Dict[str, TerrainKind]:
    """Read a .spec terrain table (``code alpha fmax live [colour]``)."""
    terrain: Dict[str, TerrainKind] = {}
    for lineno, text in _content_lines(path):
        fields = text.split()
        where = f"{path}:{lineno}"
        if len(fields) not in (4, 5) or len(fields[0]) != 1:
            raise ConfigError(f"{where}: expected 'code alpha fmax live colour'")
        code = fields[0]
        color = _parse_color(fields[4], where) if len(fields) == 5 else '000000'
        terrain[code] = TerrainKind(
            code=code,
            alpha=_as_float(fields[1], where),
            max_feed=_as_float(fields[2], where),
            live=bool(_as_int(fields[3], where)),
            color=color,
        )
    if not terrain:
        raise ConfigError(f"{path}: no terrain kinds defined")
    return terrain


def read_cell_parameters(path: PathLike) -> Dict[str, TerrainKind]:
    """Built-in terrain tuned by a cell .par file (alpha, fmax_sav, fmax_jngl)."""
    params = read_key_value_file(path)
    unknown = sorted(set(params) - {'alpha', 'fmax_sav', 'fmax_jngl'})
    if unknown:
        raise ConfigError(f"{path}: unknown cell parameter(s) {unknown}")
    missing = [k for k in ('alpha', 'fmax_sav', 'fmax_jngl') if k not in params]
    if missing:
        raise ConfigError(f"{path}: missing cell parameter(s) {missing}")
    return builtin_terrain(
        savanna_alpha=_as_float(params['alpha'], f"{path}: alpha"),
        savanna_fmax=_as_float(params['fmax_sav'], f"{path}: fmax_sav"),
        jungle_fmax=_as_float(params['fmax_jngl'], f"{path}: fmax_jngl"),
    )


def terrain_from_entries(entries: List[Mapping]) -> Dict[str, TerrainKind]:
    """Terrain from inline config mappings (code, alpha, max_feed, live, color)."""
    terrain: Dict[str, TerrainKind] = {}
    for i, entry in enumerate(entries):
        where = f"geography.terrain[{i}]"
        if not isinstance(entry, Mapping) or 'code' not in entry:
            raise ConfigError(f"{where}: mapping with a 'code' key expected")
        max_feed = entry.get('max_feed', entry.get('fmax', 0.0))
        terrain[str(entry['code'])] = TerrainKind(
            code=str(entry['code']),
            alpha=_as_float(entry.get('alpha', 0.0), where),
            max_feed=_as_float(max_feed, where),
            live=bool(entry.get('live', True)),
            color=_parse_color(str(entry.get('color', '000000')), where),
        )
    return terrain


def terrain_from_config(config: SimulationConfig) -> Dict[str, TerrainKind]:
    geo = config.geography
    if geo.terrain_file:
        return read_terrain_spec(config.resolve(geo.terrain_file))
    if geo.terrain:
        return terrain_from_entries(geo.terrain)
    if geo.cell_parameters:
        return read_cell_parameters(config.resolve(geo.cell_parameters))
    return builtin_terrain(geo.savanna_alpha, geo.savanna_fmax, geo.jungle_fmax)


# ═══════════════════════════════════════════════════════════════════════
# MAP
# ═══════════════════════════════════════════════════════════════════════

def read_geo(path: PathLike) -> List[str]:
    """Read a .geo map into a list of row strings (row y → string)."""
    tokens = _tokens(path)
    n_rows = n_cols = 0
    for key in tokens:
        value = next(tokens, None)
        if value is None:
            raise ConfigError(f"{path}: header keyword '{key}' has no value")
        if key == 'Rader':
            n_rows = _as_int(value, f"{path}: Rader")
        elif key == 'Kolonner':
            n_cols = _as_int(value, f"{path}: Kolonner")
        else:
            logger.warning("%s: ignoring unknown header keyword '%s'", path, key)
        if n_rows * n_cols:
            break
    if n_rows <= 0 or n_cols <= 0:
        raise ConfigError(f"{path}: map needs positive 'Rader' and 'Kolonner'")

    chars = [c for token in tokens for c in token]
    if len(chars) < n_rows * n_cols:
        raise ConfigError(
            f"{path}: expected {n_rows * n_cols} terrain cells, found {len(chars)}"
        )
    if len(chars) > n_rows * n_cols:
        logger.warning("%s: ignoring %d trailing characters",
                       path, len(chars) - n_rows * n_cols)
    return [''.join(chars[y * n_cols:(y + 1) * n_cols]) for y in range(n_rows)]


def grid_from_config(config: SimulationConfig) -> Grid:
    """Build the linked Grid described by the geography section."""
    geo = config.geography
    if geo.map_file:
        rows = read_geo(config.resolve(geo.map_file))
    elif geo.map_rows:
        rows = [str(r).replace(' ', '') for r in geo.map_rows]
    else:
        raise ConfigError("geography: no map given (map_file or map_rows)")
    return Grid.from_rows(terrain_from_config(config), rows)


# ═══════════════════════════════════════════════════════════════════════
# SPECIES
# ═══════════════════════════════════════════════════════════════════════

def read_species_file(path: PathLike) -> Dict[str, object]:
    """Species parameters from a YAML mapping or a ``key value`` .par file."""
    path = Path(path)
    if path.suffix in ('.yaml', '.yml'):
        if not path.exists():
            raise ConfigError(f"could not open {path}")
        with open(path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"{path}: invalid YAML ({e})") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: species file must be a mapping")
        return data
    return dict(read_key_value_file(path))


def catalog_from_config(config: SimulationConfig) -> SpeciesCatalog:
    """Register every configured species, in order."""
    catalog = SpeciesCatalog()
    for i, entry in enumerate(config.species):
        if isinstance(entry, str):
            path = config.resolve(entry)
            catalog.register_parameters(read_species_file(path), str(path))
        else:
            catalog.register_parameters(entry, f"species[{i}]")
    if not len(catalog):
        raise ConfigError("no species defined")
    return catalog


# ═══════════════════════════════════════════════════════════════════════
# POPULATIONS
# ═══════════════════════════════════════════════════════════════════════

def read_population_file(path: PathLike) -> Tuple[Optional[str], List[PopulationRecord]]:
    """Read a .pop file.

    Returns:
        (geography name from the header or None, records in file order)
    """
    tokens = _tokens(path)
    geography = None
    for key in tokens:
        value = next(tokens, None)
        if key == 'Geografi':
            geography = value
            break
        logger.warning("%s: ignoring '%s' before the Geografi line", path, key)
    if geography is None:
        raise ConfigError(f"{path}: missing 'Geografi' line")

    records: List[PopulationRecord] = []
    for species in tokens:
        header = [next(tokens, None) for _ in range(3)]
        if None in header:
            raise ConfigError(f"{path}: truncated block header for '{species}'")
        x = _as_int(header[0], f"{path}: x")
        y = _as_int(header[1], f"{path}: y")
        count = _as_int(header[2], f"{path}: count")
        for _ in range(count):
            age, weight = next(tokens, None), next(tokens, None)
            if weight is None:
                raise ConfigError(
                    f"{path}: block '{species} {x} {y}' lists fewer than "
                    f"{count} animals"
                )
            records.append(PopulationRecord(
                species=species, x=x, y=y,
                age=_as_int(age, f"{path}: age"),
                weight=_as_float(weight, f"{path}: weight"),
            ))
    return geography, records


def population_records_from_config(config: SimulationConfig) -> List[PopulationRecord]:
    """All records of the configured .pop files, concatenated in order."""
    records: List[PopulationRecord] = []
    for entry in config.populations:
        path = config.resolve(entry)
        geography, recs = read_population_file(path)
        expected = config.geography.map_file or config.geography.name
        if expected and geography != expected and Path(geography).name != Path(expected).name:
            logger.warning("%s was written for geography '%s', not '%s'",
                           path, geography, expected)
        records.extend(recs)
    return records


# ═══════════════════════════════════════════════════════════════════════
# LEGACY .sim FILES
# ═══════════════════════════════════════════════════════════════════════

_SIM_SCALARS = {
    'StartAar': ('simulation', 'start_year'),
    'SluttAar': ('simulation', 'end_year'),
    'SlumptallFroe': ('simulation', 'seed'),
    'UtdataStamme': ('simulation', 'output_stem'),
    'DumpDyrInterval': ('simulation', 'dump_animal_interval'),
    'DumpPopInterval': ('simulation', 'dump_population_interval'),
    'DumpForInterval': ('simulation', 'dump_feed_interval'),
    'DumpPNGInterval': ('simulation', 'dump_png_interval'),
    'Geografi': ('geography', 'map_file'),
    'CelleParameter': ('geography', 'cell_parameters'),
    'CelleSpec': ('geography', 'terrain_file'),
}
_SIM_LISTS = ('ArtParameter', 'Populasjon')
_SIM_SPECIES = ('BytteParameter', 'RovdyrParameter')
_SIM_REQUIRED = ('Geografi', 'StartAar', 'SluttAar', 'UtdataStamme')
_SIM_INTEGERS = ('StartAar', 'SluttAar', 'SlumptallFroe', 'DumpDyrInterval',
                 'DumpPopInterval', 'DumpForInterval', 'DumpPNGInterval')


def read_sim_file(path: PathLike) -> Dict:
    """Translate a legacy .sim file into a configuration dict.

    Species files are taken in the order ``ArtParameter`` entries, then
    ``BytteParameter``, then ``RovdyrParameter``.

    Raises:
        ConfigError: unknown keyword, missing required keyword, a
            non-integer year/seed/interval, or no cell description.
    """
    params = read_key_value_file(path, list_keys=_SIM_LISTS)
    known = set(_SIM_SCALARS) | set(_SIM_LISTS) | set(_SIM_SPECIES)
    unknown = sorted(k for k in params if k not in known)
    if unknown:
        raise ConfigError(f"{path}: unknown parameter(s) {unknown}")
    missing = [k for k in _SIM_REQUIRED if k not in params]
    if missing:
        raise ConfigError(f"{path}: missing parameter(s) {missing}")
    if 'CelleParameter' not in params and 'CelleSpec' not in params:
        raise ConfigError(f"{path}: Malformed .sim file: No valid cell spec.")

    config: Dict = {'simulation': {}, 'geography': {}}
    for key, (section, name) in _SIM_SCALARS.items():
        if key not in params or params[key] == '':
            continue
        value = params[key]
        if key in _SIM_INTEGERS:
            value = _as_int(value, f"{path}: {key}")
        config[section][name] = value

    species = list(params['ArtParameter'])
    species.extend(params[k] for k in _SIM_SPECIES if params.get(k))
    config['species'] = species
    config['populations'] = list(params['Populasjon'])
    return config
