"""Exception taxonomy for BioSim.

  - ConfigError: malformed or inconsistent terrain/species/grid/config
    definitions. Fatal; aborts initialization.
  - UnknownSpeciesError: a population record names a species that was
    never registered. Recoverable; callers usually skip the record.
  - InvariantViolation: a behaviour was applied to a dead or
    unregistered animal. Programming error, never expected at runtime.

Stochastic outcomes (failed wander, failed birth, failed capture) are
ordinary branches of the model and never raise.
"""


class BioSimError(Exception):
    """Root of all BioSim errors."""


class ConfigError(BioSimError, ValueError):
    """Invalid terrain, species, grid or simulation configuration."""


class UnknownSpeciesError(BioSimError, LookupError):
    """Species name not present in the catalog."""


class InvariantViolation(BioSimError, AssertionError):
    """Cell/animal membership or liveness invariant broken."""
