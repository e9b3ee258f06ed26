"""BioSim: predator/prey population dynamics on a discrete grid.

An individual-based model of herbivores and predators living on a map
of terrain cells with limited, regrowing feed:
  - Terrain kinds and the cell graph (grid.py)
  - Species parameter sets and the logistic fitness model (species.py)
  - The animal arena and per-animal behaviours (population.py)
  - The four-pass annual cycle: aging/death, wandering/regrowth,
    breeding, feeding (model.py)

File formats, reports and the command-line driver live in loaders.py,
reports.py, the viz package and cli.py.
"""

__version__ = "0.1.0"
