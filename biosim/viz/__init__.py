"""BioSim visualization.

Modules:
  - style: Dark theme colours and helpers
  - maps: PNG map reports and population trajectory plots
"""

from biosim.viz.style import (  # noqa: F401
    DARK_BG,
    DARK_PANEL,
    DIET_COLORS,
    GRID_COLOR,
    SPECIES_COLORS,
    TEXT_COLOR,
    apply_dark_theme,
    dark_figure,
    save_figure,
)

from biosim.viz.maps import (  # noqa: F401
    animal_density_color,
    feed_density_color,
    map_image,
    plot_population_trajectory,
    write_map_png,
)
