# SPDX-License-Identifier: MIT
"""
stirpy
======

STIR (Simple Topographically Informed Regression) interpolation of sparse
station observations (precipitation, temperature) onto a grid.

At every grid point STIR:

1. computes a weighted SYMAP baseline from the neighboring stations
   (value, elevation and a leave-one-out uncertainty);
2. fits a weighted elevation regression on the stations sharing the grid
   point topographic facet, removing a single outlier station when the
   normalized slope is not physically admissible;
3. moves the baseline to the grid point elevation with that slope
   (or with a default slope when no regression can be trusted).

Main entry points
-----------------

- :func:`estimate_point` – one grid point, returns a :class:`MetPointEstimate`.
- :func:`estimate_grid`  – parallel map over many grid points.
- :func:`read_parameters` – flat ``name,value,comment`` parameter file.

Core submodules
---------------

- :mod:`stirpy.config`     – parameter records and file reader
- :mod:`stirpy.regression` – weighted linear regression and conditioning
- :mod:`stirpy.baseline`   – SYMAP baseline
- :mod:`stirpy.slope`      – robust slope (drop-one outlier search)
- :mod:`stirpy.estimator`  – grid point estimator
- :mod:`stirpy.assemble`   – final field assembly
- :mod:`stirpy.stations`   – station list file
- :mod:`stirpy.viz`        – diagnostic plots
"""

from __future__ import annotations

# Configuration
from .config import (
    ParameterError,
    StirParams,
    PreprocessParams,
    ParameterSet,
    read_parameters,
)

# Core estimator
from .regression import RegressionFit, weighted_regression
from .baseline import BaselineEstimate, symap_estimate
from .slope import robust_slope, search_drop_one
from .estimator import (
    MetPointEstimate,
    Neighborhood,
    estimate_point,
    estimate_grid,
    estimates_to_frame,
)

# Grids and stations
from .assemble import MISSING_VALUE, final_field, estimates_to_grids
from .stations import (
    FACET_CODES,
    match_stations_to_grid,
    read_station_list,
    write_station_list,
    create_station_list,
)

# Visualization
from .viz import plot_station_regression, plot_field, plot_stations


__all__ = [
    # Configuration
    "ParameterError",
    "StirParams",
    "PreprocessParams",
    "ParameterSet",
    "read_parameters",
    # Core estimator
    "RegressionFit",
    "weighted_regression",
    "BaselineEstimate",
    "symap_estimate",
    "robust_slope",
    "search_drop_one",
    "MetPointEstimate",
    "Neighborhood",
    "estimate_point",
    "estimate_grid",
    "estimates_to_frame",
    # Grids and stations
    "MISSING_VALUE",
    "final_field",
    "estimates_to_grids",
    "FACET_CODES",
    "match_stations_to_grid",
    "read_station_list",
    "write_station_list",
    "create_station_list",
    # Visualization
    "plot_station_regression",
    "plot_field",
    "plot_stations",
]


# Sync this with pyproject.toml if you bump the version
__version__ = "0.1.0"
