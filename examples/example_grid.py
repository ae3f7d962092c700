# SPDX-License-Identifier: MIT
"""Minimal STIR run on a toy 3x3 grid."""

import numpy as np
import pandas as pd
from stirpy import (
    Neighborhood,
    StirParams,
    estimate_grid,
    estimates_to_frame,
    estimates_to_grids,
    final_field,
)

# toy 3x3 grid, every cell on a north facet
dem = np.array([[500.0, 900.0, 1400.0],
                [700.0, 1200.0, 1800.0],
                [800.0, 1500.0, 2200.0]])
mask = np.ones_like(dem, dtype=int)
mask[0, 0] = -1

stations = pd.DataFrame({
    "value": [2.1, 2.6, 3.4, 3.9, 0.2],
    "elev": [600.0, 1000.0, 1500.0, 2000.0, 2100.0],
    "weight": [0.30, 0.25, 0.20, 0.15, 0.10],
    "symap_weight": [0.2] * 5,
    "facet": [1, 1, 1, 1, 3],
})

params = StirParams(n_min_near=3, min_slope=0.0, max_initial_slope=0.004)
nb = Neighborhood.from_frame(stations, facet=1)
cells = [(nb, float(z), 5e-4) for z in dem.ravel()]

ests = estimate_grid(cells, params, show_progress=True)
print(estimates_to_frame(ests).round(4))

grids = estimates_to_grids(ests, dem.shape)
out = final_field(dem, mask, grids["symap_elev"], grids["symap_field"], grids["slope"])
print(out)
