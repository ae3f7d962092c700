# SPDX-License-Identifier: MIT
"""
stirpy.assemble
===============

Turn per-grid-point estimates into grids and compute the final field.
"""

from __future__ import annotations

from typing import Dict, Sequence, Tuple

import numpy as np

from .estimator import ESTIMATE_COLUMNS, MetPointEstimate

MISSING_VALUE = -999.0


def final_field(dem, mask, symap_elev, symap_field, final_slope) -> np.ndarray:
    """
    ``final_slope * (dem - symap_elev) + symap_field`` on the grid.

    Cells with ``mask < 0`` are set to :data:`MISSING_VALUE`. All inputs
    must broadcast to the shape of ``dem``.
    """
    dem = np.asarray(dem, dtype="float64")
    out = np.asarray(final_slope, dtype="float64") * (dem - np.asarray(symap_elev, dtype="float64"))
    out = out + np.asarray(symap_field, dtype="float64")
    out = np.broadcast_to(out, dem.shape).copy()
    out[np.broadcast_to(np.asarray(mask) < 0, dem.shape)] = MISSING_VALUE
    return out


def estimates_to_grids(
    estimates: Sequence[MetPointEstimate],
    shape: Tuple[int, ...],
    valid_index=None,
) -> Dict[str, np.ndarray]:
    """
    Scatter estimates into one array per field.

    Parameters
    ----------
    estimates : sequence of MetPointEstimate
        Row-major grid order, or the order of ``valid_index``.
    shape : tuple
        Grid shape.
    valid_index : array-like of int, optional
        Flat (row-major) indices of the cells the estimates belong to. When
        omitted, ``estimates`` must cover the full grid. Cells without an
        estimate are nan (``valid_regress`` False).
    """
    size = int(np.prod(shape))
    if valid_index is None:
        if len(estimates) != size:
            raise ValueError(
                f"[estimates_to_grids] got {len(estimates)} estimates for a grid of {size} cells."
            )
        idx = np.arange(size)
    else:
        idx = np.asarray(valid_index, dtype=int).ravel()
        if idx.size != len(estimates):
            raise ValueError(
                "[estimates_to_grids] valid_index and estimates differ in length."
            )

    grids: Dict[str, np.ndarray] = {}
    for col in ESTIMATE_COLUMNS:
        if col == "valid_regress":
            flat = np.zeros(size, dtype=bool)
        else:
            flat = np.full(size, np.nan)
        flat[idx] = [getattr(e, col) for e in estimates]
        grids[col] = flat.reshape(shape)
    return grids


__all__ = ["MISSING_VALUE", "final_field", "estimates_to_grids"]
