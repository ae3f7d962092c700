# SPDX-License-Identifier: MIT
"""
stirpy.estimator
================

First-pass STIR estimate at a single grid point, and a parallel map of it
over many grid points.

For each grid point:

1. A SYMAP baseline (weighted station value and elevation) is computed from
   all neighboring stations, with knowledge-based weights when available and
   distance/angle-only weights otherwise (:mod:`stirpy.baseline`).
2. An elevation slope is estimated from the stations on the grid point facet
   only (:mod:`stirpy.slope`), with a regime chosen by how many of them
   there are.
3. The baseline is moved to the grid point elevation::

       raw_field = slope * (grid_elev - symap_elev) + intercept

   where ``intercept`` is the baseline field itself.

Numerical degeneracies never raise; fields that cannot be computed are nan
and ``valid_regress`` tells whether a facet regression (rather than the
default slope) produced the slope.

Grid points are independent, so :func:`estimate_grid` fans them out with
:mod:`joblib` and returns the estimates in input order.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm.auto import tqdm

from .baseline import symap_estimate
from .config import StirParams
from .slope import SlopeResult, default_slope, robust_slope, two_station_slope

NAN = float("nan")


# --------------------------------------------------------------------------- #
# Records
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class MetPointEstimate:
    """
    STIR output for one grid point. Numeric fields are nan when the stage
    that produces them did not apply.
    """

    raw_field: float = NAN
    intercept: float = NAN
    slope: float = NAN
    norm_slope: float = NAN
    symap_field: float = NAN
    symap_elev: float = NAN
    symap_uncert: float = NAN
    slope_uncert: float = NAN
    norm_slope_uncert: float = NAN
    valid_regress: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_series(self) -> pd.Series:
        return pd.Series(self.as_dict())


MISSING = MetPointEstimate()

ESTIMATE_COLUMNS: Tuple[str, ...] = tuple(MISSING.as_dict())


def _as_1d(arr) -> np.ndarray:
    return np.asarray(arr if arr is not None else [], dtype="float64").ravel()


@dataclass(frozen=True)
class Neighborhood:
    """
    Stations around one grid point.

    ``values``, ``elev``, ``weights`` and ``symap_weights`` are aligned over
    all neighbors; ``values_aspect``, ``elev_aspect`` and ``weights_aspect``
    are aligned over the neighbors on the grid point facet. A nan in
    ``weights[0]`` marks the knowledge-based weights as unavailable.
    """

    values: np.ndarray
    elev: np.ndarray
    weights: np.ndarray
    symap_weights: np.ndarray
    values_aspect: np.ndarray
    elev_aspect: np.ndarray
    weights_aspect: np.ndarray

    def __post_init__(self) -> None:
        for name in (
            "values", "elev", "weights", "symap_weights",
            "values_aspect", "elev_aspect", "weights_aspect",
        ):
            object.__setattr__(self, name, _as_1d(getattr(self, name)))

        n = self.values.size
        for name in ("elev", "symap_weights"):
            if getattr(self, name).size != n:
                raise ValueError(
                    f"[Neighborhood] '{name}' has {getattr(self, name).size} "
                    f"entries, expected {n}."
                )
        # unavailable knowledge-based weights may come as empty or a lone nan
        unavailable = self.weights.size == 0 or np.isnan(self.weights[0])
        if self.weights.size != n and not unavailable:
            raise ValueError(
                f"[Neighborhood] 'weights' has {self.weights.size} entries, "
                f"expected {n}."
            )

        m = self.values_aspect.size
        for name in ("elev_aspect", "weights_aspect"):
            if getattr(self, name).size != m:
                raise ValueError(
                    f"[Neighborhood] '{name}' has {getattr(self, name).size} "
                    f"entries, expected {m}."
                )

        for name in ("weights", "symap_weights", "weights_aspect"):
            w = getattr(self, name)
            if np.any(w[np.isfinite(w)] < 0):
                raise ValueError(f"[Neighborhood] '{name}' must be non-negative.")

    @property
    def n_near(self) -> int:
        return int(self.values.size)

    @property
    def n_aspect(self) -> int:
        return int(self.values_aspect.size)

    @classmethod
    def from_frame(
        cls,
        neighbors: pd.DataFrame,
        facet: int,
        *,
        value_col: str = "value",
        elev_col: str = "elev",
        weight_col: str = "weight",
        symap_weight_col: str = "symap_weight",
        facet_col: str = "facet",
        aspect_weight_col: Optional[str] = None,
    ) -> "Neighborhood":
        """
        Build a neighborhood from a table of neighboring stations.

        The facet-matched subset is the rows whose ``facet_col`` equals
        ``facet``; their weights come from ``aspect_weight_col`` when given,
        otherwise from ``weight_col``.
        """
        cols = [value_col, elev_col, weight_col, symap_weight_col, facet_col]
        missing = [c for c in cols if c not in neighbors.columns]
        if aspect_weight_col is not None and aspect_weight_col not in neighbors.columns:
            missing.append(aspect_weight_col)
        if missing:
            raise ValueError(f"[Neighborhood.from_frame] Missing required columns: {missing}")

        same = neighbors[neighbors[facet_col] == facet]
        aw_col = aspect_weight_col or weight_col
        return cls(
            values=neighbors[value_col].to_numpy(dtype=float),
            elev=neighbors[elev_col].to_numpy(dtype=float),
            weights=neighbors[weight_col].to_numpy(dtype=float),
            symap_weights=neighbors[symap_weight_col].to_numpy(dtype=float),
            values_aspect=same[value_col].to_numpy(dtype=float),
            elev_aspect=same[elev_col].to_numpy(dtype=float),
            weights_aspect=same[aw_col].to_numpy(dtype=float),
        )


# --------------------------------------------------------------------------- #
# Single grid point
# --------------------------------------------------------------------------- #


def _select_slope(
    nbhd: Neighborhood,
    baseline: float,
    default_norm_slope: float,
    params: StirParams,
) -> SlopeResult:
    m = nbhd.n_aspect
    args = (nbhd.elev_aspect, nbhd.values_aspect, nbhd.weights_aspect)
    kwargs = dict(baseline=baseline, default_norm_slope=default_norm_slope, params=params)

    # a single station cannot support a slope, whatever n_min_near says
    if m >= max(params.n_min_near, 2):
        return robust_slope(*args, **kwargs)
    if m == 2:
        return two_station_slope(*args, **kwargs)
    return default_slope(baseline, default_norm_slope)


def estimate_point(
    neighborhood: Neighborhood,
    grid_elev: float,
    default_norm_slope: float,
    params: Optional[StirParams] = None,
) -> MetPointEstimate:
    """
    STIR first-pass estimate at one grid point.

    Parameters
    ----------
    neighborhood : Neighborhood
        Neighboring stations and their weights.
    grid_elev : float
        Elevation of the grid point.
    default_norm_slope : float
        Prior normalized slope used when no facet regression is accepted.
    params : StirParams, optional
        Thresholds; package defaults when omitted.

    Returns
    -------
    MetPointEstimate
    """
    params = params if params is not None else StirParams()

    base = symap_estimate(
        neighborhood.values,
        neighborhood.elev,
        neighborhood.weights,
        neighborhood.symap_weights,
    )
    sr = _select_slope(neighborhood, base.field, default_norm_slope, params)

    raw_field = sr.slope * (float(grid_elev) - base.elev) + sr.intercept

    slope_uncert = NAN
    if np.isfinite(sr.norm_slope_uncert):
        slope_uncert = float(sr.norm_slope_uncert * sr.norm_mean)

    return MetPointEstimate(
        raw_field=float(raw_field),
        intercept=float(sr.intercept),
        slope=float(sr.slope),
        norm_slope=float(sr.norm_slope),
        symap_field=base.field,
        symap_elev=base.elev,
        symap_uncert=base.uncert,
        slope_uncert=slope_uncert,
        norm_slope_uncert=float(sr.norm_slope_uncert),
        valid_regress=bool(sr.valid_regress),
    )


# --------------------------------------------------------------------------- #
# Many grid points
# --------------------------------------------------------------------------- #

GridCell = Tuple[Neighborhood, float, float]


def estimate_grid(
    cells: Iterable[GridCell],
    params: Optional[StirParams] = None,
    *,
    n_jobs: int = 1,
    show_progress: bool = False,
) -> List[MetPointEstimate]:
    """
    Map :func:`estimate_point` over ``(neighborhood, grid_elev,
    default_norm_slope)`` cells.

    Parameters
    ----------
    cells : iterable of tuple
        One entry per valid grid point.
    params : StirParams, optional
        Shared thresholds.
    n_jobs : int, default 1
        joblib worker count (``-1`` uses all cores).
    show_progress : bool, default False
        Wrap the cells in a ``tqdm`` progress bar.

    Returns
    -------
    list of MetPointEstimate
        Same order as ``cells``.
    """
    params = params if params is not None else StirParams()
    cells = list(cells)

    if show_progress:
        tqdm.write(f"Estimating {len(cells)} grid points (n_jobs={n_jobs})")
    iterator = tqdm(cells, desc="Grid points", unit="pt") if show_progress else cells

    if n_jobs == 1:
        return [estimate_point(nb, ge, ds, params) for nb, ge, ds in iterator]

    return Parallel(n_jobs=n_jobs)(
        delayed(estimate_point)(nb, ge, ds, params) for nb, ge, ds in iterator
    )


def estimates_to_frame(
    estimates: Sequence[MetPointEstimate],
    index: Optional[Sequence[Any]] = None,
) -> pd.DataFrame:
    """One row per grid point, one column per :class:`MetPointEstimate` field."""
    if not estimates:
        return pd.DataFrame(columns=list(ESTIMATE_COLUMNS))
    df = pd.DataFrame([e.as_dict() for e in estimates], columns=list(ESTIMATE_COLUMNS))
    if index is not None:
        df.index = pd.Index(index)
    return df


__all__ = [
    "MetPointEstimate",
    "MISSING",
    "ESTIMATE_COLUMNS",
    "Neighborhood",
    "estimate_point",
    "estimate_grid",
    "estimates_to_frame",
]
