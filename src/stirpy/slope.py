# SPDX-License-Identifier: MIT
"""
stirpy.slope
============

Robust elevation slope for the stations sharing the grid point facet.

The slope is fitted with :func:`stirpy.regression.weighted_regression` and
normalized by the mean station value of the fitting subset, giving a
unitless relative lapse rate per unit elevation. When that normalized slope
falls outside the admissible range, every subset obtained by dropping
exactly one station is refitted:

- the in-bounds subset that moves the slope the most away from the full fit
  identifies the single most discordant station (the "outlier");
- every in-bounds drop-one slope feeds a pool whose sample standard
  deviation is the slope uncertainty.

Whatever slope is retained, the line is re-anchored on the SYMAP baseline:
the intercept is always the baseline field, and the slope acts on the
elevation difference between the grid point and the baseline elevation.

Station-count regimes
---------------------

- ``m >= n_min_near``: :func:`robust_slope` (direct acceptance or outlier
  search, plus uncertainty).
- ``m == 2``: :func:`two_station_slope`, a single direct regression that
  never flags ``valid_regress``.
- otherwise: :func:`default_slope`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

import numpy as np

from .config import StirParams
from .regression import RegressionFit, is_well_conditioned, weighted_regression

# slope assigned to ill-conditioned drop-one designs; never inside any bounds
LARGE = 1e15


@dataclass(frozen=True)
class SlopeSearch:
    """Outcome of the drop-one scan."""

    best_indices: Optional[np.ndarray] = None
    max_delta: float = 0.0
    pool: Tuple[float, ...] = ()

    @property
    def found_outlier(self) -> bool:
        return self.best_indices is not None and self.max_delta > 0

    @property
    def uncert(self) -> float:
        if len(self.pool) < 2:
            return float("nan")
        return float(np.std(np.asarray(self.pool), ddof=1))


@dataclass(frozen=True)
class SlopeResult:
    slope: float = float("nan")
    intercept: float = float("nan")
    norm_slope: float = float("nan")
    norm_slope_uncert: float = float("nan")
    valid_regress: bool = False
    removed_index: Optional[int] = None
    # value that divided the slope into norm_slope
    norm_mean: float = float("nan")
    pool: Tuple[float, ...] = field(default=(), repr=False)


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #


def drop_one_subsets(n: int) -> Iterator[np.ndarray]:
    """Yield index arrays omitting exactly one of ``range(n)``, in order."""
    idx = np.arange(int(n))
    for i in range(int(n)):
        yield np.delete(idx, i)


def _normalize(slope: float, mean_value: float) -> float:
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.float64(slope) / np.float64(mean_value))


def _in_bounds(norm_slope: float, lo: float, hi: float) -> bool:
    return bool(lo < norm_slope < hi)


def normalized_slope(elev, values, weights) -> Tuple[RegressionFit, float]:
    """Weighted fit and its slope divided by the mean of ``values``."""
    fit = weighted_regression(elev, values, weights)
    v = np.asarray(values, dtype="float64")
    mean_value = float(np.mean(v)) if v.size else float("nan")
    return fit, _normalize(fit.slope, mean_value)


def search_drop_one(
    elev,
    values,
    weights,
    reference_slope: float,
    min_slope: float,
    max_slope: float,
    tiny: float = 1e-15,
) -> SlopeSearch:
    """
    Refit every drop-one subset and keep track of the in-bounds slopes.

    Parameters
    ----------
    elev, values, weights : array-like
        Facet-matched stations.
    reference_slope : float
        Normalized slope of the full subset; deviations are measured from it.
        When nan, no subset can be ranked and only the pool is filled.
    min_slope, max_slope : float
        Open interval of admissible normalized slopes.
    tiny : float
        Reciprocal condition threshold of the ``[1, elev]`` design.

    Returns
    -------
    SlopeSearch
    """
    e = np.asarray(elev, dtype="float64")
    v = np.asarray(values, dtype="float64")
    w = np.asarray(weights, dtype="float64")

    best: Optional[np.ndarray] = None
    max_delta = 0.0
    pool: List[float] = []

    for keep in drop_one_subsets(e.size):
        if is_well_conditioned(e[keep], tiny):
            _, test_slope = normalized_slope(e[keep], v[keep], w[keep])
            delta = abs(reference_slope - test_slope)
        else:
            test_slope = LARGE
            delta = -LARGE

        if not _in_bounds(test_slope, min_slope, max_slope):
            continue
        pool.append(test_slope)
        if delta > max_delta:
            best = keep
            max_delta = delta

    return SlopeSearch(best_indices=best, max_delta=float(max_delta), pool=tuple(pool))


# --------------------------------------------------------------------------- #
# Regimes
# --------------------------------------------------------------------------- #


def default_slope(baseline: float, default_norm_slope: float) -> SlopeResult:
    """Prior slope scaled by the baseline, anchored on the baseline."""
    slope = float(default_norm_slope) * float(baseline)
    return SlopeResult(
        slope=slope,
        intercept=float(baseline),
        norm_slope=_normalize(slope, baseline),
        norm_mean=float(baseline),
    )


def two_station_slope(
    elev,
    values,
    weights,
    *,
    baseline: float,
    default_norm_slope: float,
    params: StirParams,
) -> SlopeResult:
    """
    Single direct regression for a pair of facet-matched stations.

    Accepted when its normalized slope is defined and inside the bounds;
    otherwise the default slope is used. ``valid_regress`` is left unset in
    both cases and no uncertainty is estimated.
    """
    fit, norm = normalized_slope(elev, values, weights)
    lo, hi = params.bounds
    if np.isnan(norm) or norm < lo or norm > hi:
        return default_slope(baseline, default_norm_slope)
    return SlopeResult(
        slope=fit.slope,
        intercept=float(baseline),
        norm_slope=_normalize(fit.slope, baseline),
        norm_mean=float(baseline),
    )


def robust_slope(
    elev,
    values,
    weights,
    *,
    baseline: float,
    default_norm_slope: float,
    params: StirParams,
) -> SlopeResult:
    """
    Full-subset regression with single-outlier removal.

    1. Fit on all facet-matched stations and normalize.
    2. In bounds: accept, flag ``valid_regress`` and estimate the
       uncertainty from the drop-one pool.
    3. Out of bounds or undefined: scan the drop-one subsets. The in-bounds
       subset deviating most from the full fit is refitted and accepted;
       without one, fall back to the default slope.
    """
    e = np.asarray(elev, dtype="float64")
    v = np.asarray(values, dtype="float64")
    w = np.asarray(weights, dtype="float64")
    lo, hi = params.bounds
    baseline = float(baseline)

    fit, norm = normalized_slope(e, v, w)
    full_mean = float(np.mean(v))
    search = search_drop_one(e, v, w, norm, lo, hi, params.tiny)

    if not np.isnan(norm) and lo <= norm <= hi:
        return SlopeResult(
            slope=fit.slope,
            intercept=baseline,
            norm_slope=norm,
            norm_slope_uncert=search.uncert,
            valid_regress=True,
            norm_mean=full_mean,
            pool=search.pool,
        )

    if search.found_outlier:
        keep = search.best_indices
        refit = weighted_regression(e[keep], v[keep], w[keep])
        slope = refit.slope
        if np.isnan(slope):
            slope = float(default_norm_slope) * baseline
        removed = int(np.setdiff1d(np.arange(e.size), keep)[0])
        kept_mean = float(np.mean(v[keep]))
        return SlopeResult(
            slope=slope,
            intercept=baseline,
            norm_slope=_normalize(slope, kept_mean),
            norm_slope_uncert=search.uncert,
            valid_regress=True,
            removed_index=removed,
            norm_mean=kept_mean,
            pool=search.pool,
        )

    slope = float(default_norm_slope) * baseline
    return SlopeResult(
        slope=slope,
        intercept=baseline,
        norm_slope=_normalize(slope, full_mean),
        norm_slope_uncert=search.uncert,
        norm_mean=full_mean,
        pool=search.pool,
    )


__all__ = [
    "LARGE",
    "SlopeSearch",
    "SlopeResult",
    "drop_one_subsets",
    "normalized_slope",
    "search_drop_one",
    "default_slope",
    "two_station_slope",
    "robust_slope",
]
