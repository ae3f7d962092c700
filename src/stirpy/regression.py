# SPDX-License-Identifier: MIT
"""
stirpy.regression
=================

Weighted linear regression of a station variable against elevation.

- :func:`weighted_regression` fits ``value ≈ slope * elev + intercept`` by
  weighted least squares (scikit-learn :class:`LinearRegression` with
  ``sample_weight``) and returns a :class:`RegressionFit`.
- :func:`reciprocal_condition` / :func:`is_well_conditioned` test the
  ``[1, elev]`` design matrix before a fit is attempted.

Degenerate inputs (fewer than two informative stations, all elevations
equal, zero weights) never raise: the fit comes back with ``nan`` slope and
intercept and the caller decides how to fall back.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from sklearn.linear_model import LinearRegression

TINY = 1e-15


@dataclass(frozen=True)
class RegressionFit:
    """Slope/intercept pair from a weighted line fit (``nan`` when undefined)."""

    slope: float = float("nan")
    intercept: float = float("nan")

    @property
    def is_valid(self) -> bool:
        return bool(np.isfinite(self.slope) and np.isfinite(self.intercept))

    def predict(self, elev) -> np.ndarray:
        return self.slope * np.asarray(elev, dtype="float64") + self.intercept


UNDEFINED_FIT = RegressionFit()


def _as_arrays(elev, values, weights):
    e = np.asarray(elev, dtype="float64").ravel()
    v = np.asarray(values, dtype="float64").ravel()
    w = np.asarray(weights, dtype="float64").ravel()
    if not (e.shape == v.shape == w.shape):
        raise ValueError(
            "[weighted_regression] elev, values and weights must have the same "
            f"length. Got {e.size}, {v.size}, {w.size}."
        )
    return e, v, w


def weighted_regression(elev, values, weights) -> RegressionFit:
    """
    Weighted least-squares line of ``values`` against ``elev``.

    Parameters
    ----------
    elev, values, weights : array-like
        Aligned 1-D arrays. Weights are expected to be non-negative.

    Returns
    -------
    RegressionFit
        ``UNDEFINED_FIT`` (nan slope and intercept) when the design is
        degenerate: fewer than two stations carrying positive weight, all
        of them at the same elevation, or non-finite inputs.
    """
    e, v, w = _as_arrays(elev, values, weights)

    if e.size < 2:
        return UNDEFINED_FIT
    if not (np.all(np.isfinite(e)) and np.all(np.isfinite(v)) and np.all(np.isfinite(w))):
        return UNDEFINED_FIT

    informative = w > 0
    if informative.sum() < 2:
        return UNDEFINED_FIT
    if np.ptp(e[informative]) == 0.0:
        return UNDEFINED_FIT

    model = LinearRegression(fit_intercept=True)
    model.fit(e.reshape(-1, 1), v, sample_weight=w)
    return RegressionFit(slope=float(model.coef_[0]), intercept=float(model.intercept_))


def design_matrix(elev) -> np.ndarray:
    """``[ones, elev]`` design matrix of a station subset."""
    e = np.asarray(elev, dtype="float64").ravel()
    return np.column_stack([np.ones_like(e), e])


def reciprocal_condition(X: np.ndarray) -> float:
    """
    Reciprocal 2-norm condition number ``s_min / s_max`` of ``X``.

    Returns 0.0 for empty or all-zero matrices and for matrices with fewer
    rows than columns (rank deficient by construction).
    """
    X = np.asarray(X, dtype="float64")
    if X.size == 0 or X.shape[0] < X.shape[1]:
        return 0.0
    s = np.linalg.svd(X, compute_uv=False)
    if not np.all(np.isfinite(s)) or s[0] == 0.0:
        return 0.0
    return float(s[-1] / s[0])


def is_well_conditioned(elev, tiny: float = TINY) -> bool:
    """True when the ``[1, elev]`` design is far enough from singular."""
    return reciprocal_condition(design_matrix(elev)) > tiny


__all__ = [
    "TINY",
    "RegressionFit",
    "UNDEFINED_FIT",
    "weighted_regression",
    "design_matrix",
    "reciprocal_condition",
    "is_well_conditioned",
]
