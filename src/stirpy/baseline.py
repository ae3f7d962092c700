# SPDX-License-Identifier: MIT
"""
stirpy.baseline
===============

SYMAP baseline estimate for one grid point.

The baseline is a weighted average of the neighboring station values (and of
their elevations) together with a leave-one-out spread used as its
uncertainty. Knowledge-based weights are used when they are available;
otherwise the distance/angular-isolation (SYMAP) weights take over for all
three quantities.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class BaselineEstimate:
    field: float = float("nan")
    elev: float = float("nan")
    uncert: float = float("nan")
    used_symap_weights: bool = False


def weighted_mean(values, weights) -> float:
    """``sum(w * v) / sum(w)``; nan on empty input or a non-positive weight sum."""
    v = np.asarray(values, dtype="float64").ravel()
    w = np.asarray(weights, dtype="float64").ravel()
    if v.size == 0:
        return float("nan")
    total = float(np.sum(w))
    if not total > 0:
        return float("nan")
    # anchored on the first value so identical inputs come back unchanged
    ref = v[0]
    return float(ref + np.sum(w * (v - ref)) / total)


def leave_one_out_means(values, weights) -> np.ndarray:
    """
    Weighted means of every subset obtained by dropping exactly one station.

    Entry ``i`` is the mean with station ``i`` left out; it is nan when the
    remaining weights sum to zero.
    """
    v = np.asarray(values, dtype="float64").ravel()
    w = np.asarray(weights, dtype="float64").ravel()
    n = v.size
    if n < 2:
        return np.full(n, np.nan)

    keep = np.ones(n, dtype=bool)
    out = np.empty(n)
    for i in range(n):
        keep[i] = False
        out[i] = weighted_mean(v[keep], w[keep])
        keep[i] = True
    return out


def leave_one_out_uncertainty(values, weights) -> float:
    """Sample standard deviation of the available leave-one-out means."""
    loo = leave_one_out_means(values, weights)
    loo = loo[np.isfinite(loo)]
    if loo.size < 2:
        return float("nan")
    return float(np.std(loo - loo[0], ddof=1))


def _usable(weights: np.ndarray) -> bool:
    # same total as weighted_mean, so an accepted vector always yields a field
    return bool(weights.size > 0 and np.all(np.isfinite(weights)) and np.sum(weights) > 0)


def symap_estimate(values, elev, weights, symap_weights) -> BaselineEstimate:
    """
    Weighted baseline field, elevation and leave-one-out uncertainty.

    Parameters
    ----------
    values, elev : array-like
        Station values and elevations of the neighborhood.
    weights : array-like
        Knowledge-based weights. Flagged unavailable when empty, when any
        element is nan, or when they do not sum to a positive number.
    symap_weights : array-like
        Distance/angle-only weights used as the fallback.

    Returns
    -------
    BaselineEstimate
        All fields nan when neither weight vector is usable.
    """
    v = np.asarray(values, dtype="float64").ravel()
    e = np.asarray(elev, dtype="float64").ravel()
    w = np.asarray(weights, dtype="float64").ravel()
    ws = np.asarray(symap_weights, dtype="float64").ravel()

    if v.size == 0:
        return BaselineEstimate()

    if _usable(w):
        chosen, fallback = w, False
    elif _usable(ws):
        chosen, fallback = ws, True
    else:
        return BaselineEstimate(used_symap_weights=True)

    return BaselineEstimate(
        field=weighted_mean(v, chosen),
        elev=weighted_mean(e, chosen),
        uncert=leave_one_out_uncertainty(v, chosen),
        used_symap_weights=fallback,
    )


__all__ = [
    "BaselineEstimate",
    "weighted_mean",
    "leave_one_out_means",
    "leave_one_out_uncertainty",
    "symap_estimate",
]
