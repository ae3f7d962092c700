# SPDX-License-Identifier: MIT
"""
stirpy.viz
==========

Diagnostic plots for STIR runs.

- :func:`plot_station_regression` – facet stations (elevation vs value)
  with the elevation line actually used at a grid point.
- :func:`plot_field` – a gridded field with masked / missing cells hidden.
- :func:`plot_stations` – station locations colored by a column of a
  station table (e.g. facet or elevation).

All functions return an Axes, create a Figure only when ``ax`` is None and
annotate "No data" on empty inputs instead of failing.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from .assemble import MISSING_VALUE
from .estimator import MetPointEstimate, Neighborhood


# --------------------------------------------------------------------- #
# Internal helpers
# --------------------------------------------------------------------- #


def _ensure_ax(
    ax: Optional[Axes] = None,
    figsize: Tuple[float, float] = (6.0, 5.0),
) -> Tuple[Figure, Axes, bool]:
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
        return fig, ax, True
    return ax.figure, ax, False


def _no_data(ax: Axes, message: str = "No data") -> Axes:
    ax.cla()
    ax.text(0.5, 0.5, message, ha="center", va="center", fontsize=12)
    ax.set_xticks([])
    ax.set_yticks([])
    for spine in ax.spines.values():
        spine.set_visible(False)
    return ax


# --------------------------------------------------------------------- #
# Public API
# --------------------------------------------------------------------- #


def plot_station_regression(
    neighborhood: Neighborhood,
    estimate: MetPointEstimate,
    *,
    grid_elev: Optional[float] = None,
    ax: Optional[Axes] = None,
    figsize: Tuple[float, float] = (5.0, 4.0),
) -> Axes:
    """
    Facet stations with the re-anchored elevation line of a grid point.

    The line passes through ``(symap_elev, intercept)`` with the estimate's
    slope. When ``grid_elev`` is given the extrapolated ``raw_field`` is
    marked as well.

    Parameters
    ----------
    neighborhood : Neighborhood
        Neighbors of the grid point.
    estimate : MetPointEstimate
        Output of :func:`stirpy.estimate_point` for that neighborhood.
    grid_elev : float or None
        Grid point elevation.
    ax : Axes or None
        Axes to draw on. If None, create a new Figure/Axes.

    Returns
    -------
    Axes
    """
    fig, ax, _ = _ensure_ax(ax, figsize)

    if neighborhood.n_near == 0:
        return _no_data(ax, "No stations")

    ax.scatter(neighborhood.elev, neighborhood.values, s=14, alpha=0.4, label="All neighbors")
    if neighborhood.n_aspect:
        ax.scatter(
            neighborhood.elev_aspect,
            neighborhood.values_aspect,
            s=28,
            label="Same facet",
        )

    if np.isfinite(estimate.slope) and np.isfinite(estimate.symap_elev):
        elev = np.concatenate([neighborhood.elev, [estimate.symap_elev]])
        if grid_elev is not None:
            elev = np.append(elev, grid_elev)
        lo, hi = float(np.nanmin(elev)), float(np.nanmax(elev))
        xs = np.array([lo, hi])
        ys = estimate.slope * (xs - estimate.symap_elev) + estimate.intercept
        style = "-" if estimate.valid_regress else "--"
        ax.plot(xs, ys, linestyle=style, label="STIR slope")
        ax.plot([estimate.symap_elev], [estimate.symap_field], marker="s", linestyle="", label="SYMAP")

    if grid_elev is not None and np.isfinite(estimate.raw_field):
        ax.plot([grid_elev], [estimate.raw_field], marker="*", markersize=12, linestyle="", label="Grid point")

    ax.set_xlabel("Elevation")
    ax.set_ylabel("Value")
    ax.set_title(f"Normalized slope {estimate.norm_slope:.2e}")
    ax.legend()
    return ax


def plot_field(
    grid: np.ndarray,
    *,
    mask: Optional[np.ndarray] = None,
    title: Optional[str] = None,
    cmap: str = "viridis",
    ax: Optional[Axes] = None,
    figsize: Tuple[float, float] = (6.0, 5.0),
) -> Axes:
    """
    Image of a 2-D field. Cells with ``mask < 0``, nan or
    :data:`stirpy.assemble.MISSING_VALUE` are left blank.
    """
    fig, ax, _ = _ensure_ax(ax, figsize)

    arr = np.asarray(grid, dtype="float64")
    if arr.size == 0:
        return _no_data(ax, "No grid data")
    if arr.ndim != 2:
        raise ValueError(f"[plot_field] expected a 2-D grid, got shape {arr.shape}.")

    hide = ~np.isfinite(arr) | (arr == MISSING_VALUE)
    if mask is not None:
        hide |= np.asarray(mask) < 0
    if hide.all():
        return _no_data(ax, "No valid grid cells")

    im = ax.imshow(np.ma.masked_array(arr, mask=hide), origin="upper", cmap=cmap)
    cbar = fig.colorbar(im, ax=ax)
    if title:
        ax.set_title(title)
        cbar.set_label(title)
    return ax


def plot_stations(
    df: pd.DataFrame,
    *,
    lat_col: str = "latitude",
    lon_col: str = "longitude",
    value_col: str = "facet",
    ax: Optional[Axes] = None,
    figsize: Tuple[float, float] = (6.0, 5.0),
) -> Axes:
    """Lon/lat scatter of a station table colored by ``value_col``."""
    fig, ax, _ = _ensure_ax(ax, figsize)

    missing = [c for c in (lat_col, lon_col, value_col) if c not in df.columns]
    if missing:
        raise ValueError(f"[plot_stations] Missing required columns: {missing}")

    dat = df[[lat_col, lon_col, value_col]].dropna()
    if dat.empty:
        return _no_data(ax, "No station data")

    sc = ax.scatter(dat[lon_col], dat[lat_col], c=dat[value_col], s=30)
    ax.set_xlabel("Longitude")
    ax.set_ylabel("Latitude")
    ax.set_title(f"Stations colored by {value_col}")
    cbar = fig.colorbar(sc, ax=ax)
    cbar.set_label(value_col)
    return ax


__all__ = [
    "plot_station_regression",
    "plot_field",
    "plot_stations",
]
