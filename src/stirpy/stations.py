# SPDX-License-Identifier: MIT
"""
stirpy.stations
===============

Station list file used by STIR runs.

Each station is matched to its nearest grid point carrying valid
topographic attributes (facet, distance to coast, inversion layer mask,
topographic position) and the result is written as a small text table::

    NSITES 2
    #STNID	LAT	LON	ELEV	ASP	DIST_COAST	INVERSION	TOPO_POS	STN_NAME
    S001,  40.01000, -105.27000, 1655.00, 3,   12.500, 1,    0.250, S001
    S002,  ...

Facet codes: 1 = N, 2 = E, 3 = S, 4 = W, 5 = Flat.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Union

import numpy as np
import pandas as pd
from sklearn.neighbors import BallTree
from tqdm.auto import tqdm

FACET_CODES = {1: "N", 2: "E", 3: "S", 4: "W", 5: "Flat"}

STATION_COLUMNS = [
    "station",
    "latitude",
    "longitude",
    "elevation",
    "facet",
    "dist_to_coast",
    "inversion",
    "topo_position",
    "name",
]

HEADER_LINE = "#STNID\tLAT\tLON\tELEV\tASP\tDIST_COAST\tINVERSION\tTOPO_POS\tSTN_NAME"

# grid attribute key -> output column
_ATTRIBUTES = {
    "facet": "facet",
    "dist_to_coast": "dist_to_coast",
    "layer_mask": "inversion",
    "topo_position": "topo_position",
}

PathLike = Union[str, Path]


def _require(df: pd.DataFrame, cols, context: str) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise ValueError(f"[{context}] Missing required columns: {missing}")


# --------------------------------------------------------------------------- #
# Nearest valid grid point
# --------------------------------------------------------------------------- #


def match_stations_to_grid(
    stations: pd.DataFrame,
    grid_lat: np.ndarray,
    grid_lon: np.ndarray,
    attributes: Mapping[str, np.ndarray],
    *,
    id_col: str = "station",
    lat_col: str = "latitude",
    lon_col: str = "longitude",
    elev_col: str = "elevation",
) -> pd.DataFrame:
    """
    Attach the topographic attributes of the nearest valid grid point.

    Distances are plain Euclidean distances in (lat, lon) degrees. Grid
    points whose facet or layer mask is nan are skipped, so a station
    falling on an invalid cell picks up the nearest valid one instead.

    Parameters
    ----------
    stations : DataFrame
        At least [id_col, lat_col, lon_col, elev_col].
    grid_lat, grid_lon : ndarray
        Grid point coordinates (any shape, flattened internally).
    attributes : mapping
        Arrays shaped like the grid with keys ``facet``, ``dist_to_coast``,
        ``layer_mask`` and ``topo_position``.

    Returns
    -------
    DataFrame
        Columns :data:`STATION_COLUMNS`, one row per station.
    """
    _require(stations, [id_col, lat_col, lon_col, elev_col], "match_stations_to_grid")
    missing_attrs = [k for k in _ATTRIBUTES if k not in attributes]
    if missing_attrs:
        raise ValueError(f"[match_stations_to_grid] Missing grid attributes: {missing_attrs}")

    lat1d = np.asarray(grid_lat, dtype="float64").ravel()
    lon1d = np.asarray(grid_lon, dtype="float64").ravel()
    flat = {k: np.asarray(attributes[k], dtype="float64").ravel() for k in _ATTRIBUTES}
    for k, arr in flat.items():
        if arr.size != lat1d.size:
            raise ValueError(
                f"[match_stations_to_grid] attribute '{k}' has {arr.size} cells, "
                f"grid has {lat1d.size}."
            )

    # facet and layer mask are written as integer codes
    valid = np.flatnonzero(np.isfinite(flat["facet"]) & np.isfinite(flat["layer_mask"]))
    if valid.size == 0:
        raise ValueError(
            "[match_stations_to_grid] grid has no cells with valid facet and layer mask."
        )

    out = pd.DataFrame(
        {
            "station": stations[id_col].astype(str).to_numpy(),
            "latitude": stations[lat_col].to_numpy(dtype=float),
            "longitude": stations[lon_col].to_numpy(dtype=float),
            "elevation": stations[elev_col].to_numpy(dtype=float),
        }
    )
    if out.empty:
        return pd.DataFrame(columns=STATION_COLUMNS)

    tree = BallTree(np.column_stack([lat1d[valid], lon1d[valid]]))
    _, ind = tree.query(out[["latitude", "longitude"]].to_numpy(), k=1)
    nearest = valid[ind[:, 0]]

    for key, col in _ATTRIBUTES.items():
        out[col] = flat[key][nearest]
    out["facet"] = out["facet"].astype(int)
    out["inversion"] = out["inversion"].astype(int)
    out["name"] = out["station"]
    return out[STATION_COLUMNS]


# --------------------------------------------------------------------------- #
# File IO
# --------------------------------------------------------------------------- #


def write_station_list(path: PathLike, table: pd.DataFrame) -> None:
    """Write a station table (:data:`STATION_COLUMNS`) to ``path``."""
    _require(table, STATION_COLUMNS, "write_station_list")
    dest = Path(path)
    dest.parent.mkdir(parents=True, exist_ok=True)

    with dest.open("w") as fh:
        fh.write(f"NSITES {len(table)}\n")
        fh.write(HEADER_LINE + "\n")
        for r in table.itertuples(index=False):
            fh.write(
                "%s, %9.5f, %11.5f, %7.2f, %d, %8.3f, %d, %8.3f, %s\n"
                % (
                    r.station,
                    r.latitude,
                    r.longitude,
                    r.elevation,
                    int(r.facet),
                    r.dist_to_coast,
                    int(r.inversion),
                    r.topo_position,
                    r.name,
                )
            )


def read_station_list(path: PathLike) -> pd.DataFrame:
    """
    Read a station list file.

    Raises
    ------
    ValueError
        If the first line is not ``NSITES <count>`` or the number of rows
        does not match it.
    """
    with open(path) as fh:
        first = fh.readline().split()
    if len(first) != 2 or first[0] != "NSITES":
        raise ValueError(f"[read_station_list] {path}: expected 'NSITES <count>' header.")
    n_sites = int(first[1])
    if n_sites == 0:
        return pd.DataFrame(columns=STATION_COLUMNS)

    df = pd.read_csv(
        path,
        skiprows=2,
        header=None,
        names=STATION_COLUMNS,
        skipinitialspace=True,
        dtype={"station": str, "name": str},
    )
    if len(df) != n_sites:
        raise ValueError(
            f"[read_station_list] {path}: header announces {n_sites} sites, "
            f"found {len(df)}."
        )
    df["name"] = df["name"].str.strip()
    return df


def create_station_list(
    stations: pd.DataFrame,
    grid_lat: np.ndarray,
    grid_lon: np.ndarray,
    attributes: Mapping[str, np.ndarray],
    path: PathLike,
    *,
    show_progress: bool = False,
    **cols: str,
) -> pd.DataFrame:
    """Match stations to the grid and write the station list; returns the table."""
    if show_progress:
        tqdm.write(f"Compiling station list ({len(stations)} stations) -> {path}")
    table = match_stations_to_grid(stations, grid_lat, grid_lon, attributes, **cols)
    write_station_list(path, table)
    return table


__all__ = [
    "FACET_CODES",
    "STATION_COLUMNS",
    "HEADER_LINE",
    "match_stations_to_grid",
    "write_station_list",
    "read_station_list",
    "create_station_list",
]
