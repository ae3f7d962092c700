# SPDX-License-Identifier: MIT
"""
stirpy.config
=============

Parameter records and the flat parameter-file reader for STIR.

Two immutable records are exposed:

- :class:`StirParams` – thresholds consumed by the per-grid-point estimator
  (minimum number of facet-matched stations, admissible range of the
  normalized elevation slope, conditioning tolerance).
- :class:`PreprocessParams` – topographic preprocessing settings. They are
  parsed and carried so that a single parameter file can drive a whole run,
  but the preprocessing itself lives outside this package.

Parameter file format
---------------------

A plain text file whose first line is a header, followed by one
``name,value,comment`` line per parameter::

    name,value,comment
    nMinNear,3,minimum number of stations on the grid point facet
    minSlope,0.0,minimum normalized slope (1/m)
    maxInitialSlope,0.004,maximum normalized slope (1/m)

An unknown ``name`` is a fatal configuration error (:class:`ParameterError`).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Optional, Tuple

import pandas as pd


class ParameterError(ValueError):
    """Invalid or unknown STIR configuration."""


# --------------------------------------------------------------------------- #
# Records
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class StirParams:
    """
    Thresholds for the grid point estimator.

    Attributes
    ----------
    n_min_near : int
        Minimum number of stations on the grid point facet required to run
        the full robust regression (outlier search included).
    min_slope, max_initial_slope : float
        Open interval of admissible normalized slopes (slope divided by the
        mean station value, units 1/elevation).
    tiny : float
        Reciprocal-condition threshold below which a drop-one design is
        treated as singular.
    """

    n_min_near: int = 3
    min_slope: float = 0.0
    max_initial_slope: float = 4.0 / 1000.0
    tiny: float = 1e-15

    def __post_init__(self) -> None:
        if int(self.n_min_near) < 1:
            raise ParameterError(f"nMinNear must be >= 1, got {self.n_min_near}.")
        if not self.min_slope < self.max_initial_slope:
            raise ParameterError(
                f"minSlope ({self.min_slope}) must be < maxInitialSlope "
                f"({self.max_initial_slope})."
            )
        if not self.tiny > 0:
            raise ParameterError(f"tiny must be > 0, got {self.tiny}.")

    @property
    def bounds(self) -> Tuple[float, float]:
        return (float(self.min_slope), float(self.max_initial_slope))

    def replace(self, **changes: Any) -> "StirParams":
        return replace(self, **changes)


@dataclass(frozen=True)
class PreprocessParams:
    """Topographic preprocessing settings (carried, not applied)."""

    dem_filter_name: str = "Daly"
    dem_filter_passes: int = 80
    min_gradient: float = 0.003
    small_facet: float = 500.0
    small_flat: float = 1000.0
    narrow_flat_ratio: float = 3.1
    coast_search_length: float = 150.0
    layer_search_length: int = 10
    inversion_height: float = 250.0


@dataclass(frozen=True)
class ParameterSet:
    stir: StirParams = field(default_factory=StirParams)
    preprocess: PreprocessParams = field(default_factory=PreprocessParams)


# --------------------------------------------------------------------------- #
# File keys
# --------------------------------------------------------------------------- #

# file key -> (record, attribute, coercion)
_KEYS: Dict[str, Tuple[str, str, Callable[[str], Any]]] = {
    # grid point estimator
    "nMinNear": ("stir", "n_min_near", int),
    "minSlope": ("stir", "min_slope", float),
    "maxInitialSlope": ("stir", "max_initial_slope", float),
    # preprocessing
    "demFilterName": ("preprocess", "dem_filter_name", str),
    "demFilterPasses": ("preprocess", "dem_filter_passes", int),
    "minGradient": ("preprocess", "min_gradient", float),
    "smallFacet": ("preprocess", "small_facet", float),
    "smallFlat": ("preprocess", "small_flat", float),
    "narrowFlatRatio": ("preprocess", "narrow_flat_ratio", float),
    "coastSearchLength": ("preprocess", "coast_search_length", float),
    "layerSearchLength": ("preprocess", "layer_search_length", int),
    "inversionHeight": ("preprocess", "inversion_height", float),
}

RECOGNIZED_KEYS = tuple(_KEYS)


def _coerce(name: str, raw: str, caster: Callable[[str], Any]) -> Any:
    try:
        if caster is int:
            # allow "3.0" style integers written by spreadsheet tools
            as_float = float(raw)
            if not as_float.is_integer():
                raise ValueError(raw)
            return int(as_float)
        return caster(raw)
    except ValueError as exc:
        raise ParameterError(
            f"Invalid value for parameter '{name}': {raw!r}"
        ) from exc


def parse_parameters(
    table: pd.DataFrame,
    defaults: Optional[ParameterSet] = None,
) -> ParameterSet:
    """
    Apply a ``(name, value)`` table on top of ``defaults``.

    Parameters
    ----------
    table : DataFrame
        At least two columns; the first holds parameter names, the second
        their values (as strings).
    defaults : ParameterSet, optional
        Starting values. Package defaults are used when omitted.

    Raises
    ------
    ParameterError
        On unknown parameter names or values that cannot be coerced.
    """
    base = defaults if defaults is not None else ParameterSet()
    updates: Dict[str, Dict[str, Any]] = {"stir": {}, "preprocess": {}}

    for name, raw in zip(table.iloc[:, 0], table.iloc[:, 1]):
        key = str(name).strip()
        if key not in _KEYS:
            raise ParameterError(f"Unknown parameter name : {key}")
        record, attr, caster = _KEYS[key]
        value = "" if pd.isna(raw) else str(raw).strip()
        updates[record][attr] = _coerce(key, value, caster)

    stir = replace(base.stir, **updates["stir"])
    preprocess = replace(base.preprocess, **updates["preprocess"])
    return ParameterSet(stir=stir, preprocess=preprocess)


def read_parameters(path: str, defaults: Optional[ParameterSet] = None) -> ParameterSet:
    """
    Read a STIR parameter file.

    The first line is a header and is skipped; each remaining line is
    ``name,value,comment``. Comments may be missing but must not contain
    commas. Blank lines are ignored.
    """
    table = pd.read_csv(
        path,
        header=None,
        skiprows=1,
        names=["name", "value", "comment"],
        usecols=["name", "value"],
        index_col=False,
        dtype=str,
        skip_blank_lines=True,
        skipinitialspace=True,
    )
    table = table.dropna(subset=["name"])
    return parse_parameters(table, defaults=defaults)


def params_as_dict(params: ParameterSet) -> Dict[str, Any]:
    """Flatten a :class:`ParameterSet` back to its file keys."""
    out: Dict[str, Any] = {}
    for key, (record, attr, _) in _KEYS.items():
        out[key] = getattr(getattr(params, record), attr)
    return out


__all__ = [
    "ParameterError",
    "StirParams",
    "PreprocessParams",
    "ParameterSet",
    "RECOGNIZED_KEYS",
    "parse_parameters",
    "read_parameters",
    "params_as_dict",
]
