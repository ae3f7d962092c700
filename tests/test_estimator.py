# SPDX-License-Identifier: MIT
"""
Tests for stirpy.estimator
"""

import numpy as np
import pandas as pd
import pytest

from stirpy.config import StirParams
from stirpy.estimator import (
    MISSING,
    ESTIMATE_COLUMNS,
    MetPointEstimate,
    Neighborhood,
    estimate_point,
    estimate_grid,
    estimates_to_frame,
)


PARAMS = StirParams(n_min_near=3, min_slope=0.0, max_initial_slope=0.004)


def _same_facet(elev, values, weights=None):
    """Neighborhood whose stations all share the grid point facet."""
    elev = np.asarray(elev, dtype=float)
    values = np.asarray(values, dtype=float)
    w = np.ones_like(elev) if weights is None else np.asarray(weights, dtype=float)
    return Neighborhood(
        values=values,
        elev=elev,
        weights=w,
        symap_weights=np.ones_like(elev),
        values_aspect=values,
        elev_aspect=elev,
        weights_aspect=w,
    )


# --------------------------------------------------------------------------- #
# Records
# --------------------------------------------------------------------------- #


def test_missing_estimate_is_all_nan():
    d = MISSING.as_dict()
    assert set(d) == set(ESTIMATE_COLUMNS)
    assert d["valid_regress"] is False
    assert all(np.isnan(v) for k, v in d.items() if k != "valid_regress")
    assert isinstance(MISSING.to_series(), pd.Series)


def test_neighborhood_validates_lengths_and_weights():
    with pytest.raises(ValueError):
        Neighborhood([1.0, 2.0], [1.0], [1.0, 1.0], [1.0, 1.0], [], [], [])
    with pytest.raises(ValueError):
        Neighborhood([1.0], [1.0], [1.0], [1.0], [1.0], [1.0, 2.0], [1.0])
    with pytest.raises(ValueError):
        Neighborhood([1.0], [1.0], [-1.0], [1.0], [], [], [])
    # a lone nan marks knowledge-based weights as unavailable
    nb = Neighborhood([1.0, 2.0], [0.0, 1.0], [np.nan], [1.0, 1.0], [], [], [])
    assert nb.n_near == 2
    assert nb.n_aspect == 0


def test_neighborhood_from_frame_splits_facet():
    df = pd.DataFrame(
        {
            "value": [1.0, 2.0, 3.0, 4.0],
            "elev": [100.0, 200.0, 300.0, 400.0],
            "weight": [0.1, 0.2, 0.3, 0.4],
            "symap_weight": [1.0, 1.0, 1.0, 1.0],
            "facet": [3, 1, 3, 5],
        }
    )
    nb = Neighborhood.from_frame(df, facet=3)
    assert nb.n_near == 4
    assert nb.values_aspect.tolist() == [1.0, 3.0]
    assert nb.elev_aspect.tolist() == [100.0, 300.0]
    assert nb.weights_aspect.tolist() == [0.1, 0.3]

    with pytest.raises(ValueError) as exc:
        Neighborhood.from_frame(df.drop(columns=["symap_weight"]), facet=3)
    assert "symap_weight" in str(exc.value)


# --------------------------------------------------------------------------- #
# estimate_point
# --------------------------------------------------------------------------- #


def test_outlier_scenario_end_to_end():
    elev = [100.0, 500.0, 900.0, 1300.0, 5000.0]
    vals = [110.0, 150.0, 190.0, 230.0, 10.0]
    nb = _same_facet(elev, vals)

    est = estimate_point(nb, grid_elev=2000.0, default_norm_slope=1e-3, params=PARAMS)

    assert est.symap_field == pytest.approx(138.0)
    assert est.symap_elev == pytest.approx(1560.0)
    assert np.isfinite(est.symap_uncert)
    assert est.valid_regress
    assert est.slope == pytest.approx(0.1)
    assert est.norm_slope == pytest.approx(0.1 / 170.0)
    assert est.intercept == pytest.approx(138.0)
    assert est.raw_field == pytest.approx(0.1 * (2000.0 - 1560.0) + 138.0)
    # a single admissible drop-one slope is not enough for a spread
    assert np.isnan(est.norm_slope_uncert)
    assert np.isnan(est.slope_uncert)


def test_direct_acceptance_sets_valid_regress_and_uncertainty():
    elev = [0.0, 1000.0, 2000.0, 3000.0]
    vals = [100.0, 112.0, 118.0, 131.0]
    nb = _same_facet(elev, vals)

    est = estimate_point(nb, grid_elev=1500.0, default_norm_slope=1e-3, params=PARAMS)

    assert est.valid_regress
    assert est.slope == pytest.approx(0.0099)
    assert est.intercept == pytest.approx(est.symap_field)
    assert est.norm_slope_uncert > 0
    assert est.slope_uncert == pytest.approx(est.norm_slope_uncert * np.mean(vals))


def test_outlier_refit_uncertainty_uses_kept_station_mean():
    elev = [0.0, 1000.0, 2000.0, 3000.0]
    vals = [100.0, 112.0, 118.0, 131.0]
    nb = _same_facet(elev, vals)
    tight = StirParams(n_min_near=3, min_slope=0.0, max_initial_slope=8.5e-5)

    est = estimate_point(nb, grid_elev=1500.0, default_norm_slope=1e-5, params=tight)

    kept_mean = (112.0 + 118.0 + 131.0) / 3.0
    pool = [0.0095 / kept_mean, 0.009 / 110.0]
    assert est.valid_regress
    assert est.norm_slope == pytest.approx(est.slope / kept_mean)
    assert est.norm_slope_uncert == pytest.approx(np.std(pool, ddof=1))
    assert est.slope_uncert == pytest.approx(est.norm_slope_uncert * kept_mean)


def test_all_drop_one_out_of_bounds_uses_default():
    elev = [0.0, 1000.0, 2000.0, 3000.0]
    vals = [400.0, 300.0, 200.0, 100.0]
    nb = _same_facet(elev, vals)

    est = estimate_point(nb, grid_elev=0.0, default_norm_slope=2e-4, params=PARAMS)

    assert not est.valid_regress
    assert est.slope == pytest.approx(2e-4 * 250.0)
    assert est.raw_field == pytest.approx(0.05 * (0.0 - 1500.0) + 250.0)


def test_n_min_near_minus_one_takes_default_branch():
    params = StirParams(n_min_near=5, min_slope=0.0, max_initial_slope=0.004)
    elev = [0.0, 1000.0, 2000.0, 3000.0]
    vals = [100.0, 110.0, 120.0, 130.0]  # perfectly admissible slope
    nb = _same_facet(elev, vals)

    est = estimate_point(nb, grid_elev=3000.0, default_norm_slope=1e-3, params=params)

    assert not est.valid_regress
    assert est.slope == pytest.approx(1e-3 * 115.0)
    assert est.norm_slope == pytest.approx(1e-3)
    assert np.isnan(est.norm_slope_uncert)


def test_two_stations_regress_without_flag():
    nb = _same_facet([0.0, 1000.0], [100.0, 110.0])
    est = estimate_point(nb, grid_elev=500.0, default_norm_slope=1e-3, params=PARAMS)
    assert est.slope == pytest.approx(0.01)
    assert not est.valid_regress
    assert est.raw_field == pytest.approx(105.0)


@pytest.mark.parametrize("m", [0, 1])
def test_too_few_facet_stations_use_default(m):
    values = np.array([10.0, 20.0, 30.0])
    elev = np.array([100.0, 200.0, 300.0])
    nb = Neighborhood(
        values=values,
        elev=elev,
        weights=np.ones(3),
        symap_weights=np.ones(3),
        values_aspect=values[:m],
        elev_aspect=elev[:m],
        weights_aspect=np.ones(m),
    )
    # n_min_near=1 must not make a single station a regression
    params = StirParams(n_min_near=1)
    est = estimate_point(nb, grid_elev=400.0, default_norm_slope=0.01, params=params)

    assert not est.valid_regress
    assert est.intercept == pytest.approx(20.0)
    assert est.slope == pytest.approx(0.2)
    assert est.norm_slope == pytest.approx(0.01)
    assert est.raw_field == pytest.approx(0.2 * (400.0 - 200.0) + 20.0)


def test_geometry_only_weights_when_knowledge_weights_missing():
    values = np.array([10.0, 30.0])
    elev = np.array([0.0, 100.0])
    nb = Neighborhood(values, elev, [np.nan], [3.0, 1.0], [], [], [])
    est = estimate_point(nb, grid_elev=25.0, default_norm_slope=0.0)
    assert est.symap_field == pytest.approx(15.0)
    assert est.symap_elev == pytest.approx(25.0)
    assert est.raw_field == pytest.approx(15.0)


def test_degenerate_neighborhood_returns_nan_without_raising():
    nb = Neighborhood([], [], [], [], [], [], [])
    est = estimate_point(nb, grid_elev=100.0, default_norm_slope=1e-3)
    assert isinstance(est, MetPointEstimate)
    assert np.isnan(est.raw_field)
    assert np.isnan(est.symap_field)
    assert not est.valid_regress


# --------------------------------------------------------------------------- #
# estimate_grid / estimates_to_frame
# --------------------------------------------------------------------------- #


def _cells():
    return [
        (_same_facet([0.0, 1000.0, 2000.0, 3000.0], [100.0, 112.0, 118.0, 131.0]), 500.0, 1e-3),
        (_same_facet([100.0, 500.0, 900.0, 1300.0, 5000.0],
                     [110.0, 150.0, 190.0, 230.0, 10.0]), 2000.0, 1e-3),
        (_same_facet([0.0, 1000.0], [100.0, 110.0]), 0.0, 1e-3),
    ]


def test_estimate_grid_matches_point_estimates_in_order():
    cells = _cells()
    expected = [estimate_point(nb, ge, ds, PARAMS) for nb, ge, ds in cells]

    serial = estimate_grid(cells, PARAMS)
    parallel = estimate_grid(cells, PARAMS, n_jobs=2)

    for got in (serial, parallel):
        assert len(got) == len(expected)
        for a, b in zip(got, expected):
            assert a.raw_field == pytest.approx(b.raw_field)
            assert a.valid_regress == b.valid_regress


def test_estimates_to_frame():
    ests = estimate_grid(_cells(), PARAMS)
    df = estimates_to_frame(ests, index=["a", "b", "c"])
    assert list(df.columns) == list(ESTIMATE_COLUMNS)
    assert list(df.index) == ["a", "b", "c"]
    assert df["valid_regress"].tolist() == [True, True, False]

    empty = estimates_to_frame([])
    assert empty.empty
    assert list(empty.columns) == list(ESTIMATE_COLUMNS)
