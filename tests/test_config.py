# SPDX-License-Identifier: MIT
"""
Tests for stirpy.config
"""

import pandas as pd
import pytest

from stirpy.config import (
    ParameterError,
    StirParams,
    ParameterSet,
    RECOGNIZED_KEYS,
    parse_parameters,
    read_parameters,
    params_as_dict,
)


def _write(tmp_path, lines):
    path = tmp_path / "stir_params.txt"
    path.write_text("\n".join(lines) + "\n")
    return path


def test_read_parameters_overrides_defaults(tmp_path):
    path = _write(
        tmp_path,
        [
            "name,value,comment",
            "nMinNear,4,minimum number of facet stations",
            "minSlope,-0.001,lower normalized slope bound",
            "maxInitialSlope, 0.0035 ,upper normalized slope bound",
            "demFilterName,Daly,filter type",
            "inversionHeight,300",
        ],
    )
    params = read_parameters(str(path))

    assert params.stir.n_min_near == 4
    assert params.stir.min_slope == -0.001
    assert params.stir.max_initial_slope == 0.0035
    assert params.stir.tiny == 1e-15
    assert params.preprocess.dem_filter_name == "Daly"
    assert params.preprocess.inversion_height == 300.0
    # untouched keys keep their defaults
    assert params.preprocess.small_flat == ParameterSet().preprocess.small_flat


def test_unknown_parameter_is_fatal(tmp_path):
    path = _write(tmp_path, ["name,value,comment", "nMinNear,3,ok", "bogusKey,1,nope"])
    with pytest.raises(ParameterError) as exc:
        read_parameters(str(path))
    assert "bogusKey" in str(exc.value)


def test_bad_values_raise_parameter_error():
    with pytest.raises(ParameterError):
        parse_parameters(pd.DataFrame({"name": ["nMinNear"], "value": ["3.5"]}))
    with pytest.raises(ParameterError):
        parse_parameters(pd.DataFrame({"name": ["minSlope"], "value": ["steep"]}))


def test_integer_written_as_float_is_accepted():
    params = parse_parameters(pd.DataFrame({"name": ["nMinNear"], "value": ["6.0"]}))
    assert params.stir.n_min_near == 6


def test_stir_params_validation():
    with pytest.raises(ParameterError):
        StirParams(n_min_near=0)
    with pytest.raises(ParameterError):
        StirParams(min_slope=0.01, max_initial_slope=0.001)
    with pytest.raises(ParameterError):
        StirParams(tiny=0.0)
    # inconsistent file values are caught when the record is rebuilt
    with pytest.raises(ParameterError):
        parse_parameters(pd.DataFrame({"name": ["minSlope"], "value": ["1.0"]}))


def test_stir_params_is_immutable_and_replaceable():
    p = StirParams()
    with pytest.raises(Exception):
        p.n_min_near = 10  # type: ignore[misc]
    q = p.replace(n_min_near=10)
    assert q.n_min_near == 10
    assert p.n_min_near == 3
    assert q.bounds == (p.min_slope, p.max_initial_slope)


def test_params_as_dict_round_trip():
    flat = params_as_dict(ParameterSet())
    assert set(flat) == set(RECOGNIZED_KEYS)
    table = pd.DataFrame({"name": list(flat), "value": [str(v) for v in flat.values()]})
    assert parse_parameters(table) == ParameterSet()
