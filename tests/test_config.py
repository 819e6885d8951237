import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))
import json
import pytest
from tdse_simulation.core.parameters import Parameter, ParameterSet
from tdse_simulation.simulation.config import (
    SimulationConfig,
    expand_cases,
    load_config,
    load_params,
)


def test_defaults():
    c = SimulationConfig()
    assert c.potential_type == "barrier"
    assert c.wavefunction_type == "gaussian"
    assert (c.grid_size, c.x_min, c.x_max, c.dt) == (512, -10.0, 10.0, 0.005)
    assert c.simulation_parameters().grid_size == 512
    assert c.potential_config().v0 == 5.0
    assert c.wavefunction_config().k0 == 3.0


def test_from_saved_app_record():
    raw = {
        "potentialType": "custom-draw",
        "drawnPoints": [{"x": -1, "y": 0}, {"x": 1, "y": 2}],
        "wavefunctionX0": -3,
        "wavefunctionK0": 2,
        "stepsPerFrame": 3,
        "gridSize": 256,
        "potentialV0": 7,
        "plotXMin": -5,  # display-only, ignored
    }
    c = SimulationConfig.from_dict(raw)
    assert c.potential_type == "custom-draw"
    assert c.custom_points == ((-1.0, 0.0), (1.0, 2.0))
    assert c.wavefunction_x0 == -3
    assert c.wavefunction_k0 == 2
    assert c.steps_per_tick == 3
    assert c.grid_size == 256
    assert c.potential_v0 == 7


def test_dict_round_trip():
    c = SimulationConfig(
        potential_type="custom-function",
        custom_potential_function="amp*x^2",
        potential_parameters=ParameterSet([Parameter("amp", 0.5, 0, 2)]),
        custom_points=((0.0, 1.0),),
    )
    d = c.to_dict()
    assert d["stepsPerFrame"] == 2
    assert d["potentialParameters"]["amp"]["value"] == 0.5
    assert SimulationConfig.from_dict(json.loads(json.dumps(d))) == c
    assert SimulationConfig.from_dict(c.to_dict(camel=False)) == c


def test_parameter_dicts_are_converted():
    c = SimulationConfig(wavefunction_parameters={"amp": {"value": 2, "min": 0, "max": 5}})
    assert isinstance(c.wavefunction_parameters, ParameterSet)
    assert c.wavefunction_parameters["amp"].value == 2


@pytest.mark.parametrize("kwargs", [
    {"potential_type": "square"},
    {"wavefunction_type": "square"},
    {"steps_per_tick": 0},
    {"x_min": 5.0, "x_max": -5.0},
    {"dt": -0.1},
])
def test_invalid_config(kwargs):
    with pytest.raises(ValueError):
        SimulationConfig(**kwargs)


def test_validate():
    assert SimulationConfig().validate().valid
    bad = SimulationConfig(potential_type="custom-function", custom_potential_function="amp*x")
    res = bad.validate()
    assert not res.valid and res.error.startswith("Invalid potential function")
    assert res.missing_parameters == ["amp"]
    bad = SimulationConfig(wavefunction_type="custom-function", wavefunction_real_expr="", wavefunction_imag_expr="")
    assert not bad.validate().valid


def test_replace():
    c = SimulationConfig()
    assert c.replace(dt=0.01).dt == 0.01
    assert c.dt == 0.005


def test_load_yaml(tmp_path):
    p = tmp_path / "run.yaml"
    p.write_text(
        "description: tunnel\n"
        "potential_type: barrier\n"
        "potentialV0: 4.0\n"
        "grid_size: 256\n"
    )
    c = load_config(str(p))
    assert c.description == "tunnel"
    assert c.potential_v0 == 4.0
    assert c.grid_size == 256


def test_load_json_snapshot_config(tmp_path):
    p = tmp_path / "snap.json"
    p.write_text(json.dumps({"config": {"potentialType": "harmonic"}, "state": None}))
    assert load_config(str(p)).potential_type == "harmonic"


def test_load_py(tmp_path):
    p = tmp_path / "params.py"
    p.write_text(
        "import math\n"
        "description = 'sweep'\n"
        "potential_type = 'well'\n"
        "dt = [0.01, 0.005]\n"
        "_private = 1\n"
    )
    raw = load_params(str(p))
    assert raw == {"description": "sweep", "potential_type": "well", "dt": [0.01, 0.005]}


def test_load_unsupported(tmp_path):
    p = tmp_path / "run.txt"
    p.write_text("dt = 1")
    with pytest.raises(ValueError):
        load_params(str(p))


def test_expand_cases():
    params = {
        "dt": [0.01, 0.005],
        "potential_type": ["free", "barrier", "well"],
        "grid_size": 256,
        "drawnPoints": [{"x": 0, "y": 0}, {"x": 1, "y": 1}],
    }
    cases = list(expand_cases(params))
    assert len(cases) == 6
    assert {(c["dt"], c["potential_type"]) for c in cases} == {
        (dt, pt) for dt in (0.01, 0.005) for pt in ("free", "barrier", "well")
    }
    assert all(c["drawnPoints"] == params["drawnPoints"] for c in cases)
    assert list(expand_cases({"dt": 0.01})) == [{"dt": 0.01}]
