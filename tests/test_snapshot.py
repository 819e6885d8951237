import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))
import json
import numpy as np
import pytest
from tdse_simulation.core.errors import DimensionError
from tdse_simulation.core.parameters import Parameter, ParameterSet, ParameterStore
from tdse_simulation.simulation.config import SimulationConfig
from tdse_simulation.simulation.runner import build_simulation
from tdse_simulation.simulation.snapshot import (
    load_snapshot,
    make_snapshot,
    parameter_sets,
    restore_snapshot,
    save_snapshot,
)


def _evolved(config, steps=10):
    solver, state = build_simulation(config)
    for _ in range(steps):
        solver.step(state)
    return solver, state


def test_snapshot_layout():
    cfg = SimulationConfig(grid_size=128)
    solver, state = _evolved(cfg)
    snap = make_snapshot(cfg, state, solver)
    assert set(snap) == {"config", "state", "energy", "totalProbability", "parameters"}
    assert np.isclose(snap["totalProbability"], 1.0)
    assert snap["state"]["time"] == state.time
    assert make_snapshot(cfg)["state"] is None


def test_restore_resumes_exactly():
    cfg = SimulationConfig(grid_size=128)
    solver, state = _evolved(cfg)
    data = json.loads(json.dumps(make_snapshot(cfg, state, solver)))
    cfg2, solver2, state2 = restore_snapshot(data)
    assert cfg2 == cfg
    assert np.array_equal(state2.real, state.real)
    assert np.array_equal(state2.imag, state.imag)
    assert state2.time == state.time
    assert np.array_equal(solver2.potential, solver.potential)
    for _ in range(5):
        solver.step(state)
        solver2.step(state2)
    assert np.array_equal(state2.real, state.real)
    assert np.array_equal(state2.imag, state.imag)


def test_stored_parameters_take_precedence():
    cfg = SimulationConfig(
        grid_size=128,
        potential_type="custom-function",
        custom_potential_function="amp*x^2",
        potential_parameters=ParameterSet([Parameter("amp", 0.5, 0, 2)]),
    )
    data = make_snapshot(cfg)
    data["parameters"]["potential"]["amp"]["value"] = 1.5
    cfg2, solver, _ = restore_snapshot(data)
    assert cfg2.potential_parameters["amp"].value == 1.5
    assert np.allclose(solver.potential, 1.5 * solver.x**2)
    potential, wavefunction = parameter_sets(data)
    assert potential["amp"].value == 1.5 and len(wavefunction) == 0


def test_restore_without_state_rebuilds_initial():
    cfg = SimulationConfig(grid_size=128)
    _, _, state = restore_snapshot(make_snapshot(cfg))
    _, fresh = build_simulation(cfg)
    assert np.array_equal(state.real, fresh.real)
    assert state.time == 0.0


def test_restore_size_mismatch():
    cfg = SimulationConfig(grid_size=128)
    solver, state = _evolved(cfg, 1)
    data = make_snapshot(cfg, state, solver)
    data["config"]["gridSize"] = 256
    with pytest.raises(DimensionError):
        restore_snapshot(data)


def test_save_and_load(tmp_path):
    cfg = SimulationConfig(grid_size=128, potential_type="harmonic")
    solver, state = _evolved(cfg)
    path = str(tmp_path / "snap.json")
    save_snapshot(path, cfg, state, solver)
    cfg2, _, state2 = load_snapshot(path)
    assert cfg2.potential_type == "harmonic"
    assert np.array_equal(state2.psi, state.psi)


def test_out_of_range_value_survives_restore():
    amp = ParameterStore.set_range(Parameter("amp", 4, -5, 5), "max", 2)
    assert amp.value == 4
    cfg = SimulationConfig(
        grid_size=128,
        potential_type="custom-function",
        custom_potential_function="amp*x^2",
        potential_parameters=ParameterSet([amp]),
    )
    solver, state = build_simulation(cfg)
    data = json.loads(json.dumps(make_snapshot(cfg, state, solver)))
    cfg2, solver2, _ = restore_snapshot(data)
    assert cfg2.potential_parameters["amp"].value == 4
    assert cfg2 == cfg
    assert np.array_equal(solver2.potential, solver.potential)
    potential, _ = parameter_sets(data)
    assert potential["amp"].value == 4
