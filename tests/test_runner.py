import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))
import json
import logging
import numpy as np
import pandas as pd
import pytest
from tdse_simulation.simulation.config import SimulationConfig
from tdse_simulation.simulation.runner import (
    BOUNDARY_MESSAGE,
    build_simulation,
    main,
    run_all,
    run_simulation,
)


def test_build_simulation():
    solver, state = build_simulation(SimulationConfig(grid_size=200))
    assert solver.grid_size == 256
    assert state.size == 256
    assert solver.has_potential
    assert solver.potential.max() == 5.0
    assert np.isclose(solver.get_total_probability(state), 1.0)


def test_run_simulation_records_history():
    cfg = SimulationConfig(grid_size=256)
    result = run_simulation(cfg, ticks=5)
    assert len(result.history) == 6
    assert result.density.shape == (6, 256)
    assert result.steps_taken == 10
    assert np.allclose(np.diff(result.times), cfg.dt * cfg.steps_per_tick)
    assert np.allclose(result.history["total_probability"], 1.0, atol=1e-9)
    assert not result.boundary_reached and result.message is None
    for col in ("energy", "kinetic_energy", "potential_energy", "position", "width", "momentum"):
        assert col in result.history.columns


def test_run_simulation_duration():
    cfg = SimulationConfig(grid_size=128, dt=0.01, steps_per_tick=5)
    result = run_simulation(cfg, duration=0.2)
    assert result.steps_taken == 20
    assert np.isclose(result.final_state.time, 0.2)


def test_run_simulation_pauses_at_boundary(caplog):
    cfg = SimulationConfig(grid_size=128, wavefunction_type="plane-wave")
    with caplog.at_level(logging.WARNING):
        result = run_simulation(cfg, ticks=10)
    assert result.boundary_reached
    assert result.message == BOUNDARY_MESSAGE
    assert result.steps_taken == cfg.steps_per_tick
    assert "reached boundary" in caplog.text
    result = run_simulation(cfg, ticks=3, stop_at_boundary=False)
    assert result.steps_taken == 3 * cfg.steps_per_tick


def test_run_simulation_rejects_invalid_expression():
    cfg = SimulationConfig(potential_type="custom-function", custom_potential_function="amp*x^2")
    with pytest.raises(ValueError, match="amp"):
        run_simulation(cfg, ticks=1)


def test_run_all_dry_run(capsys):
    cases = run_all({"grid_size": 128, "dt": [0.01, 0.005], "potential_type": ["free", "well"]}, dry_run=True)
    assert len(cases) == 4
    assert "dt_0.01/potential_type_free" in capsys.readouterr().out


def test_run_all_saves_results(tmp_path):
    params = {"description": "sweep", "grid_size": 128, "potential_type": ["free", "barrier"]}
    summary = run_all(params, out_root=str(tmp_path), ticks=2)
    assert isinstance(summary, pd.DataFrame)
    assert list(summary["potential_type"]) == ["free", "barrier"]
    assert np.allclose(summary["total_probability"], 1.0)

    (root,) = list(tmp_path.iterdir())
    assert root.name.endswith("_sweep")
    assert (root / "summary.csv").exists()
    case_dir = root / "potential_type_free"
    with np.load(case_dir / "result.npz") as data:
        assert data["density"].shape == (3, 128)
        assert data["psi_final"].shape == (128,)
    assert pd.read_csv(case_dir / "history.csv").shape[0] == 3
    with open(case_dir / "parameters.json") as f:
        assert json.load(f)["potential_type"] == "free"
    with open(case_dir / "snapshot.json") as f:
        snap = json.load(f)
    assert snap["config"]["potentialType"] == "free"
    assert len(snap["state"]["real"]) == 128


def test_run_all_empty_sweep():
    with pytest.raises(ValueError):
        run_all({"dt": []}, save=False)


def test_main_dry_run(tmp_path, capsys):
    p = tmp_path / "params.yaml"
    p.write_text("grid_size: 128\ndt: [0.01, 0.02]\n")
    assert main([str(p), "--dry-run"]) == 0
    out = capsys.readouterr().out
    assert "dt_0.01" in out and "Finished in" in out
