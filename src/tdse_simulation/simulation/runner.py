"""
tdse_simulation/simulation/runner.py
====================================
Single-run driver, batch/sweep wrapper and command-line entry point.

* ``build_simulation`` wires config -> solver -> potential -> initial state
* ``run_simulation`` advances the state tick by tick (``steps_per_tick``
  solver steps per tick), records diagnostics and pauses when the packet
  reaches the grid boundary
* ``run_all`` expands list-valued fields of a params file into cases and
  runs them serially or in a process pool
"""

from __future__ import annotations

import json
import logging
import math
import os
import time
from dataclasses import dataclass
from datetime import datetime
from multiprocessing import Pool, cpu_count
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from ..core.realspace.potentials import generate_potential
from ..core.realspace.split_operator import SpectralSolver
from ..core.realspace.states import WavefunctionState
from ..core.realspace.wavefunctions import initialize_wavefunction
from .config import SimulationConfig, expand_cases, load_params
from .snapshot import json_safe, make_snapshot

logger = logging.getLogger(__name__)

BOUNDARY_MESSAGE = "Wavepacket reached boundary! Simulation paused to prevent artifacts."
DEFAULT_TICKS = 200

# ----------------------------------------------------------------------
# Single run
# ----------------------------------------------------------------------


def build_simulation(config: SimulationConfig) -> Tuple[SpectralSolver, WavefunctionState]:
    """Construct solver, set the potential and create the initial state."""
    solver = SpectralSolver(config.simulation_parameters())
    V = generate_potential(
        solver.x, config.potential_config(), config.mass, config.potential_parameters
    )
    solver.set_potential(V)
    state = initialize_wavefunction(
        solver.grid, config.wavefunction_config(), config.wavefunction_parameters
    )
    return solver, state


@dataclass
class SimulationResult:
    config: SimulationConfig
    x: np.ndarray
    potential: np.ndarray
    times: np.ndarray
    density: np.ndarray  # (n_samples, N)
    history: pd.DataFrame
    final_state: WavefunctionState
    boundary_reached: bool
    steps_taken: int
    solver: SpectralSolver
    message: Optional[str] = None


def _record(solver: SpectralSolver, state: WavefunctionState) -> Dict[str, float]:
    kinetic, potential = solver.get_energy_components(state)
    return {
        "time": state.time,
        "energy": kinetic + potential,
        "kinetic_energy": kinetic,
        "potential_energy": potential,
        "total_probability": solver.get_total_probability(state),
        "position": solver.get_position_expectation(state),
        "width": math.sqrt(solver.get_position_variance(state)),
        "momentum": solver.get_momentum_expectation(state),
    }


def run_simulation(
    config: SimulationConfig,
    ticks: Optional[int] = None,
    *,
    duration: Optional[float] = None,
    stop_at_boundary: bool = True,
    threshold: float = 0.01,
) -> SimulationResult:
    """
    Run one configuration.

    Parameters
    ----------
    config : SimulationConfig
        What to simulate.
    ticks : int, optional
        Number of ticks; each tick is ``config.steps_per_tick`` solver
        steps followed by one diagnostics sample. Defaults to
        ``DEFAULT_TICKS`` unless ``duration`` is given.
    duration : float, optional
        Simulated time to cover; converted to ticks (rounded up).
    stop_at_boundary : bool
        Pause as soon as boundary leakage exceeds ``threshold``.

    Raises
    ------
    ValueError
        If a custom expression in ``config`` does not validate.
    """
    check = config.validate()
    if not check.valid:
        raise ValueError(check.error)

    per_tick = int(config.steps_per_tick)
    if ticks is None:
        if duration is not None:
            ticks = max(1, math.ceil(round(duration / (config.dt * per_tick), 9)))
        else:
            ticks = DEFAULT_TICKS

    solver, state = build_simulation(config)
    rows = [_record(solver, state)]
    frames = [state.density()]
    boundary = False
    message = None
    steps = 0

    for _ in range(ticks):
        for _ in range(per_tick):
            solver.step(state)
        steps += per_tick
        rows.append(_record(solver, state))
        frames.append(state.density())
        if stop_at_boundary and solver.check_boundaries(state, threshold):
            boundary = True
            message = BOUNDARY_MESSAGE
            logger.warning("%s (t=%.4g)", BOUNDARY_MESSAGE, state.time)
            break

    history = pd.DataFrame(rows)
    return SimulationResult(
        config=config,
        x=np.array(solver.x),
        potential=solver.potential.copy(),
        times=history["time"].to_numpy(),
        density=np.array(frames),
        history=history,
        final_state=state,
        boundary_reached=boundary,
        steps_taken=steps,
        solver=solver,
        message=message,
    )


def save_result(result: SimulationResult, outdir: str, case: Mapping[str, Any] | None = None) -> None:
    os.makedirs(outdir, exist_ok=True)
    np.savez_compressed(
        os.path.join(outdir, "result.npz"),
        x=result.x,
        potential=result.potential,
        times=result.times,
        density=result.density,
        psi_final=result.final_state.psi,
    )
    result.history.to_csv(os.path.join(outdir, "history.csv"), index=False)
    with open(os.path.join(outdir, "parameters.json"), "w") as f:
        json.dump(json_safe(dict(case) if case is not None else result.config.to_dict()), f, indent=2)
    with open(os.path.join(outdir, "snapshot.json"), "w") as f:
        json.dump(make_snapshot(result.config, result.final_state, result.solver), f, indent=2)


# ----------------------------------------------------------------------
# Batch
# ----------------------------------------------------------------------


def _make_root(desc: str, out_root: str = "results") -> str:
    now = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    root = os.path.join(out_root, f"{now}_{desc}")
    os.makedirs(root, exist_ok=True)
    return root


def _case_label(case: Mapping[str, Any], keys: List[str]) -> str:
    return "/".join(f"{k}_{case[k]}" for k in keys) or "."


def _run_one(
    case: Dict[str, Any],
    outdir: Optional[str],
    ticks: Optional[int],
    duration: Optional[float],
) -> Dict[str, Any]:
    config = SimulationConfig.from_dict(case)
    result = run_simulation(config, ticks, duration=duration)
    if outdir is not None:
        save_result(result, outdir, case)
    last = result.history.iloc[-1]
    return {
        "final_time": float(last["time"]),
        "energy_initial": float(result.history["energy"].iloc[0]),
        "energy_final": float(last["energy"]),
        "total_probability": float(last["total_probability"]),
        "position_final": float(last["position"]),
        "boundary_reached": result.boundary_reached,
        "steps": result.steps_taken,
    }


def run_all(
    params: Union[str, Mapping[str, Any]],
    *,
    nproc: int = 1,
    save: bool = True,
    dry_run: bool = False,
    out_root: str = "results",
    ticks: Optional[int] = None,
    duration: Optional[float] = None,
) -> Union[List[Dict[str, Any]], pd.DataFrame]:
    """
    Run every case of a (possibly sweeping) parameter set.

    Parameters
    ----------
    params : str or mapping
        Path to a ``.yaml``/``.json``/``.py`` params file or the dict itself.
    nproc : int
        Worker processes; 1 runs serially.
    save : bool
        Write ``result.npz``, ``history.csv``, ``parameters.json`` and
        ``snapshot.json`` per case plus ``summary.csv`` under a
        timestamped directory in ``out_root``.
    dry_run : bool
        Only expand and return the cases.

    Returns
    -------
    list of dict or DataFrame
        The expanded cases when ``dry_run``, else one summary row per case.
    """
    raw = load_params(params) if isinstance(params, str) else dict(params)
    cases = list(expand_cases(raw))
    if not cases:
        raise ValueError("Parameter sweep is empty")
    sweep_keys = [k for k in raw if isinstance(raw[k], (list, tuple)) and any(
        c[k] != cases[0][k] for c in cases
    )]
    if dry_run:
        for c in cases:
            print(f"case: {_case_label(c, sweep_keys)}")
        return cases

    root = None
    outdirs: List[Optional[str]] = [None] * len(cases)
    if save:
        root = _make_root(str(raw.get("description", "tdse")), out_root)
        if isinstance(params, str):
            ext = os.path.splitext(params)[1]
            with open(params, encoding="utf-8") as src, open(
                os.path.join(root, f"params{ext}"), "w", encoding="utf-8"
            ) as dst:
                dst.write(src.read())
        outdirs = [os.path.join(root, _case_label(c, sweep_keys)) for c in cases]

    inputs = [(c, out, ticks, duration) for c, out in zip(cases, outdirs)]
    if nproc > 1 and len(cases) > 1:
        with Pool(min(nproc, len(cases))) as pool:
            results = pool.starmap(_run_one, inputs)
    else:
        results = [_run_one(*inp) for inp in inputs]

    rows = []
    for c, r in zip(cases, results):
        row = {k: c[k] for k in sweep_keys}
        row.update(r)
        rows.append(row)
    summary = pd.DataFrame(rows)
    if root is not None:
        summary.to_csv(os.path.join(root, "summary.csv"), index=False)
    return summary


# ----------------------------------------------------------------------
# CLI entry point
# ----------------------------------------------------------------------


def main(argv=None) -> int:
    import argparse

    ap = argparse.ArgumentParser(description="1-D TDSE split-operator simulation")
    ap.add_argument("paramfile", help="config file (.yaml, .json or .py)")
    ap.add_argument("--ticks", type=int, default=None, help=f"ticks per case (default {DEFAULT_TICKS})")
    ap.add_argument("--duration", type=float, default=None, help="simulated time per case")
    ap.add_argument("-P", "--parallel", action="store_true", help="run cases in parallel (multiprocessing)")
    ap.add_argument("--out", default="results", help="output root directory")
    ap.add_argument("--no-save", action="store_true", help="do not write result files")
    ap.add_argument("--dry-run", action="store_true", help="only list the expanded cases")
    ap.add_argument("-v", "--verbose", action="store_true", help="log at INFO level")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    t0 = time.perf_counter()
    out = run_all(
        args.paramfile,
        nproc=cpu_count() if args.parallel else 1,
        save=not args.no_save,
        dry_run=args.dry_run,
        out_root=args.out,
        ticks=args.ticks,
        duration=args.duration,
    )
    if isinstance(out, pd.DataFrame):
        print(out.to_string(index=False))
    print(f"Finished in {(time.perf_counter() - t0):.1f}s")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
