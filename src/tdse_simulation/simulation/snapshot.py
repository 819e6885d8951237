"""
JSON snapshot of a running simulation.

Layout (compatible with the browser application's save files)::

    {
      "config": {...camelCase SimulationConfig...},
      "state": {"real": [...], "imag": [...], "time": t} | null,
      "energy": E,
      "totalProbability": P,
      "parameters": {"potential": {...}, "wavefunction": {...}}
    }

``restore_snapshot`` rebuilds solver and state from this record. The
stored state arrays are used verbatim, so evolution resumes bit-exactly.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np

from ..core.errors import DimensionError
from ..core.parameters import ParameterSet
from ..core.realspace.split_operator import SpectralSolver
from ..core.realspace.states import WavefunctionState
from .config import SimulationConfig


def json_safe(obj):
    if isinstance(obj, complex):
        return {"__complex__": True, "r": obj.real, "i": obj.imag}
    if isinstance(obj, np.ndarray):
        return [json_safe(v) for v in obj.tolist()]
    if isinstance(obj, (list, tuple)):
        return [json_safe(v) for v in obj]
    if isinstance(obj, dict):
        return {k: json_safe(v) for k, v in obj.items()}
    if isinstance(obj, np.generic):
        return obj.item()
    return obj


def make_snapshot(
    config: SimulationConfig,
    state: Optional[WavefunctionState] = None,
    solver: Optional[SpectralSolver] = None,
) -> Dict[str, Any]:
    """JSON-serializable record of ``config`` and (optionally) the current state."""
    energy = None
    total = None
    if state is not None and solver is not None:
        energy = solver.get_energy(state)
        total = solver.get_total_probability(state)
    return json_safe({
        "config": config.to_dict(),
        "state": state.to_dict() if state is not None else None,
        "energy": energy,
        "totalProbability": total,
        "parameters": {
            "potential": config.potential_parameters.to_dict(),
            "wavefunction": config.wavefunction_parameters.to_dict(),
        },
    })


def restore_snapshot(
    data: Mapping[str, Any],
) -> Tuple[SimulationConfig, SpectralSolver, WavefunctionState]:
    """
    Rebuild ``(config, solver, state)`` from a snapshot.

    Parameter sets under ``"parameters"`` take precedence over those in the
    config record. Stored parameter values are restored without clamping.
    Without a stored state the initial state is rebuilt from the
    configuration.
    """
    from .runner import build_simulation

    raw = dict(data.get("config") or {})
    params = data.get("parameters") or {}
    for kind, key in (("potential", "potentialParameters"), ("wavefunction", "wavefunctionParameters")):
        stored = params.get(kind)
        if stored is None:
            stored = raw.get(key)
        if stored is not None and not isinstance(stored, ParameterSet):
            raw[key] = ParameterSet.from_dict(stored, clamp=False)
    config = SimulationConfig.from_dict(raw)

    solver, state = build_simulation(config)
    stored = data.get("state")
    if stored:
        state = WavefunctionState.from_dict(stored)
        if state.size != solver.grid_size:
            raise DimensionError(
                f"Stored state has {state.size} samples, grid has {solver.grid_size}"
            )
    return config, solver, state


def save_snapshot(path: str, config: SimulationConfig, state=None, solver=None) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(make_snapshot(config, state, solver), f, indent=2)


def load_snapshot(path: str) -> Tuple[SimulationConfig, SpectralSolver, WavefunctionState]:
    with open(path, encoding="utf-8") as f:
        return restore_snapshot(json.load(f))


def parameter_sets(data: Mapping[str, Any]) -> Tuple[ParameterSet, ParameterSet]:
    """``(potential, wavefunction)`` parameter sets stored in a snapshot."""
    params = data.get("parameters") or {}
    return (
        ParameterSet.from_dict(params.get("potential"), clamp=False),
        ParameterSet.from_dict(params.get("wavefunction"), clamp=False),
    )
