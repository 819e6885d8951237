"""
Simulation drivers: configuration record, snapshots and the batch runner.
"""

from .config import SimulationConfig, expand_cases, load_config, load_params
from .runner import SimulationResult, build_simulation, run_all, run_simulation
from .snapshot import load_snapshot, make_snapshot, restore_snapshot, save_snapshot

__all__ = [
    "SimulationConfig",
    "expand_cases",
    "load_config",
    "load_params",
    "SimulationResult",
    "build_simulation",
    "run_all",
    "run_simulation",
    "load_snapshot",
    "make_snapshot",
    "restore_snapshot",
    "save_snapshot",
]
