"""
tdse_simulation
===============
Split-operator solver for the 1-D time-dependent Schrödinger equation
with user-defined potentials and initial states.
"""

from .core import (
    DimensionError,
    EvalError,
    Parameter,
    ParameterSet,
    ParameterStore,
    PotentialError,
    RangeViolation,
    evaluate,
)
from .core.realspace import (
    Grid1D,
    PotentialConfig,
    SimulationParameters,
    SpectralSolver,
    WavefunctionConfig,
    WavefunctionState,
    generate_potential,
    initialize_wavefunction,
)

__version__ = "0.1.0"

__all__ = [
    "DimensionError",
    "EvalError",
    "Parameter",
    "ParameterSet",
    "ParameterStore",
    "PotentialError",
    "RangeViolation",
    "evaluate",
    "Grid1D",
    "PotentialConfig",
    "SimulationParameters",
    "SpectralSolver",
    "WavefunctionConfig",
    "WavefunctionState",
    "generate_potential",
    "initialize_wavefunction",
]
