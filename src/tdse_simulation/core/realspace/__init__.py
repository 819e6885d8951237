"""
Real-space (grid-based) TDSE machinery.

Grid construction, potential and initial-state generation, the
split-operator spectral solver and the diagnostics evaluated on its states.
"""

from .grids import Grid1D, SimulationParameters, next_power_of_two
from .states import WavefunctionState
from .potentials import (
    PotentialConfig,
    generate_potential,
    validate_potential_function,
)
from .wavefunctions import (
    WavefunctionConfig,
    initialize_wavefunction,
    validate_wavefunction_functions,
)
from .split_operator import SpectralSolver

__all__ = [
    "Grid1D",
    "SimulationParameters",
    "next_power_of_two",
    "WavefunctionState",
    "PotentialConfig",
    "generate_potential",
    "validate_potential_function",
    "WavefunctionConfig",
    "initialize_wavefunction",
    "validate_wavefunction_functions",
    "SpectralSolver",
]
