"""
Observables computed from a wavefunction state.

All sums are Riemann sums over the periodic grid. None of these functions
modify the state.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from scipy.fft import fft

from ._kernels import edge_probability, squared_norm
from .states import WavefunctionState

BOUNDARY_FRACTION = 0.1


def probability_density(state: WavefunctionState) -> np.ndarray:
    """|psi|^2 per sample."""
    return state.density()


def total_probability(state: WavefunctionState, dx: float) -> float:
    """sum(|psi|^2) dx; 1 for a normalized state."""
    return float(squared_norm(state.real, state.imag) * dx)


def energy_components(
    state: WavefunctionState,
    k: np.ndarray,
    dx: float,
    potential: np.ndarray | None,
    hbar: float = 1.0,
    mass: float = 1.0,
) -> Tuple[float, float]:
    """
    Kinetic and potential energy expectation values.

    The kinetic term is evaluated in momentum space. With the unnormalized
    forward DFT ``psi_k``, Parseval gives ``sum|psi|^2 dx = (dx/N) sum|psi_k|^2``,
    so ``<T> = (dx/N) sum |psi_k|^2 hbar^2 k^2 / (2m)``.
    """
    n = state.size
    psi_k = fft(state.psi)
    pk = psi_k.real**2 + psi_k.imag**2
    kinetic = float(np.sum(pk * (hbar**2) * k**2 / (2 * mass)) * dx / n)
    if potential is None:
        return kinetic, 0.0
    pot = float(np.sum(state.density() * potential) * dx)
    return kinetic, pot


def energy(
    state: WavefunctionState,
    k: np.ndarray,
    dx: float,
    potential: np.ndarray | None,
    hbar: float = 1.0,
    mass: float = 1.0,
) -> float:
    """<H> = <T> + <V>."""
    t, v = energy_components(state, k, dx, potential, hbar, mass)
    return t + v


def boundary_probability(state: WavefunctionState, dx: float, fraction: float = BOUNDARY_FRACTION) -> float:
    """Probability in the outer ``fraction`` of samples on each side."""
    width = int(np.floor(state.size * fraction))
    return float(edge_probability(state.real, state.imag, width) * dx)


def check_boundaries(state: WavefunctionState, dx: float, threshold: float = 0.01) -> bool:
    """
    True when more than ``threshold`` of the probability sits in the outer
    10% of the grid on either side.

    On a periodic grid such a packet is about to wrap around, so callers
    should stop evolving. It is an advisory signal, not an error.
    """
    return boundary_probability(state, dx) > threshold


def position_expectation(state: WavefunctionState, x: np.ndarray) -> float:
    rho = state.density()
    norm = rho.sum()
    if norm == 0:
        return 0.0
    return float(np.sum(rho * x) / norm)


def position_variance(state: WavefunctionState, x: np.ndarray) -> float:
    """<x^2> - <x>^2 of the normalized density."""
    rho = state.density()
    norm = rho.sum()
    if norm == 0:
        return 0.0
    mean = np.sum(rho * x) / norm
    return float(np.sum(rho * (x - mean) ** 2) / norm)


def momentum_expectation(state: WavefunctionState, k: np.ndarray, hbar: float = 1.0) -> float:
    psi_k = fft(state.psi)
    pk = psi_k.real**2 + psi_k.imag**2
    norm = pk.sum()
    if norm == 0:
        return 0.0
    return float(hbar * np.sum(pk * k) / norm)


def region_probability(
    state: WavefunctionState,
    x: np.ndarray,
    dx: float,
    lower: float = -np.inf,
    upper: float = np.inf,
) -> float:
    """Probability in ``lower <= x < upper`` (half-open, so adjacent regions never share a sample)."""
    mask = (x >= lower) & (x < upper)
    return float(np.sum(state.density()[mask]) * dx)


def transmission_reflection(
    state: WavefunctionState,
    x: np.ndarray,
    dx: float,
    x_left: float,
    x_right: float,
) -> Tuple[float, float, float]:
    """
    Split the probability at a scattering region ``[x_left, x_right)``.

    Returns
    -------
    reflected, inside, transmitted : float
        Probabilities for ``x < x_left``, ``x_left <= x < x_right`` and
        ``x >= x_right``. They sum to the total probability.
    """
    reflected = region_probability(state, x, dx, -np.inf, x_left)
    inside = region_probability(state, x, dx, x_left, x_right)
    transmitted = region_probability(state, x, dx, x_right, np.inf)
    return reflected, inside, transmitted
