"""
Split-operator Fourier propagation of the 1-D TDSE.

One step applies the symmetric (second-order) Trotter splitting

    psi <- e^{-i V dt/2hbar} F^{-1} [ e^{-i hbar k^2 dt/2m} F[ e^{-i V dt/2hbar} psi ] ]

followed by an explicit renormalization, so ``sum|psi|^2 dx == 1`` after
every step regardless of FFT round-off. Local error is O(dt^3), global
O(dt^2).
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from scipy.fft import fft, ifft

from ..errors import DimensionError
from . import diagnostics
from ._kernels import apply_phase, normalize_inplace
from .grids import Grid1D, SimulationParameters, next_power_of_two
from .states import WavefunctionState

logger = logging.getLogger(__name__)


def _cis(phase: np.ndarray) -> np.ndarray:
    return np.cos(phase) + 1j * np.sin(phase)


class SpectralSolver:
    """
    Owns the grid, the evolution operators and the FFT scratch buffer.

    Lifecycle: construct (grid and kinetic operator fixed) ->
    :meth:`set_potential` -> :meth:`step` repeatedly. The same solver can
    be reused with new potentials and new states. ``dt`` is fixed per
    instance; build a new solver to change it.

    Parameters
    ----------
    params : SimulationParameters
        Grid extent and constants. ``grid_size`` is rounded up to the next
        power of two.
    """

    def __init__(self, params: SimulationParameters):
        n = next_power_of_two(params.grid_size)
        if n != params.grid_size:
            logger.debug("grid_size %d rounded up to %d", params.grid_size, n)
        self.params = SimulationParameters(
            grid_size=n,
            x_min=params.x_min,
            x_max=params.x_max,
            dt=params.dt,
            hbar=params.hbar,
            mass=params.mass,
        )
        self.grid = Grid1D(n, params.x_min, params.x_max)

        hbar, mass, dt = self.params.hbar, self.params.mass, self.params.dt
        k = self.grid.k
        self.kinetic_operator = _cis(-hbar * k * k * dt / (2.0 * mass))
        self.kinetic_operator.flags.writeable = False

        self.potential = np.zeros(n)
        self.potential_half_step_operator = np.ones(n, dtype=np.complex128)
        self._expV_real = np.ones(n)
        self._expV_imag = np.zeros(n)
        self.has_potential = False

        self._buffer = np.empty(n, dtype=np.complex128)

        logger.info("SpectralSolver initialized: N=%d, dx=%.4g, dt=%.4g", n, self.dx, dt)

    # ------------------------------------------------------------------
    # grid accessors
    # ------------------------------------------------------------------
    @property
    def grid_size(self) -> int:
        return self.grid.n

    @property
    def x(self) -> np.ndarray:
        return self.grid.x

    @property
    def k(self) -> np.ndarray:
        return self.grid.k

    @property
    def dx(self) -> float:
        return self.grid.dx

    @property
    def dk(self) -> float:
        return self.grid.dk

    @property
    def dt(self) -> float:
        return self.params.dt

    @property
    def hbar(self) -> float:
        return self.params.hbar

    @property
    def mass(self) -> float:
        return self.params.mass

    # ------------------------------------------------------------------
    # operators
    # ------------------------------------------------------------------
    def set_potential(self, V: np.ndarray) -> None:
        """
        Replace the potential and recompute ``exp(-i V dt / 2hbar)``.

        Raises
        ------
        DimensionError
            If ``len(V) != grid_size``.
        """
        V = np.asarray(V, dtype=np.float64)
        if V.ndim != 1 or V.shape[0] != self.grid_size:
            raise DimensionError(
                f"Potential array size {V.size} doesn't match grid size {self.grid_size}"
            )
        self.potential = V.copy()
        op = _cis(-self.potential * self.dt / (2.0 * self.hbar))
        self.potential_half_step_operator = op
        self._expV_real = np.ascontiguousarray(op.real)
        self._expV_imag = np.ascontiguousarray(op.imag)
        self.has_potential = True
        logger.info("Potential set: min=%.4g, max=%.4g", V.min(), V.max())

    # ------------------------------------------------------------------
    # propagation
    # ------------------------------------------------------------------
    def step(self, state: WavefunctionState) -> WavefunctionState:
        """
        Advance ``state`` by one ``dt`` in place and return it.

        Raises
        ------
        DimensionError
            If ``state.size != grid_size``; the state is left untouched.
        """
        # the numba kernels do not bounds-check
        if state.size != self.grid_size:
            raise DimensionError(
                f"State size {state.size} doesn't match grid size {self.grid_size}"
            )
        buf = self._buffer

        apply_phase(state.real, state.imag, self._expV_real, self._expV_imag)

        buf.real[:] = state.real
        buf.imag[:] = state.imag
        psi_k = fft(buf, overwrite_x=True)
        np.multiply(psi_k, self.kinetic_operator, out=psi_k)
        # scipy's ifft carries the 1/N factor
        psi = ifft(psi_k, overwrite_x=True)
        state.real[:] = psi.real
        state.imag[:] = psi.imag

        apply_phase(state.real, state.imag, self._expV_real, self._expV_imag)

        state.time += self.dt
        normalize_inplace(state.real, state.imag, self.dx)
        return state

    def evolve(
        self,
        state: WavefunctionState,
        steps: int,
        *,
        sample_stride: int = 1,
        return_traj: bool = False,
        stop_at_boundary: bool = False,
        threshold: float = 0.01,
    ) -> Optional[np.ndarray]:
        """
        Apply ``steps`` calls of :meth:`step` to ``state``.

        Parameters
        ----------
        state : WavefunctionState
            Mutated in place.
        steps : int
            Number of steps.
        sample_stride : int
            Sampling stride for the trajectory.
        return_traj : bool
            Return sampled complex wavefunctions, initial state included,
            with shape ``(steps // sample_stride + 1, N)``. Rows after an
            early stop are not filled.
        stop_at_boundary : bool
            Stop as soon as :meth:`check_boundaries` reports leakage.
        threshold : float
            Leakage threshold for ``stop_at_boundary``.

        Returns
        -------
        ndarray or None
            Trajectory if ``return_traj`` else None.
        """
        if sample_stride < 1:
            raise ValueError("sample_stride must be >= 1")
        traj = None
        if return_traj:
            traj = np.zeros((steps // sample_stride + 1, self.grid_size), dtype=np.complex128)
            traj[0] = state.psi
        s_idx = 1
        for j in range(steps):
            self.step(state)
            if return_traj and (j + 1) % sample_stride == 0:
                traj[s_idx] = state.psi
                s_idx += 1
            if stop_at_boundary and self.check_boundaries(state, threshold):
                logger.warning("Boundary reached at t=%.4g after %d steps", state.time, j + 1)
                if return_traj:
                    traj = traj[:s_idx]
                break
        return traj

    # ------------------------------------------------------------------
    # diagnostics
    # ------------------------------------------------------------------
    def get_probability_density(self, state: WavefunctionState) -> np.ndarray:
        return diagnostics.probability_density(state)

    def get_total_probability(self, state: WavefunctionState) -> float:
        return diagnostics.total_probability(state, self.dx)

    def get_energy(self, state: WavefunctionState) -> float:
        return diagnostics.energy(state, self.k, self.dx, self.potential, self.hbar, self.mass)

    def get_energy_components(self, state: WavefunctionState):
        return diagnostics.energy_components(
            state, self.k, self.dx, self.potential, self.hbar, self.mass
        )

    def check_boundaries(self, state: WavefunctionState, threshold: float = 0.01) -> bool:
        return diagnostics.check_boundaries(state, self.dx, threshold)

    def get_position_expectation(self, state: WavefunctionState) -> float:
        return diagnostics.position_expectation(state, self.x)

    def get_position_variance(self, state: WavefunctionState) -> float:
        return diagnostics.position_variance(state, self.x)

    def get_momentum_expectation(self, state: WavefunctionState) -> float:
        return diagnostics.momentum_expectation(state, self.k, self.hbar)

    def get_region_probability(self, state: WavefunctionState, lower: float, upper: float) -> float:
        return diagnostics.region_probability(state, self.x, self.dx, lower, upper)

    def get_transmission_reflection(self, state: WavefunctionState, x_left: float, x_right: float):
        """``(reflected, inside, transmitted)`` around ``[x_left, x_right)``."""
        return diagnostics.transmission_reflection(state, self.x, self.dx, x_left, x_right)

    def __repr__(self) -> str:
        p = self.params
        return (
            f"SpectralSolver(N={p.grid_size}, x=[{p.x_min:g}, {p.x_max:g}), "
            f"dt={p.dt:g}, hbar={p.hbar:g}, mass={p.mass:g})"
        )
