"""
Initial wavefunctions on the solver grid.

Every initializer returns a :class:`WavefunctionState` at ``time = 0``
normalized so that ``sum(|psi|^2) dx == 1``. A construction that is zero
everywhere is returned as is.

Custom expressions are evaluated per sample and a sample that fails is
set to zero and logged. This is the opposite of the fail-fast policy of
:func:`tdse_simulation.core.realspace.potentials.generate_potential`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Literal, Mapping, Tuple

import numpy as np

from ..errors import EvalError, ValidationResult
from ..expression import compile_expression
from ..parameters import as_bindings
from .grids import Grid1D
from .states import WavefunctionState

logger = logging.getLogger(__name__)

WavefunctionType = Literal["gaussian", "plane-wave", "bound-state", "custom-function"]
WAVEFUNCTION_TYPES: Tuple[str, ...] = ("gaussian", "plane-wave", "bound-state", "custom-function")

VALIDATION_PROBES = (0.0, 1.0, -1.0, 0.5)
EXAMPLE_FUNCTIONS = [
    "exp(-x^2/2)",
    "exp(i*x)",
    "exp(-x^2/2)*exp(i*x)",
    "sqrt(2)*sin(n*pi*x/L)",
    "A*exp(-x^2/2)",
    "A*exp(-(x-x0)^2/(2*sigma^2))",
    "A*cos(k*x+phi)",
]


@dataclass(frozen=True)
class WavefunctionConfig:
    """
    Initial-state selection.

    ``x0``, ``sigma``, ``k0`` belong to ``gaussian`` (``k0`` also to
    ``plane-wave``), ``amplitude`` to ``plane-wave``, ``n`` and ``L`` to
    ``bound-state`` and the two expressions to ``custom-function``.
    """

    type: WavefunctionType = "gaussian"
    x0: float = 0.0
    sigma: float = 1.0
    k0: float = 0.0
    amplitude: float = 1.0
    n: int = 1
    L: float = 4.0
    real_function: str = ""
    imag_function: str = ""

    def __post_init__(self):
        if self.type not in WAVEFUNCTION_TYPES:
            raise ValueError(
                f"Unknown wavefunction type {self.type!r}. Supported: {list(WAVEFUNCTION_TYPES)}"
            )


def _finish(grid: Grid1D, psi: np.ndarray) -> WavefunctionState:
    state = WavefunctionState.from_complex(psi, 0.0)
    return state.normalize(grid.dx)


def gaussian_wavepacket(grid: Grid1D, x0: float, sigma: float, k0: float) -> WavefunctionState:
    """psi(x) = exp(-(x - x0)^2 / (4 sigma^2)) exp(i k0 x)."""
    x = grid.x
    envelope = np.exp(-((x - x0) ** 2) / (4 * sigma * sigma))
    return _finish(grid, envelope * np.exp(1j * k0 * x))


def plane_wave(grid: Grid1D, amplitude: float, k0: float) -> WavefunctionState:
    """psi(x) = A exp(i k0 x); normalizable only because the grid is finite."""
    return _finish(grid, amplitude * np.exp(1j * k0 * grid.x))


def bound_state(grid: Grid1D, n: int, L: float) -> WavefunctionState:
    """n-th eigenstate of an infinite well on (0, L): sqrt(2/L) sin(n pi x / L)."""
    x = grid.x
    inside = (x > 0) & (x < L)
    psi = np.where(inside, np.sqrt(2 / L) * np.sin(n * np.pi * x / L), 0.0)
    return _finish(grid, psi.astype(np.complex128))


def _evaluate_component(
    expression: str,
    x: np.ndarray,
    bindings: Dict[str, float],
    label: str,
) -> Tuple[np.ndarray, np.ndarray]:
    """Values and per-sample success mask for one component."""
    if not expression or not expression.strip():
        return np.zeros_like(x), np.ones(x.shape, dtype=bool)
    try:
        values, ok = compile_expression(expression).evaluate_array(x, bindings, t=0.0)
    except EvalError as e:
        logger.warning("Failed to evaluate %s part %r at every point: %s", label, expression, e)
        return np.zeros_like(x), np.zeros(x.shape, dtype=bool)
    if not ok.all():
        logger.warning(
            "Failed to evaluate %s part %r at %d of %d points (first at x=%g); set to 0",
            label, expression, int((~ok).sum()), x.size, x[~ok][0],
        )
    return values, ok


def custom_wavefunction(
    grid: Grid1D,
    real_expr: str,
    imag_expr: str,
    parameters: Mapping[str, Any] | None = None,
) -> WavefunctionState:
    """
    Evaluate ``real_expr`` and ``imag_expr`` on the grid (``t = 0``).

    A sample where either component fails becomes ``(0, 0)``. Failures are
    logged, never raised.
    """
    x = np.asarray(grid.x, dtype=np.float64)
    bindings = as_bindings(parameters)
    re, ok_re = _evaluate_component(real_expr, x, bindings, "real")
    im, ok_im = _evaluate_component(imag_expr, x, bindings, "imaginary")
    ok = ok_re & ok_im
    psi = np.where(ok, re, 0.0) + 1j * np.where(ok, im, 0.0)
    state = _finish(grid, psi)
    if not ok.any():
        logger.warning("Custom wavefunction is zero everywhere; left unnormalized")
    return state


def initialize_wavefunction(
    grid: Grid1D,
    config: WavefunctionConfig,
    parameters: Mapping[str, Any] | None = None,
) -> WavefunctionState:
    """
    Build the normalized initial state described by ``config``.

    Parameters
    ----------
    grid : Grid1D
        Solver grid (``solver.grid``).
    config : WavefunctionConfig
        Initial-state selection.
    parameters : ParameterSet or mapping, optional
        Bindings for ``custom-function``.
    """
    t = config.type
    if t == "gaussian":
        return gaussian_wavepacket(grid, config.x0, config.sigma, config.k0)
    if t == "plane-wave":
        return plane_wave(grid, config.amplitude, config.k0)
    if t == "bound-state":
        return bound_state(grid, config.n, config.L)
    if t == "custom-function":
        return custom_wavefunction(grid, config.real_function, config.imag_function, parameters)
    raise ValueError(f"Unknown wavefunction type {t!r}")


def validate_wavefunction_functions(
    real_expr: str,
    imag_expr: str,
    parameters: Mapping[str, Any] | None = None,
) -> ValidationResult:
    """Advisory check of a custom wavefunction at a few probe points; never raises."""
    real_expr = real_expr or ""
    imag_expr = imag_expr or ""
    if not real_expr.strip() and not imag_expr.strip():
        return ValidationResult(
            False,
            "At least one component (real or imaginary) must be specified",
            examples=EXAMPLE_FUNCTIONS[:5],
        )
    bindings = as_bindings(parameters)
    for probe in VALIDATION_PROBES:
        for expr in (real_expr, imag_expr):
            if not expr.strip():
                continue
            try:
                compile_expression(expr).evaluate({**bindings, "x": probe, "t": 0.0})
            except EvalError as e:
                return ValidationResult(
                    False,
                    f"Invalid expression at x={probe:g}: {e}",
                    examples=EXAMPLE_FUNCTIONS[:5],
                )
    return ValidationResult(True, examples=list(EXAMPLE_FUNCTIONS))


PRESET_WAVEFUNCTIONS: Dict[str, Dict[str, Any]] = {
    "gaussian": {
        "type": "gaussian",
        "label": "Gaussian Wave Packet",
        "description": "psi(x,0) = A exp(-(x-x0)^2/(4 sigma^2)) exp(i k0 x)",
        "default_params": {"x0": 0.0, "sigma": 1.0, "k0": 0.0},
    },
    "plane-wave": {
        "type": "plane-wave",
        "label": "Plane Wave",
        "description": "psi(x,0) = A exp(i k0 x)",
        "default_params": {"amplitude": 1.0, "k0": 1.0},
    },
    "bound-state": {
        "type": "bound-state",
        "label": "Infinite Square Well",
        "description": "psi_n(x) = sqrt(2/L) sin(n pi x / L)",
        "default_params": {"n": 1, "L": 4.0},
    },
    "custom-function": {
        "type": "custom-function",
        "label": "Custom Function",
        "description": "User-defined complex wavefunction",
        "default_params": {},
    },
}
