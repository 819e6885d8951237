from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Mapping, Sequence, Tuple

import numpy as np

from ..errors import EvalError, PotentialError, ValidationResult
from ..expression import compile_expression
from ..parameters import as_bindings


PotentialType = Literal["free", "barrier", "well", "harmonic", "custom-function", "custom-draw"]
POTENTIAL_TYPES: Tuple[str, ...] = (
    "free", "barrier", "well", "harmonic", "custom-function", "custom-draw",
)

VALIDATION_PROBES = (0.0, 1.0, -1.0, 0.5, -0.5)
EXAMPLE_FUNCTIONS = [
    "0.5*x^2",
    "exp(-x^2)",
    "sin(x)",
    "sinh(x)",
    "cosh(x)+1",
    "A*sin(k*x+phi)",
    "A*exp(-x^2/2)",
    "k*x^2 + offset",
]


@dataclass(frozen=True)
class PotentialConfig:
    """
    Potential selection.

    Parameters
    ----------
    type : str
        One of ``POTENTIAL_TYPES``.
    v0 : float
        Barrier height / well depth.
    x0 : float
        Center of barrier, well or oscillator.
    width : float
        Full width of barrier or well.
    omega : float
        Harmonic angular frequency.
    custom_function : str, optional
        Expression in ``x`` and parameters, for ``custom-function``.
    custom_points : sequence of (x, y)
        Control points for ``custom-draw``.
    """

    type: PotentialType = "free"
    v0: float = 5.0
    x0: float = 0.0
    width: float = 2.0
    omega: float = 1.0
    custom_function: str | None = None
    custom_points: Tuple[Tuple[float, float], ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.type not in POTENTIAL_TYPES:
            raise ValueError(f"Unknown potential type {self.type!r}. Supported: {list(POTENTIAL_TYPES)}")
        object.__setattr__(self, "custom_points", _as_points(self.custom_points))


def _as_points(points) -> Tuple[Tuple[float, float], ...]:
    out = []
    for p in points or ():
        if isinstance(p, Mapping):
            out.append((float(p["x"]), float(p["y"])))
        else:
            px, py = p
            out.append((float(px), float(py)))
    return tuple(out)


def free_potential(x: np.ndarray) -> np.ndarray:
    return np.zeros_like(np.asarray(x, dtype=np.float64))


def barrier_potential(x: np.ndarray, v0: float, x0: float, width: float) -> np.ndarray:
    """V(x) = v0 for |x - x0| < width/2, else 0."""
    x = np.asarray(x, dtype=np.float64)
    return np.where(np.abs(x - x0) < width / 2, float(v0), 0.0)


def well_potential(x: np.ndarray, v0: float, x0: float, width: float) -> np.ndarray:
    """V(x) = -v0 for |x - x0| < width/2, else 0."""
    x = np.asarray(x, dtype=np.float64)
    return np.where(np.abs(x - x0) < width / 2, -float(v0), 0.0)


def harmonic_potential(x: np.ndarray, mass: float, omega: float, x0: float = 0.0) -> np.ndarray:
    """V(x) = 1/2 m omega^2 (x - x0)^2."""
    x = np.asarray(x, dtype=np.float64)
    return 0.5 * mass * omega**2 * (x - x0) ** 2


def custom_function_potential(
    x: np.ndarray,
    expression: str,
    parameters: Mapping[str, Any] | None = None,
) -> np.ndarray:
    """
    Evaluate ``expression`` at every grid point.

    Fails fast: a parse error, an unbound identifier or a single non-finite
    sample raises :class:`PotentialError`; nothing is replaced by zero.
    """
    x = np.asarray(x, dtype=np.float64)
    try:
        compiled = compile_expression(expression)
        values, finite = compiled.evaluate_array(x, as_bindings(parameters))
    except EvalError as e:
        raise PotentialError(f"Failed to evaluate potential function {expression!r}: {e}") from e
    if not finite.all():
        bad = x[~finite][0]
        raise PotentialError(
            f"Failed to evaluate potential function at x={bad:g}: "
            f"{expression!r} evaluates to non-finite number"
        )
    return values


def drawn_potential(x: np.ndarray, points: Sequence) -> np.ndarray:
    """
    Piecewise-linear interpolation through control points.

    Points are sorted by x. Outside the span of the points the potential
    holds the nearest endpoint's value. No points gives V = 0.
    """
    x = np.asarray(x, dtype=np.float64)
    pts = _as_points(points)
    if not pts:
        return free_potential(x)
    pts = sorted(pts, key=lambda p: p[0])
    xp = np.array([p[0] for p in pts])
    yp = np.array([p[1] for p in pts])
    # np.interp clamps to yp[0] / yp[-1] outside [xp[0], xp[-1]]
    return np.interp(x, xp, yp)


def generate_potential(
    x: np.ndarray,
    config: PotentialConfig,
    mass: float = 1.0,
    parameters: Mapping[str, Any] | None = None,
) -> np.ndarray:
    """
    Sample the potential described by ``config`` on ``x``.

    Parameters
    ----------
    x : ndarray
        Grid points.
    config : PotentialConfig
        Potential selection.
    mass : float
        Particle mass (harmonic potential only).
    parameters : ParameterSet or mapping, optional
        Bindings for ``custom-function``.

    Returns
    -------
    ndarray
        Real array with the shape of ``x``.

    Raises
    ------
    PotentialError
        ``custom-function`` without expression or failing at any point.
    """
    t = config.type
    if t == "free":
        return free_potential(x)
    if t == "barrier":
        return barrier_potential(x, config.v0, config.x0, config.width)
    if t == "well":
        return well_potential(x, config.v0, config.x0, config.width)
    if t == "harmonic":
        return harmonic_potential(x, mass, config.omega, config.x0)
    if t == "custom-function":
        if not config.custom_function or not config.custom_function.strip():
            raise PotentialError("Custom function not provided")
        return custom_function_potential(x, config.custom_function, parameters)
    if t == "custom-draw":
        return drawn_potential(x, config.custom_points)
    raise ValueError(f"Unknown potential type {t!r}")


def validate_potential_function(
    expression: str,
    parameters: Mapping[str, Any] | None = None,
) -> ValidationResult:
    """
    Probe ``expression`` at a handful of x values before committing it.

    Returns the first failure as an advisory ``ValidationResult``; never raises.
    """
    if not expression or not expression.strip():
        return ValidationResult(False, "Expression cannot be empty", examples=EXAMPLE_FUNCTIONS[:5])
    bindings = as_bindings(parameters)
    try:
        compiled = compile_expression(expression)
        missing = compiled.unbound({**bindings, "x": 0.0})
        if missing:
            return ValidationResult(
                False,
                f"Missing parameters: {', '.join(missing)}",
                examples=EXAMPLE_FUNCTIONS[:5],
                missing_parameters=missing,
            )
        for probe in VALIDATION_PROBES:
            try:
                compiled.evaluate({**bindings, "x": probe})
            except EvalError:
                return ValidationResult(
                    False,
                    f"Expression does not evaluate to a finite number at x={probe:g}",
                    examples=EXAMPLE_FUNCTIONS[:5],
                )
    except EvalError as e:
        return ValidationResult(False, str(e), examples=EXAMPLE_FUNCTIONS[:5])
    return ValidationResult(True, examples=list(EXAMPLE_FUNCTIONS))


PRESET_POTENTIALS: Dict[str, Dict[str, Any]] = {
    "free": {
        "type": "free",
        "label": "Free Particle",
        "description": "No potential (V = 0)",
    },
    "barrier": {
        "type": "barrier",
        "label": "Potential Barrier",
        "description": "Step potential barrier",
        "default_params": {"v0": 5.0, "x0": 0.0, "width": 2.0},
    },
    "well": {
        "type": "well",
        "label": "Finite Well",
        "description": "Finite potential well",
        "default_params": {"v0": 5.0, "x0": 0.0, "width": 4.0},
    },
    "harmonic": {
        "type": "harmonic",
        "label": "Harmonic Oscillator",
        "description": "Quadratic potential V = 1/2 m omega^2 x^2",
        "default_params": {"omega": 1.0, "x0": 0.0},
    },
}
