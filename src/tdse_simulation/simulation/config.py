"""
Simulation configuration record and loaders.

``SimulationConfig`` is the flat record that selects a potential, an
initial state and the grid. Its dictionary form uses camelCase keys so
that JSON save files of the browser application load unchanged;
``from_dict`` also accepts snake_case.

Config files may be YAML, JSON or a Python module whose public
module-level names are the keys. In a params file any list value of a
scalar field is a sweep axis (see :func:`expand_cases`).
"""

from __future__ import annotations

import importlib.util
import itertools
import json
import logging
import os
import re
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Iterator, Mapping, Tuple

import yaml

from ..core.errors import ValidationResult
from ..core.parameters import ParameterSet
from ..core.realspace.grids import SimulationParameters
from ..core.realspace.potentials import POTENTIAL_TYPES, PotentialConfig, validate_potential_function
from ..core.realspace.wavefunctions import (
    WAVEFUNCTION_TYPES,
    WavefunctionConfig,
    validate_wavefunction_functions,
)

logger = logging.getLogger(__name__)

# save-file keys of the browser app that do not follow the camelCase rule
_ALIASES = {
    "stepsPerFrame": "steps_per_tick",
    "drawnPoints": "custom_points",
}
# structured fields; never treated as sweep axes
_STRUCTURED = ("custom_points", "potential_parameters", "wavefunction_parameters")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p[:1].upper() + p[1:] for p in rest)


def _snake(name: str) -> str:
    if name in _ALIASES:
        return _ALIASES[name]
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", name).lower()


@dataclass(frozen=True)
class SimulationConfig:
    """Complete description of one run. Defaults match the interactive app."""

    description: str = "tdse"
    # potential
    potential_type: str = "barrier"
    potential_v0: float = 5.0
    potential_x0: float = 0.0
    potential_width: float = 2.0
    potential_omega: float = 1.0
    custom_potential_function: str = "0.5*x^2"
    custom_points: Tuple[Tuple[float, float], ...] = ()
    potential_parameters: ParameterSet = field(default_factory=ParameterSet)
    # initial state
    wavefunction_type: str = "gaussian"
    wavefunction_x0: float = -4.0
    wavefunction_sigma: float = 1.0
    wavefunction_k0: float = 3.0
    wavefunction_amplitude: float = 1.0
    wavefunction_quantum_number: int = 1
    wavefunction_well_width: float = 4.0
    wavefunction_real_expr: str = "exp(-x^2/2)"
    wavefunction_imag_expr: str = ""
    wavefunction_parameters: ParameterSet = field(default_factory=ParameterSet)
    # grid and time stepping
    grid_size: int = 512
    x_min: float = -10.0
    x_max: float = 10.0
    dt: float = 0.005
    steps_per_tick: int = 2
    hbar: float = 1.0
    mass: float = 1.0

    def __post_init__(self):
        if self.potential_type not in POTENTIAL_TYPES:
            raise ValueError(f"Unknown potential type {self.potential_type!r}")
        if self.wavefunction_type not in WAVEFUNCTION_TYPES:
            raise ValueError(f"Unknown wavefunction type {self.wavefunction_type!r}")
        if int(self.steps_per_tick) < 1:
            raise ValueError("steps_per_tick must be >= 1")
        for name in ("potential_parameters", "wavefunction_parameters"):
            value = getattr(self, name)
            if not isinstance(value, ParameterSet):
                object.__setattr__(self, name, ParameterSet.from_dict(value))
        # grid checks live in SimulationParameters
        self.simulation_parameters()

    # ------------------------------------------------------------------
    def simulation_parameters(self) -> SimulationParameters:
        return SimulationParameters(
            grid_size=int(self.grid_size),
            x_min=float(self.x_min),
            x_max=float(self.x_max),
            dt=float(self.dt),
            hbar=float(self.hbar),
            mass=float(self.mass),
        )

    def potential_config(self) -> PotentialConfig:
        return PotentialConfig(
            type=self.potential_type,
            v0=self.potential_v0,
            x0=self.potential_x0,
            width=self.potential_width,
            omega=self.potential_omega,
            custom_function=self.custom_potential_function,
            custom_points=self.custom_points,
        )

    def wavefunction_config(self) -> WavefunctionConfig:
        return WavefunctionConfig(
            type=self.wavefunction_type,
            x0=self.wavefunction_x0,
            sigma=self.wavefunction_sigma,
            k0=self.wavefunction_k0,
            amplitude=self.wavefunction_amplitude,
            n=int(self.wavefunction_quantum_number),
            L=self.wavefunction_well_width,
            real_function=self.wavefunction_real_expr,
            imag_function=self.wavefunction_imag_expr,
        )

    def validate(self) -> ValidationResult:
        """Check custom expressions before a run is started."""
        if self.potential_type == "custom-function":
            res = validate_potential_function(self.custom_potential_function, self.potential_parameters)
            if not res.valid:
                res.error = f"Invalid potential function: {res.error}"
                return res
        if self.wavefunction_type == "custom-function":
            res = validate_wavefunction_functions(
                self.wavefunction_real_expr, self.wavefunction_imag_expr, self.wavefunction_parameters
            )
            if not res.valid:
                res.error = f"Invalid wavefunction function: {res.error}"
                return res
        return ValidationResult(True)

    def replace(self, **changes) -> "SimulationConfig":
        return replace(self, **changes)

    # ------------------------------------------------------------------
    def to_dict(self, camel: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, ParameterSet):
                value = value.to_dict()
            elif f.name == "custom_points":
                value = [{"x": px, "y": py} for px, py in value]
            key = _camel(f.name) if camel else f.name
            if camel and f.name == "steps_per_tick":
                key = "stepsPerFrame"
            out[key] = value
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SimulationConfig":
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = key if key in known else _snake(key)
            if name not in known:
                logger.debug("Ignoring unknown config key %r", key)
                continue
            if name == "custom_points":
                value = PotentialConfig(custom_points=value or ()).custom_points
            kwargs[name] = value
        return cls(**kwargs)


# ----------------------------------------------------------------------
# loaders
# ----------------------------------------------------------------------


def _load_params(path: str):
    spec = importlib.util.spec_from_file_location("params", path)
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)  # type: ignore[union-attr]
    return mod


def _module_params(mod) -> Dict[str, Any]:
    keep = (str, int, float, bool, list, dict, tuple, type(None))
    return {
        k: getattr(mod, k)
        for k in dir(mod)
        if not k.startswith("_") and isinstance(getattr(mod, k), keep)
    }


def load_params(path: str) -> Dict[str, Any]:
    """Read a raw parameter dictionary from a ``.yaml``/``.yml``, ``.json`` or ``.py`` file."""
    ext = os.path.splitext(path)[1].lower()
    if ext in (".yaml", ".yml"):
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    elif ext == ".json":
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        # snapshot files carry the record under "config"
        if isinstance(data, dict) and isinstance(data.get("config"), dict):
            data = data["config"]
    elif ext == ".py":
        data = _module_params(_load_params(path))
    else:
        raise ValueError(f"Unsupported config file type: {ext!r} (use .yaml, .yml, .json or .py)")
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path!r} must define a mapping")
    return data


def load_config(path: str) -> SimulationConfig:
    """Load a single (non-sweep) configuration."""
    return SimulationConfig.from_dict(load_params(path))


def _sweep_keys(params: Mapping[str, Any]):
    for k, v in params.items():
        if _snake(k) in _STRUCTURED or k in _STRUCTURED:
            continue
        if isinstance(v, (list, tuple)):
            yield k


def expand_cases(params: Mapping[str, Any]) -> Iterator[Dict[str, Any]]:
    """
    Cartesian product over every list-valued scalar field.

    ``{"dt": [0.01, 0.005], "grid_size": 512}`` yields two cases.
    """
    keys = list(_sweep_keys(params))
    if not keys:
        yield dict(params)
        return
    for combo in itertools.product(*(params[k] for k in keys)):
        case = dict(params)
        case.update(zip(keys, combo))
        yield case
