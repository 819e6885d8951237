"""
Named, bounded parameters for user-defined functions.

A :class:`Parameter` is an immutable record whose value is always clamped
into ``[min, max]``. :class:`ParameterSet` maps parameter names to
parameters and produces the bindings consumed by
:mod:`tdse_simulation.core.expression`. :class:`ParameterStore` groups the
stateless operations (create, update, name extraction, role detection).
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Iterable, Iterator, List, Mapping, MutableMapping, Optional, Tuple

import numpy as np

from .errors import EvalError, RangeViolation, ValidationResult
from .expression import compile_expression

RESERVED_NAMES = frozenset({
    "x", "t", "i", "pi", "e",
    "sin", "cos", "tan", "sinh", "cosh", "tanh",
    "exp", "sqrt", "abs", "log", "ln",
    "true", "false", "if", "else",
})

BOUND_EPSILON = 1e-10

_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]*$")
# identifier not immediately followed by "(" (function call)
_CANDIDATE_RE = re.compile(r"(?<![A-Za-z0-9.])([A-Za-z][A-Za-z0-9]*)\b(?!\s*\()")


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


@dataclass(frozen=True)
class Parameter:
    name: str
    value: float = 1.0
    min: float = -10.0
    max: float = 10.0
    step: float = 0.1
    description: Optional[str] = None

    def __post_init__(self):
        if self.min > self.max:
            raise RangeViolation(
                f"Parameter {self.name!r}: min ({self.min:g}) is greater than max ({self.max:g})"
            )
        object.__setattr__(self, "value", _clamp(float(self.value), self.min, self.max))

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        if d["description"] is None:
            del d["description"]
        return d

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], clamp: bool = True) -> "Parameter":
        """
        Build from a ``to_dict`` record.

        With ``clamp=False`` the stored value is kept as is, even outside the
        range (a value left there by :meth:`ParameterStore.set_range`).
        """
        value = float(data.get("value", 1.0))
        p = cls(
            name=data["name"],
            value=value,
            min=float(data.get("min", -10.0)),
            max=float(data.get("max", 10.0)),
            step=float(data.get("step", 0.1)),
            description=data.get("description"),
        )
        if not clamp:
            object.__setattr__(p, "value", value)
        return p


class ParameterSet(MutableMapping):
    """
    Mapping ``name -> Parameter``.

    ``add`` enforces naming rules; plain item assignment is accepted for
    deserialization and keeps the key equal to ``parameter.name``.
    """

    def __init__(self, parameters: Iterable[Parameter] = ()):
        self._data: Dict[str, Parameter] = {}
        for p in parameters:
            self[p.name] = p

    def __getitem__(self, name: str) -> Parameter:
        return self._data[name]

    def __setitem__(self, name: str, parameter: Parameter) -> None:
        if name != parameter.name:
            raise KeyError(f"Key {name!r} does not match parameter name {parameter.name!r}")
        self._data[name] = parameter

    def __delitem__(self, name: str) -> None:
        del self._data[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        inner = ", ".join(f"{p.name}={p.value:g}" for p in self._data.values())
        return f"ParameterSet({inner})"

    def add(self, parameter: Parameter) -> Parameter:
        if not ParameterStore.is_valid_name(parameter.name):
            raise RangeViolation(
                f"Invalid parameter name {parameter.name!r}: must start with a letter, "
                "contain only letters and digits, be at least 2 characters and not "
                "be a reserved name"
            )
        if parameter.name in self._data:
            raise RangeViolation(f"Parameter {parameter.name!r} already exists")
        self._data[parameter.name] = parameter
        return parameter

    def set_value(self, name: str, value: float) -> Parameter:
        """Set the value of ``name`` (clamped into its range)."""
        p = ParameterStore.update(self._data[name], value)
        self._data[name] = p
        return p

    def bindings(self) -> Dict[str, float]:
        return {name: p.value for name, p in self._data.items()}

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {name: p.to_dict() for name, p in self._data.items()}

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Mapping[str, Any]] | None, clamp: bool = True
    ) -> "ParameterSet":
        out = cls()
        for name, raw in (data or {}).items():
            raw = dict(raw)
            raw.setdefault("name", name)
            out[name] = Parameter.from_dict(raw, clamp=clamp)
        return out


def as_bindings(parameters: Mapping[str, Any] | None) -> Dict[str, float]:
    """Accept a ParameterSet, a ``{name: Parameter}`` dict or plain ``{name: value}``."""
    if parameters is None:
        return {}
    if isinstance(parameters, ParameterSet):
        return parameters.bindings()
    return {
        name: float(p.value) if isinstance(p, Parameter) else float(p)
        for name, p in parameters.items()
    }


class ParameterStore:
    """Stateless operations on parameters."""

    # (keywords, value, min, max, description). Checked in order.
    _ROLES: Tuple[Tuple[Tuple[str, ...], float, float, float, str], ...] = (
        (("omega", "ω"), 1.0, 0.0, 10.0, "Angular frequency"),
        (("sigma", "σ", "width"), 1.0, 0.1, 10.0, "Width parameter"),
        (("hbar", "ℏ"), 1.0, 0.1, 5.0, "Reduced Planck constant"),
        (("center", "x0"), 0.0, -10.0, 10.0, "Center position"),
        (("mass",), 1.0, 0.1, 10.0, "Mass"),
        (("phase", "phi"), 0.0, -2 * np.pi, 2 * np.pi, "Phase"),
        (("amp",), 1.0, -5.0, 5.0, "Amplitude"),
        (("freq",), 1.0, -10.0, 10.0, "Frequency"),
        (("offset",), 0.0, -10.0, 10.0, "Offset"),
        (("scale",), 1.0, -5.0, 5.0, "Scale"),
    )
    # legacy single-letter heuristics, applied after the named roles
    _LETTER_ROLES: Tuple[Tuple[str, float, float, float, str], ...] = (
        ("a", 1.0, -5.0, 5.0, "Amplitude"),
        ("k", 1.0, -10.0, 10.0, "Frequency"),
        ("b", 0.0, -10.0, 10.0, "Offset"),
        ("c", 1.0, -5.0, 5.0, "Scale"),
    )

    @staticmethod
    def create(
        name: str,
        value: float = 1.0,
        min: float = -10.0,
        max: float = 10.0,
        step: float = 0.1,
        description: Optional[str] = None,
    ) -> Parameter:
        return Parameter(name, value, min, max, step, description)

    @staticmethod
    def update(parameter: Parameter, new_value: float) -> Parameter:
        return replace(parameter, value=_clamp(float(new_value), parameter.min, parameter.max))

    @staticmethod
    def set_range(parameter: Parameter, field: str, value: float) -> Parameter:
        """
        Replace ``min``, ``max`` or ``step``.

        The current value is kept as is, even if it now lies outside the
        range; the next :meth:`update` re-clamps it. An inverted range
        raises :class:`RangeViolation`.
        """
        if field not in ("min", "max", "step"):
            raise ValueError(f"field must be 'min', 'max' or 'step', got {field!r}")
        p = replace(parameter, **{field: float(value)})
        # __post_init__ clamped during replace(); restore the trusted value
        object.__setattr__(p, "value", parameter.value)
        return p

    @staticmethod
    def is_valid_name(name: str) -> bool:
        return (
            bool(_NAME_RE.match(name))
            and len(name) > 1
            and name.lower() not in RESERVED_NAMES
        )

    @staticmethod
    def is_at_bound(parameter: Parameter) -> Tuple[bool, bool]:
        """``(at_min, at_max)`` within ``BOUND_EPSILON``."""
        return (
            abs(parameter.value - parameter.min) < BOUND_EPSILON,
            abs(parameter.value - parameter.max) < BOUND_EPSILON,
        )

    @staticmethod
    def extract_names(expression: str) -> List[str]:
        """
        Candidate parameter names in ``expression``.

        Identifiers (single or multi letter) that are not reserved and not
        called as functions. Duplicates are removed; order of first
        appearance is kept but carries no meaning.
        """
        seen: Dict[str, None] = {}
        for m in _CANDIDATE_RE.finditer(expression or ""):
            name = m.group(1)
            if name.lower() in RESERVED_NAMES:
                continue
            seen.setdefault(name, None)
        return list(seen)

    @classmethod
    def suggest(cls, name: str) -> Parameter:
        """Default value and range chosen from what ``name`` looks like."""
        lower = name.lower()
        for keys, value, lo, hi, desc in cls._ROLES:
            if any(k in lower for k in keys):
                return Parameter(name, value, lo, hi, 0.1, desc)
        if lower == "m":
            return Parameter(name, 1.0, 0.1, 10.0, 0.1, "Mass")
        for letter, value, lo, hi, desc in cls._LETTER_ROLES:
            if letter in lower:
                return Parameter(name, value, lo, hi, 0.1, desc)
        return Parameter(name, 1.0, -10.0, 10.0, 0.1, "Custom parameter")

    @classmethod
    def suggest_all(cls, expression: str, existing: Mapping[str, Parameter] | None = None) -> ParameterSet:
        """
        Suggestions for every name in ``expression``; parameters already in
        ``existing`` are carried over untouched.
        """
        existing = existing or {}
        return ParameterSet(
            existing[n] if n in existing else cls.suggest(n)
            for n in cls.extract_names(expression)
        )


PARAMETER_PRESETS: Dict[str, Parameter] = {
    "amplitude": Parameter("A", 1, -5, 5, 0.1, "Amplitude parameter"),
    "frequency": Parameter("k", 1, -10, 10, 0.1, "Frequency/Wave number"),
    "phase": Parameter("phi", 0, -2 * np.pi, 2 * np.pi, 0.1, "Phase shift"),
    "offset": Parameter("offset", 0, -10, 10, 0.1, "Vertical offset"),
    "scale": Parameter("scale", 1, -5, 5, 0.1, "Scale factor"),
    "omega": Parameter("omega", 1, 0, 10, 0.1, "Angular frequency"),
    "sigma": Parameter("sigma", 1, 0.1, 10, 0.1, "Width parameter"),
    "x0": Parameter("x0", 0, -10, 10, 0.1, "Center position"),
    "m": Parameter("m", 1, 0.1, 10, 0.1, "Mass parameter"),
    "hbar": Parameter("hbar", 1, 0.1, 5, 0.1, "Reduced Planck constant"),
}


def missing_parameters(expression: str, parameters: Mapping[str, Any] | None) -> List[str]:
    bound = as_bindings(parameters)
    return [n for n in ParameterStore.extract_names(expression) if n not in bound]


def validate_parameter_expression(
    expression: str,
    parameters: Mapping[str, Any] | None,
    x: float = 0.0,
    t: float = 0.0,
) -> ValidationResult:
    """Check that every name is bound and the expression is finite at ``x``, ``t``."""
    missing = missing_parameters(expression, parameters)
    if missing:
        return ValidationResult(
            False, f"Missing parameters: {', '.join(missing)}", missing_parameters=missing
        )
    bindings = as_bindings(parameters)
    bindings.update(x=x, t=t)
    try:
        compile_expression(expression).evaluate(bindings)
    except EvalError as e:
        return ValidationResult(False, str(e))
    return ValidationResult(True)
