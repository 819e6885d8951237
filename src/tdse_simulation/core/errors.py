"""
Error taxonomy for the TDSE core.

``EvalError`` and ``PotentialError`` come from user-authored expressions,
``DimensionError`` from mismatched arrays and ``RangeViolation`` from
parameter definitions. All of them derive from ``ValueError`` so callers
that only know about the builtin still catch them.

``ValidationResult`` is advisory: it is returned by the ``validate_*``
helpers and never raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


class TDSEError(Exception):
    """Base class for all errors raised by tdse_simulation."""


class EvalError(TDSEError, ValueError):
    """Expression is empty, malformed, references an unbound name or is non-finite."""


class PotentialError(EvalError):
    """A custom potential could not be evaluated on the grid."""


class DimensionError(TDSEError, ValueError):
    """Array length does not match the solver grid."""


class RangeViolation(TDSEError, ValueError):
    """Parameter name is invalid or already taken, or its range is inverted."""


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None
    examples: List[str] = field(default_factory=list)
    missing_parameters: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid
