"""
Numerical core: expression evaluation, parameters and the real-space solver.
"""

from .errors import (
    DimensionError,
    EvalError,
    PotentialError,
    RangeViolation,
    TDSEError,
    ValidationResult,
)
from .expression import compile_expression, evaluate
from .parameters import Parameter, ParameterSet, ParameterStore

__all__ = [
    "DimensionError",
    "EvalError",
    "PotentialError",
    "RangeViolation",
    "TDSEError",
    "ValidationResult",
    "compile_expression",
    "evaluate",
    "Parameter",
    "ParameterSet",
    "ParameterStore",
]
