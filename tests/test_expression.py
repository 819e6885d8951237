import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))
import numpy as np
import pytest
from tdse_simulation.core.errors import EvalError
from tdse_simulation.core.expression import (
    BinaryOp,
    FunctionCall,
    Number,
    Variable,
    compile_expression,
    evaluate,
    free_identifiers,
    parse,
)


def test_arithmetic_and_precedence():
    assert evaluate("1 + 2*3") == 7
    assert evaluate("(1 + 2)*3") == 9
    assert evaluate("8/4/2") == 1
    assert evaluate("2^3^2") == 512
    assert evaluate("2^-1") == 0.5
    assert evaluate("-x^2", {"x": 3}) == -9
    assert evaluate("-(x)^2", {"x": 3}) == -9
    assert evaluate("1.5e2 + .5") == 150.5


def test_functions_and_constants():
    assert np.isclose(evaluate("ln(e)"), 1.0)
    assert np.isclose(evaluate("log(e^2)"), 2.0)
    assert np.isclose(evaluate("pi"), np.pi)
    assert np.isclose(evaluate("sin(pi/2) + cos(0) + tan(0)"), 2.0)
    assert np.isclose(evaluate("sinh(0) + cosh(0) + tanh(0)"), 1.0)
    assert evaluate("abs(-3) + sqrt(16) + exp(0)") == 8


def test_parameter_substitution_is_whole_word():
    b = {"k": 1.0, "k0": 4.0}
    assert evaluate("sqrt(k0) + k", b) == 3.0
    assert evaluate("k*k0", b) == 4.0


def test_sine_expression_with_parameters():
    assert evaluate("A*sin(k*x+phi)", {"A": 2, "k": 1, "phi": 0, "x": 0}) == 0.0
    assert np.isclose(evaluate("A*sin(k*x+phi)", {"A": 2, "k": 1, "phi": 0, "x": np.pi / 2}), 2.0)


def test_imaginary_unit_quirk():
    # legacy strings: i evaluates to 1 ...
    assert evaluate("exp(i*x)", {"x": 1.0}) == pytest.approx(np.e)
    # ... unless explicitly bound
    assert evaluate("i*2", {"i": 3}) == 6


@pytest.mark.parametrize("expr", [
    "",
    "   ",
    "x ** 2",
    "2 & 3",
    "x_1",
    "foo(2)",
    "sin",
    "(1+2",
    "1+2)",
    "2 3",
    "1/0",
    "sqrt(-1)",
    "log(0)",
    "exp(1000)",
    "unknown + 1",
])
def test_invalid_expressions(expr):
    with pytest.raises(EvalError):
        evaluate(expr, {"x": 1.0})


def test_unbound_identifier_message():
    with pytest.raises(EvalError, match="amp"):
        evaluate("amp*x", {"x": 1.0})


def test_parse_tree_shape():
    tree = parse("2*sin(x)")
    assert tree == BinaryOp("*", Number(2.0), FunctionCall("sin", Variable("x")))


def test_free_identifiers():
    assert free_identifiers("A*sin(k*x+phi) + pi*e + i") == ["A", "k", "phi", "x"]


def test_evaluate_array_reports_non_finite_samples():
    x = np.array([-1.0, 0.0, 1.0, 4.0])
    values, finite = compile_expression("1/x").evaluate_array(x)
    assert finite.tolist() == [True, False, True, True]
    assert np.allclose(values[finite], [-1.0, 1.0, 0.25])
    values, finite = compile_expression("sqrt(x)").evaluate_array(x)
    assert finite.tolist() == [False, True, True, True]
    assert np.allclose(values[1:], [0.0, 1.0, 2.0])


def test_evaluate_array_constant_and_time():
    x = np.linspace(-1, 1, 5)
    values, finite = compile_expression("3").evaluate_array(x)
    assert values.shape == x.shape and np.all(values == 3) and finite.all()
    values, _ = compile_expression("x + t").evaluate_array(x, t=2.0)
    assert np.allclose(values, x + 2.0)


def test_compile_is_cached():
    assert compile_expression("x^2 + 1") is compile_expression("x^2 + 1")
