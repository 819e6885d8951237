"""
Safe evaluation of user-authored scalar expressions.

Expressions are tokenized and parsed by a small recursive-descent parser
into an immutable syntax tree which is then walked with a bindings map.
Nothing is ever handed to ``eval``.

Grammar::

    expr    := term (('+' | '-') term)*
    term    := unary (('*' | '/') unary)*
    unary   := ('+' | '-') unary | power
    power   := primary ('^' unary)?
    primary := NUMBER | IDENT | IDENT '(' expr ')' | '(' expr ')'

``^`` is exponentiation and binds tighter than unary minus, so
``-x^2 == -(x^2)`` and ``2^3^2 == 2^9``.

Reserved names
--------------
x, t            free variables (position, time), supplied by the caller
pi, e           constants
i               legacy "imaginary unit", evaluates to 1 unless bound
sin cos tan sinh cosh tanh exp sqrt abs log ln
                functions (``log`` and ``ln`` are both the natural log)

Every other identifier is a parameter and must appear in the bindings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, FrozenSet, List, Mapping, Tuple, Union

import numpy as np

from .errors import EvalError

FUNCTIONS: Dict[str, Callable] = {
    "sin": np.sin,
    "cos": np.cos,
    "tan": np.tan,
    "sinh": np.sinh,
    "cosh": np.cosh,
    "tanh": np.tanh,
    "exp": np.exp,
    "sqrt": np.sqrt,
    "abs": np.abs,
    "log": np.log,
    "ln": np.log,
}

CONSTANTS: Dict[str, float] = {"pi": float(np.pi), "e": float(np.e)}

FREE_VARIABLES = ("x", "t")

# Legacy expressions such as ``exp(i*x)`` were evaluated with i -> 1.
IMAGINARY_UNIT = "i"
IMAGINARY_UNIT_VALUE = 1.0

_BINARY_OPS: Dict[str, Callable] = {
    "+": np.add,
    "-": np.subtract,
    "*": np.multiply,
    "/": np.true_divide,
    "^": np.power,
}

_ALLOWED_CHARS = re.compile(r"^[0-9A-Za-z.\s+\-*/^()]*$")

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<ident>[A-Za-z][A-Za-z0-9]*)
  | (?P<op>[+\-*/^])
  | (?P<lparen>\()
  | (?P<rparen>\))
    """,
    re.VERBOSE,
)

Scalar = Union[float, np.ndarray]


# ----------------------------------------------------------------------
# Syntax tree
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class Variable:
    name: str


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: "Node"


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class FunctionCall:
    name: str
    argument: "Node"


Node = Union[Number, Variable, UnaryOp, BinaryOp, FunctionCall]


# ----------------------------------------------------------------------
# Tokenizer / parser
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int


def tokenize(expression: str) -> List[Token]:
    """Split ``expression`` into tokens, raising ``EvalError`` on stray characters."""
    if not _ALLOWED_CHARS.match(expression):
        bad = sorted({c for c in expression if not _ALLOWED_CHARS.match(c)})
        raise EvalError(f"Invalid characters in expression: {''.join(bad)!r}")

    tokens: List[Token] = []
    pos = 0
    while pos < len(expression):
        m = _TOKEN_RE.match(expression, pos)
        if m is None:
            raise EvalError(f"Unexpected character {expression[pos]!r} at position {pos}")
        kind = m.lastgroup
        if kind != "ws":
            tokens.append(Token(kind, m.group(), pos))
        pos = m.end()
    tokens.append(Token("end", "", len(expression)))
    return tokens


class _Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        tok = self.tokens[self.index]
        self.index += 1
        return tok

    def _expect(self, kind: str, what: str) -> Token:
        if self.current.kind != kind:
            raise EvalError(
                f"Expected {what} at position {self.current.pos}, "
                f"got {self.current.text or 'end of expression'!r}"
            )
        return self._advance()

    def parse(self) -> Node:
        node = self._expr()
        if self.current.kind != "end":
            raise EvalError(f"Unexpected {self.current.text!r} at position {self.current.pos}")
        return node

    def _expr(self) -> Node:
        node = self._term()
        while self.current.kind == "op" and self.current.text in "+-":
            op = self._advance().text
            node = BinaryOp(op, node, self._term())
        return node

    def _term(self) -> Node:
        node = self._unary()
        while self.current.kind == "op" and self.current.text in "*/":
            op = self._advance().text
            node = BinaryOp(op, node, self._unary())
        return node

    def _unary(self) -> Node:
        if self.current.kind == "op" and self.current.text in "+-":
            op = self._advance().text
            return UnaryOp(op, self._unary())
        return self._power()

    def _power(self) -> Node:
        base = self._primary()
        if self.current.kind == "op" and self.current.text == "^":
            self._advance()
            return BinaryOp("^", base, self._unary())
        return base

    def _primary(self) -> Node:
        tok = self.current
        if tok.kind == "number":
            self._advance()
            return Number(float(tok.text))
        if tok.kind == "ident":
            self._advance()
            if self.current.kind == "lparen":
                if tok.text not in FUNCTIONS:
                    raise EvalError(f"Unknown function {tok.text!r}")
                self._advance()
                arg = self._expr()
                self._expect("rparen", "')'")
                return FunctionCall(tok.text, arg)
            if tok.text in FUNCTIONS:
                raise EvalError(f"Function {tok.text!r} must be called with an argument")
            return Variable(tok.text)
        if tok.kind == "lparen":
            self._advance()
            node = self._expr()
            self._expect("rparen", "')'")
            return node
        raise EvalError(
            f"Unexpected {tok.text or 'end of expression'!r} at position {tok.pos}"
        )


def parse(expression: str) -> Node:
    """Parse ``expression`` into a syntax tree."""
    if expression is None or not expression.strip():
        raise EvalError("Expression cannot be empty")
    return _Parser(tokenize(expression)).parse()


def _collect_names(node: Node, out: set) -> None:
    if isinstance(node, Variable):
        out.add(node.name)
    elif isinstance(node, UnaryOp):
        _collect_names(node.operand, out)
    elif isinstance(node, BinaryOp):
        _collect_names(node.left, out)
        _collect_names(node.right, out)
    elif isinstance(node, FunctionCall):
        _collect_names(node.argument, out)


# ----------------------------------------------------------------------
# Evaluation
# ----------------------------------------------------------------------


def _lookup(name: str, env: Mapping[str, Scalar]) -> Scalar:
    if name in env:
        return env[name]
    if name in CONSTANTS:
        return CONSTANTS[name]
    if name == IMAGINARY_UNIT:
        return IMAGINARY_UNIT_VALUE
    raise EvalError(f"Unknown identifier {name!r}")


def _walk(node: Node, env: Mapping[str, Scalar]) -> Scalar:
    if isinstance(node, Number):
        return np.float64(node.value)
    if isinstance(node, Variable):
        return _lookup(node.name, env)
    if isinstance(node, UnaryOp):
        val = _walk(node.operand, env)
        return np.negative(val) if node.op == "-" else val
    if isinstance(node, BinaryOp):
        return _BINARY_OPS[node.op](_walk(node.left, env), _walk(node.right, env))
    if isinstance(node, FunctionCall):
        return FUNCTIONS[node.name](_walk(node.argument, env))
    raise TypeError(f"Unknown node type: {type(node).__name__}")


@dataclass(frozen=True)
class CompiledExpression:
    """
    A parsed expression ready for repeated evaluation.

    Attributes
    ----------
    source : str
        Original expression text.
    tree : Node
        Root of the syntax tree.
    names : frozenset of str
        Every identifier referenced as a value (functions excluded).
    """

    source: str
    tree: Node
    names: FrozenSet[str]

    def unbound(self, bindings: Mapping[str, float]) -> List[str]:
        """Identifiers that neither ``bindings`` nor the reserved names resolve."""
        return sorted(
            n for n in self.names
            if n not in bindings and n not in CONSTANTS and n != IMAGINARY_UNIT
        )

    def _check_bound(self, bindings: Mapping[str, float]) -> None:
        missing = self.unbound(bindings)
        if missing:
            raise EvalError(
                f"Unknown identifier(s) in {self.source!r}: {', '.join(missing)}"
            )

    def evaluate(self, bindings: Mapping[str, float] | None = None) -> float:
        """
        Evaluate with scalar ``bindings``.

        Raises
        ------
        EvalError
            If an identifier is unbound or the result is not finite.
        """
        env = {k: np.float64(v) for k, v in (bindings or {}).items()}
        self._check_bound(env)
        with np.errstate(all="ignore"):
            result = float(_walk(self.tree, env))
        if not np.isfinite(result):
            raise EvalError(
                f"Expression {self.source!r} evaluates to non-finite number: {result}"
            )
        return result

    def evaluate_array(
        self,
        x: np.ndarray,
        bindings: Mapping[str, float] | None = None,
        t: float | None = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Evaluate elementwise over the sample points ``x``.

        Returns
        -------
        values : np.ndarray
            Float array with the shape of ``x``.
        finite : np.ndarray of bool
            False where the sample evaluated to NaN or +-inf. The caller
            decides whether that is fatal.

        Raises
        ------
        EvalError
            If an identifier is unbound (this fails every sample alike).
        """
        x = np.asarray(x, dtype=np.float64)
        env: Dict[str, Scalar] = {k: np.float64(v) for k, v in (bindings or {}).items()}
        env["x"] = x
        if t is not None:
            env["t"] = np.float64(t)
        self._check_bound(env)
        with np.errstate(all="ignore"):
            values = np.broadcast_to(_walk(self.tree, env), x.shape).astype(np.float64)
        return values, np.isfinite(values)


@lru_cache(maxsize=256)
def compile_expression(expression: str) -> CompiledExpression:
    """Parse ``expression`` once; repeated calls with the same text are cached."""
    tree = parse(expression)
    names: set = set()
    _collect_names(tree, names)
    return CompiledExpression(expression, tree, frozenset(names))


def evaluate(expression: str, bindings: Mapping[str, float] | None = None) -> float:
    """
    Evaluate ``expression`` with ``bindings``.

    >>> evaluate("A*sin(k*x+phi)", {"A": 2, "k": 1, "phi": 0, "x": 0})
    0.0
    """
    return compile_expression(expression).evaluate(bindings)


def free_identifiers(expression: str) -> List[str]:
    """Identifiers ``expression`` needs from its bindings (constants and ``i`` excluded)."""
    return compile_expression(expression).unbound({})
