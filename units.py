"""Units of a flat arithmetic expression and the reducer that collapses them.

A unit is an `Atom` (one float), a `Token` (an operator) or an `Expression`
(a nested, parenthesized sequence of units). Reduction repeatedly picks the
token with the smallest precedence rank, applies it to the units around it and
splices the result back in, until a single value is left.
"""
import operator
import re
from typing import Callable, List, NamedTuple

import numpy as np

# A consumption count of BOUNDARY means "everything up to the sequence edge".
BOUNDARY = -1


class OperationError(ArithmeticError):
    """Raised when a unit sequence cannot be reduced to a single value."""

    def __init__(self, message, operation, operands=None):
        super().__init__(message)
        self.operation = operation
        self.operands = operands

    def __str__(self):
        return f"{self.args[0]} ({self.operation})"


class Atom(NamedTuple):
    value: float


class Expression(NamedTuple):
    units: list
    kind: str = "List"  # or "Parenthesized"; metadata only

    def evaluate(self):
        """Reduce `units` to a float. Nothing is cached; every call reduces again.

        >>> Expression([Atom(2.0), TOKENS["Multiplication"], Atom(4.0)]).evaluate()
        8.0
        """
        try:
            return reduce_units(self.units).value
        except RecursionError:
            raise OperationError("Expression nested too deeply.", "ExpressionEvaluation") from None


class Reduction(NamedTuple):
    units: list
    before: int
    after: int


class Token(NamedTuple):
    kind: str
    literal: str
    rank: int
    before: int
    after: int
    fun: Callable

    def __repr__(self):
        return f"tok({self.literal!r}, {self.kind})"

    def reduce(self, operands):
        if not all(map(is_operable, operands)):
            raise OperationError("Invalid operands.", self.kind, operands)
        with np.errstate(all="ignore"):
            value = float(self.fun(*map(evaluate, operands)))
        return Reduction([Atom(value)], self.before, self.after)


# One line per precedence rank, tightest first; `kind` then its literal.
RANKS = """
UnarySignFlip+- UnaryAddition+ UnaryNegation-
Exponentiation**
Division/
Multiplication*
Addition+
Subtraction-
Modulation%
""".strip()

BINARY = {
    "Exponentiation": np.power,
    "Division": np.true_divide,
    "Multiplication": np.multiply,
    "Addition": np.add,
    "Subtraction": np.subtract,
    "Modulation": np.fmod,
}


def _make_token(kind, literal, rank):
    if kind in BINARY:
        return Token(kind, literal, rank, 1, 1, BINARY[kind])
    # Sign flips negate iff their literal is exactly "-".
    return Token(kind, literal, rank, 0, 1, operator.neg if literal == "-" else operator.pos)


TOKENS = {
    kind: _make_token(kind, literal, rank)
    for rank, kinds in enumerate(RANKS.split("\n"))
    for [(kind, literal)] in map(re.compile(r"^(\w+)(\W+)$").findall, kinds.split())
}
MAX_RANK = max(tok.rank for tok in TOKENS.values())


def is_operable(unit):
    return isinstance(unit, (Atom, Expression))


def evaluate(unit):
    if isinstance(unit, Atom):
        return unit.value
    if isinstance(unit, Expression):
        return unit.evaluate()
    raise OperationError("Unit has no value.", "ExpressionEvaluation", [unit])


def _next_operation(units):
    positions = [i for i, unit in enumerate(units) if isinstance(unit, Token)]
    if not positions:
        raise OperationError("No operation token.", "ExpressionEvaluation", units)
    # min() keeps the leftmost of equally ranked tokens.
    return min(positions, key=lambda i: units[i].rank)


def reduce_units(units: List) -> Atom:
    """Collapse `units` to one `Atom`, lowest rank first.

    `units` itself is left untouched; reduction works on a copy.

    >>> add, neg = TOKENS["Addition"], TOKENS["UnaryNegation"]
    >>> reduce_units([Atom(5.0), add, neg, Atom(3.0)])
    Atom(value=2.0)
    >>> reduce_units([Atom(1.0), TOKENS["Subtraction"], Atom(4.0)])
    Atom(value=-3.0)
    """
    expr = list(units)
    while len(expr) > 1:
        i = _next_operation(expr)
        tok = expr[i]
        start = 0 if tok.before == BOUNDARY else i - tok.before
        end = len(expr) if tok.after == BOUNDARY else i + tok.after + 1
        if start < 0 or end > len(expr):
            raise OperationError("Insufficient operands.", tok.kind, expr[max(start, 0) : end])

        result = tok.reduce(expr[start:i] + expr[i + 1 : end])
        before = i - start if result.before == BOUNDARY else result.before
        after = end - i - 1 if result.after == BOUNDARY else result.after
        del expr[i]
        expr[i - before : i + after] = result.units

    if len(expr) != 1 or not is_operable(expr[0]):
        raise OperationError("Invalid number of result units.", "ExpressionEvaluation", list(units))
    return Atom(evaluate(expr[0]))
