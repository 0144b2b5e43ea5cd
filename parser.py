"""Scan arithmetic text into a flat sequence of units.

Each character is dispatched to a consumer that returns the units it produced
and the index to continue from. Parentheses recurse into `scan_units`.

>>> parse_expression("2 + 3*4").expression.units
[Atom(value=2.0), tok('+', Addition), Atom(value=3.0), tok('*', Multiplication), Atom(value=4.0)]
>>> calculate("(2+3)*4")
20.0
"""
import re
from typing import List, NamedTuple

from units import MAX_RANK, TOKENS, Atom, Expression, Token

NUMBER = re.compile(r"[+-]?\d+(?:\.\d+)?", re.ASCII)


class ParseError(ValueError):
    def __init__(self, message, text, index=None):
        super().__init__(message)
        self.text = text
        self.index = index

    def __str__(self):
        message = self.args[0]
        return message if self.index is None else f"{message} at index {self.index}"


class Scan(NamedTuple):
    units: list
    next_index: int


class ParseResult(NamedTuple):
    input: str
    precedence_index: List[List[int]]  # rank -> flat positions of top-level tokens
    expression: Expression


def starts_number(char):
    return NUMBER.match(char) is not None


def consume_number(text, i, units):
    if not (m := NUMBER.match(text, i)):
        raise ParseError("The provided index did not begin a number", text, i)
    return Scan([Atom(float(m[0]))], m.end())


def consume_unary(text, i, units):
    """Fold a run of signs like `-+-` into one sign-flip token.

    The run must be followed by a number or `(`, which is left for the caller.

    >>> consume_unary("--+-(1)", 0, [])
    Scan(units=[tok('-', UnaryNegation)], next_index=4)
    """
    negations = 0
    j = i
    while j < len(text):
        char = text[j]
        if char == "-":
            negations += 1
        elif char == "(" or starts_number(char):
            kind = "UnaryNegation" if negations % 2 else "UnaryAddition"
            return Scan([TOKENS[kind]], j)
        elif char != "+":
            raise ParseError("Unexpected character after unary operation", text, j)
        j += 1
    raise ParseError("Unary operator at end of expression", text, j - 1)


def follows_operand(units):
    return bool(units) and not isinstance(units[-1], Token)


def consume_plus(text, i, units):
    if follows_operand(units):
        return Scan([TOKENS["Addition"]], i + 1)
    return consume_unary(text, i, units)


def consume_minus(text, i, units):
    # Binary minus is lowered to "add the negation of the next operand".
    if follows_operand(units):
        return Scan([TOKENS["Addition"], TOKENS["UnaryNegation"]], i + 1)
    return consume_unary(text, i, units)


def consume_star(text, i, units):
    if text.startswith("**", i):
        return Scan([TOKENS["Exponentiation"]], i + 2)
    return Scan([TOKENS["Multiplication"]], i + 1)


def consume_paren(text, i, units):
    inner, next_index = scan_units(text, i + 1, terminator=")")
    return Scan([Expression(inner, "Parenthesized")], next_index)


def _single(kind):
    return lambda text, i, units: Scan([TOKENS[kind]], i + 1)


CONSUMERS = {
    "+": consume_plus,
    "-": consume_minus,
    "*": consume_star,
    "/": _single("Division"),
    "%": _single("Modulation"),
    "(": consume_paren,
    " ": lambda text, i, units: Scan([], i + 1),
}


def scan_units(text, index=0, terminator=None, precedence_index=None):
    """Scan `text` from `index` up to `terminator` (or the end if None).

    Returns the units and the index just past the terminator. When given,
    `precedence_index` collects the position of every token at this level.
    """
    opened_at = index - 1
    units = []
    while index < len(text):
        char = text[index]
        if char == terminator:
            return Scan(units, index + 1)
        consumer = consume_number if starts_number(char) else CONSUMERS.get(char)
        if consumer is None:
            raise ParseError(f"No consumer found for character {char!r}", text, index)
        produced, index = consumer(text, index, units)
        if precedence_index is not None:
            for pos, unit in enumerate(produced, len(units)):
                if isinstance(unit, Token):
                    precedence_index[unit.rank].append(pos)
        units.extend(produced)
    if terminator is not None:
        raise ParseError("Encountered unterminated opening parenthesis", text, opened_at)
    return Scan(units, index)


def parse_expression(text) -> ParseResult:
    precedence_index = [[] for _ in range(MAX_RANK + 1)]
    try:
        units, _ = scan_units(text, precedence_index=precedence_index)
    except RecursionError:
        raise ParseError("Expression nested too deeply", text) from None
    return ParseResult(text, precedence_index, Expression(units))


def calculate(text) -> float:
    return parse_expression(text).expression.evaluate()
