"""
Exception taxonomy for RATCALC.

Every error raised while lexing, parsing or evaluating a statement derives
from CalcError, so a caller can report the failing line and carry on:

    try:
        result = calc.evaluate(line)
    except CalcError as e:
        print(f"Error: {e}")
"""

from typing import Any, Optional


class CalcError(Exception):
    """Base class for all errors reported against a single statement."""


class LexError(CalcError):
    """Unrecognized character in the input text."""

    def __init__(self, char: str, position: int):
        self.char = char
        self.position = position
        super().__init__(f"unexpected character {char!r} at position {position}")


class ParseError(CalcError):
    """Unexpected or missing token.

    `token` is the offending token, or None when input ended early.
    """

    def __init__(self, message: str, token: Optional[Any] = None):
        self.message = message
        self.token = token
        super().__init__(message)


class AssignTargetError(ParseError):
    """Left side of := is not a bare name."""

    def __init__(self, target: Any):
        self.target = target
        super().__init__(f"cannot assign to {target}")


class DivisionByZero(CalcError, ZeroDivisionError):
    """Division or modulus by an exact zero."""

    def __init__(self, message: str = "division by zero"):
        super().__init__(message)


class UnresolvedReference(CalcError):
    """A variable lookup that cannot be satisfied.

    `cyclic` is True when the name refers (directly or indirectly) to itself.
    """

    def __init__(self, name: str, cyclic: bool = False):
        self.name = name
        self.cyclic = cyclic
        if cyclic:
            message = f"cyclic reference to '{name}'"
        else:
            message = f"unresolved reference '{name}'"
        super().__init__(message)


class ChainLengthExceeded(CalcError):
    """An associative chain is too long to simplify."""

    def __init__(self, length: int, limit: int):
        self.length = length
        self.limit = limit
        super().__init__(f"chain of {length} terms exceeds limit of {limit}")


class NestingTooDeep(CalcError):
    """Expression nested too deeply to rewrite."""

    def __init__(self):
        super().__init__("expression is nested too deeply")


class NumberTooLarge(CalcError):
    """A number has too many digits to convert to or from text."""

    def __init__(self, bits: int):
        self.bits = bits
        super().__init__(f"number of {bits} bits is too large to convert to text")
