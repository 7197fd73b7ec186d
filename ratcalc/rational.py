"""
Exact rational arithmetic helpers.

Numbers are fractions.Fraction throughout: always in lowest terms with the
sign on the numerator. Nothing in here ever produces a float.
"""

from fractions import Fraction
from typing import Optional

from .errors import DivisionByZero, NumberTooLarge

ELLIPSIS = "…"


def parse_literal(text: str) -> Fraction:
    """
    Convert a number literal to an exact fraction.

    Underscores are digit separators. Digits after the decimal point scale
    the value by a negative power of ten.

    Examples:
        parse_literal("42")      -> Fraction(42)
        parse_literal("1_000")   -> Fraction(1000)
        parse_literal("0.25")    -> Fraction(1, 4)
        parse_literal(".5")      -> Fraction(1, 2)
    """
    digits = text.replace("_", "")
    if "." in digits:
        whole, frac = digits.split(".", 1)
    else:
        whole, frac = digits, ""
    try:
        numerator = int((whole + frac) or "0")
    except ValueError:
        # More digits than int() accepts from a string
        raise NumberTooLarge(len(digits) * 10 // 3) from None
    return Fraction(numerator, 10 ** len(frac))


def is_integer(value: Fraction) -> bool:
    """Check if a fraction is a whole number."""
    return value.denominator == 1


def exact_power(
    base: Fraction,
    exponent: Fraction,
    max_exponent: Optional[int] = None,
    max_bits: Optional[int] = None,
) -> Optional[Fraction]:
    """
    Raise base to exponent exactly.

    Returns None when the result is not a rational we are willing to compute:
    a non-integer exponent, an exponent larger than max_exponent, or a
    result whose numerator or denominator could exceed max_bits bits.

    Raises:
        DivisionByZero: zero raised to a negative power
    """
    if base == 1:
        return Fraction(1)
    if base == 0 and exponent < 0:
        raise DivisionByZero("zero raised to a negative power")
    if not is_integer(exponent):
        return None

    n = exponent.numerator
    if base == -1:
        return Fraction(1) if n % 2 == 0 else Fraction(-1)
    if n == -1:
        return 1 / base
    if max_exponent is not None and abs(n) > max_exponent:
        return None
    if max_bits is not None:
        # bit_length(b ** n) <= bit_length(b) * n
        size = max(base.numerator.bit_length(), base.denominator.bit_length())
        if size * abs(n) > max_bits:
            return None

    if n >= 0 and is_integer(base):
        return Fraction(base.numerator ** n)

    # Numerator and denominator are raised independently
    numerator = base.numerator ** abs(n)
    denominator = base.denominator ** abs(n)
    if n < 0:
        return Fraction(denominator, numerator)
    return Fraction(numerator, denominator)


def safe_mod(dividend: Fraction, divisor: Fraction) -> Fraction:
    """
    Floored modulus of two fractions.

    Raises:
        DivisionByZero: divisor is zero
    """
    if divisor == 0:
        raise DivisionByZero("modulus by zero")
    return dividend % divisor


def format_decimal(value: Fraction, precision: int = 5) -> str:
    """
    Decimal expansion of a fraction, truncated to `precision` digits.

    The expansion is computed by exact long division. When digits remain
    past the precision, an ellipsis is appended.

    Examples:
        format_decimal(Fraction(1, 8))   -> "0.125"
        format_decimal(Fraction(1, 3))   -> "0.33333…"
        format_decimal(Fraction(-7, 2))  -> "-3.5"
    """
    sign = "-" if value < 0 else ""
    value = abs(value)
    whole, remainder = divmod(value.numerator, value.denominator)

    digits = []
    while remainder and len(digits) < precision:
        digit, remainder = divmod(remainder * 10, value.denominator)
        digits.append(str(digit))

    text = f"{sign}{whole}"
    if digits:
        text += "." + "".join(digits)
    if remainder:
        text += ELLIPSIS
    return text
