"""
Decimal Value

Every price, amount and percentage in unitrade is a decimal.Decimal that
entered the system through parse_decimal() and leaves it through
format_decimal() / format_fixed(). Native floats are refused at the door so
that comparisons used for order validation are exact.

Guarantees:
    - parse_decimal keeps every digit of a textual literal ("1.2300" stays
      1.2300, not 1.23 and not 1.22999...)
    - format_decimal never emits scientific notation and round-trips:
      parse_decimal(format_decimal(x)) == x
    - add/sub/mul/div either return the exact result or raise
      PrecisionOverflow / DivisionByZero; nothing is silently rounded
    - truncate/format_fixed/div_truncated cut toward zero, never away from it

Usage:
    from unitrade.core.numeric import parse_decimal, format_fixed, mul

    price = parse_decimal("0.11")
    format_fixed(price, 4)          # "0.1100"
    mul(price, "50")                # Decimal("5.50")
"""

import decimal
import re
from decimal import Decimal
from typing import Annotated, Callable, Optional, Union

from pydantic import BeforeValidator, PlainSerializer

from unitrade.core.config import settings
from unitrade.core.errors import (
    DivisionByZero,
    InvalidArgument,
    InvalidNumericLiteral,
    PrecisionOverflow,
)


NumericInput = Union[str, int, Decimal]

_NUMERIC_LITERAL = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")

# Largest power of ten accepted in either direction; 1e50000000 would render
# as fifty million digits
MAX_EXPONENT = 1000


# ============================================
# Parsing / Formatting
# ============================================

def parse_decimal(value: NumericInput) -> Decimal:
    """
    Parse a numeric literal into an exact Decimal.

    Args:
        value: Text such as "0.11", "-3", "1.5e-3"; an int; or a finite Decimal

    Returns:
        Decimal: exact value, trailing digits preserved

    Raises:
        InvalidNumericLiteral: empty or malformed text, NaN/Infinity,
                               an exponent beyond MAX_EXPONENT, floats,
                               bools or any other type
    """
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise InvalidNumericLiteral(f"Non-finite decimal: {value}")
        return _check_magnitude(value)

    # bool is an int subclass; True is not a quantity
    if isinstance(value, bool):
        raise InvalidNumericLiteral(f"Boolean is not a numeric literal: {value!r}")

    if isinstance(value, int):
        return _check_magnitude(Decimal(value))

    if isinstance(value, float):
        raise InvalidNumericLiteral(
            f"Floating point value {value!r} rejected; pass the literal as text"
        )

    if isinstance(value, str):
        text = value.strip()
        if not _NUMERIC_LITERAL.match(text):
            raise InvalidNumericLiteral(f"Invalid numeric literal: {value!r}")
        return _check_magnitude(Decimal(text))

    raise InvalidNumericLiteral(f"Unsupported numeric type {type(value).__name__}: {value!r}")


def _check_magnitude(number: Decimal) -> Decimal:
    exponent = number.as_tuple().exponent
    if abs(exponent) > MAX_EXPONENT or abs(number.adjusted()) > MAX_EXPONENT:
        # the digits themselves may be huge, so only the exponent is reported
        raise InvalidNumericLiteral(
            f"Numeric literal out of range: exponent {number.adjusted()} exceeds +/-{MAX_EXPONENT}"
        )
    return number


def format_decimal(value: NumericInput, min_precision: int = 0) -> str:
    """
    Render a decimal as canonical fixed-point text.

    Trailing fractional zeros are trimmed, but at least `min_precision`
    fractional digits are kept.

    Examples:
        >>> format_decimal(Decimal("1.2300"))
        '1.23'
        >>> format_decimal(Decimal("1E+3"))
        '1000'
        >>> format_decimal(Decimal("5"), min_precision=2)
        '5.00'
    """
    if min_precision < 0:
        raise InvalidArgument(f"min_precision must be >= 0, got {min_precision}")

    text = format(parse_decimal(value), "f")

    integer, _, fraction = text.partition(".")
    fraction = fraction.rstrip("0")
    if len(fraction) < min_precision:
        fraction = fraction.ljust(min_precision, "0")

    text = f"{integer}.{fraction}" if fraction else integer
    return _strip_negative_zero(text)


def _strip_negative_zero(text: str) -> str:
    if text.startswith("-") and not text.strip("-0."):
        return text[1:]
    return text


# ============================================
# Precision Helpers
# ============================================

def truncate(value: NumericInput, places: int) -> Decimal:
    """
    Cut a value toward zero to `places` fractional digits.

    Examples:
        >>> truncate("1.23456", 2)
        Decimal('1.23')
        >>> truncate("-1.239", 2)
        Decimal('-1.23')
    """
    if places < 0:
        raise InvalidArgument(f"places must be >= 0, got {places}")

    value = parse_decimal(value)
    needed = max(value.adjusted(), 0) + places + 1
    context = decimal.Context(
        prec=max(needed, settings.decimal_precision),
        rounding=decimal.ROUND_DOWN,
        Emax=decimal.MAX_EMAX,
        Emin=decimal.MIN_EMIN,
        traps=[decimal.InvalidOperation],
    )
    try:
        return value.quantize(Decimal(1).scaleb(-places), context=context)
    except decimal.InvalidOperation as e:
        raise PrecisionOverflow(f"Cannot truncate {value} to {places} places: {e}")


def format_fixed(value: NumericInput, places: int) -> str:
    """
    Truncate toward zero and render with exactly `places` fractional digits.

    This is the wire form sent to connectors.

    Example:
        >>> format_fixed("0.11", 4)
        '0.1100'
    """
    return _strip_negative_zero(format(truncate(value, places), "f"))


def precision_from_step(step: NumericInput) -> int:
    """
    Number of fractional digits implied by a tick/step size.

    Examples:
        >>> precision_from_step("0.00100000")
        3
        >>> precision_from_step("1.00000000")
        0
    """
    exponent = parse_decimal(step).normalize().as_tuple().exponent
    return max(0, -exponent)


# ============================================
# Exact Arithmetic
# ============================================

def _arithmetic_context(precision: Optional[int]) -> decimal.Context:
    prec = precision or settings.decimal_precision
    return decimal.Context(
        prec=prec,
        rounding=decimal.ROUND_DOWN,
        Emax=decimal.MAX_EMAX,
        Emin=decimal.MIN_EMIN,
        traps=[decimal.InvalidOperation, decimal.DivisionByZero, decimal.Overflow, decimal.Inexact],
    )


def _apply(
    name: str,
    operation: Callable[[decimal.Context, Decimal, Decimal], Decimal],
    a: NumericInput,
    b: NumericInput,
    precision: Optional[int],
) -> Decimal:
    left = parse_decimal(a)
    right = parse_decimal(b)
    context = _arithmetic_context(precision)
    try:
        return operation(context, left, right)
    except decimal.DivisionByZero:
        raise DivisionByZero(f"{name}({left}, {right}): division by zero")
    except (decimal.Inexact, decimal.Overflow):
        raise PrecisionOverflow(
            f"{name}({left}, {right}) needs more than {context.prec} significant digits"
        )


def add(a: NumericInput, b: NumericInput, precision: Optional[int] = None) -> Decimal:
    """Exact a + b."""
    return _apply("add", decimal.Context.add, a, b, precision)


def sub(a: NumericInput, b: NumericInput, precision: Optional[int] = None) -> Decimal:
    """Exact a - b."""
    return _apply("sub", decimal.Context.subtract, a, b, precision)


def mul(a: NumericInput, b: NumericInput, precision: Optional[int] = None) -> Decimal:
    """Exact a * b."""
    return _apply("mul", decimal.Context.multiply, a, b, precision)


def div(a: NumericInput, b: NumericInput, precision: Optional[int] = None) -> Decimal:
    """
    Exact a / b.

    Raises:
        DivisionByZero: b is zero (including 0 / 0)
        PrecisionOverflow: the quotient does not terminate within `precision`
                           significant digits (e.g. 1 / 3)
    """
    if parse_decimal(b).is_zero():
        raise DivisionByZero(f"div({a}, {b}): division by zero")
    return _apply("div", decimal.Context.divide, a, b, precision)


def div_truncated(a: NumericInput, b: NumericInput, places: int) -> Decimal:
    """
    a / b cut toward zero to `places` fractional digits.

    For quotients that need not terminate, such as an average fill price.
    The division itself runs in a ROUND_DOWN context wide enough to hold
    `places` fractional digits, so the result is never rounded up.

    Example:
        >>> div_truncated("1", "3", 8)
        Decimal('0.33333333')
    """
    if places < 0:
        raise InvalidArgument(f"places must be >= 0, got {places}")

    left = parse_decimal(a)
    right = parse_decimal(b)
    if right.is_zero():
        raise DivisionByZero(f"div_truncated({left}, {right}): division by zero")

    needed = max(left.adjusted() - right.adjusted() + 2, 0) + places + 1
    context = decimal.Context(
        prec=max(needed, settings.decimal_precision),
        rounding=decimal.ROUND_DOWN,
        Emax=decimal.MAX_EMAX,
        Emin=decimal.MIN_EMIN,
        traps=[decimal.InvalidOperation],
    )
    return truncate(context.divide(left, right), places)


# ============================================
# Pydantic Field Type
# ============================================

DecimalValue = Annotated[
    Decimal,
    BeforeValidator(parse_decimal),
    PlainSerializer(format_decimal, return_type=str, when_used="json"),
]
"""Decimal field type for canonical models: strict parsing, canonical JSON text."""
