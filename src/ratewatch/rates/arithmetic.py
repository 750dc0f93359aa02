"""
Decimal-safe multiplication

Each operand is written out as digits plus a decimal-place count, the digit
strings are multiplied as integers and the point is re-inserted at
``len(product) - (scale_a + scale_b)``. This keeps ordinary decimal inputs
exact (0.1 * 0.2 == 0.02) regardless of how they were passed in.
"""

from decimal import Decimal
from typing import Union

Number = Union[Decimal, int, float, str]


def _render(value: Number) -> str:
    # repr() gives the shortest round-tripping form of a float
    if isinstance(value, float):
        return repr(value)
    return str(value).strip()


def _split(text: str) -> tuple[bool, str, int] | None:
    """Split a plain decimal string into (negative, digits, scale)."""
    if "e" in text or "E" in text:
        return None

    negative = text.startswith("-")
    if text[:1] in "+-":
        text = text[1:]

    integer_part, _, fraction_part = text.partition(".")
    digits = integer_part + fraction_part
    if not digits or not digits.isdigit() or not digits.isascii():
        return None
    return negative, digits, len(fraction_part)


def _strip_fraction_zeros(text: str) -> str:
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _native_multiply(a: Number, b: Number) -> Decimal:
    return Decimal(_render(a)) * Decimal(_render(b))


def multiply_decimal(a: Number, b: Number) -> Decimal:
    """
    Multiply two decimal numbers without binary floating-point drift.

    Operands in scientific notation, or containing anything besides an
    optional sign, digits and one decimal point, fall back to plain
    Decimal multiplication.

    Args:
        a: First operand
        b: Second operand

    Returns:
        Exact product as Decimal, trailing fractional zeros removed
    """
    left = _split(_render(a))
    right = _split(_render(b))
    if left is None or right is None:
        return _native_multiply(a, b)

    a_negative, a_digits, a_scale = left
    b_negative, b_digits, b_scale = right
    scale = a_scale + b_scale

    product = str(int(a_digits) * int(b_digits))

    if scale == 0:
        result = product
    else:
        padded = product.rjust(scale + 1, "0")
        point = len(padded) - scale
        result = f"{padded[:point]}.{padded[point:]}"

    result = _strip_fraction_zeros(result)
    if a_negative != b_negative and result.strip("0.") != "":
        result = "-" + result

    return Decimal(result)
