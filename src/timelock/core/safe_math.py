"""
Bounds-checked integer helpers for vault arithmetic.

Amounts are uint256 values and timestamps are uint64 values, matching the
widths used by EVM-style contract storage. Results that leave those ranges
are rejected instead of wrapping.
"""

from __future__ import annotations

UINT64_MAX = 2**64 - 1
UINT256_MAX = 2**256 - 1


class ArithmeticBoundsError(ValueError):
    """Raised when a checked operation leaves its unsigned range."""
    pass


def checked_add_signed(base: int, offset: int, upper: int = UINT64_MAX) -> int:
    """
    Add a signed offset to an unsigned base.

    Args:
        base: Unsigned starting value (e.g. a timestamp)
        offset: Signed delta, may be negative
        upper: Inclusive upper bound of the result

    Returns:
        base + offset

    Raises:
        ArithmeticBoundsError: If the result underflows zero or exceeds upper
    """
    result = base + offset
    if result < 0:
        raise ArithmeticBoundsError(f"underflow: {base} + ({offset}) < 0")
    if result > upper:
        raise ArithmeticBoundsError(f"overflow: {base} + ({offset}) > {upper}")
    return result


def checked_add(a: int, b: int, upper: int = UINT256_MAX) -> int:
    result = a + b
    if result > upper:
        raise ArithmeticBoundsError(f"overflow: {a} + {b} > {upper}")
    return result


def checked_sub(a: int, b: int) -> int:
    if b > a:
        raise ArithmeticBoundsError(f"underflow: {a} - {b} < 0")
    return a - b


def mul_div(a: int, b: int, denominator: int) -> int:
    """Return floor(a * b / denominator) without intermediate rounding."""
    if denominator <= 0:
        raise ArithmeticBoundsError("denominator must be positive")
    return (a * b) // denominator
