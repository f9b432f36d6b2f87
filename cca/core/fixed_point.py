"""
Fixed-point helpers for the clearing engine.

Prices are Q96 fixed-point values (currency per unit scaled by 2^96) and
issuance fractions are expressed in MPS (1e7 = 100%). Every multiplication
that can overflow a 256-bit word goes through ``mul_div``, which computes the
full-precision product before dividing and then checks the result against the
word bound instead of wrapping.

Rounding is chosen per call site:
- amounts paid out to a bidder round down
- amounts charged to a bidder round up
"""

from cca.core.errors import ArithmeticBoundsError


# =============================================================================
# Constants
# =============================================================================

# 1e7 = 100% of supply
MPS = 10_000_000

# Q96 fixed-point scale
RESOLUTION = 96
Q96 = 1 << RESOLUTION

MAX_UINT256 = (1 << 256) - 1

# End-of-book sentinel for the tick list
MAX_TICK_PRICE = MAX_UINT256

# Highest price a bid may carry; keeps amount * price well inside 256 bits
MAX_BID_PRICE = 1 << 224


# =============================================================================
# Checked Arithmetic
# =============================================================================


def _check_bounds(value: int) -> int:
    if value < 0:
        raise ArithmeticBoundsError(f"Underflow: {value}")
    if value > MAX_UINT256:
        raise ArithmeticBoundsError(f"Overflow: {value} exceeds 256 bits")
    return value


def checked_add(a: int, b: int) -> int:
    """Add two unsigned values, raising instead of wrapping."""
    return _check_bounds(a + b)


def checked_sub(a: int, b: int) -> int:
    """Subtract two unsigned values, raising on underflow."""
    return _check_bounds(a - b)


def mul_div(a: int, b: int, denominator: int, round_up: bool = False) -> int:
    """
    Calculate (a * b) / denominator with full precision and controlled rounding.

    Args:
        a: First multiplicand
        b: Second multiplicand
        denominator: Divisor
        round_up: If True, round up (charging users).
                  If False, round down (paying users).

    Returns:
        The quotient, checked against the 256-bit bound
    """
    if a < 0 or b < 0:
        raise ArithmeticBoundsError(f"mul_div operands must be unsigned: {a}, {b}")
    if denominator <= 0:
        raise ArithmeticBoundsError("mul_div denominator must be positive")

    product = a * b
    if round_up:
        result = -(-product // denominator)
    else:
        result = product // denominator
    return _check_bounds(result)


def div_up(a: int, b: int) -> int:
    """Unsigned division rounding up."""
    return mul_div(a, 1, b, round_up=True)


def floor_to_multiple(value: int, spacing: int) -> int:
    """Largest multiple of spacing that is <= value."""
    return value - value % spacing


def ceil_to_multiple(value: int, spacing: int) -> int:
    """Smallest multiple of spacing that is >= value."""
    remainder = value % spacing
    if remainder == 0:
        return value
    return value + spacing - remainder


# =============================================================================
# Price Conversions
# =============================================================================


def currency_to_units(currency: int, price: int, round_up: bool = False) -> int:
    """Units bought by `currency` at a Q96 price."""
    return mul_div(currency, Q96, price, round_up=round_up)


def units_to_currency(units: int, price: int, round_up: bool = False) -> int:
    """Currency owed for `units` at a Q96 price."""
    return mul_div(units, price, Q96, round_up=round_up)


def fraction_of(amount: int, mps: int, round_up: bool = False) -> int:
    """Apply an MPS fraction to an amount."""
    return mul_div(amount, mps, MPS, round_up=round_up)


__all__ = [
    "MPS",
    "Q96",
    "RESOLUTION",
    "MAX_UINT256",
    "MAX_TICK_PRICE",
    "MAX_BID_PRICE",
    "checked_add",
    "checked_sub",
    "mul_div",
    "div_up",
    "floor_to_multiple",
    "ceil_to_multiple",
    "currency_to_units",
    "units_to_currency",
    "fraction_of",
]
