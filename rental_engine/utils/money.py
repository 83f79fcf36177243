"""Fixed-point currency helpers. Amounts are Decimals with two places."""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

MINOR_UNIT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, str]


def to_money(value: Number) -> Decimal:
    """
    Coerce to a currency Decimal rounded half-up to the minor unit.

    Floats are rejected: they cannot represent most cent values exactly.
    """
    if isinstance(value, float):
        raise TypeError("money values must not be floats")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(value)
    except InvalidOperation as e:
        raise ValueError(f"Invalid money value: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Invalid money value: {value!r}")
    return amount.quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


def multiply(rate: Decimal, units: int) -> Decimal:
    """rate * units, rounded to the minor unit"""
    return to_money(to_money(rate) * units)


def format_money(amount: Decimal, currency: str) -> str:
    return f"{currency} {to_money(amount):,.2f}"
