"""Unit tests for currency helpers"""

import pytest
from decimal import Decimal
from rental_engine.utils.money import format_money, multiply, to_money


def test_to_money_rounds_half_up():
    assert to_money("10.005") == Decimal("10.01")
    assert to_money("10.004") == Decimal("10.00")
    assert to_money(7) == Decimal("7.00")


def test_to_money_rejects_floats():
    with pytest.raises(TypeError):
        to_money(10.5)


@pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
def test_to_money_rejects_non_numbers(value):
    with pytest.raises(ValueError):
        to_money(value)


def test_multiply_rounds_once_per_line():
    assert multiply(Decimal("33.335"), 3) == Decimal("100.02")


def test_format_money():
    assert format_money(Decimal("1234.5"), "INR") == "INR 1,234.50"
