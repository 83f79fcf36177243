"""Rental pricing from per-day and per-month rates"""

from datetime import date
from decimal import Decimal

from rental_engine.domain.exceptions import InvalidRangeError
from rental_engine.domain.models import PriceBreakdown, PriceLine, RentRates
from rental_engine.utils.date_utils import days_between
from rental_engine.utils.money import ZERO, multiply, to_money

DEFAULT_DAYS_PER_MONTH = 30


def price_breakdown(
    rates: RentRates,
    start_date: date,
    end_date: date,
    days_per_month: int = DEFAULT_DAYS_PER_MONTH,
) -> PriceBreakdown:
    """
    Split [start_date, end_date) into billable months and days.

    Pricing policy:
    - A "month" is a fixed block of `days_per_month` days (30 by default),
      not a calendar month. 2024-01-01..2024-01-31 is one month.
    - Remaining days are billed at the daily rate, capped at one monthly
      rate so a partial month never costs more than a full one.
    - Every line and the total are rounded half-up to the minor unit.

    Example:
        rates {day: 50, month: 1200}, 40 days
        -> 1 month (1200.00) + 10 days (500.00) = 1700.00

    Raises:
        InvalidRangeError: if the range covers zero or negative days
    """
    if days_per_month <= 0:
        raise ValueError("days_per_month must be positive")

    days = days_between(start_date, end_date)
    if days <= 0:
        raise InvalidRangeError(
            f"End date {end_date.isoformat()} must be after start date {start_date.isoformat()}"
        )

    months, remainder = divmod(days, days_per_month)

    lines = []
    if months:
        lines.append(
            PriceLine(
                label=f"Monthly rate ({days_per_month} days)",
                units=months,
                unit_price=to_money(rates.rent_per_month),
                amount=multiply(rates.rent_per_month, months),
            )
        )
    if remainder:
        daily = multiply(rates.rent_per_day, remainder)
        monthly = to_money(rates.rent_per_month)
        if daily > monthly:
            lines.append(
                PriceLine(
                    label=f"Partial month ({remainder} days, capped at monthly rate)",
                    units=1,
                    unit_price=monthly,
                    amount=monthly,
                )
            )
        else:
            lines.append(
                PriceLine(
                    label="Daily rate",
                    units=remainder,
                    unit_price=to_money(rates.rent_per_day),
                    amount=daily,
                )
            )

    total = to_money(sum((line.amount for line in lines), ZERO))

    return PriceBreakdown(
        days=days,
        months=months,
        remainder_days=remainder,
        lines=lines,
        total=total,
    )


def price(
    rates: RentRates,
    start_date: date,
    end_date: date,
    days_per_month: int = DEFAULT_DAYS_PER_MONTH,
) -> Decimal:
    """Total owed for [start_date, end_date)"""
    return price_breakdown(rates, start_date, end_date, days_per_month).total
