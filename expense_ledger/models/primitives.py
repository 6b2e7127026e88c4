"""
Money and Date Primitives

DESIGN DECISION: Money is always a Decimal quantized to two places.
Binary floats never reach the ledger. A float handed in by a caller is
converted through its string form, so 0.1 becomes Decimal("0.10") and
not 0.1000000000000000055511151231257827.

Calendar arithmetic follows the usual "clamp to month end" rule:
Jan 31 + 1 month is the last day of February, not March 2/3.
"""

import calendar
from datetime import date, timedelta
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Annotated, Union

from pydantic import BeforeValidator, Field


CENT = Decimal("0.01")
ZERO = Decimal("0.00")

AmountInput = Union[Decimal, int, float, str]


class MoneyFormatError(ValueError):
    """Value cannot be read as a two-place decimal amount."""
    pass


def to_money(value: AmountInput) -> Decimal:
    """
    Convert a user-supplied value into a two-place Decimal.

    Raises:
        MoneyFormatError: If the value is not a finite number or carries
            more precision than cents.
    """
    if isinstance(value, bool):
        raise MoneyFormatError(f"Not an amount: {value!r}")

    try:
        if isinstance(value, float):
            amount = Decimal(repr(value))
        else:
            amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise MoneyFormatError(f"Not an amount: {value!r}")

    if not amount.is_finite():
        raise MoneyFormatError(f"Amount must be finite: {value!r}")

    try:
        quantized = amount.quantize(CENT, rounding=ROUND_HALF_EVEN)
    except InvalidOperation:
        raise MoneyFormatError(f"Amount is out of range: {value!r}")
    if quantized != amount:
        raise MoneyFormatError(
            f"Amount has more than two decimal places: {value!r}"
        )
    return quantized


def _coerce_money(value):
    try:
        return to_money(value)
    except MoneyFormatError as e:
        raise ValueError(str(e))


# Any two-place amount (balances may be zero or negative after a manual correction)
Money = Annotated[Decimal, BeforeValidator(_coerce_money)]

# Strictly positive amount (expenses, templates, budgets)
PositiveMoney = Annotated[Decimal, BeforeValidator(_coerce_money), Field(gt=0)]


# =============================================================================
# CALENDAR ARITHMETIC
# =============================================================================

def add_days(day: date, days: int) -> date:
    return day + timedelta(days=days)


def add_weeks(day: date, weeks: int) -> date:
    return day + timedelta(weeks=weeks)


def add_months(day: date, months: int) -> date:
    """Add calendar months, clamping to the last day of the target month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def add_years(day: date, years: int) -> date:
    """Add calendar years. Feb 29 lands on Feb 28 in non-leap years."""
    return add_months(day, years * 12)
