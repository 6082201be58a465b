"""
Utility functions shared by the ledger services.

Monetary helpers (rounding, safe conversion) and calendar-month arithmetic
used by the balance engine and the snapshot batch.
"""

from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterator, Optional, Tuple

from dateutil.relativedelta import relativedelta
from django.utils import timezone

ZERO_DECIMAL = Decimal('0.00')


def today() -> date:
    """
    Returns today's date in the active timezone. Useful for mocking/testing.
    """
    return timezone.localdate()


def round_decimal(value: Decimal, precision: str = '0.01') -> Decimal:
    """
    Rounds a Decimal to given precision using ROUND_HALF_UP method.

    Args:
        value (Decimal): The decimal number to round.
        precision (str): The decimal precision (default: 2 places).

    Returns:
        Decimal: Rounded decimal.
    """
    return value.quantize(Decimal(precision), rounding=ROUND_HALF_UP)


def to_decimal(value) -> Decimal:
    """
    Safely converts a number to Decimal without rounding.
    None and unparseable values become zero.
    """
    if value is None:
        return ZERO_DECIMAL
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (ValueError, TypeError, InvalidOperation):
        return ZERO_DECIMAL


def safe_divide(numerator: Decimal, denominator: Decimal) -> Decimal:
    """
    Division guarded against a non-positive denominator; returns zero instead of raising.
    """
    if not denominator or denominator <= 0:
        return ZERO_DECIMAL
    return numerator / denominator


def percentage_of(amount: Decimal, base: Decimal) -> Decimal:
    """amount / base * 100, zero when base is not positive."""
    return safe_divide(amount, base) * Decimal('100')


def month_start(value: date) -> date:
    return value.replace(day=1)


def next_month_start(value: date) -> date:
    return month_start(value) + relativedelta(months=1)


def previous_month(year: int, month: int) -> Tuple[int, int]:
    first = date(year, month, 1) - relativedelta(months=1)
    return first.year, first.month


def day_before(value: date) -> date:
    return value - timedelta(days=1)


def iter_months(start: date, end: date) -> Iterator[Tuple[int, int]]:
    """
    Yields (year, month) for every calendar month from start's month to end's month, inclusive.
    """
    cursor = month_start(start)
    last = month_start(end)
    while cursor <= last:
        yield cursor.year, cursor.month
        cursor += relativedelta(months=1)


def previous_period(period_start: date, period_end: date) -> Tuple[date, date]:
    """
    The period of equal length ending the day before period_start.
    """
    length = period_end - period_start
    previous_end = day_before(period_start)
    return previous_end - length, previous_end


def optional_round(value: Optional[Decimal]) -> Optional[Decimal]:
    return round_decimal(value) if value is not None else None
