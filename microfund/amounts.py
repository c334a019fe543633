"""
Amount and Date Helpers

Decimal handling for every monetary value in the ledger. NEVER uses float for
stored amounts; floats handed in from callers are converted through str.
"""

from decimal import Decimal, InvalidOperation
from datetime import date, datetime
import calendar
from typing import Union

from .exceptions import InvalidOperationError


ZERO = Decimal('0')

AmountLike = Union[Decimal, int, float, str]


def to_amount(value: AmountLike, label: str = "amount") -> Decimal:
    """Convert a caller supplied value to Decimal"""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise InvalidOperationError(f"Invalid {label}: {value!r}")
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidOperationError(f"Invalid {label}: {value!r}")

    if not result.is_finite():
        raise InvalidOperationError(f"Invalid {label}: {value!r}")
    return result


def non_negative_amount(value: AmountLike, label: str = "amount") -> Decimal:
    """Convert and require amount >= 0"""
    amount = to_amount(value, label)
    if amount < ZERO:
        raise InvalidOperationError(f"{label.capitalize()} cannot be negative: {amount}")
    return amount


def positive_amount(value: AmountLike, label: str = "amount") -> Decimal:
    """Convert and require amount > 0"""
    amount = to_amount(value, label)
    if amount <= ZERO:
        raise InvalidOperationError(f"{label.capitalize()} must be positive: {amount}")
    return amount


def add_months(start: Union[date, datetime], months: int) -> date:
    """Add months to a date, handling month-end edge cases"""
    month = start.month - 1 + months
    year = start.year + month // 12
    month = month % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def positive_term(value: int, label: str = "term") -> int:
    """Require a whole number of periods > 0"""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidOperationError(f"{label} must be a positive whole number: {value!r}")
    return value
