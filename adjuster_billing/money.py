"""Decimal arithmetic for currency and mileage values"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .exceptions import ValidationError

ZERO = Decimal('0')
CENT = Decimal('0.01')


def to_decimal(value: Any, field: str = 'value') -> Decimal:
    """
    Convert an input value to a Decimal.

    Accepts Decimal, int, float, and numeric strings ("150", "$1,200.50").
    Floats go through str() so 0.67 stays 0.67 instead of its binary expansion.

    Raises:
        ValidationError: for booleans, None, blanks, NaN, infinity, or
            anything that does not parse as a number.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.strip().replace('$', '').replace(',', '')
        if not cleaned:
            raise ValidationError(f"{field} must be a number, got {value!r}")
        try:
            result = Decimal(cleaned)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number, got {value!r}") from None
    else:
        raise ValidationError(f"{field} must be a number, got {value!r}")

    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number, got {value!r}")
    return result


def non_negative(value: Any, field: str = 'value') -> Decimal:
    """Convert to Decimal and reject negative values."""
    result = to_decimal(value, field)
    if result < 0:
        raise ValidationError(f"{field} must not be negative, got {value!r}")
    return result


def non_negative_int(value: Any, field: str = 'value') -> int:
    """Convert to a whole, non-negative number."""
    result = non_negative(value, field)
    if result != result.to_integral_value():
        raise ValidationError(f"{field} must be a whole number, got {value!r}")
    return int(result)


def round_miles(value: Decimal) -> Decimal:
    """Mileage is kept with 2-decimal precision."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal, show_zero: bool = True) -> str:
    """Format money value."""
    if value == 0 and not show_zero:
        return ""
    if value < 0:
        return f"-${abs(to_cents(value)):,.2f}"
    return f"${to_cents(value):,.2f}"
