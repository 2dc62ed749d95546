"""
Money helpers shared by the offer engine and the wallet ledger.
Amounts are Decimals with two decimal places.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from apps.common.types import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_money(value: Any, field: str = "amount") -> Decimal:
    """Coerce ints, floats, strings and Decimals to a Decimal amount."""
    if isinstance(value, bool):
        raise ValidationError(field, f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError) as e:
            raise ValidationError(field, f"{field} must be a number") from e
    if not result.is_finite():
        raise ValidationError(field, f"{field} must be a finite number")
    return result


def round_money(value: Decimal) -> Decimal:
    """Round to cents, halves away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal) -> str:
    """Render 500.00 as "500" and 499.5 as "499.50" for messages."""
    if value == value.to_integral_value():
        return str(value.to_integral_value())
    return str(round_money(value))
