"""Decimal helpers for money and day counts."""
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value: Any) -> Decimal:
    """Round to 2 decimal places, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def floor_money(value: Any) -> Decimal:
    """Truncate to 2 decimal places."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_DOWN)
