"""
Integer currency helpers.

Amounts are whole units of the smallest currency unit (CLP has no cents).
Rounding is half-up, applied at the point each amount is computed.
"""

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional, Union

Number = Union[int, float, Decimal]


def round_amount(value: Number) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def coerce_amount(value: object) -> int:
    """
    Best-effort conversion of user/legacy input to a non-negative integer.

    Returns 0 for anything missing, non-numeric, non-finite, negative or
    too large to round exactly.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return 0
    if not number.is_finite() or number < 0:
        return 0
    try:
        return round_amount(number)
    except InvalidOperation:
        # More digits than the decimal context holds
        return 0


def parse_positive_amount(value: object) -> Optional[int]:
    """
    Parse an amount typed in a form; a decimal comma is accepted ("12,5" -> 13).

    Returns None when the amount is not a finite number greater than zero,
    or has too many digits to round exactly.
    """
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip().replace(",", ".")
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    try:
        rounded = round_amount(number)
    except InvalidOperation:
        return None
    return rounded if rounded > 0 else None


def apply_percent(amount: int, percent: Number) -> int:
    """``round(amount x percent)`` without binary float artifacts."""
    return round_amount(Decimal(amount) * Decimal(str(percent)))


def sum_amounts(amounts: Iterable[Number]) -> int:
    return round_amount(sum((Decimal(str(a)) for a in amounts), Decimal(0)))
