from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


class ValueKind(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def to_money(value) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def apply_kind(base: Decimal, value: Decimal, kind: ValueKind | str) -> Decimal:
    """Resolve a percentage-or-fixed value against ``base``, rounded to the cent."""
    if ValueKind(kind) == ValueKind.PERCENTAGE:
        return to_money(base * value / HUNDRED)
    return to_money(value)


def money_str(value) -> str:
    return format(to_money(value), "f")
