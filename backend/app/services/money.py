"""Decimal helpers shared by the commission services."""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value) -> Optional[Decimal]:
    """Coerce a DB/JSON value to Decimal, returning None for blanks and junk."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).replace(",", "").strip())
    except (InvalidOperation, ValueError):
        return None


def money(value) -> Decimal:
    """Round to cents, half-up."""
    return (to_decimal(value) or ZERO).quantize(CENT, rounding=ROUND_HALF_UP)
