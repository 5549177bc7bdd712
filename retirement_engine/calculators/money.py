"""Fixed-point helpers shared by the ledger and tax code.

Balances are kept in cents and rates in :class:`decimal.Decimal` so that long
monthly horizons do not accumulate binary rounding drift.

>>> to_money(0.1) + to_money(0.2)
Decimal('0.30')
"""

from __future__ import annotations

from decimal import ROUND_CEILING, ROUND_HALF_EVEN, Decimal
from typing import Union

Number = Union[Decimal, float, int, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
RATE_PLACES = Decimal("1e-10")


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.1 as Decimal("0.1") rather than its binary expansion
    return Decimal(str(value))


def to_money(value: Number) -> Decimal:
    """Quantize ``value`` to cents using banker's rounding."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_EVEN)


def to_money_up(value: Number) -> Decimal:
    """Quantize to cents, rounding towards +infinity."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_CEILING)


def to_rate(value: Number) -> Decimal:
    """Rates coming from floats are rounded to 10 places."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value)).quantize(RATE_PLACES, rounding=ROUND_HALF_EVEN).normalize()


__all__ = ["CENT", "ZERO", "Number", "to_decimal", "to_money", "to_money_up", "to_rate"]
