"""Decimal helpers for whole-unit currency arithmetic.

The payroll currency has no subunits in practice, so every computed amount
is rounded to a whole unit. Fixed amounts configured by HR are kept as given.
"""

from __future__ import annotations

from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Any, Mapping

ZERO = Decimal("0")
WHOLE_UNIT = Decimal("1")


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, strings and floats to ``Decimal`` without float noise."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    return Decimal(str(value))


def round_half_up(value: Any) -> Decimal:
    """Round to the nearest whole unit, halves away from zero."""
    return to_decimal(value).quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


def ceil_whole(value: Any) -> Decimal:
    return to_decimal(value).quantize(WHOLE_UNIT, rounding=ROUND_CEILING)


def normalize(value: Any) -> Decimal:
    """Strip trailing zeros so 50000.00 and 50000 serialise the same way."""
    d = to_decimal(value)
    if d == d.to_integral_value():
        return d.quantize(WHOLE_UNIT)
    return d.normalize()


def total(amounts: Mapping[str, Decimal]) -> Decimal:
    return sum(amounts.values(), ZERO)


def amounts_to_json(amounts: Mapping[str, Decimal]) -> dict[str, str]:
    """Serialise a code → amount map for a JSON column."""
    return {code: str(normalize(amount)) for code, amount in amounts.items()}


def amounts_from_json(raw: Mapping[str, Any] | None) -> dict[str, Decimal]:
    return {code: to_decimal(amount) for code, amount in (raw or {}).items()}
