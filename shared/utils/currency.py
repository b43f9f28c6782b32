"""
Minor/major currency unit helpers (1 so'm = 100 tiyin).

Stored amounts are always minor units; major values are derived on the fly.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

MINOR_UNITS_PER_MAJOR = 100

Number = Union[int, float, str, Decimal]


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"not an amount: {value!r}")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"not an amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"not a finite amount: {value!r}")
    return amount


def to_minor(major: Number) -> int:
    """Convert a major-unit amount to minor units, rounding half up."""
    minor = _to_decimal(major) * MINOR_UNITS_PER_MAJOR
    return int(minor.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_major(minor: int) -> Decimal:
    return Decimal(minor) / MINOR_UNITS_PER_MAJOR


def to_major_rounded(minor: int) -> int:
    """Major units rounded half up, as shown on provider terminals."""
    return int(to_major(minor).quantize(Decimal(1), rounding=ROUND_HALF_UP))
