"""
Values -- Decimal coercion, clamping and rounding for receipt arithmetic.

Responsibility:
    Provides the numeric primitives every engine uses: conversion of
    caller-supplied numbers into ``Decimal``, clamping to valid boundaries,
    and half-up rounding to a fixed number of places.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every engine module. No outward dependencies.

Invariants enforced:
    - Decimal-only arithmetic: floats are converted through ``str()`` so
      that ``0.1`` becomes ``Decimal("0.1")`` and never a binary artifact.
    - Never raises on bad numeric input: ``None``, NaN, infinities and
      unparseable strings coerce to zero. Engines clamp rather than reject.
    - Rounding is ROUND_HALF_UP and applied by the caller exactly once per
      derived figure.

Failure modes:
    - None. Every function returns a Decimal.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """
    Convert a caller-supplied number into a finite Decimal.

    Postconditions:
        - Returns ``default`` for None, bool, NaN, infinities, and anything
          that ``Decimal(str(value))`` cannot parse.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return default
    if not result.is_finite():
        return default
    return result


def non_negative(value: Any) -> Decimal:
    """Coerce to Decimal and clamp negatives to zero."""
    result = to_decimal(value)
    return result if result > ZERO else ZERO


def clamp(value: Any, lower: Decimal, upper: Decimal) -> Decimal:
    """Coerce to Decimal and clamp into ``[lower, upper]``."""
    result = to_decimal(value)
    if result < lower:
        return lower
    if result > upper:
        return upper
    return result


def quantize(value: Decimal, places: int) -> Decimal:
    """Round half-up to ``places`` decimal places."""
    exponent = Decimal(1).scaleb(-places) if places > 0 else ONE
    return value.quantize(exponent, rounding=ROUND_HALF_UP)
