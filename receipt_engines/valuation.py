"""
receipt_engines.valuation -- Price, discount and split-GST valuation of a received line.

Responsibility:
    Compute a single received line's base amount, discount, taxable amount,
    CGST/SGST split and line value, and apply user edits to a line with the
    field-specific preparations the receiving screen expects (pack
    conversion, combined GST rate, discount authority).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import receipt_kernel.domain.

Invariants enforced:
    - Never fails on bad numbers: negatives clamp to zero, discount percent
      clamps to [0, 100], explicit discount clamps to [0, base], accepted
      quantity clamps to received quantity, pack size clamps to >= 1.
    - Rounding: every money output is rounded half-up once, from unrounded
      intermediates.  SGST takes the remainder of the rounded total tax so
      ``cgst + sgst == total_tax`` exactly.
    - Idempotence: the explicit ``discount_amount`` input is never
      overwritten by the derived figure, so re-valuating an unchanged line
      yields identical results.

Failure modes:
    - ``apply_line_edit`` raises ValueError for unknown or identity fields
      (caller programming error).

Usage:
    from receipt_engines.valuation import valuate

    line = valuate(ReceivedLine(product_id=1, received_qty=10, unit_price=100,
                                discount_percent=10, cgst_percent=6,
                                sgst_percent=6, tax_after_discount=True))
    line.valuation.line_value   # Decimal("1008.00")
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import fields, replace
from decimal import Decimal
from typing import Any

from receipt_engines.tracer import traced_engine
from receipt_kernel.domain.dtos import LineValuation, ReceivedLine
from receipt_kernel.domain.values import (
    HUNDRED,
    ONE,
    ZERO,
    clamp,
    non_negative,
    quantize,
    to_decimal,
)
from receipt_kernel.logging_config import get_logger

logger = get_logger("engines.valuation")

# Fields a caller may not change through an edit: identity and derived data.
_PROTECTED_FIELDS = frozenset({"product_id", "source_detail_id", "serial_no", "valuation"})
# Pseudo-fields that are translated into real fields before valuation.
_VIRTUAL_FIELDS = frozenset({"received_packs", "gst_percent"})
_LINE_FIELDS = frozenset(f.name for f in fields(ReceivedLine))


def compute_valuation(
    line: ReceivedLine,
    places: int = 2,
    quantity_places: int | None = None,
) -> LineValuation:
    """
    Compute the derived figures for ``line`` without touching the line.

    ``quantity_places`` rounds the effective quantity before pricing; None
    keeps it exact.

    Postconditions:
        - quantity = accepted (clamped to received) when accepted > 0,
          else received.
        - discount = explicit amount when > 0, else base x percent / 100,
          clamped to [0, base].
        - tax is charged on the taxable amount when ``tax_after_discount``,
          otherwise on the base amount.
        - line_value = taxable + total tax.
    """
    received = non_negative(line.received_qty)
    accepted = non_negative(line.accepted_qty)
    quantity = min(accepted, received) if accepted > ZERO else received
    if quantity_places is not None:
        quantity = quantize(quantity, quantity_places)

    unit_price = non_negative(line.unit_price)
    pack_size = max(ONE, to_decimal(line.pack_size, ONE))

    base = quantity * unit_price

    explicit_discount = non_negative(line.discount_amount)
    if explicit_discount > ZERO:
        discount = explicit_discount
    else:
        discount = base * clamp(line.discount_percent, ZERO, HUNDRED) / HUNDRED
    discount = min(discount, base)

    taxable = max(ZERO, base - discount)
    tax_base = taxable if line.tax_after_discount else base

    cgst_rate = non_negative(line.cgst_percent)
    sgst_rate = non_negative(line.sgst_percent)
    combined_rate = cgst_rate + sgst_rate
    total_tax = tax_base * combined_rate / HUNDRED

    total_tax_rounded = quantize(total_tax, places)
    if combined_rate > ZERO:
        cgst_amount = quantize(total_tax * cgst_rate / combined_rate, places)
        sgst_amount = total_tax_rounded - cgst_amount
    else:
        cgst_amount = quantize(ZERO, places)
        sgst_amount = quantize(ZERO, places)

    return LineValuation(
        quantity=quantity,
        base_amount=quantize(base, places),
        pack_price=quantize(unit_price * pack_size, places),
        discount_amount=quantize(discount, places),
        taxable_amount=quantize(taxable, places),
        tax_base=quantize(tax_base, places),
        total_tax_amount=total_tax_rounded,
        cgst_amount=cgst_amount,
        sgst_amount=sgst_amount,
        line_value=quantize(taxable + total_tax, places),
    )


@traced_engine("valuation", "1.0", fingerprint_fields=("line", "places", "quantity_places"))
def valuate(
    line: ReceivedLine,
    places: int = 2,
    quantity_places: int | None = None,
) -> ReceivedLine:
    """
    Return ``line`` with its ``valuation`` recomputed.

    Pure: the input line is not modified.
    """
    valuation = compute_valuation(line, places, quantity_places)
    logger.debug("line_valuated", extra={
        "product_id": line.product_id,
        "quantity": str(valuation.quantity),
        "base_amount": str(valuation.base_amount),
        "discount_amount": str(valuation.discount_amount),
        "total_tax_amount": str(valuation.total_tax_amount),
        "line_value": str(valuation.line_value),
    })
    return replace(line, valuation=valuation)


def valuate_all(
    lines: Iterable[ReceivedLine],
    places: int = 2,
    quantity_places: int | None = None,
) -> tuple[ReceivedLine, ...]:
    """Valuate every line, preserving order."""
    return tuple(valuate(line, places, quantity_places) for line in lines)


def derive_discount_percent(line: ReceivedLine, places: int = 2) -> Decimal:
    """
    Percentage that reproduces the line's explicit discount amount.

    Returns zero when the line has no base amount.
    """
    base = compute_valuation(replace(line, discount_amount=ZERO), places).base_amount
    if base <= ZERO:
        return quantize(ZERO, places)
    amount = min(non_negative(line.discount_amount), base)
    return quantize(amount * HUNDRED / base, places)


def with_received_packs(line: ReceivedLine, packs: Decimal | int | str, places: int = 2) -> ReceivedLine:
    """Set received (and accepted) quantity from a number of packs."""
    return apply_line_edit(line, {"received_packs": packs}, places)


def with_gst_rate(line: ReceivedLine, rate: Decimal | int | str, places: int = 2) -> ReceivedLine:
    """Split a combined GST rate evenly into CGST and SGST."""
    return apply_line_edit(line, {"gst_percent": rate}, places)


def apply_line_edit(
    line: ReceivedLine,
    changes: Mapping[str, Any],
    places: int = 2,
    quantity_places: int | None = None,
) -> ReceivedLine:
    """
    Apply user edits to a line and return it re-valuated.

    Field-specific preparations:
        - ``received_packs``: received quantity = packs x pack size, and
          accepted quantity follows it.
        - ``received_qty``: accepted quantity follows when it was tracking
          the old received quantity and is not edited in the same call.
        - ``gst_percent``: split evenly into CGST and SGST, each half rounded
          to ``places``; the halves are stored rates, so 0.25 becomes
          0.13 + 0.13.
        - ``discount_percent``: becomes authoritative (explicit amount cleared).
        - ``discount_amount``: becomes authoritative; the percent is updated
          to the equivalent rate for display.
        - ``pack_size`` with ``received_packs``: the new pack size is used.

    Raises:
        ValueError: for identity/derived fields or unknown field names.
    """
    unknown = set(changes) - _LINE_FIELDS - _VIRTUAL_FIELDS
    if unknown:
        raise ValueError(f"Unknown line field(s): {', '.join(sorted(unknown))}")
    protected = set(changes) & _PROTECTED_FIELDS
    if protected:
        raise ValueError(f"Line field(s) cannot be edited: {', '.join(sorted(protected))}")

    updates: dict[str, Any] = {
        k: v for k, v in changes.items() if k not in _VIRTUAL_FIELDS
    }

    if "received_qty" in updates and "accepted_qty" not in updates:
        if line.accepted_qty == line.received_qty:
            updates["accepted_qty"] = updates["received_qty"]

    if "received_packs" in changes:
        pack_size = max(ONE, to_decimal(updates.get("pack_size", line.pack_size), ONE))
        received = non_negative(changes["received_packs"]) * pack_size
        updates["received_qty"] = received
        updates.setdefault("accepted_qty", received)

    if "gst_percent" in changes:
        half = quantize(non_negative(changes["gst_percent"]) / 2, places)
        updates.setdefault("cgst_percent", half)
        updates.setdefault("sgst_percent", half)

    if "discount_percent" in updates and "discount_amount" not in updates:
        updates["discount_amount"] = ZERO

    edited = replace(line, **updates)

    if "discount_amount" in updates and "discount_percent" not in updates:
        edited = replace(edited, discount_percent=derive_discount_percent(edited, places))

    logger.debug("line_edited", extra={
        "product_id": line.product_id,
        "fields": sorted(changes),
    })
    return valuate(edited, places, quantity_places)
