"""
receipt_engines.aggregation -- Document-level totals for a goods receipt.

Responsibility:
    Sum valuated received lines into items, discount, taxable and tax
    totals, apply the document-level discount after line discounts, and add
    other charges and the rounding (coin) adjustment to reach a balanced
    grand total.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumes ``receipt_engines.valuation`` output.

Invariants enforced:
    - Balance: grand_total == net_total + tax_total + other_charges
      + rounding_adjustment, for any line set including the empty one.
    - Every line is re-valuated from its current fields before summing, so
      a cached valuation that predates an edit is never used.
    - Full recompute on every call; there is no incremental state.
    - The document discount is clamped (percent to [0, 100], amount to
      [0, taxable_total]) so net totals are never negative.

Failure modes:
    - None.  Bad numeric inputs are clamped.

Usage:
    from receipt_engines.aggregation import DocumentAggregator

    totals = DocumentAggregator().aggregate(
        lines=document.lines,
        doc_discount=DocumentDiscount(value=Decimal("5"), is_percent=True),
        other_charges=Decimal("0"),
        rounding_adjustment=Decimal("0"),
    )
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from decimal import Decimal

from receipt_engines.tracer import traced_engine
from receipt_engines.valuation import valuate
from receipt_kernel.domain.dtos import (
    DocumentDiscount,
    GoodsReceipt,
    ReceiptTotals,
    ReceivedLine,
)
from receipt_kernel.domain.values import (
    HUNDRED,
    ZERO,
    clamp,
    non_negative,
    quantize,
    to_decimal,
)
from receipt_kernel.logging_config import get_logger

logger = get_logger("engines.aggregation")


def document_discount_amount(
    discount: DocumentDiscount,
    taxable_total: Decimal,
    places: int = 2,
) -> Decimal:
    """
    Resolve a document discount against the post-line-discount taxable total.

    Percent mode: taxable_total x pct / 100 (pct clamped to [0, 100]).
    Amount mode: the literal amount clamped to [0, taxable_total].
    """
    base = non_negative(taxable_total)
    if discount.is_percent:
        pct = clamp(discount.value, ZERO, HUNDRED)
        return quantize(base * pct / HUNDRED, places)
    return quantize(min(non_negative(discount.value), base), places)


class DocumentAggregator:
    """
    Aggregate valuated lines into document totals.

    Contract:
        Pure function of its inputs.  No I/O, no database access.
    Guarantees:
        - ``grand_total`` balances exactly against its components.
        - Empty line set yields zero line totals; other charges and
          rounding adjustment still flow into the grand total.
    Non-goals:
        - Does not validate the document; see ``DocumentValidator``.
    """

    def __init__(self, places: int = 2, quantity_places: int | None = None):
        self.places = places
        self.quantity_places = quantity_places

    @traced_engine(
        "aggregation",
        "1.0",
        fingerprint_fields=("lines", "doc_discount", "other_charges", "rounding_adjustment"),
    )
    def aggregate(
        self,
        lines: Sequence[ReceivedLine],
        doc_discount: DocumentDiscount | None = None,
        other_charges: Decimal | int | str = ZERO,
        rounding_adjustment: Decimal | int | str = ZERO,
    ) -> ReceiptTotals:
        """
        Compute document totals.

        Args:
            lines: Received lines; any cached valuation is recomputed.
            doc_discount: Document-level discount (amount or percent).
            other_charges: Freight and similar charges added to the total.
            rounding_adjustment: Coin adjustment; may be negative.

        Returns:
            ReceiptTotals with every figure rounded to ``places``.
        """
        t0 = time.monotonic()
        places = self.places
        discount = doc_discount or DocumentDiscount()

        items_total = ZERO
        line_discount_total = ZERO
        taxable_total = ZERO
        cgst_total = ZERO
        sgst_total = ZERO
        total_quantity = ZERO
        total_free_quantity = ZERO

        for line in lines:
            v = valuate(line, places, self.quantity_places).valuation
            items_total += v.base_amount
            line_discount_total += v.discount_amount
            taxable_total += v.taxable_amount
            cgst_total += v.cgst_amount
            sgst_total += v.sgst_amount
            total_quantity += v.quantity
            total_free_quantity += non_negative(line.free_qty)

        doc_discount_amount = document_discount_amount(discount, taxable_total, places)
        final_taxable_total = taxable_total - doc_discount_amount
        tax_total = cgst_total + sgst_total
        net_total = final_taxable_total

        other = quantize(to_decimal(other_charges), places)
        rounding = quantize(to_decimal(rounding_adjustment), places)
        grand_total = net_total + tax_total + other + rounding

        totals = ReceiptTotals(
            items_total=quantize(items_total, places),
            line_discount_total=quantize(line_discount_total, places),
            taxable_total=quantize(taxable_total, places),
            doc_discount_amount=doc_discount_amount,
            final_taxable_total=quantize(final_taxable_total, places),
            cgst_total=quantize(cgst_total, places),
            sgst_total=quantize(sgst_total, places),
            tax_total=quantize(tax_total, places),
            net_total=quantize(net_total, places),
            other_charges=other,
            rounding_adjustment=rounding,
            grand_total=quantize(grand_total, places),
            line_count=len(lines),
            total_quantity=self._round_quantity(total_quantity),
            total_free_quantity=self._round_quantity(total_free_quantity),
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("aggregation_completed", extra={
            "line_count": totals.line_count,
            "items_total": str(totals.items_total),
            "doc_discount_amount": str(totals.doc_discount_amount),
            "tax_total": str(totals.tax_total),
            "grand_total": str(totals.grand_total),
            "duration_ms": duration_ms,
        })
        return totals

    def _round_quantity(self, value: Decimal) -> Decimal:
        if self.quantity_places is None:
            return value
        return quantize(value, self.quantity_places)

    def aggregate_document(self, document: GoodsReceipt) -> ReceiptTotals:
        """Aggregate a whole document using its header adjustments."""
        header = document.header
        return self.aggregate(
            lines=document.lines,
            doc_discount=header.discount,
            other_charges=header.other_charges,
            rounding_adjustment=header.rounding_adjustment,
        )
