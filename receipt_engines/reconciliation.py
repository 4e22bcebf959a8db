"""
receipt_engines.reconciliation -- Merge PO-sourced and manual lines into one line set.

Responsibility:
    Keep the document's ordered line set consistent while lines arrive from
    two sources: expansion of a selected purchase order, and products added
    by hand.  Enforces the one-line-per-product rule across both sources and
    re-sequences presentation serial numbers after every change.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import receipt_kernel.

Invariants enforced:
    - A product appears at most once in the merged set, whatever its source.
    - Rejected operations return the input lines unchanged.
    - Serial numbers are 1..n in the merged order after every operation.
    - Replacing the PO subset never touches manual lines.

Failure modes:
    - Rejected ``ReconcileOutcome`` (``DuplicateProductError`` /
      ``LineNotFoundError`` as ``failure``) for duplicate or missing
      products.  Nothing raises.

Usage:
    from receipt_engines.reconciliation import SourceReconciler

    reconciler = SourceReconciler()
    outcome = reconciler.add_manual(document.lines, new_line)
    if outcome.accepted:
        lines = outcome.lines
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace

from receipt_engines.tracer import traced_engine
from receipt_kernel.domain.dtos import (
    CatalogProduct,
    LineSource,
    PurchaseOrder,
    ReceivedLine,
)
from receipt_kernel.domain.values import ONE
from receipt_kernel.exceptions import (
    DuplicateProductError,
    LineNotFoundError,
    ReceiptEngineError,
)
from receipt_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")


@dataclass(frozen=True)
class ReconcileOutcome:
    """
    Result of a reconciliation operation.

    ``lines`` is the new line set when accepted, or the untouched input
    when rejected.  ``failure`` carries the unraised reason.
    """

    lines: tuple[ReceivedLine, ...]
    failure: ReceiptEngineError | None = None

    @property
    def accepted(self) -> bool:
        return self.failure is None

    @property
    def error(self) -> str | None:
        return str(self.failure) if self.failure is not None else None


def resequence(lines: Iterable[ReceivedLine]) -> tuple[ReceivedLine, ...]:
    """Renumber ``serial_no`` 1..n in the given order."""
    return tuple(
        line if line.serial_no == i else replace(line, serial_no=i)
        for i, line in enumerate(lines, start=1)
    )


def _first_duplicate(lines: Iterable[ReceivedLine]) -> int | None:
    counts = Counter(line.product_id for line in lines)
    for product_id, count in counts.items():
        if count > 1:
            return product_id
    return None


class SourceReconciler:
    """
    Stateless merge and edit operations on the ordered line set.

    Contract:
        Every method takes the current lines and returns a new
        ``ReconcileOutcome`` (or tuple); inputs are never mutated.
    Guarantees:
        - ``product_id`` uniqueness across PO and manual subsets.
        - Merged order is manual lines first, then PO lines, unless
          ``manual_lines_first`` is False.
    """

    def __init__(self, manual_lines_first: bool = True):
        self.manual_lines_first = manual_lines_first

    # ------------------------------------------------------------------
    # Splitting and merging
    # ------------------------------------------------------------------

    def split(
        self, lines: Sequence[ReceivedLine],
    ) -> tuple[tuple[ReceivedLine, ...], tuple[ReceivedLine, ...]]:
        """Return ``(po_lines, manual_lines)`` preserving relative order."""
        po_lines = tuple(l for l in lines if l.source == LineSource.PO)
        manual_lines = tuple(l for l in lines if l.source == LineSource.MANUAL)
        return po_lines, manual_lines

    @traced_engine("reconciliation", "1.0", fingerprint_fields=("po_lines", "manual_lines"))
    def merge(
        self,
        po_lines: Sequence[ReceivedLine],
        manual_lines: Sequence[ReceivedLine],
    ) -> ReconcileOutcome:
        """Combine both subsets into one ordered, re-sequenced line set."""
        if self.manual_lines_first:
            combined = tuple(manual_lines) + tuple(po_lines)
        else:
            combined = tuple(po_lines) + tuple(manual_lines)

        duplicate = _first_duplicate(combined)
        if duplicate is not None:
            logger.warning("merge_rejected_duplicate", extra={"product_id": duplicate})
            return ReconcileOutcome(
                lines=tuple(po_lines) + tuple(manual_lines),
                failure=DuplicateProductError(duplicate),
            )

        merged = resequence(combined)
        logger.debug("lines_merged", extra={
            "po_count": len(po_lines),
            "manual_count": len(manual_lines),
        })
        return ReconcileOutcome(lines=merged)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def add_manual(
        self, lines: Sequence[ReceivedLine], new_line: ReceivedLine,
    ) -> ReconcileOutcome:
        """Append a manually added product unless it is already present."""
        current = tuple(lines)
        if any(l.product_id == new_line.product_id for l in current):
            logger.info("manual_line_rejected_duplicate", extra={
                "product_id": new_line.product_id,
            })
            return ReconcileOutcome(
                lines=current,
                failure=DuplicateProductError(
                    new_line.product_id,
                    f"Product {new_line.label} is already added",
                ),
            )

        manual_line = replace(new_line, source_detail_id=None)
        po_lines, manual_lines = self.split(current)
        return self.merge(po_lines, manual_lines + (manual_line,))

    def replace_po_lines(
        self, lines: Sequence[ReceivedLine], po_lines: Sequence[ReceivedLine],
    ) -> ReconcileOutcome:
        """
        Swap the PO subset wholesale, keeping manual lines.

        Rejected without change when the new PO subset repeats a product or
        collides with a manual line.  An empty ``po_lines`` clears the PO
        subset.
        """
        current = tuple(lines)
        _, manual_lines = self.split(current)
        new_po = tuple(po_lines)

        duplicate = _first_duplicate(new_po)
        if duplicate is not None:
            return ReconcileOutcome(
                lines=current,
                failure=DuplicateProductError(
                    duplicate, f"Purchase order lists product {duplicate} more than once",
                ),
            )

        manual_ids = {l.product_id for l in manual_lines}
        for line in new_po:
            if line.product_id in manual_ids:
                logger.info("po_lines_rejected_collision", extra={
                    "product_id": line.product_id,
                })
                return ReconcileOutcome(
                    lines=current,
                    failure=DuplicateProductError(
                        line.product_id,
                        f"Product {line.label} is already added manually",
                    ),
                )

        return self.merge(new_po, manual_lines)

    def remove(self, lines: Sequence[ReceivedLine], product_id: int) -> ReconcileOutcome:
        """Remove the line for ``product_id`` from whichever subset holds it."""
        current = tuple(lines)
        remaining = tuple(l for l in current if l.product_id != product_id)
        if len(remaining) == len(current):
            return ReconcileOutcome(lines=current, failure=LineNotFoundError(product_id))
        return ReconcileOutcome(lines=resequence(remaining))

    def remove_all(
        self, lines: Sequence[ReceivedLine], source: LineSource | None = None,
    ) -> ReconcileOutcome:
        """Remove every line, or only the lines from one source."""
        if source is None:
            return ReconcileOutcome(lines=())
        source = LineSource(source)
        remaining = tuple(l for l in lines if l.source != source)
        return ReconcileOutcome(lines=resequence(remaining))


# ---------------------------------------------------------------------------
# Line construction from collaborator data
# ---------------------------------------------------------------------------


def lines_from_purchase_order(
    po: PurchaseOrder, skip_inactive: bool = True,
) -> tuple[ReceivedLine, ...]:
    """
    Expand purchase-order detail lines into received lines.

    Received and accepted quantities start at the required quantity.
    Inactive detail lines are skipped unless ``skip_inactive`` is False.
    Lines are returned unvaluated and without serial numbers.
    """
    result = []
    for detail in po.lines:
        if skip_inactive and not detail.is_active:
            continue
        result.append(ReceivedLine(
            product_id=detail.product_id,
            source_detail_id=detail.po_detail_id,
            product_code=detail.product_code,
            product_name=detail.product_name,
            unit_name=detail.unit_name,
            required_qty=detail.required_qty,
            received_qty=detail.required_qty,
            accepted_qty=detail.required_qty,
            free_qty=detail.free_qty,
            unit_price=detail.unit_price,
            pack_size=detail.pack_size,
            discount_percent=detail.discount_percent,
            discount_amount=detail.discount_amount,
            cgst_percent=detail.cgst_percent,
            sgst_percent=detail.sgst_percent,
            tax_after_discount=detail.tax_after_discount,
            hsn_code=detail.hsn_code,
            manufacturer_id=detail.manufacturer_id,
        ))
    return tuple(result)


def line_from_catalog(product: CatalogProduct) -> ReceivedLine:
    """Build a manual line from catalog defaults; one unit is required, received and accepted."""
    return ReceivedLine(
        product_id=product.product_id,
        required_qty=ONE,
        received_qty=ONE,
        accepted_qty=ONE,
        product_code=product.product_code,
        product_name=product.product_name,
        unit_name=product.unit_name,
        unit_price=product.default_price,
        pack_size=product.pack_size,
        cgst_percent=product.cgst_percent,
        sgst_percent=product.sgst_percent,
        expiry_tracked=product.expiry_tracked,
        manufacturer_id=product.manufacturer_id,
        hsn_code=product.hsn_code,
    )
