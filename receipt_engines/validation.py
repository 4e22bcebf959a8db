"""
receipt_engines.validation -- Submission gate for goods-receipt documents.

Responsibility:
    Check a complete document (header, lines, allocations) before it is
    submitted, separating blocking errors from advisory warnings, and
    provide the approval-lock check consulted by every mutating entry point.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Delegates allocation checks to ``receipt_engines.allocation``.

Invariants enforced:
    - No clock access: the reference date ``as_of`` is passed in.
    - Validation never raises and never stops at the first problem.
    - A product listed twice is a hard error, whatever the sources.
    - An approved document is never editable.

Failure modes:
    - None.  Problems are returned in ``ValidationResult``.

Usage:
    from receipt_engines.validation import DocumentValidator

    result = DocumentValidator().validate(document, as_of=clock.today())
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from datetime import date
from decimal import Decimal

from receipt_engines.allocation import AllocationValidator, format_quantity
from receipt_engines.tracer import traced_engine
from receipt_engines.valuation import compute_valuation
from receipt_kernel.domain.dtos import (
    GoodsReceipt,
    ReceiptHeader,
    ReceivedLine,
    ValidationResult,
)
from receipt_kernel.domain.values import HUNDRED, ONE, ZERO
from receipt_kernel.exceptions import DocumentApprovedError
from receipt_kernel.logging_config import get_logger

logger = get_logger("engines.validation")


def ensure_editable(document: GoodsReceipt) -> str | None:
    """Return the approval-lock message when ``document`` is approved, else None."""
    if document.approved:
        return str(DocumentApprovedError(document.document_id))
    return None


class DocumentValidator:
    """
    Validate a goods-receipt document for submission.

    Contract:
        ``validate`` is pure: same document and ``as_of`` give the same
        result.
    Guarantees:
        - Header errors come first, then line errors, then allocation
          errors; warnings keep the same order.
    """

    def __init__(
        self,
        free_quantity_warning_ratio: Decimal = ONE,
        warn_future_receipt_date: bool = True,
        warn_discount_exceeds_total: bool = True,
        places: int = 2,
    ):
        self.free_quantity_warning_ratio = free_quantity_warning_ratio
        self.warn_future_receipt_date = warn_future_receipt_date
        self.warn_discount_exceeds_total = warn_discount_exceeds_total
        self.places = places
        self._allocations = AllocationValidator()

    @traced_engine("document_validation", "1.0", fingerprint_fields=("document", "as_of"))
    def validate(
        self,
        document: GoodsReceipt,
        as_of: date,
        department_names: Mapping[int, str] | None = None,
    ) -> ValidationResult:
        """Run header, line and allocation checks."""
        header_result = self.validate_header(document, as_of)
        lines_result = self.validate_lines(document.lines, as_of)
        allocation_result = self._allocations.validate(
            document.allocations, document.lines, department_names,
        )
        result = header_result.merge(lines_result).merge(allocation_result)

        logger.info("document_validation_completed", extra={
            "line_count": len(document.lines),
            "allocation_count": len(document.allocations),
            "error_count": len(result.errors),
            "warning_count": len(result.warnings),
            "is_valid": result.is_valid,
        })
        return result

    # ------------------------------------------------------------------
    # Header
    # ------------------------------------------------------------------

    def validate_header(self, document: GoodsReceipt, as_of: date) -> ValidationResult:
        header: ReceiptHeader = document.header
        errors: list[str] = []
        warnings: list[str] = []

        if not header.department_id or header.department_id <= 0:
            errors.append("Department is required")
        if not header.supplier_id or header.supplier_id <= 0:
            errors.append("Supplier is required")
        if not (header.invoice_no or "").strip():
            errors.append("Invoice number is required")
        if header.receipt_date is None:
            errors.append("Receipt date is required")
        if header.invoice_date is None:
            errors.append("Invoice date is required")

        if header.receipt_date is not None:
            if header.invoice_date is not None and header.receipt_date < header.invoice_date:
                warnings.append("Receipt date is before invoice date")
            if self.warn_future_receipt_date and header.receipt_date > as_of:
                warnings.append("Receipt date is in the future")

        if self.warn_discount_exceeds_total:
            discount = header.discount
            if discount.is_percent:
                if discount.value > HUNDRED:
                    warnings.append("Document discount exceeds items total")
            elif discount.value > ZERO:
                items_total = sum(
                    (compute_valuation(l, self.places).base_amount for l in document.lines),
                    ZERO,
                )
                if discount.value > items_total:
                    warnings.append("Document discount exceeds items total")

        if header.other_charges < ZERO:
            errors.append("Other charges cannot be negative")

        return ValidationResult(errors=tuple(errors), warnings=tuple(warnings))

    # ------------------------------------------------------------------
    # Lines
    # ------------------------------------------------------------------

    def validate_lines(
        self, lines: tuple[ReceivedLine, ...], as_of: date,
    ) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []

        if not lines:
            errors.append("At least one product is required")
            return ValidationResult(errors=tuple(errors))

        for index, line in enumerate(lines, start=1):
            line_errors, line_warnings = self._check_line(line, as_of)
            prefix = f"Line {line.serial_no or index} ({line.label})"
            errors.extend(f"{prefix}: {m}" for m in line_errors)
            warnings.extend(f"{prefix}: {m}" for m in line_warnings)

        counts = Counter(line.product_id for line in lines)
        for product_id, count in counts.items():
            if count > 1:
                errors.append(f"Product #{product_id} appears {count} times")

        return ValidationResult(errors=tuple(errors), warnings=tuple(warnings))

    def _check_line(
        self, line: ReceivedLine, as_of: date,
    ) -> tuple[list[str], list[str]]:
        errors: list[str] = []
        warnings: list[str] = []

        if line.product_id <= 0:
            errors.append("product is invalid")
        if line.received_qty <= ZERO:
            errors.append("received quantity must be greater than zero")
        if line.unit_price <= ZERO:
            errors.append("unit price must be greater than zero")
        if line.accepted_qty < ZERO:
            errors.append("accepted quantity cannot be negative")
        elif line.accepted_qty > line.received_qty:
            errors.append(
                f"accepted quantity {format_quantity(line.accepted_qty)} exceeds "
                f"received quantity {format_quantity(line.received_qty)}"
            )

        if line.discount_percent < ZERO:
            errors.append("discount percent cannot be negative")
        elif line.discount_percent > HUNDRED:
            errors.append("discount percent cannot exceed 100")

        if line.discount_amount < ZERO:
            errors.append("discount amount cannot be negative")
        elif line.discount_amount > ZERO:
            base = compute_valuation(line, self.places).base_amount
            if line.discount_amount > base:
                errors.append("discount amount exceeds product value")

        if line.pack_size < ZERO:
            errors.append("pack size cannot be negative")
        if line.cgst_percent < ZERO:
            errors.append("CGST percent cannot be negative")
        if line.sgst_percent < ZERO:
            errors.append("SGST percent cannot be negative")

        if line.free_qty < ZERO:
            errors.append("free quantity cannot be negative")
        elif (
            line.free_qty > ZERO
            and line.free_qty > line.received_qty * self.free_quantity_warning_ratio
        ):
            warnings.append("Free items quantity seems high")

        if line.expiry_tracked:
            if line.expiry_date is None:
                warnings.append("expiry date is missing")
            elif line.expiry_date <= as_of:
                warnings.append("product has already expired")

        return errors, warnings
