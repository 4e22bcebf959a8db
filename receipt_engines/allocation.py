"""
receipt_engines.allocation -- Department issue validation for received products.

Responsibility:
    Check "issue to department" requests against the quantities actually
    received, turn validated requests into issue records nested under their
    received lines, and report how much of a product may still be issued.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import receipt_kernel.

Invariants enforced:
    - Conservation: the sum of requested quantities per product never
      exceeds the product's available quantity (accepted when set, else
      received).
    - At most one request per (product, department).
    - Every request has a positive department id and a positive quantity.
    - All violations are accumulated; validation never stops at the first.

Failure modes:
    - None.  Problems are returned as ``ValidationResult.errors``.

Usage:
    from receipt_engines.allocation import AllocationValidator

    result = AllocationValidator().validate(document.allocations, document.lines)
    if not result.is_valid:
        ...
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal

from receipt_engines.tracer import traced_engine
from receipt_kernel.domain.dtos import (
    AllocationRequest,
    IssueRecord,
    ReceivedLine,
    ValidationResult,
)
from receipt_kernel.domain.values import ZERO, non_negative
from receipt_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


def format_quantity(value: Decimal) -> str:
    """Render a quantity without exponent or trailing zeros (``55``, ``2.5``)."""
    if value == ZERO:
        return "0"
    return format(value.normalize(), "f")


def _department_label(
    request: AllocationRequest,
    department_names: Mapping[int, str] | None,
) -> str:
    if department_names and department_names.get(request.department_id):
        return department_names[request.department_id]
    if request.department_name:
        return request.department_name
    return f"#{request.department_id}"


def _group_by_product(
    requests: Sequence[AllocationRequest],
) -> dict[int, list[AllocationRequest]]:
    grouped: dict[int, list[AllocationRequest]] = {}
    for request in requests:
        grouped.setdefault(request.product_id, []).append(request)
    return grouped


class AllocationValidator:
    """
    Validate department issue requests against received lines.

    Contract:
        Pure and stateless; no I/O.  ``department_names`` only improves the
        readability of messages.
    Guarantees:
        - Errors appear in product order of first request, with the
          per-product checks in a fixed order: missing line, over-allocation,
          duplicate department, per-request fields.
    """

    @traced_engine("allocation", "1.0", fingerprint_fields=("requests", "lines"))
    def validate(
        self,
        requests: Sequence[AllocationRequest],
        lines: Sequence[ReceivedLine],
        department_names: Mapping[int, str] | None = None,
    ) -> ValidationResult:
        """Check every request; return all errors found."""
        lines_by_product = {line.product_id: line for line in lines}
        errors: list[str] = []

        for product_id, group in _group_by_product(requests).items():
            line = lines_by_product.get(product_id)
            if line is None:
                errors.append(
                    f"Product #{product_id}: product not found in received lines"
                )
                continue

            available = line.available_qty
            requested_total = sum(
                (non_negative(r.quantity) for r in group), ZERO,
            )
            if requested_total > available:
                errors.append(
                    f"Product {line.label}: requested {format_quantity(requested_total)} "
                    f"exceeds available {format_quantity(available)}"
                )

            seen_departments: set[int] = set()
            for request in group:
                if request.department_id <= 0:
                    continue
                if request.department_id in seen_departments:
                    errors.append(
                        f"Product {line.label}: duplicate department for product "
                        f"({_department_label(request, department_names)})"
                    )
                seen_departments.add(request.department_id)

            for request in group:
                if request.department_id <= 0:
                    errors.append(f"Product {line.label}: department is required")
                if request.quantity <= ZERO:
                    errors.append(
                        f"Product {line.label}: quantity for department "
                        f"{_department_label(request, department_names)} "
                        f"must be greater than zero"
                    )

        result = ValidationResult(errors=tuple(errors))
        logger.info("allocation_validation_completed", extra={
            "request_count": len(requests),
            "error_count": len(result.errors),
            "is_valid": result.is_valid,
        })
        return result


def build_issue_records(
    requests: Sequence[AllocationRequest],
    lines: Sequence[ReceivedLine],
    department_names: Mapping[int, str] | None = None,
) -> dict[int, tuple[IssueRecord, ...]]:
    """
    Map each received line to the issue records of its requests.

    Keys follow line order and every line has an entry (possibly empty);
    records within a line follow request order.  Requests for products
    without a line are dropped.
    """
    grouped = _group_by_product(requests)
    records: dict[int, tuple[IssueRecord, ...]] = {}
    for line in lines:
        records[line.product_id] = tuple(
            IssueRecord(
                product_id=line.product_id,
                department_id=request.department_id,
                quantity=request.quantity,
                source_detail_id=line.source_detail_id,
                department_name=_department_label(request, department_names),
                reference_note=request.reference_note,
                indent_no=request.indent_no,
                create_issual=True,
            )
            for request in grouped.get(line.product_id, ())
        )
    return records


def remaining_quantity(
    product_id: int,
    requests: Sequence[AllocationRequest],
    lines: Sequence[ReceivedLine],
    exclude_request_id: str | None = None,
) -> Decimal:
    """
    Quantity of ``product_id`` that may still be issued.

    ``exclude_request_id`` leaves one request out of the sum so that the
    request being edited can reuse its own share.  Never negative; zero
    when the product has no line.
    """
    line = next((l for l in lines if l.product_id == product_id), None)
    if line is None:
        return ZERO
    already = sum(
        (
            non_negative(r.quantity)
            for r in requests
            if r.product_id == product_id
            and (exclude_request_id is None or r.request_id != exclude_request_id)
        ),
        ZERO,
    )
    return max(ZERO, line.available_qty - already)
