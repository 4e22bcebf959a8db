"""
Goods-Receipt Module Service (``receipt_modules.goods_receipt.service``).

Responsibility
--------------
Entry-point facade for editing and submitting a goods-receipt (GRN)
document: header edits, manual and purchase-order lines, line field edits,
department allocations, totals, validation and the submission payload.
Pure computation is delegated to ``receipt_engines``; master data comes
from the collaborator ports.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``GoodsReceiptService`` is the sole public
entry point for controllers.  It composes the stateless engines
(``SourceReconciler``, ``DocumentAggregator``, ``AllocationValidator``,
``DocumentValidator``) with the ``ProductCatalog``,
``PurchaseOrderLookup`` and ``DepartmentDirectory`` ports.

Invariants enforced
-------------------
* Every mutating method checks the approval lock first and returns a
  rejected ``EditResult`` (``DOCUMENT_APPROVED``) for approved documents.
* Dependency order: lines are valuated before totals are aggregated, and
  the merged line set is final before allocations are validated.
* Rejected edits return the input document unchanged.
* The clock is injectable; engines receive ``as_of`` explicitly.

Failure modes
-------------
* Business-rule failures  -> ``EditResult`` / ``SubmissionResult`` with a
  typed, unraised ``failure``.
* Unknown field names in ``update_header`` / ``update_line`` /
  ``update_allocation``  -> ``ValueError`` (caller programming error).

Audit relevance
---------------
Structured log events are emitted for every accepted and rejected edit
and for submission, with the document id and company bound into
``LogContext``.

Usage::

    service = GoodsReceiptService(catalog, purchase_orders, departments, clock=clock)
    document = service.new_document(ReceiptHeader(department_id=3, supplier_id=9))
    result = service.select_purchase_order(document, po_id=41)
    document = result.document
    submission = service.submit(document)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import fields, replace
from decimal import Decimal
from typing import Any
from uuid import uuid4

from receipt_config import EngineConfig, get_active_config
from receipt_engines.aggregation import DocumentAggregator
from receipt_engines.allocation import (
    AllocationValidator,
    build_issue_records,
    remaining_quantity,
)
from receipt_engines.reconciliation import (
    SourceReconciler,
    line_from_catalog,
    lines_from_purchase_order,
)
from receipt_engines.validation import DocumentValidator
from receipt_engines.valuation import apply_line_edit, valuate, valuate_all
from receipt_kernel.domain.clock import Clock, SystemClock
from receipt_kernel.domain.dtos import (
    AllocationRequest,
    DocumentDiscount,
    GoodsReceipt,
    LineSource,
    ReceiptHeader,
    ReceiptTotals,
    ReceivedLine,
    ValidationResult,
)
from receipt_kernel.exceptions import (
    AllocationNotFoundError,
    AllocationRejectedError,
    DocumentApprovedError,
    DocumentValidationError,
    LineNotFoundError,
    ProductNotFoundError,
    PurchaseOrderNotFoundError,
)
from receipt_kernel.logging_config import LogContext, get_logger
from receipt_modules.goods_receipt.models import EditResult, SubmissionResult, to_payload
from receipt_modules.goods_receipt.ports import (
    DepartmentDirectory,
    ProductCatalog,
    PurchaseOrderLookup,
)

logger = get_logger("modules.goods_receipt.service")

# Header fields that stay editable after approval.
_POST_APPROVAL_HEADER_FIELDS = frozenset({"remarks", "dc_no"})
_HEADER_FIELDS = frozenset(f.name for f in fields(ReceiptHeader))
_ALLOCATION_EDIT_FIELDS = frozenset(
    {"department_id", "quantity", "reference_note", "indent_no", "create_issual"}
)


class GoodsReceiptService:
    """
    Edits and submits goods-receipt documents through the engines.

    Contract
    --------
    * Every mutating method returns ``EditResult``; callers inspect
      ``result.accepted`` or call ``result.raise_for_error()``.
    * Read-only helpers (``totals``, ``validate``, ``remaining_quantity``)
      return pure domain objects.

    Guarantees
    ----------
    * Documents are immutable snapshots; every accepted edit returns a new
      one with all touched lines re-valuated.
    * Allocations never outlive the line they refer to.

    Non-goals
    ---------
    * Does NOT persist documents or assign document numbers.
    * Does NOT perform approval; ``approved`` is an input flag.
    """

    def __init__(
        self,
        catalog: ProductCatalog,
        purchase_orders: PurchaseOrderLookup,
        departments: DepartmentDirectory | None = None,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
    ):
        self._catalog = catalog
        self._purchase_orders = purchase_orders
        self._departments = departments
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()

        places = self._config.money_places
        self._places = places
        self._quantity_places = self._config.quantity_places

        # Stateless engines
        self._reconciler = SourceReconciler(
            manual_lines_first=self._config.manual_lines_first,
        )
        self._aggregator = DocumentAggregator(places=places, quantity_places=self._quantity_places)
        self._allocations = AllocationValidator()
        self._validator = DocumentValidator(
            free_quantity_warning_ratio=self._config.free_quantity_warning_ratio,
            warn_future_receipt_date=self._config.warn_future_receipt_date,
            warn_discount_exceeds_total=self._config.warn_discount_exceeds_total,
            places=places,
        )

    @property
    def config(self) -> EngineConfig:
        return self._config

    # =========================================================================
    # Helpers
    # =========================================================================

    def _context(self, document: GoodsReceipt):
        header = document.header
        return LogContext.bind(
            document_id=document.document_id,
            company_id=header.company_id,
            actor_id=header.prepared_by or None,
        )

    def _locked(self, document: GoodsReceipt, operation: str) -> EditResult | None:
        if not document.approved:
            return None
        logger.warning("goods_receipt_edit_rejected_approved", extra={
            "operation": operation,
        })
        return EditResult.rejected(document, DocumentApprovedError(document.document_id))

    def _department_name(self, department_id: int | None) -> str:
        if self._departments is None or not department_id:
            return ""
        return self._departments.department_name(department_id) or ""

    def _department_names(self, document: GoodsReceipt) -> dict[int, str]:
        names: dict[int, str] = {}
        for request in document.allocations:
            name = request.department_name or self._department_name(request.department_id)
            if name:
                names[request.department_id] = name
        return names

    @staticmethod
    def _drop_orphaned_allocations(
        allocations: Sequence[AllocationRequest],
        lines: Sequence[ReceivedLine],
    ) -> tuple[AllocationRequest, ...]:
        product_ids = {line.product_id for line in lines}
        return tuple(a for a in allocations if a.product_id in product_ids)

    def _with_lines(
        self, document: GoodsReceipt, lines: tuple[ReceivedLine, ...], **changes: Any,
    ) -> GoodsReceipt:
        return replace(
            document,
            lines=lines,
            allocations=self._drop_orphaned_allocations(document.allocations, lines),
            **changes,
        )

    def _allocation_warnings(self, document: GoodsReceipt) -> tuple[str, ...]:
        if not document.allocations:
            return ()
        return self._allocations.validate(
            document.allocations, document.lines, self._department_names(document),
        ).errors

    # =========================================================================
    # Header
    # =========================================================================

    def new_document(
        self,
        header: ReceiptHeader | None = None,
        document_id: int | None = None,
    ) -> GoodsReceipt:
        """Start an empty document; the receipt date defaults to today."""
        header = header or ReceiptHeader()
        if header.receipt_date is None:
            header = replace(header, receipt_date=self._clock.today())
        if header.department_id and not header.department_name:
            header = replace(header, department_name=self._department_name(header.department_id))
        document = GoodsReceipt(header=header, document_id=document_id)
        with self._context(document):
            logger.info("goods_receipt_created", extra={
                "department_id": header.department_id,
                "supplier_id": header.supplier_id,
            })
        return document

    def update_header(self, document: GoodsReceipt, **changes: Any) -> EditResult:
        """
        Edit header fields.

        ``discount`` accepts a ``DocumentDiscount`` or a bare value (which
        keeps the current amount/percent mode).  Only ``remarks`` and
        ``dc_no`` may change after approval.
        """
        unknown = set(changes) - _HEADER_FIELDS
        if unknown:
            raise ValueError(f"Unknown header field(s): {', '.join(sorted(unknown))}")

        with self._context(document):
            if set(changes) - _POST_APPROVAL_HEADER_FIELDS:
                locked = self._locked(document, "update_header")
                if locked is not None:
                    return locked

            header = document.header
            updates = dict(changes)
            if "discount" in updates and not isinstance(updates["discount"], DocumentDiscount):
                updates["discount"] = DocumentDiscount(
                    value=updates["discount"], is_percent=header.discount.is_percent,
                )
            if "department_id" in updates and "department_name" not in updates:
                updates["department_name"] = self._department_name(updates["department_id"])

            new_header = replace(header, **updates)
            logger.info("goods_receipt_header_updated", extra={"fields": sorted(changes)})
            return EditResult.ok(replace(document, header=new_header))

    # =========================================================================
    # Lines
    # =========================================================================

    def add_manual_product(self, document: GoodsReceipt, product_id: int) -> EditResult:
        """Add a catalog product as a manual line."""
        with self._context(document):
            locked = self._locked(document, "add_manual_product")
            if locked is not None:
                return locked

            product = self._catalog.get_product(product_id)
            if product is None:
                logger.info("goods_receipt_product_not_found", extra={"product_id": product_id})
                return EditResult.rejected(document, ProductNotFoundError(product_id))

            line = valuate(line_from_catalog(product), self._places, self._quantity_places)
            outcome = self._reconciler.add_manual(document.lines, line)
            if not outcome.accepted:
                return EditResult.rejected(document, outcome.failure)

            logger.info("goods_receipt_manual_line_added", extra={
                "product_id": product_id,
                "line_count": len(outcome.lines),
            })
            return EditResult.ok(self._with_lines(document, outcome.lines))

    def select_purchase_order(self, document: GoodsReceipt, po_id: int) -> EditResult:
        """Replace the PO-sourced lines with the lines of purchase order ``po_id``."""
        with self._context(document):
            locked = self._locked(document, "select_purchase_order")
            if locked is not None:
                return locked

            po = self._purchase_orders.get_purchase_order(po_id)
            if po is None:
                logger.info("goods_receipt_po_not_found", extra={"po_id": po_id})
                return EditResult.rejected(document, PurchaseOrderNotFoundError(po_id))

            po_lines = valuate_all(
                lines_from_purchase_order(po, skip_inactive=self._config.skip_inactive_po_lines),
                self._places,
                self._quantity_places,
            )
            outcome = self._reconciler.replace_po_lines(document.lines, po_lines)
            if not outcome.accepted:
                return EditResult.rejected(document, outcome.failure)

            updated = self._with_lines(document, outcome.lines, purchase_order=po.as_ref())
            logger.info("goods_receipt_po_selected", extra={
                "po_id": po_id,
                "po_code": po.po_code,
                "po_line_count": len(po_lines),
            })
            return EditResult.ok(updated, self._allocation_warnings(updated))

    def clear_purchase_order(self, document: GoodsReceipt) -> EditResult:
        """Drop the PO link and every PO-sourced line."""
        with self._context(document):
            locked = self._locked(document, "clear_purchase_order")
            if locked is not None:
                return locked

            outcome = self._reconciler.replace_po_lines(document.lines, ())
            updated = self._with_lines(document, outcome.lines, purchase_order=None)
            logger.info("goods_receipt_po_cleared", extra={
                "line_count": len(updated.lines),
            })
            return EditResult.ok(updated)

    def update_line(self, document: GoodsReceipt, product_id: int, **changes: Any) -> EditResult:
        """
        Edit fields of one line and re-valuate it.

        Besides real line fields, ``received_packs`` and ``gst_percent`` are
        accepted (see ``receipt_engines.valuation.apply_line_edit``).
        """
        with self._context(document):
            locked = self._locked(document, "update_line")
            if locked is not None:
                return locked

            line = document.find_line(product_id)
            if line is None:
                return EditResult.rejected(document, LineNotFoundError(product_id))

            edited = apply_line_edit(line, changes, self._places, self._quantity_places)
            lines = tuple(edited if l.product_id == product_id else l for l in document.lines)
            updated = replace(document, lines=lines)

            logger.info("goods_receipt_line_updated", extra={
                "product_id": product_id,
                "fields": sorted(changes),
                "line_value": str(edited.valuation.line_value),
            })
            return EditResult.ok(updated, self._allocation_warnings(updated))

    def remove_line(self, document: GoodsReceipt, product_id: int) -> EditResult:
        """Remove one line and its allocations."""
        with self._context(document):
            locked = self._locked(document, "remove_line")
            if locked is not None:
                return locked

            outcome = self._reconciler.remove(document.lines, product_id)
            if not outcome.accepted:
                return EditResult.rejected(document, outcome.failure)

            logger.info("goods_receipt_line_removed", extra={"product_id": product_id})
            return EditResult.ok(self._with_lines(document, outcome.lines))

    def remove_all_lines(
        self, document: GoodsReceipt, source: LineSource | str | None = None,
    ) -> EditResult:
        """Remove every line, or only the PO or manual lines."""
        with self._context(document):
            locked = self._locked(document, "remove_all_lines")
            if locked is not None:
                return locked

            outcome = self._reconciler.remove_all(document.lines, source)
            logger.info("goods_receipt_lines_cleared", extra={
                "source": LineSource(source).value if source is not None else "all",
                "removed": len(document.lines) - len(outcome.lines),
            })
            return EditResult.ok(self._with_lines(document, outcome.lines))

    # =========================================================================
    # Allocations
    # =========================================================================

    def _check_allocations(
        self,
        document: GoodsReceipt,
        allocations: tuple[AllocationRequest, ...],
        product_id: int,
    ) -> AllocationRejectedError | None:
        group = tuple(a for a in allocations if a.product_id == product_id)
        names = self._department_names(replace(document, allocations=allocations))
        result = self._allocations.validate(group, document.lines, names)
        if result.is_valid:
            return None
        return AllocationRejectedError(result.errors[0], result.errors)

    def add_allocation(
        self,
        document: GoodsReceipt,
        product_id: int,
        department_id: int,
        quantity: Decimal | int | str,
        reference_note: str | None = None,
        indent_no: str | None = None,
        create_issual: bool = True,
    ) -> EditResult:
        """Propose issuing part of a received product to a department."""
        with self._context(document):
            locked = self._locked(document, "add_allocation")
            if locked is not None:
                return locked

            request = AllocationRequest(
                request_id=uuid4().hex,
                product_id=product_id,
                department_id=department_id,
                quantity=quantity,
                department_name=self._department_name(department_id),
                reference_note=reference_note,
                indent_no=indent_no,
                create_issual=create_issual,
            )
            allocations = document.allocations + (request,)
            failure = self._check_allocations(document, allocations, product_id)
            if failure is not None:
                logger.info("goods_receipt_allocation_rejected", extra={
                    "product_id": product_id,
                    "department_id": department_id,
                    "errors": list(failure.errors),
                })
                return EditResult.rejected(document, failure)

            logger.info("goods_receipt_allocation_added", extra={
                "request_id": request.request_id,
                "product_id": product_id,
                "department_id": department_id,
                "quantity": str(request.quantity),
            })
            return EditResult.ok(replace(document, allocations=allocations))

    def update_allocation(
        self, document: GoodsReceipt, request_id: str, **changes: Any,
    ) -> EditResult:
        """Edit department, quantity or notes of an existing request."""
        unknown = set(changes) - _ALLOCATION_EDIT_FIELDS
        if unknown:
            raise ValueError(f"Allocation field(s) cannot be edited: {', '.join(sorted(unknown))}")

        with self._context(document):
            locked = self._locked(document, "update_allocation")
            if locked is not None:
                return locked

            current = document.find_allocation(request_id)
            if current is None:
                return EditResult.rejected(document, AllocationNotFoundError(request_id))

            updates = dict(changes)
            if "department_id" in updates:
                updates["department_name"] = self._department_name(updates["department_id"])
            edited = replace(current, **updates)
            allocations = tuple(
                edited if a.request_id == request_id else a for a in document.allocations
            )
            failure = self._check_allocations(document, allocations, current.product_id)
            if failure is not None:
                return EditResult.rejected(document, failure)

            logger.info("goods_receipt_allocation_updated", extra={
                "request_id": request_id,
                "fields": sorted(changes),
            })
            return EditResult.ok(replace(document, allocations=allocations))

    def remove_allocation(self, document: GoodsReceipt, request_id: str) -> EditResult:
        with self._context(document):
            locked = self._locked(document, "remove_allocation")
            if locked is not None:
                return locked

            if document.find_allocation(request_id) is None:
                return EditResult.rejected(document, AllocationNotFoundError(request_id))

            allocations = tuple(a for a in document.allocations if a.request_id != request_id)
            logger.info("goods_receipt_allocation_removed", extra={"request_id": request_id})
            return EditResult.ok(replace(document, allocations=allocations))

    def remaining_quantity(
        self,
        document: GoodsReceipt,
        product_id: int,
        exclude_request_id: str | None = None,
    ) -> Decimal:
        """Quantity of a product still free for department issue."""
        return remaining_quantity(
            product_id, document.allocations, document.lines, exclude_request_id,
        )

    # =========================================================================
    # Totals, validation, submission
    # =========================================================================

    def totals(self, document: GoodsReceipt) -> ReceiptTotals:
        return self._aggregator.aggregate_document(document)

    def validate(self, document: GoodsReceipt) -> ValidationResult:
        """Run the full submission gate against today's date."""
        with self._context(document):
            return self._validator.validate(
                document, self._clock.today(), self._department_names(document),
            )

    def submit(self, document: GoodsReceipt) -> SubmissionResult:
        """
        Validate and build the persistence payload.

        The payload carries the header, lines with their issue records
        nested (``create_issual`` true), the flat allocation list and the
        totals.  Approved documents cannot be submitted again.
        """
        with self._context(document):
            if document.approved:
                logger.warning("goods_receipt_submit_rejected_approved")
                return SubmissionResult(
                    document=document, failure=DocumentApprovedError(document.document_id),
                )

            lines = valuate_all(document.lines, self._places, self._quantity_places)
            document = replace(document, lines=lines)
            validation = self.validate(document)
            if not validation.is_valid:
                logger.info("goods_receipt_submit_rejected", extra={
                    "error_count": len(validation.errors),
                })
                return SubmissionResult(
                    document=document,
                    validation=validation,
                    failure=DocumentValidationError(validation.errors),
                )

            totals = self.totals(document)
            payload = self._build_payload(document, totals)
            logger.info("goods_receipt_submitted", extra={
                "line_count": totals.line_count,
                "allocation_count": len(document.allocations),
                "grand_total": str(totals.grand_total),
                "warning_count": len(validation.warnings),
            })
            return SubmissionResult(document=document, validation=validation, payload=payload)

    def _build_payload(self, document: GoodsReceipt, totals: ReceiptTotals) -> dict[str, Any]:
        issues = build_issue_records(
            document.allocations, document.lines, self._department_names(document),
        )
        lines = []
        for line in document.lines:
            entry = to_payload(line)
            entry["source"] = line.source.value
            entry["rejected_qty"] = to_payload(line.rejected_qty)
            entry["issues"] = to_payload(issues.get(line.product_id, ()))
            lines.append(entry)

        return {
            "document_id": document.document_id,
            "header": to_payload(document.header),
            "purchase_order": to_payload(document.purchase_order),
            "lines": lines,
            "allocations": to_payload(document.allocations),
            "totals": to_payload(totals),
        }
