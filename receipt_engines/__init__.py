"""
Module: receipt_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    goods-receipt engines.  This is the canonical import surface for
    ``receipt_modules``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import receipt_kernel (and sibling engine modules).
    MUST NOT import receipt_config or receipt_modules.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Reference dates are passed in by the service, which owns the clock.
    - Decimal-only arithmetic; floats are coerced through ``str()``.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine entry point is traced via ``@traced_engine`` (see
    ``receipt_engines.tracer``), emitting RECEIPT_ENGINE_TRACE records.

Usage:
    from receipt_engines import valuate, DocumentAggregator, SourceReconciler
    from receipt_engines import AllocationValidator, DocumentValidator
"""

from receipt_engines.aggregation import DocumentAggregator, document_discount_amount
from receipt_engines.allocation import (
    AllocationValidator,
    build_issue_records,
    format_quantity,
    remaining_quantity,
)
from receipt_engines.reconciliation import (
    ReconcileOutcome,
    SourceReconciler,
    line_from_catalog,
    lines_from_purchase_order,
    resequence,
)
from receipt_engines.tracer import compute_input_fingerprint, traced_engine
from receipt_engines.validation import DocumentValidator, ensure_editable
from receipt_engines.valuation import (
    apply_line_edit,
    compute_valuation,
    derive_discount_percent,
    valuate,
    valuate_all,
    with_gst_rate,
    with_received_packs,
)

__all__ = [
    # Valuation
    "apply_line_edit",
    "compute_valuation",
    "derive_discount_percent",
    "valuate",
    "valuate_all",
    "with_gst_rate",
    "with_received_packs",
    # Aggregation
    "DocumentAggregator",
    "document_discount_amount",
    # Reconciliation
    "ReconcileOutcome",
    "SourceReconciler",
    "line_from_catalog",
    "lines_from_purchase_order",
    "resequence",
    # Allocation
    "AllocationValidator",
    "build_issue_records",
    "format_quantity",
    "remaining_quantity",
    # Validation
    "DocumentValidator",
    "ensure_editable",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]
