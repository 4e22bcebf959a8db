"""
DTOs -- Pure domain data transfer objects for goods receipts.

Responsibility:
    Defines the immutable structures that flow through the receipt engines:
    ReceivedLine (with its derived LineValuation), ReceiptHeader,
    GoodsReceipt (the document), AllocationRequest and IssueRecord,
    ReceiptTotals, ValidationResult, and the collaborator-facing
    CatalogProduct / PurchaseOrder shapes.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Engines accept and return these DTOs; edits produce new instances via
    ``dataclasses.replace``.

Invariants enforced:
    - Every numeric field is coerced to ``Decimal`` on construction
      (``None``/NaN/unparseable become zero; ``pack_size`` defaults to 1).
      Out-of-range values are kept as supplied so that validation can
      report them; engines clamp when computing.
    - A line's source is derived from ``source_detail_id`` and can never
      disagree with it.
    - ``LineValuation`` is derived data: it is recomputed by the valuation
      engine and never edited directly.

Failure modes:
    - TypeError / ValueError only for a non-integer ``product_id``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from receipt_kernel.domain.values import ONE, ZERO, to_decimal


def _coerce(obj: object, names: Iterable[str], default: Decimal = ZERO) -> None:
    """Coerce the named fields of a frozen dataclass to Decimal in place."""
    for name in names:
        object.__setattr__(obj, name, to_decimal(getattr(obj, name), default))


class LineSource(str, Enum):
    """Provenance of a received line."""

    PO = "po"
    MANUAL = "manual"


# ---------------------------------------------------------------------------
# Received lines
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineValuation:
    """
    Derived monetary figures for one received line.

    Contract:
        Produced only by ``receipt_engines.valuation.valuate``. Every money
        field is rounded half-up once, from unrounded intermediates.
    Guarantees:
        - ``discount_amount``, ``taxable_amount`` and ``line_value`` are
          never negative.
        - ``cgst_amount + sgst_amount == total_tax_amount``.
    """

    quantity: Decimal = ZERO
    base_amount: Decimal = ZERO
    pack_price: Decimal = ZERO
    discount_amount: Decimal = ZERO
    taxable_amount: Decimal = ZERO
    tax_base: Decimal = ZERO
    total_tax_amount: Decimal = ZERO
    cgst_amount: Decimal = ZERO
    sgst_amount: Decimal = ZERO
    line_value: Decimal = ZERO


@dataclass(frozen=True)
class ReceivedLine:
    """
    One product received on a goods-receipt document.

    Contract:
        Identity is ``product_id``; a product appears at most once per
        document. ``source_detail_id`` links the line to a purchase-order
        detail line; ``None`` means the line was added manually.
        ``discount_amount`` is the explicit amount typed by the user: when it
        is positive it is authoritative, otherwise ``discount_percent`` is.
    """

    product_id: int
    source_detail_id: int | None = None
    product_code: str = ""
    product_name: str = ""
    unit_name: str = ""
    required_qty: Decimal = ZERO
    received_qty: Decimal = ZERO
    accepted_qty: Decimal = ZERO
    free_qty: Decimal = ZERO
    unit_price: Decimal = ZERO
    pack_size: Decimal = ONE
    discount_percent: Decimal = ZERO
    discount_amount: Decimal = ZERO
    cgst_percent: Decimal = ZERO
    sgst_percent: Decimal = ZERO
    tax_after_discount: bool = False
    expiry_tracked: bool = False
    batch_no: str = ""
    expiry_date: date | None = None
    manufacturer_id: int | None = None
    hsn_code: str = ""
    serial_no: int = 0
    valuation: LineValuation | None = None

    _DECIMAL_FIELDS = (
        "required_qty",
        "received_qty",
        "accepted_qty",
        "free_qty",
        "unit_price",
        "discount_percent",
        "discount_amount",
        "cgst_percent",
        "sgst_percent",
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "product_id", int(self.product_id))
        _coerce(self, self._DECIMAL_FIELDS)
        _coerce(self, ("pack_size",), default=ONE)

    @property
    def source(self) -> LineSource:
        """PO when linked to a purchase-order detail line, else manual."""
        return LineSource.PO if self.source_detail_id is not None else LineSource.MANUAL

    @property
    def gst_percent(self) -> Decimal:
        """Combined GST rate (CGST + SGST)."""
        return self.cgst_percent + self.sgst_percent

    @property
    def available_qty(self) -> Decimal:
        """Quantity eligible for stocking and department issue."""
        return self.accepted_qty if self.accepted_qty > ZERO else self.received_qty

    @property
    def rejected_qty(self) -> Decimal:
        """Received quantity that did not pass acceptance (zero until set)."""
        if self.accepted_qty <= ZERO:
            return ZERO
        return max(ZERO, self.received_qty - self.accepted_qty)

    @property
    def label(self) -> str:
        """Human-readable product reference for messages."""
        if self.product_name:
            return f"{self.product_name} (#{self.product_id})"
        return f"#{self.product_id}"


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DocumentDiscount:
    """Document-level discount, either an amount or a percentage."""

    value: Decimal = ZERO
    is_percent: bool = False

    def __post_init__(self) -> None:
        _coerce(self, ("value",))


@dataclass(frozen=True)
class ReceiptHeader:
    """
    GRN header fields.

    Session context (``company_id``, ``prepared_by``) travels here as
    explicit data rather than ambient process state.
    """

    department_id: int | None = None
    department_name: str = ""
    supplier_id: int | None = None
    supplier_name: str = ""
    invoice_no: str = ""
    invoice_date: date | None = None
    receipt_date: date | None = None
    dc_no: str = ""
    discount: DocumentDiscount = field(default_factory=DocumentDiscount)
    other_charges: Decimal = ZERO
    rounding_adjustment: Decimal = ZERO
    remarks: str = ""
    company_id: int | None = None
    prepared_by: str = ""

    def __post_init__(self) -> None:
        _coerce(self, ("other_charges", "rounding_adjustment"))


@dataclass(frozen=True)
class PurchaseOrderRef:
    """The purchase order a receipt was raised against."""

    po_id: int
    po_code: str = ""
    po_date: date | None = None
    total_amount: Decimal = ZERO

    def __post_init__(self) -> None:
        _coerce(self, ("total_amount",))


@dataclass(frozen=True)
class AllocationRequest:
    """
    Proposed issue of part of a received product to a department.

    Invariants (checked at validation time, not here): quantity > 0, a
    positive department id, at most one request per (product, department),
    and the sum per product within the available quantity.
    """

    product_id: int
    department_id: int
    quantity: Decimal
    request_id: str = ""
    department_name: str = ""
    reference_note: str | None = None
    indent_no: str | None = None
    create_issual: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "product_id", int(self.product_id))
        object.__setattr__(self, "department_id", int(self.department_id or 0))
        _coerce(self, ("quantity",))


@dataclass(frozen=True)
class IssueRecord:
    """
    Itemized child allocation of a received line, produced at submission.

    Carries ``create_issual=True`` for the downstream stock-posting step.
    """

    product_id: int
    department_id: int
    quantity: Decimal
    source_detail_id: int | None = None
    department_name: str = ""
    reference_note: str | None = None
    indent_no: str | None = None
    create_issual: bool = True


@dataclass(frozen=True)
class GoodsReceipt:
    """
    A goods-receipt document: header, ordered lines, and allocations.

    Contract:
        Immutable snapshot. ``approved`` is terminal: once true, the engine
        rejects every mutation of lines, pricing fields and allocations.
    """

    header: ReceiptHeader = field(default_factory=ReceiptHeader)
    lines: tuple[ReceivedLine, ...] = ()
    allocations: tuple[AllocationRequest, ...] = ()
    purchase_order: PurchaseOrderRef | None = None
    approved: bool = False
    document_id: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines))
        object.__setattr__(self, "allocations", tuple(self.allocations))

    def find_line(self, product_id: int) -> ReceivedLine | None:
        """Return the line for ``product_id``, if any."""
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    def find_allocation(self, request_id: str) -> AllocationRequest | None:
        """Return the allocation request with ``request_id``, if any."""
        for request in self.allocations:
            if request.request_id == request_id:
                return request
        return None

    @property
    def po_lines(self) -> tuple[ReceivedLine, ...]:
        return tuple(l for l in self.lines if l.source == LineSource.PO)

    @property
    def manual_lines(self) -> tuple[ReceivedLine, ...]:
        return tuple(l for l in self.lines if l.source == LineSource.MANUAL)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReceiptTotals:
    """
    Document-level totals derived from the valuated line set.

    Guarantees:
        ``grand_total == net_total + tax_total + other_charges +
        rounding_adjustment``.
    """

    items_total: Decimal = ZERO
    line_discount_total: Decimal = ZERO
    taxable_total: Decimal = ZERO
    doc_discount_amount: Decimal = ZERO
    final_taxable_total: Decimal = ZERO
    cgst_total: Decimal = ZERO
    sgst_total: Decimal = ZERO
    tax_total: Decimal = ZERO
    net_total: Decimal = ZERO
    other_charges: Decimal = ZERO
    rounding_adjustment: Decimal = ZERO
    grand_total: Decimal = ZERO
    line_count: int = 0
    total_quantity: Decimal = ZERO
    total_free_quantity: Decimal = ZERO


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of a validation pass.

    Contract:
        ``errors`` block submission; ``warnings`` are advisory only.
    Guarantees:
        - ``is_valid`` is True exactly when there are no errors.
        - ``bool(result) == result.is_valid``.
    """

    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @classmethod
    def success(cls) -> ValidationResult:
        return cls()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def merge(self, other: ValidationResult) -> ValidationResult:
        """Combine two results, keeping message order."""
        return ValidationResult(
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )

    def __bool__(self) -> bool:
        return self.is_valid


# ---------------------------------------------------------------------------
# Collaborator shapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CatalogProduct:
    """What the product catalog returns for a manually added product."""

    product_id: int
    product_code: str = ""
    product_name: str = ""
    default_price: Decimal = ZERO
    pack_size: Decimal = ONE
    manufacturer_id: int | None = None
    cgst_percent: Decimal = ZERO
    sgst_percent: Decimal = ZERO
    expiry_tracked: bool = False
    unit_name: str = ""
    hsn_code: str = ""

    def __post_init__(self) -> None:
        _coerce(self, ("default_price", "cgst_percent", "sgst_percent"))
        _coerce(self, ("pack_size",), default=ONE)


@dataclass(frozen=True)
class PurchaseOrderLine:
    """One detail line of a purchase order."""

    po_detail_id: int
    product_id: int
    required_qty: Decimal = ZERO
    unit_price: Decimal = ZERO
    discount_percent: Decimal = ZERO
    discount_amount: Decimal = ZERO
    cgst_percent: Decimal = ZERO
    sgst_percent: Decimal = ZERO
    tax_after_discount: bool = False
    free_qty: Decimal = ZERO
    pack_size: Decimal = ONE
    product_code: str = ""
    product_name: str = ""
    unit_name: str = ""
    hsn_code: str = ""
    manufacturer_id: int | None = None
    is_active: bool = True

    def __post_init__(self) -> None:
        _coerce(
            self,
            (
                "required_qty",
                "unit_price",
                "discount_percent",
                "discount_amount",
                "cgst_percent",
                "sgst_percent",
                "free_qty",
            ),
        )
        _coerce(self, ("pack_size",), default=ONE)


@dataclass(frozen=True)
class PurchaseOrder:
    """Purchase-order header plus its ordered detail lines."""

    po_id: int
    po_code: str = ""
    po_date: date | None = None
    total_amount: Decimal = ZERO
    lines: tuple[PurchaseOrderLine, ...] = ()

    def __post_init__(self) -> None:
        _coerce(self, ("total_amount",))
        object.__setattr__(self, "lines", tuple(self.lines))

    def as_ref(self) -> PurchaseOrderRef:
        return PurchaseOrderRef(
            po_id=self.po_id,
            po_code=self.po_code,
            po_date=self.po_date,
            total_amount=self.total_amount,
        )
