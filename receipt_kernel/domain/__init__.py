"""
Pure domain layer.

Receipt DTOs, numeric value helpers and the clock abstraction. Nothing here performs
I/O or reads the system time (except SystemClock).
"""

from receipt_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from receipt_kernel.domain.dtos import (
    AllocationRequest,
    CatalogProduct,
    DocumentDiscount,
    GoodsReceipt,
    IssueRecord,
    LineSource,
    LineValuation,
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderRef,
    ReceiptHeader,
    ReceiptTotals,
    ReceivedLine,
    ValidationResult,
)
from receipt_kernel.domain.values import (
    HUNDRED,
    ONE,
    ZERO,
    clamp,
    non_negative,
    quantize,
    to_decimal,
)

__all__ = [
    "AllocationRequest",
    "CatalogProduct",
    "DocumentDiscount",
    "GoodsReceipt",
    "IssueRecord",
    "LineSource",
    "LineValuation",
    "PurchaseOrder",
    "PurchaseOrderLine",
    "PurchaseOrderRef",
    "ReceiptHeader",
    "ReceiptTotals",
    "ReceivedLine",
    "ValidationResult",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "HUNDRED",
    "ONE",
    "ZERO",
    "clamp",
    "non_negative",
    "quantize",
    "to_decimal",
]
