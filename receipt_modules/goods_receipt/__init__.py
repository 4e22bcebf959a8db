"""
Goods-Receipt Module (``receipt_modules.goods_receipt``).

Responsibility
--------------
Entry points for editing a goods-receipt note: lines received against a
purchase order or added by hand, their pricing and split GST, department
issue requests, document totals, validation, and the submission payload.

Architecture position
---------------------
**Modules layer** -- a service facade over ``receipt_engines`` plus the
collaborator ports it needs (product catalog, purchase orders,
departments).

Failure modes
-------------
* ``EditResult.accepted == False`` -- approval lock, duplicate product,
  missing line, lookup miss or rejected allocation.
* ``SubmissionResult.is_success == False`` -- validation errors.
"""

from receipt_modules.goods_receipt.models import EditResult, SubmissionResult, to_payload
from receipt_modules.goods_receipt.ports import (
    DepartmentDirectory,
    InMemoryDepartmentDirectory,
    InMemoryProductCatalog,
    InMemoryPurchaseOrderLookup,
    ProductCatalog,
    PurchaseOrderLookup,
)
from receipt_modules.goods_receipt.service import GoodsReceiptService

__all__ = [
    "DepartmentDirectory",
    "EditResult",
    "GoodsReceiptService",
    "InMemoryDepartmentDirectory",
    "InMemoryProductCatalog",
    "InMemoryPurchaseOrderLookup",
    "ProductCatalog",
    "PurchaseOrderLookup",
    "SubmissionResult",
    "to_payload",
]
