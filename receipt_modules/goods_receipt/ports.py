"""
Collaborator ports for the goods-receipt service.

Contract:
    The service reaches product master data, purchase orders and the
    department list only through these protocols.  Implementations may
    return ``None`` for unknown ids; the service turns that into a rejected
    edit.  In-memory implementations are provided for tests and embedding.

Architecture: receipt_modules/goods_receipt. No I/O in this module.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol, runtime_checkable

from receipt_kernel.domain.dtos import CatalogProduct, PurchaseOrder


@runtime_checkable
class ProductCatalog(Protocol):
    """Product master lookup for manually added products."""

    def get_product(self, product_id: int) -> CatalogProduct | None: ...


@runtime_checkable
class PurchaseOrderLookup(Protocol):
    """Purchase-order header and ordered detail lines by id."""

    def get_purchase_order(self, po_id: int) -> PurchaseOrder | None: ...


@runtime_checkable
class DepartmentDirectory(Protocol):
    """Department display names for messages and issue records."""

    def department_name(self, department_id: int) -> str | None: ...


# ============================================================================
# In-memory implementations
# ============================================================================


class InMemoryProductCatalog:
    """Catalog backed by a dict keyed by product id."""

    def __init__(self, products: Iterable[CatalogProduct] = ()):
        self._products = {p.product_id: p for p in products}

    def add(self, product: CatalogProduct) -> None:
        self._products[product.product_id] = product

    def get_product(self, product_id: int) -> CatalogProduct | None:
        return self._products.get(product_id)


class InMemoryPurchaseOrderLookup:
    """Purchase orders backed by a dict keyed by PO id."""

    def __init__(self, orders: Iterable[PurchaseOrder] = ()):
        self._orders = {po.po_id: po for po in orders}

    def add(self, order: PurchaseOrder) -> None:
        self._orders[order.po_id] = order

    def get_purchase_order(self, po_id: int) -> PurchaseOrder | None:
        return self._orders.get(po_id)


class InMemoryDepartmentDirectory:
    """Department names from a plain mapping."""

    def __init__(self, names: Mapping[int, str] | None = None):
        self._names = dict(names or {})

    def department_name(self, department_id: int) -> str | None:
        return self._names.get(department_id)
