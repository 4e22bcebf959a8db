"""
Pytest fixtures for the goods-receipt engine test suite.

Provides:
- Structured logging configured for the session, with per-test context reset
- ``captured_logs`` for asserting on emitted JSON log records
- In-memory catalog, purchase orders and departments (builders live in
  ``tests/builders.py``)
- A service wired to in-memory collaborators and a deterministic clock
"""

import json
import logging
from datetime import UTC, date, datetime
from decimal import Decimal
from io import StringIO

import pytest

from receipt_config import EngineConfig
from receipt_kernel.domain.clock import DeterministicClock
from receipt_kernel.domain.dtos import (
    CatalogProduct,
    PurchaseOrder,
    PurchaseOrderLine,
)
from receipt_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from receipt_modules.goods_receipt import (
    GoodsReceiptService,
    InMemoryDepartmentDirectory,
    InMemoryProductCatalog,
    InMemoryPurchaseOrderLookup,
)
from tests.builders import DEPARTMENTS


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture receipt_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            valuate(line)
            logs = captured_logs()
            assert any(r["message"] == "line_valuated" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("receipt_kernel")
    previous_level = root.level
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 6, 15, 9, 0, tzinfo=UTC))


@pytest.fixture
def catalog() -> InMemoryProductCatalog:
    return InMemoryProductCatalog([
        CatalogProduct(
            product_id=101,
            product_code="PCM500",
            product_name="Paracetamol 500mg",
            default_price=Decimal("2.50"),
            pack_size=Decimal("10"),
            cgst_percent=Decimal("6"),
            sgst_percent=Decimal("6"),
            expiry_tracked=True,
        ),
        CatalogProduct(
            product_id=102,
            product_code="GLV-M",
            product_name="Surgical Gloves M",
            default_price=Decimal("15"),
            cgst_percent=Decimal("9"),
            sgst_percent=Decimal("9"),
        ),
        CatalogProduct(
            product_id=201,
            product_code="SYR5",
            product_name="Syringe 5ml",
            default_price=Decimal("4"),
        ),
    ])


@pytest.fixture
def purchase_orders() -> InMemoryPurchaseOrderLookup:
    return InMemoryPurchaseOrderLookup([
        PurchaseOrder(
            po_id=41,
            po_code="PO-0041",
            po_date=date(2024, 6, 1),
            total_amount=Decimal("2016.00"),
            lines=(
                PurchaseOrderLine(
                    po_detail_id=4101,
                    product_id=201,
                    product_name="Syringe 5ml",
                    required_qty=Decimal("100"),
                    unit_price=Decimal("4"),
                    cgst_percent=Decimal("6"),
                    sgst_percent=Decimal("6"),
                    tax_after_discount=True,
                ),
                PurchaseOrderLine(
                    po_detail_id=4102,
                    product_id=202,
                    product_name="IV Set",
                    required_qty=Decimal("50"),
                    unit_price=Decimal("30"),
                    discount_percent=Decimal("10"),
                    cgst_percent=Decimal("6"),
                    sgst_percent=Decimal("6"),
                    tax_after_discount=True,
                ),
                PurchaseOrderLine(
                    po_detail_id=4103,
                    product_id=203,
                    product_name="Cancelled Item",
                    required_qty=Decimal("5"),
                    unit_price=Decimal("10"),
                    is_active=False,
                ),
            ),
        ),
        PurchaseOrder(
            po_id=42,
            po_code="PO-0042",
            lines=(
                PurchaseOrderLine(
                    po_detail_id=4201,
                    product_id=202,
                    product_name="IV Set",
                    required_qty=Decimal("20"),
                    unit_price=Decimal("28"),
                ),
            ),
        ),
    ])


@pytest.fixture
def departments() -> InMemoryDepartmentDirectory:
    return InMemoryDepartmentDirectory(DEPARTMENTS)


@pytest.fixture
def service(catalog, purchase_orders, departments, clock) -> GoodsReceiptService:
    return GoodsReceiptService(
        catalog=catalog,
        purchase_orders=purchase_orders,
        departments=departments,
        config=EngineConfig(),
        clock=clock,
    )
