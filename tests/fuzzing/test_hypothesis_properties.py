"""
Hypothesis-based property tests for the receipt engines.

Property-based testing generates adversarial line data (zero and
fractional quantities, overshooting discounts, odd tax rates) and checks
that the engine guarantees hold for every input.

Properties covered here:
- Tax split: CGST + SGST equals the rounded total tax on every line
- Non-negativity: no valuation figure drops below zero, whatever the discount
- Idempotence: valuating a valuated line changes nothing
- Balance: the grand total equals its components, including the empty set
- Conservation: allocations beyond the available quantity never validate
- Approval lock: no line edit changes an approved document
"""

from dataclasses import replace
from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from receipt_config import EngineConfig
from receipt_engines.aggregation import DocumentAggregator
from receipt_engines.allocation import AllocationValidator
from receipt_engines.valuation import compute_valuation, valuate
from receipt_kernel.domain.clock import DeterministicClock
from receipt_kernel.domain.dtos import AllocationRequest, DocumentDiscount, ReceivedLine
from receipt_kernel.domain.values import ZERO
from receipt_modules.goods_receipt import (
    GoodsReceiptService,
    InMemoryProductCatalog,
    InMemoryPurchaseOrderLookup,
)
from tests.builders import make_document

# Hypothesis strategies for receipt lines

quantities = st.decimals(min_value=0, max_value=10_000, places=3, allow_nan=False, allow_infinity=False)
prices = st.decimals(min_value=0, max_value=100_000, places=2, allow_nan=False, allow_infinity=False)
percents = st.decimals(min_value=-50, max_value=250, places=2, allow_nan=False, allow_infinity=False)
tax_rates = st.decimals(min_value=0, max_value=28, places=2, allow_nan=False, allow_infinity=False)
amounts = st.decimals(min_value=-1_000, max_value=2_000_000, places=2, allow_nan=False, allow_infinity=False)

PROPERTY_SETTINGS = settings(
    max_examples=200,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)


@composite
def received_lines(draw, product_id=None):
    received = draw(quantities)
    return ReceivedLine(
        product_id=product_id if product_id is not None else draw(st.integers(1, 10_000)),
        received_qty=received,
        accepted_qty=draw(st.one_of(st.just(received), quantities)),
        free_qty=draw(quantities),
        unit_price=draw(prices),
        pack_size=draw(st.integers(1, 100)),
        discount_percent=draw(percents),
        discount_amount=draw(st.one_of(st.just(ZERO), amounts)),
        cgst_percent=draw(tax_rates),
        sgst_percent=draw(tax_rates),
        tax_after_discount=draw(st.booleans()),
    )


@composite
def line_sets(draw, max_size=8):
    size = draw(st.integers(0, max_size))
    return [draw(received_lines(product_id=i + 1)) for i in range(size)]


# ---------------------------------------------------------------------------
# Valuation properties
# ---------------------------------------------------------------------------


class TestValuationProperties:

    @given(line=received_lines())
    @PROPERTY_SETTINGS
    def test_tax_split_sums_to_total(self, line):
        v = compute_valuation(line)
        assert v.cgst_amount + v.sgst_amount == v.total_tax_amount

    @given(line=received_lines())
    @PROPERTY_SETTINGS
    def test_figures_never_negative(self, line):
        v = compute_valuation(line)
        for name in (
            "quantity", "base_amount", "discount_amount", "taxable_amount",
            "total_tax_amount", "cgst_amount", "sgst_amount", "line_value",
        ):
            assert getattr(v, name) >= ZERO, name

    @given(line=received_lines())
    @PROPERTY_SETTINGS
    def test_discount_never_exceeds_base(self, line):
        v = compute_valuation(line)
        assert v.discount_amount <= v.base_amount
        assert v.taxable_amount <= v.base_amount

    @given(line=received_lines())
    @PROPERTY_SETTINGS
    def test_line_value_is_taxable_plus_tax(self, line):
        v = compute_valuation(line)
        assert abs(v.line_value - (v.taxable_amount + v.total_tax_amount)) <= Decimal("0.01")

    @given(line=received_lines())
    @PROPERTY_SETTINGS
    def test_valuation_is_idempotent(self, line):
        once = valuate(line)
        assert valuate(once) == once


# ---------------------------------------------------------------------------
# Aggregation properties
# ---------------------------------------------------------------------------


class TestAggregationProperties:

    @given(
        lines=line_sets(),
        discount=amounts,
        is_percent=st.booleans(),
        other=st.decimals(min_value=0, max_value=10_000, places=2),
        rounding=st.decimals(min_value=-1, max_value=1, places=2),
    )
    @PROPERTY_SETTINGS
    def test_grand_total_balances(self, lines, discount, is_percent, other, rounding):
        totals = DocumentAggregator().aggregate(
            lines,
            DocumentDiscount(value=discount, is_percent=is_percent),
            other,
            rounding,
        )
        assert totals.grand_total == (
            totals.net_total + totals.tax_total + totals.other_charges + totals.rounding_adjustment
        )
        assert totals.tax_total == totals.cgst_total + totals.sgst_total
        assert ZERO <= totals.doc_discount_amount <= totals.taxable_total
        assert totals.line_count == len(lines)

    @given(lines=line_sets())
    @PROPERTY_SETTINGS
    def test_line_figures_add_up(self, lines):
        valuated = [valuate(line) for line in lines]
        totals = DocumentAggregator().aggregate(valuated)
        assert totals.items_total == sum((l.valuation.base_amount for l in valuated), ZERO)
        assert totals.cgst_total == sum((l.valuation.cgst_amount for l in valuated), ZERO)

    @given(
        other=st.decimals(min_value=0, max_value=10_000, places=2),
        rounding=st.decimals(min_value=-1, max_value=1, places=2),
    )
    @PROPERTY_SETTINGS
    def test_empty_document(self, other, rounding):
        totals = DocumentAggregator().aggregate([], None, other, rounding)
        assert totals.items_total == ZERO
        assert totals.tax_total == ZERO
        assert totals.grand_total == other + rounding


# ---------------------------------------------------------------------------
# Allocation properties
# ---------------------------------------------------------------------------


class TestAllocationProperties:

    @given(
        available=st.integers(1, 1_000),
        shares=st.lists(st.integers(1, 500), min_size=1, max_size=6),
    )
    @PROPERTY_SETTINGS
    def test_conservation(self, available, shares):
        line = ReceivedLine(product_id=1, received_qty=available, accepted_qty=available)
        requests = [
            AllocationRequest(product_id=1, department_id=index + 1, quantity=share)
            for index, share in enumerate(shares)
        ]
        result = AllocationValidator().validate(requests, [line])
        assert result.is_valid == (sum(shares) <= available)


# ---------------------------------------------------------------------------
# Approval lock
# ---------------------------------------------------------------------------


def _service() -> GoodsReceiptService:
    return GoodsReceiptService(
        catalog=InMemoryProductCatalog([]),
        purchase_orders=InMemoryPurchaseOrderLookup([]),
        config=EngineConfig(),
        clock=DeterministicClock(),
    )


class TestApprovalLockProperty:

    @given(
        line=received_lines(product_id=1),
        field=st.sampled_from(
            ["received_qty", "accepted_qty", "unit_price", "discount_percent",
             "discount_amount", "cgst_percent", "free_qty", "gst_percent"]
        ),
        value=amounts,
    )
    @PROPERTY_SETTINGS
    def test_no_edit_changes_approved_document(self, line, field, value):
        service = _service()
        document = replace(make_document([valuate(line)]), approved=True)
        before = service.totals(document)

        result = service.update_line(document, 1, **{field: value})

        assert not result.accepted
        assert result.error_code == "DOCUMENT_APPROVED"
        assert result.document is document
        assert service.totals(result.document) == before
