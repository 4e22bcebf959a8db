"""
Tests for the department allocation engine.

Covers:
- Over-allocation against accepted / received quantity
- Duplicate department per product
- Missing products and per-request field errors
- Issue record construction
- Remaining quantity while editing a request
"""

from decimal import Decimal

from receipt_engines.allocation import (
    AllocationValidator,
    build_issue_records,
    format_quantity,
    remaining_quantity,
)
from receipt_kernel.domain.dtos import AllocationRequest
from tests.builders import DEPARTMENTS, make_line


def _request(product_id, department_id, quantity, request_id=""):
    return AllocationRequest(
        product_id=product_id,
        department_id=department_id,
        quantity=Decimal(str(quantity)),
        request_id=request_id,
    )


class TestAllocationValidator:
    """Conservation and uniqueness checks."""

    def setup_method(self):
        self.validator = AllocationValidator()
        self.product_a = make_line(
            1, product_name="Product A",
            received_qty=Decimal("60"), accepted_qty=Decimal("50"),
        )
        self.product_b = make_line(2, product_name="Product B")

    def test_within_available_is_valid(self):
        result = self.validator.validate(
            [_request(1, 10, 30), _request(1, 20, 20)],
            [self.product_a],
        )
        assert result.is_valid
        assert result.errors == ()

    def test_over_allocation_names_product_and_quantities(self):
        """Accepted 50; 30 + 25 requested."""
        result = self.validator.validate(
            [_request(1, 10, 30), _request(1, 20, 25)],
            [self.product_a],
        )
        assert not result.is_valid
        assert len(result.errors) == 1
        message = result.errors[0]
        assert "Product A" in message
        assert "requested 55" in message
        assert "available 50" in message

    def test_received_used_when_accepted_not_set(self):
        line = make_line(3, received_qty=Decimal("10"), accepted_qty=Decimal("0"))
        result = self.validator.validate([_request(3, 10, 11)], [line])
        assert "available 10" in result.errors[0]

    def test_duplicate_department(self):
        result = self.validator.validate(
            [_request(2, 30, 2), _request(2, 30, 3)],
            [self.product_b],
            DEPARTMENTS,
        )
        assert not result.is_valid
        assert any("duplicate department for product" in e for e in result.errors)
        assert any("Emergency" in e for e in result.errors)

    def test_missing_product(self):
        result = self.validator.validate([_request(99, 10, 1)], [self.product_a])
        assert result.errors == ("Product #99: product not found in received lines",)

    def test_per_request_field_errors(self):
        result = self.validator.validate(
            [_request(2, 0, 1), _request(2, 20, 0)],
            [self.product_b],
        )
        assert len(result.errors) == 2
        assert "department is required" in result.errors[0]
        assert "must be greater than zero" in result.errors[1]

    def test_errors_accumulate_across_products(self):
        result = self.validator.validate(
            [
                _request(1, 10, 60),
                _request(2, 20, 1),
                _request(2, 20, 1),
                _request(99, 10, 1),
            ],
            [self.product_a, self.product_b],
        )
        assert len(result.errors) == 3

    def test_no_requests_is_valid(self):
        assert self.validator.validate([], [self.product_a]).is_valid


class TestIssueRecords:

    def test_records_follow_line_then_request_order(self):
        lines = [make_line(2, source_detail_id=202), make_line(1)]
        requests = [
            _request(1, 10, 4),
            _request(2, 20, 3),
            _request(2, 10, 1),
        ]
        records = build_issue_records(requests, lines, DEPARTMENTS)

        assert list(records) == [2, 1]
        assert [r.department_id for r in records[2]] == [20, 10]
        assert records[2][0].source_detail_id == 202
        assert records[2][0].department_name == "ICU"
        assert all(r.create_issual for r in records[2])
        assert records[1][0].quantity == Decimal("4")

    def test_line_without_requests_has_empty_entry(self):
        records = build_issue_records([], [make_line(1)])
        assert records == {1: ()}


class TestRemainingQuantity:

    def setup_method(self):
        self.lines = [make_line(1, received_qty=Decimal("50"), accepted_qty=Decimal("50"))]
        self.requests = [_request(1, 10, 20, "r1"), _request(1, 20, 15, "r2")]

    def test_remaining_after_all_requests(self):
        assert remaining_quantity(1, self.requests, self.lines) == Decimal("15")

    def test_excluding_request_being_edited(self):
        assert remaining_quantity(1, self.requests, self.lines, "r1") == Decimal("35")

    def test_never_negative(self):
        requests = self.requests + [_request(1, 30, 40, "r3")]
        assert remaining_quantity(1, requests, self.lines) == Decimal("0")

    def test_unknown_product(self):
        assert remaining_quantity(9, self.requests, self.lines) == Decimal("0")


class TestFormatQuantity:

    def test_whole_number(self):
        assert format_quantity(Decimal("55.000")) == "55"

    def test_fraction(self):
        assert format_quantity(Decimal("2.50")) == "2.5"

    def test_zero(self):
        assert format_quantity(Decimal("0.00")) == "0"
