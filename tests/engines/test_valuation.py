"""
Tests for the line valuation engine.

Covers:
- Base, discount, taxable and split-GST figures
- Tax charged after vs before discount
- Clamping of quantities, discounts and prices
- Half-up rounding with SGST taking the remainder
- Line edits: packs, combined GST rate, discount authority
"""

from decimal import Decimal

import pytest

from receipt_engines.valuation import (
    apply_line_edit,
    compute_valuation,
    derive_discount_percent,
    valuate,
    valuate_all,
    with_gst_rate,
    with_received_packs,
)
from receipt_kernel.domain.dtos import ReceivedLine
from tests.builders import make_line


class TestLineValuation:
    """Worked examples for a single line."""

    def test_tax_after_discount(self):
        """10 x 100 with 10% discount, 6% + 6% on the discounted amount."""
        line = valuate(make_line(valuated=False))
        v = line.valuation

        assert v.quantity == Decimal("10")
        assert v.base_amount == Decimal("1000.00")
        assert v.discount_amount == Decimal("100.00")
        assert v.taxable_amount == Decimal("900.00")
        assert v.tax_base == Decimal("900.00")
        assert v.total_tax_amount == Decimal("108.00")
        assert v.cgst_amount == Decimal("54.00")
        assert v.sgst_amount == Decimal("54.00")
        assert v.line_value == Decimal("1008.00")

    def test_tax_before_discount(self):
        """Same line but tax charged on the undiscounted base."""
        line = valuate(make_line(valuated=False, tax_after_discount=False))
        v = line.valuation

        assert v.tax_base == Decimal("1000.00")
        assert v.total_tax_amount == Decimal("120.00")
        assert v.cgst_amount == Decimal("60.00")
        assert v.sgst_amount == Decimal("60.00")
        assert v.line_value == Decimal("1020.00")

    def test_valuate_does_not_modify_input(self):
        line = make_line(valuated=False)
        valuate(line)
        assert line.valuation is None

    def test_pack_price(self):
        line = valuate(make_line(unit_price=Decimal("2.5"), pack_size=Decimal("10")))
        assert line.valuation.pack_price == Decimal("25.00")

    def test_no_tax(self):
        line = valuate(make_line(cgst_percent=0, sgst_percent=0))
        v = line.valuation
        assert v.total_tax_amount == Decimal("0")
        assert v.cgst_amount == Decimal("0")
        assert v.sgst_amount == Decimal("0")
        assert v.line_value == v.taxable_amount

    def test_valuate_all_preserves_order(self):
        lines = valuate_all([make_line(3, valuated=False), make_line(1, valuated=False)])
        assert [l.product_id for l in lines] == [3, 1]
        assert all(l.valuation is not None for l in lines)


class TestQuantityRules:
    """Accepted quantity drives valuation once set."""

    def test_accepted_quantity_used_when_set(self):
        line = valuate(make_line(accepted_qty=Decimal("8")))
        assert line.valuation.quantity == Decimal("8")
        assert line.valuation.base_amount == Decimal("800.00")

    def test_received_quantity_used_when_accepted_is_zero(self):
        line = valuate(make_line(accepted_qty=Decimal("0")))
        assert line.valuation.quantity == Decimal("10")

    def test_accepted_clamped_to_received(self):
        line = valuate(make_line(accepted_qty=Decimal("12")))
        assert line.valuation.quantity == Decimal("10")
        assert line.valuation.base_amount == Decimal("1000.00")

    def test_negative_quantity_clamps_to_zero(self):
        line = valuate(make_line(received_qty=Decimal("-5"), accepted_qty=0))
        assert line.valuation.quantity == Decimal("0")
        assert line.valuation.line_value == Decimal("0")


class TestDiscountRules:
    """Explicit amount vs percent, and clamping."""

    def test_explicit_amount_is_authoritative(self):
        line = valuate(make_line(discount_amount=Decimal("50")))
        assert line.valuation.discount_amount == Decimal("50.00")
        assert line.valuation.taxable_amount == Decimal("950.00")

    def test_amount_exceeding_base_clamps(self):
        line = valuate(make_line(discount_amount=Decimal("5000")))
        v = line.valuation
        assert v.discount_amount == Decimal("1000.00")
        assert v.taxable_amount == Decimal("0.00")
        assert v.total_tax_amount == Decimal("0.00")
        assert v.line_value == Decimal("0.00")

    def test_percent_over_hundred_clamps(self):
        line = valuate(make_line(discount_percent=Decimal("150")))
        assert line.valuation.discount_amount == Decimal("1000.00")
        assert line.valuation.taxable_amount == Decimal("0.00")

    def test_negative_percent_clamps_to_zero(self):
        line = valuate(make_line(discount_percent=Decimal("-10")))
        assert line.valuation.discount_amount == Decimal("0.00")

    def test_negative_price_clamps_to_zero(self):
        line = valuate(make_line(unit_price=Decimal("-3")))
        assert line.valuation.base_amount == Decimal("0.00")
        assert line.valuation.line_value == Decimal("0.00")

    def test_explicit_amount_survives_revaluation(self):
        line = valuate(make_line(discount_amount=Decimal("50")))
        again = valuate(line)
        assert again.discount_amount == Decimal("50")
        assert again.valuation == line.valuation


class TestRounding:
    """Half-up rounding, SGST takes the remainder."""

    def test_half_cent_rounds_up(self):
        """Tax of 0.01 splits 0.005 / 0.005: CGST rounds up, SGST takes the rest."""
        line = valuate(ReceivedLine(
            product_id=1,
            received_qty=1,
            unit_price=Decimal("0.1"),
            cgst_percent=5,
            sgst_percent=5,
        ))
        v = line.valuation
        assert v.total_tax_amount == Decimal("0.01")
        assert v.cgst_amount == Decimal("0.01")
        assert v.sgst_amount == Decimal("0.00")
        assert v.cgst_amount + v.sgst_amount == v.total_tax_amount

    def test_unequal_rates_sum_to_total(self):
        line = valuate(ReceivedLine(
            product_id=1,
            received_qty=3,
            unit_price=Decimal("33.33"),
            cgst_percent=Decimal("9"),
            sgst_percent=Decimal("2.5"),
        ))
        v = line.valuation
        assert v.cgst_amount + v.sgst_amount == v.total_tax_amount

    def test_configurable_places(self):
        line = valuate(make_line(unit_price=Decimal("0.3333")), places=4)
        assert line.valuation.base_amount == Decimal("3.3330")

    def test_float_input_is_coerced_through_str(self):
        line = ReceivedLine(product_id=1, received_qty=3, unit_price=0.1)
        assert line.unit_price == Decimal("0.1")
        assert compute_valuation(line).base_amount == Decimal("0.30")


class TestLineEdits:
    """Field-specific preparations applied by apply_line_edit."""

    def test_received_packs_sets_quantities(self):
        line = make_line(pack_size=Decimal("10"))
        edited = apply_line_edit(line, {"received_packs": 3})
        assert edited.received_qty == Decimal("30")
        assert edited.accepted_qty == Decimal("30")
        assert edited.valuation.quantity == Decimal("30")

    def test_received_packs_uses_new_pack_size(self):
        line = make_line(pack_size=Decimal("10"))
        edited = apply_line_edit(line, {"received_packs": 2, "pack_size": 12})
        assert edited.received_qty == Decimal("24")

    def test_received_qty_carries_tracking_accepted(self):
        edited = apply_line_edit(make_line(), {"received_qty": 20})
        assert edited.accepted_qty == Decimal("20")

    def test_received_qty_leaves_independent_accepted(self):
        line = make_line(accepted_qty=Decimal("8"))
        edited = apply_line_edit(line, {"received_qty": 20})
        assert edited.accepted_qty == Decimal("8")

    def test_gst_percent_splits_evenly(self):
        edited = apply_line_edit(make_line(), {"gst_percent": 5})
        assert edited.cgst_percent == Decimal("2.50")
        assert edited.sgst_percent == Decimal("2.50")
        assert edited.gst_percent == Decimal("5.00")

    def test_gst_percent_halves_rounded_to_places(self):
        edited = apply_line_edit(make_line(), {"gst_percent": Decimal("0.25")})
        assert edited.cgst_percent == Decimal("0.13")
        assert edited.sgst_percent == Decimal("0.13")

    def test_discount_percent_clears_explicit_amount(self):
        line = make_line(discount_amount=Decimal("50"))
        edited = apply_line_edit(line, {"discount_percent": 20})
        assert edited.discount_amount == Decimal("0")
        assert edited.valuation.discount_amount == Decimal("200.00")

    def test_discount_amount_updates_percent(self):
        edited = apply_line_edit(make_line(), {"discount_amount": 150})
        assert edited.discount_percent == Decimal("15.00")
        assert edited.valuation.discount_amount == Decimal("150.00")

    def test_edit_revaluates(self):
        edited = apply_line_edit(make_line(), {"unit_price": 200})
        assert edited.valuation.base_amount == Decimal("2000.00")

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError, match="Unknown line field"):
            apply_line_edit(make_line(), {"colour": "red"})

    def test_identity_field_rejected(self):
        with pytest.raises(ValueError, match="cannot be edited"):
            apply_line_edit(make_line(), {"product_id": 9})

    def test_with_received_packs(self):
        edited = with_received_packs(make_line(pack_size=Decimal("5")), 4)
        assert edited.received_qty == Decimal("20")

    def test_with_gst_rate(self):
        edited = with_gst_rate(make_line(), Decimal("18"))
        assert edited.cgst_percent == Decimal("9.00")
        assert edited.sgst_percent == Decimal("9.00")


class TestDeriveDiscountPercent:

    def test_zero_base_gives_zero(self):
        line = make_line(received_qty=0, accepted_qty=0, discount_amount=Decimal("10"))
        assert derive_discount_percent(line) == Decimal("0")

    def test_amount_capped_at_base(self):
        line = make_line(discount_amount=Decimal("2000"))
        assert derive_discount_percent(line) == Decimal("100.00")
