"""Unit tests for the order pricing engine.

Covers:
- Free shipping strictly above the threshold
- total == subtotal + customization_total + shipping - discount + tax
- Percentage and fixed discounts, capped at the discountable base
- Sale price selection
"""

from decimal import Decimal

import pytest

from modules.orders.constants import DiscountKind
from modules.orders.pricing import (
    AppliedDiscount,
    PricedLine,
    compute_discount,
    compute_pricing,
    effective_unit_price,
    shipping_cost_for,
)

pytestmark = pytest.mark.unit


def _line(unit, quantity=1, customization="0.00"):
    return PricedLine(
        unit_price=Decimal(unit),
        customization_price=Decimal(customization),
        quantity=quantity,
    )


# ===========================================================================
# Shipping
# ===========================================================================


class TestShipping:
    def test_subtotal_at_threshold_pays_shipping(self):
        assert shipping_cost_for(Decimal("50.00")) == Decimal("5.99")

    def test_subtotal_above_threshold_ships_free(self):
        assert shipping_cost_for(Decimal("50.01")) == Decimal("0.00")

    def test_explicit_cost_and_threshold(self):
        assert shipping_cost_for(
            Decimal("20.00"),
            shipping_cost=Decimal("3.50"),
            free_shipping_threshold=Decimal("10.00"),
        ) == Decimal("0.00")
        assert shipping_cost_for(
            Decimal("9.99"),
            shipping_cost=Decimal("3.50"),
            free_shipping_threshold=Decimal("10.00"),
        ) == Decimal("3.50")

    def test_customization_does_not_count_towards_free_shipping(self):
        pricing = compute_pricing([_line("45.00", customization="12.00")])
        assert pricing.subtotal == Decimal("45.00")
        assert pricing.shipping == Decimal("5.99")


# ===========================================================================
# Breakdown
# ===========================================================================


class TestComputePricing:
    def test_breakdown_adds_up(self):
        pricing = compute_pricing(
            [_line("20.00", quantity=2, customization="12.00"), _line("9.90")]
        )

        assert pricing.subtotal == Decimal("49.90")
        assert pricing.customization_total == Decimal("24.00")
        assert pricing.shipping == Decimal("5.99")
        assert pricing.tax == Decimal("15.98")
        assert pricing.total == (
            pricing.subtotal
            + pricing.customization_total
            + pricing.shipping
            - pricing.discount
            + pricing.tax
        )

    def test_tax_rounds_half_up_to_cents(self):
        pricing = compute_pricing([_line("83.33")])

        assert pricing.shipping == Decimal("0.00")
        assert pricing.tax == Decimal("16.67")
        assert pricing.total == Decimal("100.00")

    def test_defaults_come_from_settings(self, settings):
        settings.ORDER_TAX_RATE = Decimal("0.10")
        settings.ORDER_CURRENCY = "USD"

        pricing = compute_pricing([_line("100.00")])

        assert pricing.tax_rate == Decimal("0.10")
        assert pricing.tax == Decimal("10.00")
        assert pricing.currency == "USD"

    def test_discount_reduces_taxable_amount(self):
        pricing = compute_pricing(
            [_line("20.00")],
            discount=AppliedDiscount(
                kind=DiscountKind.PERCENTAGE, value=Decimal("10"), code="WELCOME10"
            ),
        )

        assert pricing.discount == Decimal("2.00")
        assert pricing.taxable == Decimal("23.99")
        assert pricing.tax == Decimal("4.80")
        assert pricing.total == Decimal("28.79")
        assert pricing.discount_code == "WELCOME10"

    def test_as_dict_exposes_every_component(self):
        data = compute_pricing([_line("10.00")]).as_dict()
        assert set(data) == {
            "subtotal",
            "customization_total",
            "shipping",
            "discount",
            "tax",
            "total",
            "tax_rate",
            "currency",
            "discount_code",
        }


# ===========================================================================
# Discounts
# ===========================================================================


class TestComputeDiscount:
    def test_no_discount(self):
        assert compute_discount(None, Decimal("40.00")) == Decimal("0.00")

    def test_percentage(self):
        discount = AppliedDiscount(kind=DiscountKind.PERCENTAGE, value=Decimal("15"))
        assert compute_discount(discount, Decimal("33.33")) == Decimal("5.00")

    def test_fixed(self):
        discount = AppliedDiscount(kind=DiscountKind.FIXED, value=Decimal("5.00"))
        assert compute_discount(discount, Decimal("33.33")) == Decimal("5.00")

    def test_fixed_discount_capped_at_base(self):
        discount = AppliedDiscount(kind=DiscountKind.FIXED, value=Decimal("80.00"))
        assert compute_discount(discount, Decimal("30.00")) == Decimal("30.00")

    def test_capped_discount_leaves_shipping_and_tax(self):
        pricing = compute_pricing(
            [_line("10.00")],
            discount=AppliedDiscount(kind=DiscountKind.FIXED, value=Decimal("50.00")),
        )
        assert pricing.discount == Decimal("10.00")
        assert pricing.taxable == Decimal("5.99")
        assert pricing.total == Decimal("7.19")


# ===========================================================================
# Unit price
# ===========================================================================


class TestEffectiveUnitPrice:
    def test_valid_sale_price_wins(self):
        assert effective_unit_price(Decimal("24.90"), Decimal("21.90")) == Decimal(
            "21.90"
        )

    def test_sale_price_not_lower_is_ignored(self):
        assert effective_unit_price(Decimal("24.90"), Decimal("24.90")) == Decimal(
            "24.90"
        )

    def test_zero_sale_price_is_ignored(self):
        assert effective_unit_price(Decimal("24.90"), Decimal("0")) == Decimal("24.90")

    def test_no_sale_price(self):
        assert effective_unit_price(Decimal("19.90"), None) == Decimal("19.90")

    def test_line_totals(self):
        line = _line("19.90", quantity=3, customization="5.00")
        assert line.line_subtotal == Decimal("59.70")
        assert line.line_customization == Decimal("15.00")
        assert line.total_price == Decimal("74.70")
