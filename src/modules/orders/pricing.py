"""Order-level pricing engine.

Pure functions only; amounts are Decimals rounded half-up to cents.

- ``subtotal = sum(unit_price * quantity)``
- ``customization_total = sum(customization_price * quantity)``
- ``shipping`` is free when ``subtotal`` is strictly above the threshold.
- ``discount`` applies to ``subtotal + customization_total`` and is capped
  at that sum.
- ``tax = round(taxable * tax_rate)`` where
  ``taxable = subtotal + customization_total + shipping - discount``.
- ``total = taxable + tax``, so the breakdown always adds up exactly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from django.conf import settings

from modules.orders.constants import (
    DEFAULT_CURRENCY,
    DEFAULT_FREE_SHIPPING_THRESHOLD,
    DEFAULT_SHIPPING_COST,
    DEFAULT_TAX_RATE,
    DiscountKind,
)
from shared.domain.money import ZERO, money


@dataclass(frozen=True)
class PricedLine:
    unit_price: Decimal
    customization_price: Decimal
    quantity: int

    @property
    def line_subtotal(self) -> Decimal:
        return money(self.unit_price * self.quantity)

    @property
    def line_customization(self) -> Decimal:
        return money(self.customization_price * self.quantity)

    @property
    def total_price(self) -> Decimal:
        return money((self.unit_price + self.customization_price) * self.quantity)


@dataclass(frozen=True)
class AppliedDiscount:
    kind: str
    value: Decimal
    code: str = ""


@dataclass(frozen=True)
class PricingBreakdown:
    subtotal: Decimal
    customization_total: Decimal
    shipping: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    tax_rate: Decimal
    currency: str
    discount_code: str = ""

    @property
    def taxable(self) -> Decimal:
        return money(
            self.subtotal + self.customization_total + self.shipping - self.discount
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "customization_total": self.customization_total,
            "shipping": self.shipping,
            "discount": self.discount,
            "tax": self.tax,
            "total": self.total,
            "tax_rate": self.tax_rate,
            "currency": self.currency,
            "discount_code": self.discount_code,
        }


def effective_unit_price(base_price: Decimal, sale_price: Optional[Decimal]) -> Decimal:
    """Sale price when ``0 < sale < base``, otherwise the base price."""
    if sale_price is not None and 0 < sale_price < base_price:
        return money(sale_price)
    return money(base_price)


def shipping_cost_for(
    subtotal: Decimal,
    shipping_cost: Optional[Decimal] = None,
    free_shipping_threshold: Optional[Decimal] = None,
) -> Decimal:
    if shipping_cost is None:
        shipping_cost = _setting("ORDER_SHIPPING_COST", DEFAULT_SHIPPING_COST)
    if free_shipping_threshold is None:
        free_shipping_threshold = _setting(
            "ORDER_FREE_SHIPPING_THRESHOLD", DEFAULT_FREE_SHIPPING_THRESHOLD
        )
    if subtotal > free_shipping_threshold:
        return ZERO
    return money(shipping_cost)


def compute_discount(discount: Optional[AppliedDiscount], base: Decimal) -> Decimal:
    """Discount amount on *base*, never negative and never above *base*."""
    if discount is None or base <= 0:
        return ZERO
    if discount.kind == DiscountKind.PERCENTAGE:
        amount = money(base * discount.value / Decimal("100"))
    else:
        amount = money(discount.value)
    return min(max(amount, ZERO), base)


def compute_pricing(
    lines: Iterable[PricedLine],
    discount: Optional[AppliedDiscount] = None,
    tax_rate: Optional[Decimal] = None,
    shipping_cost: Optional[Decimal] = None,
    free_shipping_threshold: Optional[Decimal] = None,
    currency: Optional[str] = None,
) -> PricingBreakdown:
    """Compute the authoritative breakdown for a set of order lines."""
    if tax_rate is None:
        tax_rate = _setting("ORDER_TAX_RATE", DEFAULT_TAX_RATE)
    if currency is None:
        currency = getattr(settings, "ORDER_CURRENCY", DEFAULT_CURRENCY)

    lines = list(lines)
    subtotal = money(sum((line.line_subtotal for line in lines), ZERO))
    customization_total = money(
        sum((line.line_customization for line in lines), ZERO)
    )
    shipping = shipping_cost_for(subtotal, shipping_cost, free_shipping_threshold)
    discount_amount = compute_discount(discount, money(subtotal + customization_total))

    taxable = money(subtotal + customization_total + shipping - discount_amount)
    tax = money(taxable * tax_rate)

    return PricingBreakdown(
        subtotal=subtotal,
        customization_total=customization_total,
        shipping=shipping,
        discount=discount_amount,
        tax=tax,
        total=money(taxable + tax),
        tax_rate=Decimal(str(tax_rate)),
        currency=currency,
        discount_code=discount.code if discount else "",
    )


def _setting(name: str, default: Decimal) -> Decimal:
    return Decimal(str(getattr(settings, name, default)))
