"""Customization pricing grid and price calculator.

Pure functions only: no database access.  The grid is loaded from the
rule store by ``CustomizationPricingService`` and passed in.

Pricing rules:
- Placement per kind (text, image): ``both`` when front and back are
  selected, ``front``/``back`` when exactly one is, otherwise ``none``.
- ``customization_price = text_price + image_price``.
- Combo override: when text *and* image are placed, the flat
  ``combo/any`` price replaces the additive sum.
- Savings are reporting only: for a ``both`` placement,
  ``max(0, front + back - both)``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from modules.customization.constants import (
    ALLOWED_PLACEMENTS,
    ANY,
    BACK,
    BOTH,
    COMBO,
    DEFAULT_GRID,
    FRONT,
    IMAGE,
    NO_PLACEMENT,
    TEXT,
)
from shared.domain.money import ZERO, money, parse_amount


def _copy_grid(
    grid: Mapping[str, Mapping[str, Decimal]],
) -> Dict[str, Dict[str, Decimal]]:
    return {kind: dict(prices) for kind, prices in grid.items()}


@dataclass(frozen=True)
class PricingGrid:
    """Price table keyed by customization type, then placement."""

    prices: Mapping[str, Mapping[str, Decimal]] = field(
        default_factory=lambda: _copy_grid(DEFAULT_GRID)
    )

    @classmethod
    def from_rules(cls, rules: Iterable[Tuple[str, str, Decimal]]) -> PricingGrid:
        """Build a grid from active ``(type, placement, price)`` rows.

        Keys without a row fall back to ``DEFAULT_GRID``.
        """
        prices = _copy_grid(DEFAULT_GRID)
        for kind, placement, price in rules:
            if placement in ALLOWED_PLACEMENTS.get(kind, ()):
                prices[kind][placement] = money(price)
        return cls(prices=prices)

    def overlay(self, table: Optional[Mapping[str, Any]]) -> PricingGrid:
        """Return a copy with a product-specific table applied on top.

        Entries with an unknown key or an unusable price are ignored.
        """
        if not table:
            return self
        prices = _copy_grid(self.prices)
        for kind, overrides in table.items():
            if kind not in ALLOWED_PLACEMENTS or not isinstance(overrides, Mapping):
                continue
            for placement, raw_price in overrides.items():
                price = parse_amount(raw_price)
                if placement not in ALLOWED_PLACEMENTS[kind]:
                    continue
                if price is not None and price >= 0:
                    prices[kind][placement] = money(price)
        return PricingGrid(prices=prices)

    def price(self, kind: str, placement: str) -> Decimal:
        if placement == NO_PLACEMENT:
            return ZERO
        return self.prices[kind][placement]

    @property
    def combo_price(self) -> Decimal:
        return self.prices[COMBO][ANY]

    def as_dict(self) -> Dict[str, Dict[str, str]]:
        return {
            kind: {placement: str(price) for placement, price in prices.items()}
            for kind, prices in self.prices.items()
        }


def derive_placement(front: bool, back: bool) -> str:
    if front and back:
        return BOTH
    if front:
        return FRONT
    if back:
        return BACK
    return NO_PLACEMENT


def _savings(grid: PricingGrid, kind: str, placement: str) -> Decimal:
    if placement != BOTH:
        return ZERO
    singles = grid.price(kind, FRONT) + grid.price(kind, BACK)
    return max(ZERO, money(singles - grid.price(kind, BOTH)))


@dataclass(frozen=True)
class CustomizationQuote:
    """Result of pricing one set of customization selections."""

    text_placement: str
    image_placement: str
    text_price: Decimal
    image_price: Decimal
    combo_applied: bool
    combo_price: Optional[Decimal]
    text_savings: Decimal
    image_savings: Decimal
    customization_price: Decimal
    base_model_price: Optional[Decimal] = None
    grand_total: Optional[Decimal] = None

    @property
    def total_savings(self) -> Decimal:
        return money(self.text_savings + self.image_savings)

    def details(self) -> Dict[str, Any]:
        return {
            "text_placement": self.text_placement,
            "image_placement": self.image_placement,
            "text_price": self.text_price,
            "image_price": self.image_price,
            "combo": {"applied": self.combo_applied, "price": self.combo_price},
            "savings": {
                "text": self.text_savings,
                "image": self.image_savings,
                "total": self.total_savings,
            },
        }


def quote_customization(
    grid: PricingGrid,
    *,
    text_front: bool = False,
    text_back: bool = False,
    image_front: bool = False,
    image_back: bool = False,
    base_model_price: Any = None,
) -> CustomizationQuote:
    """Price a set of selections against *grid*.

    ``base_model_price`` is optional; a grand total is only produced when
    it parses to a non-negative finite amount.
    """
    text_placement = derive_placement(text_front, text_back)
    image_placement = derive_placement(image_front, image_back)

    text_price = grid.price(TEXT, text_placement)
    image_price = grid.price(IMAGE, image_placement)

    combo_applied = text_placement != NO_PLACEMENT and image_placement != NO_PLACEMENT
    if combo_applied:
        customization_price = money(grid.combo_price)
    else:
        customization_price = money(text_price + image_price)

    base = parse_amount(base_model_price)
    if base is not None and base < 0:
        base = None
    grand_total = money(base + customization_price) if base is not None else None

    return CustomizationQuote(
        text_placement=text_placement,
        image_placement=image_placement,
        text_price=text_price,
        image_price=image_price,
        combo_applied=combo_applied,
        combo_price=grid.combo_price if combo_applied else None,
        text_savings=_savings(grid, TEXT, text_placement),
        image_savings=_savings(grid, IMAGE, image_placement),
        customization_price=customization_price,
        base_model_price=money(base) if base is not None else None,
        grand_total=grand_total,
    )
