"""Customization pricing service layer (Use Cases).

Loads the pricing grid from the rule store and prices customization
selections, both for the public price calculator and for order lines.

Business rules enforced:
- Inactive rules are ignored; missing keys fall back to the defaults.
- One rule per (type, placement) key; ``combo`` rules use ``any``.
- Prices are non-negative and finite.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Tuple

import structlog
from django.db import IntegrityError, transaction

from modules.customization.constants import ALLOWED_PLACEMENTS
from modules.customization.exceptions import DuplicatePricingRule, InvalidPricingRule
from modules.customization.grid import (
    CustomizationQuote,
    PricingGrid,
    quote_customization,
)
from modules.customization.models import CustomizationPricingRule

if TYPE_CHECKING:
    from modules.customization.dtos import (
        CalculatePriceDTO,
        CustomizationSelectionsDTO,
        PricingRuleDTO,
    )
    from modules.customization.repositories.interfaces import IPricingRuleRepository

logger = structlog.get_logger(__name__)


class CustomizationPricingService:
    """Application service for the customization pricing grid."""

    def __init__(self, rule_repository: IPricingRuleRepository) -> None:
        self._rule_repo = rule_repository

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def load_grid(self) -> PricingGrid:
        """Build the grid from active rules.

        Raises:
            PricingStoreUnavailable: the rule store cannot be reached.
        """
        return PricingGrid.from_rules(self._rule_repo.list_active_rules())

    def calculate_customization_price(
        self, dto: CalculatePriceDTO, grid: Optional[PricingGrid] = None
    ) -> CustomizationQuote:
        grid = grid or self.load_grid()
        quote = quote_customization(
            grid,
            text_front=dto.text_front,
            text_back=dto.text_back,
            image_front=dto.image_front,
            image_back=dto.image_back,
            base_model_price=dto.base_model_price,
        )
        logger.info(
            "customization.price_calculated",
            text_placement=quote.text_placement,
            image_placement=quote.image_placement,
            combo_applied=quote.combo_applied,
            customization_price=str(quote.customization_price),
        )
        return quote

    @staticmethod
    def surcharge_for(
        selections: CustomizationSelectionsDTO,
        grid: PricingGrid,
        product_table: Optional[Mapping[str, Any]] = None,
    ) -> CustomizationQuote:
        """Price one order line's selections, honouring product overrides."""
        return quote_customization(
            grid.overlay(product_table),
            text_front=selections.text_front,
            text_back=selections.text_back,
            image_front=selections.image_front,
            image_back=selections.image_back,
        )

    # ------------------------------------------------------------------
    # Rule management
    # ------------------------------------------------------------------

    def list_rules(self) -> List[CustomizationPricingRule]:
        return self._rule_repo.list()

    @transaction.atomic
    def create_rule(self, dto: PricingRuleDTO) -> CustomizationPricingRule:
        """Create a rule for a new key.

        Raises:
            InvalidPricingRule: unknown key or unusable price.
            DuplicatePricingRule: a rule already exists for the key.
        """
        self._validate(dto)
        log = logger.bind(type=dto.type, placement=dto.placement)

        if self._rule_repo.get_by_key(dto.type, dto.placement):
            log.warning("pricing_rule.duplicate_key")
            raise DuplicatePricingRule(
                f"A pricing rule already exists for {dto.type}/{dto.placement}.",
                type=dto.type,
                placement=dto.placement,
            )

        rule = CustomizationPricingRule(
            type=dto.type,
            placement=dto.placement,
            price=dto.price,
            is_active=dto.is_active,
        )
        try:
            with transaction.atomic():
                rule = self._rule_repo.save(rule)
        except IntegrityError as exc:
            log.warning("pricing_rule.duplicate_key_race")
            raise DuplicatePricingRule(
                f"A pricing rule already exists for {dto.type}/{dto.placement}.",
                type=dto.type,
                placement=dto.placement,
            ) from exc
        return rule

    def upsert_rule(self, dto: PricingRuleDTO) -> Tuple[CustomizationPricingRule, bool]:
        """Create or replace the rule for a key (admin grid editing)."""
        self._validate(dto)
        return self._rule_repo.upsert(dto.type, dto.placement, dto.price, dto.is_active)

    @staticmethod
    def _validate(dto: PricingRuleDTO) -> None:
        allowed = ALLOWED_PLACEMENTS.get(dto.type)
        if allowed is None:
            raise InvalidPricingRule(
                f"Unknown customization type '{dto.type}'.", type=dto.type
            )
        if dto.placement not in allowed:
            raise InvalidPricingRule(
                f"Placement '{dto.placement}' is not valid for {dto.type} rules.",
                type=dto.type,
                placement=dto.placement,
                allowed=list(allowed),
            )
        price = dto.price
        if not price.is_finite() or price < 0:
            raise InvalidPricingRule(
                "Price must be a non-negative amount.", price=str(price)
            )
