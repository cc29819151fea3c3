"""Django ORM implementation of the pricing rule repository."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction

from modules.customization.exceptions import PricingStoreUnavailable
from modules.customization.models import CustomizationPricingRule
from modules.customization.repositories.interfaces import IPricingRuleRepository

logger = structlog.get_logger(__name__)


class PricingRuleDjangoRepository(IPricingRuleRepository):
    """Concrete pricing rule repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[CustomizationPricingRule]:
        try:
            return CustomizationPricingRule.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> List[CustomizationPricingRule]:
        queryset = CustomizationPricingRule.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def list_active_rules(self) -> List[Tuple[str, str, Decimal]]:
        try:
            return list(
                CustomizationPricingRule.objects.filter(is_active=True).values_list(
                    "type", "placement", "price"
                )
            )
        except DatabaseError as exc:
            logger.error("pricing_rules.load_failed", error=str(exc))
            raise PricingStoreUnavailable(
                "Customization pricing rules could not be loaded."
            ) from exc

    def get_by_key(
        self, type: str, placement: str
    ) -> Optional[CustomizationPricingRule]:
        return CustomizationPricingRule.objects.filter(
            type=type, placement=placement
        ).first()

    @transaction.atomic
    def save(self, entity: CustomizationPricingRule) -> CustomizationPricingRule:
        entity.save()
        logger.info(
            "pricing_rule.saved",
            rule_id=str(entity.id),
            type=entity.type,
            placement=entity.placement,
        )
        return entity

    @transaction.atomic
    def upsert(
        self, type: str, placement: str, price: Decimal, is_active: bool
    ) -> Tuple[CustomizationPricingRule, bool]:
        rule, created = CustomizationPricingRule.objects.update_or_create(
            type=type,
            placement=placement,
            defaults={"price": price, "is_active": is_active},
        )
        logger.info(
            "pricing_rule.upserted",
            rule_id=str(rule.id),
            type=type,
            placement=placement,
            created=created,
        )
        return rule, created
