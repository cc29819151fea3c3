"""Customization pricing rule repository interface."""

from __future__ import annotations

from abc import abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional, Tuple

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.customization.models import CustomizationPricingRule


class IPricingRuleRepository(IRepository["CustomizationPricingRule"]):
    """Repository contract for the customization pricing grid rows."""

    @abstractmethod
    def list_active_rules(self) -> List[Tuple[str, str, Decimal]]:
        """Return ``(type, placement, price)`` for every active rule."""

    @abstractmethod
    def get_by_key(self, type: str, placement: str) -> Optional[CustomizationPricingRule]:
        """Retrieve the rule for a (type, placement) key."""

    @abstractmethod
    def upsert(
        self, type: str, placement: str, price: Decimal, is_active: bool
    ) -> Tuple[CustomizationPricingRule, bool]:
        """Create or update the rule for a key; returns ``(rule, created)``."""
