"""Customization pricing rule model.

One row per (type, placement) key; inactive rows are ignored when the
pricing grid is loaded and the built-in default applies instead.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel
from modules.customization.constants import CustomizationType, Placement


class CustomizationPricingRule(BaseModel):
    type = models.CharField(max_length=10, choices=CustomizationType.choices)
    placement = models.CharField(max_length=10, choices=Placement.choices)
    price = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "customization_pricing_rules"
        ordering = ["type", "placement"]
        constraints = [
            models.UniqueConstraint(
                fields=["type", "placement"],
                name="customization_pricing_unique_key",
            ),
            models.CheckConstraint(
                check=models.Q(price__gte=0),
                name="customization_pricing_price_non_negative",
            ),
        ]

    def __str__(self) -> str:
        state = "" if self.is_active else " (inactive)"
        return f"{self.type}/{self.placement} = {self.price}{state}"
