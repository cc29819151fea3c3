"""Product and ProductVariant models.

Business rules implemented:
- Only ``active`` products can be ordered (enforced at service layer).
- Effective unit price is the sale price when ``0 < sale < base``.
- Each variant is a (size, color, material) combination with its own stock;
  stock can never go negative (DB check constraint).
- Variants carry a stable surrogate id (UUIDv7) so stock reservation never
  depends on matching the composite key at write time.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel, SoftDeleteModel

logger = structlog.get_logger(__name__)


class ProductStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
    DISCONTINUED = "discontinued", "Discontinued"


class Product(SoftDeleteModel):
    """Catalog product.

    ``customization_table`` optionally overrides the storefront pricing
    grid for this product only, using the grid shape::

        {"text": {"front": "6.00"}, "combo": {"any": "10.00"}}
    """

    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True)
    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.DRAFT,
    )
    base_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    sale_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        default=None,
    )
    currency = models.CharField(max_length=3, default="EUR")
    is_customizable = models.BooleanField(default=True)
    customization_table = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "catalog_products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status"], name="catalog_products_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(base_price__gte=0),
                name="catalog_products_base_price_non_negative",
            ),
        ]

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE and not self.is_deleted

    def clean(self) -> None:
        super().clean()
        if self.sale_price is not None and self.sale_price >= self.base_price:
            raise ValidationError(
                {"sale_price": "Sale price must be lower than the base price."}
            )

    def __str__(self) -> str:
        return self.name


def normalize_key_part(value: Any) -> str:
    """Collapse whitespace so ``" Navy  Blue "`` and ``"Navy Blue"`` match."""
    return " ".join(str(value or "").split())


class ProductVariant(BaseModel):
    """A size/color/material combination of a product, with its own stock."""

    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.CASCADE,
        related_name="variants",
    )
    size = models.CharField(max_length=20)
    color = models.CharField(max_length=64)
    material = models.CharField(max_length=64, blank=True, default="")
    stock = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "catalog_variants"
        ordering = ["product_id", "size", "color", "material"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "size", "color", "material"],
                name="catalog_variants_unique_key",
            ),
            models.CheckConstraint(
                check=models.Q(stock__gte=0),
                name="catalog_variants_stock_non_negative",
            ),
        ]

    def matches(self, size: str, color: str, material: str) -> bool:
        return (self.size, self.color, self.material) == (
            normalize_key_part(size),
            normalize_key_part(color),
            normalize_key_part(material),
        )

    @property
    def key(self) -> dict[str, str]:
        return {"size": self.size, "color": self.color, "material": self.material}

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.size = normalize_key_part(self.size)
        self.color = normalize_key_part(self.color)
        self.material = normalize_key_part(self.material)
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product_id} [{self.size}/{self.color}/{self.material}]"
