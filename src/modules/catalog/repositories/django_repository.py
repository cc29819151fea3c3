"""Django ORM implementation of the catalog repository.

Stock changes are single conditional ``UPDATE`` statements using ``F()``
expressions, so the availability check and the decrement happen in one
atomic step: two concurrent orders can never both take the last unit.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.db.models import F
from django.utils import timezone

from modules.catalog.dtos import VariantKeyDTO
from modules.catalog.exceptions import CatalogUnavailable
from modules.catalog.models import Product, ProductVariant
from modules.catalog.repositories.interfaces import ICatalogRepository, StockUpdate

logger = structlog.get_logger(__name__)


class CatalogDjangoRepository(ICatalogRepository):
    """Concrete catalog repository backed by Django ORM."""

    def get_product(self, id: UUID) -> Optional[Product]:
        """Retrieve a live product with variants; ``None`` for unknown ids."""
        try:
            return (
                Product.objects.alive()
                .prefetch_related("variants")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None
        except DatabaseError as exc:
            logger.error("catalog.lookup_failed", product_id=str(id), error=str(exc))
            raise CatalogUnavailable(
                f"Catalog lookup failed for product {id}.", product_id=id
            ) from exc

    def find_variant(
        self, product: Product, key: VariantKeyDTO
    ) -> Optional[ProductVariant]:
        for variant in product.variants.all():
            if variant.matches(key.size, key.color, key.material):
                return variant
        return None

    def conditional_decrement_stock(self, variant_id: UUID, quantity: int) -> StockUpdate:
        try:
            updated = ProductVariant.objects.filter(
                id=variant_id, stock__gte=quantity
            ).update(stock=F("stock") - quantity, updated_at=timezone.now())
            if updated:
                return StockUpdate.OK
            if ProductVariant.objects.filter(id=variant_id).exists():
                return StockUpdate.INSUFFICIENT
            return StockUpdate.NO_MATCH
        except DatabaseError as exc:
            logger.error(
                "catalog.stock_update_failed",
                variant_id=str(variant_id),
                error=str(exc),
            )
            raise CatalogUnavailable(
                f"Stock update failed for variant {variant_id}.", variant_id=variant_id
            ) from exc

    def conditional_increment_stock(self, variant_id: UUID, quantity: int) -> StockUpdate:
        try:
            updated = ProductVariant.objects.filter(id=variant_id).update(
                stock=F("stock") + quantity, updated_at=timezone.now()
            )
        except DatabaseError as exc:
            logger.error(
                "catalog.stock_update_failed",
                variant_id=str(variant_id),
                error=str(exc),
            )
            raise CatalogUnavailable(
                f"Stock update failed for variant {variant_id}.", variant_id=variant_id
            ) from exc
        return StockUpdate.OK if updated else StockUpdate.NO_MATCH

