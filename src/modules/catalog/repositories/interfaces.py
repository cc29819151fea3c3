"""Catalog repository interface.

The order service consumes the catalog through this contract: product
look-up with variants, and conditional stock updates keyed by the
variant surrogate id.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional
from uuid import UUID

if TYPE_CHECKING:
    from modules.catalog.dtos import VariantKeyDTO
    from modules.catalog.models import Product, ProductVariant


class StockUpdate(str, enum.Enum):
    """Outcome of a conditional stock update."""

    OK = "ok"
    NO_MATCH = "no_match"
    INSUFFICIENT = "insufficient"


class ICatalogRepository(ABC):
    """Repository contract for products, variants and stock."""

    @abstractmethod
    def get_product(self, id: UUID) -> Optional[Product]:
        """Retrieve a product with its variants prefetched.

        Raises ``CatalogUnavailable`` when the store cannot be reached.
        """

    @abstractmethod
    def find_variant(self, product: Product, key: VariantKeyDTO) -> Optional[ProductVariant]:
        """Return the variant of *product* matching *key*, if any."""

    @abstractmethod
    def conditional_decrement_stock(self, variant_id: UUID, quantity: int) -> StockUpdate:
        """Atomically remove *quantity* units, only if enough remain."""

    @abstractmethod
    def conditional_increment_stock(self, variant_id: UUID, quantity: int) -> StockUpdate:
        """Atomically return *quantity* units to the variant."""
