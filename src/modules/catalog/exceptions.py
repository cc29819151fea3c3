"""Catalog domain exceptions.

Raised by the catalog repository and by the order creation protocol
when a requested product or variant cannot be sold.
"""

from __future__ import annotations

from shared.domain.exceptions import ConflictError, ExternalServiceError, NotFoundError


class ProductNotFound(NotFoundError):
    """The requested product does not exist or has been soft-deleted."""


class InactiveProduct(NotFoundError):
    """The product exists but is not in ``active`` status."""


class VariantNotFound(NotFoundError):
    """No variant matches the requested (size, color, material) key."""


class InsufficientStock(ConflictError):
    """Not enough stock on the variant to fulfil the requested quantity."""


class CatalogUnavailable(ExternalServiceError):
    """The catalog store could not be reached."""
