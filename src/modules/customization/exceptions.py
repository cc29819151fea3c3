"""Customization pricing exceptions."""

from __future__ import annotations

from shared.domain.exceptions import (
    ConflictError,
    ExternalServiceError,
    ValidationError,
)


class InvalidPricingRule(ValidationError):
    """Unknown type/placement combination or a negative / non-finite price."""


class DuplicatePricingRule(ConflictError):
    """A rule already exists for the same (type, placement) key."""


class CustomizationNotAvailable(ValidationError):
    """Customization was requested on a product that does not allow it."""


class PricingStoreUnavailable(ExternalServiceError):
    """The pricing rule store could not be reached."""
