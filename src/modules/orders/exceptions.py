"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches them by category and translates them into
HTTP responses.  Catalog rejections raised during order creation
(``ProductNotFound``, ``InactiveProduct``, ``VariantNotFound``,
``InsufficientStock``) live in ``modules.catalog.exceptions``.
"""

from __future__ import annotations

from shared.domain.exceptions import (
    ExternalServiceError,
    NotFoundError,
    StateError,
    ValidationError,
)


class OrderNotFound(NotFoundError):
    """The requested order does not exist."""


class InvalidOrderStatus(ValidationError):
    """The requested status is not a member of the order status enumeration."""


class OrderNotCancellable(StateError):
    """Cancellation requested outside the pending / confirmed states."""


class RefundNotAllowed(StateError):
    """Payment or order status does not permit a refund."""


class RefundExceedsRefundableAmount(StateError):
    """The refund amount is above what remains refundable on the order."""


class InvalidRefund(ValidationError):
    """Refund amount is not positive or the reason is missing."""


class InvalidDiscountCode(ValidationError):
    """Unknown, inactive or expired discount code."""


class InvalidOrderRequest(ValidationError):
    """Malformed order creation input (items, addresses, quantities)."""


class OrderStoreUnavailable(ExternalServiceError):
    """The order store could not be reached."""
