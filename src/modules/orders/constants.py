"""Order domain constants.

Single canonical status enumeration for the order state machine, plus
the payment and line-item sub-statuses and the pricing defaults that
``config.settings`` may override (``ORDER_*`` settings).
"""

from decimal import Decimal

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PROCESSING = "processing", "Processing"
    PRODUCTION = "production", "In production"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"
    PARTIALLY_REFUNDED = "partially-refunded", "Partially refunded"


class PaymentMethod(models.TextChoices):
    CARD = "card", "Card"
    PAYPAL = "paypal", "PayPal"
    BANK_TRANSFER = "bank-transfer", "Bank transfer"
    CASH_ON_DELIVERY = "cash-on-delivery", "Cash on delivery"


class ItemStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    IN_PRODUCTION = "in-production", "In production"
    READY = "ready", "Ready"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


class DiscountKind(models.TextChoices):
    PERCENTAGE = "percentage", "Percentage"
    FIXED = "fixed", "Fixed amount"


CANCELLABLE_STATES: frozenset[str] = frozenset(
    {OrderStatus.PENDING, OrderStatus.CONFIRMED}
)

REFUNDABLE_STATES: frozenset[str] = frozenset(
    {OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED}
)

REFUNDABLE_PAYMENT_STATES: frozenset[str] = frozenset(
    {PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED}
)

# A failure reported after these is stale and must not overwrite them.
SETTLED_PAYMENT_STATES: frozenset[str] = frozenset(
    {
        PaymentStatus.COMPLETED,
        PaymentStatus.PARTIALLY_REFUNDED,
        PaymentStatus.REFUNDED,
    }
)

# Terminal by convention: no modelled operation leaves these states except
# an explicit privileged status update.
TERMINAL_STATES: frozenset[str] = frozenset(
    {OrderStatus.CANCELLED, OrderStatus.REFUNDED}
)

DEFAULT_ORDER_NUMBER_PREFIX = "CW"
DEFAULT_TAX_RATE = Decimal("0.20")
DEFAULT_SHIPPING_COST = Decimal("5.99")
DEFAULT_FREE_SHIPPING_THRESHOLD = Decimal("50.00")
DEFAULT_CURRENCY = "EUR"

ORDER_NUMBER_MAX_RETRIES = 5

# Estimated production time, in days.
BASE_PRODUCTION_DAYS = 1
TEXT_PRODUCTION_DAYS = 1
IMAGE_PRODUCTION_DAYS = 2
