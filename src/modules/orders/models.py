"""Order aggregate models.

Business rules implemented:
- Order number ``<PREFIX><YY><MM><DD><NNNN>``: NNNN is the number of orders
  created on the same local calendar day plus one.  A unique constraint and
  a bounded retry resolve same-day races.
- Orders are never physically deleted.
- ``OrderItem.total_price = (unit_price + customization_price) * quantity``.
- ``PricingSnapshot``, ``TimelineEntry`` and ``RefundEntry`` are append-only.
- Idempotency via a per-user ``idempotency_key`` unique constraint.
- User FK uses PROTECT to preserve financial history.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Optional

import structlog
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator
from django.db import IntegrityError, models, transaction
from django.db.models import Sum
from django.utils import timezone

from modules.core.models import AppendOnlyModel, BaseModel, ImmutableRecord
from modules.orders.constants import (
    CANCELLABLE_STATES,
    DEFAULT_CURRENCY,
    DEFAULT_ORDER_NUMBER_PREFIX,
    ORDER_NUMBER_MAX_RETRIES,
    REFUNDABLE_PAYMENT_STATES,
    REFUNDABLE_STATES,
    TERMINAL_STATES,
    DiscountKind,
    ItemStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from shared.domain.events import DomainEventMixin
from shared.domain.money import ZERO, money

logger = structlog.get_logger(__name__)


class OrderNumberUnavailable(Exception):
    """No free order number was found within the retry budget."""


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    The UUIDv7 ``id`` is used for all internal references and API
    look-ups; ``order_number`` is the human-readable identifier.

    ``idempotency_key`` is nullable: only orders created with a
    client-provided key carry one. Keys are scoped to the ordering user.
    """

    order_number = models.CharField(max_length=20, unique=True, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    shipping_address = models.JSONField(default=dict)
    billing_address = models.JSONField(default=dict)

    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    payment_transaction_id = models.CharField(max_length=255, blank=True, default="")
    paid_at = models.DateTimeField(null=True, blank=True, default=None)

    tracking_carrier = models.CharField(max_length=100, blank=True, default="")
    tracking_number = models.CharField(max_length=100, blank=True, default="")
    tracking_url = models.URLField(max_length=500, blank=True, default="")
    shipped_at = models.DateTimeField(null=True, blank=True, default=None)
    delivered_at = models.DateTimeField(null=True, blank=True, default=None)
    cancelled_at = models.DateTimeField(null=True, blank=True, default=None)

    customer_notes = models.TextField(blank=True, default="")
    estimated_production_days = models.PositiveSmallIntegerField(default=1)
    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "idempotency_key"],
                name="orders_user_idempotency_key_uniq",
            ),
        ]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
            models.Index(fields=["user", "-created_at"], name="orders_user_idx"),
        ]

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def can_be_cancelled(self) -> bool:
        return self.status in CANCELLABLE_STATES

    @property
    def can_be_refunded(self) -> bool:
        return (
            self.payment_status in REFUNDABLE_PAYMENT_STATES
            and self.status in REFUNDABLE_STATES
        )

    # ------------------------------------------------------------------
    # Money
    # ------------------------------------------------------------------

    @property
    def total(self) -> Decimal:
        snapshot = getattr(self, "pricing", None)
        return snapshot.total if snapshot else ZERO

    @property
    def total_refunded(self) -> Decimal:
        refunded = self.refunds.aggregate(total=Sum("amount"))["total"]
        return money(refunded or ZERO)

    @property
    def refundable_amount(self) -> Decimal:
        return max(ZERO, money(self.total - self.total_refunded))

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def format_order_number(prefix: str, day: date, sequence: int) -> str:
        """``format_order_number("CW", date(2024, 6, 15), 7) == "CW2406150007"``."""
        return f"{prefix}{day:%y%m%d}{sequence:04d}"

    @classmethod
    def next_sequence(cls, day: date) -> int:
        return cls.objects.filter(created_at__date=day).count() + 1

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if self.order_number:
            super().save(*args, **kwargs)
            return

        prefix = getattr(settings, "ORDER_NUMBER_PREFIX", DEFAULT_ORDER_NUMBER_PREFIX)
        today = timezone.localdate()
        sequence = self.next_sequence(today)
        for attempt in range(ORDER_NUMBER_MAX_RETRIES):
            candidate = self.format_order_number(prefix, today, sequence + attempt)
            self.order_number = candidate
            try:
                with transaction.atomic():
                    super().save(*args, **kwargs)
                return
            except IntegrityError:
                self.order_number = ""
                if not Order.objects.filter(order_number=candidate).exists():
                    raise
                logger.warning(
                    "order.number_collision", order_number=candidate, attempt=attempt
                )
        raise OrderNumberUnavailable(
            f"Failed to generate a unique order number after "
            f"{ORDER_NUMBER_MAX_RETRIES} attempts"
        )

    def delete(self, using=None, keep_parents=False):
        raise ImmutableRecord("Orders cannot be deleted.", order_id=self.pk)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Line item with a snapshot of the variant key and the prices paid.

    ``unit_price`` and ``customization_price`` never change once the order
    exists, even if the catalog or the pricing grid is updated later.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    variant = models.ForeignKey(
        "catalog.ProductVariant",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    product_name = models.CharField(max_length=255)
    size = models.CharField(max_length=20)
    color = models.CharField(max_length=64)
    material = models.CharField(max_length=64, blank=True, default="")
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    customization = models.JSONField(
        default=dict, blank=True, encoder=DjangoJSONEncoder
    )
    customization_price = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00")
    )
    total_price = models.DecimalField(max_digits=12, decimal_places=2, editable=False)
    status = models.CharField(
        max_length=20,
        choices=ItemStatus.choices,
        default=ItemStatus.PENDING,
    )

    class Meta:
        db_table = "order_items"
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    @property
    def variant_key(self) -> dict[str, str]:
        return {"size": self.size, "color": self.color, "material": self.material}

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.total_price = money(
            (Decimal(self.unit_price) + Decimal(self.customization_price))
            * self.quantity
        )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product_name} [{self.size}/{self.color}] x{self.quantity}"


class PricingSnapshot(AppendOnlyModel):
    """Authoritative price breakdown captured when the order was placed."""

    order = models.OneToOneField(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="pricing",
    )
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    customization_total = models.DecimalField(max_digits=12, decimal_places=2)
    shipping = models.DecimalField(max_digits=10, decimal_places=2)
    discount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    discount_code = models.CharField(max_length=50, blank=True, default="")
    tax_rate = models.DecimalField(max_digits=5, decimal_places=4)
    tax = models.DecimalField(max_digits=12, decimal_places=2)
    total = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default=DEFAULT_CURRENCY)

    class Meta:
        db_table = "order_pricing_snapshots"

    def __str__(self) -> str:
        return f"{self.order_id}: {self.total} {self.currency}"


class TimelineEntry(AppendOnlyModel):
    """One status change of an order.  ``actor`` is ``None`` for system changes."""

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="timeline",
    )
    previous_status = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    status = models.CharField(max_length=20, choices=OrderStatus.choices)
    note = models.TextField(blank=True, default="")
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        db_table = "order_timeline"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["order", "created_at"], name="timeline_order_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.order_id}: {self.previous_status} -> {self.status}"


class RefundEntry(AppendOnlyModel):
    """Ledger line of a (partial or full) refund."""

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="refunds",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    reason = models.TextField()
    refund_id = models.CharField(max_length=255, blank=True, default="")
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        db_table = "order_refunds"
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(amount__gt=0),
                name="order_refunds_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id}: -{self.amount}"


class DiscountCode(BaseModel):
    """Promotion code applied to ``subtotal + customization_total``."""

    code = models.CharField(max_length=50, unique=True)
    kind = models.CharField(max_length=20, choices=DiscountKind.choices)
    value = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    is_active = models.BooleanField(default=True)
    expires_at = models.DateTimeField(null=True, blank=True, default=None)

    class Meta:
        db_table = "order_discount_codes"
        ordering = ["code"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(value__gte=0),
                name="order_discount_codes_value_non_negative",
            ),
        ]

    def is_usable(self, at: Optional[Any] = None) -> bool:
        at = at or timezone.now()
        if not self.is_active:
            return False
        return self.expires_at is None or self.expires_at > at

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return self.code
