"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.models import (
    Order,
    OrderItem,
    PricingSnapshot,
    RefundEntry,
    TimelineEntry,
)

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class VariantKeySerializer(serializers.Serializer):
    size = serializers.CharField(max_length=20)
    color = serializers.CharField(max_length=64)
    material = serializers.CharField(
        max_length=64, required=False, default="", allow_blank=True
    )


class CustomizationSelectionsSerializer(serializers.Serializer):
    text_front = serializers.BooleanField(required=False, default=False)
    text_back = serializers.BooleanField(required=False, default=False)
    image_front = serializers.BooleanField(required=False, default=False)
    image_back = serializers.BooleanField(required=False, default=False)
    text_content = serializers.CharField(
        max_length=50, required=False, default="", allow_blank=True
    )
    image_url = serializers.URLField(required=False, default="", allow_blank=True)


class CreateOrderItemSerializer(serializers.Serializer):
    """Validates a single item in an order creation request."""

    product_id = serializers.UUIDField()
    variant = VariantKeySerializer()
    quantity = serializers.IntegerField(min_value=1)
    customization = CustomizationSelectionsSerializer(required=False)


class AddressSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=255)
    line1 = serializers.CharField(max_length=255)
    line2 = serializers.CharField(
        max_length=255, required=False, default="", allow_blank=True
    )
    city = serializers.CharField(max_length=100)
    postal_code = serializers.CharField(max_length=20)
    country = serializers.CharField(max_length=100)
    phone = serializers.CharField(
        max_length=30, required=False, default="", allow_blank=True
    )


class CreateOrderSerializer(serializers.Serializer):
    """Validates the order creation request payload."""

    items = CreateOrderItemSerializer(many=True, allow_empty=False)
    shipping_address = AddressSerializer()
    billing_address = AddressSerializer(required=False, allow_null=True, default=None)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    discount_code = serializers.CharField(
        max_length=50, required=False, allow_blank=True, allow_null=True, default=None
    )
    customer_notes = serializers.CharField(
        max_length=1000, required=False, default="", allow_blank=True
    )


class UpdateStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    note = serializers.CharField(required=False, default="", allow_blank=True)


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, default="", allow_blank=True)


class TrackingSerializer(serializers.Serializer):
    carrier = serializers.CharField(max_length=100)
    tracking_number = serializers.CharField(max_length=100)
    tracking_url = serializers.URLField(required=False, default="", allow_blank=True)


class PaymentResultSerializer(serializers.Serializer):
    succeeded = serializers.BooleanField()
    transaction_id = serializers.CharField(
        max_length=255, required=False, default="", allow_blank=True
    )


class RefundSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    reason = serializers.CharField()
    refund_id = serializers.CharField(
        max_length=255, required=False, default="", allow_blank=True
    )


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "variant_id",
            "product_name",
            "size",
            "color",
            "material",
            "quantity",
            "unit_price",
            "customization",
            "customization_price",
            "total_price",
            "status",
        ]
        read_only_fields = fields


class PricingSnapshotSerializer(serializers.ModelSerializer):
    class Meta:
        model = PricingSnapshot
        fields = [
            "subtotal",
            "customization_total",
            "shipping",
            "discount",
            "discount_code",
            "tax_rate",
            "tax",
            "total",
            "currency",
        ]
        read_only_fields = fields


class TimelineEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = TimelineEntry
        fields = ["id", "previous_status", "status", "note", "actor_id", "created_at"]
        read_only_fields = fields


class RefundEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = RefundEntry
        fields = ["id", "amount", "reason", "refund_id", "created_at"]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items, pricing and history."""

    items = OrderItemSerializer(many=True, read_only=True)
    pricing = PricingSnapshotSerializer(read_only=True)
    timeline = TimelineEntrySerializer(many=True, read_only=True)
    refunds = RefundEntrySerializer(many=True, read_only=True)
    refundable_amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, read_only=True
    )

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "user_id",
            "status",
            "shipping_address",
            "billing_address",
            "payment_method",
            "payment_status",
            "payment_transaction_id",
            "paid_at",
            "tracking_carrier",
            "tracking_number",
            "tracking_url",
            "shipped_at",
            "delivered_at",
            "cancelled_at",
            "customer_notes",
            "estimated_production_days",
            "created_at",
            "updated_at",
            "items",
            "pricing",
            "timeline",
            "refunds",
            "refundable_amount",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested history)."""

    total = serializers.DecimalField(
        source="pricing.total", max_digits=12, decimal_places=2, read_only=True
    )

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "user_id",
            "status",
            "payment_status",
            "total",
            "created_at",
        ]
        read_only_fields = fields
