"""Customization DRF serializers for API input/output."""

from __future__ import annotations

from rest_framework import serializers

from modules.customization.constants import CustomizationType, Placement
from modules.customization.models import CustomizationPricingRule


class CalculatePriceSerializer(serializers.Serializer):
    text_front = serializers.BooleanField(required=False, default=False)
    text_back = serializers.BooleanField(required=False, default=False)
    image_front = serializers.BooleanField(required=False, default=False)
    image_back = serializers.BooleanField(required=False, default=False)
    # Kept raw: unusable values are ignored by the calculator.
    base_model_price = serializers.JSONField(
        required=False, default=None, allow_null=True
    )


class PricingRuleInputSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=CustomizationType.choices)
    placement = serializers.ChoiceField(choices=Placement.choices)
    price = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0)
    is_active = serializers.BooleanField(required=False, default=True)


class PricingRuleSerializer(serializers.ModelSerializer):
    class Meta:
        model = CustomizationPricingRule
        fields = ["id", "type", "placement", "price", "is_active", "updated_at"]
        read_only_fields = fields
