"""Integration tests for the customization pricing endpoints."""

from __future__ import annotations

from decimal import Decimal

import pytest

from modules.customization.models import CustomizationPricingRule

pytestmark = pytest.mark.integration

CALCULATE_URL = "/api/v1/customization/calculate-price/"
RULES_URL = "/api/v1/customization/pricing-rules/"


class TestCalculatePrice:
    def test_is_public(self, api_client):
        response = api_client.post(CALCULATE_URL, {}, format="json")

        assert response.status_code == 200
        assert response.data["totals"]["customization_price"] == Decimal("0.00")

    def test_text_front_and_back(self, api_client):
        response = api_client.post(
            CALCULATE_URL, {"text_front": True, "text_back": True}, format="json"
        )

        data = response.data
        assert data["details"]["text_placement"] == "both"
        assert data["details"]["savings"]["text"] == Decimal("2.00")
        assert data["totals"]["customization_price"] == Decimal("8.00")
        assert data["totals"]["grand_total"] is None

    def test_combo_with_base_price(self, api_client):
        response = api_client.post(
            CALCULATE_URL,
            {"text_front": True, "image_front": True, "base_model_price": "19.90"},
            format="json",
        )

        data = response.data
        assert data["details"]["combo"]["applied"] is True
        assert data["totals"]["customization_price"] == Decimal("12.00")
        assert data["totals"]["grand_total"] == Decimal("31.90")
        assert data["selections"]["image_front"] is True

    def test_negative_base_price_is_ignored(self, api_client):
        response = api_client.post(
            CALCULATE_URL,
            {"image_front": True, "base_model_price": -5},
            format="json",
        )

        assert response.status_code == 200
        assert response.data["totals"]["customization_price"] == Decimal("10.00")
        assert response.data["totals"]["grand_total"] is None

    def test_grid_reflects_active_rules(self, api_client):
        CustomizationPricingRule.objects.create(
            type="image", placement="front", price=Decimal("11.00")
        )

        response = api_client.post(CALCULATE_URL, {"image_front": True}, format="json")

        assert response.data["grid"]["image"]["front"] == "11.00"
        assert response.data["totals"]["customization_price"] == Decimal("11.00")


class TestPricingRules:
    def test_list_is_public(self, api_client):
        CustomizationPricingRule.objects.create(
            type="text", placement="front", price=Decimal("5.00")
        )

        response = api_client.get(RULES_URL)

        assert response.status_code == 200
        assert [(r["type"], r["placement"]) for r in response.data] == [
            ("text", "front")
        ]

    def test_staff_upsert(self, staff_client):
        body = {"type": "combo", "placement": "any", "price": "13.00"}

        created = staff_client.post(RULES_URL, body, format="json")
        updated = staff_client.post(
            RULES_URL, {**body, "price": "12.50"}, format="json"
        )

        assert created.status_code == 201
        assert updated.status_code == 200
        assert CustomizationPricingRule.objects.get().price == Decimal("12.50")

    def test_invalid_placement_for_type(self, staff_client):
        response = staff_client.post(
            RULES_URL,
            {"type": "combo", "placement": "front", "price": "13.00"},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["code"] == "validation_error"

    def test_negative_price_rejected(self, staff_client):
        response = staff_client.post(
            RULES_URL,
            {"type": "text", "placement": "front", "price": "-1.00"},
            format="json",
        )
        assert response.status_code == 400

    def test_customers_cannot_edit_rules(self, auth_client):
        response = auth_client.post(
            RULES_URL,
            {"type": "text", "placement": "front", "price": "1.00"},
            format="json",
        )
        assert response.status_code == 403
