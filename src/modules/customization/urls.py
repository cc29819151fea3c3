"""Customization URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.customization.views import CalculatePriceView, PricingRuleListView

urlpatterns = [
    path(
        "customization/calculate-price/",
        CalculatePriceView.as_view(),
        name="customization-calculate-price",
    ),
    path(
        "customization/pricing-rules/",
        PricingRuleListView.as_view(),
        name="customization-pricing-rules",
    ),
]
