"""Customization DTOs for the Service Layer (Pydantic v2, immutable).

- ``CustomizationSelectionsDTO``: which sides carry text and/or image,
  plus the descriptive content kept on the order line.
- ``CalculatePriceDTO``: selections + optional base model price.
- ``PricingRuleDTO``: input for creating / upserting a grid rule.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class CustomizationSelectionsDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    text_front: bool = False
    text_back: bool = False
    image_front: bool = False
    image_back: bool = False
    text_content: str = ""
    image_url: str = ""

    @field_validator("text_content")
    @classmethod
    def text_content_max_length(cls, v: str) -> str:
        v = v.strip()
        if len(v) > 50:
            raise ValueError("Customization text cannot exceed 50 characters.")
        return v

    @property
    def has_text(self) -> bool:
        return self.text_front or self.text_back

    @property
    def has_image(self) -> bool:
        return self.image_front or self.image_back

    @property
    def is_empty(self) -> bool:
        return not (self.has_text or self.has_image)


class CalculatePriceDTO(CustomizationSelectionsDTO):
    """``base_model_price`` is kept raw: unusable values are ignored, not rejected."""

    base_model_price: Any = None


class PricingRuleDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    placement: str
    price: Decimal
    is_active: bool = True

    @field_validator("type", "placement", mode="before")
    @classmethod
    def normalize_key(cls, v: Any) -> str:
        return str(v).strip().lower()
