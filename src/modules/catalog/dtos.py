"""Catalog DTOs shared with the order module (Pydantic v2, immutable)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator

from modules.catalog.models import normalize_key_part


class VariantKeyDTO(BaseModel):
    """Composite (size, color, material) key of a product variant."""

    model_config = ConfigDict(frozen=True)

    size: str
    color: str
    material: str = ""

    @field_validator("size", "color", "material", mode="before")
    @classmethod
    def normalize(cls, v: object) -> str:
        return normalize_key_part(v)

    @field_validator("size", "color")
    @classmethod
    def must_not_be_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("Variant size and color are required.")
        return v

    def as_dict(self) -> dict[str, str]:
        return {"size": self.size, "color": self.color, "material": self.material}
