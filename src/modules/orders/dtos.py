"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CreateOrderItemDTO``: one requested line (product, variant key,
  quantity, customization selections).
- ``AddressDTO``: shipping / billing address.
- ``CreateOrderDTO``: input for order creation (nested items).
- ``RefundDTO``: input for a refund request.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modules.catalog.dtos import VariantKeyDTO
from modules.customization.dtos import CustomizationSelectionsDTO
from modules.orders.constants import PaymentMethod

# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """Immutable DTO for a single order line.

    ``unit_price`` and the customization surcharge are resolved by the
    Service Layer; the client only states what it wants.
    """

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    variant: VariantKeyDTO
    quantity: int
    customization: CustomizationSelectionsDTO = Field(
        default_factory=CustomizationSelectionsDTO
    )

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class AddressDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    full_name: str
    line1: str
    line2: str = ""
    city: str
    postal_code: str
    country: str
    phone: str = ""

    @field_validator("full_name", "line1", "city", "postal_code", "country")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("This address field is required.")
        return v


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation requests.

    Validates:
    - ``items`` must contain at least one item.
    - ``payment_method`` is one of ``PaymentMethod``.
    - ``billing_address`` defaults to the shipping address.
    """

    model_config = ConfigDict(frozen=True)

    user_id: int
    items: List[CreateOrderItemDTO]
    shipping_address: AddressDTO
    billing_address: Optional[AddressDTO] = None
    payment_method: str
    discount_code: Optional[str] = None
    customer_notes: str = ""
    idempotency_key: Optional[str] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @field_validator("payment_method")
    @classmethod
    def payment_method_must_be_known(cls, v: str) -> str:
        if v not in PaymentMethod.values:
            raise ValueError(f"Unknown payment method '{v}'.")
        return v

    @field_validator("discount_code")
    @classmethod
    def normalize_discount_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip().upper() or None

    @property
    def effective_billing_address(self) -> AddressDTO:
        return self.billing_address or self.shipping_address


class RefundDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: Decimal
    reason: str
    refund_id: str = ""

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str) -> str:
        return v.strip()
