from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from modules.catalog.dtos import VariantKeyDTO
from modules.catalog.models import Product, ProductStatus, ProductVariant
from modules.catalog.repositories.django_repository import CatalogDjangoRepository
from modules.customization.dtos import CustomizationSelectionsDTO
from modules.customization.repositories.django_repository import (
    PricingRuleDjangoRepository,
)
from modules.customization.services import CustomizationPricingService
from modules.orders.constants import PaymentMethod
from modules.orders.dtos import AddressDTO, CreateOrderDTO, CreateOrderItemDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService

User = get_user_model()


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@pytest.fixture()
def user():
    return User.objects.create_user(username="customer", password="testpass123")


@pytest.fixture()
def other_user():
    return User.objects.create_user(username="other", password="testpass123")


@pytest.fixture()
def staff_user():
    return User.objects.create_user(
        username="staff", password="testpass123", is_staff=True
    )


@pytest.fixture()
def auth_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture()
def staff_client(staff_user):
    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest.fixture()
def product():
    return Product.objects.create(
        name="Classic T-shirt",
        slug="classic-tee",
        status=ProductStatus.ACTIVE,
        base_price=Decimal("20.00"),
    )


@pytest.fixture()
def variant(product):
    return ProductVariant.objects.create(
        product=product, size="M", color="Black", material="Cotton", stock=10
    )


@pytest.fixture()
def make_product():
    def _make(
        slug,
        base_price,
        stock=10,
        sale_price=None,
        status=ProductStatus.ACTIVE,
        **fields,
    ):
        product = Product.objects.create(
            name=slug.replace("-", " ").title(),
            slug=slug,
            status=status,
            base_price=Decimal(base_price),
            sale_price=Decimal(sale_price) if sale_price is not None else None,
            **fields,
        )
        variant = ProductVariant.objects.create(
            product=product, size="M", color="Black", material="Cotton", stock=stock
        )
        return product, variant

    return _make


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.fixture()
def order_service():
    return OrderService(
        order_repository=OrderDjangoRepository(),
        catalog_repository=CatalogDjangoRepository(),
        customization_service=CustomizationPricingService(
            rule_repository=PricingRuleDjangoRepository()
        ),
    )


@pytest.fixture()
def address():
    return AddressDTO(
        full_name="Alice Martin",
        line1="10 rue de la Paix",
        city="Paris",
        postal_code="75002",
        country="FR",
    )


@pytest.fixture()
def address_payload():
    return {
        "full_name": "Alice Martin",
        "line1": "10 rue de la Paix",
        "city": "Paris",
        "postal_code": "75002",
        "country": "FR",
    }


@pytest.fixture()
def item_dto():
    def _make(product, variant, quantity=1, **customization):
        return CreateOrderItemDTO(
            product_id=product.id,
            variant=VariantKeyDTO(
                size=variant.size, color=variant.color, material=variant.material
            ),
            quantity=quantity,
            customization=CustomizationSelectionsDTO(**customization),
        )

    return _make


@pytest.fixture()
def order_dto(user, address):
    def _make(items, **fields):
        fields.setdefault("payment_method", PaymentMethod.CARD)
        fields.setdefault("user_id", user.id)
        return CreateOrderDTO(items=items, shipping_address=address, **fields)

    return _make


@pytest.fixture()
def place_order(order_service, order_dto, item_dto):
    """Create an order for *quantity* units of *variant* through the service."""

    def _place(product, variant, quantity=1, **fields):
        return order_service.create_order(
            order_dto([item_dto(product, variant, quantity)], **fields)
        )

    return _place
