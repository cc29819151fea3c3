from __future__ import annotations

import random
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from modules.catalog.dtos import VariantKeyDTO
from modules.catalog.models import Product, ProductStatus, ProductVariant
from modules.catalog.repositories.django_repository import CatalogDjangoRepository
from modules.customization.constants import DEFAULT_GRID
from modules.customization.dtos import CustomizationSelectionsDTO
from modules.customization.models import CustomizationPricingRule
from modules.customization.repositories.django_repository import (
    PricingRuleDjangoRepository,
)
from modules.customization.services import CustomizationPricingService
from modules.orders.constants import DiscountKind, PaymentMethod
from modules.orders.dtos import AddressDTO, CreateOrderDTO, CreateOrderItemDTO
from modules.orders.models import DiscountCode
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from shared.domain.exceptions import DomainError

SIZES = ("S", "M", "L", "XL")
COLORS = ("Black", "White", "Navy Blue")


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users = self._seed_users()
        rules_created = self._seed_pricing_rules()
        products = self._seed_products()
        self._seed_discount_codes()
        orders_created = self._seed_orders(users, products)

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={len(users)}, "
                f"pricing_rules={rules_created}, "
                f"products={len(products)}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> list:
        User = get_user_model()
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
        if not User.objects.filter(username="manager").exists():
            User.objects.create_user("manager", password="manager123", is_staff=True)
        customers = []
        for username in ("alice", "bastien", "chloe"):
            user = User.objects.filter(username=username).first()
            if user is None:
                user = User.objects.create_user(username, password=f"{username}123")
            customers.append(user)
        return customers

    def _seed_pricing_rules(self) -> int:
        created = 0
        for kind, prices in DEFAULT_GRID.items():
            for placement, price in prices.items():
                _, was_created = CustomizationPricingRule.objects.get_or_create(
                    type=kind, placement=placement, defaults={"price": price}
                )
                created += int(was_created)
        return created

    def _seed_products(self) -> list[Product]:
        self.stdout.write("Creating products...")
        catalog = [
            ("classic-tee", "Classic T-shirt", Decimal("19.90"), None, True),
            ("organic-tee", "Organic T-shirt", Decimal("24.90"), Decimal("21.90"), True),
            ("hoodie", "Heavy Hoodie", Decimal("49.90"), None, True),
            ("cap", "Embroidered Cap", Decimal("14.90"), None, False),
            ("tote-bag", "Canvas Tote Bag", Decimal("12.50"), None, True),
        ]
        products: list[Product] = []
        for slug, name, base_price, sale_price, customizable in catalog:
            product, created = Product.objects.get_or_create(
                slug=slug,
                defaults={
                    "name": name,
                    "status": ProductStatus.ACTIVE,
                    "base_price": base_price,
                    "sale_price": sale_price,
                    "is_customizable": customizable,
                },
            )
            if created:
                for size in SIZES:
                    for color in COLORS:
                        ProductVariant.objects.create(
                            product=product,
                            size=size,
                            color=color,
                            material="Cotton",
                            stock=random.randint(5, 60),
                        )
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_discount_codes(self) -> None:
        DiscountCode.objects.get_or_create(
            code="WELCOME10",
            defaults={"kind": DiscountKind.PERCENTAGE, "value": Decimal("10")},
        )
        DiscountCode.objects.get_or_create(
            code="FIVEOFF",
            defaults={"kind": DiscountKind.FIXED, "value": Decimal("5.00")},
        )

    def _seed_orders(self, users: list, products: list[Product]) -> int:
        self.stdout.write("Creating orders...")
        service = OrderService(
            order_repository=OrderDjangoRepository(),
            catalog_repository=CatalogDjangoRepository(),
            customization_service=CustomizationPricingService(
                rule_repository=PricingRuleDjangoRepository()
            ),
        )
        created = 0
        for i in range(20):
            user = random.choice(users)
            items = []
            for product in random.sample(products, k=random.randint(1, 3)):
                customize = product.is_customizable and random.random() < 0.5
                items.append(
                    CreateOrderItemDTO(
                        product_id=product.id,
                        variant=VariantKeyDTO(
                            size=random.choice(SIZES),
                            color=random.choice(COLORS),
                            material="Cotton",
                        ),
                        quantity=random.randint(1, 3),
                        customization=CustomizationSelectionsDTO(
                            text_front=customize,
                            text_content="Team Atelier" if customize else "",
                        ),
                    )
                )
            dto = CreateOrderDTO(
                user_id=user.id,
                items=items,
                shipping_address=AddressDTO(
                    full_name=user.username.title(),
                    line1=f"{i + 1} rue de la Paix",
                    city="Paris",
                    postal_code="75002",
                    country="FR",
                ),
                payment_method=random.choice(PaymentMethod.values),
                idempotency_key=f"seed-order-{i + 1}",
            )
            try:
                service.create_order(dto)
            except DomainError as exc:
                self.stdout.write(self.style.WARNING(f"Skipped order {i + 1}: {exc}"))
                continue
            created += 1

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return created
