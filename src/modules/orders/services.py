"""Order service layer (Use Cases).

Orchestrates order creation, the status state machine, cancellation and
refunds.  Every write operation is atomic: the service defines the
unit-of-work boundary, and order mutations lock the order row first.

Business rules enforced:
- Products must exist and be active; variants must exist; the quantity
  requested per variant (summed over the items) must not exceed stock.
- Prices are resolved server-side and frozen in a PricingSnapshot.
- Stock is reserved with conditional decrements; any failure rolls the
  whole order back.
- Only pending / confirmed orders can be cancelled; cancelling releases
  the reserved stock.
- Refunds never exceed ``total - already refunded`` and never restore stock.
- Every status change appends exactly one timeline entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.db import IntegrityError, transaction
from django.utils import timezone

from modules.catalog.exceptions import (
    InactiveProduct,
    InsufficientStock,
    ProductNotFound,
    VariantNotFound,
)
from modules.catalog.repositories.interfaces import StockUpdate
from modules.customization.exceptions import CustomizationNotAvailable
from modules.customization.grid import PricingGrid
from modules.customization.services import CustomizationPricingService
from modules.orders.constants import (
    BASE_PRODUCTION_DAYS,
    IMAGE_PRODUCTION_DAYS,
    SETTLED_PAYMENT_STATES,
    TEXT_PRODUCTION_DAYS,
    ItemStatus,
    OrderStatus,
    PaymentStatus,
)
from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderRefunded,
    OrderShipped,
    OrderStatusChanged,
)
from modules.orders.exceptions import (
    InvalidDiscountCode,
    InvalidOrderStatus,
    InvalidRefund,
    OrderNotCancellable,
    OrderNotFound,
    RefundExceedsRefundableAmount,
    RefundNotAllowed,
)
from modules.orders.pricing import (
    AppliedDiscount,
    PricedLine,
    compute_pricing,
    effective_unit_price,
)
from shared.domain.money import money

if TYPE_CHECKING:
    from modules.catalog.models import Product, ProductVariant
    from modules.catalog.repositories.interfaces import ICatalogRepository
    from modules.customization.dtos import CustomizationSelectionsDTO
    from modules.customization.grid import CustomizationQuote
    from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, RefundDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class _ResolvedItem:
    index: int
    request: CreateOrderItemDTO
    product: Product
    variant: ProductVariant
    unit_price: Decimal
    quote: CustomizationQuote

    @property
    def line(self) -> PricedLine:
        return PricedLine(
            unit_price=self.unit_price,
            customization_price=self.quote.customization_price,
            quantity=self.request.quantity,
        )


def production_days_for(selections: CustomizationSelectionsDTO) -> int:
    days = BASE_PRODUCTION_DAYS
    if selections.has_text:
        days += TEXT_PRODUCTION_DAYS
    if selections.has_image:
        days += IMAGE_PRODUCTION_DAYS
    return days


class OrderService:
    """Application service for Order use-cases.

    Receives repositories via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        catalog_repository: ICatalogRepository,
        customization_service: CustomizationPricingService,
    ) -> None:
        self._order_repo = order_repository
        self._catalog_repo = catalog_repository
        self._customization = customization_service

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO) -> Order:
        """Validate, price, persist and reserve stock for a new order.

        Steps:
        1. Return the existing order for a repeated idempotency key.
        2. Validate every item in request order (no writes).
        3. Resolve the discount code and compute the pricing breakdown.
        4. Persist order + items + pricing snapshot + first timeline entry.
        5. Conditionally decrement stock per item, ordered by variant id.

        Any failure in steps 4-5 rolls the whole transaction back.

        Raises:
            ProductNotFound / InactiveProduct / VariantNotFound: NotFound.
            InsufficientStock: requested quantity above available stock.
            CustomizationNotAvailable: customization on a plain product.
            InvalidDiscountCode: unknown, inactive or expired code.
        """
        log = logger.bind(user_id=dto.user_id, item_count=len(dto.items))
        log.info("order.creation_started")

        if dto.idempotency_key:
            existing = self._order_repo.get_by_idempotency_key(
                dto.user_id, dto.idempotency_key
            )
            if existing:
                log.info(
                    "order.idempotency_hit",
                    order_id=str(existing.id),
                    key=dto.idempotency_key,
                )
                return existing

        resolved = self._validate_items(dto)
        discount = self._resolve_discount(dto.discount_code)
        pricing = compute_pricing([item.line for item in resolved], discount)

        order_data: Dict[str, Any] = {
            "user_id": dto.user_id,
            "shipping_address": dto.shipping_address.model_dump(),
            "billing_address": dto.effective_billing_address.model_dump(),
            "payment_method": dto.payment_method,
            "customer_notes": dto.customer_notes,
            "idempotency_key": dto.idempotency_key,
            "estimated_production_days": max(
                production_days_for(item.request.customization) for item in resolved
            ),
        }
        try:
            order = self._order_repo.create(
                order_data,
                [self._item_data(item) for item in resolved],
                pricing,
                note="Order placed",
            )
        except IntegrityError:
            existing = (
                self._order_repo.get_by_idempotency_key(
                    dto.user_id, dto.idempotency_key
                )
                if dto.idempotency_key
                else None
            )
            if existing is None:
                raise
            log.info("order.idempotency_race", order_id=str(existing.id))
            return existing

        log = log.bind(order_id=str(order.id), order_number=order.order_number)
        self._reserve_stock(resolved, log)

        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                payload={
                    "order_number": order.order_number,
                    "user_id": dto.user_id,
                    "total": str(pricing.total),
                    "currency": pricing.currency,
                },
            )
        )
        self._order_repo.save(order)

        log.info("order.created", total=str(pricing.total))
        return self._order_repo.get_by_id(str(order.id)) or order

    def _validate_items(self, dto: CreateOrderDTO) -> List[_ResolvedItem]:
        grid: Optional[PricingGrid] = None
        requested: Dict[UUID, int] = {}
        resolved: List[_ResolvedItem] = []

        for index, item in enumerate(dto.items):
            product = self._catalog_repo.get_product(item.product_id)
            if product is None:
                raise ProductNotFound(
                    f"Item {index}: product {item.product_id} not found.",
                    item_index=index,
                    product_id=item.product_id,
                )
            if not product.is_active:
                raise InactiveProduct(
                    f"Item {index}: product {product.name} is not available.",
                    item_index=index,
                    product_id=product.id,
                    status=product.status,
                )

            variant = self._catalog_repo.find_variant(product, item.variant)
            if variant is None:
                raise VariantNotFound(
                    f"Item {index}: variant not found for product {product.name}.",
                    item_index=index,
                    product_id=product.id,
                    variant=item.variant.as_dict(),
                )

            total_requested = requested.get(variant.id, 0) + item.quantity
            requested[variant.id] = total_requested
            if total_requested > variant.stock:
                logger.warning(
                    "order.insufficient_stock",
                    item_index=index,
                    variant_id=str(variant.id),
                    requested=total_requested,
                    available=variant.stock,
                )
                raise InsufficientStock(
                    f"Item {index}: {product.name} {variant.size}/{variant.color}: "
                    f"requested {total_requested}, available {variant.stock}.",
                    item_index=index,
                    product_id=product.id,
                    variant=variant.key,
                    requested=total_requested,
                    available=variant.stock,
                )

            selections = item.customization
            if not selections.is_empty and not product.is_customizable:
                raise CustomizationNotAvailable(
                    f"Item {index}: product {product.name} cannot be customized.",
                    item_index=index,
                    product_id=product.id,
                )
            if grid is None and not selections.is_empty:
                grid = self._customization.load_grid()
            quote = CustomizationPricingService.surcharge_for(
                selections,
                grid if grid is not None else PricingGrid(),
                product.customization_table,
            )

            resolved.append(
                _ResolvedItem(
                    index=index,
                    request=item,
                    product=product,
                    variant=variant,
                    unit_price=effective_unit_price(
                        product.base_price, product.sale_price
                    ),
                    quote=quote,
                )
            )
        return resolved

    def _resolve_discount(self, code: Optional[str]) -> Optional[AppliedDiscount]:
        if not code:
            return None
        discount = self._order_repo.get_discount_code(code)
        if discount is None or not discount.is_usable():
            logger.warning("order.discount_rejected", code=code)
            raise InvalidDiscountCode(
                f"Discount code '{code}' is not valid.", discount_code=code
            )
        return AppliedDiscount(kind=discount.kind, value=discount.value, code=discount.code)

    @staticmethod
    def _item_data(item: _ResolvedItem) -> Dict[str, Any]:
        selections = item.request.customization
        return {
            "product": item.product,
            "variant": item.variant,
            "product_name": item.product.name,
            "size": item.variant.size,
            "color": item.variant.color,
            "material": item.variant.material,
            "quantity": item.request.quantity,
            "unit_price": item.unit_price,
            "customization": {
                **selections.model_dump(),
                **item.quote.details(),
            }
            if not selections.is_empty
            else {},
            "customization_price": item.quote.customization_price,
        }

    def _reserve_stock(self, resolved: List[_ResolvedItem], log: Any) -> None:
        for item in sorted(resolved, key=lambda r: str(r.variant.id)):
            quantity = item.request.quantity
            result = self._catalog_repo.conditional_decrement_stock(
                item.variant.id, quantity
            )
            if result is StockUpdate.OK:
                log.info(
                    "order.stock_reserved",
                    variant_id=str(item.variant.id),
                    quantity=quantity,
                )
                continue

            log.error(
                "order.stock_reservation_failed",
                item_index=item.index,
                variant_id=str(item.variant.id),
                quantity=quantity,
                result=result.value,
            )
            if result is StockUpdate.INSUFFICIENT:
                raise InsufficientStock(
                    f"Item {item.index}: stock changed during checkout for "
                    f"{item.product.name} {item.variant.size}/{item.variant.color}.",
                    item_index=item.index,
                    product_id=item.product.id,
                    variant=item.variant.key,
                    requested=quantity,
                )
            raise VariantNotFound(
                f"Item {item.index}: variant disappeared during checkout.",
                item_index=item.index,
                product_id=item.product.id,
                variant=item.variant.key,
            )

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    @transaction.atomic
    def update_status(
        self,
        order_id: UUID,
        new_status: str,
        actor_id: Optional[int] = None,
        note: str = "",
    ) -> Order:
        """Move an order to any valid status (privileged operation).

        Explicit updates do not touch inventory; use ``cancel_order`` to
        release stock.

        Raises:
            InvalidOrderStatus: *new_status* is not an order status.
            OrderNotFound: order does not exist.
        """
        if new_status not in OrderStatus.values:
            raise InvalidOrderStatus(
                f"'{new_status}' is not a valid order status.",
                status=new_status,
                allowed=list(OrderStatus.values),
            )

        order = self._lock(order_id)
        old_status = order.status
        log = logger.bind(
            order_id=str(order_id), old_status=old_status, new_status=new_status
        )

        self._transition(order, new_status, actor_id, note)
        log.info("order.status_updated")
        return self._reload(order)

    @transaction.atomic
    def cancel_order(
        self,
        order_id: UUID,
        actor_id: Optional[int] = None,
        reason: str = "",
    ) -> Order:
        """Cancel an order and release its reserved stock.

        The order row is locked first so concurrent cancellations cannot
        release stock twice.

        Raises:
            OrderNotFound: order does not exist.
            OrderNotCancellable: order is past the confirmed state.
        """
        order = self._lock(order_id)
        log = logger.bind(order_id=str(order_id), current_status=order.status)

        if not order.can_be_cancelled:
            log.warning("order.cancel_not_allowed")
            raise OrderNotCancellable(
                f"Order {order.order_number} cannot be cancelled in status "
                f"'{order.status}'.",
                order_id=order.id,
                status=order.status,
            )

        # A previously cancelled order already gave its stock back.
        already_released = order.cancelled_at is not None
        items = [] if already_released else self._order_repo.items_for(order)
        if already_released:
            log.warning(
                "order.stock_already_released",
                cancelled_at=order.cancelled_at.isoformat(),
            )

        unreleased: List[str] = []
        for item in items:
            result = self._catalog_repo.conditional_increment_stock(
                item.variant_id, item.quantity
            )
            if result is StockUpdate.OK:
                log.info(
                    "order.stock_released",
                    variant_id=str(item.variant_id),
                    quantity=item.quantity,
                )
            else:
                unreleased.append(str(item.variant_id))
                log.error(
                    "order.stock_release_failed",
                    variant_id=str(item.variant_id),
                    quantity=item.quantity,
                )

        self._order_repo.update_items_status(order, ItemStatus.CANCELLED)
        if not already_released:
            order.cancelled_at = timezone.now()
        order.add_domain_event(
            OrderCancelled(
                aggregate_id=order.id,
                payload={"reason": reason, "unreleased_variants": unreleased},
            )
        )
        self._transition(
            order, OrderStatus.CANCELLED, actor_id, reason or "Order cancelled"
        )

        log.info("order.cancelled", unreleased_count=len(unreleased))
        return self._reload(order)

    @transaction.atomic
    def add_tracking(
        self,
        order_id: UUID,
        carrier: str,
        tracking_number: str,
        tracking_url: str = "",
        actor_id: Optional[int] = None,
    ) -> Order:
        """Attach tracking information and mark the order shipped.

        Raises:
            OrderNotFound: order does not exist.
        """
        order = self._lock(order_id)
        order.tracking_carrier = carrier
        order.tracking_number = tracking_number
        order.tracking_url = tracking_url or ""
        order.shipped_at = timezone.now()

        self._order_repo.update_items_status(order, ItemStatus.SHIPPED)
        order.add_domain_event(
            OrderShipped(
                aggregate_id=order.id,
                payload={"carrier": carrier, "tracking_number": tracking_number},
            )
        )
        self._transition(
            order,
            OrderStatus.SHIPPED,
            actor_id,
            f"Shipped with {carrier} ({tracking_number})",
        )

        logger.info(
            "order.tracking_added",
            order_id=str(order_id),
            carrier=carrier,
            tracking_number=tracking_number,
        )
        return self._reload(order)

    @transaction.atomic
    def mark_delivered(self, order_id: UUID, actor_id: Optional[int] = None) -> Order:
        order = self._lock(order_id)
        order.delivered_at = timezone.now()
        self._order_repo.update_items_status(order, ItemStatus.DELIVERED)
        self._transition(order, OrderStatus.DELIVERED, actor_id, "Order delivered")
        logger.info("order.delivered", order_id=str(order_id))
        return self._reload(order)

    @transaction.atomic
    def record_payment(
        self,
        order_id: UUID,
        succeeded: bool,
        transaction_id: str = "",
        actor_id: Optional[int] = None,
    ) -> Order:
        """Record the payment gateway outcome.

        Success completes the payment and confirms a pending order. Failure
        only flags a payment that is not settled yet; the order status is
        left unchanged.
        """
        order = self._lock(order_id)
        log = logger.bind(order_id=str(order_id), transaction_id=transaction_id)

        if not succeeded and order.payment_status in SETTLED_PAYMENT_STATES:
            log.warning(
                "order.payment_failure_ignored", payment_status=order.payment_status
            )
            return self._reload(order)

        order.payment_transaction_id = transaction_id or order.payment_transaction_id
        if not succeeded:
            order.payment_status = PaymentStatus.FAILED
            self._order_repo.save(order)
            log.warning("order.payment_failed")
            return self._reload(order)

        order.payment_status = PaymentStatus.COMPLETED
        order.paid_at = timezone.now()
        if order.status == OrderStatus.PENDING:
            self._transition(
                order, OrderStatus.CONFIRMED, actor_id, "Payment received"
            )
        else:
            self._order_repo.save(order)
        log.info("order.payment_completed")
        return self._reload(order)

    # ------------------------------------------------------------------
    # Refunds
    # ------------------------------------------------------------------

    @transaction.atomic
    def process_refund(
        self,
        order_id: UUID,
        dto: RefundDTO,
        actor_id: Optional[int] = None,
    ) -> Order:
        """Record a partial or full refund.

        Raises:
            InvalidRefund: amount not positive or reason missing.
            OrderNotFound: order does not exist.
            RefundNotAllowed: payment / order status forbids refunds.
            RefundExceedsRefundableAmount: amount above the refundable rest.
        """
        if not dto.amount.is_finite():
            raise InvalidRefund(
                "Refund amount must be positive.", amount=str(dto.amount)
            )
        amount = money(dto.amount)
        if amount <= 0:
            raise InvalidRefund(
                "Refund amount must be positive.", amount=str(dto.amount)
            )
        if not dto.reason:
            raise InvalidRefund("A refund reason is required.")

        order = self._lock(order_id)
        log = logger.bind(order_id=str(order_id), amount=str(amount))

        if not order.can_be_refunded:
            log.warning(
                "order.refund_rejected",
                status=order.status,
                payment_status=order.payment_status,
            )
            raise RefundNotAllowed(
                f"Order {order.order_number} cannot be refunded "
                f"(status '{order.status}', payment '{order.payment_status}').",
                order_id=order.id,
                status=order.status,
                payment_status=order.payment_status,
            )

        refundable = order.refundable_amount
        if amount > refundable:
            log.warning("order.refund_rejected", refundable_amount=str(refundable))
            raise RefundExceedsRefundableAmount(
                f"Refund of {amount} exceeds the refundable amount {refundable}.",
                order_id=order.id,
                amount=amount,
                refundable_amount=refundable,
            )

        self._order_repo.add_refund(
            order, amount, dto.reason, refund_id=dto.refund_id, actor_id=actor_id
        )
        fully_refunded = money(order.total_refunded) >= order.total
        order.add_domain_event(
            OrderRefunded(
                aggregate_id=order.id,
                payload={
                    "amount": str(amount),
                    "reason": dto.reason,
                    "fully_refunded": fully_refunded,
                },
            )
        )

        if fully_refunded:
            order.payment_status = PaymentStatus.REFUNDED
            self._transition(order, OrderStatus.REFUNDED, actor_id, dto.reason)
        else:
            order.payment_status = PaymentStatus.PARTIALLY_REFUNDED
            self._order_repo.save(order)

        log.info("order.refunded", fully_refunded=fully_refunded)
        return self._reload(order)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.", order_id=order_id)
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None):
        """Return orders, optionally filtered."""
        return self._order_repo.list(filters)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lock(self, order_id: UUID) -> Order:
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.", order_id=order_id)
        return order

    def _transition(
        self,
        order: Order,
        new_status: str,
        actor_id: Optional[int],
        note: str,
    ) -> None:
        """Set *new_status*, persist with events and append one timeline entry."""
        old_status = order.status
        order.status = new_status
        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id,
                payload={"old_status": old_status, "new_status": new_status},
            )
        )
        self._order_repo.save(order)
        self._order_repo.add_timeline_entry(
            order,
            status=new_status,
            previous_status=old_status,
            note=note,
            actor_id=actor_id,
        )

    def _reload(self, order: Order) -> Order:
        return self._order_repo.get_by_id(str(order.id)) or order
