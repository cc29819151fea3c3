"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.
Write operations are wrapped in ``transaction.atomic()`` so the Order
aggregate (Order + items + snapshot + timeline) is persisted atomically;
the service's own ``atomic`` block makes them part of the wider unit of
work (creation + stock reservation).

Concurrency control on order mutations uses ``select_for_update()``.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction

from modules.core.models import OutboxEvent
from modules.orders.exceptions import OrderStoreUnavailable
from modules.orders.models import (
    DiscountCode,
    Order,
    OrderItem,
    PricingSnapshot,
    RefundEntry,
    TimelineEntry,
)
from modules.orders.pricing import PricingBreakdown
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

_RELATED = ("items", "timeline", "refunds")


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(
        self,
        data: Dict[str, Any],
        items: List[Dict[str, Any]],
        pricing: PricingBreakdown,
        note: str = "",
    ) -> Order:
        order = Order(**data)
        order.save()

        for item_data in items:
            OrderItem(order=order, **item_data).save()

        PricingSnapshot(
            order=order,
            subtotal=pricing.subtotal,
            customization_total=pricing.customization_total,
            shipping=pricing.shipping,
            discount=pricing.discount,
            discount_code=pricing.discount_code,
            tax_rate=pricing.tax_rate,
            tax=pricing.tax,
            total=pricing.total,
            currency=pricing.currency,
        ).save()

        self.add_timeline_entry(
            order,
            status=order.status,
            note=note,
            actor_id=data.get("user_id"),
        )

        logger.info(
            "order.persisted",
            order_id=str(order.id),
            order_number=order.order_number,
            item_count=len(items),
        )
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded relations.

        Returns ``None`` for non-existent or malformed IDs.
        """
        try:
            return (
                Order.objects.select_related("pricing", "user")
                .prefetch_related(*_RELATED)
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None
        except DatabaseError as exc:
            raise OrderStoreUnavailable(
                f"Order lookup failed for {id}.", order_id=id
            ) from exc

    def list(self, filters: Optional[Dict[str, Any]] = None):
        """Return a queryset of orders, optionally filtered.

        Supported filter keys are any ``Order`` lookups, e.g. ``status``,
        ``user_id``, ``created_at__range``.
        """
        queryset = Order.objects.select_related("pricing", "user").prefetch_related(
            "items"
        )
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Must be called inside ``transaction.atomic``.  Returns ``None`` for
        non-existent or malformed IDs.
        """
        try:
            return Order.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None
        except DatabaseError as exc:
            raise OrderStoreUnavailable(
                f"Order lock failed for {id}.", order_id=id
            ) from exc

    def get_by_idempotency_key(self, user_id: int, key: str) -> Optional[Order]:
        return (
            Order.objects.select_related("pricing", "user")
            .prefetch_related(*_RELATED)
            .filter(user_id=user_id, idempotency_key=key)
            .first()
        )

    def items_for(self, order: Order) -> List[OrderItem]:
        return list(OrderItem.objects.filter(order=order).order_by("variant_id", "id"))

    def get_discount_code(self, code: str) -> Optional[DiscountCode]:
        return DiscountCode.objects.filter(code=code.strip().upper()).first()

    # ------------------------------------------------------------------
    # Save (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist an order and write its pending domain events to the outbox."""
        entity.save()

        events = entity.domain_events
        for event in events:
            OutboxEvent.objects.create(
                event_type=event.event_name,
                aggregate_id=str(event.aggregate_id),
                payload=_serialize_event_payload(event),
                topic="orders",
            )
        entity.clear_domain_events()

        logger.debug("order.saved", order_id=str(entity.id), event_count=len(events))
        return entity

    # ------------------------------------------------------------------
    # Aggregate children
    # ------------------------------------------------------------------

    def add_timeline_entry(
        self,
        order: Order,
        status: str,
        previous_status: Optional[str] = None,
        note: str = "",
        actor_id: Optional[int] = None,
    ) -> TimelineEntry:
        entry = TimelineEntry(
            order=order,
            previous_status=previous_status,
            status=status,
            note=note,
            actor_id=actor_id,
        )
        entry.save()
        logger.info(
            "order.timeline_appended",
            order_id=str(order.id),
            previous_status=previous_status,
            status=status,
        )
        return entry

    def add_refund(
        self,
        order: Order,
        amount: Decimal,
        reason: str,
        refund_id: str = "",
        actor_id: Optional[int] = None,
    ) -> RefundEntry:
        entry = RefundEntry(
            order=order,
            amount=amount,
            reason=reason,
            refund_id=refund_id,
            actor_id=actor_id,
        )
        entry.save()
        return entry

    def update_items_status(self, order: Order, status: str) -> int:
        return OrderItem.objects.filter(order=order).update(status=status)


def _serialize_event_payload(event: Any) -> Dict[str, Any]:
    data = asdict(event)
    normalized = _normalize_for_json(data)
    return json.loads(json.dumps(normalized))


def _normalize_for_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, list):
        return [_normalize_for_json(item) for item in value]
    if isinstance(value, dict):
        return {key: _normalize_for_json(val) for key, val in value.items()}
    return value
