"""Event handlers for Orders domain events.

Invoked by ``core.publish_outbox_events`` when outbox rows are drained.
Notification delivery is out of scope; the handlers record the facts in
the structured log.
"""

from __future__ import annotations

import structlog

from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderRefunded,
    OrderShipped,
    OrderStatusChanged,
)
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderCreatedHandler(IEventHandler[OrderCreated]):
    def handle(self, event: OrderCreated) -> None:
        logger.info(
            "order.event.created",
            order_id=str(event.aggregate_id),
            order_number=event.payload.get("order_number"),
            total=event.payload.get("total"),
        )


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    def handle(self, event: OrderStatusChanged) -> None:
        logger.info(
            "order.event.status_changed",
            order_id=str(event.aggregate_id),
            old_status=event.payload.get("old_status"),
            new_status=event.payload.get("new_status"),
        )


class OrderCancelledHandler(IEventHandler[OrderCancelled]):
    def handle(self, event: OrderCancelled) -> None:
        logger.info(
            "order.event.cancelled",
            order_id=str(event.aggregate_id),
            reason=event.payload.get("reason"),
        )


class OrderShippedHandler(IEventHandler[OrderShipped]):
    def handle(self, event: OrderShipped) -> None:
        logger.info(
            "order.event.shipped",
            order_id=str(event.aggregate_id),
            carrier=event.payload.get("carrier"),
            tracking_number=event.payload.get("tracking_number"),
        )


class OrderRefundedHandler(IEventHandler[OrderRefunded]):
    def handle(self, event: OrderRefunded) -> None:
        logger.info(
            "order.event.refunded",
            order_id=str(event.aggregate_id),
            amount=event.payload.get("amount"),
            fully_refunded=event.payload.get("fully_refunded"),
        )


order_created_handler = OrderCreatedHandler()
order_status_changed_handler = OrderStatusChangedHandler()
order_cancelled_handler = OrderCancelledHandler()
order_shipped_handler = OrderShippedHandler()
order_refunded_handler = OrderRefundedHandler()
