"""Unit tests for order status transitions.

Covers:
- Explicit status updates (validation, one timeline entry, no stock change)
- Tracking -> shipped, delivery
- Payment outcomes, including stale failure callbacks
- Order store failures on locked reads
- Status-change events written to the outbox
"""

import uuid
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import DatabaseError

from modules.core.models import OutboxEvent
from modules.orders.constants import ItemStatus, OrderStatus, PaymentStatus
from modules.orders.dtos import RefundDTO
from modules.orders.exceptions import (
    InvalidOrderStatus,
    OrderNotFound,
    OrderStoreUnavailable,
)
from modules.orders.models import Order
from shared.domain.exceptions import ExternalServiceError

pytestmark = pytest.mark.unit


@pytest.fixture()
def order(product, variant, place_order):
    return place_order(product, variant, quantity=2)


# ===========================================================================
# update_status
# ===========================================================================


class TestUpdateStatus:
    def test_appends_exactly_one_timeline_entry(self, order, order_service, staff_user):
        updated = order_service.update_status(
            order.id, OrderStatus.PROCESSING, actor_id=staff_user.id, note="Printing"
        )

        entries = list(updated.timeline.all())
        assert updated.status == OrderStatus.PROCESSING
        assert len(entries) == 2
        assert entries[-1].previous_status == OrderStatus.PENDING
        assert entries[-1].status == OrderStatus.PROCESSING
        assert entries[-1].note == "Printing"
        assert entries[-1].actor_id == staff_user.id

    def test_unknown_status_is_rejected(self, order, order_service):
        with pytest.raises(InvalidOrderStatus) as exc_info:
            order_service.update_status(order.id, "teleported")

        assert exc_info.value.context["status"] == "teleported"
        order.refresh_from_db()
        assert order.status == OrderStatus.PENDING
        assert order.timeline.count() == 1

    def test_status_update_leaves_stock_untouched(self, order, order_service, variant):
        order_service.update_status(order.id, OrderStatus.CANCELLED)

        variant.refresh_from_db()
        assert variant.stock == 8

    def test_unknown_order(self, order_service):
        with pytest.raises(OrderNotFound):
            order_service.update_status(uuid.uuid4(), OrderStatus.CONFIRMED)

    def test_status_change_event_written(self, order, order_service):
        order_service.update_status(order.id, OrderStatus.PRODUCTION)

        event = OutboxEvent.objects.get(event_type="OrderStatusChanged")
        assert event.payload["payload"] == {
            "old_status": OrderStatus.PENDING,
            "new_status": OrderStatus.PRODUCTION,
        }


# ===========================================================================
# Fulfilment
# ===========================================================================


class TestFulfilment:
    def test_tracking_marks_order_shipped(self, order, order_service):
        shipped = order_service.add_tracking(
            order.id,
            carrier="Colissimo",
            tracking_number="6A12345678901",
            tracking_url="https://example.com/track/6A12345678901",
        )

        assert shipped.status == OrderStatus.SHIPPED
        assert shipped.tracking_carrier == "Colissimo"
        assert shipped.tracking_number == "6A12345678901"
        assert shipped.shipped_at is not None
        assert {item.status for item in shipped.items.all()} == {ItemStatus.SHIPPED}
        assert shipped.timeline.count() == 2
        assert OutboxEvent.objects.filter(event_type="OrderShipped").count() == 1

    def test_mark_delivered(self, order, order_service):
        order_service.add_tracking(order.id, "DHL", "JD0001")

        delivered = order_service.mark_delivered(order.id)

        assert delivered.status == OrderStatus.DELIVERED
        assert delivered.delivered_at is not None
        assert [entry.status for entry in delivered.timeline.all()] == [
            OrderStatus.PENDING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        ]


# ===========================================================================
# Payment
# ===========================================================================


class TestRecordPayment:
    def test_success_confirms_pending_order(self, order, order_service):
        paid = order_service.record_payment(
            order.id, succeeded=True, transaction_id="txn_123"
        )

        assert paid.payment_status == PaymentStatus.COMPLETED
        assert paid.payment_transaction_id == "txn_123"
        assert paid.paid_at is not None
        assert paid.status == OrderStatus.CONFIRMED
        assert paid.timeline.count() == 2

    def test_success_on_confirmed_order_keeps_status(self, order, order_service):
        order_service.update_status(order.id, OrderStatus.CONFIRMED)

        paid = order_service.record_payment(order.id, succeeded=True)

        assert paid.status == OrderStatus.CONFIRMED
        assert paid.payment_status == PaymentStatus.COMPLETED
        assert paid.timeline.count() == 2

    def test_failure_only_flags_payment(self, order, order_service):
        failed = order_service.record_payment(
            order.id, succeeded=False, transaction_id="txn_declined"
        )

        assert failed.payment_status == PaymentStatus.FAILED
        assert failed.status == OrderStatus.PENDING
        assert failed.paid_at is None
        assert failed.timeline.count() == 1

    def test_late_failure_keeps_completed_payment(self, order, order_service):
        order_service.record_payment(order.id, succeeded=True, transaction_id="txn_1")

        late = order_service.record_payment(
            order.id, succeeded=False, transaction_id="txn_retry"
        )

        assert late.payment_status == PaymentStatus.COMPLETED
        assert late.payment_transaction_id == "txn_1"
        assert late.paid_at is not None

    def test_late_failure_keeps_refund_state(self, order, order_service):
        order_service.record_payment(order.id, succeeded=True)
        order_service.process_refund(
            order.id, RefundDTO(amount=Decimal("5.00"), reason="Faded print")
        )

        late = order_service.record_payment(order.id, succeeded=False)

        assert late.payment_status == PaymentStatus.PARTIALLY_REFUNDED
        assert late.total_refunded == Decimal("5.00")


# ===========================================================================
# Store failures
# ===========================================================================


class TestOrderStoreFailures:
    def test_lock_failure_surfaces_as_store_unavailable(
        self, order, order_service, variant
    ):
        with patch.object(
            Order.objects, "select_for_update", side_effect=DatabaseError("down")
        ):
            with pytest.raises(OrderStoreUnavailable) as exc_info:
                order_service.cancel_order(order.id)

        assert isinstance(exc_info.value, ExternalServiceError)
        variant.refresh_from_db()
        assert variant.stock == 8
        order.refresh_from_db()
        assert order.status == OrderStatus.PENDING
