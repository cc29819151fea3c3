"""Unit tests for refunds.

Covers:
- Partial then full refund (payment and order status)
- Refunds never exceed the order total
- Eligibility by payment / order status
- Amount and reason validation
- Refunds do not restock
"""

from decimal import Decimal

import pytest

from modules.core.models import OutboxEvent
from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.dtos import RefundDTO
from modules.orders.exceptions import (
    InvalidRefund,
    RefundExceedsRefundableAmount,
    RefundNotAllowed,
)
from modules.orders.models import RefundEntry

pytestmark = pytest.mark.unit


def _refund(amount, reason="Damaged print"):
    return RefundDTO(amount=Decimal(amount), reason=reason)


@pytest.fixture()
def paid_order(make_product, place_order, order_service):
    product, variant = make_product("premium-tee", "83.33", stock=5)
    order = place_order(product, variant)
    return order_service.record_payment(order.id, succeeded=True, transaction_id="t1")


# ===========================================================================
# Partial and full refunds
# ===========================================================================


class TestProcessRefund:
    def test_order_total(self, paid_order):
        assert paid_order.pricing.subtotal == Decimal("83.33")
        assert paid_order.pricing.shipping == Decimal("0.00")
        assert paid_order.pricing.tax == Decimal("16.67")
        assert paid_order.total == Decimal("100.00")
        assert paid_order.status == OrderStatus.CONFIRMED
        assert paid_order.payment_status == PaymentStatus.COMPLETED

    def test_partial_then_full_refund(self, paid_order, order_service, staff_user):
        partial = order_service.process_refund(
            paid_order.id, _refund("30.00"), actor_id=staff_user.id
        )

        assert partial.payment_status == PaymentStatus.PARTIALLY_REFUNDED
        assert partial.status == OrderStatus.CONFIRMED
        assert partial.refundable_amount == Decimal("70.00")
        assert partial.timeline.count() == 2

        full = order_service.process_refund(
            paid_order.id, _refund("70.00"), actor_id=staff_user.id
        )

        assert full.payment_status == PaymentStatus.REFUNDED
        assert full.status == OrderStatus.REFUNDED
        assert full.total_refunded == Decimal("100.00")
        assert full.refundable_amount == Decimal("0.00")
        assert list(full.timeline.all())[-1].previous_status == OrderStatus.CONFIRMED
        assert RefundEntry.objects.filter(order=paid_order).count() == 2
        assert OutboxEvent.objects.filter(event_type="OrderRefunded").count() == 2

    def test_refund_above_refundable_amount(self, paid_order, order_service):
        order_service.process_refund(paid_order.id, _refund("30.00"))

        with pytest.raises(RefundExceedsRefundableAmount) as exc_info:
            order_service.process_refund(paid_order.id, _refund("70.01"))

        assert exc_info.value.context["refundable_amount"] == Decimal("70.00")
        assert RefundEntry.objects.filter(order=paid_order).count() == 1

    def test_amount_is_rounded_to_cents(self, paid_order, order_service):
        order_service.process_refund(paid_order.id, _refund("10.005"))

        assert RefundEntry.objects.get(order=paid_order).amount == Decimal("10.01")

    def test_refund_does_not_restock(self, paid_order, order_service):
        variant = paid_order.items.get().variant
        stock_before = variant.stock

        order_service.process_refund(paid_order.id, _refund("100.00"))

        variant.refresh_from_db()
        assert variant.stock == stock_before

    def test_shipped_order_can_be_refunded(self, paid_order, order_service):
        order_service.add_tracking(paid_order.id, "Colissimo", "6A0001")

        refunded = order_service.process_refund(paid_order.id, _refund("5.00"))

        assert refunded.status == OrderStatus.SHIPPED
        assert refunded.payment_status == PaymentStatus.PARTIALLY_REFUNDED


# ===========================================================================
# Eligibility
# ===========================================================================


class TestRefundEligibility:
    def test_pending_payment_cannot_be_refunded(
        self, product, variant, place_order, order_service
    ):
        order = place_order(product, variant)
        order_service.update_status(order.id, OrderStatus.CONFIRMED)

        with pytest.raises(RefundNotAllowed):
            order_service.process_refund(order.id, _refund("1.00"))

    def test_fully_refunded_order_cannot_be_refunded_again(
        self, paid_order, order_service
    ):
        order_service.process_refund(paid_order.id, _refund("100.00"))

        with pytest.raises(RefundNotAllowed):
            order_service.process_refund(paid_order.id, _refund("0.01"))

    def test_delivered_order_cannot_be_refunded(self, paid_order, order_service):
        order_service.mark_delivered(paid_order.id)

        with pytest.raises(RefundNotAllowed):
            order_service.process_refund(paid_order.id, _refund("1.00"))


# ===========================================================================
# Validation
# ===========================================================================


class TestRefundValidation:
    @pytest.mark.parametrize("amount", ["0", "0.00", "-5.00", "0.004"])
    def test_amount_must_be_positive(self, paid_order, order_service, amount):
        with pytest.raises(InvalidRefund):
            order_service.process_refund(paid_order.id, _refund(amount))

    def test_reason_is_required(self, paid_order, order_service):
        with pytest.raises(InvalidRefund):
            order_service.process_refund(paid_order.id, _refund("5.00", reason="   "))
