"""Order repository interface.

Extends ``IRepository[Order]`` with methods required by the Order
aggregate: atomic creation with items and pricing snapshot, row locking,
timeline and refund ledger appends, and idempotency-key look-up.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from decimal import Decimal

    from modules.orders.models import (
        DiscountCode,
        Order,
        OrderItem,
        RefundEntry,
        TimelineEntry,
    )
    from modules.orders.pricing import PricingBreakdown


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The aggregate includes OrderItem children, the PricingSnapshot, the
    TimelineEntry records and the RefundEntry ledger.
    """

    @abstractmethod
    def create(
        self,
        data: Dict[str, Any],
        items: List[Dict[str, Any]],
        pricing: PricingBreakdown,
        note: str = "",
    ) -> Order:
        """Create an order with its items, snapshot and first timeline entry.

        ``data`` holds the order fields (``user_id``, addresses, payment
        method, ...); each ``items`` dict holds the OrderItem fields.
        """

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE)."""

    @abstractmethod
    def get_by_idempotency_key(self, user_id: int, key: str) -> Optional[Order]:
        """Retrieve the user's order created with this idempotency key."""

    @abstractmethod
    def add_timeline_entry(
        self,
        order: Order,
        status: str,
        previous_status: Optional[str] = None,
        note: str = "",
        actor_id: Optional[int] = None,
    ) -> TimelineEntry:
        """Append one entry to the order timeline."""

    @abstractmethod
    def add_refund(
        self,
        order: Order,
        amount: Decimal,
        reason: str,
        refund_id: str = "",
        actor_id: Optional[int] = None,
    ) -> RefundEntry:
        """Append one line to the refund ledger."""

    @abstractmethod
    def update_items_status(self, order: Order, status: str) -> int:
        """Set the sub-status of every item of *order*."""

    @abstractmethod
    def items_for(self, order: Order) -> List[OrderItem]:
        """Items of *order*, ordered by variant id."""

    @abstractmethod
    def get_discount_code(self, code: str) -> Optional[DiscountCode]:
        """Retrieve a discount code by its (upper-cased) code."""
