"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when an order is created and its stock reserved."""


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised when an order status changes."""


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    """Raised when an order is cancelled and its stock released."""


@dataclass(frozen=True)
class OrderShipped(DomainEvent):
    """Raised when tracking information is attached to an order."""


@dataclass(frozen=True)
class OrderRefunded(DomainEvent):
    """Raised for every refund recorded against an order."""
