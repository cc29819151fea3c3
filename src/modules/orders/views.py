"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.
Domain exceptions are caught by category and translated into HTTP
status codes; the view never swallows generic exceptions.

Customers see and cancel their own orders only; status changes,
tracking, delivery, payment results and refunds are staff actions.
"""

from __future__ import annotations

from typing import Any, Callable, Optional
from uuid import UUID

import pydantic
import structlog
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.catalog.repositories.django_repository import CatalogDjangoRepository
from modules.core.pagination import StandardResultsSetPagination
from modules.customization.repositories.django_repository import (
    PricingRuleDjangoRepository,
)
from modules.customization.services import CustomizationPricingService
from modules.orders.constants import OrderStatus
from modules.orders.dtos import CreateOrderDTO, RefundDTO
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    CancelOrderSerializer,
    CreateOrderSerializer,
    OrderListSerializer,
    OrderSerializer,
    PaymentResultSerializer,
    RefundSerializer,
    TrackingSerializer,
    UpdateStatusSerializer,
)
from modules.orders.services import OrderService
from shared.domain.exceptions import (
    ConflictError,
    DomainError,
    ExternalServiceError,
    NotFoundError,
    StateError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

_ERROR_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (StateError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ExternalServiceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)

_NOT_FOUND = {"code": "not_found", "detail": "Order not found."}


def _error_response(exc: DomainError) -> Response:
    for error_class, http_status in _ERROR_STATUS:
        if isinstance(exc, error_class):
            return Response(exc.as_dict(), status=http_status)
    return Response(exc.as_dict(), status=status.HTTP_400_BAD_REQUEST)


def _parse_pk(pk: Optional[str]) -> Optional[UUID]:
    try:
        return UUID(str(pk))
    except ValueError:
        return None


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` with injected repositories (DIP).
    Does **not** extend ``ModelViewSet``: all ORM access goes through
    the service/repository layer.
    """

    queryset = Order.objects.all()
    filterset_class = OrderFilter
    search_fields = ["order_number", "tracking_number"]
    ordering_fields = ["created_at", "pricing__total", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    STAFF_ACTIONS = {"partial_update", "tracking", "deliver", "payment", "refunds"}

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = OrderService(
            order_repository=OrderDjangoRepository(),
            catalog_repository=CatalogDjangoRepository(),
            customization_service=CustomizationPricingService(
                rule_repository=PricingRuleDjangoRepository()
            ),
        )

    def get_permissions(self):
        if self.action in self.STAFF_ACTIONS:
            return [IsAdminUser()]
        return [IsAuthenticated()]

    def get_throttles(self) -> list[BaseThrottle]:
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Order.objects.none()
        filters = None if self.request.user.is_staff else {"user": self.request.user}
        return self._service.list_orders(filters)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Supports idempotency via the ``Idempotency-Key`` header: a repeated
        key returns the order created by the first request.
        """
        create_serializer = CreateOrderSerializer(data=request.data)
        create_serializer.is_valid(raise_exception=True)
        data = create_serializer.validated_data

        try:
            dto = CreateOrderDTO(
                user_id=request.user.id,
                idempotency_key=request.headers.get("Idempotency-Key") or None,
                **data,
            )
        except pydantic.ValidationError as exc:
            return Response(
                {
                    "code": "validation_error",
                    "detail": "Invalid order request.",
                    "errors": exc.errors(include_url=False, include_context=False),
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            order = self._service.create_order(dto)
        except DomainError as exc:
            logger.warning(
                "order.creation_rejected", code=exc.code, detail=exc.message
            )
            return _error_response(exc)

        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Filtering (status, payment status, user, date range, total range)
        is handled by ``OrderFilter``; ordering by ``OrderingFilter``.
        Results are paginated.
        """
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        order_id = _parse_pk(pk)
        if order_id is None:
            return Response(_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        try:
            order = self._service.get_order(str(order_id))
        except DomainError as exc:
            return _error_response(exc)
        if not self._can_access(request, order):
            return Response(_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Status update (staff)
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/

        Updates order status.  Cancellations are **not** allowed via
        this endpoint: use ``POST /orders/{id}/cancel/`` so stock is released.
        """
        if request.data.get("status") == OrderStatus.CANCELLED:
            return Response(
                {
                    "code": "validation_error",
                    "detail": "Use the /cancel/ endpoint for cancellations.",
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        serializer = UpdateStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run(
            pk,
            lambda order_id: self._service.update_status(
                order_id=order_id,
                new_status=serializer.validated_data["status"],
                actor_id=request.user.id,
                note=serializer.validated_data["note"],
            ),
        )

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/

        Cancels a pending or confirmed order and releases its stock.
        Customers may cancel their own orders.
        """
        order_id = _parse_pk(pk)
        if order_id is None:
            return Response(_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        try:
            order = self._service.get_order(str(order_id))
        except DomainError as exc:
            return _error_response(exc)
        if not self._can_access(request, order):
            return Response(_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)

        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run(
            pk,
            lambda oid: self._service.cancel_order(
                order_id=oid,
                actor_id=request.user.id,
                reason=serializer.validated_data["reason"],
            ),
        )

    @action(detail=True, methods=["post"])
    def tracking(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/tracking/"""
        serializer = TrackingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        return self._run(
            pk,
            lambda order_id: self._service.add_tracking(
                order_id=order_id,
                carrier=data["carrier"],
                tracking_number=data["tracking_number"],
                tracking_url=data["tracking_url"],
                actor_id=request.user.id,
            ),
        )

    @action(detail=True, methods=["post"])
    def deliver(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/deliver/"""
        return self._run(
            pk,
            lambda order_id: self._service.mark_delivered(
                order_id=order_id, actor_id=request.user.id
            ),
        )

    @action(detail=True, methods=["post"])
    def payment(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/payment/

        Records the payment gateway outcome (``succeeded`` + transaction id).
        """
        serializer = PaymentResultSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        return self._run(
            pk,
            lambda order_id: self._service.record_payment(
                order_id=order_id,
                succeeded=data["succeeded"],
                transaction_id=data["transaction_id"],
                actor_id=request.user.id,
            ),
        )

    @action(detail=True, methods=["post"])
    def refunds(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/refunds/"""
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = RefundDTO(**serializer.validated_data)
        return self._run(
            pk,
            lambda order_id: self._service.process_refund(
                order_id=order_id, dto=dto, actor_id=request.user.id
            ),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _run(self, pk: Optional[str], operation: Callable[[UUID], Any]) -> Response:
        order_id = _parse_pk(pk)
        if order_id is None:
            return Response(_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        try:
            order = operation(order_id)
        except DomainError as exc:
            return _error_response(exc)
        return Response(OrderSerializer(order).data)

    @staticmethod
    def _can_access(request: Request, order: Order) -> bool:
        return request.user.is_staff or order.user_id == request.user.id
