"""Customization pricing API views.

- ``POST /customization/calculate-price/``: public price calculator.
- ``GET /customization/pricing-rules/``: public grid rows.
- ``POST /customization/pricing-rules/``: staff upsert of a grid row.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.customization.dtos import CalculatePriceDTO, PricingRuleDTO
from modules.customization.repositories.django_repository import (
    PricingRuleDjangoRepository,
)
from modules.customization.serializers import (
    CalculatePriceSerializer,
    PricingRuleInputSerializer,
    PricingRuleSerializer,
)
from modules.customization.services import CustomizationPricingService
from shared.domain.exceptions import ExternalServiceError, ValidationError


def _build_service() -> CustomizationPricingService:
    return CustomizationPricingService(rule_repository=PricingRuleDjangoRepository())


class CalculatePriceView(APIView):
    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        serializer = CalculatePriceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = CalculatePriceDTO(**serializer.validated_data)

        service = _build_service()
        try:
            grid = service.load_grid()
        except ExternalServiceError as exc:
            return Response(exc.as_dict(), status=status.HTTP_503_SERVICE_UNAVAILABLE)
        quote = service.calculate_customization_price(dto, grid=grid)

        return Response(
            {
                "selections": {
                    "text_front": dto.text_front,
                    "text_back": dto.text_back,
                    "image_front": dto.image_front,
                    "image_back": dto.image_back,
                },
                "grid": grid.as_dict(),
                "details": quote.details(),
                "totals": {
                    "customization_price": quote.customization_price,
                    "base_model_price": quote.base_model_price,
                    "grand_total": quote.grand_total,
                },
            }
        )


class PricingRuleListView(APIView):
    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAdminUser()]

    def get(self, request: Request) -> Response:
        rules = _build_service().list_rules()
        return Response(PricingRuleSerializer(rules, many=True).data)

    def post(self, request: Request) -> Response:
        serializer = PricingRuleInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = PricingRuleDTO(**serializer.validated_data)

        try:
            rule, created = _build_service().upsert_rule(dto)
        except ValidationError as exc:
            return Response(exc.as_dict(), status=status.HTTP_400_BAD_REQUEST)

        return Response(
            PricingRuleSerializer(rule).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )
