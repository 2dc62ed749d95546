"""
Offer API Views for the Marketplace Platform
DRF views for offer listing, administration, validation and discovery.
"""

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from apps.api.core.errors import business_error_response, invalid_input_response
from apps.api.core.pagination import StandardResultsSetPagination
from apps.common.types import BusinessError
from apps.offers.calculations import OrderSnapshot
from apps.offers.services import OfferService

from .serializers import (
    ApplicableOfferSerializer,
    OfferAdminSerializer,
    OfferInputSerializer,
    OfferSerializer,
    OrderInputSerializer,
)

logger = logging.getLogger(__name__)


def _offer_serializer(request: Request):
    return OfferAdminSerializer if request.user.is_staff else OfferSerializer


def _order_from_request(request: Request) -> tuple[OrderSnapshot | None, Response | None]:
    """Accepts either ``{"order": {...}}`` or the order fields at the top level."""
    payload = request.data.get("order", request.data)
    serializer = OrderInputSerializer(data=payload)
    if not serializer.is_valid():
        return None, invalid_input_response(serializer.errors)
    return OrderSnapshot.from_payload(serializer.validated_data), None


@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def offer_list(request: Request) -> Response:
    """
    GET: offers visible to the caller (staff see every status).
    POST: create an offer (staff only).
    """
    service = OfferService()

    if request.method == "POST":
        if not request.user.is_staff:
            return Response({"error": "Admin access required"}, status=status.HTTP_403_FORBIDDEN)

        serializer = OfferInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input_response(serializer.errors)
        try:
            offer = service.create_offer(serializer.validated_data, created_by=request.user)
        except BusinessError as e:
            return business_error_response(e)
        return Response(OfferAdminSerializer(offer).data, status=status.HTTP_201_CREATED)

    params = request.query_params
    queryset = service.list_offers(
        is_admin=request.user.is_staff,
        status=params.get("status"),
        offer_type=params.get("offerType"),
        applicable_to=params.get("applicableTo"),
        search=params.get("search"),
    )

    paginator = StandardResultsSetPagination()
    page = paginator.paginate_queryset(queryset, request)
    serializer = _offer_serializer(request)(page, many=True)
    return paginator.get_paginated_response(serializer.data)


@api_view(["GET", "PATCH"])
@permission_classes([IsAuthenticated])
def offer_detail(request: Request, offer_id: str) -> Response:
    """GET an offer; PATCH applies a partial update (staff only)."""
    service = OfferService()

    if request.method == "PATCH":
        if not request.user.is_staff:
            return Response({"error": "Admin access required"}, status=status.HTTP_403_FORBIDDEN)

        serializer = OfferInputSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return invalid_input_response(serializer.errors)
        try:
            offer = service.update_offer(offer_id, serializer.validated_data, updated_by=request.user)
        except BusinessError as e:
            return business_error_response(e)
        return Response(OfferAdminSerializer(offer).data)

    try:
        offer = service.get_offer(offer_id)
    except BusinessError as e:
        return business_error_response(e)

    if not request.user.is_staff and not service.get_active_offers().filter(pk=offer.pk).exists():
        return Response({"error": "Offer not found"}, status=status.HTTP_404_NOT_FOUND)

    data = _offer_serializer(request)(offer).data
    if request.user.is_staff:
        data["usage"] = service.usage_summary(offer)
    return Response(data)


@api_view(["POST"])
@permission_classes([IsAdminUser])
def offer_disable(request: Request, offer_id: str) -> Response:
    """Soft-delete an offer."""
    try:
        offer = OfferService().disable_offer(offer_id, updated_by=request.user)
    except BusinessError as e:
        return business_error_response(e)
    return Response(OfferAdminSerializer(offer).data)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def offer_validate(request: Request, offer_id: str) -> Response:
    """
    Check one offer against the caller's order.
    Rejections are a 200 with ``isValid: false`` and a reason.
    """
    service = OfferService()
    try:
        offer = service.get_offer(offer_id)
    except BusinessError as e:
        return business_error_response(e)

    order, error = _order_from_request(request)
    if error is not None:
        return error

    decision = service.is_valid_for_order(offer, order, user_id=str(request.user.pk))
    logger.debug("🏷️ [Offers API] Validation of %s for user %s: %s", offer.pk, request.user.pk, decision)
    return Response(decision.as_payload())


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def applicable_offers(request: Request) -> Response:
    """Every offer the caller's order qualifies for, best discount first."""
    order, error = _order_from_request(request)
    if error is not None:
        return error

    offers = OfferService().find_applicable_offers(order, user_id=str(request.user.pk))
    return Response(ApplicableOfferSerializer(offers, many=True).data)
