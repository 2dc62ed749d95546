"""
Wallet API Views for the Marketplace Platform
Shops read their own wallet; staff may read and adjust any wallet.
"""

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from apps.api.core.errors import business_error_response, invalid_input_response
from apps.api.core.pagination import TransactionHistoryPagination
from apps.common.types import BusinessError
from apps.wallets.services import WalletService

from .serializers import (
    ShopWalletSerializer,
    TransactionQuerySerializer,
    WalletAdjustmentSerializer,
    WalletStatusSerializer,
    WalletTransactionSerializer,
)

logger = logging.getLogger(__name__)


def _can_access(request: Request, shop_id: str) -> bool:
    return request.user.is_staff or str(request.user.pk) == shop_id


def _access_denied() -> Response:
    return Response({"error": "Only admins can view other shop wallets"}, status=status.HTTP_403_FORBIDDEN)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def wallet_summary(request: Request, shop_id: str) -> Response:
    if not _can_access(request, shop_id):
        return _access_denied()
    try:
        wallet = WalletService().get_wallet(shop_id)
    except BusinessError as e:
        return business_error_response(e)
    return Response(ShopWalletSerializer(wallet).data)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def wallet_transactions(request: Request, shop_id: str) -> Response:
    """
    Paginated transaction history, newest first.
    Filters: type, source, startDate, endDate (inclusive).
    """
    if not _can_access(request, shop_id):
        return _access_denied()

    query = TransactionQuerySerializer(data=request.query_params)
    if not query.is_valid():
        return invalid_input_response(query.errors)
    filters = query.validated_data

    service = WalletService()
    try:
        wallet = service.get_wallet(shop_id)
    except BusinessError as e:
        return business_error_response(e)

    history = service.get_transaction_history(
        wallet,
        transaction_type=filters.get("type"),
        source=filters.get("source"),
        start_date=filters.get("startDate"),
        end_date=filters.get("endDate"),
    )

    paginator = TransactionHistoryPagination()
    page = paginator.paginate_queryset(history, request)
    return Response({
        "transactions": WalletTransactionSerializer(page, many=True).data,
        "pagination": paginator.get_pagination_meta(),
        "wallet": {"balance": wallet.balance, "status": wallet.status},
    })


@api_view(["POST"])
@permission_classes([IsAdminUser])
def wallet_adjust(request: Request, shop_id: str) -> Response:
    """Manual signed balance correction."""
    serializer = WalletAdjustmentSerializer(data=request.data)
    if not serializer.is_valid():
        return invalid_input_response(serializer.errors)

    service = WalletService()
    try:
        wallet = service.get_wallet(shop_id)
        wallet = service.adjust_balance(
            wallet,
            serializer.validated_data["amount"],
            serializer.validated_data["description"],
            performed_by=request.user.pk,
        )
    except BusinessError as e:
        return business_error_response(e)

    logger.info("💰 [Wallet API] Adjustment on shop %s by %s", shop_id, request.user.pk)
    return Response(ShopWalletSerializer(wallet).data)


@api_view(["POST"])
@permission_classes([IsAdminUser])
def wallet_status(request: Request, shop_id: str) -> Response:
    """Suspend, freeze or reactivate a wallet."""
    serializer = WalletStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return invalid_input_response(serializer.errors)

    service = WalletService()
    try:
        wallet = service.set_status(
            service.get_wallet(shop_id), serializer.validated_data["status"], performed_by=request.user.pk
        )
    except BusinessError as e:
        return business_error_response(e)
    return Response(ShopWalletSerializer(wallet).data)
