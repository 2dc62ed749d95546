# ===============================================================================
# API ERROR RESPONSES ⚠️
# ===============================================================================

import logging

from rest_framework import status
from rest_framework.response import Response

from apps.common.types import BusinessError, ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def business_error_response(error: BusinessError) -> Response:
    """Map a domain error to ``{"error": ...}`` with the matching status code."""
    body = {"error": str(error)}

    if isinstance(error, NotFoundError):
        http_status = status.HTTP_404_NOT_FOUND
    elif isinstance(error, ConflictError):
        http_status = status.HTTP_409_CONFLICT
    else:
        http_status = status.HTTP_400_BAD_REQUEST
        if isinstance(error, ValidationError):
            body["field"] = error.field

    # Insufficient balance carries the figures the client shows the shop
    for attribute in ("available", "requested"):
        if hasattr(error, attribute):
            body[attribute] = getattr(error, attribute)

    logger.info("⚠️ [API] %s: %s", type(error).__name__, error)
    return Response(body, status=http_status)


def invalid_input_response(errors: dict) -> Response:
    return Response({"error": "Invalid input", "details": errors}, status=status.HTTP_400_BAD_REQUEST)
