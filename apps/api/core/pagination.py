# ===============================================================================
# API PAGINATION CLASSES 📄
# ===============================================================================

from typing import Any

from django.conf import settings
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class StandardResultsSetPagination(PageNumberPagination):
    """
    Standard pagination for marketplace API endpoints.
    ``?page=`` and ``?limit=`` query params, limit capped at 100.
    """

    page_size = getattr(settings, "OFFERS_DEFAULT_PAGE_SIZE", 20)
    page_size_query_param = "limit"
    max_page_size = getattr(settings, "OFFERS_MAX_PAGE_SIZE", 100)

    def get_pagination_meta(self) -> dict[str, Any]:
        page = self.page
        return {
            "currentPage": page.number,
            "totalPages": page.paginator.num_pages,
            "totalItems": page.paginator.count,
            "itemsPerPage": page.paginator.per_page,
            "hasNextPage": page.has_next(),
            "hasPrevPage": page.has_previous(),
        }

    def get_paginated_response(self, data: Any) -> Response:
        return Response({"results": data, "pagination": self.get_pagination_meta()})


class TransactionHistoryPagination(StandardResultsSetPagination):
    page_size = getattr(settings, "WALLET_HISTORY_PAGE_SIZE", 20)
    max_page_size = getattr(settings, "WALLET_HISTORY_MAX_PAGE_SIZE", 100)
