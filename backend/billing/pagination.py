"""Pagination for tenant billing and usage listings."""
from __future__ import annotations

from django.conf import settings
from rest_framework.pagination import PageNumberPagination


class BoundedPageNumberPagination(PageNumberPagination):
    """Page numbers with a caller-chosen ``page_size`` capped at ``max_page_size``.

    Ledger and usage histories are unbounded per tenant; one page never holds
    more than ``max_page_size`` rows.
    """

    page_size = getattr(settings, "REST_FRAMEWORK", {}).get("PAGE_SIZE", 20)
    page_size_query_param = "page_size"
    max_page_size = 200
