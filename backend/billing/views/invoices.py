"""Tenant invoice listing endpoints."""
from __future__ import annotations

from rest_framework.permissions import IsAuthenticated
from rest_framework.viewsets import ReadOnlyModelViewSet

from billing.filters import BillingInvoiceFilter
from billing.models import BillingInvoice
from billing.pagination import BoundedPageNumberPagination
from billing.serializers import BillingInvoiceSerializer
from iam.permissions import BILLING_VIEW, check_tenant_permission


class TenantInvoiceViewSet(ReadOnlyModelViewSet):
    serializer_class = BillingInvoiceSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = BoundedPageNumberPagination
    filterset_class = BillingInvoiceFilter
    ordering_fields = ("period_start", "total_amount", "created_at")
    ordering = ("-period_start", "-created_at")

    def get_queryset(self):
        tenant, _ = check_tenant_permission(self.request.user, self.kwargs["tenant_id"], BILLING_VIEW)
        self.request.tenant = tenant
        return BillingInvoice.objects.filter(tenant=tenant).order_by("-period_start", "-created_at")
