"""Tenant subscription listing endpoints."""
from __future__ import annotations

from rest_framework.permissions import IsAuthenticated
from rest_framework.viewsets import ReadOnlyModelViewSet

from billing.filters import TenantSubscriptionFilter
from billing.models import TenantSubscription
from billing.pagination import BoundedPageNumberPagination
from billing.serializers import TenantSubscriptionSerializer
from iam.permissions import BILLING_VIEW, check_tenant_permission


class TenantSubscriptionViewSet(ReadOnlyModelViewSet):
    serializer_class = TenantSubscriptionSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = BoundedPageNumberPagination
    filterset_class = TenantSubscriptionFilter
    ordering_fields = ("current_period_end", "created_at")
    ordering = ("-current_period_end",)

    def get_queryset(self):
        tenant, _ = check_tenant_permission(self.request.user, self.kwargs["tenant_id"], BILLING_VIEW)
        self.request.tenant = tenant
        return (
            TenantSubscription.objects.select_related("plan")
            .filter(tenant=tenant)
            .order_by("-current_period_end")
        )
