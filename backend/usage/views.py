"""Tenant usage endpoints: event recording, aggregates, overage fees and entitlement checks."""
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import ReadOnlyModelViewSet

from billing.exceptions import BillingError
from billing.observability.metrics import BILLING_REQUEST_COUNT
from billing.pagination import BoundedPageNumberPagination
from billing.views import error_response
from iam.permissions import ENTITLEMENT_OVERRIDE, USAGE_RECORD, USAGE_VIEW, check_tenant_permission
from iam.services import PermissionCache, build_platform_principal, has_permission
from usage.filters import UsageAggregateFilter, UsageOverageFeeFilter
from usage.models import UsageAggregate, UsageOverageFee
from usage.serializers import (
    UsageAggregateSerializer,
    UsageEventCreateSerializer,
    UsageEventSerializer,
    UsageOverageFeeSerializer,
)
from usage.services.entitlements import check_entitlement
from usage.services.recorder import record_usage

logger = logging.getLogger(__name__)


class UsageEventView(APIView):
    """Record metered usage. Replays with the same key return the stored event."""

    permission_classes = [IsAuthenticated]

    def post(self, request, tenant_id):
        tenant, _ = check_tenant_permission(request.user, tenant_id, USAGE_RECORD)

        serializer = UsageEventCreateSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = record_usage(
                tenant_id=tenant.id,
                feature_key=data["feature_key"],
                units=data["units"],
                idempotency_key=data["idempotency_key"],
            )
        except BillingError as exc:
            BILLING_REQUEST_COUNT.labels(endpoint="usage_events", method="POST", status="400").inc()
            return error_response(exc)

        status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
        BILLING_REQUEST_COUNT.labels(endpoint="usage_events", method="POST", status=str(status_code)).inc()
        payload = UsageEventSerializer(result.event).data
        payload["created"] = result.created
        return Response(payload, status=status_code)


class UsageAggregateViewSet(ReadOnlyModelViewSet):
    serializer_class = UsageAggregateSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = BoundedPageNumberPagination
    filterset_class = UsageAggregateFilter
    ordering_fields = ("period", "feature_key", "units_used")
    ordering = ("-period", "feature_key")

    def get_queryset(self):
        tenant, _ = check_tenant_permission(self.request.user, self.kwargs["tenant_id"], USAGE_VIEW)
        self.request.tenant = tenant
        return UsageAggregate.objects.filter(tenant=tenant).order_by("-period", "feature_key")


class UsageOverageFeeViewSet(ReadOnlyModelViewSet):
    serializer_class = UsageOverageFeeSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = BoundedPageNumberPagination
    filterset_class = UsageOverageFeeFilter
    ordering_fields = ("period", "feature_key", "total_amount")
    ordering = ("-period", "feature_key")

    def get_queryset(self):
        tenant, _ = check_tenant_permission(self.request.user, self.kwargs["tenant_id"], USAGE_VIEW)
        self.request.tenant = tenant
        return UsageOverageFee.objects.filter(tenant=tenant).order_by("-period", "feature_key")


class EntitlementView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, tenant_id, feature_key):
        cache = PermissionCache.from_settings()
        tenant, principal = check_tenant_permission(request.user, tenant_id, USAGE_VIEW, cache=cache)

        raw_units = request.query_params.get("units", "1")
        try:
            units = int(raw_units)
        except (TypeError, ValueError):
            units = -1
        if units < 0:
            return Response(
                {"code": "USAGE_INVALID_UNITS", "message": "units must be a non-negative integer."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        if not has_permission(principal, ENTITLEMENT_OVERRIDE):
            platform_principal = build_platform_principal(request.user, cache=cache)
            if has_permission(platform_principal, ENTITLEMENT_OVERRIDE):
                principal = platform_principal

        try:
            decision = check_entitlement(
                tenant_id=tenant.id,
                feature_key=feature_key,
                requested_units=units,
                principal=principal,
            )
        except BillingError as exc:
            return error_response(exc)

        payload = decision.as_dict()
        payload.update({"tenant_id": str(tenant.id), "feature_key": feature_key, "requested_units": units})
        return Response(payload)
