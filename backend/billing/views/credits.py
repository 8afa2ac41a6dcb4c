"""Tenant credit balance, ledger and admin adjustment endpoints."""
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import ReadOnlyModelViewSet

from billing.filters import TenantCreditLedgerEntryFilter
from billing.models import BillingAuditLog
from billing.observability.logging import log_billing_event
from billing.observability.metrics import BILLING_REQUEST_COUNT
from billing.pagination import BoundedPageNumberPagination
from billing.serializers import CreditAdjustmentSerializer, TenantCreditLedgerEntrySerializer
from billing.services.ledger import LedgerEntryQuery, LedgerValidationError, add_credits, get_balance, list_entries
from billing.views import error_response
from iam.permissions import (
    BILLING_VIEW,
    PLATFORM_BILLING_ADJUST,
    check_platform_permission,
    check_tenant_permission,
)
from tenants.models import Tenant

logger = logging.getLogger(__name__)


def _query_flag(request, name: str, default: bool) -> bool:
    raw = request.query_params.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class TenantCreditBalanceView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, tenant_id):
        tenant, _ = check_tenant_permission(request.user, tenant_id, BILLING_VIEW)
        balance = get_balance(tenant.id)
        BILLING_REQUEST_COUNT.labels(endpoint="credit_balance", method="GET", status="200").inc()
        return Response({"tenant_id": str(tenant.id), "balance": balance})


class TenantCreditLedgerViewSet(ReadOnlyModelViewSet):
    serializer_class = TenantCreditLedgerEntrySerializer
    permission_classes = [IsAuthenticated]
    pagination_class = BoundedPageNumberPagination
    filterset_class = TenantCreditLedgerEntryFilter
    ordering_fields = ("created_at", "delta")
    ordering = ("-created_at",)

    def get_queryset(self):
        tenant, _ = check_tenant_permission(self.request.user, self.kwargs["tenant_id"], BILLING_VIEW)
        query = LedgerEntryQuery(
            tenant_id=tenant.id,
            include_expired=_query_flag(self.request, "include_expired", True),
        )
        return list_entries(query)


class TenantCreditAdjustmentView(APIView):
    """Grant or claw back admin and promotional credits for a tenant."""

    permission_classes = [IsAuthenticated]

    def post(self, request, tenant_id):
        check_platform_permission(request.user, PLATFORM_BILLING_ADJUST)
        tenant = Tenant.objects.filter(id=tenant_id).first()
        if tenant is None:
            return Response(
                {"code": "TENANT_NOT_FOUND", "message": "Tenant does not exist."},
                status=status.HTTP_404_NOT_FOUND,
            )

        serializer = CreditAdjustmentSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = add_credits(
                tenant_id=tenant.id,
                delta=data["delta"],
                reason=data["reason"],
                source=data["source"],
                idempotency_key=data["idempotency_key"],
                reference_type="adjustment",
                reference_id=str(request.user.pk),
                expires_at=data.get("expires_at"),
            )
        except LedgerValidationError as exc:
            BILLING_REQUEST_COUNT.labels(endpoint="credit_adjustment", method="POST", status="400").inc()
            return error_response(exc)

        if result.created:
            actor = request.user.get_username()
            BillingAuditLog.objects.create(
                tenant=tenant,
                event_type="credits.adjusted",
                reference=str(result.entry.pk),
                actor=actor,
                details={"delta": result.delta, "source": result.entry.source, "reason": result.entry.reason},
            )
            log_billing_event(
                message="Credit adjustment recorded",
                tenant_id=tenant.id,
                actor=actor,
                reference=result.entry.idempotency_key,
                extra={"delta": result.delta},
            )

        status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
        BILLING_REQUEST_COUNT.labels(endpoint="credit_adjustment", method="POST", status=str(status_code)).inc()
        payload = TenantCreditLedgerEntrySerializer(result.entry).data
        payload["created"] = result.created
        return Response(payload, status=status_code)
