"""DRF serializers for the billing catalog, credit ledger, invoices and subscriptions."""
from __future__ import annotations

from typing import Any, Dict

from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from billing.models import (
    BillingInvoice,
    BillingPlan,
    BillingPlanFeature,
    BillingPlanPrice,
    ProviderProductMapping,
    TenantCreditLedgerEntry,
    TenantSubscription,
)

ADJUSTMENT_SOURCES = (TenantCreditLedgerEntry.Source.ADMIN, TenantCreditLedgerEntry.Source.PROMO)


class BillingPlanSerializer(serializers.ModelSerializer):
    class Meta:
        model = BillingPlan
        fields = (
            "id",
            "key",
            "name",
            "description",
            "base_price",
            "currency",
            "billing_interval",
            "is_active",
            "is_custom",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("id", "created_at", "updated_at")


class BillingPlanFeatureSerializer(serializers.ModelSerializer):
    plan_key = serializers.CharField(source="plan.key", read_only=True)
    is_unlimited = serializers.BooleanField(read_only=True)

    class Meta:
        model = BillingPlanFeature
        fields = (
            "id",
            "plan",
            "plan_key",
            "feature_key",
            "included_units",
            "is_unlimited",
            "overage_price",
            "workspace_count",
            "guest_count",
            "member_seat",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("id", "plan_key", "is_unlimited", "created_at", "updated_at")

    def validate_included_units(self, value: int) -> int:
        if value < BillingPlanFeature.UNLIMITED:
            raise serializers.ValidationError(_("Use -1 for unlimited or a non-negative amount."))
        return value


class BillingPlanPriceSerializer(serializers.ModelSerializer):
    """Prices are created inactive; ``is_active=True`` goes through price activation."""

    # Declared explicitly so the partial one-active-price index does not become a field validator.
    plan = serializers.PrimaryKeyRelatedField(queryset=BillingPlan.objects.all())

    class Meta:
        model = BillingPlanPrice
        fields = (
            "id",
            "plan",
            "provider",
            "provider_price_id",
            "amount",
            "currency",
            "billing_interval",
            "is_active",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("id", "created_at", "updated_at")


class ProviderProductMappingSerializer(serializers.ModelSerializer):
    plan_key = serializers.CharField(source="plan.key", read_only=True)

    class Meta:
        model = ProviderProductMapping
        fields = ("id", "provider", "provider_product_id", "plan", "plan_key", "created_at")
        read_only_fields = ("id", "plan_key", "created_at")


class TenantCreditLedgerEntrySerializer(serializers.ModelSerializer):
    tenant_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = TenantCreditLedgerEntry
        fields = (
            "id",
            "tenant_id",
            "delta",
            "reason",
            "source",
            "idempotency_key",
            "reference_type",
            "reference_id",
            "expires_at",
            "created_at",
        )
        read_only_fields = fields


class CreditAdjustmentSerializer(serializers.Serializer):
    """Admin or promotional credit movement requested by platform staff."""

    delta = serializers.IntegerField()
    reason = serializers.CharField(max_length=255)
    source = serializers.ChoiceField(choices=ADJUSTMENT_SOURCES, default=TenantCreditLedgerEntry.Source.ADMIN)
    idempotency_key = serializers.CharField(max_length=255, required=False, allow_blank=True)
    expires_at = serializers.DateTimeField(required=False, allow_null=True)

    def validate_delta(self, value: int) -> int:
        if value == 0:
            raise serializers.ValidationError(_("Delta must be non-zero."))
        return value

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        attrs = super().validate(attrs)
        request = self.context.get("request")
        header_key = request.headers.get("Idempotency-Key", "") if request is not None else ""
        key = attrs.get("idempotency_key") or header_key
        if not key:
            raise serializers.ValidationError(
                {"idempotency_key": [_("Provide idempotency_key or an Idempotency-Key header.")]}
            )
        attrs["idempotency_key"] = key
        return attrs


class BillingInvoiceSerializer(serializers.ModelSerializer):
    tenant_id = serializers.UUIDField(read_only=True)
    subscription_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = BillingInvoice
        fields = (
            "id",
            "tenant_id",
            "subscription_id",
            "provider_invoice_id",
            "period_start",
            "period_end",
            "subscription_amount",
            "usage_amount",
            "proration_amount",
            "refund_amount",
            "total_amount",
            "currency",
            "status",
            "paid_at",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class TenantSubscriptionSerializer(serializers.ModelSerializer):
    tenant_id = serializers.UUIDField(read_only=True)
    plan = BillingPlanSerializer(read_only=True)

    class Meta:
        model = TenantSubscription
        fields = (
            "id",
            "tenant_id",
            "plan",
            "provider",
            "provider_subscription_id",
            "status",
            "current_period_start",
            "current_period_end",
            "subscription_seat",
            "canceled_at",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields
