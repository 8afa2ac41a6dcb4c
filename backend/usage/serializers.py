"""DRF serializers for usage reporting endpoints."""
from __future__ import annotations

from typing import Any, Dict

from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from usage.models import UsageAggregate, UsageEvent, UsageOverageFee


class UsageEventCreateSerializer(serializers.Serializer):
    feature_key = serializers.CharField(max_length=100)
    units = serializers.IntegerField(min_value=1)
    idempotency_key = serializers.CharField(max_length=255, required=False, allow_blank=True)

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


class UsageEventSerializer(serializers.ModelSerializer):
    tenant_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = UsageEvent
        fields = ("id", "tenant_id", "feature_key", "units", "idempotency_key", "created_at")
        read_only_fields = fields


class UsageAggregateSerializer(serializers.ModelSerializer):
    tenant_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = UsageAggregate
        fields = ("id", "tenant_id", "feature_key", "period", "units_used", "updated_at")
        read_only_fields = fields


class UsageOverageFeeSerializer(serializers.ModelSerializer):
    tenant_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = UsageOverageFee
        fields = (
            "id",
            "tenant_id",
            "period",
            "feature_key",
            "units_used",
            "included_units",
            "unit_price",
            "total_amount",
            "currency",
            "created_at",
        )
        read_only_fields = fields
