"""FilterSet definitions for billing endpoints."""
from __future__ import annotations

import django_filters

from billing.models import (
    BillingInvoice,
    BillingPlanFeature,
    BillingPlanPrice,
    ProviderProductMapping,
    TenantCreditLedgerEntry,
    TenantSubscription,
)


class TenantCreditLedgerEntryFilter(django_filters.FilterSet):
    source = django_filters.CharFilter(field_name="source", lookup_expr="iexact")
    reference_type = django_filters.CharFilter(field_name="reference_type", lookup_expr="iexact")
    created_after = django_filters.DateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_before = django_filters.DateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = TenantCreditLedgerEntry
        fields = ["source", "reference_type"]


class BillingInvoiceFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name="status", lookup_expr="iexact")
    currency = django_filters.CharFilter(field_name="currency", lookup_expr="iexact")
    period_after = django_filters.DateTimeFilter(field_name="period_start", lookup_expr="gte")
    period_before = django_filters.DateTimeFilter(field_name="period_end", lookup_expr="lte")

    class Meta:
        model = BillingInvoice
        fields = ["status", "currency"]


class TenantSubscriptionFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name="status", lookup_expr="iexact")
    plan = django_filters.CharFilter(field_name="plan__key", lookup_expr="iexact")

    class Meta:
        model = TenantSubscription
        fields = ["status", "plan"]


class BillingPlanFeatureFilter(django_filters.FilterSet):
    plan = django_filters.CharFilter(field_name="plan__key", lookup_expr="iexact")
    feature_key = django_filters.CharFilter(field_name="feature_key", lookup_expr="iexact")

    class Meta:
        model = BillingPlanFeature
        fields = ["plan", "feature_key"]


class BillingPlanPriceFilter(django_filters.FilterSet):
    plan = django_filters.CharFilter(field_name="plan__key", lookup_expr="iexact")
    is_active = django_filters.BooleanFilter(field_name="is_active")
    provider = django_filters.CharFilter(field_name="provider", lookup_expr="iexact")

    class Meta:
        model = BillingPlanPrice
        fields = ["plan", "is_active", "provider"]


class ProviderProductMappingFilter(django_filters.FilterSet):
    provider = django_filters.CharFilter(field_name="provider", lookup_expr="iexact")
    plan = django_filters.CharFilter(field_name="plan__key", lookup_expr="iexact")

    class Meta:
        model = ProviderProductMapping
        fields = ["provider", "plan"]
