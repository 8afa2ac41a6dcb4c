"""FilterSet definitions for usage endpoints."""
from __future__ import annotations

import django_filters

from billing.services.periods import parse_period
from usage.models import UsageAggregate, UsageOverageFee


class PeriodFilter(django_filters.CharFilter):
    """Accepts ``YYYY-MM`` or ``YYYY-MM-DD`` and matches the first-of-month period."""

    def filter(self, qs, value):
        if not value:
            return qs
        try:
            period = parse_period(value)
        except ValueError:
            return qs.none()
        return qs.filter(**{self.field_name: period})


class UsageAggregateFilter(django_filters.FilterSet):
    feature_key = django_filters.CharFilter(field_name="feature_key", lookup_expr="exact")
    period = PeriodFilter(field_name="period")
    period_after = django_filters.DateFilter(field_name="period", lookup_expr="gte")
    period_before = django_filters.DateFilter(field_name="period", lookup_expr="lte")

    class Meta:
        model = UsageAggregate
        fields = ["feature_key"]


class UsageOverageFeeFilter(django_filters.FilterSet):
    feature_key = django_filters.CharFilter(field_name="feature_key", lookup_expr="exact")
    period = PeriodFilter(field_name="period")
    currency = django_filters.CharFilter(field_name="currency", lookup_expr="iexact")

    class Meta:
        model = UsageOverageFee
        fields = ["feature_key", "currency"]
