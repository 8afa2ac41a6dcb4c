"""URL routes for tenant usage endpoints."""
from django.urls import path

from .views import EntitlementView, UsageAggregateViewSet, UsageEventView, UsageOverageFeeViewSet

app_name = "usage"

urlpatterns = [
    path(
        "tenants/<uuid:tenant_id>/usage/events/",
        UsageEventView.as_view(),
        name="usage-events",
    ),
    path(
        "tenants/<uuid:tenant_id>/usage/aggregates/",
        UsageAggregateViewSet.as_view({"get": "list"}),
        name="usage-aggregates",
    ),
    path(
        "tenants/<uuid:tenant_id>/usage/overage-fees/",
        UsageOverageFeeViewSet.as_view({"get": "list"}),
        name="usage-overage-fees",
    ),
    path(
        "tenants/<uuid:tenant_id>/usage/entitlements/<str:feature_key>/",
        EntitlementView.as_view(),
        name="usage-entitlement",
    ),
]
