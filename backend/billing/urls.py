"""URL routes for billing endpoints."""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views.catalog import (
    BillingPlanFeatureViewSet,
    BillingPlanPriceViewSet,
    BillingPlanViewSet,
    ProviderProductMappingViewSet,
)
from .views.credits import TenantCreditAdjustmentView, TenantCreditBalanceView, TenantCreditLedgerViewSet
from .views.invoices import TenantInvoiceViewSet
from .views.subscriptions import TenantSubscriptionViewSet
from .views.webhooks import PaymentWebhookView

app_name = "billing"

catalog_router = DefaultRouter()
catalog_router.register("plans", BillingPlanViewSet, basename="plan")
catalog_router.register("plan-features", BillingPlanFeatureViewSet, basename="plan-feature")
catalog_router.register("plan-prices", BillingPlanPriceViewSet, basename="plan-price")
catalog_router.register("product-mappings", ProviderProductMappingViewSet, basename="product-mapping")

urlpatterns = [
    path("billing/webhooks/payments/", PaymentWebhookView.as_view(), name="payment-webhook"),
    path("billing/", include(catalog_router.urls)),
    path(
        "tenants/<uuid:tenant_id>/billing/credits/balance/",
        TenantCreditBalanceView.as_view(),
        name="tenant-credit-balance",
    ),
    path(
        "tenants/<uuid:tenant_id>/billing/credits/ledger/",
        TenantCreditLedgerViewSet.as_view({"get": "list"}),
        name="tenant-credit-ledger",
    ),
    path(
        "tenants/<uuid:tenant_id>/billing/credits/adjustments/",
        TenantCreditAdjustmentView.as_view(),
        name="tenant-credit-adjustments",
    ),
    path(
        "tenants/<uuid:tenant_id>/billing/invoices/",
        TenantInvoiceViewSet.as_view({"get": "list"}),
        name="tenant-invoices",
    ),
    path(
        "tenants/<uuid:tenant_id>/billing/subscriptions/",
        TenantSubscriptionViewSet.as_view({"get": "list"}),
        name="tenant-subscriptions",
    ),
]
