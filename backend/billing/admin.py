from django.contrib import admin

from .models import (
    BillingAuditLog,
    BillingCustomer,
    BillingInvoice,
    BillingOneTimePayment,
    BillingPaymentEvent,
    BillingPlan,
    BillingPlanFeature,
    BillingPlanPrice,
    ProviderProductMapping,
    TenantCreditLedgerEntry,
    TenantSubscription,
)


class BillingPlanFeatureInline(admin.TabularInline):
    model = BillingPlanFeature
    extra = 0


class BillingPlanPriceInline(admin.TabularInline):
    model = BillingPlanPrice
    extra = 0
    readonly_fields = ("is_active",)


@admin.register(BillingPlan)
class BillingPlanAdmin(admin.ModelAdmin):
    list_display = ("key", "name", "base_price", "currency", "billing_interval", "is_active", "is_custom")
    list_filter = ("is_active", "is_custom", "billing_interval")
    search_fields = ("key", "name")
    inlines = (BillingPlanFeatureInline, BillingPlanPriceInline)


@admin.register(BillingPlanPrice)
class BillingPlanPriceAdmin(admin.ModelAdmin):
    list_display = ("plan", "provider", "provider_price_id", "amount", "currency", "is_active", "created_at")
    list_filter = ("provider", "is_active", "currency")
    search_fields = ("provider_price_id", "plan__key")
    list_select_related = ("plan",)
    actions = ("make_active",)

    @admin.action(description="Make the selected price the active price of its plan")
    def make_active(self, request, queryset):
        from billing.services.catalog import activate_price

        for price in queryset:
            activate_price(price)


@admin.register(ProviderProductMapping)
class ProviderProductMappingAdmin(admin.ModelAdmin):
    list_display = ("provider", "provider_product_id", "plan", "created_at")
    list_filter = ("provider",)
    search_fields = ("provider_product_id", "plan__key")
    list_select_related = ("plan",)


@admin.register(BillingCustomer)
class BillingCustomerAdmin(admin.ModelAdmin):
    list_display = ("provider_customer_id", "provider", "tenant", "email", "created_at")
    search_fields = ("provider_customer_id", "email", "tenant__name")
    raw_id_fields = ("tenant",)


@admin.register(TenantCreditLedgerEntry)
class TenantCreditLedgerEntryAdmin(admin.ModelAdmin):
    """Read-only audit trail for credit movements."""

    list_display = ("id", "tenant", "delta", "source", "reason", "idempotency_key", "expires_at", "created_at")
    list_filter = ("source", "reference_type", "created_at")
    search_fields = ("idempotency_key", "reference_id", "tenant__name")
    list_select_related = ("tenant",)
    readonly_fields = tuple(field.name for field in TenantCreditLedgerEntry._meta.fields)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(BillingPaymentEvent)
class BillingPaymentEventAdmin(admin.ModelAdmin):
    list_display = ("provider_event_id", "event_type", "tenant", "processed", "rejected", "attempts", "created_at")
    list_filter = ("processed", "rejected", "event_type", "provider")
    search_fields = ("provider_event_id", "payload_hash")
    readonly_fields = tuple(field.name for field in BillingPaymentEvent._meta.fields)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(BillingOneTimePayment)
class BillingOneTimePaymentAdmin(admin.ModelAdmin):
    list_display = ("provider_payment_id", "tenant", "amount", "currency", "status", "reason", "created_at")
    list_filter = ("status", "reason", "currency")
    search_fields = ("provider_payment_id", "tenant__name")
    raw_id_fields = ("tenant",)


@admin.register(TenantSubscription)
class TenantSubscriptionAdmin(admin.ModelAdmin):
    list_display = (
        "provider_subscription_id",
        "tenant",
        "plan",
        "status",
        "current_period_start",
        "current_period_end",
        "canceled_at",
    )
    list_filter = ("status", "plan")
    search_fields = ("provider_subscription_id", "tenant__name")
    list_select_related = ("tenant", "plan")
    raw_id_fields = ("tenant",)


@admin.register(BillingInvoice)
class BillingInvoiceAdmin(admin.ModelAdmin):
    list_display = ("provider_invoice_id", "tenant", "status", "total_amount", "currency", "period_start", "paid_at")
    list_filter = ("status", "currency")
    search_fields = ("provider_invoice_id", "tenant__name")
    raw_id_fields = ("tenant", "subscription")


@admin.register(BillingAuditLog)
class BillingAuditLogAdmin(admin.ModelAdmin):
    list_display = ("tenant", "event_type", "reference", "actor", "created_at")
    list_filter = ("event_type",)
    search_fields = ("reference", "actor", "tenant__name")
    readonly_fields = ("tenant", "event_type", "reference", "actor", "details", "created_at")

    def has_add_permission(self, request):
        return False
