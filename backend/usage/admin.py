from django.contrib import admin

from .models import UsageAggregate, UsageEvent, UsageOverageFee


class ReadOnlyAdmin(admin.ModelAdmin):

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(UsageEvent)
class UsageEventAdmin(ReadOnlyAdmin):
    list_display = ("id", "tenant", "feature_key", "units", "idempotency_key", "created_at")
    list_filter = ("feature_key", "created_at")
    search_fields = ("idempotency_key", "tenant__name", "feature_key")
    list_select_related = ("tenant",)


@admin.register(UsageAggregate)
class UsageAggregateAdmin(ReadOnlyAdmin):
    list_display = ("tenant", "feature_key", "period", "units_used", "updated_at")
    list_filter = ("period", "feature_key")
    search_fields = ("tenant__name", "feature_key")
    list_select_related = ("tenant",)


@admin.register(UsageOverageFee)
class UsageOverageFeeAdmin(ReadOnlyAdmin):
    list_display = ("tenant", "feature_key", "period", "units_used", "included_units", "total_amount", "currency")
    list_filter = ("period", "feature_key", "currency")
    search_fields = ("tenant__name", "feature_key")
    list_select_related = ("tenant",)
