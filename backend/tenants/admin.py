from django.contrib import admin

from .models import Tenant, TenantMember


class TenantMemberInline(admin.TabularInline):
    model = TenantMember
    extra = 0
    raw_id_fields = ('user',)


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug', 'billing_state', 'status', 'created_at')
    list_filter = ('billing_state', 'status')
    search_fields = ('name', 'slug')
    readonly_fields = ('id', 'created_at', 'updated_at')
    inlines = [TenantMemberInline]
