from django.contrib import admin

from .models import IamPermission, IamRole, IamRolePermission, PlatformRoleAssignment


class IamRolePermissionInline(admin.TabularInline):
    model = IamRolePermission
    extra = 0
    autocomplete_fields = ("permission",)


@admin.register(IamRole)
class IamRoleAdmin(admin.ModelAdmin):
    list_display = ("key", "display_name", "scope", "is_system", "is_break_glass")
    list_filter = ("scope", "is_system", "is_break_glass")
    search_fields = ("key", "display_name")
    inlines = [IamRolePermissionInline]


@admin.register(IamPermission)
class IamPermissionAdmin(admin.ModelAdmin):
    list_display = ("key", "resource", "action")
    search_fields = ("key", "resource", "action")


@admin.register(PlatformRoleAssignment)
class PlatformRoleAssignmentAdmin(admin.ModelAdmin):
    list_display = ("user", "role", "created_at")
    list_select_related = ("user", "role")
