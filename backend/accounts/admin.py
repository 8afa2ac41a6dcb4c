from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    User admin configuration
    """
    list_display = (
        'username', 'email', 'first_name', 'last_name',
        'is_active', 'is_staff', 'created_at'
    )
    list_filter = ('is_active', 'is_staff', 'is_superuser', 'created_at')
    search_fields = ('username', 'email', 'first_name', 'last_name')
    ordering = ('-created_at',)
    readonly_fields = ('uuid', 'created_at', 'updated_at')

    fieldsets = BaseUserAdmin.fieldsets + (
        ('Identifiers', {
            'fields': ('uuid', 'created_at', 'updated_at')
        }),
    )
