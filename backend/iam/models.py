"""Role and permission tables backing tenant and platform access checks."""
import uuid

from django.conf import settings
from django.db import models


class IamRole(models.Model):
    """Named bundle of permissions, scoped to either the platform or a tenant."""

    class Scope(models.TextChoices):
        PLATFORM = "platform", "Platform"
        TENANT = "tenant", "Tenant"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    key = models.CharField(max_length=100, unique=True, help_text="Stable identifier, e.g. tenant_owner.")
    display_name = models.CharField(max_length=150, blank=True)
    description = models.TextField(blank=True)
    scope = models.CharField(max_length=20, choices=Scope.choices, default=Scope.TENANT)
    is_system = models.BooleanField(default=False, help_text="System roles cannot be edited from the API.")
    is_break_glass = models.BooleanField(
        default=False,
        help_text="Emergency access role; assignments should be audited.",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "iam_roles"
        verbose_name = "IAM role"
        verbose_name_plural = "IAM roles"
        ordering = ["key"]

    def __str__(self):
        return f"IamRole<{self.key}>"


class IamPermission(models.Model):
    """Single capability string such as ``billing.view``."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    key = models.CharField(max_length=150, unique=True)
    resource = models.CharField(max_length=100, blank=True)
    action = models.CharField(max_length=100, blank=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "iam_permissions"
        verbose_name = "IAM permission"
        verbose_name_plural = "IAM permissions"
        ordering = ["key"]

    def save(self, *args, **kwargs):
        if self.key and not (self.resource or self.action):
            resource, _, action = self.key.rpartition(".")
            self.resource = resource
            self.action = action
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"IamPermission<{self.key}>"


class IamRolePermission(models.Model):
    """Grants a permission to a role. Changes invalidate the cached permission set."""

    id = models.BigAutoField(primary_key=True)
    role = models.ForeignKey(IamRole, on_delete=models.CASCADE, related_name="role_permissions")
    permission = models.ForeignKey(IamPermission, on_delete=models.CASCADE, related_name="role_permissions")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "iam_role_permissions"
        verbose_name = "IAM role permission"
        verbose_name_plural = "IAM role permissions"
        constraints = [
            models.UniqueConstraint(fields=["role", "permission"], name="iam_role_permission_unique"),
        ]

    def __str__(self):
        return f"IamRolePermission<{self.role_id}:{self.permission_id}>"


class PlatformRoleAssignment(models.Model):
    """Assigns a platform-scoped role (support, admin) to a user."""

    id = models.BigAutoField(primary_key=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="platform_role_assignments",
    )
    role = models.ForeignKey(IamRole, on_delete=models.CASCADE, related_name="platform_assignments")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "iam_platform_role_assignments"
        verbose_name = "Platform role assignment"
        verbose_name_plural = "Platform role assignments"
        constraints = [
            models.UniqueConstraint(fields=["user", "role"], name="iam_platform_assignment_unique"),
        ]

    def __str__(self):
        return f"PlatformRoleAssignment<{self.user_id}:{self.role_id}>"
