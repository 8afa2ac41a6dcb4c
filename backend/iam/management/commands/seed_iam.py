"""
Create default IAM roles, permissions and role grants

Tenant roles: tenant_owner, tenant_admin, tenant_member, tenant_guest
Platform roles: platform_admin, platform_superadmin, platform_support
"""
from django.core.management.base import BaseCommand
from django.db import transaction

from iam.models import IamPermission, IamRole, IamRolePermission

TENANT_ROLES = ("tenant_owner", "tenant_admin", "tenant_member", "tenant_guest")
PLATFORM_ROLES = ("platform_admin", "platform_superadmin", "platform_support")

PERMISSIONS = (
    "tenant.read",
    "tenant.update",
    "tenant.delete",
    "member.invite",
    "member.remove",
    "billing.view",
    "billing.manage",
    "billing.entitlement.override",
    "usage.record",
    "usage.view",
    "platform.tenant.read",
    "platform.tenant.suspend",
    "platform.tenant.delete",
    "platform.billing.adjust",
    "platform.plan.manage",
    "platform.user.impersonate",
    "platform.security.view",
    "platform.system.configure",
)

ROLE_GRANTS = {
    "tenant_owner": (
        "tenant.read", "tenant.update", "member.invite", "member.remove",
        "billing.view", "billing.manage", "usage.record", "usage.view",
    ),
    "tenant_admin": (
        "tenant.read", "member.invite", "member.remove", "billing.view", "usage.record", "usage.view",
    ),
    "tenant_member": ("tenant.read", "usage.record", "usage.view"),
    "tenant_guest": ("tenant.read",),
    "platform_support": ("platform.tenant.read", "platform.security.view"),
    "platform_admin": (
        "platform.tenant.read", "platform.tenant.suspend", "platform.billing.adjust",
        "platform.plan.manage", "platform.security.view", "billing.entitlement.override",
    ),
    "platform_superadmin": PERMISSIONS,
}


class Command(BaseCommand):

    help = 'Create default IAM roles and permissions'

    def handle(self, *args, **options):
        created_roles = 0
        created_permissions = 0
        created_grants = 0

        with transaction.atomic():
            for key in TENANT_ROLES + PLATFORM_ROLES:
                scope = IamRole.Scope.PLATFORM if key.startswith("platform_") else IamRole.Scope.TENANT
                _, created = IamRole.objects.get_or_create(
                    key=key,
                    defaults={
                        "display_name": key.replace("_", " ").title(),
                        "scope": scope,
                        "is_system": scope == IamRole.Scope.PLATFORM,
                    },
                )
                created_roles += int(created)

            for key in PERMISSIONS:
                _, created = IamPermission.objects.get_or_create(key=key)
                created_permissions += int(created)

            permissions = {permission.key: permission for permission in IamPermission.objects.all()}
            for role in IamRole.objects.filter(key__in=ROLE_GRANTS.keys()):
                for permission_key in ROLE_GRANTS[role.key]:
                    _, created = IamRolePermission.objects.get_or_create(
                        role=role,
                        permission=permissions[permission_key],
                    )
                    created_grants += int(created)

        self.stdout.write(
            self.style.SUCCESS(
                f"IAM seed complete: roles={created_roles} permissions={created_permissions} grants={created_grants}"
            )
        )
