"""
Tenant and platform permission checks for API views.

Tenant permissions (resolved from the caller's tenant membership role):
1. billing.view: read balance, ledger, invoices and subscriptions
2. billing.manage: manage billing settings for the tenant
3. usage.record: submit metered usage events
4. usage.view: read aggregates, overage fees and entitlement decisions

Platform permissions (resolved from platform role assignments):
1. platform.plan.manage: create/update/delete catalog records
2. platform.billing.adjust: grant admin or promo credits
"""
import logging
from typing import Optional

from rest_framework.exceptions import NotAuthenticated, NotFound, PermissionDenied
from rest_framework.permissions import SAFE_METHODS, BasePermission

from iam.services import (
    PermissionCache,
    Principal,
    TenantMembershipRequired,
    build_platform_principal,
    build_tenant_principal,
    has_permission,
)

logger = logging.getLogger(__name__)

BILLING_VIEW = "billing.view"
BILLING_MANAGE = "billing.manage"
USAGE_RECORD = "usage.record"
USAGE_VIEW = "usage.view"
ENTITLEMENT_OVERRIDE = "billing.entitlement.override"
PLATFORM_PLAN_MANAGE = "platform.plan.manage"
PLATFORM_BILLING_ADJUST = "platform.billing.adjust"


def check_tenant_permission(user, tenant_id, permission_key: str, *, cache: Optional[PermissionCache] = None):
    """
    Convenience function: check a tenant-scoped permission

    Returns:
        tuple: (tenant object, principal)

    Raises:
        NotAuthenticated: User not logged in
        NotFound: Tenant does not exist
        PermissionDenied: Not a member, or missing permission
    """
    from tenants.models import Tenant

    if not user or not user.is_authenticated:
        raise NotAuthenticated("User not logged in")

    tenant = Tenant.objects.filter(id=tenant_id).first()
    if tenant is None:
        raise NotFound("Tenant does not exist")

    cache = cache or PermissionCache.from_settings()
    try:
        principal = build_tenant_principal(user, tenant.id, cache=cache)
    except TenantMembershipRequired:
        raise PermissionDenied("You are not a member of this tenant")

    if not has_permission(principal, permission_key):
        raise PermissionDenied(f"Missing permission '{permission_key}'")

    logger.debug("Permission granted: user %s has %s for tenant %s", user.pk, permission_key, tenant.id)
    return tenant, principal


def check_platform_permission(user, permission_key: str, *, cache: Optional[PermissionCache] = None) -> Principal:
    if not user or not user.is_authenticated:
        raise NotAuthenticated("User not logged in")

    principal = build_platform_principal(user, cache=cache or PermissionCache.from_settings())
    if not has_permission(principal, permission_key):
        raise PermissionDenied(f"Missing platform permission '{permission_key}'")
    return principal


class PlatformPermissionForWrites(BasePermission):
    """Authenticated users may read; writes need the view's ``platform_permission``."""

    default_permission = PLATFORM_PLAN_MANAGE

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if request.method in SAFE_METHODS or user.is_staff:
            return True

        key = getattr(view, "platform_permission", self.default_permission)
        principal = build_platform_principal(user, cache=PermissionCache.from_settings())
        return has_permission(principal, key)
