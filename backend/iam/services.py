"""Role to permission resolution and request principals.

Permission sets are cached per role through :class:`PermissionCache`, which is
handed to callers explicitly instead of living in module state. Grants are
invalidated whenever a role or one of its permission rows changes (see
``iam.signals``).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional
from uuid import UUID

from django.conf import settings
from django.core.cache import caches
from django.core.cache.backends.base import BaseCache

from iam.models import IamRole, IamRolePermission, PlatformRoleAssignment

logger = logging.getLogger(__name__)

PLATFORM_PERMISSION_PREFIX = "platform."
# Tenant ownership never implies these; they need an explicit role grant.
GRANT_ONLY_PERMISSIONS = frozenset({"billing.entitlement.override"})
DEFAULT_CACHE_PREFIX = "iam.role_permissions"


class PermissionCache:
    """Role id -> permission key set, stored in a Django cache backend."""

    def __init__(self, backend: BaseCache, *, ttl: int = 300, prefix: str = DEFAULT_CACHE_PREFIX):
        self.backend = backend
        self.ttl = ttl
        self.prefix = prefix

    @classmethod
    def from_settings(cls) -> "PermissionCache":
        alias = getattr(settings, "IAM_PERMISSION_CACHE_ALIAS", "default")
        ttl = getattr(settings, "IAM_PERMISSION_CACHE_TTL", 300)
        return cls(caches[alias], ttl=ttl)

    def _key(self, role_id) -> str:
        return f"{self.prefix}:{role_id}"

    def get(self, role_id) -> Optional[FrozenSet[str]]:
        cached = self.backend.get(self._key(role_id))
        if cached is None:
            return None
        return frozenset(cached)

    def set(self, role_id, permissions: Iterable[str]) -> None:
        self.backend.set(self._key(role_id), sorted(permissions), self.ttl)

    def invalidate(self, role_id) -> None:
        if role_id is None:
            return
        self.backend.delete(self._key(role_id))


def resolve_role_permissions(role_id, *, cache: PermissionCache) -> FrozenSet[str]:
    """Return the permission keys granted to ``role_id``, reading through ``cache``."""

    if role_id is None:
        return frozenset()

    cached = cache.get(role_id)
    if cached is not None:
        return cached

    permissions = frozenset(
        IamRolePermission.objects.filter(role_id=role_id).values_list("permission__key", flat=True)
    )
    cache.set(role_id, permissions)
    logger.debug("Resolved %s permissions for role %s", len(permissions), role_id)
    return permissions


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as seen by the billing core."""

    user_id: int
    scope: str
    tenant_id: Optional[UUID] = None
    role_key: str = ""
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    is_owner: bool = False
    is_superuser: bool = False

    @property
    def is_platform(self) -> bool:
        return self.scope == IamRole.Scope.PLATFORM


def has_permission(principal: Optional[Principal], permission_key: str) -> bool:
    """Permission check primitive used by views and the entitlement engine."""

    if principal is None:
        return False
    if principal.is_superuser:
        return True
    if principal.is_owner and not _grant_only(permission_key):
        return True
    return permission_key in principal.permissions


def _grant_only(permission_key: str) -> bool:
    return permission_key.startswith(PLATFORM_PERMISSION_PREFIX) or permission_key in GRANT_ONLY_PERMISSIONS


class TenantMembershipRequired(Exception):
    """Raised when a user is not an active member of the requested tenant."""


def build_tenant_principal(user, tenant_id, *, cache: PermissionCache) -> Principal:
    from tenants.models import TenantMember

    membership = (
        TenantMember.objects.select_related("role")
        .filter(tenant_id=tenant_id, user=user, is_active=True)
        .first()
    )
    if membership is None:
        raise TenantMembershipRequired(f"User {user.pk} is not a member of tenant {tenant_id}.")

    return Principal(
        user_id=user.pk,
        scope=IamRole.Scope.TENANT,
        tenant_id=membership.tenant_id,
        role_key=membership.role.key if membership.role_id else "",
        permissions=resolve_role_permissions(membership.role_id, cache=cache),
        is_owner=membership.member_type == TenantMember.MemberType.OWNER,
    )


def build_platform_principal(user, *, cache: PermissionCache) -> Principal:
    role_ids = list(
        PlatformRoleAssignment.objects.filter(user=user, role__scope=IamRole.Scope.PLATFORM)
        .values_list("role_id", flat=True)
    )
    permissions: FrozenSet[str] = frozenset()
    for role_id in role_ids:
        permissions |= resolve_role_permissions(role_id, cache=cache)

    return Principal(
        user_id=user.pk,
        scope=IamRole.Scope.PLATFORM,
        permissions=permissions,
        is_superuser=bool(getattr(user, "is_superuser", False)),
    )
