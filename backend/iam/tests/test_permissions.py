from io import StringIO

import pytest
from django.core.cache import cache as default_cache
from django.core.management import call_command
from rest_framework.exceptions import NotAuthenticated, NotFound, PermissionDenied

from iam.models import IamPermission, IamRole, IamRolePermission
from iam.permissions import (
    BILLING_VIEW,
    ENTITLEMENT_OVERRIDE,
    PLATFORM_PLAN_MANAGE,
    USAGE_RECORD,
    check_platform_permission,
    check_tenant_permission,
)
from iam.services import (
    PermissionCache,
    Principal,
    TenantMembershipRequired,
    build_platform_principal,
    build_tenant_principal,
    has_permission,
    resolve_role_permissions,
)
from tenants.models import TenantMember


@pytest.fixture
def permission_cache():
    return PermissionCache(default_cache, ttl=60, prefix="test.iam")


@pytest.mark.django_db
def test_seed_iam_is_repeatable(iam_roles):
    call_command("seed_iam", stdout=StringIO())

    assert set(iam_roles) >= {"tenant_owner", "tenant_member", "platform_admin", "platform_superadmin"}
    assert iam_roles["platform_admin"].scope == IamRole.Scope.PLATFORM
    assert IamRolePermission.objects.filter(role=iam_roles["tenant_member"]).count() == 3


@pytest.mark.django_db
def test_role_permissions_are_cached_until_grants_change(iam_roles):
    role = iam_roles["tenant_member"]
    real_cache = PermissionCache.from_settings()

    before = resolve_role_permissions(role.id, cache=real_cache)
    assert BILLING_VIEW not in before
    assert real_cache.get(role.id) == before

    IamRolePermission.objects.create(role=role, permission=IamPermission.objects.get(key=BILLING_VIEW))

    assert real_cache.get(role.id) is None
    assert BILLING_VIEW in resolve_role_permissions(role.id, cache=real_cache)


@pytest.mark.django_db
def test_cache_is_read_before_database(iam_roles, permission_cache):
    role = iam_roles["tenant_guest"]
    permission_cache.set(role.id, ["custom.cached"])

    assert resolve_role_permissions(role.id, cache=permission_cache) == frozenset({"custom.cached"})

    permission_cache.invalidate(role.id)
    assert resolve_role_permissions(role.id, cache=permission_cache) == frozenset({"tenant.read"})


def test_has_permission_rules():
    member = Principal(user_id=1, scope="tenant", permissions=frozenset({USAGE_RECORD}))
    owner = Principal(user_id=2, scope="tenant", is_owner=True)
    superuser = Principal(user_id=3, scope="platform", is_superuser=True)

    assert has_permission(member, USAGE_RECORD) is True
    assert has_permission(member, BILLING_VIEW) is False
    assert has_permission(owner, ENTITLEMENT_OVERRIDE) is False
    assert has_permission(owner, BILLING_VIEW) is True
    assert has_permission(owner, PLATFORM_PLAN_MANAGE) is False
    assert has_permission(superuser, PLATFORM_PLAN_MANAGE) is True
    assert has_permission(None, BILLING_VIEW) is False


@pytest.mark.django_db
def test_tenant_principal_requires_active_membership(make_user, add_member, tenant, permission_cache):
    user = make_user()
    membership = add_member(tenant, user, role_key="tenant_admin")

    principal = build_tenant_principal(user, tenant.id, cache=permission_cache)
    assert principal.role_key == "tenant_admin"
    assert BILLING_VIEW in principal.permissions
    assert principal.is_platform is False

    membership.is_active = False
    membership.save(update_fields=["is_active"])
    with pytest.raises(TenantMembershipRequired):
        build_tenant_principal(user, tenant.id, cache=permission_cache)


@pytest.mark.django_db
def test_platform_principal_unions_assigned_roles(make_user, grant_platform_role, permission_cache):
    user = make_user()
    grant_platform_role(user, "platform_support")
    grant_platform_role(user, "platform_admin")

    principal = build_platform_principal(user, cache=permission_cache)

    assert principal.is_platform is True
    assert "platform.security.view" in principal.permissions
    assert PLATFORM_PLAN_MANAGE in principal.permissions


@pytest.mark.django_db
def test_check_tenant_permission_errors(make_user, add_member, tenant, other_tenant):
    user = make_user()
    add_member(tenant, user, role_key="tenant_member")

    tenant_obj, principal = check_tenant_permission(user, tenant.id, USAGE_RECORD)
    assert tenant_obj == tenant
    assert principal.tenant_id == tenant.id

    with pytest.raises(PermissionDenied):
        check_tenant_permission(user, tenant.id, BILLING_VIEW)
    with pytest.raises(PermissionDenied):
        check_tenant_permission(user, other_tenant.id, USAGE_RECORD)
    with pytest.raises(NotFound):
        check_tenant_permission(user, "00000000-0000-4000-8000-000000000000", USAGE_RECORD)
    with pytest.raises(NotAuthenticated):
        check_tenant_permission(None, tenant.id, USAGE_RECORD)


@pytest.mark.django_db
def test_owner_passes_tenant_checks_without_grants(make_user, add_member, tenant):
    user = make_user()
    add_member(tenant, user, role_key="tenant_guest", member_type=TenantMember.MemberType.OWNER)

    _, principal = check_tenant_permission(user, tenant.id, BILLING_VIEW)

    assert principal.is_owner is True


@pytest.mark.django_db
def test_check_platform_permission(make_user, grant_platform_role):
    user = make_user()

    with pytest.raises(PermissionDenied):
        check_platform_permission(user, PLATFORM_PLAN_MANAGE)

    grant_platform_role(user, "platform_admin")
    assert check_platform_permission(user, PLATFORM_PLAN_MANAGE).is_platform is True
