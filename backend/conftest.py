import itertools
import threading
from datetime import timedelta
from io import StringIO

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.management import call_command
from django.db import connection
from django.utils import timezone
from rest_framework.test import APIClient

from billing.models import BillingPlan, BillingPlanFeature, TenantSubscription
from iam.models import IamRole, PlatformRoleAssignment
from tenants.models import Tenant, TenantMember

WEBHOOK_SECRET = "whsec_dGVzdC13ZWJob29rLXNlY3JldA=="


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def iam_roles(db):
    call_command("seed_iam", stdout=StringIO())
    return {role.key: role for role in IamRole.objects.all()}


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(username=None, **extra):
        index = next(counter)
        username = username or f"user{index}"
        return get_user_model().objects.create_user(
            username=username,
            email=extra.pop("email", f"{username}@example.com"),
            password="pass1234",
            **extra,
        )

    return _make


@pytest.fixture
def make_tenant(db):
    counter = itertools.count(1)

    def _make(name=None):
        index = next(counter)
        name = name or f"Tenant {index}"
        return Tenant.objects.create(name=name, slug=f"tenant-{index}")

    return _make


@pytest.fixture
def tenant(make_tenant):
    return make_tenant("Acme")


@pytest.fixture
def other_tenant(make_tenant):
    return make_tenant("Globex")


@pytest.fixture
def add_member(iam_roles):
    def _add(tenant, user, role_key="tenant_member", member_type=TenantMember.MemberType.MEMBER):
        return TenantMember.objects.create(
            tenant=tenant,
            user=user,
            role=iam_roles[role_key],
            member_type=member_type,
        )

    return _add


@pytest.fixture
def grant_platform_role(iam_roles):
    def _grant(user, role_key="platform_admin"):
        return PlatformRoleAssignment.objects.create(user=user, role=iam_roles[role_key])

    return _grant


@pytest.fixture
def plan(db):
    return BillingPlan.objects.create(key=BillingPlan.PlanKey.PLUS, name="Plus", base_price=2900)


@pytest.fixture
def make_feature(plan):
    def _make(feature_key="api_calls", included_units=100, overage_price=10, target_plan=None):
        return BillingPlanFeature.objects.create(
            plan=target_plan or plan,
            feature_key=feature_key,
            included_units=included_units,
            overage_price=overage_price,
        )

    return _make


@pytest.fixture
def subscribe(plan):
    counter = itertools.count(1)

    def _subscribe(tenant, target_plan=None, status=TenantSubscription.Status.ACTIVE):
        now = timezone.now()
        return TenantSubscription.objects.create(
            tenant=tenant,
            plan=target_plan or plan,
            provider_subscription_id=f"sub_fixture_{next(counter)}_{tenant.slug}",
            status=status,
            current_period_start=now - timedelta(days=1),
            current_period_end=now + timedelta(days=29),
        )

    return _subscribe


@pytest.fixture
def webhook_secret(settings):
    settings.BILLING_WEBHOOK_SECRET = WEBHOOK_SECRET
    return WEBHOOK_SECRET


@pytest.fixture
def run_concurrently():
    """Start ``worker`` in several threads released by one barrier and collect the results.

    SQLite serialises writers, so these races only run against PostgreSQL.
    """

    if connection.vendor != "postgresql":
        pytest.skip("concurrent writer tests need PostgreSQL")

    def _run(worker, count=3):
        barrier = threading.Barrier(count)
        results, errors = [], []

        def target(index):
            try:
                barrier.wait(timeout=10)
                results.append(worker(index))
            except Exception as exc:
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=target, args=(index,)) for index in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)
        if errors:
            raise errors[0]
        return results

    return _run
