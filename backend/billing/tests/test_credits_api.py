from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone

from billing.models import BillingAuditLog, BillingInvoice, TenantCreditLedgerEntry
from billing.services.ledger import add_credits, get_balance
from tenants.models import TenantMember

PROMO = TenantCreditLedgerEntry.Source.PROMO


def _url(name, tenant):
    return reverse(f"billing:{name}", kwargs={"tenant_id": tenant.id})


@pytest.fixture
def billing_admin(make_user, add_member, tenant):
    user = make_user("billing-admin")
    add_member(tenant, user, role_key="tenant_admin")
    return user


@pytest.mark.django_db
def test_balance_and_ledger_for_tenant_admin(api_client, billing_admin, tenant):
    add_credits(tenant_id=tenant.id, delta=500, reason="Top-up", source="billing", idempotency_key="a")
    add_credits(
        tenant_id=tenant.id,
        delta=200,
        reason="Old promo",
        source=PROMO,
        idempotency_key="b",
        expires_at=timezone.now() - timedelta(days=1),
    )
    api_client.force_authenticate(billing_admin)

    balance = api_client.get(_url("tenant-credit-balance", tenant))
    ledger = api_client.get(_url("tenant-credit-ledger", tenant))
    active_only = api_client.get(_url("tenant-credit-ledger", tenant), {"include_expired": "false"})
    promo_only = api_client.get(_url("tenant-credit-ledger", tenant), {"source": "promo"})

    assert balance.status_code == 200
    assert balance.json() == {"tenant_id": str(tenant.id), "balance": 500}
    assert ledger.json()["count"] == 2
    assert [row["delta"] for row in active_only.json()["results"]] == [500]
    assert [row["delta"] for row in promo_only.json()["results"]] == [200]


@pytest.mark.django_db
def test_members_without_billing_view_are_denied(api_client, make_user, add_member, tenant):
    user = make_user()
    add_member(tenant, user, role_key="tenant_member")
    api_client.force_authenticate(user)

    assert api_client.get(_url("tenant-credit-balance", tenant)).status_code == 403
    assert api_client.get(_url("tenant-invoices", tenant)).status_code == 403


@pytest.mark.django_db
def test_owner_reads_billing_without_explicit_grant(api_client, make_user, add_member, tenant):
    owner = make_user()
    add_member(tenant, owner, role_key="tenant_member", member_type=TenantMember.MemberType.OWNER)
    api_client.force_authenticate(owner)

    assert api_client.get(_url("tenant-credit-balance", tenant)).status_code == 200


@pytest.mark.django_db
def test_tenant_cannot_read_another_tenants_billing(api_client, billing_admin, tenant, other_tenant):
    add_credits(tenant_id=other_tenant.id, delta=900, reason="Top-up", source="billing", idempotency_key="x")
    api_client.force_authenticate(billing_admin)

    for name in ("tenant-credit-balance", "tenant-credit-ledger", "tenant-invoices", "tenant-subscriptions"):
        response = api_client.get(_url(name, other_tenant))
        assert response.status_code == 403, name


@pytest.mark.django_db
def test_unknown_tenant_returns_not_found(api_client, billing_admin):
    api_client.force_authenticate(billing_admin)

    response = api_client.get(
        reverse("billing:tenant-credit-balance", kwargs={"tenant_id": "00000000-0000-4000-8000-000000000000"})
    )

    assert response.status_code == 404


@pytest.mark.django_db
def test_invoices_and_subscriptions_are_scoped_to_tenant(
    api_client, billing_admin, tenant, other_tenant, subscribe
):
    now = timezone.now()
    for owner, invoice_id in ((tenant, "inv_own"), (other_tenant, "inv_other")):
        BillingInvoice.objects.create(
            tenant=owner,
            provider_invoice_id=invoice_id,
            period_start=now - timedelta(days=30),
            period_end=now,
            total_amount=1000,
        )
    subscribe(tenant)
    subscribe(other_tenant)
    api_client.force_authenticate(billing_admin)

    invoices = api_client.get(_url("tenant-invoices", tenant)).json()["results"]
    subscriptions = api_client.get(_url("tenant-subscriptions", tenant)).json()["results"]

    assert [row["provider_invoice_id"] for row in invoices] == ["inv_own"]
    assert len(subscriptions) == 1
    assert subscriptions[0]["plan"]["key"] == "plus"


@pytest.mark.django_db
def test_adjustment_requires_platform_permission(api_client, billing_admin, tenant):
    api_client.force_authenticate(billing_admin)

    response = api_client.post(
        _url("tenant-credit-adjustments", tenant),
        {"delta": 100, "reason": "Goodwill", "idempotency_key": "adj-1"},
        format="json",
    )

    assert response.status_code == 403
    assert get_balance(tenant.id) == 0


@pytest.mark.django_db
def test_adjustment_is_idempotent_via_header(api_client, make_user, grant_platform_role, tenant):
    staff = make_user("ops")
    grant_platform_role(staff, "platform_admin")
    api_client.force_authenticate(staff)
    url = _url("tenant-credit-adjustments", tenant)
    body = {"delta": 250, "reason": "Launch promo", "source": "promo"}

    first = api_client.post(url, body, format="json", HTTP_IDEMPOTENCY_KEY="promo-launch")
    second = api_client.post(url, body, format="json", HTTP_IDEMPOTENCY_KEY="promo-launch")

    assert first.status_code == 201
    assert first.json()["created"] is True
    assert second.status_code == 200
    assert second.json()["created"] is False
    assert get_balance(tenant.id) == 250
    assert BillingAuditLog.objects.filter(tenant=tenant, event_type="credits.adjusted").count() == 1


@pytest.mark.django_db
def test_adjustment_validation(api_client, make_user, grant_platform_role, tenant):
    staff = make_user()
    grant_platform_role(staff, "platform_admin")
    api_client.force_authenticate(staff)
    url = _url("tenant-credit-adjustments", tenant)

    missing_key = api_client.post(url, {"delta": 10, "reason": "x"}, format="json")
    zero_delta = api_client.post(url, {"delta": 0, "reason": "x", "idempotency_key": "z"}, format="json")
    billing_source = api_client.post(
        url, {"delta": 10, "reason": "x", "idempotency_key": "b", "source": "billing"}, format="json"
    )
    unknown_tenant = api_client.post(
        reverse("billing:tenant-credit-adjustments", kwargs={"tenant_id": "00000000-0000-4000-8000-000000000000"}),
        {"delta": 10, "reason": "x", "idempotency_key": "u"},
        format="json",
    )

    assert missing_key.status_code == 400
    assert "idempotency_key" in missing_key.json()
    assert zero_delta.status_code == 400
    assert billing_source.status_code == 400
    assert unknown_tenant.status_code == 404
    assert not TenantCreditLedgerEntry.objects.exists()
