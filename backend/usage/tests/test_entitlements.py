import pytest

from billing.models import TenantCreditLedgerEntry
from billing.services.catalog import PlanFeatureNotFound, SubscriptionNotFound
from billing.services.ledger import add_credits
from iam.permissions import ENTITLEMENT_OVERRIDE
from iam.services import Principal
from usage.exceptions import UsageValidationError
from usage.services.entitlements import UNLIMITED, check_entitlement
from usage.services.recorder import record_usage


def _principal(tenant, *permissions, scope="tenant"):
    return Principal(
        user_id=1,
        scope=scope,
        tenant_id=tenant.id if scope == "tenant" else None,
        permissions=frozenset(permissions),
    )


@pytest.fixture
def metered(tenant, make_feature, subscribe):
    make_feature("api_calls", included_units=100, overage_price=10)
    subscribe(tenant)
    record_usage(tenant_id=tenant.id, feature_key="api_calls", units=90, idempotency_key="seed")
    return tenant


@pytest.mark.django_db
def test_unlimited_feature_is_always_allowed(tenant, make_feature, subscribe):
    make_feature("api_calls", included_units=UNLIMITED)
    subscribe(tenant)
    record_usage(tenant_id=tenant.id, feature_key="api_calls", units=1_000_000, idempotency_key="big")

    decision = check_entitlement(tenant_id=tenant.id, feature_key="api_calls", requested_units=10**9)

    assert decision.allowed is True
    assert decision.unlimited is True
    assert decision.remaining == UNLIMITED


@pytest.mark.django_db
def test_request_within_allowance_is_allowed(metered):
    decision = check_entitlement(tenant_id=metered.id, feature_key="api_calls", requested_units=10)

    assert decision.allowed is True
    assert decision.used == 90
    assert decision.limit == 100
    assert decision.remaining == 10


@pytest.mark.django_db
def test_request_over_allowance_is_denied(metered):
    decision = check_entitlement(tenant_id=metered.id, feature_key="api_calls", requested_units=11)

    assert decision.allowed is False
    assert decision.overridden is False
    assert decision.remaining == 10


@pytest.mark.django_db
def test_positive_credit_balance_extends_allowance(metered):
    add_credits(
        tenant_id=metered.id,
        delta=50,
        reason="Promo",
        source=TenantCreditLedgerEntry.Source.PROMO,
        idempotency_key="promo",
    )

    decision = check_entitlement(tenant_id=metered.id, feature_key="api_calls", requested_units=60)

    assert decision.allowed is True
    assert decision.limit == 150
    assert decision.remaining == 60


@pytest.mark.django_db
def test_negative_balance_does_not_shrink_allowance(metered):
    add_credits(
        tenant_id=metered.id,
        delta=-500,
        reason="Invoice",
        source=TenantCreditLedgerEntry.Source.BILLING,
        idempotency_key="inv",
    )

    decision = check_entitlement(tenant_id=metered.id, feature_key="api_calls", requested_units=10)

    assert decision.allowed is True
    assert decision.limit == 100


@pytest.mark.django_db
def test_override_permission_allows_over_limit(metered, other_tenant):
    own = _principal(metered, ENTITLEMENT_OVERRIDE)
    platform = _principal(metered, ENTITLEMENT_OVERRIDE, scope="platform")
    foreign = _principal(other_tenant, ENTITLEMENT_OVERRIDE)
    plain = _principal(metered, "usage.view")

    def decide(principal):
        return check_entitlement(
            tenant_id=metered.id,
            feature_key="api_calls",
            requested_units=500,
            principal=principal,
        )

    assert decide(own).allowed is True
    assert decide(own).overridden is True
    assert decide(platform).overridden is True
    assert decide(foreign).allowed is False
    assert decide(plain).allowed is False


@pytest.mark.django_db
def test_tenant_owner_does_not_bypass_limit(metered):
    owner = Principal(user_id=2, scope="tenant", tenant_id=metered.id, is_owner=True)
    record_usage(tenant_id=metered.id, feature_key="api_calls", units=10, idempotency_key="fill")

    decision = check_entitlement(
        tenant_id=metered.id,
        feature_key="api_calls",
        requested_units=10_000,
        principal=owner,
    )

    assert decision.allowed is False
    assert decision.overridden is False
    assert decision.remaining == 0


@pytest.mark.django_db
def test_missing_feature_or_subscription_raises(tenant, other_tenant, make_feature, subscribe):
    make_feature("api_calls")
    subscribe(tenant)

    with pytest.raises(PlanFeatureNotFound):
        check_entitlement(tenant_id=tenant.id, feature_key="storage_gb", requested_units=1)
    with pytest.raises(SubscriptionNotFound):
        check_entitlement(tenant_id=other_tenant.id, feature_key="api_calls", requested_units=1)


@pytest.mark.django_db
def test_negative_request_is_rejected(metered):
    with pytest.raises(UsageValidationError):
        check_entitlement(tenant_id=metered.id, feature_key="api_calls", requested_units=-1)
