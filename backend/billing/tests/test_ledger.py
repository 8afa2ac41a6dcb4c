from datetime import timedelta

import pytest
from django.core.exceptions import ValidationError
from django.utils import timezone

from billing.models import TenantCreditLedgerEntry
from billing.services.ledger import (
    LedgerEntryQuery,
    LedgerValidationError,
    add_credits,
    get_balance,
    list_entries,
)

BILLING = TenantCreditLedgerEntry.Source.BILLING
PROMO = TenantCreditLedgerEntry.Source.PROMO


@pytest.mark.django_db
def test_add_credits_is_idempotent_per_tenant_and_key(tenant):
    first = add_credits(tenant_id=tenant.id, delta=500, reason="Top-up", source=BILLING, idempotency_key="pay_1")
    second = add_credits(tenant_id=tenant.id, delta=500, reason="Top-up", source=BILLING, idempotency_key="pay_1")

    assert first.created is True
    assert second.created is False
    assert second.entry.pk == first.entry.pk
    assert TenantCreditLedgerEntry.objects.filter(tenant=tenant).count() == 1
    assert get_balance(tenant.id) == 500


@pytest.mark.django_db
def test_replayed_key_ignores_new_delta(tenant):
    add_credits(tenant_id=tenant.id, delta=100, reason="Grant", source=PROMO, idempotency_key="promo-1")
    replay = add_credits(tenant_id=tenant.id, delta=999, reason="Grant", source=PROMO, idempotency_key="promo-1")

    assert replay.created is False
    assert replay.delta == 100
    assert get_balance(tenant.id) == 100


@pytest.mark.django_db
def test_same_key_is_independent_across_tenants(tenant, other_tenant):
    add_credits(tenant_id=tenant.id, delta=50, reason="Grant", source=PROMO, idempotency_key="shared")
    result = add_credits(tenant_id=other_tenant.id, delta=70, reason="Grant", source=PROMO, idempotency_key="shared")

    assert result.created is True
    assert get_balance(tenant.id) == 50
    assert get_balance(other_tenant.id) == 70


@pytest.mark.django_db
def test_balance_ignores_expired_entries(tenant):
    now = timezone.now()
    add_credits(tenant_id=tenant.id, delta=500, reason="Top-up", source=BILLING, idempotency_key="a")
    add_credits(
        tenant_id=tenant.id,
        delta=200,
        reason="Expired promo",
        source=PROMO,
        idempotency_key="b",
        expires_at=now - timedelta(days=1),
    )
    add_credits(tenant_id=tenant.id, delta=-100, reason="Invoice", source=BILLING, idempotency_key="c")

    assert get_balance(tenant.id) == 400


@pytest.mark.django_db
def test_balance_counts_entries_expiring_in_the_future(tenant):
    add_credits(
        tenant_id=tenant.id,
        delta=300,
        reason="Promo",
        source=PROMO,
        idempotency_key="future",
        expires_at=timezone.now() + timedelta(days=30),
    )

    assert get_balance(tenant.id) == 300


@pytest.mark.django_db
def test_balance_of_tenant_without_entries_is_zero(tenant):
    assert get_balance(tenant.id) == 0


@pytest.mark.django_db
@pytest.mark.parametrize(
    "kwargs,code",
    [
        ({"delta": 0, "source": BILLING, "idempotency_key": "k"}, "LEDGER_INVALID_DELTA"),
        ({"delta": 10, "source": "gift", "idempotency_key": "k"}, "LEDGER_INVALID_SOURCE"),
        ({"delta": 10, "source": BILLING, "idempotency_key": ""}, "LEDGER_MISSING_IDEMPOTENCY_KEY"),
    ],
)
def test_add_credits_rejects_invalid_entries(tenant, kwargs, code):
    with pytest.raises(LedgerValidationError) as exc:
        add_credits(tenant_id=tenant.id, reason="Bad", **kwargs)

    assert exc.value.code == code
    assert not TenantCreditLedgerEntry.objects.exists()


@pytest.mark.django_db
def test_ledger_entries_are_immutable(tenant):
    entry = add_credits(tenant_id=tenant.id, delta=10, reason="Grant", source=PROMO, idempotency_key="x").entry

    entry.delta = 20
    with pytest.raises(ValidationError):
        entry.save()
    with pytest.raises(ValidationError):
        entry.delete()

    entry.refresh_from_db()
    assert entry.delta == 10


@pytest.mark.django_db
def test_list_entries_applies_typed_query(tenant, other_tenant):
    add_credits(tenant_id=tenant.id, delta=10, reason="Promo", source=PROMO, idempotency_key="p1")
    add_credits(
        tenant_id=tenant.id,
        delta=20,
        reason="Old promo",
        source=PROMO,
        idempotency_key="p2",
        expires_at=timezone.now() - timedelta(hours=1),
    )
    add_credits(tenant_id=tenant.id, delta=30, reason="Top-up", source=BILLING, idempotency_key="b1")
    add_credits(tenant_id=other_tenant.id, delta=40, reason="Promo", source=PROMO, idempotency_key="p1")

    all_promo = list_entries(LedgerEntryQuery(tenant_id=tenant.id, source=PROMO))
    active_promo = list_entries(LedgerEntryQuery(tenant_id=tenant.id, source=PROMO, include_expired=False))

    assert sorted(entry.delta for entry in all_promo) == [10, 20]
    assert [entry.delta for entry in active_promo] == [10]


@pytest.mark.django_db
def test_cached_balance_is_invalidated_by_new_entries(tenant, settings, django_capture_on_commit_callbacks):
    settings.LEDGER_BALANCE_CACHE_SECONDS = 60
    add_credits(tenant_id=tenant.id, delta=100, reason="Top-up", source=BILLING, idempotency_key="c1")
    assert get_balance(tenant.id) == 100

    with django_capture_on_commit_callbacks(execute=True):
        add_credits(tenant_id=tenant.id, delta=25, reason="Top-up", source=BILLING, idempotency_key="c2")

    assert get_balance(tenant.id) == 125


@pytest.mark.django_db(transaction=True)
def test_concurrent_writes_with_one_key_credit_once(tenant, run_concurrently):
    results = run_concurrently(
        lambda _: add_credits(
            tenant_id=tenant.id,
            delta=250,
            reason="Top-up",
            source=BILLING,
            idempotency_key="pay_race",
        )
    )

    assert sorted(result.created for result in results) == [False, False, True]
    assert len({result.entry.pk for result in results}) == 1
    assert TenantCreditLedgerEntry.objects.filter(tenant=tenant).count() == 1
    assert get_balance(tenant.id) == 250
