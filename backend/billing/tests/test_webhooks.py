from datetime import timedelta

import pytest
from django.utils import timezone

from billing.models import (
    BillingAuditLog,
    BillingCustomer,
    BillingInvoice,
    BillingOneTimePayment,
    BillingPaymentEvent,
    ProviderProductMapping,
    TenantCreditLedgerEntry,
    TenantSubscription,
)
from billing.services.catalog import PlanMappingNotFound, SubscriptionNotFound
from billing.services.ledger import get_balance
from billing.services.webhooks import (
    HandlerResult,
    WebhookValidationError,
    reconcile_payment_event,
    retry_unprocessed_events,
)
from tenants.models import Tenant


def _payload(event_type, tenant, **data):
    data.setdefault("metadata", {})["tenant_uuid"] = str(tenant.id)
    return {"type": event_type, "data": data}


@pytest.fixture
def mapped_plan(plan):
    ProviderProductMapping.objects.create(provider="dodo", provider_product_id="pdt_plus", plan=plan)
    return plan


def _create_subscription(tenant, event_id="evt_sub_created", **extra):
    data = {
        "subscription_id": "sub_1",
        "product_id": "pdt_plus",
        "previous_billing_date": "2026-01-01T00:00:00Z",
        "next_billing_date": "2026-02-01T00:00:00Z",
    }
    data.update(extra)
    return reconcile_payment_event(
        provider_event_id=event_id,
        payload=_payload("subscription.created", tenant, **data),
    )


@pytest.mark.django_db
def test_replayed_payment_succeeded_credits_once(tenant):
    payload = _payload(
        "payment.succeeded",
        tenant,
        payment_id="pay_1",
        total_amount=500,
        currency="usd",
        customer={"customer_id": "cus_1", "email": "billing@acme.test"},
    )

    first = reconcile_payment_event(provider_event_id="evt_1", payload=payload)
    second = reconcile_payment_event(provider_event_id="evt_1", payload=payload)

    assert first.status == HandlerResult.PROCESSED
    assert second.status == HandlerResult.ALREADY_PROCESSED

    event = BillingPaymentEvent.objects.get(provider_event_id="evt_1")
    assert event.processed is True
    assert event.processed_at is not None
    assert event.attempts == 1

    assert BillingOneTimePayment.objects.filter(provider_payment_id="pay_1").count() == 1
    entries = TenantCreditLedgerEntry.objects.filter(tenant=tenant)
    assert entries.count() == 1
    assert entries.get().idempotency_key == "pay_1"
    assert get_balance(tenant.id) == 500
    assert BillingCustomer.objects.filter(tenant=tenant, provider_customer_id="cus_1").exists()


@pytest.mark.django_db
def test_payment_redelivered_under_new_event_id_credits_once(tenant):
    payload = _payload("payment.succeeded", tenant, payment_id="pay_2", total_amount=300)

    reconcile_payment_event(provider_event_id="evt_a", payload=payload)
    reconcile_payment_event(provider_event_id="evt_b", payload=payload)

    assert BillingPaymentEvent.objects.filter(processed=True).count() == 2
    assert get_balance(tenant.id) == 300


@pytest.mark.django_db
def test_addon_payment_uses_addon_reason(tenant):
    payload = _payload(
        "payment.succeeded",
        tenant,
        payment_id="pay_addon",
        total_amount=250,
        metadata={"reason": "addon"},
    )

    reconcile_payment_event(provider_event_id="evt_addon", payload=payload)

    entry = TenantCreditLedgerEntry.objects.get(tenant=tenant)
    assert entry.reason == "Add-on purchase"
    assert entry.reference_type == "payment"


@pytest.mark.django_db
def test_payment_failed_records_failure_without_credit(tenant):
    payload = _payload("payment.failed", tenant, payment_id="pay_f", total_amount=900, error_code="card_declined")

    result = reconcile_payment_event(provider_event_id="evt_fail", payload=payload)

    assert result.status == HandlerResult.PROCESSED
    payment = BillingOneTimePayment.objects.get(provider_payment_id="pay_f")
    assert payment.status == BillingOneTimePayment.Status.FAILED
    assert get_balance(tenant.id) == 0
    assert BillingAuditLog.objects.filter(tenant=tenant, event_type="payment.failed").count() == 1


@pytest.mark.django_db
def test_subscription_created_uses_product_mapping(tenant, mapped_plan):
    result = _create_subscription(tenant, quantity=3)

    assert result.status == HandlerResult.PROCESSED
    subscription = TenantSubscription.objects.get(provider_subscription_id="sub_1")
    assert subscription.plan == mapped_plan
    assert subscription.subscription_seat == 3
    assert subscription.current_period_end - subscription.current_period_start == timedelta(days=31)
    tenant.refresh_from_db()
    assert tenant.billing_state == Tenant.BillingState.ACTIVE


@pytest.mark.django_db
def test_subscription_created_for_unmapped_product_stays_unprocessed(tenant, plan):
    with pytest.raises(PlanMappingNotFound):
        _create_subscription(tenant, product_id="pdt_unknown")

    event = BillingPaymentEvent.objects.get(provider_event_id="evt_sub_created")
    assert event.processed is False
    assert event.attempts == 1
    assert "PlanMappingNotFound" in event.last_error
    assert not TenantSubscription.objects.exists()


@pytest.mark.django_db
def test_subscription_renewal_advances_period_and_ignores_stale(tenant, mapped_plan):
    _create_subscription(tenant)
    renewal = {
        "subscription_id": "sub_1",
        "previous_billing_date": "2026-02-01T00:00:00Z",
        "next_billing_date": "2026-03-01T00:00:00Z",
    }

    advanced = reconcile_payment_event(
        provider_event_id="evt_renew_1",
        payload=_payload("subscription.renewed", tenant, **renewal),
    )
    stale = reconcile_payment_event(
        provider_event_id="evt_renew_2",
        payload=_payload("subscription.renewed", tenant, **renewal),
    )

    subscription = TenantSubscription.objects.get(provider_subscription_id="sub_1")
    assert advanced.detail == "Subscription period advanced"
    assert stale.detail == "Stale renewal ignored"
    assert subscription.current_period_end.isoformat().startswith("2026-03-01")
    assert BillingAuditLog.objects.filter(event_type="subscription.renewed").count() == 1


@pytest.mark.django_db
def test_subscription_canceled_updates_tenant_state(tenant, mapped_plan):
    _create_subscription(tenant)

    reconcile_payment_event(
        provider_event_id="evt_cancel",
        payload=_payload("subscription.canceled", tenant, subscription_id="sub_1"),
    )

    subscription = TenantSubscription.objects.get(provider_subscription_id="sub_1")
    assert subscription.status == TenantSubscription.Status.CANCELED
    assert subscription.canceled_at is not None
    tenant.refresh_from_db()
    assert tenant.billing_state == Tenant.BillingState.CANCELED


@pytest.mark.django_db
def test_invoice_paid_settles_invoice_once(tenant):
    now = timezone.now()
    BillingInvoice.objects.create(
        tenant=tenant,
        provider_invoice_id="inv_1",
        period_start=now - timedelta(days=30),
        period_end=now,
        total_amount=1200,
    )
    payload = _payload("invoice.paid", tenant, invoice_id="inv_1")

    reconcile_payment_event(provider_event_id="evt_inv_1", payload=payload)
    reconcile_payment_event(provider_event_id="evt_inv_2", payload=payload)

    invoice = BillingInvoice.objects.get(provider_invoice_id="inv_1")
    assert invoice.status == BillingInvoice.Status.PAID
    assert invoice.paid_at is not None
    assert get_balance(tenant.id) == -1200
    assert TenantCreditLedgerEntry.objects.filter(reference_type="invoice").count() == 1


@pytest.mark.django_db
def test_invoice_paid_for_unknown_invoice_is_ignored(tenant):
    result = reconcile_payment_event(
        provider_event_id="evt_inv_unknown",
        payload=_payload("invoice.paid", tenant, invoice_id="inv_missing"),
    )

    assert result.status == HandlerResult.IGNORED
    assert BillingPaymentEvent.objects.get(provider_event_id="evt_inv_unknown").processed is True


@pytest.mark.django_db
def test_unknown_event_type_is_stored_and_ignored():
    result = reconcile_payment_event(
        provider_event_id="evt_unknown",
        payload={"type": "dispute.opened", "data": {"dispute_id": "dp_1"}},
    )

    assert result.status == HandlerResult.IGNORED
    event = BillingPaymentEvent.objects.get(provider_event_id="evt_unknown")
    assert event.processed is True
    assert event.tenant is None


@pytest.mark.django_db
@pytest.mark.parametrize(
    "metadata,code",
    [
        ({}, "WEBHOOK_MISSING_TENANT"),
        ({"tenant_uuid": "not-a-uuid"}, "WEBHOOK_INVALID_TENANT"),
        ({"tenant_uuid": "00000000-0000-4000-8000-000000000000"}, "WEBHOOK_UNKNOWN_TENANT"),
    ],
)
def test_recognised_events_require_a_known_tenant(metadata, code):
    payload = {"type": "payment.succeeded", "data": {"payment_id": "pay_x", "total_amount": 10, "metadata": metadata}}

    with pytest.raises(WebhookValidationError) as exc:
        reconcile_payment_event(provider_event_id="evt_bad_tenant", payload=payload)

    assert exc.value.code == code
    assert not BillingPaymentEvent.objects.exists()


@pytest.mark.django_db
def test_missing_event_id_is_rejected(tenant):
    with pytest.raises(WebhookValidationError) as exc:
        reconcile_payment_event(provider_event_id="", payload=_payload("payment.succeeded", tenant, payment_id="p"))

    assert exc.value.code == "WEBHOOK_MISSING_EVENT_ID"


@pytest.mark.django_db
def test_failed_dispatch_is_recovered_by_retry_sweep(tenant, mapped_plan):
    renewal = _payload(
        "subscription.renewed",
        tenant,
        subscription_id="sub_1",
        previous_billing_date="2026-02-01T00:00:00Z",
        next_billing_date="2026-03-01T00:00:00Z",
    )

    with pytest.raises(SubscriptionNotFound):
        reconcile_payment_event(provider_event_id="evt_early_renewal", payload=renewal)

    event = BillingPaymentEvent.objects.get(provider_event_id="evt_early_renewal")
    assert event.processed is False
    assert event.attempts == 1
    assert "SubscriptionNotFound" in event.last_error

    _create_subscription(tenant)
    stats = retry_unprocessed_events(older_than=timedelta(0))

    assert stats == {"examined": 1, "processed": 1, "rejected": 0, "failed": 0}
    event.refresh_from_db()
    assert event.processed is True
    assert event.attempts == 2
    assert event.last_error == ""
    subscription = TenantSubscription.objects.get(provider_subscription_id="sub_1")
    assert subscription.current_period_end.isoformat().startswith("2026-03-01")


@pytest.mark.django_db
@pytest.mark.parametrize(
    "event_type,data,code",
    [
        ("payment.succeeded", {"total_amount": 10}, "WEBHOOK_MISSING_FIELD"),
        ("payment.succeeded", {"payment_id": "pay_x", "total_amount": -5}, "WEBHOOK_INVALID_AMOUNT"),
        ("payment.failed", {"payment_id": "pay_x", "currency": "XYZ"}, "WEBHOOK_INVALID_CURRENCY"),
        ("subscription.created", {"subscription_id": "sub_x"}, "WEBHOOK_MISSING_FIELD"),
        ("subscription.renewed", {"subscription_id": "sub_x"}, "WEBHOOK_MISSING_FIELD"),
        (
            "subscription.renewed",
            {"subscription_id": "sub_x", "next_billing_date": "soon"},
            "WEBHOOK_INVALID_FIELD",
        ),
        ("subscription.canceled", {}, "WEBHOOK_MISSING_FIELD"),
        ("invoice.paid", {}, "WEBHOOK_MISSING_FIELD"),
    ],
)
def test_unusable_payloads_are_rejected_before_storage(tenant, event_type, data, code):
    with pytest.raises(WebhookValidationError) as exc:
        reconcile_payment_event(provider_event_id="evt_unusable", payload=_payload(event_type, tenant, **data))

    assert exc.value.code == code
    assert not BillingPaymentEvent.objects.exists()


@pytest.mark.django_db
def test_renewal_resent_under_new_event_id_advances_once(tenant, mapped_plan):
    _create_subscription(tenant)
    renewal = _payload("subscription.renewed", tenant, subscription_id="sub_1", next_billing_date="2026-03-01T00:00:00Z")

    first = reconcile_payment_event(provider_event_id="evt_renew_a", payload=renewal)
    second = reconcile_payment_event(provider_event_id="evt_renew_b", payload=renewal)

    subscription = TenantSubscription.objects.get(provider_subscription_id="sub_1")
    assert first.detail == "Subscription period advanced"
    assert second.detail == "Stale renewal ignored"
    assert subscription.current_period_start.isoformat().startswith("2026-02-01")
    assert subscription.current_period_end.isoformat().startswith("2026-03-01")


@pytest.mark.django_db
def test_tenant_mismatch_is_rejected_and_never_retried(tenant, other_tenant):
    reconcile_payment_event(
        provider_event_id="evt_owner",
        payload=_payload("payment.succeeded", tenant, payment_id="pay_1", total_amount=500),
    )
    intruder = _payload("payment.succeeded", other_tenant, payment_id="pay_1", total_amount=500)

    result = reconcile_payment_event(provider_event_id="evt_intruder", payload=intruder)

    assert result.status == HandlerResult.REJECTED
    event = BillingPaymentEvent.objects.get(provider_event_id="evt_intruder")
    assert event.rejected is True
    assert event.processed is False
    assert event.attempts == 1
    assert "different tenant" in event.last_error

    redelivered = reconcile_payment_event(provider_event_id="evt_intruder", payload=intruder)
    stats = retry_unprocessed_events(older_than=timedelta(0))

    assert redelivered.status == HandlerResult.REJECTED
    assert stats == {"examined": 0, "processed": 0, "rejected": 0, "failed": 0}
    event.refresh_from_db()
    assert event.attempts == 1
    assert get_balance(other_tenant.id) == 0
