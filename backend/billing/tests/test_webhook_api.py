import json
import time

import pytest

from billing.models import BillingPaymentEvent, TenantSubscription
from billing.services.ledger import get_balance
from billing.services.signatures import sign_webhook_payload

WEBHOOK_URL = "/api/billing/webhooks/payments/"


def _post(client, secret, payload, *, message_id="msg_1", signature=None, raw_body=None):
    body = raw_body if raw_body is not None else json.dumps(payload).encode("utf-8")
    timestamp = int(time.time())
    if signature is None:
        signature = sign_webhook_payload(secret=secret, message_id=message_id, timestamp=timestamp, body=body)
    return client.post(
        WEBHOOK_URL,
        data=body,
        content_type="application/json",
        HTTP_WEBHOOK_ID=message_id,
        HTTP_WEBHOOK_TIMESTAMP=str(timestamp),
        HTTP_WEBHOOK_SIGNATURE=signature,
    )


def _payment(tenant, payment_id="pay_1", amount=500):
    return {
        "type": "payment.succeeded",
        "data": {
            "payment_id": payment_id,
            "total_amount": amount,
            "currency": "USD",
            "metadata": {"tenant_uuid": str(tenant.id)},
        },
    }


@pytest.mark.django_db
def test_signed_payment_is_acknowledged_and_credited(api_client, webhook_secret, tenant):
    response = _post(api_client, webhook_secret, _payment(tenant))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert BillingPaymentEvent.objects.get(provider_event_id="msg_1").processed is True
    assert get_balance(tenant.id) == 500


@pytest.mark.django_db
def test_redelivery_is_acknowledged_without_double_credit(api_client, webhook_secret, tenant):
    payload = _payment(tenant)

    first = _post(api_client, webhook_secret, payload)
    second = _post(api_client, webhook_secret, payload)

    assert first.json() == second.json() == {"received": True}
    assert BillingPaymentEvent.objects.count() == 1
    assert get_balance(tenant.id) == 500


@pytest.mark.django_db
def test_bad_signature_is_rejected(api_client, webhook_secret, tenant):
    response = _post(api_client, webhook_secret, _payment(tenant), signature="v1,Zm9yZ2Vk")

    assert response.status_code == 400
    assert response.json()["code"] == "WEBHOOK_INVALID_SIGNATURE"
    assert not BillingPaymentEvent.objects.exists()


@pytest.mark.django_db
def test_missing_secret_returns_server_error(api_client, settings, tenant):
    settings.BILLING_WEBHOOK_SECRET = ""

    response = _post(api_client, "whsec_dGVzdA==", _payment(tenant))

    assert response.status_code == 500
    assert response.json()["code"] == "WEBHOOK_NOT_CONFIGURED"


@pytest.mark.django_db
def test_malformed_json_is_rejected(api_client, webhook_secret):
    response = _post(api_client, webhook_secret, None, raw_body=b"{not json")

    assert response.status_code == 400
    assert response.json()["code"] == "WEBHOOK_INVALID_PAYLOAD"


@pytest.mark.django_db
def test_payload_without_tenant_is_rejected(api_client, webhook_secret):
    payload = {"type": "payment.succeeded", "data": {"payment_id": "pay_1", "total_amount": 5}}

    response = _post(api_client, webhook_secret, payload)

    assert response.status_code == 400
    assert response.json()["code"] == "WEBHOOK_MISSING_TENANT"


@pytest.mark.django_db
def test_dispatch_failure_still_acknowledges_receipt(api_client, webhook_secret, tenant):
    payload = {
        "type": "subscription.renewed",
        "data": {
            "subscription_id": "sub_missing",
            "next_billing_date": "2026-03-01T00:00:00Z",
            "metadata": {"tenant_uuid": str(tenant.id)},
        },
    }

    response = _post(api_client, webhook_secret, payload, message_id="msg_renew")

    assert response.status_code == 200
    assert response.json() == {"received": True}
    event = BillingPaymentEvent.objects.get(provider_event_id="msg_renew")
    assert event.processed is False
    assert event.attempts == 1
    assert not TenantSubscription.objects.exists()


@pytest.mark.django_db
def test_webhook_accepts_only_post(api_client, webhook_secret):
    assert api_client.get(WEBHOOK_URL).status_code == 405


@pytest.mark.django_db
def test_payment_without_payment_id_is_rejected_before_storage(api_client, webhook_secret, tenant):
    payload = _payment(tenant)
    del payload["data"]["payment_id"]

    response = _post(api_client, webhook_secret, payload)

    assert response.status_code == 400
    assert response.json()["code"] == "WEBHOOK_MISSING_FIELD"
    assert not BillingPaymentEvent.objects.exists()


@pytest.mark.django_db
def test_cross_tenant_payment_is_acknowledged_and_flagged(api_client, webhook_secret, tenant, other_tenant):
    _post(api_client, webhook_secret, _payment(tenant), message_id="msg_owner")

    response = _post(api_client, webhook_secret, _payment(other_tenant), message_id="msg_intruder")

    assert response.status_code == 200
    assert response.json() == {"received": True}
    event = BillingPaymentEvent.objects.get(provider_event_id="msg_intruder")
    assert event.processed is False
    assert event.rejected is True
    assert event.attempts == 1
    assert "belongs to a different tenant" in event.last_error
    assert get_balance(other_tenant.id) == 0
    assert get_balance(tenant.id) == 500
