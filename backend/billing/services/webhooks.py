"""Payment provider webhook reconciliation.

Every delivery is stored in :class:`BillingPaymentEvent` keyed by the provider
event id before anything else happens. Dispatch side effects and the
``processed`` flag commit in one transaction, so a crash mid-dispatch leaves
the stored event unprocessed and safe to re-run. Each handler checks for the
state it is about to create, which makes a second dispatch of the same event
harmless.
"""
from __future__ import annotations

import hashlib
import json
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Dict, Optional, Tuple

from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from billing.exceptions import BillingValidationError
from billing.models import (
    BillingAuditLog,
    BillingCustomer,
    BillingInterval,
    BillingInvoice,
    BillingOneTimePayment,
    BillingPaymentEvent,
    BillingPlan,
    Currency,
    PaymentProvider,
    TenantCreditLedgerEntry,
    TenantSubscription,
)
from billing.observability.logging import log_billing_event
from billing.observability.metrics import WEBHOOK_EVENT_COUNT, WEBHOOK_PROCESSING_LATENCY
from billing.services.catalog import SubscriptionNotFound, resolve_plan_for_product
from billing.services.ledger import add_credits
from billing.services.periods import add_months
from tenants.models import Tenant

logger = logging.getLogger(__name__)

WEBHOOK_ACTOR = "payment_webhook"


class WebhookValidationError(BillingValidationError):
    """Webhook payload is malformed or cannot be attributed to a tenant."""

    default_code = "WEBHOOK_INVALID_PAYLOAD"


@dataclass(frozen=True)
class HandlerResult:
    """Outcome of a webhook handler invocation."""

    status: str
    detail: str = ""

    PROCESSED = "processed"
    IGNORED = "ignored"
    ALREADY_PROCESSED = "already_processed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ReconcileResult:
    event: BillingPaymentEvent
    status: str
    detail: str = ""


def reconcile_payment_event(
    *,
    provider_event_id: str,
    payload: Dict[str, Any],
    provider: str = PaymentProvider.DODO,
) -> ReconcileResult:
    """Store a provider event once and apply its side effects once."""

    if not provider_event_id:
        raise WebhookValidationError("Provider event id is required.", code="WEBHOOK_MISSING_EVENT_ID")

    event_type, data = _validate_payload(payload)
    tenant = _resolve_tenant(event_type, data)

    event, created = _store_event(
        provider_event_id=provider_event_id,
        event_type=event_type,
        payload=payload,
        tenant=tenant,
        provider=provider,
    )
    if event.processed:
        WEBHOOK_EVENT_COUNT.labels(event_type=event_type, outcome=HandlerResult.ALREADY_PROCESSED).inc()
        logger.info("Payment event %s (%s) already processed; skipping.", provider_event_id, event_type)
        return ReconcileResult(event=event, status=HandlerResult.ALREADY_PROCESSED, detail="Event already processed")
    if event.rejected:
        logger.info("Payment event %s (%s) was rejected earlier; skipping.", provider_event_id, event_type)
        return ReconcileResult(event=event, status=HandlerResult.REJECTED, detail=event.last_error)

    if not created:
        logger.info("Resuming unprocessed payment event %s (%s).", provider_event_id, event_type)

    return process_stored_event(event)


def process_stored_event(event: BillingPaymentEvent) -> ReconcileResult:
    """Dispatch a stored event and mark it processed in the same transaction."""

    started = time.monotonic()
    try:
        with transaction.atomic():
            locked = BillingPaymentEvent.objects.select_for_update().get(pk=event.pk)
            if locked.processed:
                return ReconcileResult(
                    event=locked,
                    status=HandlerResult.ALREADY_PROCESSED,
                    detail="Event already processed",
                )

            result = dispatch_event(event=locked)

            locked.processed = True
            locked.processed_at = timezone.now()
            locked.attempts = (locked.attempts or 0) + 1
            locked.last_error = ""
            locked.save(update_fields=["processed", "processed_at", "attempts", "last_error", "updated_at"])
    except BillingValidationError as exc:
        rejected = _record_failure(event.pk, exc, reject=True) or event
        WEBHOOK_EVENT_COUNT.labels(event_type=event.event_type, outcome=HandlerResult.REJECTED).inc()
        logger.warning(
            "Payment event %s (%s) rejected and will not be retried: %s",
            event.provider_event_id,
            event.event_type,
            exc.message,
        )
        return ReconcileResult(event=rejected, status=HandlerResult.REJECTED, detail=exc.message)
    except Exception as exc:
        _record_failure(event.pk, exc)
        WEBHOOK_EVENT_COUNT.labels(event_type=event.event_type, outcome="failed").inc()
        logger.warning(
            "Payment event %s (%s) failed and stays unprocessed: %s",
            event.provider_event_id,
            event.event_type,
            exc,
        )
        raise
    finally:
        WEBHOOK_PROCESSING_LATENCY.labels(event_type=event.event_type).observe(time.monotonic() - started)

    WEBHOOK_EVENT_COUNT.labels(event_type=locked.event_type, outcome=result.status).inc()
    logger.info(
        "Processed payment event %s (%s): %s",
        locked.provider_event_id,
        locked.event_type,
        result.detail or result.status,
    )
    return ReconcileResult(event=locked, status=result.status, detail=result.detail)


def dispatch_event(*, event: BillingPaymentEvent) -> HandlerResult:
    """Route a stored payment event to its dedicated handler."""

    handler = EVENT_HANDLERS.get(event.event_type)
    if handler is None:
        logger.info("Ignoring unsupported payment event type '%s'.", event.event_type)
        return HandlerResult(status=HandlerResult.IGNORED, detail="Unsupported event type")

    data = (event.payload or {}).get("data") or {}
    if event.tenant_id is None:
        raise WebhookValidationError("Stored event has no tenant.", code="WEBHOOK_MISSING_TENANT")
    return handler(event=event, tenant=event.tenant, data=data)


def retry_unprocessed_events(*, older_than: timedelta, limit: int = 100) -> Dict[str, int]:
    """Re-run dispatch for stored events that never reached ``processed``."""

    cutoff = timezone.now() - older_than
    stats = {"examined": 0, "processed": 0, "rejected": 0, "failed": 0}

    pending = (
        BillingPaymentEvent.objects.filter(processed=False, rejected=False, created_at__lte=cutoff)
        .order_by("created_at")[:limit]
    )
    for event in pending:
        stats["examined"] += 1
        try:
            result = process_stored_event(event)
        except Exception:
            stats["failed"] += 1
            continue
        if result.status == HandlerResult.REJECTED:
            stats["rejected"] += 1
        else:
            stats["processed"] += 1

    if stats["examined"]:
        logger.info("Unprocessed payment event sweep: %s", stats)
    return stats


def _handle_payment_succeeded(*, event: BillingPaymentEvent, tenant: Tenant, data: Dict[str, Any]) -> HandlerResult:
    payment_id = _require_payment_id(event.payload, data)
    amount = _coerce_amount(data.get("total_amount", data.get("amount")))
    metadata = data.get("metadata") or {}
    reason = _coerce_reason(metadata.get("reason"))

    payment, created = BillingOneTimePayment.objects.get_or_create(
        provider_payment_id=payment_id,
        defaults={
            "tenant": tenant,
            "provider": event.provider,
            "amount": amount,
            "currency": _coerce_currency(data.get("currency")),
            "status": BillingOneTimePayment.Status.SUCCEEDED,
            "reason": reason,
        },
    )
    _ensure_same_tenant(payment.tenant_id, tenant, payment_id)
    if not created and payment.status != BillingOneTimePayment.Status.SUCCEEDED:
        payment.status = BillingOneTimePayment.Status.SUCCEEDED
        payment.save(update_fields=["status", "updated_at"])

    _upsert_customer(event=event, tenant=tenant, data=data)

    if payment.amount <= 0:
        return HandlerResult(status=HandlerResult.PROCESSED, detail="Zero amount payment recorded without credit")

    message = "Add-on purchase" if payment.reason == BillingOneTimePayment.Reason.ADDON else "Credit top-up"
    ledger_result = add_credits(
        tenant_id=tenant.id,
        delta=payment.amount,
        reason=message,
        source=TenantCreditLedgerEntry.Source.BILLING,
        idempotency_key=payment_id,
        reference_type="payment",
        reference_id=payment_id,
    )

    if created or ledger_result.created:
        BillingAuditLog.objects.create(
            tenant=tenant,
            event_type="payment.succeeded",
            reference=payment_id,
            actor=WEBHOOK_ACTOR,
            details={"amount": payment.amount, "currency": payment.currency, "reason": payment.reason},
        )
        log_billing_event(
            message="Payment credited",
            tenant_id=tenant.id,
            actor=WEBHOOK_ACTOR,
            reference=payment_id,
            extra={"delta": ledger_result.delta},
        )

    return HandlerResult(status=HandlerResult.PROCESSED, detail=f"Payment credited (delta={ledger_result.delta})")


def _handle_payment_failed(*, event: BillingPaymentEvent, tenant: Tenant, data: Dict[str, Any]) -> HandlerResult:
    payment_id = _require_payment_id(event.payload, data)
    metadata = data.get("metadata") or {}

    payment, created = BillingOneTimePayment.objects.get_or_create(
        provider_payment_id=payment_id,
        defaults={
            "tenant": tenant,
            "provider": event.provider,
            "amount": _coerce_amount(data.get("total_amount", data.get("amount"))),
            "currency": _coerce_currency(data.get("currency")),
            "status": BillingOneTimePayment.Status.FAILED,
            "reason": _coerce_reason(metadata.get("reason")),
        },
    )
    _ensure_same_tenant(payment.tenant_id, tenant, payment_id)
    if not created and payment.status == BillingOneTimePayment.Status.PENDING:
        payment.status = BillingOneTimePayment.Status.FAILED
        payment.save(update_fields=["status", "updated_at"])

    if created:
        BillingAuditLog.objects.create(
            tenant=tenant,
            event_type="payment.failed",
            reference=payment_id,
            actor=WEBHOOK_ACTOR,
            details={"failure": data.get("error_message") or data.get("error_code") or ""},
        )
    return HandlerResult(status=HandlerResult.PROCESSED, detail="Payment failure recorded")


def _handle_subscription_created(*, event: BillingPaymentEvent, tenant: Tenant, data: Dict[str, Any]) -> HandlerResult:
    subscription_id = _require(data, "subscription_id")

    existing = TenantSubscription.objects.filter(provider_subscription_id=subscription_id).first()
    if existing is not None:
        _ensure_same_tenant(existing.tenant_id, tenant, subscription_id)
        return HandlerResult(status=HandlerResult.PROCESSED, detail="Subscription already recorded")

    product_id = _require(data, "product_id")
    plan = resolve_plan_for_product(product_id=product_id, provider=event.provider)
    period_start, period_end = _subscription_period(data, plan=plan, fallback_start=event.created_at)

    subscription, created = TenantSubscription.objects.get_or_create(
        provider_subscription_id=subscription_id,
        defaults={
            "tenant": tenant,
            "plan": plan,
            "provider": event.provider,
            "status": TenantSubscription.Status.ACTIVE,
            "current_period_start": period_start,
            "current_period_end": period_end,
            "subscription_seat": max(_coerce_int(data.get("quantity"), default=1), 1),
        },
    )
    _set_tenant_billing_state(tenant, Tenant.BillingState.ACTIVE)

    if created:
        BillingAuditLog.objects.create(
            tenant=tenant,
            event_type="subscription.created",
            reference=subscription_id,
            actor=WEBHOOK_ACTOR,
            details={
                "plan": plan.key,
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
            },
        )
    return HandlerResult(status=HandlerResult.PROCESSED, detail=f"Subscription active on plan {plan.key}")


def _handle_subscription_renewed(*, event: BillingPaymentEvent, tenant: Tenant, data: Dict[str, Any]) -> HandlerResult:
    subscription_id = _require(data, "subscription_id")
    subscription = _locate_subscription(subscription_id, tenant)

    # Renewals only ever move the period to the provider's next billing date.
    period_end = _coerce_datetime(data.get("next_billing_date"))
    period_start = _coerce_datetime(data.get("previous_billing_date")) or subscription.current_period_end

    if period_end <= subscription.current_period_end:
        return HandlerResult(status=HandlerResult.PROCESSED, detail="Stale renewal ignored")
    if period_start >= period_end:
        raise WebhookValidationError("Renewal period ends before it starts.", code="WEBHOOK_INVALID_FIELD")
    if (
        subscription.status == TenantSubscription.Status.CANCELED
        and subscription.canceled_at
        and period_start <= subscription.canceled_at
    ):
        return HandlerResult(status=HandlerResult.PROCESSED, detail="Renewal predates cancellation; ignored")

    subscription.current_period_start = period_start
    subscription.current_period_end = period_end
    subscription.status = TenantSubscription.Status.ACTIVE
    subscription.canceled_at = None
    subscription.save(
        update_fields=["current_period_start", "current_period_end", "status", "canceled_at", "updated_at"]
    )
    _set_tenant_billing_state(tenant, Tenant.BillingState.ACTIVE)

    BillingAuditLog.objects.create(
        tenant=tenant,
        event_type="subscription.renewed",
        reference=subscription_id,
        actor=WEBHOOK_ACTOR,
        details={"period_start": period_start.isoformat(), "period_end": period_end.isoformat()},
    )
    return HandlerResult(status=HandlerResult.PROCESSED, detail="Subscription period advanced")


def _handle_subscription_canceled(*, event: BillingPaymentEvent, tenant: Tenant, data: Dict[str, Any]) -> HandlerResult:
    subscription_id = _require(data, "subscription_id")
    subscription = _locate_subscription(subscription_id, tenant)

    if subscription.status == TenantSubscription.Status.CANCELED:
        return HandlerResult(status=HandlerResult.PROCESSED, detail="Subscription already canceled")

    subscription.status = TenantSubscription.Status.CANCELED
    subscription.canceled_at = (
        _coerce_datetime(data.get("cancelled_at") or data.get("canceled_at")) or timezone.now()
    )
    subscription.save(update_fields=["status", "canceled_at", "updated_at"])

    still_live = TenantSubscription.objects.filter(
        tenant=tenant,
        status__in=TenantSubscription.LIVE_STATUSES,
    ).exists()
    if not still_live:
        _set_tenant_billing_state(tenant, Tenant.BillingState.CANCELED)

    BillingAuditLog.objects.create(
        tenant=tenant,
        event_type="subscription.canceled",
        reference=subscription_id,
        actor=WEBHOOK_ACTOR,
        details={"canceled_at": subscription.canceled_at.isoformat()},
    )
    return HandlerResult(status=HandlerResult.PROCESSED, detail="Subscription canceled")


def _handle_invoice_paid(*, event: BillingPaymentEvent, tenant: Tenant, data: Dict[str, Any]) -> HandlerResult:
    invoice_id = _require(data, "invoice_id")

    invoice = BillingInvoice.objects.select_for_update().filter(provider_invoice_id=invoice_id).first()
    if invoice is None:
        return HandlerResult(status=HandlerResult.IGNORED, detail="Invoice not recorded yet")
    _ensure_same_tenant(invoice.tenant_id, tenant, invoice_id)

    if invoice.status != BillingInvoice.Status.PAID:
        invoice.status = BillingInvoice.Status.PAID
        invoice.paid_at = _coerce_datetime(data.get("paid_at")) or timezone.now()
        invoice.save(update_fields=["status", "paid_at", "updated_at"])

    if invoice.total_amount <= 0:
        return HandlerResult(status=HandlerResult.PROCESSED, detail="Invoice marked paid; nothing to settle")

    ledger_result = add_credits(
        tenant_id=tenant.id,
        delta=-invoice.total_amount,
        reason="Invoice settlement",
        source=TenantCreditLedgerEntry.Source.BILLING,
        idempotency_key=f"invoice-{invoice_id}",
        reference_type="invoice",
        reference_id=invoice_id,
    )
    if ledger_result.created:
        BillingAuditLog.objects.create(
            tenant=tenant,
            event_type="invoice.paid",
            reference=invoice_id,
            actor=WEBHOOK_ACTOR,
            details={"total_amount": invoice.total_amount, "currency": invoice.currency},
        )
    return HandlerResult(status=HandlerResult.PROCESSED, detail=f"Invoice settled (delta={ledger_result.delta})")


REQUIRED_FIELDS = {
    "payment.succeeded": ("payment_id",),
    "payment.failed": ("payment_id",),
    "subscription.created": ("subscription_id", "product_id"),
    "subscription.renewed": ("subscription_id", "next_billing_date"),
    "subscription.canceled": ("subscription_id",),
    "invoice.paid": ("invoice_id",),
}

EVENT_HANDLERS = {
    "payment.succeeded": _handle_payment_succeeded,
    "payment.failed": _handle_payment_failed,
    "subscription.created": _handle_subscription_created,
    "subscription.renewed": _handle_subscription_renewed,
    "subscription.canceled": _handle_subscription_canceled,
    "invoice.paid": _handle_invoice_paid,
}


def _validate_payload(payload: Any) -> Tuple[str, Dict[str, Any]]:
    if not isinstance(payload, dict):
        raise WebhookValidationError("Webhook payload must be a JSON object.")
    event_type = payload.get("type")
    if not isinstance(event_type, str) or not event_type:
        raise WebhookValidationError("Webhook payload is missing 'type'.", code="WEBHOOK_MISSING_TYPE")
    data = payload.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise WebhookValidationError("Webhook 'data' must be an object.")
    _validate_event_fields(event_type, payload, data)
    return event_type, data


def _validate_event_fields(event_type: str, payload: Dict[str, Any], data: Dict[str, Any]) -> None:
    """Reject payloads a handler could never apply, before the event is stored."""

    for field in REQUIRED_FIELDS.get(event_type, ()):
        if field == "payment_id":
            _require_payment_id(payload, data)
        else:
            _require(data, field)

    if event_type in ("payment.succeeded", "payment.failed"):
        _coerce_amount(data.get("total_amount", data.get("amount")))
        _coerce_currency(data.get("currency"))
    if event_type == "subscription.renewed" and _coerce_datetime(data.get("next_billing_date")) is None:
        raise WebhookValidationError(
            "Webhook 'next_billing_date' is not a valid timestamp.",
            code="WEBHOOK_INVALID_FIELD",
        )


def _resolve_tenant(event_type: str, data: Dict[str, Any]) -> Optional[Tenant]:
    metadata = data.get("metadata") or {}
    raw_tenant = metadata.get("tenant_uuid") if isinstance(metadata, dict) else None
    required = event_type in EVENT_HANDLERS

    if not raw_tenant:
        if required:
            raise WebhookValidationError(
                "Webhook metadata.tenant_uuid is missing; check the product checkout metadata.",
                code="WEBHOOK_MISSING_TENANT",
            )
        return None

    try:
        tenant_id = uuid.UUID(str(raw_tenant))
    except ValueError:
        if required:
            raise WebhookValidationError("metadata.tenant_uuid is not a valid UUID.", code="WEBHOOK_INVALID_TENANT")
        return None

    tenant = Tenant.objects.filter(id=tenant_id).first()
    if tenant is None and required:
        raise WebhookValidationError(f"Unknown tenant {tenant_id}.", code="WEBHOOK_UNKNOWN_TENANT")
    return tenant


def _store_event(
    *,
    provider_event_id: str,
    event_type: str,
    payload: Dict[str, Any],
    tenant: Optional[Tenant],
    provider: str,
) -> Tuple[BillingPaymentEvent, bool]:
    try:
        with transaction.atomic():
            event = BillingPaymentEvent.objects.create(
                provider_event_id=provider_event_id,
                provider=provider,
                event_type=event_type,
                tenant=tenant,
                payload=payload,
                payload_hash=_hash_event_payload(payload),
            )
        return event, True
    except IntegrityError:
        existing = BillingPaymentEvent.objects.filter(provider_event_id=provider_event_id).first()
        if existing is None:
            raise
        if existing.payload_hash and existing.payload_hash != _hash_event_payload(payload):
            logger.warning(
                "Payment event %s redelivered with a different payload; using the stored copy.",
                provider_event_id,
            )
        return existing, False


def _record_failure(event_pk: int, exc: Exception, *, reject: bool = False) -> Optional[BillingPaymentEvent]:
    event = BillingPaymentEvent.objects.filter(pk=event_pk).first()
    if event is None:
        return None
    event.attempts = (event.attempts or 0) + 1
    event.last_error = f"{exc.__class__.__name__}: {exc}"[:2000]
    event.rejected = reject
    event.save(update_fields=["attempts", "last_error", "rejected", "updated_at"])
    return event


def _locate_subscription(subscription_id: str, tenant: Tenant) -> TenantSubscription:
    subscription = (
        TenantSubscription.objects.select_for_update()
        .select_related("plan")
        .filter(provider_subscription_id=subscription_id)
        .first()
    )
    if subscription is None:
        raise SubscriptionNotFound(f"Subscription {subscription_id} has not been created.")
    _ensure_same_tenant(subscription.tenant_id, tenant, subscription_id)
    return subscription


def _subscription_period(
    data: Dict[str, Any],
    *,
    plan: BillingPlan,
    fallback_start: datetime,
) -> Tuple[datetime, datetime]:
    period_start = (
        _coerce_datetime(data.get("previous_billing_date"))
        or _coerce_datetime(data.get("created_at"))
        or fallback_start
    )
    period_end = _coerce_datetime(data.get("next_billing_date"))
    if period_end is None or period_end <= period_start:
        months = 12 if plan.billing_interval == BillingInterval.YEARLY else 1
        period_end = add_months(period_start, months)
    return period_start, period_end


def _upsert_customer(*, event: BillingPaymentEvent, tenant: Tenant, data: Dict[str, Any]) -> None:
    customer = data.get("customer") or {}
    customer_id = customer.get("customer_id") if isinstance(customer, dict) else None
    if not customer_id:
        return
    BillingCustomer.objects.get_or_create(
        provider=event.provider,
        provider_customer_id=customer_id,
        defaults={"tenant": tenant, "email": customer.get("email") or ""},
    )


def _set_tenant_billing_state(tenant: Tenant, state: str) -> None:
    if tenant.billing_state != state:
        tenant.billing_state = state
        tenant.save(update_fields=["billing_state", "updated_at"])


def _ensure_same_tenant(owner_tenant_id, tenant: Tenant, reference: str) -> None:
    if owner_tenant_id != tenant.id:
        raise WebhookValidationError(
            f"{reference} belongs to a different tenant.",
            code="WEBHOOK_TENANT_MISMATCH",
        )


def _require_payment_id(payload: Dict[str, Any], data: Dict[str, Any]) -> str:
    payment_id = data.get("payment_id") or (payload or {}).get("payment_id")
    if not payment_id:
        raise WebhookValidationError("Webhook data is missing 'payment_id'.", code="WEBHOOK_MISSING_FIELD")
    return str(payment_id)


def _require(data: Dict[str, Any], field: str) -> str:
    value = data.get(field)
    if value in (None, ""):
        raise WebhookValidationError(f"Webhook data is missing '{field}'.", code="WEBHOOK_MISSING_FIELD")
    return str(value)


def _coerce_amount(value: Any) -> int:
    if value in (None, ""):
        return 0
    amount = _coerce_int(value, default=None)
    if amount is None or amount < 0:
        raise WebhookValidationError(f"Invalid amount '{value}'.", code="WEBHOOK_INVALID_AMOUNT")
    return amount


def _coerce_int(value: Any, *, default: Optional[int]) -> Optional[int]:
    if value in (None, "") or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _coerce_currency(value: Any) -> str:
    currency = str(value or Currency.USD).upper()
    if currency not in Currency.values:
        raise WebhookValidationError(f"Unsupported currency '{value}'.", code="WEBHOOK_INVALID_CURRENCY")
    return currency


def _coerce_reason(value: Any) -> str:
    if value == BillingOneTimePayment.Reason.ADDON:
        return BillingOneTimePayment.Reason.ADDON
    if value == BillingOneTimePayment.Reason.LIMITED_ACCESS:
        return BillingOneTimePayment.Reason.LIMITED_ACCESS
    return BillingOneTimePayment.Reason.TOPUP


def _coerce_datetime(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(float(value), tz=dt_timezone.utc)
    try:
        parsed = parse_datetime(str(value))
    except ValueError:
        return None
    if parsed is None:
        return None
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


def _hash_event_payload(event_data: Dict[str, Any]) -> str:
    try:
        serialized = json.dumps(event_data, sort_keys=True, separators=(",", ":"))
    except TypeError:
        serialized = json.dumps(event_data, sort_keys=True, default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


__all__ = [
    "HandlerResult",
    "ReconcileResult",
    "WebhookValidationError",
    "dispatch_event",
    "process_stored_event",
    "reconcile_payment_event",
    "retry_unprocessed_events",
]
