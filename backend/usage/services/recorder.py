"""Idempotent usage recording and per-period aggregation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import F, Sum
from django.utils import timezone

from billing.observability.metrics import USAGE_EVENT_COUNT
from billing.services.catalog import SubscriptionNotFound, get_active_subscription
from billing.services.periods import month_start, period_bounds
from usage.exceptions import UsageValidationError
from usage.models import UsageAggregate, UsageEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregateKey:
    """Identifies one aggregate row. ``period`` is normalised to the first of the month."""

    tenant_id: object
    feature_key: str
    period: date

    @classmethod
    def for_period(cls, *, tenant_id, feature_key: str, period) -> "AggregateKey":
        return cls(tenant_id=tenant_id, feature_key=feature_key, period=month_start(period))

    def filter_kwargs(self) -> dict:
        return {"tenant_id": self.tenant_id, "feature_key": self.feature_key, "period": self.period}


@dataclass(frozen=True)
class UsageRecordResult:
    event: UsageEvent
    created: bool


def record_usage(*, tenant_id, feature_key: str, units: int, idempotency_key: str) -> UsageRecordResult:
    """Store a usage event once and add its units to the current period aggregate.

    A repeated ``(tenant_id, feature_key, idempotency_key)`` returns the stored
    event and leaves the aggregate untouched.
    """

    _validate_usage(feature_key=feature_key, units=units, idempotency_key=idempotency_key)

    with transaction.atomic():
        try:
            with transaction.atomic():
                event = UsageEvent.objects.create(
                    tenant_id=tenant_id,
                    feature_key=feature_key,
                    units=units,
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            existing = UsageEvent.objects.filter(
                tenant_id=tenant_id,
                feature_key=feature_key,
                idempotency_key=idempotency_key,
            ).first()
            if existing is None:
                raise
            USAGE_EVENT_COUNT.labels(outcome="replayed").inc()
            logger.info(
                "Usage key %s already recorded for tenant %s/%s; returning event %s.",
                idempotency_key,
                tenant_id,
                feature_key,
                existing.pk,
            )
            return UsageRecordResult(event=existing, created=False)
        except DjangoValidationError as exc:
            raise UsageValidationError("; ".join(exc.messages)) from exc

        key = AggregateKey.for_period(tenant_id=tenant_id, feature_key=feature_key, period=event.created_at)
        _increment_aggregate(key, units, plan_id=_live_plan_id(tenant_id))

    USAGE_EVENT_COUNT.labels(outcome="created").inc()
    logger.info(
        "Usage event %s recorded for tenant %s: feature=%s units=%s period=%s",
        event.pk,
        tenant_id,
        feature_key,
        units,
        key.period,
    )
    return UsageRecordResult(event=event, created=True)


def get_aggregate(*, tenant_id, feature_key: str, period) -> Optional[UsageAggregate]:
    key = AggregateKey.for_period(tenant_id=tenant_id, feature_key=feature_key, period=period)
    return UsageAggregate.objects.filter(**key.filter_kwargs()).first()


def current_usage(*, tenant_id, feature_key: str) -> int:
    aggregate = get_aggregate(tenant_id=tenant_id, feature_key=feature_key, period=timezone.now())
    return aggregate.units_used if aggregate is not None else 0


def reconcile_aggregate(*, tenant_id, feature_key: str, period) -> UsageAggregate:
    """Recompute ``units_used`` from stored events for one period."""

    key = AggregateKey.for_period(tenant_id=tenant_id, feature_key=feature_key, period=period)
    start, end = period_bounds(key.period)

    with transaction.atomic():
        total = (
            UsageEvent.objects.filter(
                tenant_id=tenant_id,
                feature_key=feature_key,
                created_at__gte=start,
                created_at__lt=end,
            ).aggregate(total=Sum("units"))["total"]
            or 0
        )
        aggregate, created = UsageAggregate.objects.select_for_update().get_or_create(
            **key.filter_kwargs(),
            defaults={"units_used": total},
        )
        if not created and aggregate.units_used != total:
            logger.warning(
                "Usage aggregate drift for tenant %s/%s@%s: stored=%s events=%s",
                tenant_id,
                feature_key,
                key.period,
                aggregate.units_used,
                total,
            )
            aggregate.units_used = total
            aggregate.save(update_fields=["units_used", "updated_at"])
    return aggregate


def _increment_aggregate(key: AggregateKey, units: int, *, plan_id=None) -> None:
    changes = {"units_used": F("units_used") + units, "updated_at": timezone.now()}
    if plan_id is not None:
        changes["plan_id"] = plan_id

    updated = UsageAggregate.objects.filter(**key.filter_kwargs()).update(**changes)
    if updated:
        return

    try:
        with transaction.atomic():
            UsageAggregate.objects.create(**key.filter_kwargs(), units_used=units, plan_id=plan_id)
    except IntegrityError:
        # Another writer created the row first.
        UsageAggregate.objects.filter(**key.filter_kwargs()).update(**changes)


def _live_plan_id(tenant_id):
    """Plan of the tenant's live subscription, or ``None``."""

    try:
        return get_active_subscription(tenant_id).plan_id
    except SubscriptionNotFound:
        return None


def _validate_usage(*, feature_key: str, units: int, idempotency_key: str) -> None:
    if not feature_key:
        raise UsageValidationError("feature_key is required.", code="USAGE_MISSING_FEATURE")
    if not idempotency_key:
        raise UsageValidationError("idempotency_key is required.", code="USAGE_MISSING_IDEMPOTENCY_KEY")
    if isinstance(units, bool) or not isinstance(units, int) or units <= 0:
        raise UsageValidationError("units must be a positive integer.", code="USAGE_INVALID_UNITS")
