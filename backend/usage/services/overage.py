"""Period close: turn usage above the plan allowance into overage fees."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from django.db import IntegrityError, transaction

from billing.observability.logging import log_billing_event
from billing.observability.metrics import OVERAGE_FEE_COUNT
from billing.services.catalog import (
    PlanFeatureNotFound,
    SubscriptionNotFound,
    get_plan_feature,
    get_subscription_for_period,
)
from billing.services.periods import month_start, period_bounds
from usage.models import UsageAggregate, UsageOverageFee
from usage.services.recorder import reconcile_aggregate

logger = logging.getLogger(__name__)


@dataclass
class OverageCloseSummary:
    period: object
    examined: int = 0
    created: int = 0
    skipped: int = 0
    fees: List[UsageOverageFee] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "period": str(self.period),
            "examined": self.examined,
            "created": self.created,
            "skipped": self.skipped,
        }


def close_usage_period(*, period, tenant_id=None, dry_run: bool = False) -> OverageCloseSummary:
    """Create at most one overage fee per tenant, feature and period.

    Fees follow the plan that applied during the period: the plan stamped on
    the aggregate when usage was recorded, else the subscription that was in
    force during the period, canceled or not. Aggregates are reconciled
    against raw events first. Unlimited features and features without an
    overage price never produce a fee. With ``dry_run`` the fees are computed
    but not stored.
    """

    period = month_start(period)
    summary = OverageCloseSummary(period=period)

    aggregates = UsageAggregate.objects.filter(period=period).order_by("tenant_id", "feature_key")
    if tenant_id is not None:
        aggregates = aggregates.filter(tenant_id=tenant_id)

    for aggregate in aggregates:
        summary.examined += 1
        fee = _close_aggregate(aggregate, dry_run=dry_run)
        if fee is None:
            summary.skipped += 1
            continue
        summary.created += 1
        summary.fees.append(fee)

    logger.info("Usage period %s closed: %s", period, summary.as_dict())
    return summary


def _close_aggregate(aggregate: UsageAggregate, *, dry_run: bool) -> Optional[UsageOverageFee]:
    tenant_id = aggregate.tenant_id
    feature_key = aggregate.feature_key

    if UsageOverageFee.objects.filter(tenant_id=tenant_id, period=aggregate.period, feature_key=feature_key).exists():
        return None

    try:
        feature = get_plan_feature(_plan_for_period(aggregate), feature_key)
    except (SubscriptionNotFound, PlanFeatureNotFound) as exc:
        logger.info("Skipping overage for tenant %s/%s: %s", tenant_id, feature_key, exc.message)
        return None

    if feature.is_unlimited or feature.overage_price is None:
        return None

    units_used = aggregate.units_used
    if not dry_run:
        units_used = reconcile_aggregate(
            tenant_id=tenant_id,
            feature_key=feature_key,
            period=aggregate.period,
        ).units_used

    overage_units = units_used - feature.included_units
    if overage_units <= 0:
        return None

    fee = UsageOverageFee(
        tenant_id=tenant_id,
        period=aggregate.period,
        feature_key=feature_key,
        units_used=units_used,
        included_units=feature.included_units,
        unit_price=feature.overage_price,
        total_amount=overage_units * feature.overage_price,
        currency=feature.plan.currency,
    )
    if dry_run:
        return fee

    try:
        with transaction.atomic():
            fee.save()
    except IntegrityError:
        # A concurrent close stored the fee first.
        return None

    OVERAGE_FEE_COUNT.inc()
    log_billing_event(
        message="Overage fee created",
        tenant_id=tenant_id,
        actor="usage.close_usage_period",
        reference=f"{feature_key}@{aggregate.period}",
        extra={"total_amount": fee.total_amount, "overage_units": overage_units},
    )
    return fee


def _plan_for_period(aggregate: UsageAggregate):
    if aggregate.plan_id is not None:
        return aggregate.plan_id
    start, end = period_bounds(aggregate.period)
    return get_subscription_for_period(aggregate.tenant_id, start, end).plan_id
