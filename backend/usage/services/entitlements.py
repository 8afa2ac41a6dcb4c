"""Advisory entitlement checks against plan allowances, current usage and credits.

Decisions read committed state without locking; two concurrent callers may
both be allowed right at the limit.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from billing.models import BillingPlanFeature
from billing.observability.metrics import ENTITLEMENT_DECISION_COUNT
from billing.services.catalog import get_active_plan_feature
from billing.services.ledger import get_balance
from iam.permissions import ENTITLEMENT_OVERRIDE
from iam.services import Principal, has_permission
from usage.exceptions import UsageValidationError
from usage.services.recorder import current_usage

logger = logging.getLogger(__name__)

UNLIMITED = BillingPlanFeature.UNLIMITED


@dataclass(frozen=True)
class EntitlementDecision:
    allowed: bool
    remaining: int
    unlimited: bool = False
    used: int = 0
    limit: int = 0
    overridden: bool = False

    def as_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "remaining": self.remaining,
            "unlimited": self.unlimited,
            "used": self.used,
            "limit": self.limit,
            "overridden": self.overridden,
        }


def check_entitlement(
    *,
    tenant_id,
    feature_key: str,
    requested_units: int,
    principal: Optional[Principal] = None,
) -> EntitlementDecision:
    """Decide whether ``requested_units`` more units fit the tenant's allowance.

    The allowance is the plan's included units plus the tenant's positive
    credit balance. Unlimited features (``-1``) are always allowed. A
    principal holding ``billing.entitlement.override`` for the tenant, or on
    the platform, is allowed regardless of the computed limit.
    """

    if isinstance(requested_units, bool) or not isinstance(requested_units, int) or requested_units < 0:
        raise UsageValidationError("requested_units must be a non-negative integer.", code="USAGE_INVALID_UNITS")

    feature = get_active_plan_feature(tenant_id, feature_key)

    if feature.is_unlimited:
        decision = EntitlementDecision(allowed=True, remaining=UNLIMITED, unlimited=True, limit=UNLIMITED)
        ENTITLEMENT_DECISION_COUNT.labels(decision="unlimited").inc()
        return decision

    used = current_usage(tenant_id=tenant_id, feature_key=feature_key)
    bonus = max(get_balance(tenant_id), 0)
    limit = feature.included_units + bonus
    allowed = used + requested_units <= limit
    remaining = max(limit - used, 0)

    overridden = False
    if not allowed and _can_override(principal, tenant_id):
        allowed = True
        overridden = True
        logger.info(
            "Entitlement override by user %s for tenant %s/%s (used=%s requested=%s limit=%s)",
            principal.user_id,
            tenant_id,
            feature_key,
            used,
            requested_units,
            limit,
        )

    outcome = "overridden" if overridden else ("allowed" if allowed else "denied")
    ENTITLEMENT_DECISION_COUNT.labels(decision=outcome).inc()
    return EntitlementDecision(
        allowed=allowed,
        remaining=remaining,
        used=used,
        limit=limit,
        overridden=overridden,
    )


def _can_override(principal: Optional[Principal], tenant_id) -> bool:
    if principal is None:
        return False
    if not principal.is_platform and str(principal.tenant_id) != str(tenant_id):
        return False
    return has_permission(principal, ENTITLEMENT_OVERRIDE)
