"""Read access to plans, plan features and prices, plus price activation."""
from __future__ import annotations

import logging

from django.db import transaction
from django.db.models import Q

from billing.exceptions import BillingNotFound
from billing.models import (
    BillingPlan,
    BillingPlanFeature,
    BillingPlanPrice,
    PaymentProvider,
    ProviderProductMapping,
    TenantSubscription,
)

logger = logging.getLogger(__name__)


class SubscriptionNotFound(BillingNotFound):
    """No matching subscription exists."""

    default_code = "SUBSCRIPTION_NOT_FOUND"


class PlanFeatureNotFound(BillingNotFound):
    """The plan does not define the requested feature."""

    default_code = "PLAN_FEATURE_NOT_FOUND"


class PriceNotFound(BillingNotFound):
    """The plan has no active price."""

    default_code = "PRICE_NOT_FOUND"


class PlanMappingNotFound(BillingNotFound):
    """No plan is mapped to the provider product."""

    default_code = "PLAN_MAPPING_NOT_FOUND"


def get_active_subscription(tenant_id) -> TenantSubscription:
    subscription = (
        TenantSubscription.objects.select_related("plan")
        .filter(tenant_id=tenant_id, status__in=TenantSubscription.LIVE_STATUSES)
        .order_by("-current_period_end", "-created_at")
        .first()
    )
    if subscription is None:
        raise SubscriptionNotFound(f"Tenant {tenant_id} has no active subscription.")
    return subscription


def get_subscription_for_period(tenant_id, start, end) -> TenantSubscription:
    """Latest subscription that was in force at some point in ``[start, end)``, whatever its status now."""

    subscription = (
        TenantSubscription.objects.select_related("plan")
        .filter(tenant_id=tenant_id, current_period_end__gt=start)
        .filter(Q(created_at__lt=end) | Q(current_period_start__lt=end))
        .filter(Q(canceled_at__isnull=True) | Q(canceled_at__gte=start))
        .order_by("-created_at")
        .first()
    )
    if subscription is None:
        raise SubscriptionNotFound(f"Tenant {tenant_id} had no subscription between {start} and {end}.")
    return subscription


def get_plan_feature(plan_id, feature_key: str) -> BillingPlanFeature:
    feature = BillingPlanFeature.objects.filter(plan_id=plan_id, feature_key=feature_key).first()
    if feature is None:
        raise PlanFeatureNotFound(f"Plan {plan_id} does not include feature '{feature_key}'.")
    return feature


def get_active_plan_feature(tenant_id, feature_key: str) -> BillingPlanFeature:
    """Feature row of the plan behind the tenant's live subscription."""

    subscription = get_active_subscription(tenant_id)
    return get_plan_feature(subscription.plan_id, feature_key)


def get_active_price(plan_id) -> BillingPlanPrice:
    price = BillingPlanPrice.objects.filter(plan_id=plan_id, is_active=True).first()
    if price is None:
        raise PriceNotFound(f"Plan {plan_id} has no active price.")
    return price


def resolve_plan_for_product(*, product_id: str, provider: str = PaymentProvider.DODO) -> BillingPlan:
    mapping = (
        ProviderProductMapping.objects.select_related("plan")
        .filter(provider=provider, provider_product_id=product_id)
        .first()
    )
    if mapping is None:
        raise PlanMappingNotFound(f"No plan mapped to {provider} product '{product_id}'.")
    return mapping.plan


def activate_price(price: BillingPlanPrice) -> BillingPlanPrice:
    """Make ``price`` the single active price of its plan."""

    with transaction.atomic():
        siblings = BillingPlanPrice.objects.select_for_update().filter(plan_id=price.plan_id)
        siblings.exclude(pk=price.pk).filter(is_active=True).update(is_active=False)
        price.is_active = True
        price.save(update_fields=["is_active", "updated_at"])

    logger.info("Activated price %s for plan %s", price.pk, price.plan_id)
    return price
