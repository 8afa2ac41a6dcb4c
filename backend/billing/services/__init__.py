"""Expose commonly used billing services."""

from .catalog import (
    PlanFeatureNotFound,
    PlanMappingNotFound,
    PriceNotFound,
    SubscriptionNotFound,
    activate_price,
    get_active_plan_feature,
    get_active_price,
    get_active_subscription,
    get_subscription_for_period,
    resolve_plan_for_product,
)
from .ledger import LedgerEntryQuery, LedgerResult, LedgerValidationError, add_credits, get_balance, list_entries
