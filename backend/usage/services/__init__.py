"""Expose commonly used usage services."""

from .entitlements import UNLIMITED, EntitlementDecision, check_entitlement
from .overage import OverageCloseSummary, close_usage_period
from .recorder import AggregateKey, UsageRecordResult, get_aggregate, reconcile_aggregate, record_usage
