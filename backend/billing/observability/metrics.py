"""Prometheus metrics helpers for billing and usage domain."""
from __future__ import annotations

from prometheus_client import Counter, Histogram

BILLING_REQUEST_COUNT = Counter(
    "billing_request_total",
    "Number of billing API requests",
    labelnames=("endpoint", "method", "status"),
)

WEBHOOK_EVENT_COUNT = Counter(
    "billing_webhook_events_total",
    "Payment provider webhook events by type and outcome",
    labelnames=("event_type", "outcome"),
)

WEBHOOK_PROCESSING_LATENCY = Histogram(
    "billing_webhook_processing_seconds",
    "Time spent reconciling a payment provider event",
    labelnames=("event_type",),
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5),
)

LEDGER_ENTRY_COUNT = Counter(
    "billing_ledger_entries_total",
    "Credit ledger writes by source and outcome",
    labelnames=("source", "outcome"),
)

USAGE_EVENT_COUNT = Counter(
    "usage_events_total",
    "Usage events by outcome",
    labelnames=("outcome",),
)

ENTITLEMENT_DECISION_COUNT = Counter(
    "usage_entitlement_decisions_total",
    "Entitlement checks by decision",
    labelnames=("decision",),
)

OVERAGE_FEE_COUNT = Counter(
    "usage_overage_fees_total",
    "Overage fee records created at period close",
)
