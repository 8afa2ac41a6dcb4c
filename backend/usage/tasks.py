"""Celery tasks for usage period close."""
from __future__ import annotations

import logging
from typing import Dict, Optional

from celery import shared_task
from django.db import IntegrityError, OperationalError

from billing.services.periods import parse_period, previous_period
from usage.services.overage import close_usage_period

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    queue="usage",
    autoretry_for=(IntegrityError, OperationalError),
    retry_backoff=True,
    max_retries=5,
)
def close_usage_period_task(self, period: Optional[str] = None, tenant_id: Optional[str] = None) -> Dict[str, object]:
    """Close ``period`` (``YYYY-MM``), defaulting to the previous calendar month."""

    target = parse_period(period) if period else previous_period()
    summary = close_usage_period(period=target, tenant_id=tenant_id)
    logger.info("close_usage_period_task finished: %s", summary.as_dict())
    return summary.as_dict()
