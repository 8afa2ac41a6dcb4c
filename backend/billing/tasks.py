"""Celery tasks for billing operations and payment event recovery."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, Optional

from celery import shared_task
from django.conf import settings
from django.db import IntegrityError, OperationalError

from billing.services.webhooks import retry_unprocessed_events

logger = logging.getLogger(__name__)

RETRY_BATCH_SIZE = 100


@shared_task(
    bind=True,
    queue="billing",
    autoretry_for=(IntegrityError, OperationalError),
    retry_backoff=True,
    max_retries=5,
)
def retry_unprocessed_payment_events(self, limit: Optional[int] = None) -> Dict[str, int]:
    """Re-dispatch stored payment events that never finished processing."""

    grace = int(getattr(settings, "PAYMENT_EVENT_RETRY_GRACE_SECONDS", 300))
    stats = retry_unprocessed_events(
        older_than=timedelta(seconds=grace),
        limit=limit or RETRY_BATCH_SIZE,
    )
    if stats["failed"]:
        logger.warning("Payment event retry sweep left %s event(s) unprocessed.", stats["failed"])
    return stats
