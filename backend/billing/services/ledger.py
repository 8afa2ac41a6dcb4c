"""Tenant credit ledger helpers: idempotent credit mutation and live balances."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from django.conf import settings
from django.core.cache import cache
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Q, QuerySet, Sum
from django.utils import timezone

from billing.exceptions import BillingValidationError
from billing.models import TenantCreditLedgerEntry
from billing.observability.metrics import LEDGER_ENTRY_COUNT

logger = logging.getLogger(__name__)

BALANCE_CACHE_KEY = "billing.ledger.balance:{tenant_id}"


class LedgerValidationError(BillingValidationError):
    """Ledger entry rejected before it was written."""

    default_code = "LEDGER_INVALID_ENTRY"


@dataclass(frozen=True)
class LedgerResult:
    entry: TenantCreditLedgerEntry
    created: bool

    @property
    def delta(self) -> int:
        return self.entry.delta


@dataclass(frozen=True)
class LedgerEntryQuery:
    """Filters accepted by :func:`list_entries`."""

    tenant_id: object
    source: Optional[str] = None
    reference_type: Optional[str] = None
    include_expired: bool = True


def add_credits(
    *,
    tenant_id,
    delta: int,
    reason: str,
    source: str,
    idempotency_key: str,
    reference_type: str = "",
    reference_id: str = "",
    expires_at: Optional[datetime] = None,
) -> LedgerResult:
    """Append a signed credit movement for ``tenant_id``.

    A repeated ``(tenant_id, idempotency_key)`` returns the stored entry and
    ignores the new arguments. Concurrent writers with the same key converge on
    the single row that won the insert.
    """

    _validate_entry(delta=delta, source=source, idempotency_key=idempotency_key)

    try:
        with transaction.atomic():
            entry = TenantCreditLedgerEntry.objects.create(
                tenant_id=tenant_id,
                delta=int(delta),
                reason=reason or "",
                source=source,
                idempotency_key=idempotency_key,
                reference_type=reference_type or "",
                reference_id=str(reference_id or ""),
                expires_at=expires_at,
            )
    except IntegrityError:
        existing = (
            TenantCreditLedgerEntry.objects.filter(tenant_id=tenant_id, idempotency_key=idempotency_key)
            .first()
        )
        if existing is None:
            raise
        LEDGER_ENTRY_COUNT.labels(source=source, outcome="replayed").inc()
        logger.info(
            "Ledger key %s already recorded for tenant %s; returning entry %s.",
            idempotency_key,
            tenant_id,
            existing.pk,
        )
        return LedgerResult(entry=existing, created=False)
    except DjangoValidationError as exc:
        raise LedgerValidationError(_flatten_validation_error(exc)) from exc

    invalidate_balance_cache(tenant_id)
    LEDGER_ENTRY_COUNT.labels(source=source, outcome="created").inc()
    logger.info(
        "Ledger entry %s recorded for tenant %s: delta=%s source=%s key=%s",
        entry.pk,
        tenant_id,
        entry.delta,
        source,
        idempotency_key,
    )
    return LedgerResult(entry=entry, created=True)


def get_balance(tenant_id) -> int:
    """Sum of non-expired deltas for ``tenant_id``."""

    ttl = _balance_cache_ttl()
    cache_key = BALANCE_CACHE_KEY.format(tenant_id=tenant_id)
    if ttl > 0:
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

    total = (
        _active_entries(TenantCreditLedgerEntry.objects.filter(tenant_id=tenant_id))
        .aggregate(total=Sum("delta"))["total"]
    )
    balance = int(total or 0)

    if ttl > 0:
        cache.set(cache_key, balance, ttl)
    return balance


def list_entries(query: LedgerEntryQuery) -> QuerySet:
    queryset = TenantCreditLedgerEntry.objects.filter(tenant_id=query.tenant_id)
    if query.source:
        queryset = queryset.filter(source=query.source)
    if query.reference_type:
        queryset = queryset.filter(reference_type=query.reference_type)
    if not query.include_expired:
        queryset = _active_entries(queryset)
    return queryset.order_by("-created_at")


def invalidate_balance_cache(tenant_id) -> None:
    if _balance_cache_ttl() <= 0:
        return
    cache_key = BALANCE_CACHE_KEY.format(tenant_id=tenant_id)
    cache.delete(cache_key)
    # A reader inside a concurrent transaction may repopulate before commit.
    transaction.on_commit(lambda: cache.delete(cache_key))


def _active_entries(queryset: QuerySet) -> QuerySet:
    now = timezone.now()
    return queryset.filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now))


def _validate_entry(*, delta: int, source: str, idempotency_key: str) -> None:
    if not idempotency_key:
        raise LedgerValidationError("idempotency_key is required.", code="LEDGER_MISSING_IDEMPOTENCY_KEY")
    if source not in TenantCreditLedgerEntry.Source.values:
        raise LedgerValidationError(f"Unknown ledger source '{source}'.", code="LEDGER_INVALID_SOURCE")
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise LedgerValidationError("delta must be an integer.", code="LEDGER_INVALID_DELTA")
    if delta == 0:
        raise LedgerValidationError("delta must be non-zero.", code="LEDGER_INVALID_DELTA")


def _balance_cache_ttl() -> int:
    return int(getattr(settings, "LEDGER_BALANCE_CACHE_SECONDS", 0) or 0)


def _flatten_validation_error(exc: DjangoValidationError) -> str:
    if hasattr(exc, "message_dict"):
        return "; ".join(f"{field}: {', '.join(messages)}" for field, messages in exc.message_dict.items())
    return "; ".join(exc.messages)
