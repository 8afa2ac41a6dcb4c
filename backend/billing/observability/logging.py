"""Structured logging helper for billing and usage events."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger("billing")


def log_billing_event(*, message: str, tenant_id: Optional[str] = None, actor: Optional[str] = None,
                      reference: Optional[str] = None, extra: Optional[Dict[str, Any]] = None) -> None:
    payload: Dict[str, Any] = {"message": message}
    if tenant_id:
        payload["tenant_id"] = str(tenant_id)
    if actor:
        payload["actor"] = actor
    if reference:
        payload["reference"] = reference
    if extra:
        payload.update(extra)
    logger.info(payload)
