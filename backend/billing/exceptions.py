"""Error types shared by the billing and usage services.

Every error carries a stable ``code`` so that API views can return
``{"code": ..., "message": ...}`` without string matching.
"""
from __future__ import annotations


class BillingError(Exception):
    """Base class for billing domain errors."""

    default_code = "BILLING_ERROR"

    def __init__(self, message: str = "", *, code: str | None = None):
        self.code = code or self.default_code
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class BillingValidationError(BillingError):
    """Input rejected before any state change."""

    default_code = "BILLING_VALIDATION_ERROR"


class BillingNotFound(BillingError):
    """A referenced billing object does not exist."""

    default_code = "BILLING_NOT_FOUND"
