from billing.exceptions import BillingError, BillingValidationError


class UsageError(BillingError):
    default_code = "USAGE_ERROR"


class UsageValidationError(BillingValidationError, UsageError):
    """Usage report rejected before any state change."""

    default_code = "USAGE_INVALID"
