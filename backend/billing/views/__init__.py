"""Billing API views."""
from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response

from billing.exceptions import BillingError, BillingNotFound, BillingValidationError


def error_response(exc: BillingError, status_code: int | None = None) -> Response:
    """Render a domain error as ``{"code", "message"}``."""

    if status_code is None:
        if isinstance(exc, BillingNotFound):
            status_code = status.HTTP_404_NOT_FOUND
        elif isinstance(exc, BillingValidationError):
            status_code = status.HTTP_400_BAD_REQUEST
        else:
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return Response({"code": exc.code, "message": exc.message}, status=status_code)
