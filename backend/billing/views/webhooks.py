"""Payment provider webhook endpoint."""
from __future__ import annotations

import logging

from django.conf import settings
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from billing.exceptions import BillingValidationError
from billing.observability.metrics import BILLING_REQUEST_COUNT
from billing.services.signatures import WebhookConfigurationError, verify_webhook_signature
from billing.services.webhooks import reconcile_payment_event
from billing.views import error_response

logger = logging.getLogger(__name__)


@method_decorator(csrf_exempt, name="dispatch")
class PaymentWebhookView(APIView):
    """Verify, store and reconcile payment provider events.

    Once an event is stored the provider always gets ``{"received": true}``.
    Events whose dispatch failed stay unprocessed and are picked up again by
    the retry sweep or the ``replay_payment_events`` command. Events rejected
    as invalid during dispatch are flagged and never retried.
    """

    authentication_classes = []
    permission_classes = []
    http_method_names = ["post"]

    def post(self, request, *args, **kwargs):  # noqa: D401 - DRF signature
        body = request.body or b""

        try:
            verified = verify_webhook_signature(
                body=body,
                headers=request.headers,
                secret=getattr(settings, "BILLING_WEBHOOK_SECRET", ""),
            )
        except WebhookConfigurationError as exc:
            logger.error("Payment webhook configuration error: %s", exc)
            return self._respond(
                {"code": "WEBHOOK_NOT_CONFIGURED", "message": str(exc)},
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        except BillingValidationError as exc:
            logger.warning("Payment webhook verification failed: %s", exc.message)
            BILLING_REQUEST_COUNT.labels(endpoint="payment_webhook", method="POST", status="400").inc()
            return error_response(exc, status.HTTP_400_BAD_REQUEST)

        event_id = verified.message_id
        try:
            result = reconcile_payment_event(
                provider_event_id=event_id,
                payload=verified.payload,
                provider=getattr(settings, "BILLING_PAYMENT_PROVIDER", "dodo"),
            )
        except BillingValidationError as exc:
            # Raised before the event is stored.
            logger.warning("Payment webhook %s rejected: %s", event_id, exc.message)
            BILLING_REQUEST_COUNT.labels(endpoint="payment_webhook", method="POST", status="400").inc()
            return error_response(exc, status.HTTP_400_BAD_REQUEST)
        except Exception:
            # The event row exists with attempts/last_error set; the sweep retries it.
            logger.exception("Payment webhook %s stored but dispatch failed.", event_id)
            return self._respond({"received": True}, status.HTTP_200_OK)

        logger.info("Payment webhook %s (%s) -> %s", event_id, result.event.event_type, result.status)
        return self._respond({"received": True}, status.HTTP_200_OK)

    @staticmethod
    def _respond(payload, status_code: int) -> Response:
        BILLING_REQUEST_COUNT.labels(endpoint="payment_webhook", method="POST", status=str(status_code)).inc()
        return Response(payload, status=status_code)
