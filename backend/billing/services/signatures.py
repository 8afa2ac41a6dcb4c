"""Standard Webhooks signature verification for payment provider callbacks.

The provider signs ``"{webhook-id}.{webhook-timestamp}.{raw body}"`` and
sends one or more ``v1,<signature>`` values in the ``webhook-signature``
header. Verification itself is delegated to ``standardwebhooks``, which also
rejects timestamps more than five minutes away from now.
"""
from __future__ import annotations

import binascii
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Union

from standardwebhooks.webhooks import Webhook, WebhookVerificationError

from billing.exceptions import BillingValidationError

SECRET_PREFIX = "whsec_"
SIGNATURE_HEADERS = ("webhook-id", "webhook-timestamp", "webhook-signature")


class WebhookConfigurationError(RuntimeError):
    """Raised when webhook verification is not configured."""


class WebhookSignatureError(BillingValidationError):
    """Webhook signature headers are missing or do not match the payload."""

    default_code = "WEBHOOK_INVALID_SIGNATURE"


class WebhookPayloadError(BillingValidationError):
    """The signed body is not a JSON document."""

    default_code = "WEBHOOK_INVALID_PAYLOAD"


@dataclass(frozen=True)
class VerifiedWebhook:
    message_id: str
    payload: Any


def sign_webhook_payload(*, secret: str, message_id: str, timestamp: int, body: bytes) -> str:
    """Return the ``v1,<signature>`` header value the provider would send."""

    signed_at = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return _webhook(secret).sign(message_id, signed_at, body.decode("utf-8"))


def verify_webhook_signature(*, body: bytes, headers: Mapping[str, str], secret: str) -> VerifiedWebhook:
    """Validate the signature headers and return the message id with the parsed body."""

    webhook = _webhook(secret)
    signature_headers: Dict[str, str] = {}
    for name in SIGNATURE_HEADERS:
        value = headers.get(name)
        if not value:
            raise WebhookSignatureError("Missing webhook signature headers.")
        signature_headers[name] = value

    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise WebhookSignatureError("Webhook body is not UTF-8 text.") from exc

    try:
        webhook.verify(text, signature_headers)
    except WebhookVerificationError as exc:
        raise WebhookSignatureError(f"Webhook signature rejected: {exc}") from exc
    except json.JSONDecodeError as exc:
        # Only reached once a signature matched.
        raise WebhookPayloadError("Request body is not valid JSON.") from exc
    except ValueError as exc:
        raise WebhookSignatureError("Malformed webhook signature header.") from exc

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise WebhookPayloadError("Request body is not valid JSON.") from exc

    return VerifiedWebhook(message_id=signature_headers["webhook-id"], payload=payload)


def _webhook(secret: str) -> Webhook:
    if not secret:
        raise WebhookConfigurationError("BILLING_WEBHOOK_SECRET is not configured.")

    # ``whsec_`` secrets are base64 keys; anything else is used as raw key bytes.
    key: Union[str, bytes] = secret if secret.startswith(SECRET_PREFIX) else secret.encode("utf-8")
    try:
        return Webhook(key)
    except (binascii.Error, ValueError) as exc:
        raise WebhookConfigurationError("Webhook secret is not valid base64.") from exc
