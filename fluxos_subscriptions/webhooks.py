"""
Webhook event verification.

Authenticates a raw webhook body against the Stripe-Signature header before
anything in it is read.
"""

import json
from datetime import datetime

import stripe
import structlog

from .config import DEFAULT_WEBHOOK_TOLERANCE
from .exceptions import StripeWebhookError
from .models import WebhookEvent

logger = structlog.get_logger(__name__)


def verify_event(
    payload: bytes,
    signature: str | None,
    webhook_secret: str | None,
    tolerance: int = DEFAULT_WEBHOOK_TOLERANCE,
) -> WebhookEvent:
    """Verify a webhook signature and parse the event.

    Args:
        payload: Raw request body, exactly as received
        signature: Value of the Stripe-Signature header
        webhook_secret: Endpoint signing secret (whsec_*)
        tolerance: Maximum accepted age of the signed timestamp, in seconds

    Raises:
        StripeWebhookError: If the secret or header is missing, the signature
            does not match, or the signed payload is not a Stripe event
    """
    if not webhook_secret:
        raise StripeWebhookError(
            "Webhook secret not configured",
            details={"has_secret": False},
        )

    if not signature:
        logger.warning("webhook_signature_missing")
        raise StripeWebhookError("Missing Stripe-Signature header")

    try:
        logger.debug("verifying_webhook_signature")

        stripe.Webhook.construct_event(payload, signature, webhook_secret, tolerance)
        body = json.loads(payload)

    except stripe.SignatureVerificationError as e:
        logger.error("webhook_signature_invalid", error=str(e))
        raise StripeWebhookError(
            "Invalid webhook signature",
            original_error=e,
        )
    except ValueError as e:
        logger.error("webhook_payload_invalid", error=str(e))
        raise StripeWebhookError(
            "Invalid webhook payload",
            original_error=e,
        )

    if not isinstance(body, dict) or not body.get("id") or not body.get("type"):
        logger.error("webhook_payload_invalid", error="missing id or type")
        raise StripeWebhookError("Invalid webhook payload")

    webhook_event = WebhookEvent(
        id=body["id"],
        type=body["type"],
        data=body.get("data") or {},
        created=datetime.fromtimestamp(body.get("created") or 0),
        livemode=bool(body.get("livemode", False)),
    )

    logger.info(
        "webhook_signature_verified",
        event_type=webhook_event.type,
        event_id=webhook_event.id,
    )
    return webhook_event


class EventVerifier:
    """Verifies inbound webhook deliveries against one signing secret."""

    def __init__(
        self, webhook_secret: str | None, tolerance: int = DEFAULT_WEBHOOK_TOLERANCE
    ):
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

    def verify(self, payload: bytes, signature: str | None) -> WebhookEvent:
        """Verify a webhook signature and parse the event."""
        return verify_event(payload, signature, self.webhook_secret, self.tolerance)
