"""
Payment intent resolution for invoices.

Webhook payloads often arrive slim, without the payments expansion, so the
confirmation secret is parsed as a fallback.
"""

import structlog

from .models import Invoice

logger = structlog.get_logger(__name__)

PAYMENT_INTENT_PREFIX = "pi_"
CLIENT_SECRET_DELIMITER = "_secret"


def extract_payment_intent_id(client_secret: str | None) -> str | None:
    """Parse "pi_XXX" out of a "pi_XXX_secret_YYY" client secret.

    Returns None when the delimiter is absent or the part before it is not
    a payment intent id.
    """
    if not client_secret:
        return None

    index = client_secret.find(CLIENT_SECRET_DELIMITER)
    if index <= 0:
        return None

    candidate = client_secret[:index]
    if not candidate.startswith(PAYMENT_INTENT_PREFIX) or len(candidate) == len(
        PAYMENT_INTENT_PREFIX
    ):
        return None
    return candidate


class PaymentIntentResolver:
    """Finds the payment intent that paid an invoice.

    The first entry of the expanded payments list wins; otherwise the id is
    parsed from the invoice's confirmation secret.
    """

    def resolve(self, invoice: Invoice) -> str | None:
        if invoice.payments:
            payment_intent_id = invoice.payments[0].payment_intent_id
            if payment_intent_id:
                logger.debug(
                    "payment_intent_resolved",
                    invoice_id=invoice.id,
                    payment_intent_id=payment_intent_id,
                    source="payments",
                )
                return payment_intent_id

        payment_intent_id = extract_payment_intent_id(invoice.client_secret)
        logger.debug(
            "payment_intent_resolved" if payment_intent_id else "payment_intent_unresolved",
            invoice_id=invoice.id,
            payment_intent_id=payment_intent_id,
            source="confirmation_secret",
        )
        return payment_intent_id
