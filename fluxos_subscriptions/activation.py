"""
Subscription activation.

Creates a subscription that waits for the payer to confirm its first
payment, and hands back the secret the payer-facing client confirms with.
Payment is never confirmed server-side.
"""

import structlog

from .client import StripeClientInterface
from .exceptions import ClientSecretUnavailableError
from .models import ActivationResult

logger = structlog.get_logger(__name__)


class SubscriptionActivator:
    """Starts subscriptions in the incomplete state."""

    def __init__(self, client: StripeClientInterface):
        self.client = client

    async def activate(self, customer_id: str, price_id: str) -> ActivationResult:
        """Create a pending subscription for the customer.

        Args:
            customer_id: Stripe customer ID
            price_id: Stripe price ID of the plan

        Returns:
            ActivationResult with the subscription ID and client secret

        Raises:
            StripeBillingError: If Stripe rejects the subscription
            ClientSecretUnavailableError: If the latest invoice has no
                confirmation secret yet (retryable)
        """
        subscription = await self.client.create_subscription(customer_id, price_id)

        invoice = subscription.latest_invoice
        if invoice is None and subscription.latest_invoice_id:
            logger.info(
                "latest_invoice_not_expanded",
                subscription_id=subscription.id,
                invoice_id=subscription.latest_invoice_id,
            )
            invoice = await self.client.get_invoice(subscription.latest_invoice_id)

        if invoice is None or not invoice.client_secret:
            logger.warning(
                "client_secret_unavailable",
                subscription_id=subscription.id,
                invoice_id=subscription.latest_invoice_id,
            )
            raise ClientSecretUnavailableError(
                "client secret unavailable",
                details={
                    "subscription_id": subscription.id,
                    "invoice_id": subscription.latest_invoice_id,
                },
            )

        logger.info(
            "subscription_activation_pending",
            subscription_id=subscription.id,
            customer_id=customer_id,
            status=subscription.status,
        )
        return ActivationResult(
            subscription_id=subscription.id,
            client_secret=invoice.client_secret,
        )
