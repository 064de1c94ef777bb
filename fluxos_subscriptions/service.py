"""
Billing Service.

Request-scoped entry point for the billing API. Delegates activation,
preview and webhook reconciliation to their components and covers the
plain customer, price and subscription operations itself.
"""

from typing import Any

import structlog

from .activation import SubscriptionActivator
from .client import StripeClientInterface
from .exceptions import StripeValidationError
from .models import ActivationResult, Customer, InvoicePreview, Price, Subscription
from .preview import PlanChangePreviewer
from .reconciliation import ReconciliationEngine, ReconciliationResult
from .settings import Settings
from .webhooks import EventVerifier

logger = structlog.get_logger(__name__)


class BillingService:
    """
    Service for handling Stripe subscription operations.

    Holds no state of its own beyond the collaborators it is built with,
    so one instance per request is cheap and safe.
    """

    def __init__(
        self,
        client: StripeClientInterface,
        settings: Settings,
        verifier: EventVerifier | None = None,
    ):
        """
        Initialize billing service.

        Args:
            client: Stripe client
            settings: Application settings (price mapping, publishable key)
            verifier: Webhook verifier; built from settings when omitted
        """
        self.client = client
        self.settings = settings
        self.verifier = verifier or EventVerifier(
            settings.STRIPE_WEBHOOK_SECRET or None,
            tolerance=settings.STRIPE_WEBHOOK_TOLERANCE,
        )
        self.activator = SubscriptionActivator(client)
        self.previewer = PlanChangePreviewer(client)
        self.engine = ReconciliationEngine(client)

    async def get_config(self) -> dict[str, Any]:
        """Publishable key and the prices offered to new customers."""
        prices: list[Price] = await self.client.list_prices(
            lookup_keys=self.settings.price_lookup_keys_list
        )
        return {
            "publishable_key": self.settings.STRIPE_PUBLISHABLE_KEY,
            "prices": prices,
        }

    async def create_customer(self, email: str, name: str | None = None) -> Customer:
        """Create the Stripe customer for a new user."""
        if not email:
            raise StripeValidationError("Email is required.")
        return await self.client.create_customer(email=email, name=name)

    async def activate_subscription(
        self, customer_id: str, price_id: str
    ) -> ActivationResult:
        """Create a subscription awaiting payment confirmation."""
        if not price_id:
            raise StripeValidationError("priceId is required.")
        return await self.activator.activate(customer_id, price_id)

    async def preview_plan_change(
        self, subscription_id: str, customer_id: str, new_price_id: str
    ) -> InvoicePreview:
        """Preview the invoice after swapping the subscription's price."""
        return await self.previewer.preview(subscription_id, customer_id, new_price_id)

    async def update_subscription(
        self, subscription_id: str, new_price: str
    ) -> Subscription:
        """
        Move a subscription to another plan.

        Args:
            subscription_id: Stripe subscription ID
            new_price: Logical price name, mapped through PRICE_IDS

        Returns:
            The updated subscription
        """
        price_id = self.settings.resolve_price_id(new_price)

        subscription = await self.client.get_subscription(subscription_id)
        if subscription is None:
            raise StripeValidationError(
                "Subscription not found.",
                details={"subscription_id": subscription_id},
            )
        if not subscription.items:
            raise StripeValidationError(
                "Subscription has no items.",
                details={"subscription_id": subscription_id},
            )

        logger.info(
            "updating_subscription_plan",
            subscription_id=subscription_id,
            new_price=new_price,
            price_id=price_id,
        )
        return await self.client.update_subscription_price(
            subscription_id, subscription.items[0].id, price_id
        )

    async def cancel_subscription(self, subscription_id: str) -> Subscription:
        """Cancel a subscription immediately."""
        return await self.client.cancel_subscription(subscription_id, at_period_end=False)

    async def list_subscriptions(self, customer_id: str) -> list[Subscription]:
        """All of a customer's subscriptions, whatever their status."""
        return await self.client.list_customer_subscriptions(customer_id)

    async def handle_webhook(
        self, payload: bytes, signature: str | None
    ) -> ReconciliationResult:
        """
        Verify and reconcile a webhook delivery.

        Raises:
            StripeWebhookError: If the delivery cannot be authenticated.
                Nothing else is raised; reconciliation failures are part of
                the returned result.
        """
        event = self.verifier.verify(payload, signature)
        result = await self.engine.handle(event)

        logger.info(
            "webhook_processed",
            event_id=result.event_id,
            event_type=result.event_type,
            action=result.action.value,
        )
        return result
