"""
Stripe client implementation.

Concrete implementation using the official Stripe API.
Every call carries the configured API key explicitly, runs in an executor
and is bounded by the configured timeout.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any

import stripe
import structlog

from .config import StripeConfig
from .converters import (
    convert_customer,
    convert_invoice,
    convert_invoice_preview,
    convert_payment_intent,
    convert_price,
    convert_subscription,
)
from .exceptions import (
    StripeBillingError,
    StripeConnectionError,
    StripeCustomerError,
    StripeInvoiceError,
    StripePaymentError,
    StripeSubscriptionError,
)
from .models import Customer, Invoice, InvoicePreview, PaymentIntent, Price, Subscription

logger = structlog.get_logger(__name__)

PENDING_PAYMENT_BEHAVIOR = "default_incomplete"


def _is_transient(error: Exception) -> bool:
    return isinstance(error, (stripe.APIConnectionError, stripe.RateLimitError))


class StripeClientInterface(ABC):
    """Abstract interface for the Stripe operations the subscription flow needs."""

    # Customer operations
    @abstractmethod
    async def create_customer(
        self,
        email: str,
        name: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> Customer:
        """Create a new Stripe customer."""
        ...

    @abstractmethod
    async def get_customer(self, customer_id: str) -> Customer | None:
        """Get a customer by ID."""
        ...

    # Price operations
    @abstractmethod
    async def list_prices(self, lookup_keys: list[str] | None = None) -> list[Price]:
        """List active prices, optionally restricted to lookup keys."""
        ...

    # Subscription operations
    @abstractmethod
    async def create_subscription(
        self,
        customer_id: str,
        price_id: str,
        metadata: dict[str, str] | None = None,
    ) -> Subscription:
        """Create a subscription awaiting payment confirmation.

        The latest invoice and its confirmation secret are requested
        expanded; Subscription.latest_invoice is None if Stripe did not
        expand it.
        """
        ...

    @abstractmethod
    async def get_subscription(self, subscription_id: str) -> Subscription | None:
        """Get a subscription by ID."""
        ...

    @abstractmethod
    async def list_customer_subscriptions(self, customer_id: str) -> list[Subscription]:
        """List all subscriptions for a customer, whatever their status."""
        ...

    @abstractmethod
    async def update_subscription_price(
        self, subscription_id: str, item_id: str, price_id: str
    ) -> Subscription:
        """Swap the price of one subscription item and keep the subscription running."""
        ...

    @abstractmethod
    async def set_default_payment_method(
        self, subscription_id: str, payment_method_id: str
    ) -> Subscription:
        """Set the subscription's default payment method (last write wins)."""
        ...

    @abstractmethod
    async def cancel_subscription(
        self, subscription_id: str, at_period_end: bool = False
    ) -> Subscription:
        """Cancel a subscription."""
        ...

    # Invoice operations
    @abstractmethod
    async def get_invoice(
        self, invoice_id: str, expand_payments: bool = False
    ) -> Invoice | None:
        """Get an invoice by ID."""
        ...

    @abstractmethod
    async def preview_invoice(
        self,
        customer_id: str,
        subscription_id: str,
        items: list[dict[str, Any]],
    ) -> InvoicePreview:
        """Preview the invoice resulting from the given subscription item changes."""
        ...

    # Payment intent operations
    @abstractmethod
    async def get_payment_intent(self, payment_intent_id: str) -> PaymentIntent | None:
        """Get a payment intent by ID."""
        ...

    # Health check
    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the Stripe API is accessible."""
        ...


class StripeClient(StripeClientInterface):
    """Concrete Stripe client implementation."""

    def __init__(self, config: StripeConfig):
        """Initialize the Stripe client.

        Args:
            config: StripeConfig instance with API credentials
        """
        self.config = config

        logger.info(
            "stripe_client_initialized",
            is_test_mode=config.is_test_mode,
            timeout=config.timeout,
        )

    async def _run_in_executor(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        """Run a synchronous Stripe API call in an executor, within the deadline."""
        kwargs.setdefault("api_key", self.config.api_key)
        loop = asyncio.get_event_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, lambda: func(*args, **kwargs)),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError as e:
            operation = getattr(func, "__qualname__", repr(func))
            logger.error(
                "stripe_call_timed_out", operation=operation, timeout=self.config.timeout
            )
            raise StripeConnectionError(
                f"Stripe request timed out after {self.config.timeout}s",
                details={"operation": operation},
                original_error=e,
            )

    # Customer operations

    async def create_customer(
        self,
        email: str,
        name: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> Customer:
        """Create a new Stripe customer."""
        try:
            logger.info("creating_stripe_customer", email=email, name=name)

            customer_data: dict[str, Any] = {
                "email": email,
                "metadata": metadata or {},
            }
            if name:
                customer_data["name"] = name

            stripe_customer = await self._run_in_executor(
                stripe.Customer.create, **customer_data
            )

            customer = convert_customer(stripe_customer)
            logger.info("stripe_customer_created", customer_id=customer.id, email=email)
            return customer

        except stripe.StripeError as e:
            logger.error("stripe_customer_create_failed", email=email, error=str(e))
            raise StripeCustomerError(
                f"Failed to create Stripe customer: {str(e)}",
                details={"email": email},
                original_error=e,
                retryable=_is_transient(e),
            )

    async def get_customer(self, customer_id: str) -> Customer | None:
        """Get a customer by ID."""
        try:
            logger.debug("fetching_stripe_customer", customer_id=customer_id)

            stripe_customer = await self._run_in_executor(
                stripe.Customer.retrieve, customer_id
            )

            if stripe_customer.get("deleted"):
                return None

            return convert_customer(stripe_customer)

        except stripe.InvalidRequestError:
            logger.warning("stripe_customer_not_found", customer_id=customer_id)
            return None
        except stripe.StripeError as e:
            logger.error(
                "stripe_customer_fetch_failed", customer_id=customer_id, error=str(e)
            )
            raise StripeCustomerError(
                f"Failed to fetch Stripe customer: {str(e)}",
                details={"customer_id": customer_id},
                original_error=e,
                retryable=_is_transient(e),
            )

    # Price operations

    async def list_prices(self, lookup_keys: list[str] | None = None) -> list[Price]:
        """List active prices, optionally restricted to lookup keys."""
        try:
            logger.debug("listing_prices", lookup_keys=lookup_keys)

            list_params: dict[str, Any] = {"active": True, "limit": 100}
            if lookup_keys:
                list_params["lookup_keys"] = lookup_keys

            result = await self._run_in_executor(stripe.Price.list, **list_params)

            prices = [convert_price(price) for price in result["data"]]
            logger.debug("prices_listed", count=len(prices))
            return prices

        except stripe.StripeError as e:
            logger.error("list_prices_failed", error=str(e))
            raise StripePaymentError(
                f"Failed to list prices: {str(e)}",
                details={"lookup_keys": lookup_keys or []},
                original_error=e,
                retryable=_is_transient(e),
            )

    # Subscription operations

    async def create_subscription(
        self,
        customer_id: str,
        price_id: str,
        metadata: dict[str, str] | None = None,
    ) -> Subscription:
        """Create a subscription awaiting payment confirmation."""
        try:
            logger.info(
                "creating_subscription",
                customer_id=customer_id,
                price_id=price_id,
            )

            subscription_data: dict[str, Any] = {
                "customer": customer_id,
                "items": [{"price": price_id}],
                "payment_behavior": PENDING_PAYMENT_BEHAVIOR,
                "expand": ["latest_invoice", "latest_invoice.confirmation_secret"],
                "metadata": metadata or {},
            }

            stripe_sub = await self._run_in_executor(
                stripe.Subscription.create, **subscription_data
            )

            subscription = convert_subscription(stripe_sub)
            logger.info(
                "subscription_created",
                subscription_id=subscription.id,
                customer_id=customer_id,
                status=subscription.status,
                invoice_expanded=subscription.latest_invoice is not None,
            )
            return subscription

        except stripe.StripeError as e:
            logger.error(
                "subscription_create_failed",
                customer_id=customer_id,
                price_id=price_id,
                error=str(e),
            )
            raise StripeSubscriptionError(
                f"Failed to create subscription: {str(e)}",
                details={"customer_id": customer_id, "price_id": price_id},
                original_error=e,
                retryable=_is_transient(e),
            )

    async def get_subscription(self, subscription_id: str) -> Subscription | None:
        """Get a subscription by ID."""
        try:
            logger.debug("fetching_subscription", subscription_id=subscription_id)

            stripe_sub = await self._run_in_executor(
                stripe.Subscription.retrieve, subscription_id
            )

            return convert_subscription(stripe_sub)

        except stripe.InvalidRequestError:
            logger.warning("subscription_not_found", subscription_id=subscription_id)
            return None
        except stripe.StripeError as e:
            logger.error(
                "subscription_fetch_failed", subscription_id=subscription_id, error=str(e)
            )
            raise StripeSubscriptionError(
                f"Failed to fetch subscription: {str(e)}",
                details={"subscription_id": subscription_id},
                original_error=e,
                retryable=_is_transient(e),
            )

    async def list_customer_subscriptions(self, customer_id: str) -> list[Subscription]:
        """List all subscriptions for a customer, whatever their status."""
        try:
            logger.debug("listing_customer_subscriptions", customer_id=customer_id)

            result = await self._run_in_executor(
                stripe.Subscription.list,
                customer=customer_id,
                status="all",
                expand=["data.default_payment_method"],
                limit=100,
            )

            subscriptions = [convert_subscription(sub) for sub in result["data"]]
            logger.debug(
                "customer_subscriptions_listed",
                customer_id=customer_id,
                count=len(subscriptions),
            )
            return subscriptions

        except stripe.StripeError as e:
            logger.error(
                "list_subscriptions_failed", customer_id=customer_id, error=str(e)
            )
            raise StripeSubscriptionError(
                f"Failed to list subscriptions: {str(e)}",
                details={"customer_id": customer_id},
                original_error=e,
                retryable=_is_transient(e),
            )

    async def update_subscription_price(
        self, subscription_id: str, item_id: str, price_id: str
    ) -> Subscription:
        """Swap the price of one subscription item and keep the subscription running."""
        try:
            logger.info(
                "updating_subscription_price",
                subscription_id=subscription_id,
                item_id=item_id,
                price_id=price_id,
            )

            stripe_sub = await self._run_in_executor(
                stripe.Subscription.modify,
                subscription_id,
                cancel_at_period_end=False,
                items=[{"id": item_id, "price": price_id}],
            )

            return convert_subscription(stripe_sub)

        except stripe.StripeError as e:
            logger.error(
                "subscription_update_failed",
                subscription_id=subscription_id,
                price_id=price_id,
                error=str(e),
            )
            raise StripeSubscriptionError(
                f"Failed to update subscription: {str(e)}",
                details={"subscription_id": subscription_id, "price_id": price_id},
                original_error=e,
                retryable=_is_transient(e),
            )

    async def set_default_payment_method(
        self, subscription_id: str, payment_method_id: str
    ) -> Subscription:
        """Set the subscription's default payment method (last write wins)."""
        try:
            logger.info(
                "setting_default_payment_method",
                subscription_id=subscription_id,
                payment_method_id=payment_method_id,
            )

            stripe_sub = await self._run_in_executor(
                stripe.Subscription.modify,
                subscription_id,
                default_payment_method=payment_method_id,
            )

            return convert_subscription(stripe_sub)

        except stripe.StripeError as e:
            logger.error(
                "default_payment_method_update_failed",
                subscription_id=subscription_id,
                payment_method_id=payment_method_id,
                error=str(e),
            )
            raise StripeSubscriptionError(
                f"Failed to set default payment method: {str(e)}",
                details={
                    "subscription_id": subscription_id,
                    "payment_method_id": payment_method_id,
                },
                original_error=e,
                retryable=_is_transient(e),
            )

    async def cancel_subscription(
        self, subscription_id: str, at_period_end: bool = False
    ) -> Subscription:
        """Cancel a subscription."""
        try:
            logger.info(
                "canceling_subscription",
                subscription_id=subscription_id,
                at_period_end=at_period_end,
            )

            if at_period_end:
                stripe_sub = await self._run_in_executor(
                    stripe.Subscription.modify,
                    subscription_id,
                    cancel_at_period_end=True,
                )
            else:
                stripe_sub = await self._run_in_executor(
                    stripe.Subscription.cancel,
                    subscription_id,
                )

            subscription = convert_subscription(stripe_sub)
            logger.info("subscription_canceled", subscription_id=subscription_id)
            return subscription

        except stripe.StripeError as e:
            logger.error(
                "subscription_cancel_failed", subscription_id=subscription_id, error=str(e)
            )
            raise StripeSubscriptionError(
                f"Failed to cancel subscription: {str(e)}",
                details={"subscription_id": subscription_id},
                original_error=e,
                retryable=_is_transient(e),
            )

    # Invoice operations

    async def get_invoice(
        self, invoice_id: str, expand_payments: bool = False
    ) -> Invoice | None:
        """Get an invoice by ID, optionally with its payments expanded."""
        try:
            logger.debug(
                "fetching_invoice", invoice_id=invoice_id, expand_payments=expand_payments
            )

            expand = ["confirmation_secret"]
            if expand_payments:
                expand.append("payments")

            stripe_invoice = await self._run_in_executor(
                stripe.Invoice.retrieve, invoice_id, expand=expand
            )

            return convert_invoice(stripe_invoice)

        except stripe.InvalidRequestError:
            logger.warning("invoice_not_found", invoice_id=invoice_id)
            return None
        except stripe.StripeError as e:
            logger.error("invoice_fetch_failed", invoice_id=invoice_id, error=str(e))
            raise StripeInvoiceError(
                f"Failed to fetch invoice: {str(e)}",
                details={"invoice_id": invoice_id},
                original_error=e,
                retryable=_is_transient(e),
            )

    async def preview_invoice(
        self,
        customer_id: str,
        subscription_id: str,
        items: list[dict[str, Any]],
    ) -> InvoicePreview:
        """Preview the invoice resulting from the given subscription item changes."""
        try:
            logger.debug(
                "previewing_invoice",
                customer_id=customer_id,
                subscription_id=subscription_id,
                item_count=len(items),
            )

            stripe_invoice = await self._run_in_executor(
                stripe.Invoice.create_preview,
                customer=customer_id,
                subscription=subscription_id,
                subscription_details={"items": items},
            )

            return convert_invoice_preview(stripe_invoice)

        except stripe.StripeError as e:
            logger.error(
                "invoice_preview_failed",
                subscription_id=subscription_id,
                error=str(e),
            )
            raise StripeInvoiceError(
                f"Failed to preview invoice: {str(e)}",
                details={"customer_id": customer_id, "subscription_id": subscription_id},
                original_error=e,
                retryable=_is_transient(e),
            )

    # Payment intent operations

    async def get_payment_intent(self, payment_intent_id: str) -> PaymentIntent | None:
        """Get a payment intent by ID."""
        try:
            logger.debug("fetching_payment_intent", payment_intent_id=payment_intent_id)

            stripe_pi = await self._run_in_executor(
                stripe.PaymentIntent.retrieve, payment_intent_id
            )

            return convert_payment_intent(stripe_pi)

        except stripe.InvalidRequestError:
            logger.warning("payment_intent_not_found", payment_intent_id=payment_intent_id)
            return None
        except stripe.StripeError as e:
            logger.error(
                "payment_intent_fetch_failed",
                payment_intent_id=payment_intent_id,
                error=str(e),
            )
            raise StripePaymentError(
                f"Failed to fetch payment intent: {str(e)}",
                details={"payment_intent_id": payment_intent_id},
                original_error=e,
                retryable=_is_transient(e),
            )

    # Health check

    async def health_check(self) -> bool:
        """Check if the Stripe API is accessible."""
        try:
            logger.debug("checking_stripe_health")

            await self._run_in_executor(stripe.Customer.list, limit=1)

            logger.info("stripe_health_check_passed")
            return True

        except (stripe.StripeError, StripeBillingError) as e:
            logger.error("stripe_health_check_failed", error=str(e))
            return False
