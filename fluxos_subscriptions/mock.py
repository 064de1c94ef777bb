"""
Mock Stripe client for testing.

Provides an in-memory implementation of StripeClientInterface for testing
without making real Stripe API calls. Subscriptions are created incomplete,
the way Stripe creates them with payment_behavior=default_incomplete, and
simulate_payment() plays the payer confirming the first invoice.
"""

import dataclasses
import time
import uuid
from datetime import datetime
from typing import Any

from .client import StripeClientInterface
from .exceptions import (
    StripeCustomerError,
    StripeInvoiceError,
    StripePaymentError,
    StripeSubscriptionError,
)
from .models import (
    BillingReason,
    Customer,
    EventType,
    Invoice,
    InvoicePayment,
    InvoicePreview,
    InvoicePreviewLine,
    PaymentIntent,
    Price,
    Subscription,
    SubscriptionItem,
    SubscriptionStatus,
    WebhookEvent,
)


# Factory functions for creating test data


def customer_factory(**kwargs: Any) -> Customer:
    """Create a test Customer."""
    return Customer(
        id=kwargs.get("id", f"cus_{uuid.uuid4().hex[:14]}"),
        email=kwargs.get("email", f"test-{uuid.uuid4().hex[:6]}@example.com"),
        name=kwargs.get("name"),
        metadata=kwargs.get("metadata", {}),
        created_at=kwargs.get("created_at", datetime.utcnow()),
    )


def price_factory(**kwargs: Any) -> Price:
    """Create a test Price."""
    return Price(
        id=kwargs.get("id", f"price_{uuid.uuid4().hex[:14]}"),
        product_id=kwargs.get("product_id", f"prod_{uuid.uuid4().hex[:14]}"),
        unit_amount=kwargs.get("unit_amount", 4900),  # $49.00
        currency=kwargs.get("currency", "usd"),
        recurring_interval=kwargs.get("recurring_interval", "month"),
        lookup_key=kwargs.get("lookup_key"),
        active=kwargs.get("active", True),
    )


def subscription_factory(**kwargs: Any) -> Subscription:
    """Create a test Subscription."""
    items = kwargs.get("items")
    if items is None:
        items = [
            SubscriptionItem(
                id=f"si_{uuid.uuid4().hex[:14]}",
                price_id=kwargs.get("price_id", f"price_{uuid.uuid4().hex[:14]}"),
            )
        ]
    return Subscription(
        id=kwargs.get("id", f"sub_{uuid.uuid4().hex[:14]}"),
        customer_id=kwargs.get("customer_id", f"cus_{uuid.uuid4().hex[:14]}"),
        status=kwargs.get("status", SubscriptionStatus.ACTIVE.value),
        items=items,
        default_payment_method_id=kwargs.get("default_payment_method_id"),
        latest_invoice_id=kwargs.get("latest_invoice_id"),
        latest_invoice=kwargs.get("latest_invoice"),
        cancel_at_period_end=kwargs.get("cancel_at_period_end", False),
        canceled_at=kwargs.get("canceled_at"),
        metadata=kwargs.get("metadata", {}),
    )


def payment_intent_factory(**kwargs: Any) -> PaymentIntent:
    """Create a test PaymentIntent."""
    payment_intent_id = kwargs.get("id", f"pi_{uuid.uuid4().hex[:14]}")
    return PaymentIntent(
        id=payment_intent_id,
        payment_method_id=kwargs.get("payment_method_id"),
        status=kwargs.get("status", "requires_payment_method"),
        client_secret=kwargs.get(
            "client_secret", f"{payment_intent_id}_secret_{uuid.uuid4().hex[:16]}"
        ),
    )


def invoice_factory(**kwargs: Any) -> Invoice:
    """Create a test Invoice."""
    return Invoice(
        id=kwargs.get("id", f"in_{uuid.uuid4().hex[:14]}"),
        subscription_id=kwargs.get("subscription_id"),
        customer_id=kwargs.get("customer_id"),
        billing_reason=kwargs.get(
            "billing_reason", BillingReason.SUBSCRIPTION_CREATE.value
        ),
        status=kwargs.get("status", "open"),
        client_secret=kwargs.get("client_secret"),
        payments=kwargs.get("payments"),
        amount_due=kwargs.get("amount_due", 4900),
        currency=kwargs.get("currency", "usd"),
    )


def invoice_payload(invoice: Invoice, expand_payments: bool = False) -> dict[str, Any]:
    """Render an Invoice the way Stripe serializes it in API responses and events."""
    payload: dict[str, Any] = {
        "id": invoice.id,
        "object": "invoice",
        "customer": invoice.customer_id,
        "billing_reason": invoice.billing_reason,
        "status": invoice.status,
        "amount_due": invoice.amount_due,
        "currency": invoice.currency,
        "parent": {
            "type": "subscription_details",
            "subscription_details": {"subscription": invoice.subscription_id},
        }
        if invoice.subscription_id
        else None,
        "confirmation_secret": {
            "client_secret": invoice.client_secret,
            "type": "payment_intent",
        }
        if invoice.client_secret
        else None,
    }
    if expand_payments and invoice.payments is not None:
        payload["payments"] = {
            "object": "list",
            "data": [
                {
                    "id": payment.id,
                    "object": "invoice_payment",
                    "status": payment.status,
                    "payment": {
                        "type": "payment_intent",
                        "payment_intent": payment.payment_intent_id,
                    },
                }
                for payment in invoice.payments
            ],
        }
    return payload


def event_payload(event_type: str, obj: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
    """Build the JSON body of a webhook delivery."""
    return {
        "id": kwargs.get("id", f"evt_{uuid.uuid4().hex[:14]}"),
        "object": "event",
        "type": event_type,
        "created": kwargs.get("created", int(time.time())),
        "livemode": kwargs.get("livemode", False),
        "data": {"object": obj},
    }


def webhook_event_factory(**kwargs: Any) -> WebhookEvent:
    """Create a test WebhookEvent."""
    return WebhookEvent(
        id=kwargs.get("id", f"evt_{uuid.uuid4().hex[:14]}"),
        type=kwargs.get("type", EventType.INVOICE_PAYMENT_SUCCEEDED.value),
        data=kwargs.get("data", {"object": {}}),
        created=kwargs.get("created", datetime.utcnow()),
        livemode=kwargs.get("livemode", False),
    )


class MockStripeClient(StripeClientInterface):
    """Mock Stripe client for testing.

    Stores data in memory and simulates Stripe API behavior. Every API call
    is appended to ``calls`` so tests can assert on call counts.

    Example:
        mock_client = MockStripeClient()
        customer = await mock_client.create_customer(email="new@example.com")
        subscription = await mock_client.create_subscription(customer.id, "price_basic")
        payload = mock_client.simulate_payment(subscription.latest_invoice_id, "pm_card_visa")
    """

    def __init__(self) -> None:
        """Initialize the mock client."""
        self._customers: dict[str, Customer] = {}
        self._subscriptions: dict[str, Subscription] = {}
        self._invoices: dict[str, Invoice] = {}
        self._payment_intents: dict[str, PaymentIntent] = {}
        self._prices: dict[str, Price] = {}
        self.calls: list[str] = []

        # Control flags for testing error scenarios
        self._should_fail = False
        self._fail_message = "Mock failure"
        self._fail_operation: str | None = None
        self._is_healthy = True
        self._expand_latest_invoice = True
        self._client_secret_available = True

    # Control methods for testing

    def set_should_fail(
        self,
        should_fail: bool,
        message: str = "Mock failure",
        operation: str | None = None,
    ) -> None:
        """Configure the mock to fail on the next operation (or the next call of one)."""
        self._should_fail = should_fail
        self._fail_message = message
        self._fail_operation = operation

    def set_healthy(self, healthy: bool) -> None:
        """Set health check result."""
        self._is_healthy = healthy

    def set_expand_latest_invoice(self, expand: bool) -> None:
        """Control whether create_subscription returns the latest invoice expanded."""
        self._expand_latest_invoice = expand

    def set_client_secret_available(self, available: bool) -> None:
        """Control whether new invoices carry a confirmation secret."""
        self._client_secret_available = available

    def add_customer(self, customer: Customer) -> None:
        """Add a customer to the mock store."""
        self._customers[customer.id] = customer

    def add_subscription(self, subscription: Subscription) -> None:
        """Add a subscription to the mock store."""
        self._subscriptions[subscription.id] = subscription

    def add_invoice(self, invoice: Invoice) -> None:
        """Add an invoice to the mock store."""
        self._invoices[invoice.id] = invoice

    def add_payment_intent(self, payment_intent: PaymentIntent) -> None:
        """Add a payment intent to the mock store."""
        self._payment_intents[payment_intent.id] = payment_intent

    def add_price(self, price: Price) -> None:
        """Add a price to the mock store."""
        self._prices[price.id] = price

    def clear(self) -> None:
        """Clear all stored data."""
        self._customers.clear()
        self._subscriptions.clear()
        self._invoices.clear()
        self._payment_intents.clear()
        self._prices.clear()
        self.calls.clear()

    def call_count(self, operation: str) -> int:
        """How many times an operation was called."""
        return self.calls.count(operation)

    def _check_failure(self, operation: str, exception_class: type[Exception]) -> None:
        """Record the call, then raise if the mock is set to fail it."""
        self.calls.append(operation)
        if self._should_fail and self._fail_operation in (None, operation):
            self._should_fail = False  # Reset after one failure
            raise exception_class(self._fail_message)

    # Customer operations

    async def create_customer(
        self,
        email: str,
        name: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> Customer:
        """Create a mock customer."""
        self._check_failure("create_customer", StripeCustomerError)

        customer = customer_factory(
            email=email,
            name=name,
            metadata=metadata or {},
        )
        self._customers[customer.id] = customer
        return customer

    async def get_customer(self, customer_id: str) -> Customer | None:
        """Get a customer by ID."""
        self._check_failure("get_customer", StripeCustomerError)
        return self._customers.get(customer_id)

    # Price operations

    async def list_prices(self, lookup_keys: list[str] | None = None) -> list[Price]:
        """List active prices, optionally restricted to lookup keys."""
        self._check_failure("list_prices", StripePaymentError)

        prices = [p for p in self._prices.values() if p.active]
        if lookup_keys:
            prices = [p for p in prices if p.lookup_key in lookup_keys]
        return prices

    # Subscription operations

    async def create_subscription(
        self,
        customer_id: str,
        price_id: str,
        metadata: dict[str, str] | None = None,
    ) -> Subscription:
        """Create an incomplete subscription with an open first invoice."""
        self._check_failure("create_subscription", StripeSubscriptionError)

        if customer_id not in self._customers:
            raise StripeSubscriptionError(
                f"Customer not found: {customer_id}",
                details={"customer_id": customer_id},
            )

        subscription = subscription_factory(
            customer_id=customer_id,
            price_id=price_id,
            status=SubscriptionStatus.INCOMPLETE.value,
            metadata=metadata or {},
        )
        price = self._prices.get(price_id)
        payment_intent = payment_intent_factory()
        invoice = invoice_factory(
            subscription_id=subscription.id,
            customer_id=customer_id,
            client_secret=(
                payment_intent.client_secret if self._client_secret_available else None
            ),
            payments=[
                InvoicePayment(
                    id=f"inpay_{uuid.uuid4().hex[:14]}",
                    payment_intent_id=payment_intent.id,
                    status="open",
                )
            ],
            amount_due=price.unit_amount if price else 0,
        )
        self._payment_intents[payment_intent.id] = payment_intent
        self._invoices[invoice.id] = invoice

        subscription.latest_invoice_id = invoice.id
        self._subscriptions[subscription.id] = subscription

        if self._expand_latest_invoice:
            return dataclasses.replace(subscription, latest_invoice=invoice)
        return dataclasses.replace(subscription)

    async def get_subscription(self, subscription_id: str) -> Subscription | None:
        """Get a subscription by ID."""
        self._check_failure("get_subscription", StripeSubscriptionError)
        return self._subscriptions.get(subscription_id)

    async def list_customer_subscriptions(self, customer_id: str) -> list[Subscription]:
        """List all subscriptions for a customer."""
        self._check_failure("list_customer_subscriptions", StripeSubscriptionError)
        return [
            sub
            for sub in self._subscriptions.values()
            if sub.customer_id == customer_id
        ]

    def _require_subscription(self, subscription_id: str) -> Subscription:
        subscription = self._subscriptions.get(subscription_id)
        if not subscription:
            raise StripeSubscriptionError(
                f"Subscription not found: {subscription_id}",
                details={"subscription_id": subscription_id},
            )
        return subscription

    async def update_subscription_price(
        self, subscription_id: str, item_id: str, price_id: str
    ) -> Subscription:
        """Swap the price of one subscription item."""
        self._check_failure("update_subscription_price", StripeSubscriptionError)

        subscription = self._require_subscription(subscription_id)
        for item in subscription.items:
            if item.id == item_id:
                item.price_id = price_id
                break
        else:
            raise StripeSubscriptionError(
                f"Subscription item not found: {item_id}",
                details={"subscription_id": subscription_id, "item_id": item_id},
            )
        subscription.cancel_at_period_end = False
        return subscription

    async def set_default_payment_method(
        self, subscription_id: str, payment_method_id: str
    ) -> Subscription:
        """Set the subscription's default payment method."""
        self._check_failure("set_default_payment_method", StripeSubscriptionError)

        subscription = self._require_subscription(subscription_id)
        subscription.default_payment_method_id = payment_method_id
        return subscription

    async def cancel_subscription(
        self, subscription_id: str, at_period_end: bool = False
    ) -> Subscription:
        """Cancel a subscription."""
        self._check_failure("cancel_subscription", StripeSubscriptionError)

        subscription = self._require_subscription(subscription_id)

        if at_period_end:
            subscription.cancel_at_period_end = True
        else:
            subscription.status = SubscriptionStatus.CANCELED.value
            subscription.canceled_at = datetime.utcnow()

        return subscription

    # Invoice operations

    async def get_invoice(
        self, invoice_id: str, expand_payments: bool = False
    ) -> Invoice | None:
        """Get an invoice by ID; payments are only present when expanded."""
        self._check_failure("get_invoice", StripeInvoiceError)

        invoice = self._invoices.get(invoice_id)
        if invoice is None:
            return None
        if expand_payments:
            return dataclasses.replace(
                invoice, payments=list(invoice.payments) if invoice.payments else []
            )
        return dataclasses.replace(invoice, payments=None)

    async def preview_invoice(
        self,
        customer_id: str,
        subscription_id: str,
        items: list[dict[str, Any]],
    ) -> InvoicePreview:
        """Price the subscription's items at their new prices."""
        self._check_failure("preview_invoice", StripeInvoiceError)

        subscription = self._require_subscription(subscription_id)
        changes = {change["id"]: change for change in items if "id" in change}

        lines = []
        for item in subscription.items:
            change = changes.get(item.id, {})
            price_id = change.get("price", item.price_id)
            quantity = change.get("quantity", item.quantity)
            price = self._prices.get(price_id)
            lines.append(
                InvoicePreviewLine(
                    amount=(price.unit_amount if price else 0) * quantity,
                    description=f"{quantity} x {price_id}",
                    price_id=price_id,
                    proration=item.id in changes,
                )
            )

        total = sum(line.amount for line in lines)
        return InvoicePreview(
            customer_id=customer_id,
            subscription_id=subscription_id,
            amount_due=total,
            subtotal=total,
            total=total,
            lines=lines,
        )

    # Payment intent operations

    async def get_payment_intent(self, payment_intent_id: str) -> PaymentIntent | None:
        """Get a payment intent by ID."""
        self._check_failure("get_payment_intent", StripePaymentError)
        return self._payment_intents.get(payment_intent_id)

    # Health check

    async def health_check(self) -> bool:
        """Return configured health status."""
        return self._is_healthy

    # Simulation helpers

    def simulate_payment(
        self,
        invoice_id: str,
        payment_method_id: str,
        expand_payments: bool = False,
    ) -> dict[str, Any]:
        """Simulate the payer confirming an invoice's payment.

        Attaches the payment method to the invoice's payment intent, marks the
        invoice paid and the subscription active, and returns the body of the
        resulting invoice.payment_succeeded webhook. The body is slim (no
        payments expansion) unless expand_payments is set.
        """
        invoice = self._invoices.get(invoice_id)
        if not invoice:
            raise ValueError(f"Invoice not found: {invoice_id}")

        for payment in invoice.payments or []:
            payment_intent = self._payment_intents.get(payment.payment_intent_id or "")
            if payment_intent:
                payment_intent.payment_method_id = payment_method_id
                payment_intent.status = "succeeded"
            payment.status = "paid"

        invoice.status = "paid"
        subscription = self._subscriptions.get(invoice.subscription_id or "")
        if subscription:
            subscription.status = SubscriptionStatus.ACTIVE.value

        return event_payload(
            EventType.INVOICE_PAYMENT_SUCCEEDED.value,
            invoice_payload(invoice, expand_payments=expand_payments),
        )
