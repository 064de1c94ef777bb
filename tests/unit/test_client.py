"""Tests for StripeClient against patched Stripe resources."""

import time
from unittest.mock import patch

import pytest
import stripe

from fluxos_subscriptions import StripeClient, StripeConfig
from fluxos_subscriptions.exceptions import (
    StripeConnectionError,
    StripeInvoiceError,
    StripeSubscriptionError,
)


def stripe_subscription(**overrides):
    data = {
        "id": "sub_123",
        "object": "subscription",
        "customer": "cus_123",
        "status": "incomplete",
        "items": {
            "object": "list",
            "data": [{"id": "si_1", "price": {"id": "price_basic"}, "quantity": 1}],
        },
        "default_payment_method": None,
        "latest_invoice": {
            "id": "in_123",
            "object": "invoice",
            "billing_reason": "subscription_create",
            "confirmation_secret": {"client_secret": "pi_123_secret_abc"},
        },
        "cancel_at_period_end": False,
        "canceled_at": None,
        "metadata": {},
    }
    data.update(overrides)
    return data


@pytest.fixture
def client(test_config: StripeConfig) -> StripeClient:
    return StripeClient(test_config)


class TestCreateSubscription:
    """Tests for create_subscription."""

    @pytest.mark.asyncio
    async def test_requests_incomplete_subscription(self, client: StripeClient):
        with patch.object(stripe.Subscription, "create", return_value=stripe_subscription()) as create:
            subscription = await client.create_subscription("cus_123", "price_basic")

        kwargs = create.call_args.kwargs
        assert kwargs["payment_behavior"] == "default_incomplete"
        assert kwargs["items"] == [{"price": "price_basic"}]
        assert "latest_invoice.confirmation_secret" in kwargs["expand"]
        assert kwargs["api_key"] == "sk_test_fake123456789"

        assert subscription.id == "sub_123"
        assert subscription.price_id == "price_basic"
        assert subscription.latest_invoice_id == "in_123"
        assert subscription.latest_invoice.client_secret == "pi_123_secret_abc"

    @pytest.mark.asyncio
    async def test_unexpanded_latest_invoice(self, client: StripeClient):
        response = stripe_subscription(latest_invoice="in_123")
        with patch.object(stripe.Subscription, "create", return_value=response):
            subscription = await client.create_subscription("cus_123", "price_basic")

        assert subscription.latest_invoice_id == "in_123"
        assert subscription.latest_invoice is None

    @pytest.mark.asyncio
    async def test_stripe_error_is_wrapped(self, client: StripeClient):
        error = stripe.InvalidRequestError("No such price: 'price_x'", "items")
        with patch.object(stripe.Subscription, "create", side_effect=error):
            with pytest.raises(StripeSubscriptionError, match="No such price") as exc_info:
                await client.create_subscription("cus_123", "price_x")

        assert exc_info.value.original_error is error
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_rate_limit_is_retryable(self, client: StripeClient):
        with patch.object(
            stripe.Subscription, "create", side_effect=stripe.RateLimitError("Too many requests")
        ):
            with pytest.raises(StripeSubscriptionError) as exc_info:
                await client.create_subscription("cus_123", "price_basic")

        assert exc_info.value.retryable is True


class TestTimeout:
    """Every call is bounded by the configured timeout."""

    @pytest.mark.asyncio
    async def test_slow_call_raises_connection_error(self):
        client = StripeClient(StripeConfig(api_key="sk_test_fake123456789", timeout=0.05))

        def slow_retrieve(*args, **kwargs):
            time.sleep(0.5)

        with patch.object(stripe.PaymentIntent, "retrieve", side_effect=slow_retrieve):
            with pytest.raises(StripeConnectionError, match="timed out") as exc_info:
                await client.get_payment_intent("pi_123")

        assert exc_info.value.retryable is True


class TestLookups:
    """Lookups return None for unknown objects."""

    @pytest.mark.asyncio
    async def test_missing_subscription(self, client: StripeClient):
        error = stripe.InvalidRequestError("No such subscription: 'sub_x'", "id")
        with patch.object(stripe.Subscription, "retrieve", side_effect=error):
            assert await client.get_subscription("sub_x") is None

    @pytest.mark.asyncio
    async def test_get_payment_intent(self, client: StripeClient):
        response = {
            "id": "pi_123",
            "object": "payment_intent",
            "payment_method": "pm_card_visa",
            "status": "succeeded",
            "client_secret": "pi_123_secret_abc",
        }
        with patch.object(stripe.PaymentIntent, "retrieve", return_value=response) as retrieve:
            payment_intent = await client.get_payment_intent("pi_123")

        retrieve.assert_called_once_with("pi_123", api_key="sk_test_fake123456789")
        assert payment_intent.payment_method_id == "pm_card_visa"


class TestInvoices:
    """Tests for invoice retrieval and previews."""

    @pytest.mark.asyncio
    async def test_get_invoice_with_payments(self, client: StripeClient):
        response = {
            "id": "in_123",
            "object": "invoice",
            "billing_reason": "subscription_create",
            "parent": {"subscription_details": {"subscription": "sub_123"}},
            "confirmation_secret": None,
            "payments": {
                "object": "list",
                "data": [
                    {
                        "id": "inpay_1",
                        "status": "paid",
                        "payment": {"type": "payment_intent", "payment_intent": "pi_123"},
                    }
                ],
            },
        }
        with patch.object(stripe.Invoice, "retrieve", return_value=response) as retrieve:
            invoice = await client.get_invoice("in_123", expand_payments=True)

        assert "payments" in retrieve.call_args.kwargs["expand"]
        assert invoice.subscription_id == "sub_123"
        assert invoice.payments[0].payment_intent_id == "pi_123"

    @pytest.mark.asyncio
    async def test_legacy_subscription_field(self, client: StripeClient):
        response = {"id": "in_123", "object": "invoice", "subscription": "sub_legacy"}
        with patch.object(stripe.Invoice, "retrieve", return_value=response):
            invoice = await client.get_invoice("in_123")

        assert invoice.subscription_id == "sub_legacy"
        assert invoice.payments is None

    @pytest.mark.asyncio
    async def test_invoice_fetch_failure(self, client: StripeClient):
        with patch.object(
            stripe.Invoice, "retrieve", side_effect=stripe.APIConnectionError("Network down")
        ):
            with pytest.raises(StripeInvoiceError) as exc_info:
                await client.get_invoice("in_123")

        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_preview_invoice(self, client: StripeClient):
        response = {
            "object": "invoice",
            "customer": "cus_123",
            "subscription": "sub_123",
            "amount_due": 1000,
            "subtotal": 1000,
            "total": 1000,
            "currency": "usd",
            "lines": {
                "object": "list",
                "data": [
                    {"amount": 1000, "description": "Premium", "price": {"id": "price_premium"}}
                ],
            },
        }
        items = [{"id": "si_1", "price": "price_premium"}]
        with patch.object(stripe.Invoice, "create_preview", return_value=response) as create_preview:
            preview = await client.preview_invoice("cus_123", "sub_123", items)

        kwargs = create_preview.call_args.kwargs
        assert kwargs["subscription_details"] == {"items": items}
        assert preview.amount_due == 1000
        assert preview.lines[0].price_id == "price_premium"


class TestHealthCheck:
    """Tests for health_check."""

    @pytest.mark.asyncio
    async def test_healthy(self, client: StripeClient):
        with patch.object(stripe.Customer, "list", return_value={"data": []}):
            assert await client.health_check() is True

    @pytest.mark.asyncio
    async def test_unhealthy(self, client: StripeClient):
        with patch.object(
            stripe.Customer, "list", side_effect=stripe.AuthenticationError("Invalid API key")
        ):
            assert await client.health_check() is False


def test_global_api_key_untouched(test_config: StripeConfig):
    before = stripe.api_key
    StripeClient(test_config)
    assert stripe.api_key == before


