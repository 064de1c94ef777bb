"""Tests for BillingService."""

import pytest

from fluxos_subscriptions.exceptions import StripeValidationError, StripeWebhookError
from fluxos_subscriptions.mock import (
    MockStripeClient,
    event_payload,
    price_factory,
    subscription_factory,
)
from fluxos_subscriptions.models import SubscriptionItem, SubscriptionStatus
from fluxos_subscriptions.reconciliation import ReconciliationAction
from fluxos_subscriptions.service import BillingService
from fluxos_subscriptions.settings import Settings

from tests.helpers import encode_event, sign_payload


@pytest.fixture
def service(seeded_client: MockStripeClient, test_settings: Settings) -> BillingService:
    return BillingService(seeded_client, test_settings)


class TestConfigAndCustomers:
    """Config and customer operations."""

    @pytest.mark.asyncio
    async def test_get_config(self, service: BillingService):
        config = await service.get_config()

        assert config["publishable_key"] == "pk_test_fake123456789"
        assert {p.lookup_key for p in config["prices"]} == {"sample_basic", "sample_premium"}

    @pytest.mark.asyncio
    async def test_get_config_filters_by_lookup_key(
        self, seeded_client: MockStripeClient, service: BillingService
    ):
        seeded_client.add_price(price_factory(id="price_legacy", lookup_key="legacy"))

        config = await service.get_config()

        assert "price_legacy" not in {p.id for p in config["prices"]}

    @pytest.mark.asyncio
    async def test_create_customer(self, service: BillingService):
        customer = await service.create_customer("new@example.com", name="New User")

        assert customer.id.startswith("cus_")
        assert customer.email == "new@example.com"

    @pytest.mark.asyncio
    async def test_create_customer_requires_email(self, service: BillingService):
        with pytest.raises(StripeValidationError, match="Email is required"):
            await service.create_customer("")


class TestSubscriptionOperations:
    """Activation, update, cancel and listing."""

    @pytest.mark.asyncio
    async def test_activate_requires_price(self, service: BillingService):
        with pytest.raises(StripeValidationError, match="priceId is required"):
            await service.activate_subscription("cus_test123", "")

    @pytest.mark.asyncio
    async def test_activate(self, service: BillingService):
        result = await service.activate_subscription("cus_test123", "price_basic")
        assert result.client_secret

    @pytest.mark.asyncio
    async def test_update_maps_price_name(
        self, seeded_client: MockStripeClient, service: BillingService
    ):
        seeded_client.add_subscription(
            subscription_factory(
                id="sub_123",
                customer_id="cus_test123",
                items=[SubscriptionItem(id="si_1", price_id="price_basic")],
                cancel_at_period_end=True,
            )
        )

        subscription = await service.update_subscription("sub_123", "PREMIUM")

        assert subscription.price_id == "price_premium"
        assert subscription.cancel_at_period_end is False

    @pytest.mark.asyncio
    async def test_update_unknown_price(
        self, seeded_client: MockStripeClient, service: BillingService
    ):
        with pytest.raises(StripeValidationError, match="Unknown price"):
            await service.update_subscription("sub_123", "enterprise")

        assert seeded_client.calls == []

    @pytest.mark.asyncio
    async def test_update_missing_subscription(self, service: BillingService):
        with pytest.raises(StripeValidationError, match="Subscription not found"):
            await service.update_subscription("sub_missing", "premium")

    @pytest.mark.asyncio
    async def test_cancel_is_immediate(
        self, seeded_client: MockStripeClient, service: BillingService
    ):
        seeded_client.add_subscription(subscription_factory(id="sub_123"))

        subscription = await service.cancel_subscription("sub_123")

        assert subscription.status == SubscriptionStatus.CANCELED.value
        assert subscription.canceled_at is not None

    @pytest.mark.asyncio
    async def test_list_subscriptions(
        self, seeded_client: MockStripeClient, service: BillingService
    ):
        seeded_client.add_subscription(subscription_factory(customer_id="cus_test123"))
        seeded_client.add_subscription(
            subscription_factory(
                customer_id="cus_test123", status=SubscriptionStatus.CANCELED.value
            )
        )
        seeded_client.add_subscription(subscription_factory(customer_id="cus_other"))

        subscriptions = await service.list_subscriptions("cus_test123")

        assert len(subscriptions) == 2


class TestHandleWebhook:
    """Verification followed by reconciliation."""

    @pytest.mark.asyncio
    async def test_verified_event_is_reconciled(
        self, seeded_client: MockStripeClient, service: BillingService
    ):
        result = await service.activate_subscription("cus_test123", "price_basic")
        subscription = await seeded_client.get_subscription(result.subscription_id)
        body = seeded_client.simulate_payment(subscription.latest_invoice_id, "pm_card_visa")
        payload = encode_event(body)

        outcome = await service.handle_webhook(payload, sign_payload(payload))

        assert outcome.action == ReconciliationAction.BOUND
        assert subscription.default_payment_method_id == "pm_card_visa"

    @pytest.mark.asyncio
    async def test_unverified_event_makes_no_calls(
        self, seeded_client: MockStripeClient, service: BillingService
    ):
        payload = encode_event(event_payload("invoice.payment_succeeded", {"id": "in_1"}))

        with pytest.raises(StripeWebhookError):
            await service.handle_webhook(payload, sign_payload(payload, secret="whsec_wrong"))

        assert seeded_client.calls == []

    @pytest.mark.asyncio
    async def test_unconfigured_secret_rejects(self, seeded_client: MockStripeClient):
        settings = Settings(STRIPE_SECRET_KEY="sk_test_123", _env_file=None)
        service = BillingService(seeded_client, settings)
        payload = encode_event(event_payload("invoice.paid", {"id": "in_1"}))

        with pytest.raises(StripeWebhookError, match="not configured"):
            await service.handle_webhook(payload, sign_payload(payload))
