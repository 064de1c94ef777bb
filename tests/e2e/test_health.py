"""E2E tests for health check and basic connectivity."""

import os

import pytest

from fluxos_subscriptions import StripeClient


pytestmark = [
    pytest.mark.e2e,
    pytest.mark.skipif(
        not os.getenv("STRIPE_TEST_API_KEY"),
        reason="STRIPE_TEST_API_KEY not set",
    ),
]


class TestHealthCheckE2E:
    """E2E tests for health check functionality."""

    @pytest.mark.asyncio
    async def test_health_check_passes(self, live_client: StripeClient):
        """Test that health check passes with valid API key."""
        assert await live_client.health_check() is True

    @pytest.mark.asyncio
    async def test_list_prices(self, live_client: StripeClient):
        """Test listing prices from Stripe."""
        prices = await live_client.list_prices()
        # May be empty if no products are configured
        assert isinstance(prices, list)

    @pytest.mark.asyncio
    async def test_get_nonexistent_invoice(self, live_client: StripeClient):
        assert await live_client.get_invoice("in_nonexistent123") is None
