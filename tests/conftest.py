"""Shared test fixtures."""

import os

import pytest
from fastapi.testclient import TestClient

from fluxos_subscriptions import StripeClient, StripeConfig
from fluxos_subscriptions.api import create_app
from fluxos_subscriptions.api.dependencies import get_stripe_client
from fluxos_subscriptions.mock import MockStripeClient, customer_factory, price_factory
from fluxos_subscriptions.settings import Settings

from tests.helpers import WEBHOOK_SECRET


def pytest_configure(config):
    config.addinivalue_line("markers", "e2e: tests against the live Stripe test API")
    config.addinivalue_line("markers", "unit: tests without network access")


@pytest.fixture(autouse=True)
def configure_structlog():
    """Configure structlog for testing."""
    import structlog

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@pytest.fixture
def mock_client() -> MockStripeClient:
    """Create a mock Stripe client for unit tests."""
    return MockStripeClient()


@pytest.fixture
def seeded_client(mock_client: MockStripeClient) -> MockStripeClient:
    """Mock client with one customer and the basic/premium prices."""
    mock_client.add_customer(customer_factory(id="cus_test123", email="test@example.com"))
    mock_client.add_price(
        price_factory(id="price_basic", unit_amount=500, lookup_key="sample_basic")
    )
    mock_client.add_price(
        price_factory(id="price_premium", unit_amount=1500, lookup_key="sample_premium")
    )
    return mock_client


@pytest.fixture
def test_config() -> StripeConfig:
    """Create a test config with fake API key."""
    return StripeConfig(
        api_key="sk_test_fake123456789",
        webhook_secret=WEBHOOK_SECRET,
        publishable_key="pk_test_fake123456789",
    )


@pytest.fixture
def test_settings() -> Settings:
    """Settings that do not depend on the environment."""
    return Settings(
        STRIPE_SECRET_KEY="sk_test_fake123456789",
        STRIPE_PUBLISHABLE_KEY="pk_test_fake123456789",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        PRICE_IDS={"basic": "price_basic", "premium": "price_premium"},
        _env_file=None,
    )


@pytest.fixture
def api_client(test_settings: Settings, seeded_client: MockStripeClient):
    """Test client for the billing API backed by the mock Stripe client."""
    app = create_app(test_settings)
    app.dependency_overrides[get_stripe_client] = lambda: seeded_client
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def live_config() -> StripeConfig | None:
    """Create a config for E2E tests with real Stripe.

    Returns None if STRIPE_TEST_API_KEY is not set.
    """
    api_key = os.environ.get("STRIPE_TEST_API_KEY")
    if not api_key:
        return None

    return StripeConfig(
        api_key=api_key,
        webhook_secret=os.environ.get("STRIPE_TEST_WEBHOOK_SECRET"),
    )


@pytest.fixture
def live_client(live_config: StripeConfig | None) -> StripeClient | None:
    """Create a real Stripe client for E2E tests.

    Returns None if STRIPE_TEST_API_KEY is not set.
    """
    if not live_config:
        return None
    return StripeClient(live_config)


@pytest.fixture
def test_price_id() -> str | None:
    """Get a test price ID for subscription tests.

    Returns None if STRIPE_TEST_PRICE_ID is not set.
    """
    return os.environ.get("STRIPE_TEST_PRICE_ID")
