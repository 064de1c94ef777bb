"""
FastAPI dependencies for the billing routes.

Each one can be replaced through app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends, HTTPException, Request, status

from ..client import StripeClient, StripeClientInterface
from ..config import StripeConfig
from ..service import BillingService
from ..settings import Settings, get_settings
from ..webhooks import EventVerifier


@lru_cache
def _client_for(config: StripeConfig) -> StripeClient:
    return StripeClient(config)


def get_stripe_client(settings: Settings = Depends(get_settings)) -> StripeClientInterface:
    """Stripe client built from the process-wide configuration."""
    return _client_for(settings.stripe_config())


def get_event_verifier(settings: Settings = Depends(get_settings)) -> EventVerifier:
    """Webhook verifier for the configured signing secret."""
    return EventVerifier(
        settings.STRIPE_WEBHOOK_SECRET or None,
        tolerance=settings.STRIPE_WEBHOOK_TOLERANCE,
    )


def get_billing_service(
    client: StripeClientInterface = Depends(get_stripe_client),
    settings: Settings = Depends(get_settings),
    verifier: EventVerifier = Depends(get_event_verifier),
) -> BillingService:
    return BillingService(client, settings, verifier=verifier)


def get_customer_id(
    request: Request, settings: Settings = Depends(get_settings)
) -> str | None:
    """Customer ID of the session, read from the customer cookie."""
    return request.cookies.get(settings.CUSTOMER_COOKIE_NAME) or None


def require_customer_id(customer_id: str | None = Depends(get_customer_id)) -> str:
    """Require a session customer."""
    if not customer_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing customer cookie.",
        )
    return customer_id
