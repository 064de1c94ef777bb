"""
    fluxos-subscriptions - Stripe subscription activation and webhook reconciliation.

    Starts subscriptions that wait for the payer to confirm payment, and
    reconciles the webhook events Stripe sends afterwards.

Example usage:
    from fluxos_subscriptions import (
        EventVerifier,
        ReconciliationEngine,
        StripeClient,
        StripeConfig,
        SubscriptionActivator,
    )

    config = StripeConfig(
        api_key="sk_test_...",
        webhook_secret="whsec_...",
    )
    client = StripeClient(config)

    # Start a subscription; the client confirms payment with the secret
    result = await SubscriptionActivator(client).activate("cus_...", "price_...")

    # Later, in the webhook handler
    event = EventVerifier(config.webhook_secret).verify(body, signature_header)
    outcome = await ReconciliationEngine(client).handle(event)
"""

from .activation import SubscriptionActivator
from .client import StripeClient, StripeClientInterface
from .config import StripeConfig
from .exceptions import (
    ClientSecretUnavailableError,
    ResolutionMiss,
    StripeBillingError,
    StripeConfigError,
    StripeConnectionError,
    StripeCustomerError,
    StripeError,
    StripeInvoiceError,
    StripePaymentError,
    StripeSubscriptionError,
    StripeValidationError,
    StripeWebhookError,
)
from .models import (
    ActivationResult,
    BillingReason,
    Customer,
    EventType,
    Invoice,
    InvoicePayment,
    InvoicePreview,
    PaymentIntent,
    Price,
    Subscription,
    SubscriptionItem,
    SubscriptionStatus,
    WebhookEvent,
)
from .preview import PlanChangePreviewer
from .reconciliation import ReconciliationAction, ReconciliationEngine, ReconciliationResult
from .resolver import PaymentIntentResolver, extract_payment_intent_id
from .service import BillingService
from .version import __version__
from .webhooks import EventVerifier, verify_event

__all__ = [
    # Client
    "StripeClient",
    "StripeClientInterface",
    # Config
    "StripeConfig",
    # Components
    "EventVerifier",
    "verify_event",
    "PaymentIntentResolver",
    "extract_payment_intent_id",
    "ReconciliationEngine",
    "ReconciliationAction",
    "ReconciliationResult",
    "SubscriptionActivator",
    "PlanChangePreviewer",
    "BillingService",
    # Exceptions
    "StripeError",
    "StripeConfigError",
    "StripeWebhookError",
    "StripeValidationError",
    "StripeBillingError",
    "StripeConnectionError",
    "StripeCustomerError",
    "StripePaymentError",
    "StripeSubscriptionError",
    "StripeInvoiceError",
    "ClientSecretUnavailableError",
    "ResolutionMiss",
    # Models
    "ActivationResult",
    "BillingReason",
    "Customer",
    "EventType",
    "Invoice",
    "InvoicePayment",
    "InvoicePreview",
    "PaymentIntent",
    "Price",
    "Subscription",
    "SubscriptionItem",
    "SubscriptionStatus",
    "WebhookEvent",
    # Version
    "__version__",
]
