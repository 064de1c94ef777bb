"""
Stripe data models.

Snapshots of the Stripe objects the subscription flow reads. Fields that
Stripe only returns when expanded are optional, and an absent field is a
normal input rather than an error.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SubscriptionStatus(str, Enum):
    """Common Stripe subscription statuses.

    Subscription.status is kept as a plain string; these are only names for
    the values the service compares against.
    """

    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    TRIALING = "trialing"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    PAUSED = "paused"


class BillingReason(str, Enum):
    """Why Stripe generated an invoice."""

    SUBSCRIPTION_CREATE = "subscription_create"
    SUBSCRIPTION_CYCLE = "subscription_cycle"
    SUBSCRIPTION_UPDATE = "subscription_update"
    MANUAL = "manual"


class EventType(str, Enum):
    """Webhook event kinds the reconciliation engine dispatches on."""

    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAID = "invoice.paid"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
    INVOICE_FINALIZED = "invoice.finalized"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    SUBSCRIPTION_TRIAL_WILL_END = "customer.subscription.trial_will_end"

    @classmethod
    def parse(cls, value: str) -> "EventType | None":
        """Return the matching member, or None for kinds the engine does not know."""
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass
class Customer:
    """Stripe customer."""

    id: str
    email: str | None = None
    name: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    created_at: datetime | None = None


@dataclass
class Price:
    """Stripe price."""

    id: str
    product_id: str
    unit_amount: int  # in cents
    currency: str = "usd"
    recurring_interval: str | None = None  # "month", "year"
    lookup_key: str | None = None
    active: bool = True


@dataclass
class SubscriptionItem:
    """One line item of a subscription."""

    id: str
    price_id: str
    quantity: int = 1


@dataclass
class InvoicePayment:
    """Entry of an invoice's expanded payments list."""

    id: str
    payment_intent_id: str | None = None
    status: str | None = None


@dataclass
class Invoice:
    """Stripe invoice.

    payments is None when the invoice was delivered without the payments
    expansion, and an empty list when it was expanded but holds no payments.
    """

    id: str
    subscription_id: str | None = None
    customer_id: str | None = None
    billing_reason: str | None = None
    status: str | None = None
    client_secret: str | None = None
    payments: list[InvoicePayment] | None = None
    amount_due: int = 0
    currency: str = "usd"


@dataclass
class Subscription:
    """Stripe subscription.

    latest_invoice holds the invoice when Stripe returned it expanded;
    otherwise only latest_invoice_id is set.
    """

    id: str
    customer_id: str
    status: str
    items: list[SubscriptionItem] = field(default_factory=list)
    default_payment_method_id: str | None = None
    latest_invoice_id: str | None = None
    latest_invoice: Invoice | None = None
    cancel_at_period_end: bool = False
    canceled_at: datetime | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def price_id(self) -> str:
        """Price of the first line item, or an empty string."""
        return self.items[0].price_id if self.items else ""


@dataclass
class PaymentIntent:
    """Stripe payment intent."""

    id: str
    payment_method_id: str | None = None
    status: str | None = None
    client_secret: str | None = None


@dataclass
class InvoicePreviewLine:
    """Line of a previewed invoice."""

    amount: int
    description: str | None = None
    price_id: str | None = None
    proration: bool = False


@dataclass
class InvoicePreview:
    """Invoice Stripe would issue after a plan change."""

    customer_id: str | None
    subscription_id: str | None
    amount_due: int
    subtotal: int
    total: int
    currency: str = "usd"
    lines: list[InvoicePreviewLine] = field(default_factory=list)


@dataclass
class ActivationResult:
    """Pending subscription plus the secret the client confirms payment with."""

    subscription_id: str
    client_secret: str


@dataclass
class WebhookEvent:
    """Stripe webhook event."""

    id: str
    type: str
    data: dict[str, Any]
    created: datetime
    livemode: bool = False

    @property
    def object(self) -> dict[str, Any] | None:
        """Object snapshot embedded in the event, possibly slim."""
        obj = self.data.get("object")
        return obj if isinstance(obj, dict) else None
