"""
Billing API request and response models.

Bodies use camelCase on the wire; Python code uses the snake_case names.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model with camelCase aliases that also reads dataclass attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# === Requests ===


class CreateCustomerRequest(CamelModel):
    """Request to create a Stripe customer."""

    email: str = Field(..., description="Customer email")
    name: str | None = Field(None, description="Optional customer name")


class CreateSubscriptionRequest(CamelModel):
    """Request to start a subscription awaiting payment."""

    price_id: str = Field(..., description="Stripe price ID (price_...)")
    customer_id: str | None = Field(
        None, description="Stripe customer ID; defaults to the session customer"
    )


class CancelSubscriptionRequest(CamelModel):
    """Request to cancel a subscription."""

    subscription_id: str = Field(..., description="Stripe subscription ID")


class UpdateSubscriptionRequest(CamelModel):
    """Request to move a subscription to another plan."""

    subscription_id: str = Field(..., description="Stripe subscription ID")
    new_price: str = Field(..., description="Logical price name (e.g. 'premium')")


# === Responses ===


class PriceModel(CamelModel):
    id: str
    product_id: str
    unit_amount: int
    currency: str
    recurring_interval: str | None = None
    lookup_key: str | None = None


class ConfigResponse(CamelModel):
    """Publishable key and prices for the payer-facing client."""

    publishable_key: str
    prices: list[PriceModel]


class CustomerModel(CamelModel):
    id: str
    email: str | None = None
    name: str | None = None


class CreateCustomerResponse(CamelModel):
    customer: CustomerModel


class SubscriptionCreateResponse(CamelModel):
    """Pending subscription and the secret used to confirm its payment."""

    subscription_id: str
    client_secret: str


class SubscriptionItemModel(CamelModel):
    id: str
    price_id: str
    quantity: int


class SubscriptionModel(CamelModel):
    id: str
    customer_id: str
    status: str
    items: list[SubscriptionItemModel]
    default_payment_method_id: str | None = None
    latest_invoice_id: str | None = None
    cancel_at_period_end: bool = False
    canceled_at: datetime | None = None


class SubscriptionResponse(CamelModel):
    subscription: SubscriptionModel


class SubscriptionsResponse(CamelModel):
    subscriptions: list[SubscriptionModel]


class InvoicePreviewLineModel(CamelModel):
    amount: int
    description: str | None = None
    price_id: str | None = None
    proration: bool = False


class InvoicePreviewModel(CamelModel):
    customer_id: str | None = None
    subscription_id: str | None = None
    amount_due: int
    subtotal: int
    total: int
    currency: str
    lines: list[InvoicePreviewLineModel]


class InvoiceResponse(CamelModel):
    invoice: InvoicePreviewModel


class WebhookResponse(CamelModel):
    """Response from webhook processing."""

    received: bool
    event_id: str
    event_type: str
    action: str
    processed_at: datetime


class HealthResponse(CamelModel):
    healthy: bool
