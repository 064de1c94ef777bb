"""
Conversion of Stripe API objects into package models.

Accepts StripeObject instances returned by the stripe library as well as the
plain dicts found in webhook payloads. Expandable fields may arrive as an id
string, as a nested object or not at all.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from .models import (
    Customer,
    Invoice,
    InvoicePayment,
    InvoicePreview,
    InvoicePreviewLine,
    PaymentIntent,
    Price,
    Subscription,
    SubscriptionItem,
)


def get_field(obj: Any, *path: str) -> Any:
    """Walk a chain of fields, returning None as soon as a link is missing."""
    current = obj
    for key in path:
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(key)
        else:
            current = getattr(current, key, None)
    return current


def expandable_id(value: Any) -> str | None:
    """Id of an expandable field, whether it holds an id or an expanded object."""
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    return get_field(value, "id")


def is_expanded(value: Any) -> bool:
    """True when an expandable field holds an object rather than an id."""
    return value is not None and not isinstance(value, str)


def _list_data(value: Any) -> list[Any]:
    data = get_field(value, "data")
    return list(data) if data else []


def _timestamp(value: Any) -> datetime | None:
    return datetime.fromtimestamp(value) if value else None


def convert_customer(stripe_customer: Any) -> Customer:
    """Convert Stripe customer object to Customer model."""
    return Customer(
        id=get_field(stripe_customer, "id"),
        email=get_field(stripe_customer, "email"),
        name=get_field(stripe_customer, "name"),
        metadata=dict(get_field(stripe_customer, "metadata") or {}),
        created_at=_timestamp(get_field(stripe_customer, "created")),
    )


def convert_price(stripe_price: Any) -> Price:
    """Convert Stripe price object to Price model."""
    return Price(
        id=get_field(stripe_price, "id"),
        product_id=expandable_id(get_field(stripe_price, "product")) or "",
        unit_amount=get_field(stripe_price, "unit_amount") or 0,
        currency=get_field(stripe_price, "currency") or "usd",
        recurring_interval=get_field(stripe_price, "recurring", "interval"),
        lookup_key=get_field(stripe_price, "lookup_key"),
        active=bool(get_field(stripe_price, "active")),
    )


def convert_invoice(stripe_invoice: Any) -> Invoice:
    """Convert Stripe invoice object (full or slim) to Invoice model."""
    # Newer API versions nest the subscription under parent.subscription_details.
    subscription = get_field(stripe_invoice, "parent", "subscription_details", "subscription")
    if subscription is None:
        subscription = get_field(stripe_invoice, "subscription")

    payments_field = get_field(stripe_invoice, "payments")
    payments: list[InvoicePayment] | None = None
    if payments_field is not None:
        payments = [
            InvoicePayment(
                id=get_field(entry, "id") or "",
                payment_intent_id=expandable_id(
                    get_field(entry, "payment", "payment_intent")
                ),
                status=get_field(entry, "status"),
            )
            for entry in _list_data(payments_field)
        ]

    return Invoice(
        id=get_field(stripe_invoice, "id"),
        subscription_id=expandable_id(subscription),
        customer_id=expandable_id(get_field(stripe_invoice, "customer")),
        billing_reason=get_field(stripe_invoice, "billing_reason"),
        status=get_field(stripe_invoice, "status"),
        client_secret=get_field(stripe_invoice, "confirmation_secret", "client_secret"),
        payments=payments,
        amount_due=get_field(stripe_invoice, "amount_due") or 0,
        currency=get_field(stripe_invoice, "currency") or "usd",
    )


def convert_subscription(stripe_sub: Any) -> Subscription:
    """Convert Stripe subscription object to Subscription model."""
    items = [
        SubscriptionItem(
            id=get_field(item, "id"),
            price_id=expandable_id(get_field(item, "price")) or "",
            quantity=get_field(item, "quantity") or 1,
        )
        for item in _list_data(get_field(stripe_sub, "items"))
    ]

    latest_invoice = get_field(stripe_sub, "latest_invoice")

    return Subscription(
        id=get_field(stripe_sub, "id"),
        customer_id=expandable_id(get_field(stripe_sub, "customer")) or "",
        status=get_field(stripe_sub, "status") or "",
        items=items,
        default_payment_method_id=expandable_id(
            get_field(stripe_sub, "default_payment_method")
        ),
        latest_invoice_id=expandable_id(latest_invoice),
        latest_invoice=convert_invoice(latest_invoice) if is_expanded(latest_invoice) else None,
        cancel_at_period_end=bool(get_field(stripe_sub, "cancel_at_period_end")),
        canceled_at=_timestamp(get_field(stripe_sub, "canceled_at")),
        metadata=dict(get_field(stripe_sub, "metadata") or {}),
    )


def convert_payment_intent(stripe_pi: Any) -> PaymentIntent:
    """Convert Stripe payment intent object to PaymentIntent model."""
    return PaymentIntent(
        id=get_field(stripe_pi, "id"),
        payment_method_id=expandable_id(get_field(stripe_pi, "payment_method")),
        status=get_field(stripe_pi, "status"),
        client_secret=get_field(stripe_pi, "client_secret"),
    )


def convert_invoice_preview(stripe_invoice: Any) -> InvoicePreview:
    """Convert a preview invoice returned by Invoice.create_preview."""
    lines = []
    for line in _list_data(get_field(stripe_invoice, "lines")):
        price = get_field(line, "pricing", "price_details", "price")
        if price is None:
            price = get_field(line, "price")
        proration = get_field(line, "parent", "subscription_item_details", "proration")
        if proration is None:
            proration = get_field(line, "proration")
        lines.append(
            InvoicePreviewLine(
                amount=get_field(line, "amount") or 0,
                description=get_field(line, "description"),
                price_id=expandable_id(price),
                proration=bool(proration),
            )
        )

    subscription = get_field(stripe_invoice, "parent", "subscription_details", "subscription")
    if subscription is None:
        subscription = get_field(stripe_invoice, "subscription")

    return InvoicePreview(
        customer_id=expandable_id(get_field(stripe_invoice, "customer")),
        subscription_id=expandable_id(subscription),
        amount_due=get_field(stripe_invoice, "amount_due") or 0,
        subtotal=get_field(stripe_invoice, "subtotal") or 0,
        total=get_field(stripe_invoice, "total") or 0,
        currency=get_field(stripe_invoice, "currency") or "usd",
        lines=lines,
    )
