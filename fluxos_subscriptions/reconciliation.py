"""
Webhook reconciliation.

Maps a verified webhook event to its side effect. The only mandatory one is
binding the payment method of a new subscription's first paid invoice as the
subscription's default payment method.

Failures after verification never escape handle(): Stripe redelivers any
event that is not acknowledged, and redelivering an event that can never be
reconciled only repeats the failure.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

import structlog

from .client import StripeClientInterface
from .converters import convert_invoice
from .exceptions import ResolutionMiss, StripeBillingError, StripeError
from .models import BillingReason, EventType, Invoice, WebhookEvent
from .resolver import PaymentIntentResolver

logger = structlog.get_logger(__name__)


class ReconciliationAction(str, Enum):
    """What reconciling an event amounted to."""

    BOUND = "bound"
    SKIPPED = "skipped"
    UNRESOLVED = "unresolved"
    FAILED = "failed"
    ACKNOWLEDGED = "acknowledged"
    IGNORED = "ignored"


@dataclass
class ReconciliationResult:
    """Outcome of reconciling one event. Every outcome is acknowledged."""

    event_id: str
    event_type: str
    action: ReconciliationAction
    invoice_id: str | None = None
    subscription_id: str | None = None
    payment_method_id: str | None = None
    reason: str | None = None


class ReconciliationEngine:
    """Dispatches verified events by kind and applies their side effects.

    Args:
        client: Stripe client used to re-fetch invoices, fetch payment
            intents and update subscriptions
        resolver: Strategy for finding an invoice's payment intent
    """

    def __init__(
        self,
        client: StripeClientInterface,
        resolver: PaymentIntentResolver | None = None,
    ):
        self.client = client
        self.resolver = resolver or PaymentIntentResolver()
        self._handlers: dict[
            EventType, Callable[[WebhookEvent], Awaitable[ReconciliationResult]]
        ] = {
            EventType.INVOICE_PAYMENT_SUCCEEDED: self._handle_invoice_payment_succeeded,
            EventType.INVOICE_PAID: self._acknowledge,
            EventType.INVOICE_PAYMENT_FAILED: self._acknowledge,
            EventType.INVOICE_FINALIZED: self._acknowledge,
            EventType.SUBSCRIPTION_DELETED: self._acknowledge,
            EventType.SUBSCRIPTION_TRIAL_WILL_END: self._acknowledge,
        }

    async def handle(self, event: WebhookEvent) -> ReconciliationResult:
        """Reconcile one verified event."""
        event_type = EventType.parse(event.type)
        if event_type is None:
            logger.info("webhook_event_ignored", event_id=event.id, event_type=event.type)
            return ReconciliationResult(
                event_id=event.id,
                event_type=event.type,
                action=ReconciliationAction.IGNORED,
            )

        handler = self._handlers[event_type]
        try:
            return await handler(event)
        except ResolutionMiss as e:
            logger.warning(
                "reconciliation_unresolved",
                event_id=event.id,
                event_type=event.type,
                reason=e.message,
                **e.details,
            )
            return ReconciliationResult(
                event_id=event.id,
                event_type=event.type,
                action=ReconciliationAction.UNRESOLVED,
                invoice_id=e.details.get("invoice_id"),
                subscription_id=e.details.get("subscription_id"),
                reason=e.message,
            )
        except StripeError as e:
            logger.error(
                "reconciliation_failed",
                event_id=event.id,
                event_type=event.type,
                error=e.message,
                error_type=type(e).__name__,
            )
            return ReconciliationResult(
                event_id=event.id,
                event_type=event.type,
                action=ReconciliationAction.FAILED,
                reason=e.message,
            )

    async def _acknowledge(self, event: WebhookEvent) -> ReconciliationResult:
        # Reserved kinds: no local state to update.
        logger.info("webhook_event_acknowledged", event_id=event.id, event_type=event.type)
        return ReconciliationResult(
            event_id=event.id,
            event_type=event.type,
            action=ReconciliationAction.ACKNOWLEDGED,
        )

    async def _handle_invoice_payment_succeeded(
        self, event: WebhookEvent
    ) -> ReconciliationResult:
        snapshot = event.object
        if not snapshot or snapshot.get("object", "invoice") != "invoice" or not snapshot.get("id"):
            raise ResolutionMiss("Event does not carry an invoice")

        snapshot_invoice = convert_invoice(snapshot)
        if snapshot_invoice.billing_reason not in (
            None,
            BillingReason.SUBSCRIPTION_CREATE.value,
        ):
            return self._skipped(event, snapshot_invoice)

        invoice = await self._refetch_invoice(snapshot_invoice)
        if invoice.billing_reason != BillingReason.SUBSCRIPTION_CREATE.value:
            return self._skipped(event, invoice)

        subscription_id, payment_method_id = await self._bind_default_payment_method(invoice)

        logger.info(
            "invoice_payment_succeeded",
            event_id=event.id,
            invoice_id=invoice.id,
        )
        return ReconciliationResult(
            event_id=event.id,
            event_type=event.type,
            action=ReconciliationAction.BOUND,
            invoice_id=invoice.id,
            subscription_id=subscription_id,
            payment_method_id=payment_method_id,
        )

    def _skipped(self, event: WebhookEvent, invoice: Invoice) -> ReconciliationResult:
        logger.info(
            "invoice_payment_succeeded",
            event_id=event.id,
            invoice_id=invoice.id,
            billing_reason=invoice.billing_reason,
        )
        return ReconciliationResult(
            event_id=event.id,
            event_type=event.type,
            action=ReconciliationAction.SKIPPED,
            invoice_id=invoice.id,
            subscription_id=invoice.subscription_id,
            reason=f"billing_reason={invoice.billing_reason}",
        )

    async def _refetch_invoice(self, snapshot: Invoice) -> Invoice:
        """Re-fetch the invoice with payments expanded; fall back to the snapshot."""
        try:
            invoice = await self.client.get_invoice(snapshot.id, expand_payments=True)
        except StripeBillingError as e:
            logger.warning(
                "invoice_refetch_failed",
                invoice_id=snapshot.id,
                error=e.message,
            )
            return snapshot

        if invoice is None:
            logger.warning("invoice_refetch_missing", invoice_id=snapshot.id)
            return snapshot
        return invoice

    async def _bind_default_payment_method(self, invoice: Invoice) -> tuple[str, str]:
        payment_intent_id = self.resolver.resolve(invoice)
        if not payment_intent_id:
            raise ResolutionMiss(
                "Could not determine payment intent from invoice",
                details={"invoice_id": invoice.id},
            )

        payment_intent = await self.client.get_payment_intent(payment_intent_id)
        if payment_intent is None or not payment_intent.payment_method_id:
            raise ResolutionMiss(
                f"PaymentIntent {payment_intent_id} has no payment method",
                details={"invoice_id": invoice.id, "payment_intent_id": payment_intent_id},
            )

        if not invoice.subscription_id:
            raise ResolutionMiss(
                "Invoice has no subscription; cannot set default payment method",
                details={"invoice_id": invoice.id},
            )

        await self.client.set_default_payment_method(
            invoice.subscription_id, payment_intent.payment_method_id
        )
        logger.info(
            "default_payment_method_bound",
            subscription_id=invoice.subscription_id,
            payment_method_id=payment_intent.payment_method_id,
            invoice_id=invoice.id,
        )
        return invoice.subscription_id, payment_intent.payment_method_id
