"""
Plan change preview.
"""

import structlog

from .client import StripeClientInterface
from .exceptions import StripeValidationError
from .models import InvoicePreview

logger = structlog.get_logger(__name__)


class PlanChangePreviewer:
    """Computes what swapping a subscription's price would cost, without changing it."""

    def __init__(self, client: StripeClientInterface):
        self.client = client

    async def preview(
        self, subscription_id: str, customer_id: str, new_price_id: str
    ) -> InvoicePreview:
        """Preview the invoice after moving the first item to new_price_id.

        Quantity and the remaining items are left as they are.

        Raises:
            StripeValidationError: If the subscription is missing, belongs to
                another customer or has no items
        """
        subscription = await self.client.get_subscription(subscription_id)
        if subscription is None:
            raise StripeValidationError(
                "Subscription not found.",
                details={"subscription_id": subscription_id},
            )

        if subscription.customer_id and subscription.customer_id != customer_id:
            logger.warning(
                "preview_customer_mismatch",
                subscription_id=subscription_id,
                customer_id=customer_id,
            )
            raise StripeValidationError(
                "Subscription does not belong to customer.",
                details={"subscription_id": subscription_id},
            )

        if not subscription.items:
            raise StripeValidationError(
                "Subscription has no items.",
                details={"subscription_id": subscription_id},
            )

        first_item = subscription.items[0]
        logger.info(
            "previewing_plan_change",
            subscription_id=subscription_id,
            item_id=first_item.id,
            current_price_id=first_item.price_id,
            new_price_id=new_price_id,
        )
        return await self.client.preview_invoice(
            customer_id=customer_id,
            subscription_id=subscription_id,
            items=[{"id": first_item.id, "price": new_price_id}],
        )
