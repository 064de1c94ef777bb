"""
Billing API Routes.

Endpoints for subscription activation, plan changes and Stripe webhooks.
"""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response, status

from ..exceptions import StripeBillingError, StripeValidationError, StripeWebhookError
from ..service import BillingService
from ..settings import Settings, get_settings
from .dependencies import get_billing_service, get_customer_id, require_customer_id
from .schemas import (
    CancelSubscriptionRequest,
    ConfigResponse,
    CreateCustomerRequest,
    CreateCustomerResponse,
    CreateSubscriptionRequest,
    CustomerModel,
    HealthResponse,
    InvoicePreviewModel,
    InvoiceResponse,
    PriceModel,
    SubscriptionCreateResponse,
    SubscriptionModel,
    SubscriptionResponse,
    SubscriptionsResponse,
    UpdateSubscriptionRequest,
    WebhookResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get(
    "/config",
    response_model=ConfigResponse,
    summary="Get billing config",
    description="Publishable key and the prices offered to new customers.",
)
async def get_config(
    service: BillingService = Depends(get_billing_service),
) -> ConfigResponse:
    try:
        config = await service.get_config()
    except StripeBillingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return ConfigResponse(
        publishable_key=config["publishable_key"],
        prices=[PriceModel.model_validate(price) for price in config["prices"]],
    )


@router.post(
    "/create-customer",
    response_model=CreateCustomerResponse,
    summary="Create customer",
    description="Create a Stripe customer and store it in the session cookie.",
)
async def create_customer(
    request: CreateCustomerRequest,
    response: Response,
    service: BillingService = Depends(get_billing_service),
    settings: Settings = Depends(get_settings),
) -> CreateCustomerResponse:
    try:
        customer = await service.create_customer(email=request.email, name=request.name)
    except (StripeValidationError, StripeBillingError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    # Stands in for a real session: the customer ID normally lives with the user record.
    response.set_cookie(settings.CUSTOMER_COOKIE_NAME, customer.id, httponly=True)

    return CreateCustomerResponse(customer=CustomerModel.model_validate(customer))


@router.post(
    "/create-subscription",
    response_model=SubscriptionCreateResponse,
    summary="Create subscription",
    description="Start a subscription awaiting payment; returns the client secret to confirm it with.",
)
async def create_subscription(
    request: CreateSubscriptionRequest,
    session_customer_id: str | None = Depends(get_customer_id),
    service: BillingService = Depends(get_billing_service),
) -> SubscriptionCreateResponse:
    customer_id = request.customer_id or session_customer_id
    if not customer_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing customer.",
        )

    logger.info(
        "create_subscription_request",
        customer_id=customer_id,
        price_id=request.price_id,
    )

    try:
        result = await service.activate_subscription(customer_id, request.price_id)
    except (StripeValidationError, StripeBillingError) as e:
        logger.error(
            "create_subscription_failed",
            customer_id=customer_id,
            error=e.message,
            retryable=getattr(e, "retryable", False),
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return SubscriptionCreateResponse(
        subscription_id=result.subscription_id,
        client_secret=result.client_secret,
    )


@router.get(
    "/invoice-preview",
    response_model=InvoiceResponse,
    summary="Preview plan change",
    description="Preview the invoice after swapping the subscription's price. Nothing is changed.",
)
async def invoice_preview(
    subscription_id: str = Query(..., alias="subscriptionId"),
    new_price_id: str = Query(..., alias="newPriceId"),
    customer_id: str = Depends(require_customer_id),
    service: BillingService = Depends(get_billing_service),
) -> InvoiceResponse:
    try:
        preview = await service.preview_plan_change(subscription_id, customer_id, new_price_id)
    except (StripeValidationError, StripeBillingError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return InvoiceResponse(invoice=InvoicePreviewModel.model_validate(preview))


@router.post(
    "/cancel-subscription",
    response_model=SubscriptionResponse,
    summary="Cancel subscription",
)
async def cancel_subscription(
    request: CancelSubscriptionRequest,
    service: BillingService = Depends(get_billing_service),
) -> SubscriptionResponse:
    try:
        subscription = await service.cancel_subscription(request.subscription_id)
    except StripeBillingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return SubscriptionResponse(subscription=SubscriptionModel.model_validate(subscription))


@router.post(
    "/update-subscription",
    response_model=SubscriptionResponse,
    summary="Change plan",
    description="Move the subscription's first item to the price configured for newPrice.",
)
async def update_subscription(
    request: UpdateSubscriptionRequest,
    service: BillingService = Depends(get_billing_service),
) -> SubscriptionResponse:
    try:
        subscription = await service.update_subscription(
            request.subscription_id, request.new_price
        )
    except (StripeValidationError, StripeBillingError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return SubscriptionResponse(subscription=SubscriptionModel.model_validate(subscription))


@router.get(
    "/subscriptions",
    response_model=SubscriptionsResponse,
    summary="List subscriptions",
    description="All of the session customer's subscriptions, whatever their status.",
)
async def list_subscriptions(
    customer_id: str = Depends(require_customer_id),
    service: BillingService = Depends(get_billing_service),
) -> SubscriptionsResponse:
    try:
        subscriptions = await service.list_subscriptions(customer_id)
    except StripeBillingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return SubscriptionsResponse(
        subscriptions=[SubscriptionModel.model_validate(sub) for sub in subscriptions]
    )


@router.post(
    "/webhook",
    response_model=WebhookResponse,
    status_code=status.HTTP_200_OK,
    summary="Handle Stripe webhook",
    description="Receive and reconcile Stripe webhook events.",
)
async def stripe_webhook(
    request: Request,
    service: BillingService = Depends(get_billing_service),
    stripe_signature: str | None = Header(None, alias="stripe-signature"),
) -> WebhookResponse:
    """
    Handle Stripe webhook events.

    Only an unauthenticated delivery is rejected. Anything that goes wrong
    after verification is logged and acknowledged, because Stripe would
    otherwise keep redelivering the event.
    """
    payload = await request.body()

    try:
        result = await service.handle_webhook(payload, stripe_signature)
    except StripeWebhookError as e:
        logger.error("webhook_verification_failed", error=e.message)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook signature",
        )
    except Exception as e:
        logger.error("webhook_error", error=str(e), error_type=type(e).__name__)
        return WebhookResponse(
            received=True,
            event_id="error",
            event_type="error",
            action="failed",
            processed_at=datetime.utcnow(),
        )

    return WebhookResponse(
        received=True,
        event_id=result.event_id,
        event_type=result.event_type,
        action=result.action.value,
        processed_at=datetime.utcnow(),
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Stripe connectivity check",
)
async def health(service: BillingService = Depends(get_billing_service)) -> HealthResponse:
    return HealthResponse(healthy=await service.client.health_check())
