"""Checkout, current payment lookup, cancellation and Stripe redirect landing routes."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from paywall.api.deps import get_credential_store, get_gateway, get_ledger
from paywall.api.v1.auth import get_current_user
from paywall.core.config import get_settings
from paywall.schemas.auth import TokenPayload
from paywall.schemas.payment import (
    CheckoutCallbackResponse,
    CheckoutRequest,
    CheckoutResponse,
    MessageResponse,
    PaymentRecordOut,
)
from paywall.services.checkout import checkout_urls, create_checkout
from paywall.services.credentials import CredentialStore
from paywall.services.errors import ActivePaymentExists, GatewayFailure, NotFound
from paywall.services.gateway import PaymentGateway
from paywall.services.ledger import PaymentLedger

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/checkout", response_model=CheckoutResponse)
def post_checkout(
    body: CheckoutRequest,
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    ledger: Annotated[PaymentLedger, Depends(get_ledger)],
    gateway: Annotated[PaymentGateway, Depends(get_gateway)],
) -> CheckoutResponse:
    """Create a Stripe checkout session for a one-time payment."""
    settings = get_settings()
    success_url, cancel_url = checkout_urls(settings.APP_URL, settings.API_V1_PREFIX)
    try:
        session = create_checkout(
            current_user.user_id,
            body.price_id,
            store,
            ledger,
            gateway,
            success_url,
            cancel_url,
        )
    except ActivePaymentExists as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    except NotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    except GatewayFailure as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message) from e
    return CheckoutResponse(session_id=session.session_id, url=session.url)


@router.get("", response_model=PaymentRecordOut | None)
def get_subscription(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    ledger: Annotated[PaymentLedger, Depends(get_ledger)],
) -> PaymentRecordOut | None:
    """Most recent completed payment of the current user, or null."""
    record = ledger.find_active_for_user(current_user.user_id)
    if record is None:
        logger.info("No completed payment for user %s", current_user.user_id)
        return None
    return PaymentRecordOut.model_validate(record)


@router.post("/cancel", response_model=MessageResponse)
def post_cancel(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    ledger: Annotated[PaymentLedger, Depends(get_ledger)],
) -> MessageResponse:
    """Cancel the current user's completed payment. 404 if there is none."""
    logger.info("Cancel payment request from user %s", current_user.user_id)
    record = ledger.find_active_for_user(current_user.user_id)
    if record is None:
        logger.warning("Cancel failed: no completed payment for user %s", current_user.user_id)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No completed payment found",
        )
    try:
        ledger.cancel(record.external_payment_id)
    except NotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    return MessageResponse(message="Payment cancelled successfully")


@router.get("/success", response_model=CheckoutCallbackResponse)
def checkout_success(session_id: str | None = None) -> CheckoutCallbackResponse:
    """Stripe redirects here after payment; the webhook records the payment."""
    return CheckoutCallbackResponse(
        success=True,
        message="Payment completed successfully!",
        note="Your payment has been processed. The webhook will update your subscription status shortly.",
        session_id=session_id,
    )


@router.get("/cancel", response_model=CheckoutCallbackResponse)
def checkout_cancel() -> CheckoutCallbackResponse:
    """Stripe redirects here when the customer abandons checkout."""
    return CheckoutCallbackResponse(
        success=False,
        message="Payment was cancelled",
        note="You can try again by creating a new checkout session.",
    )
