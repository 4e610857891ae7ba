"""Stripe webhook endpoint: verify the signature, then reconcile and always acknowledge."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool

from paywall.api.deps import get_gateway, get_reconciler
from paywall.schemas.payment import WebhookAck
from paywall.services.errors import GatewayFailure, InvalidSignature
from paywall.services.gateway import PaymentGateway
from paywall.services.reconciler import EventReconciler

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/webhook", response_model=WebhookAck, response_model_exclude_none=True)
async def stripe_webhook(
    request: Request,
    gateway: Annotated[PaymentGateway, Depends(get_gateway)],
    reconciler: Annotated[EventReconciler, Depends(get_reconciler)],
    stripe_signature: Annotated[str | None, Header(alias="Stripe-Signature")] = None,
) -> WebhookAck:
    """
    Receive a Stripe event.

    400 when the signature header is missing or invalid. Otherwise 200, including when
    processing fails (the error is reported in the body and logged) so that Stripe does
    not retry an event that can never be applied.
    """
    if not stripe_signature:
        logger.warning("Stripe webhook called without signature header")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing stripe-signature header",
        )
    payload = await request.body()
    try:
        event = gateway.verify_signed_event(payload, stripe_signature)
    except InvalidSignature as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    except GatewayFailure as e:
        logger.error("Stripe webhook rejected: %s", e.message)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message
        ) from e

    # Reconciliation does blocking DB and Stripe I/O.
    error = await run_in_threadpool(reconciler.process, event)
    return WebhookAck(error=error)
