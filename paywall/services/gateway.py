"""
Payment gateway boundary.

The core services depend only on the PaymentGateway protocol. StripeGateway is the
production implementation; every Stripe call goes through it so that timeouts, error
translation and logging stay in one place.

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: webhook signing secret
- STRIPE_API_TIMEOUT_SEC: per-request timeout
- STRIPE_MAX_NETWORK_RETRIES: SDK-level retries on network errors
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

import stripe

from paywall.services.errors import GatewayFailure, InvalidSignature

if TYPE_CHECKING:
    from paywall.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    url: str | None


@dataclass(frozen=True)
class LineItem:
    price_id: str | None
    product_id: str | None


@dataclass(frozen=True)
class GatewayEvent:
    """A verified webhook event: its id, type and the `data.object` payload."""

    id: str
    type: str
    data: dict[str, Any] = field(default_factory=dict)


class PaymentGateway(Protocol):
    def create_customer(self, email: str, name: str) -> str: ...

    def create_checkout_session(
        self,
        price_id: str,
        customer_id: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession: ...

    def list_checkout_line_items(self, session_id: str) -> list[LineItem]: ...

    def verify_signed_event(self, raw_body: bytes, signature_header: str) -> GatewayEvent: ...


def _object_id(value: Any) -> str | None:
    """Stripe references are either an id string or an expanded object with an id."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return value.get("id")
    return getattr(value, "id", None)


def parse_event(payload: dict[str, Any]) -> GatewayEvent:
    """Build a GatewayEvent from a decoded Stripe event body."""
    data = payload.get("data") or {}
    obj = data.get("object") if isinstance(data, dict) else None
    return GatewayEvent(
        id=str(payload.get("id") or ""),
        type=str(payload.get("type") or ""),
        data=obj if isinstance(obj, dict) else {},
    )


class StripeGateway:
    """PaymentGateway backed by the Stripe API."""

    def __init__(
        self,
        api_key: str | None,
        webhook_secret: str | None,
        timeout: float = 10.0,
        max_network_retries: int = 2,
    ) -> None:
        self._webhook_secret = webhook_secret
        self._client: stripe.StripeClient | None = None
        if api_key:
            self._client = stripe.StripeClient(
                api_key,
                http_client=stripe.RequestsClient(timeout=timeout),
                max_network_retries=max_network_retries,
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> StripeGateway:
        api_key = settings.STRIPE_SECRET_KEY
        webhook_secret = settings.STRIPE_WEBHOOK_SECRET
        return cls(
            api_key=api_key.get_secret_value() if api_key else None,
            webhook_secret=webhook_secret.get_secret_value() if webhook_secret else None,
            timeout=settings.STRIPE_API_TIMEOUT_SEC,
            max_network_retries=settings.STRIPE_MAX_NETWORK_RETRIES,
        )

    def _require_client(self) -> stripe.StripeClient:
        if self._client is None:
            raise GatewayFailure("Stripe is not configured (STRIPE_SECRET_KEY is not set).")
        return self._client

    def _call(self, operation: str, fn, *args: Any, **kwargs: Any) -> Any:
        """Run one Stripe call, logging its duration and translating SDK errors."""
        start = time.monotonic()
        try:
            result = fn(*args, **kwargs)
        except stripe.StripeError as e:
            duration_ms = (time.monotonic() - start) * 1000
            logger.error(
                "Stripe %s failed after %.0f ms: %s (%s)",
                operation,
                duration_ms,
                e.user_message or str(e),
                type(e).__name__,
            )
            raise GatewayFailure(f"Stripe {operation} failed: {type(e).__name__}", e) from e
        logger.debug("Stripe %s took %.0f ms", operation, (time.monotonic() - start) * 1000)
        return result

    def create_customer(self, email: str, name: str) -> str:
        client = self._require_client()
        customer = self._call(
            "customer create",
            client.customers.create,
            params={"email": email, "name": name},
        )
        logger.info("Stripe customer created: %s", customer.id)
        return customer.id

    def create_checkout_session(
        self,
        price_id: str,
        customer_id: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        client = self._require_client()
        session = self._call(
            "checkout session create",
            client.checkout.sessions.create,
            params={
                "customer": customer_id,
                "line_items": [{"price": price_id, "quantity": 1}],
                "mode": "payment",
                "success_url": success_url,
                "cancel_url": cancel_url,
                "payment_intent_data": {"setup_future_usage": "off_session"},
            },
        )
        logger.info("Checkout session created: %s for customer %s", session.id, customer_id)
        return CheckoutSession(session_id=session.id, url=getattr(session, "url", None))

    def list_checkout_line_items(self, session_id: str) -> list[LineItem]:
        client = self._require_client()
        items = self._call(
            "line item list",
            client.checkout.sessions.line_items.list,
            session_id,
        )
        result = []
        # SDK objects only support attribute access (they are not dicts from stripe 15).
        for item in items.data:
            price = getattr(item, "price", None)
            if price is None:
                result.append(LineItem(price_id=None, product_id=None))
                continue
            result.append(
                LineItem(
                    price_id=_object_id(price),
                    product_id=_object_id(getattr(price, "product", None)),
                )
            )
        return result

    def verify_signed_event(self, raw_body: bytes, signature_header: str) -> GatewayEvent:
        """
        Verify the Stripe-Signature header over the raw body and parse the event.

        Raises InvalidSignature on a bad or stale signature or an undecodable body.
        """
        if not self._webhook_secret:
            raise GatewayFailure("Stripe webhook secret is not configured.")
        try:
            payload_text = raw_body.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                payload_text,
                signature_header,
                self._webhook_secret,
                stripe.Webhook.DEFAULT_TOLERANCE,
            )
            payload = json.loads(payload_text)
        except (UnicodeDecodeError, ValueError, stripe.SignatureVerificationError) as e:
            logger.warning("Webhook signature verification failed: %s", e)
            raise InvalidSignature("Invalid signature") from e
        if not isinstance(payload, dict):
            raise InvalidSignature("Invalid signature")
        return parse_event(payload)
