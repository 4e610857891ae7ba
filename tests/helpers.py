"""Shared test fixtures: in-memory SQLite, a fake payment gateway and Stripe event builders."""

import hashlib
import hmac
import json
import time
from datetime import timedelta
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from paywall.models import Base, Role
from paywall.models.user import ROLE_ADMIN, ROLE_USER
from paywall.services.errors import GatewayFailure
from paywall.services.gateway import CheckoutSession, GatewayEvent, LineItem, StripeGateway
from paywall.services.tokens import AuthConfig

WEBHOOK_SECRET = "whsec_test_secret"

TEST_AUTH_CONFIG = AuthConfig(
    access_secret="access-secret-for-tests",
    refresh_secret="refresh-secret-for-tests",
    access_ttl=timedelta(minutes=15),
    refresh_ttl=timedelta(days=7),
    bcrypt_rounds=4,
)


def make_session_factory(with_roles: bool = True) -> sessionmaker:
    """Fresh in-memory database with all tables (and the two roles unless disabled)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    if with_roles:
        with factory() as db:
            db.add_all(
                [
                    Role(name=ROLE_ADMIN, status="active"),
                    Role(name=ROLE_USER, status="active"),
                ]
            )
            db.commit()
    return factory


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header value for payload."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def stripe_event(event_type: str, obj: dict[str, Any], event_id: str = "evt_1") -> dict[str, Any]:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }


def checkout_completed(
    payment_intent: str | None = "pi_1",
    customer: str | None = "cus_1",
    session_id: str = "cs_1",
    amount_total: int = 1999,
    currency: str = "usd",
) -> GatewayEvent:
    return GatewayEvent(
        id=f"evt_{session_id}",
        type="checkout.session.completed",
        data={
            "id": session_id,
            "object": "checkout.session",
            "payment_intent": payment_intent,
            "customer": customer,
            "amount_total": amount_total,
            "currency": currency,
            "metadata": {"source": "test"},
        },
    )


def payment_intent_event(event_type: str, payment_intent: str = "pi_1") -> GatewayEvent:
    return GatewayEvent(
        id=f"evt_{event_type}_{payment_intent}",
        type=event_type,
        data={"id": payment_intent, "object": "payment_intent"},
    )


class FakeGateway:
    """In-memory PaymentGateway. Webhook verification uses the real Stripe signature check."""

    def __init__(self) -> None:
        self.customers: list[tuple[str, str, str]] = []
        self.sessions: list[tuple[str, str, str, str, str]] = []
        self.line_items: dict[str, list[LineItem]] = {}
        self.fail_customer_create = False
        self.fail_line_items = False
        self._verifier = StripeGateway(api_key=None, webhook_secret=WEBHOOK_SECRET)

    def create_customer(self, email: str, name: str) -> str:
        if self.fail_customer_create:
            raise GatewayFailure("Stripe customer create failed: APIConnectionError")
        customer_id = f"cus_{len(self.customers) + 1}"
        self.customers.append((customer_id, email, name))
        return customer_id

    def create_checkout_session(
        self, price_id: str, customer_id: str, success_url: str, cancel_url: str
    ) -> CheckoutSession:
        session_id = f"cs_{len(self.sessions) + 1}"
        self.sessions.append((session_id, price_id, customer_id, success_url, cancel_url))
        return CheckoutSession(session_id=session_id, url=f"https://checkout.test/{session_id}")

    def list_checkout_line_items(self, session_id: str) -> list[LineItem]:
        if self.fail_line_items:
            raise GatewayFailure("Stripe line item list failed: APIConnectionError")
        return self.line_items.get(session_id, [])

    def verify_signed_event(self, raw_body: bytes, signature_header: str) -> GatewayEvent:
        return self._verifier.verify_signed_event(raw_body, signature_header)


def encode_event(event: dict[str, Any]) -> str:
    return json.dumps(event, separators=(",", ":"))

