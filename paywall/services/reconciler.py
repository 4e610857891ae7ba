"""
Apply verified Stripe events to the payment ledger.

Delivery is at-least-once and may be out of order. Convergence comes from the natural
key (the PaymentIntent id) and guarded status transitions, not from exactly-once
delivery:

- checkout.session.completed creates a completed record if none exists for the key;
- payment_intent.succeeded / payment_intent.payment_failed move an existing record and
  are no-ops when the record does not exist yet;
- anything else is logged and ignored.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from paywall.models.payment import ALLOWED_TRANSITIONS, PaymentStatus, can_transition
from paywall.services.credentials import CredentialStore
from paywall.services.gateway import GatewayEvent, PaymentGateway
from paywall.services.ledger import PaymentLedger

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


def _ref(value: Any) -> str | None:
    if isinstance(value, dict):
        return value.get("id")
    return value or None


class EventReconciler:
    """Idempotent consumer of payment gateway events."""

    def __init__(
        self,
        db: Session,
        ledger: PaymentLedger,
        store: CredentialStore,
        gateway: PaymentGateway,
    ) -> None:
        self.db = db
        self.ledger = ledger
        self.store = store
        self.gateway = gateway
        self._handlers: dict[str, Callable[[dict[str, Any]], None]] = {
            CHECKOUT_COMPLETED: self._checkout_completed,
            PAYMENT_SUCCEEDED: self._payment_succeeded,
            PAYMENT_FAILED: self._payment_failed,
        }

    def apply(self, event: GatewayEvent) -> None:
        """Dispatch one event by type. Errors propagate."""
        handler = self._handlers.get(event.type)
        if handler is None:
            logger.info("Unhandled event type: %s (%s)", event.type, event.id)
            return
        handler(event.data)

    def process(self, event: GatewayEvent) -> str | None:
        """
        Apply one event, isolating failures.

        Returns None on success, or the error message when processing raised. The
        caller still acknowledges the delivery so the processor does not retry it.
        """
        logger.info("Received webhook event: %s (%s)", event.type, event.id)
        try:
            self.apply(event)
        except Exception as e:
            self.db.rollback()
            logger.exception("Error processing webhook event %s (%s)", event.type, event.id)
            return str(e) or type(e).__name__
        return None

    def _checkout_completed(self, session: dict[str, Any]) -> None:
        session_id = session.get("id")
        logger.info("Processing checkout.session.completed: %s", session_id)

        payment_intent_id = _ref(session.get("payment_intent"))
        if not payment_intent_id:
            logger.warning("No payment intent found in checkout session %s", session_id)
            return

        line_items = self.gateway.list_checkout_line_items(session_id)
        if not line_items:
            logger.warning("No line items found in checkout session %s", session_id)
            return
        price_id = line_items[0].price_id
        product_id = line_items[0].product_id
        if not price_id or not product_id:
            logger.warning("Line item without price/product in checkout session %s", session_id)
            return

        customer_id = _ref(session.get("customer"))
        account = self.store.get_by_customer_id(customer_id) if customer_id else None
        if account is None:
            logger.error("User not found for Stripe customer %s; dropping event", customer_id)
            return

        metadata = session.get("metadata")
        record, created = self.ledger.create(
            user_id=account.id,
            plan_id=product_id,
            price_id=price_id,
            external_payment_id=payment_intent_id,
            status=PaymentStatus.COMPLETED,
            amount=session.get("amount_total") or 0,
            currency=session.get("currency") or "usd",
            paid_at=datetime.now(timezone.utc),
            payment_metadata=dict(metadata) if metadata else None,
        )
        if created:
            logger.info("Payment recorded for user %s: %s", account.email, payment_intent_id)
        elif record is None:
            logger.error(
                "User %s already has a completed payment; %s not recorded, reconcile manually",
                account.email,
                payment_intent_id,
            )
        else:
            logger.info("Duplicate checkout completion for %s ignored", payment_intent_id)

    def _move(self, payment_intent_id: str, target: PaymentStatus, **extra: Any) -> None:
        record = self.ledger.find_by_external_id(payment_intent_id)
        if record is None:
            logger.info("No payment record for %s yet; %s ignored", payment_intent_id, target.value)
            return
        if record.status == target.value:
            return
        # The status may change after this read; the conditional update is what decides.
        if can_transition(record.status, target.value):
            updated = self.ledger.transition(
                payment_intent_id, target, ALLOWED_TRANSITIONS[target], **extra
            )
        else:
            updated = None
        if updated is None:
            logger.warning(
                "Ignoring %s -> %s for payment %s",
                record.status,
                target.value,
                payment_intent_id,
            )

    def _payment_succeeded(self, intent: dict[str, Any]) -> None:
        logger.info("Payment succeeded for intent: %s", intent.get("id"))
        self._move(intent.get("id"), PaymentStatus.COMPLETED, paid_at=datetime.now(timezone.utc))

    def _payment_failed(self, intent: dict[str, Any]) -> None:
        logger.warning("Payment failed for intent: %s", intent.get("id"))
        self._move(intent.get("id"), PaymentStatus.FAILED)
