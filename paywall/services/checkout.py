"""Start a Stripe checkout for a one-time payment."""

import logging

from paywall.services.credentials import CredentialStore
from paywall.services.errors import ActivePaymentExists, NotFound
from paywall.services.gateway import CheckoutSession, PaymentGateway
from paywall.services.ledger import PaymentLedger

logger = logging.getLogger(__name__)


def checkout_urls(app_url: str, api_prefix: str) -> tuple[str, str]:
    """Success and cancel redirect URLs served by the subscription callback routes."""
    base = f"{app_url.rstrip('/')}{api_prefix}/subscription"
    return f"{base}/success?session_id={{CHECKOUT_SESSION_ID}}", f"{base}/cancel"


def create_checkout(
    user_id: int,
    price_id: str,
    store: CredentialStore,
    ledger: PaymentLedger,
    gateway: PaymentGateway,
    success_url: str,
    cancel_url: str,
) -> CheckoutSession:
    """
    Create a checkout session unless the user already has a completed payment.

    Two concurrent calls can both pass the precheck; the partial unique index on
    completed records keeps the ledger consistent if both are paid.
    """
    logger.info("Checkout initiated by user %s for price %s", user_id, price_id)
    if ledger.has_active_payment(user_id):
        logger.warning("Checkout refused: user %s already has a completed payment", user_id)
        raise ActivePaymentExists("User already has a completed payment")

    account = store.get_by_id(user_id)
    if account is None or not account.stripe_customer_id:
        logger.error("Checkout failed: user %s or Stripe customer not found", user_id)
        raise NotFound("User or Stripe customer not found")

    session = gateway.create_checkout_session(
        price_id, account.stripe_customer_id, success_url, cancel_url
    )
    logger.info("Checkout session created for user %s: %s", user_id, session.session_id)
    return session
