"""Admin-only listings of users and payment records."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from paywall.api.deps import get_credential_store, get_ledger
from paywall.api.v1.auth import require_admin
from paywall.schemas.auth import TokenPayload, UsersListResponse
from paywall.schemas.payment import PaymentRecordOut, PaymentRecordsListResponse
from paywall.services.credentials import CredentialStore
from paywall.services.ledger import PaymentLedger
from paywall.services.tokens import user_view

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/users", response_model=UsersListResponse)
def list_users(
    admin: Annotated[TokenPayload, Depends(require_admin)],
    store: Annotated[CredentialStore, Depends(get_credential_store)],
) -> UsersListResponse:
    """List all users (admin only)."""
    users = [user_view(account) for account in store.list_accounts()]
    logger.info("Admin %s listed %d users", admin.email, len(users))
    return UsersListResponse(users=users)


@router.get("/subscriptions", response_model=PaymentRecordsListResponse)
def list_subscriptions(
    admin: Annotated[TokenPayload, Depends(require_admin)],
    ledger: Annotated[PaymentLedger, Depends(get_ledger)],
) -> PaymentRecordsListResponse:
    """List every payment record, newest first (admin only)."""
    payments = [PaymentRecordOut.model_validate(r) for r in ledger.list_all()]
    logger.info("Admin %s listed %d payment records", admin.email, len(payments))
    return PaymentRecordsListResponse(payments=payments)
