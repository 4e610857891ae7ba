"""FastAPI dependencies that build the services for one request."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from paywall.core.config import get_settings
from paywall.core.database import get_db
from paywall.services.credentials import CredentialStore
from paywall.services.gateway import PaymentGateway, StripeGateway
from paywall.services.ledger import PaymentLedger
from paywall.services.reconciler import EventReconciler
from paywall.services.tokens import AuthConfig, TokenAuthority


@lru_cache
def get_auth_config() -> AuthConfig:
    return AuthConfig.from_settings(get_settings())


@lru_cache
def get_gateway() -> PaymentGateway:
    return StripeGateway.from_settings(get_settings())


def get_credential_store(db: Annotated[Session, Depends(get_db)]) -> CredentialStore:
    return CredentialStore(db)


def get_ledger(db: Annotated[Session, Depends(get_db)]) -> PaymentLedger:
    return PaymentLedger(db)


def get_token_authority(
    config: Annotated[AuthConfig, Depends(get_auth_config)],
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    gateway: Annotated[PaymentGateway, Depends(get_gateway)],
) -> TokenAuthority:
    return TokenAuthority(config, store, gateway)


def get_reconciler(
    db: Annotated[Session, Depends(get_db)],
    ledger: Annotated[PaymentLedger, Depends(get_ledger)],
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    gateway: Annotated[PaymentGateway, Depends(get_gateway)],
) -> EventReconciler:
    return EventReconciler(db, ledger, store, gateway)
