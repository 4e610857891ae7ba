"""Token authority: sign-up, sign-in and access/refresh token issuance with rotation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import TYPE_CHECKING

import jwt
from pydantic import ValidationError

from paywall.core.security import (
    BCRYPT_ROUNDS,
    TOKEN_TYPE_ACCESS,
    TOKEN_TYPE_REFRESH,
    create_token,
    decode_token,
    hash_password,
    hash_token,
    token_matches,
    verify_password,
)
from paywall.models.user import ROLE_USER
from paywall.schemas.auth import AuthResponse, TokenPayload, UserView
from paywall.services.credentials import CredentialStore, UserAccount
from paywall.services.errors import AlreadyExists, RoleMissing, Unauthorized
from paywall.services.gateway import PaymentGateway

if TYPE_CHECKING:
    from paywall.core.config import Settings

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
INVALID_ACCESS_TOKEN = "Invalid or expired token"


@dataclass(frozen=True)
class AuthConfig:
    """Secrets and lifetimes the token authority is constructed with."""

    access_secret: str
    refresh_secret: str
    algorithm: str = "HS256"
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)
    bcrypt_rounds: int = BCRYPT_ROUNDS
    default_role: str = ROLE_USER

    @classmethod
    def from_settings(cls, settings: Settings) -> AuthConfig:
        """
        Resolve access/refresh secrets, falling back to JWT_SECRET when unset.

        The fallback is a degraded mode and is logged; with
        JWT_REQUIRE_DEDICATED_SECRETS it raises ValueError instead.
        """
        shared = settings.JWT_SECRET.get_secret_value()
        access = settings.JWT_ACCESS_SECRET
        refresh = settings.JWT_REFRESH_SECRET
        missing = [
            name
            for name, value in (("JWT_ACCESS_SECRET", access), ("JWT_REFRESH_SECRET", refresh))
            if value is None
        ]
        if missing:
            if settings.JWT_REQUIRE_DEDICATED_SECRETS:
                raise ValueError(
                    f"{', '.join(missing)} must be set when JWT_REQUIRE_DEDICATED_SECRETS is true"
                )
            logger.warning("%s not set; falling back to JWT_SECRET", ", ".join(missing))
        return cls(
            access_secret=access.get_secret_value() if access else shared,
            refresh_secret=refresh.get_secret_value() if refresh else shared,
            algorithm=settings.JWT_ALGORITHM,
            access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
            bcrypt_rounds=settings.BCRYPT_ROUNDS,
        )


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@lru_cache
def _dummy_password_hash(rounds: int) -> str:
    # Checked against when the email is unknown so both failure paths cost one bcrypt run.
    return hash_password("paywall-timing-equalizer", rounds=rounds)


def user_view(account: UserAccount) -> UserView:
    return UserView(
        id=account.id,
        email=account.email,
        full_name=account.full_name,
        role=account.role,
    )


class TokenAuthority:
    """Issues, validates and rotates tokens; authenticates and registers users."""

    def __init__(
        self,
        config: AuthConfig,
        store: CredentialStore,
        gateway: PaymentGateway,
    ) -> None:
        self.config = config
        self.store = store
        self.gateway = gateway

    def _sign_pair(self, account: UserAccount) -> TokenPair:
        claims = {
            "sub": str(account.id),
            "email": account.email,
            "full_name": account.full_name,
            "role": account.role,
        }
        access = create_token(
            claims,
            TOKEN_TYPE_ACCESS,
            self.config.access_secret,
            self.config.algorithm,
            self.config.access_ttl,
        )
        refresh = create_token(
            claims,
            TOKEN_TYPE_REFRESH,
            self.config.refresh_secret,
            self.config.algorithm,
            self.config.refresh_ttl,
        )
        return TokenPair(access_token=access, refresh_token=refresh)

    def issue_tokens(self, account: UserAccount) -> TokenPair:
        """Sign a new pair and make its refresh token the only live one for the user."""
        pair = self._sign_pair(account)
        self.store.set_refresh_token_hash(account.id, hash_token(pair.refresh_token))
        return pair

    def _response(self, account: UserAccount, pair: TokenPair) -> AuthResponse:
        return AuthResponse(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            user=user_view(account),
        )

    def _decode(self, token: str, secret: str, expected_type: str) -> TokenPayload:
        payload = decode_token(token, secret, self.config.algorithm)
        if payload.get("type") != expected_type:
            raise jwt.InvalidTokenError(f"expected a {expected_type} token")
        return TokenPayload.model_validate(payload)

    def validate_access(self, token: str) -> TokenPayload:
        try:
            return self._decode(token, self.config.access_secret, TOKEN_TYPE_ACCESS)
        except (jwt.PyJWTError, ValidationError) as e:
            raise Unauthorized(INVALID_ACCESS_TOKEN) from e

    def rotate(self, refresh_token: str) -> AuthResponse:
        """
        Exchange a live refresh token for a new pair.

        The stored hash is swapped with a compare-and-swap against the hash just
        verified, so a refresh token can be exchanged at most once.
        """
        try:
            payload = self._decode(refresh_token, self.config.refresh_secret, TOKEN_TYPE_REFRESH)
            user_id = payload.user_id
        except (jwt.PyJWTError, ValidationError, ValueError) as e:
            logger.warning("Refresh failed: invalid refresh token (%s)", type(e).__name__)
            raise Unauthorized(INVALID_REFRESH_TOKEN) from e

        account = self.store.get_by_id(user_id)
        if account is None or not account.is_active or not account.refresh_token_hash:
            logger.warning("Refresh failed: user %s not found, inactive or signed out", user_id)
            raise Unauthorized(INVALID_REFRESH_TOKEN)
        if not token_matches(refresh_token, account.refresh_token_hash):
            logger.warning("Refresh failed: token mismatch for user %s", user_id)
            raise Unauthorized(INVALID_REFRESH_TOKEN)

        pair = self._sign_pair(account)
        swapped = self.store.swap_refresh_token_hash(
            account.id, account.refresh_token_hash, hash_token(pair.refresh_token)
        )
        if not swapped:
            logger.warning("Refresh failed: concurrent rotation for user %s", user_id)
            raise Unauthorized(INVALID_REFRESH_TOKEN)
        logger.info("Refresh token rotated for user %s", user_id)
        return self._response(account, pair)

    def authenticate(self, email: str, password: str) -> AuthResponse:
        logger.info("Signin attempt for %s", email)
        account = self.store.get_by_email(email)
        if account is None:
            verify_password(password, _dummy_password_hash(self.config.bcrypt_rounds))
            logger.warning("Signin failed: unknown email %s", email)
            raise Unauthorized(INVALID_CREDENTIALS)
        if not verify_password(password, account.password_hash):
            logger.warning("Signin failed: wrong password for %s", email)
            raise Unauthorized(INVALID_CREDENTIALS)
        if not account.is_active:
            logger.warning("Signin failed: inactive account %s", email)
            raise Unauthorized(INVALID_CREDENTIALS)
        pair = self.issue_tokens(account)
        logger.info("User signed in: %s", email)
        return self._response(account, pair)

    def register(self, email: str, password: str, full_name: str) -> AuthResponse:
        """
        Create an account with the default role and a Stripe customer.

        The customer is created before any row is written; a GatewayFailure there
        propagates and leaves nothing behind locally.
        """
        logger.info("Signup attempt for %s", email)
        if self.store.email_exists(email):
            logger.warning("Signup failed: user already exists - %s", email)
            raise AlreadyExists("User already exists")

        role = self.store.get_role(self.config.default_role)
        if role is None:
            logger.error("Default role %r not found; run the seeders", self.config.default_role)
            raise RoleMissing("Default user role not found")

        customer_id = self.gateway.create_customer(email, full_name)
        password_hash = hash_password(password, rounds=self.config.bcrypt_rounds)
        account = self.store.create_user(
            email=email,
            password_hash=password_hash,
            full_name=full_name,
            role=role,
            stripe_customer_id=customer_id,
        )
        pair = self.issue_tokens(account)
        logger.info("User registered: %s (customer %s)", email, customer_id)
        return self._response(account, pair)
