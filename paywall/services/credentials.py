"""Credential store: user identity, password hashes and the rotating refresh-token hash."""

import logging
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from paywall.models import Role, User
from paywall.services.errors import AlreadyExists

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserAccount:
    """User row joined with its role name. Never exposed to API callers as-is."""

    id: int
    email: str
    full_name: str
    role: str
    password_hash: str
    stripe_customer_id: str | None
    refresh_token_hash: str | None
    is_active: bool


class CredentialStore:
    """
    Read and write user credentials for the token authority and the reconciler.

    Lookups join users to roles explicitly and return UserAccount snapshots, so callers
    never depend on lazy ORM loading.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _accounts(self):
        return self.db.query(User, Role.name).join(Role, User.role_id == Role.id)

    @staticmethod
    def _to_account(row: tuple[User, str]) -> UserAccount:
        user, role_name = row
        return UserAccount(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=role_name,
            password_hash=user.password_hash,
            stripe_customer_id=user.stripe_customer_id,
            refresh_token_hash=user.refresh_token_hash,
            is_active=bool(user.is_active),
        )

    def get_by_id(self, user_id: int) -> UserAccount | None:
        row = self._accounts().filter(User.id == user_id).first()
        return self._to_account(row) if row else None

    def get_by_email(self, email: str) -> UserAccount | None:
        row = self._accounts().filter(User.email == email).first()
        return self._to_account(row) if row else None

    def get_by_customer_id(self, customer_id: str) -> UserAccount | None:
        row = self._accounts().filter(User.stripe_customer_id == customer_id).first()
        return self._to_account(row) if row else None

    def email_exists(self, email: str) -> bool:
        return self.db.query(User.id).filter(User.email == email).first() is not None

    def get_role(self, name: str) -> Role | None:
        return self.db.query(Role).filter(Role.name == name).first()

    def list_accounts(self) -> list[UserAccount]:
        rows = self._accounts().order_by(User.id).all()
        return [self._to_account(row) for row in rows]

    def create_user(
        self,
        email: str,
        password_hash: str,
        full_name: str,
        role: Role,
        stripe_customer_id: str | None,
    ) -> UserAccount:
        """Insert a user. A unique-email violation (concurrent signup) raises AlreadyExists."""
        user = User(
            email=email,
            password_hash=password_hash,
            full_name=full_name,
            role_id=role.id,
            stripe_customer_id=stripe_customer_id,
            is_active=True,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("User insert conflicted for %s", email)
            raise AlreadyExists("User already exists") from e
        return self._to_account((user, role.name))

    def set_refresh_token_hash(self, user_id: int, token_hash: str) -> None:
        """Overwrite the live refresh-token hash, invalidating any previous token."""
        self.db.execute(
            update(User).where(User.id == user_id).values(refresh_token_hash=token_hash)
        )
        self.db.commit()

    def swap_refresh_token_hash(
        self, user_id: int, expected_hash: str, new_hash: str
    ) -> bool:
        """
        Replace the refresh-token hash only if it still equals expected_hash.

        Returns False when another rotation already replaced it.
        """
        result = self.db.execute(
            update(User)
            .where(User.id == user_id, User.refresh_token_hash == expected_hash)
            .values(refresh_token_hash=new_hash)
        )
        self.db.commit()
        return result.rowcount == 1
