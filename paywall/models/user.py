"""ORM models for roles and user accounts (auth and RBAC)."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func

from paywall.models.base import Base, TimestampMixin

ROLE_ADMIN = "admin"
ROLE_USER = "user"


class Role(Base):
    """
    Role reference data, seeded once.

    name: 'admin' or 'user'; status: 'active' or 'inactive'
    """

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(32), nullable=False, unique=True, index=True)
    status = Column(String(16), nullable=False, default="active")
    description = Column(String(255), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class User(TimestampMixin, Base):
    """
    User account for JWT authentication.

    refresh_token_hash holds the SHA-256 digest of the one live refresh token and is
    overwritten on every sign-in, sign-up and rotation.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(100), nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)
    stripe_customer_id = Column(String(255), nullable=True, unique=True, index=True)
    refresh_token_hash = Column(String(64), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
