"""SQLAlchemy ORM models."""

from paywall.models.base import Base
from paywall.models.payment import PaymentRecord, PaymentStatus
from paywall.models.user import Role, User

__all__ = ["Base", "PaymentRecord", "PaymentStatus", "Role", "User"]
