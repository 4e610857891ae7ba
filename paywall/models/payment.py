"""ORM model for one-time payment attempts and their status state machine."""

import enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, text

from paywall.models.base import Base, TimestampMixin


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# target status -> statuses it may be reached from
ALLOWED_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.PENDING}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING}),
    PaymentStatus.CANCELLED: frozenset({PaymentStatus.COMPLETED}),
    PaymentStatus.PENDING: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    """True if a record in status current may move to status target."""
    return PaymentStatus(current) in ALLOWED_TRANSITIONS[PaymentStatus(target)]


class PaymentRecord(TimestampMixin, Base):
    """
    One payment attempt, keyed by the Stripe PaymentIntent id.

    external_payment_id is the natural key that makes webhook delivery idempotent. A
    partial unique index allows at most one completed record per user.
    """

    __tablename__ = "payment_records"
    __table_args__ = (
        Index("ix_payment_records_user_id_status", "user_id", "status"),
        Index(
            "uq_payment_records_user_completed",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'completed'"),
            sqlite_where=text("status = 'completed'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    plan_id = Column(String(255), nullable=False)
    price_id = Column(String(255), nullable=False)
    external_payment_id = Column(String(255), nullable=False, unique=True, index=True)
    status = Column(String(16), nullable=False, default=PaymentStatus.PENDING.value)
    amount = Column(Integer, nullable=False, default=0)
    currency = Column(String(8), nullable=False, default="usd")
    paid_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    payment_metadata = Column(JSON, nullable=True)
