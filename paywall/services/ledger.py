"""Payment ledger: the authoritative record of one-time payment attempts per user."""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from paywall.models import PaymentRecord, PaymentStatus
from paywall.services.errors import NotFound

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentLedger:
    """
    Create, query and transition PaymentRecords.

    Writes are atomic per external_payment_id: creation is INSERT .. ON CONFLICT DO
    NOTHING against the unique index, and status changes are conditional UPDATEs.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def create(
        self,
        *,
        user_id: int,
        plan_id: str,
        price_id: str,
        external_payment_id: str,
        status: PaymentStatus = PaymentStatus.PENDING,
        amount: int = 0,
        currency: str = "usd",
        paid_at: datetime | None = None,
        payment_metadata: dict[str, Any] | None = None,
    ) -> tuple[PaymentRecord | None, bool]:
        """
        Insert a record unless one already exists for external_payment_id.

        Returns (record, created). When the insert is skipped because the user already
        holds a different completed record, returns (None, False).
        """
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise RuntimeError(f"Unsupported database dialect for ledger writes: {dialect}")
        stmt = (
            insert(PaymentRecord.__table__)
            .values(
                user_id=user_id,
                plan_id=plan_id,
                price_id=price_id,
                external_payment_id=external_payment_id,
                status=PaymentStatus(status).value,
                amount=amount,
                currency=currency,
                paid_at=paid_at,
                payment_metadata=payment_metadata,
            )
            .on_conflict_do_nothing()
        )
        result = self.db.execute(stmt)
        self.db.commit()
        created = result.rowcount == 1
        return self.find_by_external_id(external_payment_id), created

    def find_by_external_id(self, external_id: str) -> PaymentRecord | None:
        return (
            self.db.query(PaymentRecord)
            .filter(PaymentRecord.external_payment_id == external_id)
            .first()
        )

    def find_active_for_user(self, user_id: int) -> PaymentRecord | None:
        """Most recent completed record for the user, by paid_at."""
        return (
            self.db.query(PaymentRecord)
            .filter(
                PaymentRecord.user_id == user_id,
                PaymentRecord.status == PaymentStatus.COMPLETED.value,
            )
            .order_by(PaymentRecord.paid_at.desc(), PaymentRecord.id.desc())
            .first()
        )

    def has_active_payment(self, user_id: int) -> bool:
        return (
            self.db.query(PaymentRecord.id)
            .filter(
                PaymentRecord.user_id == user_id,
                PaymentRecord.status == PaymentStatus.COMPLETED.value,
            )
            .first()
            is not None
        )

    def list_all(self) -> list[PaymentRecord]:
        return (
            self.db.query(PaymentRecord)
            .order_by(PaymentRecord.created_at.desc(), PaymentRecord.id.desc())
            .all()
        )

    def _refetch(self, external_id: str) -> PaymentRecord | None:
        record = self.find_by_external_id(external_id)
        if record is not None:
            self.db.refresh(record)
        return record

    def update_status(
        self, external_id: str, status: PaymentStatus, **extra: Any
    ) -> PaymentRecord:
        """Set status (and any extra columns) unconditionally. Raises NotFound."""
        result = self.db.execute(
            update(PaymentRecord)
            .where(PaymentRecord.external_payment_id == external_id)
            .values(status=PaymentStatus(status).value, **extra)
        )
        self.db.commit()
        if result.rowcount == 0:
            raise NotFound("Payment record not found")
        record = self._refetch(external_id)
        if record is None:
            raise NotFound("Payment record not found")
        return record

    def transition(
        self,
        external_id: str,
        status: PaymentStatus,
        from_statuses: Iterable[PaymentStatus],
        **extra: Any,
    ) -> PaymentRecord | None:
        """
        Move a record to status only if it is currently in one of from_statuses.

        Returns the updated record, or None when no row matched (missing record or a
        status that does not allow the move).
        """
        sources = [PaymentStatus(s).value for s in from_statuses]
        if not sources:
            return None
        result = self.db.execute(
            update(PaymentRecord)
            .where(
                PaymentRecord.external_payment_id == external_id,
                PaymentRecord.status.in_(sources),
            )
            .values(status=PaymentStatus(status).value, **extra)
        )
        self.db.commit()
        if result.rowcount == 0:
            return None
        return self._refetch(external_id)

    def cancel(self, external_id: str) -> PaymentRecord:
        """Mark a completed record cancelled. Raises NotFound if it is not completed."""
        record = self.transition(
            external_id,
            PaymentStatus.CANCELLED,
            [PaymentStatus.COMPLETED],
            cancelled_at=_utcnow(),
        )
        if record is None:
            raise NotFound("No completed payment found")
        logger.info("Payment %s cancelled", external_id)
        return record
