"""Tests for paywall.services.reconciler: idempotent, order-tolerant event application."""

import unittest
from unittest.mock import MagicMock

from paywall.models import PaymentRecord, PaymentStatus, User
from paywall.services.credentials import CredentialStore
from paywall.services.gateway import GatewayEvent, LineItem
from paywall.services.ledger import PaymentLedger
from paywall.services.reconciler import (
    PAYMENT_FAILED,
    PAYMENT_SUCCEEDED,
    EventReconciler,
)
from tests.helpers import (
    FakeGateway,
    checkout_completed,
    make_session_factory,
    payment_intent_event,
)


class ReconcilerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()
        user = User(
            email="a@x.com",
            password_hash="x",
            full_name="A",
            role_id=2,
            stripe_customer_id="cus_1",
        )
        self.db.add(user)
        self.db.commit()
        self.user_id = user.id
        self.gateway = FakeGateway()
        self.gateway.line_items["cs_1"] = [LineItem(price_id="price_1", product_id="prod_1")]
        self.gateway.line_items["cs_2"] = [LineItem(price_id="price_1", product_id="prod_1")]
        self.ledger = PaymentLedger(self.db)
        self.reconciler = EventReconciler(
            self.db, self.ledger, CredentialStore(self.db), self.gateway
        )

    def tearDown(self) -> None:
        self.db.close()

    def _records(self) -> list[PaymentRecord]:
        return self.db.query(PaymentRecord).all()


class TestCheckoutCompleted(ReconcilerTestCase):
    def test_creates_completed_record(self) -> None:
        self.assertIsNone(self.reconciler.process(checkout_completed()))
        records = self._records()
        self.assertEqual(len(records), 1)
        record = records[0]
        self.assertEqual(record.user_id, self.user_id)
        self.assertEqual(record.status, "completed")
        self.assertEqual(record.external_payment_id, "pi_1")
        self.assertEqual(record.price_id, "price_1")
        self.assertEqual(record.plan_id, "prod_1")
        self.assertEqual(record.amount, 1999)
        self.assertEqual(record.currency, "usd")
        self.assertEqual(record.payment_metadata, {"source": "test"})
        self.assertIsNotNone(record.paid_at)
        self.assertTrue(self.ledger.has_active_payment(self.user_id))

    def test_duplicate_delivery_creates_one_record(self) -> None:
        self.reconciler.process(checkout_completed())
        self.reconciler.process(checkout_completed())
        self.assertEqual(len(self._records()), 1)

    def test_unknown_customer_is_dropped(self) -> None:
        with self.assertLogs("paywall.services.reconciler", level="ERROR"):
            error = self.reconciler.process(checkout_completed(customer="cus_unknown"))
        self.assertIsNone(error)
        self.assertEqual(self._records(), [])

    def test_expanded_customer_object_is_resolved(self) -> None:
        event = checkout_completed()
        event.data["customer"] = {"id": "cus_1", "object": "customer"}
        self.reconciler.process(event)
        self.assertEqual(len(self._records()), 1)

    def test_missing_payment_intent_is_ignored(self) -> None:
        self.reconciler.process(checkout_completed(payment_intent=None))
        self.assertEqual(self._records(), [])

    def test_missing_line_items_is_ignored(self) -> None:
        self.reconciler.process(checkout_completed(session_id="cs_empty"))
        self.assertEqual(self._records(), [])

    def test_second_paid_intent_for_user_is_logged_with_its_id(self) -> None:
        self.reconciler.process(checkout_completed())
        with self.assertLogs("paywall.services.reconciler", level="ERROR") as logs:
            self.reconciler.process(checkout_completed(payment_intent="pi_2", session_id="cs_2"))
        self.assertTrue(any("pi_2" in line and "a@x.com" in line for line in logs.output))
        self.assertIsNone(self.ledger.find_by_external_id("pi_2"))
        self.assertEqual(len(self._records()), 1)

    def test_after_cancellation_no_new_completed_record(self) -> None:
        self.reconciler.process(checkout_completed())
        self.ledger.cancel("pi_1")
        self.reconciler.process(checkout_completed())
        records = self._records()
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].status, "cancelled")


class TestPaymentIntentEvents(ReconcilerTestCase):
    def test_succeeded_before_checkout_is_noop(self) -> None:
        error = self.reconciler.process(payment_intent_event(PAYMENT_SUCCEEDED))
        self.assertIsNone(error)
        self.assertEqual(self._records(), [])

        self.reconciler.process(checkout_completed())
        records = self._records()
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].status, "completed")

    def test_succeeded_moves_pending_to_completed(self) -> None:
        self.ledger.create(
            user_id=self.user_id,
            plan_id="prod_1",
            price_id="price_1",
            external_payment_id="pi_1",
        )
        self.reconciler.process(payment_intent_event(PAYMENT_SUCCEEDED))
        record = self.ledger.find_by_external_id("pi_1")
        self.assertEqual(record.status, "completed")
        self.assertIsNotNone(record.paid_at)

    def test_failed_moves_pending_to_failed(self) -> None:
        self.ledger.create(
            user_id=self.user_id,
            plan_id="prod_1",
            price_id="price_1",
            external_payment_id="pi_1",
        )
        self.reconciler.process(payment_intent_event(PAYMENT_FAILED))
        self.assertEqual(self.ledger.find_by_external_id("pi_1").status, "failed")

    def test_succeeded_on_completed_keeps_paid_at(self) -> None:
        self.reconciler.process(checkout_completed())
        paid_at = self.ledger.find_by_external_id("pi_1").paid_at
        self.reconciler.process(payment_intent_event(PAYMENT_SUCCEEDED))
        record = self.ledger.find_by_external_id("pi_1")
        self.assertEqual(record.status, "completed")
        self.assertEqual(record.paid_at, paid_at)

    def test_failed_after_completed_is_ignored(self) -> None:
        self.reconciler.process(checkout_completed())
        with self.assertLogs("paywall.services.reconciler", level="WARNING"):
            self.reconciler.process(payment_intent_event(PAYMENT_FAILED))
        self.assertEqual(self.ledger.find_by_external_id("pi_1").status, "completed")

    def test_succeeded_after_cancel_is_ignored(self) -> None:
        self.reconciler.process(checkout_completed())
        self.ledger.cancel("pi_1")
        self.reconciler.process(payment_intent_event(PAYMENT_SUCCEEDED))
        self.assertEqual(self.ledger.find_by_external_id("pi_1").status, "cancelled")
        self.assertFalse(self.ledger.has_active_payment(self.user_id))

    def test_disallowed_move_skips_ledger_write(self) -> None:
        ledger = MagicMock()
        ledger.find_by_external_id.return_value = MagicMock(status="cancelled")
        reconciler = EventReconciler(MagicMock(), ledger, MagicMock(), MagicMock())
        with self.assertLogs("paywall.services.reconciler", level="WARNING") as logs:
            self.assertIsNone(reconciler.process(payment_intent_event(PAYMENT_SUCCEEDED)))
        ledger.transition.assert_not_called()
        self.assertTrue(any("cancelled -> completed" in line for line in logs.output))

    def test_allowed_move_goes_through_conditional_update(self) -> None:
        ledger = MagicMock()
        ledger.find_by_external_id.return_value = MagicMock(status="pending")
        reconciler = EventReconciler(MagicMock(), ledger, MagicMock(), MagicMock())
        reconciler.process(payment_intent_event(PAYMENT_FAILED))
        args = ledger.transition.call_args.args
        self.assertEqual(args[0], "pi_1")
        self.assertEqual(args[1], PaymentStatus.FAILED)
        self.assertEqual(set(args[2]), {PaymentStatus.PENDING})

    def test_failed_is_terminal(self) -> None:
        self.ledger.create(
            user_id=self.user_id,
            plan_id="prod_1",
            price_id="price_1",
            external_payment_id="pi_1",
            status=PaymentStatus.FAILED,
        )
        self.reconciler.process(payment_intent_event(PAYMENT_SUCCEEDED))
        self.assertEqual(self.ledger.find_by_external_id("pi_1").status, "failed")


class TestIsolation(ReconcilerTestCase):
    def test_unrecognized_event_is_noop(self) -> None:
        event = GatewayEvent(id="evt_x", type="customer.created", data={"id": "cus_9"})
        with self.assertLogs("paywall.services.reconciler", level="INFO") as logs:
            self.assertIsNone(self.reconciler.process(event))
        self.assertTrue(any("Unhandled event type" in line for line in logs.output))
        self.assertEqual(self._records(), [])

    def test_processing_error_is_returned_not_raised(self) -> None:
        self.gateway.fail_line_items = True
        with self.assertLogs("paywall.services.reconciler", level="ERROR"):
            error = self.reconciler.process(checkout_completed())
        self.assertIn("line item list failed", error)
        self.assertEqual(self._records(), [])

    def test_unexpected_exception_rolls_back(self) -> None:
        db = MagicMock()
        ledger = MagicMock()
        ledger.find_by_external_id.side_effect = RuntimeError("boom")
        reconciler = EventReconciler(db, ledger, MagicMock(), MagicMock())
        error = reconciler.process(payment_intent_event(PAYMENT_SUCCEEDED))
        self.assertEqual(error, "boom")
        db.rollback.assert_called_once()

    def test_apply_propagates_errors(self) -> None:
        self.gateway.fail_line_items = True
        with self.assertRaises(Exception):
            self.reconciler.apply(checkout_completed())


if __name__ == "__main__":
    unittest.main()
