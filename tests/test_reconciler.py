import pytest
from sqlalchemy import func, select

from conftest import webhook_body
from dirttrails.models import Booking, Order, Payment, PaymentStatus, Ticket, Transaction
from dirttrails.services.errors import PaymentNotFoundError, ReconciliationConflict
from dirttrails.services.marzpay import parse_webhook
from dirttrails.services.reconciler import reconcile_payment, transition_payment_status
from dirttrails.services.webhook import process_webhook


def _row_counts(db):
    return {
        model.__tablename__: db.execute(select(func.count()).select_from(model)).scalar_one()
        for model in (Payment, Order, Transaction, Booking, Ticket)
    }


def test_unknown_reference_is_acknowledged_without_writes(db, scenario):
    before = _row_counts(db)

    result = process_webhook(db, webhook_body("NOPE", "successful"))

    assert result.success
    assert result.message == "Payment not found, acknowledged"
    assert result.outcomes == []
    db.expire_all()
    assert _row_counts(db) == before
    assert db.get(Payment, "P1").status == "pending"


def test_reconcile_raises_for_unknown_reference(db, scenario):
    with pytest.raises(PaymentNotFoundError):
        reconcile_payment(db, parse_webhook(webhook_body("NOPE")))


def test_completed_event_transitions_pending_payment(db, scenario):
    rec = reconcile_payment(db, parse_webhook(webhook_body("R1", "success")))

    assert rec.transitioned
    assert rec.status == PaymentStatus.COMPLETED
    assert rec.should_fulfill
    assert rec.order.id == "O1"
    assert rec.payment.webhook_data["transaction"]["reference"] == "R1"


def test_terminal_status_never_moves_backwards(db, scenario):
    process_webhook(db, webhook_body("R1", "successful"))

    late = process_webhook(db, webhook_body("R1", "failed"))
    db.expire_all()

    assert late.success
    assert late.status == "completed"
    assert late.outcomes == []
    assert db.get(Payment, "P1").status == "completed"
    # Metadata still reflects the latest delivery.
    assert db.get(Payment, "P1").gateway_status == "failed"


def test_failed_payment_is_not_revived_by_success(db, scenario):
    process_webhook(db, webhook_body("R1", "expired"))

    result = process_webhook(db, webhook_body("R1", "successful"))
    db.expire_all()

    assert result.status == "failed"
    assert result.report is None
    assert db.get(Order, "O1").status == "pending"
    assert db.execute(select(func.count()).select_from(Transaction)).scalar_one() == 0


def test_other_status_only_records_gateway_status(db, scenario):
    result = process_webhook(db, webhook_body("R1", "processing"))
    db.expire_all()

    assert result.success
    assert result.status == "pending"
    assert result.outcomes == []
    payment = db.get(Payment, "P1")
    assert payment.status == "pending"
    assert payment.gateway_status == "processing"


def test_transition_conflict_when_not_pending(db, scenario):
    payment = db.get(Payment, "P1")
    transition_payment_status(db, payment, PaymentStatus.COMPLETED)
    db.commit()

    with pytest.raises(ReconciliationConflict):
        transition_payment_status(db, payment, PaymentStatus.FAILED)


def test_payment_without_order_is_reconciled_but_not_fulfilled(db, scenario):
    db.add(Payment(id="P2", reference="R2", amount=1000, currency="UGX", status="pending"))
    db.commit()

    result = process_webhook(db, webhook_body("R2", "successful"))

    assert result.status == "completed"
    assert result.report is None
    assert result.outcomes == []


def test_invalid_payload_writes_nothing(db, scenario):
    before = _row_counts(db)

    result = process_webhook(db, b'{"transaction": {"status": "successful"}}')

    assert not result.success
    assert result.error == "Missing transaction.reference"
    assert _row_counts(db) == before
