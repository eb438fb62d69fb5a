import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dirttrails.models import Transaction, TransactionStatus, TransactionType

logger = logging.getLogger(__name__)


def get_transaction_by_reference(db: Session, reference: str) -> Optional[Transaction]:
    return db.execute(select(Transaction).where(Transaction.reference == reference)).scalar_one_or_none()


def append_ledger_transaction(
    db: Session,
    *,
    vendor_id: str,
    amount: Decimal,
    transaction_type: TransactionType,
    reference: str,
    currency: str,
    status: TransactionStatus = TransactionStatus.COMPLETED,
    payment_method: Optional[str] = None,
    booking_id: Optional[str] = None,
    tourist_id: Optional[str] = None,
) -> Transaction:
    """Append one ledger row keyed by ``reference``.

    A second append with the same reference returns the existing row, so a
    replayed webhook never credits the vendor twice.
    """
    existing = get_transaction_by_reference(db, reference)
    if existing:
        return existing

    entry = Transaction(
        vendor_id=vendor_id,
        amount=Decimal(str(amount)),
        transaction_type=TransactionType(transaction_type).value,
        reference=reference,
        currency=currency,
        status=TransactionStatus(status).value,
        payment_method=payment_method,
        booking_id=booking_id,
        tourist_id=tourist_id,
    )
    db.add(entry)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent delivery inserted the same reference first.
        db.rollback()
        winner = get_transaction_by_reference(db, reference)
        if winner is None:
            raise
        logger.info("Ledger entry for %s already written by a concurrent delivery", reference)
        return winner
    return entry


def list_vendor_transactions(db: Session, vendor_id: str, limit: Optional[int] = None) -> list[Transaction]:
    stmt = (
        select(Transaction)
        .where(Transaction.vendor_id == vendor_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(db.execute(stmt).scalars().all())
