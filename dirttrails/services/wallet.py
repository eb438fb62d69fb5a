"""Vendor wallet derived from the transaction log.

There is no stored balance: every read folds the vendor's ledger again, so the
balance can never drift from the entries that justify it.
"""

from __future__ import annotations

import secrets
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import text, update
from sqlalchemy.orm import Session

from dirttrails.core.config import get_settings
from dirttrails.models import Transaction, TransactionStatus, TransactionType
from dirttrails.services.errors import InvalidTransitionError, InvalidWithdrawalError
from dirttrails.services.ledger import append_ledger_transaction, list_vendor_transactions

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class WalletSnapshot:
    vendor_id: str
    balance: Decimal
    currency: str
    total_earned: Decimal
    total_withdrawn: Decimal
    pending_withdrawals: Decimal
    pending_withdrawal_count: int
    transaction_count: int
    counts_by_type: dict[str, int] = field(default_factory=dict)
    counts_by_status: dict[str, int] = field(default_factory=dict)

    @property
    def available_for_withdrawal(self) -> Decimal:
        return max(Decimal("0"), self.balance - self.pending_withdrawals)


def _amount(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def _sort_key(tx: Transaction) -> datetime:
    created_at = tx.created_at or _EPOCH
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return created_at


def project_wallet(vendor_id: str, transactions: Iterable[Transaction], default_currency: str = "UGX") -> WalletSnapshot:
    txs = list(transactions)
    earned = Decimal("0")
    withdrawn = Decimal("0")
    pending = Decimal("0")
    pending_count = 0
    for tx in txs:
        amount = _amount(tx.amount)
        if tx.transaction_type == TransactionType.PAYMENT.value and tx.status == TransactionStatus.COMPLETED.value:
            earned += amount
        elif tx.transaction_type == TransactionType.WITHDRAWAL.value:
            if tx.status == TransactionStatus.COMPLETED.value:
                withdrawn += amount
            elif tx.status == TransactionStatus.PENDING.value:
                pending += amount
                pending_count += 1

    latest = max(txs, key=_sort_key) if txs else None
    return WalletSnapshot(
        vendor_id=vendor_id,
        balance=earned - withdrawn,
        currency=(latest.currency if latest is not None and latest.currency else default_currency),
        total_earned=earned,
        total_withdrawn=withdrawn,
        pending_withdrawals=pending,
        pending_withdrawal_count=pending_count,
        transaction_count=len(txs),
        counts_by_type=dict(Counter(tx.transaction_type for tx in txs)),
        counts_by_status=dict(Counter(tx.status for tx in txs)),
    )


def get_wallet(db: Session, vendor_id: str) -> WalletSnapshot:
    return project_wallet(vendor_id, list_vendor_transactions(db, vendor_id), get_settings().default_currency)


def lock_vendor_wallet(db: Session, vendor_id: str) -> None:
    """Serialize wallet mutations for one vendor until the current transaction ends.

    Postgres takes a transaction-scoped advisory lock keyed on the vendor id.
    SQLite already serializes writers for the whole database.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": f"wallet:{vendor_id}"})


def request_withdrawal(
    db: Session,
    vendor_id: str,
    amount: Decimal,
    currency: Optional[str] = None,
    payment_method: Optional[str] = None,
) -> Transaction:
    amount = _amount(amount)
    if amount <= 0:
        raise InvalidWithdrawalError("Withdrawal amount must be greater than zero")

    lock_vendor_wallet(db, vendor_id)
    wallet = get_wallet(db, vendor_id)
    if amount > wallet.available_for_withdrawal:
        db.rollback()
        raise InvalidWithdrawalError("Insufficient balance")

    settings = get_settings()
    return append_ledger_transaction(
        db,
        vendor_id=vendor_id,
        amount=amount,
        transaction_type=TransactionType.WITHDRAWAL,
        reference=f"WD_{secrets.token_hex(6)}",
        currency=currency or wallet.currency,
        status=TransactionStatus.PENDING,
        payment_method=payment_method or settings.payment_method,
    )


def review_withdrawal(db: Session, transaction_id: str, approve: bool) -> Transaction:
    """Approve (pending -> completed) or reject (pending -> failed) a withdrawal.

    Approval re-checks the completed balance under the vendor lock, so pending
    withdrawals that together exceed it cannot all be paid out.
    """
    tx = db.get(Transaction, transaction_id)
    if tx is None or tx.transaction_type != TransactionType.WITHDRAWAL.value:
        raise LookupError(f"Withdrawal {transaction_id} not found")

    target = TransactionStatus.COMPLETED if approve else TransactionStatus.FAILED
    if approve:
        lock_vendor_wallet(db, tx.vendor_id)
        wallet = get_wallet(db, tx.vendor_id)
        if tx.status == TransactionStatus.PENDING.value and _amount(tx.amount) > wallet.balance:
            db.rollback()
            raise InvalidWithdrawalError("Insufficient balance")

    result = db.execute(
        update(Transaction)
        .where(Transaction.id == tx.id, Transaction.status == TransactionStatus.PENDING.value)
        .values(status=target.value)
    )
    if result.rowcount != 1:
        db.rollback()
        db.refresh(tx)
        raise InvalidTransitionError("withdrawal", tx.status, target.value)
    db.commit()
    db.refresh(tx)
    return tx
