import enum
from sqlalchemy import Column, String, Numeric, Index
from dirttrails.core.database import Base
from dirttrails.models.base import TimestampMixin, new_id


class TransactionType(str, enum.Enum):
    PAYMENT = "payment"
    WITHDRAWAL = "withdrawal"
    REFUND = "refund"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Transaction(Base, TimestampMixin):
    """
    Vendor ledger entry. Rows are append-only: the only permitted mutation is a
    withdrawal moving pending -> completed | failed. Wallet balances are always
    derived from this table.
    """

    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=new_id)
    vendor_id = Column(String(36), nullable=False)
    booking_id = Column(String(36), nullable=True)
    tourist_id = Column(String(36), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(8), nullable=False, default="UGX")
    transaction_type = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False, default=TransactionStatus.PENDING.value)
    payment_method = Column(String(32), nullable=True)
    reference = Column(String(128), unique=True, nullable=False, index=True)


Index("ix_transactions_vendor_type_status", Transaction.vendor_id, Transaction.transaction_type, Transaction.status)
