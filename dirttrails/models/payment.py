import enum
from sqlalchemy import Column, String, ForeignKey, Numeric, Index, JSON
from sqlalchemy.orm import relationship
from dirttrails.core.database import Base
from dirttrails.models.base import TimestampMixin, new_id


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Payment(Base, TimestampMixin):
    """
    One row per initiated MarzPay collection, keyed by the gateway reference.

    Status is a plain string column: pending -> completed | failed, never back.
    """

    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=new_id)
    reference = Column(String(128), unique=True, nullable=False, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(8), nullable=False, default="UGX")
    phone_number = Column(String(32), nullable=True)
    status = Column(String(16), nullable=False, default=PaymentStatus.PENDING.value)

    gateway_status = Column(String(32), nullable=True)  # raw status string from the last delivery
    transaction_uuid = Column(String(64), nullable=True)
    provider_reference = Column(String(128), nullable=True)
    webhook_data = Column(JSON, nullable=True)

    order = relationship("Order", back_populates="payments")


Index("ix_payments_order_status", Payment.order_id, Payment.status)
