import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, DateTime, Index, CheckConstraint
from sqlalchemy.orm import relationship
from dirttrails.core.database import Base
from dirttrails.models.base import TimestampMixin, new_id


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"


class Order(Base, TimestampMixin):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_id)
    vendor_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), nullable=True)
    currency = Column(String(8), nullable=False, default="UGX")
    status = Column(String(16), nullable=False, default=OrderStatus.PENDING.value)
    reference = Column(String(128), nullable=True)
    payment_method = Column(String(32), nullable=True)

    guest_name = Column(String(255), nullable=True)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(32), nullable=True)

    paid_at = Column(DateTime(timezone=True), nullable=True)
    # Set once ledger, bookings and tickets have all been written for this order.
    fulfilled_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship("OrderItem", back_populates="order")
    payments = relationship("Payment", back_populates="order")


class OrderItem(Base, TimestampMixin):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    ticket_type_id = Column(String(36), ForeignKey("ticket_types.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")
    ticket_type = relationship("TicketType")

    __table_args__ = (CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),)


Index("ix_orders_status_fulfilled", Order.status, Order.fulfilled_at)
