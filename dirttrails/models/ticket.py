import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, DateTime, CheckConstraint
from sqlalchemy.orm import relationship
from dirttrails.core.database import Base
from dirttrails.models.base import TimestampMixin, new_id, utcnow


class TicketStatus(str, enum.Enum):
    ACTIVE = "active"
    USED = "used"
    CANCELLED = "cancelled"


class TicketType(Base, TimestampMixin):
    __tablename__ = "ticket_types"

    id = Column(String(36), primary_key=True, default=new_id)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=True, index=True)
    name = Column(String(128), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    # Only decremented through inventory.allocate_tickets.
    available_count = Column(Integer, nullable=False, default=0)

    service = relationship("Service", back_populates="ticket_types")

    __table_args__ = (CheckConstraint("available_count >= 0", name="ck_ticket_types_available_nonnegative"),)


class TicketAllocation(Base, TimestampMixin):
    """Marks one order item as allocated; the unique key makes allocation idempotent."""

    __tablename__ = "ticket_allocations"

    id = Column(String(36), primary_key=True, default=new_id)
    order_item_id = Column(String(36), ForeignKey("order_items.id"), unique=True, nullable=False)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    ticket_type_id = Column(String(36), ForeignKey("ticket_types.id"), nullable=False)
    quantity = Column(Integer, nullable=False)


class Ticket(Base, TimestampMixin):
    __tablename__ = "tickets"

    id = Column(String(36), primary_key=True, default=new_id)
    code = Column(String(32), unique=True, nullable=False, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    order_item_id = Column(String(36), ForeignKey("order_items.id"), nullable=True)
    ticket_type_id = Column(String(36), ForeignKey("ticket_types.id"), nullable=False, index=True)
    owner_id = Column(String(36), nullable=True)
    issued_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    status = Column(String(16), nullable=False, default=TicketStatus.ACTIVE.value)
