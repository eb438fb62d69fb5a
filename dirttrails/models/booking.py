import enum
from sqlalchemy import Column, Integer, String, Numeric, Date, Index, UniqueConstraint
from dirttrails.core.database import Base
from dirttrails.models.base import TimestampMixin, new_id


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookingPaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class Booking(Base, TimestampMixin):
    """Vendor-facing record for one (order, service) group of a paid order."""

    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), nullable=True)
    service_id = Column(String(36), nullable=False)
    vendor_id = Column(String(36), nullable=False, index=True)
    tourist_id = Column(String(36), nullable=True)
    booking_date = Column(Date, nullable=False)
    service_date = Column(Date, nullable=True)
    guests = Column(Integer, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(8), nullable=False, default="UGX")
    status = Column(String(16), nullable=False, default=BookingStatus.PENDING.value)
    payment_status = Column(String(16), nullable=False, default=BookingPaymentStatus.PENDING.value)
    payment_reference = Column(String(128), nullable=True)

    guest_name = Column(String(255), nullable=True)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(32), nullable=True)

    __table_args__ = (UniqueConstraint("order_id", "service_id", name="uq_bookings_order_service"),)


Index("ix_bookings_vendor_status", Booking.vendor_id, Booking.status)
