from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dirttrails.models import Booking, BookingPaymentStatus, BookingStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingResult:
    success: bool
    booking_id: Optional[str] = None
    created: bool = False
    error: Optional[str] = None


def _find_booking(db: Session, order_id: str, service_id: str) -> Optional[Booking]:
    stmt = select(Booking).where(Booking.order_id == order_id, Booking.service_id == service_id)
    return db.execute(stmt).scalar_one_or_none()


def create_or_get_booking(
    db: Session,
    *,
    order_id: str,
    service_id: str,
    vendor_id: str,
    booking_date: date,
    guests: int,
    total_amount: Decimal,
    currency: str,
    service_date: Optional[date] = None,
    tourist_id: Optional[str] = None,
    payment_reference: Optional[str] = None,
    guest_name: Optional[str] = None,
    guest_email: Optional[str] = None,
    guest_phone: Optional[str] = None,
) -> BookingResult:
    """Create the booking for one (order, service) pair unless it already exists."""
    if guests <= 0:
        return BookingResult(success=False, error="guests must be positive")

    existing = _find_booking(db, order_id, service_id)
    if existing:
        return BookingResult(success=True, booking_id=existing.id)

    booking = Booking(
        order_id=order_id,
        service_id=service_id,
        vendor_id=vendor_id,
        tourist_id=tourist_id,
        booking_date=booking_date,
        service_date=service_date or booking_date,
        guests=guests,
        total_amount=Decimal(str(total_amount)),
        currency=currency,
        status=BookingStatus.PENDING.value,
        payment_status=BookingPaymentStatus.PENDING.value,
        payment_reference=payment_reference,
        guest_name=guest_name,
        guest_email=guest_email,
        guest_phone=guest_phone,
    )
    db.add(booking)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        winner = _find_booking(db, order_id, service_id)
        if winner is None:
            raise
        logger.info("Booking for order=%s service=%s created by a concurrent delivery", order_id, service_id)
        return BookingResult(success=True, booking_id=winner.id)
    return BookingResult(success=True, booking_id=booking.id, created=True)


def set_booking_status(
    db: Session,
    booking_id: str,
    status: BookingStatus,
    payment_status: BookingPaymentStatus,
) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise LookupError(f"Booking {booking_id} not found")
    booking.status = BookingStatus(status).value
    booking.payment_status = BookingPaymentStatus(payment_status).value
    db.commit()
    return booking
