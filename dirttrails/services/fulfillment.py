"""Turn a completed payment into a paid order, a ledger credit, bookings and tickets.

Fulfillment is forward-only: every step is its own atomic write keyed so that a
replay is a no-op, and a failed step never rolls back the steps before it.
A later delivery of the same reference re-runs the pipeline and fills in
whatever is still missing. ``fulfilled_at`` is stamped only when a run finishes
with no warnings.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from dirttrails.core.config import get_settings
from dirttrails.models import (
    BookingPaymentStatus,
    BookingStatus,
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    PaymentStatus,
    Service,
    TransactionStatus,
    TransactionType,
)
from dirttrails.models.base import utcnow
from dirttrails.services.bookings import create_or_get_booking, set_booking_status
from dirttrails.services.errors import ReconciliationConflict
from dirttrails.services.inventory import allocate_tickets
from dirttrails.services.ledger import append_ledger_transaction
from dirttrails.services.reconciler import order_paid_by_other

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FulfillmentWarning:
    step: str
    key: str
    detail: str

    def __str__(self) -> str:
        return f"{self.step}[{self.key}]: {self.detail}"


@dataclass
class FulfillmentReport:
    order_id: str
    reference: str
    order_marked_paid: bool = False
    ledger_transaction_id: Optional[str] = None
    booking_ids: dict[str, str] = field(default_factory=dict)
    tickets_issued: int = 0
    warnings: list[FulfillmentWarning] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.warnings

    def warn(self, step: str, key: str, detail) -> None:
        warning = FulfillmentWarning(step=step, key=str(key), detail=str(detail))
        logger.warning("Fulfillment step failed for order %s: %s", self.order_id, warning)
        self.warnings.append(warning)


@dataclass
class ServiceGroup:
    service_id: str
    guests: int = 0
    total: Decimal = Decimal("0")


def group_items_by_service(items: list[OrderItem]) -> tuple[OrderedDict[str, ServiceGroup], list[OrderItem]]:
    """Aggregate order items per service. Items whose ticket type has no service are returned separately."""
    groups: OrderedDict[str, ServiceGroup] = OrderedDict()
    orphans: list[OrderItem] = []
    for item in items:
        service_id = item.ticket_type.service_id if item.ticket_type is not None else None
        if not service_id:
            orphans.append(item)
            continue
        group = groups.setdefault(service_id, ServiceGroup(service_id=service_id))
        group.guests += int(item.quantity)
        group.total += Decimal(str(item.unit_price or 0)) * int(item.quantity)
    return groups, orphans


def mark_order_paid(db: Session, order: Order, reference: str, payment_method: str) -> None:
    result = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == OrderStatus.PENDING.value)
        .values(
            status=OrderStatus.PAID.value,
            reference=reference,
            payment_method=payment_method,
            paid_at=utcnow(),
        )
    )
    db.commit()
    if result.rowcount != 1:
        raise ReconciliationConflict(f"Order {order.id} is already paid")


def _load_items(db: Session, order_id: str) -> list[OrderItem]:
    stmt = (
        select(OrderItem)
        .where(OrderItem.order_id == order_id)
        .options(selectinload(OrderItem.ticket_type))
        .order_by(OrderItem.created_at, OrderItem.id)
    )
    return list(db.execute(stmt).scalars().all())


def _service_vendor(db: Session, service_id: str, fallback: str) -> str:
    vendor_id = db.execute(select(Service.vendor_id).where(Service.id == service_id)).scalar_one_or_none()
    return vendor_id or fallback


def _book_service_groups(db: Session, order: Order, payment: Payment, groups, report: FulfillmentReport) -> None:
    currency = order.currency or get_settings().default_currency
    today = utcnow().date()
    for service_id, group in groups.items():
        try:
            result = create_or_get_booking(
                db,
                order_id=order.id,
                service_id=service_id,
                vendor_id=_service_vendor(db, service_id, order.vendor_id),
                booking_date=today,
                service_date=today,
                guests=group.guests,
                total_amount=group.total,
                currency=currency,
                tourist_id=order.user_id,
                payment_reference=payment.reference,
                guest_name=order.guest_name,
                guest_email=order.guest_email,
                guest_phone=order.guest_phone,
            )
            if not result.success or not result.booking_id:
                report.warn("booking", service_id, result.error or "booking not created")
                continue
            set_booking_status(db, result.booking_id, BookingStatus.CONFIRMED, BookingPaymentStatus.PAID)
            report.booking_ids[service_id] = result.booking_id
        except Exception as exc:
            db.rollback()
            report.warn("booking", service_id, exc)


def _allocate_items(db: Session, order: Order, items: list[OrderItem], report: FulfillmentReport) -> None:
    for item in items:
        try:
            result = allocate_tickets(
                db,
                ticket_type_id=item.ticket_type_id,
                quantity=int(item.quantity),
                order_id=order.id,
                order_item_id=item.id,
                owner_id=order.user_id,
            )
            if not result.success:
                report.warn("tickets", item.ticket_type_id, result.error or "allocation failed")
                continue
            report.tickets_issued += len(result.ticket_ids)
        except Exception as exc:
            db.rollback()
            report.warn("tickets", item.ticket_type_id, exc)


def fulfill_order(db: Session, payment: Payment, order: Order) -> FulfillmentReport:
    settings = get_settings()
    report = FulfillmentReport(order_id=order.id, reference=payment.reference)

    try:
        mark_order_paid(db, order, payment.reference, settings.payment_method)
        report.order_marked_paid = True
    except ReconciliationConflict:
        db.refresh(order)
        if order_paid_by_other(order, payment):
            # Another payment reference won the pending -> paid transition.
            report.warn("order", order.id, f"already paid by {order.reference}")
            return report
        logger.info("Order %s already paid, continuing with remaining steps", order.id)
    except Exception as exc:
        db.rollback()
        report.warn("order", order.id, exc)

    try:
        entry = append_ledger_transaction(
            db,
            vendor_id=order.vendor_id,
            amount=payment.amount,
            transaction_type=TransactionType.PAYMENT,
            reference=payment.reference,
            currency=order.currency or settings.default_currency,
            status=TransactionStatus.COMPLETED,
            payment_method=settings.payment_method,
            tourist_id=order.user_id,
        )
        report.ledger_transaction_id = entry.id
    except Exception as exc:
        db.rollback()
        report.warn("ledger", payment.reference, exc)

    try:
        items = _load_items(db, order.id)
    except Exception as exc:
        db.rollback()
        report.warn("items", order.id, exc)
        items = []

    groups, orphans = group_items_by_service(items)
    for item in orphans:
        logger.warning("Order item %s has no service; skipping booking for it", item.id)
    _book_service_groups(db, order, payment, groups, report)
    _allocate_items(db, order, items, report)

    if report.is_complete:
        db.execute(
            update(Order)
            .where(Order.id == order.id, Order.fulfilled_at.is_(None))
            .values(fulfilled_at=utcnow())
        )
        db.commit()
        logger.info(
            "Order %s fulfilled: bookings=%s tickets=%s",
            order.id,
            len(report.booking_ids),
            report.tickets_issued,
        )
    return report


def find_unfulfilled_orders(db: Session, limit: int = 100) -> list[Order]:
    """Paid orders whose last fulfillment run left something behind."""
    stmt = (
        select(Order)
        .where(Order.status == OrderStatus.PAID.value, Order.fulfilled_at.is_(None))
        .order_by(Order.paid_at)
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def refulfill_order(db: Session, order: Order) -> Optional[FulfillmentReport]:
    stmt = select(Payment).where(Payment.order_id == order.id, Payment.status == PaymentStatus.COMPLETED.value)
    if order.reference:
        # Only the payment that marked the order paid may finish it.
        stmt = stmt.where(Payment.reference == order.reference)
    payment = db.execute(stmt.order_by(Payment.updated_at.desc())).scalars().first()
    if payment is None:
        logger.warning("Order %s is paid but has no completed payment", order.id)
        return None
    return fulfill_order(db, payment, order)
