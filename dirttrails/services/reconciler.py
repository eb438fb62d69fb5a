from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from dirttrails.models import Order, OrderStatus, Payment, PaymentStatus
from dirttrails.services.errors import PaymentNotFoundError, ReconciliationConflict
from dirttrails.services.marzpay import GatewayStatus, WebhookEvent

logger = logging.getLogger(__name__)

_TERMINAL_STATUS = {
    GatewayStatus.COMPLETED: PaymentStatus.COMPLETED,
    GatewayStatus.FAILED: PaymentStatus.FAILED,
}


@dataclass(frozen=True)
class Reconciliation:
    payment: Payment
    order: Optional[Order]
    status: PaymentStatus
    transitioned: bool
    should_fulfill: bool


def get_payment_by_reference(db: Session, reference: str) -> Optional[Payment]:
    return db.execute(select(Payment).where(Payment.reference == reference)).scalar_one_or_none()


def order_paid_by_other(order: Order, payment: Payment) -> bool:
    """True when the order was already marked paid by a different payment reference."""
    return (
        order.status == OrderStatus.PAID.value
        and bool(order.reference)
        and order.reference != payment.reference
    )


def transition_payment_status(db: Session, payment: Payment, target: PaymentStatus) -> None:
    """Move a pending payment to a terminal status, or raise if another delivery already did."""
    result = db.execute(
        update(Payment)
        .where(Payment.id == payment.id, Payment.status == PaymentStatus.PENDING.value)
        .values(status=target.value)
    )
    if result.rowcount != 1:
        raise ReconciliationConflict(f"Payment {payment.reference} is no longer pending")


def reconcile_payment(db: Session, event: WebhookEvent) -> Reconciliation:
    payment = get_payment_by_reference(db, event.reference)
    if payment is None:
        raise PaymentNotFoundError(event.reference)

    # Gateway metadata is refreshed on every delivery, whatever the status outcome.
    payment.gateway_status = event.gateway_status or payment.gateway_status
    payment.transaction_uuid = event.transaction_uuid or payment.transaction_uuid
    payment.provider_reference = event.provider_reference or payment.provider_reference
    payment.webhook_data = event.payload
    db.flush()

    transitioned = False
    target = _TERMINAL_STATUS.get(event.status)
    if target is not None:
        try:
            transition_payment_status(db, payment, target)
            transitioned = True
        except ReconciliationConflict:
            transitioned = False
    db.commit()
    db.refresh(payment)

    status = PaymentStatus(payment.status)
    if target is not None and not transitioned and status != target:
        logger.warning(
            "Ignoring %s delivery for payment already %s",
            target.value,
            status.value,
        )

    order = db.get(Order, payment.order_id, populate_existing=True) if payment.order_id else None
    if payment.order_id and order is None:
        logger.error("Order %s not found for payment", payment.order_id)

    should_fulfill = (
        event.status == GatewayStatus.COMPLETED
        and status == PaymentStatus.COMPLETED
        and order is not None
        and order.fulfilled_at is None
    )
    if should_fulfill and order_paid_by_other(order, payment):
        # A second successful attempt for the same order; the vendor was already credited once.
        logger.warning(
            "Order %s already paid by %s; skipping fulfillment, needs manual reconciliation",
            order.id,
            order.reference,
        )
        should_fulfill = False
    return Reconciliation(
        payment=payment,
        order=order,
        status=status,
        transitioned=transitioned,
        should_fulfill=should_fulfill,
    )
