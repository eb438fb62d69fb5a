from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from dirttrails.core.logging import reference_ctx
from dirttrails.models import PaymentStatus
from dirttrails.services.errors import PaymentNotFoundError, WebhookValidationError
from dirttrails.services.fulfillment import FulfillmentReport, fulfill_order
from dirttrails.services.marzpay import WebhookEvent, parse_webhook, verify_marzpay_signature
from dirttrails.services.notifications import OutcomeKind, PaymentOutcome
from dirttrails.services.reconciler import Reconciliation, reconcile_payment

logger = logging.getLogger(__name__)


@dataclass
class WebhookResult:
    success: bool
    reference: Optional[str] = None
    status: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    report: Optional[FulfillmentReport] = None
    outcomes: list[PaymentOutcome] = field(default_factory=list)

    def as_response(self) -> dict:
        body = {"success": self.success}
        for key in ("reference", "status", "message", "error"):
            value = getattr(self, key)
            if value is not None:
                body[key] = value
        return body


def _outcomes(event: WebhookEvent, rec: Reconciliation, report: Optional[FulfillmentReport]) -> list[PaymentOutcome]:
    payment = rec.payment
    currency = rec.order.currency if rec.order is not None and rec.order.currency else payment.currency
    outcomes: list[PaymentOutcome] = []
    # Replays stay quiet unless they still have something to report.
    if rec.transitioned and payment.order_id:
        if rec.status == PaymentStatus.COMPLETED:
            outcomes.append(
                PaymentOutcome(
                    kind=OutcomeKind.COMPLETED,
                    reference=payment.reference,
                    order_id=payment.order_id,
                    amount=payment.amount,
                    currency=currency,
                    formatted_amount=event.formatted_amount,
                    phone_number=payment.phone_number,
                )
            )
        elif rec.status == PaymentStatus.FAILED:
            outcomes.append(
                PaymentOutcome(
                    kind=OutcomeKind.FAILED,
                    reference=payment.reference,
                    order_id=payment.order_id,
                    status=rec.status.value,
                )
            )
    if report is not None and not report.is_complete:
        outcomes.append(
            PaymentOutcome(
                kind=OutcomeKind.PARTIAL,
                reference=payment.reference,
                order_id=report.order_id,
                problems=tuple(str(warning) for warning in report.warnings),
            )
        )
    return outcomes


def process_webhook(db: Session, body: bytes, signature: Optional[str] = None) -> WebhookResult:
    """Run one delivery through normalize -> reconcile -> fulfill.

    Never raises for expected outcomes: validation problems come back as
    ``success=False`` and unknown references as an acknowledged no-op.
    """
    if not verify_marzpay_signature(body, signature):
        logger.warning("Rejected webhook with invalid signature")
        return WebhookResult(success=False, error="Invalid signature")

    try:
        event = parse_webhook(body)
    except WebhookValidationError as exc:
        logger.warning("Rejected webhook: %s", exc)
        return WebhookResult(success=False, error=str(exc))

    token = reference_ctx.set(event.reference)
    try:
        try:
            rec = reconcile_payment(db, event)
        except PaymentNotFoundError:
            logger.info("Webhook: payment not found, acknowledged")
            return WebhookResult(
                success=True,
                reference=event.reference,
                message="Payment not found, acknowledged",
            )

        report = None
        if rec.should_fulfill:
            report = fulfill_order(db, rec.payment, rec.order)

        logger.info(
            "Webhook processed status=%s gateway_status=%s transitioned=%s fulfilled=%s",
            rec.status.value,
            event.gateway_status,
            rec.transitioned,
            report.is_complete if report is not None else None,
        )
        return WebhookResult(
            success=True,
            reference=event.reference,
            status=rec.status.value,
            report=report,
            outcomes=_outcomes(event, rec, report),
        )
    finally:
        reference_ctx.reset(token)
