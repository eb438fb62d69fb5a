from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from dirttrails.core.database import get_db
from dirttrails.middlewares.rate_limit import limiter
from dirttrails.schemas.payment import PaymentStatusOut
from dirttrails.services.reconciler import get_payment_by_reference

router = APIRouter()


@router.get("/status", response_model=PaymentStatusOut)
@limiter.limit("30/minute")
def payment_status(request: Request, reference: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    payment = get_payment_by_reference(db, reference.strip())
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return PaymentStatusOut(
        reference=payment.reference,
        status=payment.status,
        payment_id=payment.id,
        order_id=payment.order_id,
        amount=payment.amount,
    )
