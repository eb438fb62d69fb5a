import hmac

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from dirttrails.core.config import get_settings
from dirttrails.core.database import get_db
from dirttrails.middlewares.rate_limit import limiter
from dirttrails.schemas.wallet import TransactionOut, WalletOut, WithdrawalRequest, WithdrawalReviewRequest
from dirttrails.services.errors import InvalidTransitionError, InvalidWithdrawalError
from dirttrails.services.ledger import list_vendor_transactions
from dirttrails.services.wallet import WalletSnapshot, get_wallet, request_withdrawal, review_withdrawal

router = APIRouter()
admin_router = APIRouter()


def _wallet_out(snapshot: WalletSnapshot) -> WalletOut:
    return WalletOut(
        vendor_id=snapshot.vendor_id,
        balance=snapshot.balance,
        currency=snapshot.currency,
        total_earned=snapshot.total_earned,
        total_withdrawn=snapshot.total_withdrawn,
        pending_withdrawals=snapshot.pending_withdrawals,
        pending_withdrawal_count=snapshot.pending_withdrawal_count,
        available_for_withdrawal=snapshot.available_for_withdrawal,
        transaction_count=snapshot.transaction_count,
        counts_by_type=snapshot.counts_by_type,
        counts_by_status=snapshot.counts_by_status,
    )


def require_admin_key(x_admin_key: str | None = Header(default=None)) -> None:
    expected = get_settings().admin_api_key
    if not expected:
        raise HTTPException(status_code=503, detail="Withdrawal review is not configured")
    if not x_admin_key or not hmac.compare_digest(x_admin_key, expected):
        raise HTTPException(status_code=403, detail="Admin access required")


@router.get("/{vendor_id}", response_model=WalletOut)
def wallet_summary(vendor_id: str, db: Session = Depends(get_db)):
    return _wallet_out(get_wallet(db, vendor_id))


@router.get("/{vendor_id}/transactions", response_model=list[TransactionOut])
def wallet_transactions(vendor_id: str, db: Session = Depends(get_db)):
    return list_vendor_transactions(db, vendor_id, limit=50)


@router.post("/{vendor_id}/withdrawals", response_model=TransactionOut, status_code=201)
@limiter.limit("5/minute")
def create_withdrawal(request: Request, vendor_id: str, payload: WithdrawalRequest, db: Session = Depends(get_db)):
    try:
        return request_withdrawal(
            db,
            vendor_id,
            payload.amount,
            currency=payload.currency,
            payment_method=payload.payment_method,
        )
    except InvalidWithdrawalError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@admin_router.post(
    "/withdrawals/{transaction_id}/review",
    response_model=TransactionOut,
    dependencies=[Depends(require_admin_key)],
)
def review(transaction_id: str, payload: WithdrawalReviewRequest, db: Session = Depends(get_db)):
    try:
        return review_withdrawal(db, transaction_id, payload.approve)
    except LookupError:
        raise HTTPException(status_code=404, detail="Withdrawal not found")
    except (InvalidTransitionError, InvalidWithdrawalError) as exc:
        raise HTTPException(status_code=409, detail=str(exc))
